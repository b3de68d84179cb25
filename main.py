import logging
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, configure_logging
from database import make_store
from errors import InternalError, ServiceError, StoreError
from service import TimerService

logger = logging.getLogger(__name__)


def get_service(request: Request) -> TimerService:
    return request.app.state.service


def create_app(service: Optional[TimerService] = None) -> FastAPI:
    if service is None:
        settings = Settings.from_env()
        configure_logging(settings.log_level)
        service = TimerService(make_store(settings), settings)

    app = FastAPI(title="Play Timer API", version="1.0.0")
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
        error = InternalError("Internal server error")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.get("/")
    def read_root():
        return {"message": "Play Timer Backend Running"}

    @app.get("/test")
    def test_storage(svc: TimerService = Depends(get_service)):
        response = {
            "backend": "✅ Running",
            "storage": svc.store.name,
            "connection_status": "Not Connected",
        }
        try:
            stats = svc.status()
            response["records"] = {k: stats[k] for k in ("children", "games", "sessions")}
            response["connection_status"] = "Connected"
        except StoreError as e:
            response["connection_status"] = f"❌ Error: {str(e)[:50]}"
        return response

    # Seed the default children and games if empty
    @app.post("/seed")
    def seed_content(svc: TimerService = Depends(get_service)):
        return {"status": "ok", "seeded": svc.seed_defaults()}

    # -----------------------------
    # Children
    # -----------------------------

    @app.get("/children")
    def list_children(svc: TimerService = Depends(get_service)):
        return svc.list_children()

    @app.post("/children", status_code=201)
    def create_child(payload: Dict[str, Any] = Body(...), svc: TimerService = Depends(get_service)):
        child, suggestion = svc.create_child(payload)
        body = child.model_dump()
        if suggestion:
            body["suggestion"] = suggestion
        return body

    @app.put("/children/{child_id}")
    def edit_child(child_id: int, payload: Dict[str, Any] = Body(...),
                   svc: TimerService = Depends(get_service)):
        child, suggestion = svc.edit_child(child_id, payload)
        body = child.model_dump()
        if suggestion:
            body["suggestion"] = suggestion
        return body

    @app.delete("/children/{child_id}")
    def delete_child(child_id: int, svc: TimerService = Depends(get_service)):
        svc.delete_child(child_id)
        return {"message": "Child deleted"}

    @app.get("/children/{child_id}/stats")
    def child_stats(child_id: int, svc: TimerService = Depends(get_service)):
        return svc.get_child_stats(child_id)

    # -----------------------------
    # Games
    # -----------------------------

    @app.get("/games")
    def list_games(svc: TimerService = Depends(get_service)):
        return svc.list_games()

    @app.post("/games", status_code=201)
    def create_game(payload: Dict[str, Any] = Body(...), svc: TimerService = Depends(get_service)):
        return svc.create_game(payload)

    @app.delete("/games/{game_id}")
    def delete_game(game_id: int, svc: TimerService = Depends(get_service)):
        svc.delete_game(game_id)
        return {"message": "Game deleted"}

    # -----------------------------
    # Sessions
    # -----------------------------

    @app.get("/sessions")
    def session_history(svc: TimerService = Depends(get_service)):
        return svc.session_history()

    @app.get("/sessions/active")
    def active_sessions(svc: TimerService = Depends(get_service)):
        return svc.active_sessions()

    @app.post("/sessions/start", status_code=201)
    def start_session(payload: Dict[str, Any] = Body(...), svc: TimerService = Depends(get_service)):
        return svc.start_session(payload)

    @app.post("/sessions/extend")
    def extend_session(payload: Dict[str, Any] = Body(...), svc: TimerService = Depends(get_service)):
        session = svc.extend_session(payload)
        return {"message": "Time extended", "session": session, "newDuration": session.duration}

    @app.post("/sessions/end")
    def end_session(payload: Dict[str, Any] = Body(...), svc: TimerService = Depends(get_service)):
        return svc.end_session_from(payload)

    @app.post("/sessions/{session_id}/end")
    def end_session_by_path(session_id: int, svc: TimerService = Depends(get_service)):
        return svc.end_session(session_id)

    @app.get("/sessions/{session_id}/remaining")
    def remaining_time(session_id: int, svc: TimerService = Depends(get_service)):
        return svc.remaining_time(session_id)

    @app.delete("/sessions/{session_id}")
    def delete_session(session_id: int, svc: TimerService = Depends(get_service)):
        svc.delete_session(session_id)
        return {"message": "Session deleted"}

    # -----------------------------
    # Admin
    # -----------------------------

    @app.get("/admin/status")
    def admin_status(svc: TimerService = Depends(get_service)):
        return svc.status()

    @app.post("/admin/reset")
    def admin_reset(svc: TimerService = Depends(get_service)):
        svc.reset()
        return {"message": "Data reset"}

    @app.post("/admin/sync-data")
    def admin_sync(payload: Dict[str, Any] = Body(...), svc: TimerService = Depends(get_service)):
        return {"message": "Data synced", "synced": svc.sync(payload)}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Settings.from_env().port)
