"""
Operations of the play timer service.

Each operation is one load -> check -> mutate -> save cycle against the
store, run under a process-wide mutex. Mutations on a single child or
session also take the advisory write lock for that resource and are
rejected, not queued, when it is already held.
"""
import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError as SchemaError

import sessions
from config import Settings
from database import Store
from duplicates import detect_duplicate
from errors import ConflictError, NotFoundError, ValidationError
from locks import WriteLock
from schemas import Child, Dataset, Game, Session, avatar_for, clean, display_name_for
from validation import (
    parse_child,
    parse_game,
    parse_session_end,
    parse_session_extend,
    parse_session_start,
)

logger = logging.getLogger(__name__)

DEFAULT_CHILDREN = ("David", "Santiago")
DEFAULT_GAMES = ("bici", "videojuegos")


def now_ms() -> int:
    return int(time.time() * 1000)


class TimerService:
    def __init__(
        self,
        store: Store,
        settings: Optional[Settings] = None,
        locks: Optional[WriteLock] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.settings = settings or Settings()
        self.locks = locks or WriteLock(self.settings.write_lock_timeout)
        self.clock = clock
        self._mutex = threading.RLock()

    @contextmanager
    def _transaction(self):
        """Yield the current dataset and write it back if the block succeeds."""
        with self._mutex:
            dataset = self.store.load_dataset()
            yield dataset
            self.store.save_dataset(dataset)

    def _read(self) -> Dataset:
        with self._mutex:
            return self.store.load_dataset()

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self.clock() / 1000, tz=timezone.utc).isoformat()

    @staticmethod
    def _parse(parse, *args, **kwargs):
        try:
            return parse(*args, **kwargs)
        except ValidationError as error:
            logger.warning("Rejected request: %s", error.message)
            raise

    def _parse_child(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._parse(
            parse_child,
            payload,
            name_max=self.settings.child_name_max_length,
            nickname_max=self.settings.nickname_max_length,
            parent_max=self.settings.parent_name_max_length,
        ).model_dump()

    @staticmethod
    def _with_stats(child: Child, all_sessions: List[Session]) -> Child:
        return child.model_copy(update=sessions.child_stats(all_sessions, child.id))

    # -----------------------------
    # Children
    # -----------------------------

    def list_children(self) -> List[Child]:
        dataset = self._read()
        return [self._with_stats(c, dataset.sessions) for c in dataset.children]

    def get_child_stats(self, child_id: int) -> Dict[str, Any]:
        dataset = self._read()
        if dataset.find_child(child_id) is None:
            raise NotFoundError("Child not found")
        return {"childId": child_id, **sessions.child_stats(dataset.sessions, child_id)}

    def _check_duplicate(self, payload: Dict[str, Any], dataset: Dataset,
                         exclude_id: Optional[int] = None) -> Optional[str]:
        result = detect_duplicate(payload, dataset.children, exclude_id=exclude_id)
        if result["isDuplicate"]:
            logger.warning("Duplicate child rejected: %s", payload.get("name"))
            raise ConflictError(result["message"], extra={"isDuplicate": True})
        return result.get("suggestion")

    @staticmethod
    def _child_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
        name = payload["name"].strip()
        nickname = clean(payload.get("nickname"))
        return {
            "name": name,
            "nickname": nickname,
            "displayName": display_name_for(name, nickname),
            "avatar": avatar_for(name),
            "fatherName": clean(payload.get("fatherName")),
            "motherName": clean(payload.get("motherName")),
        }

    def create_child(self, payload: Dict[str, Any]) -> Tuple[Child, Optional[str]]:
        payload = self._parse_child(payload)
        with self.locks.hold("children"), self._transaction() as dataset:
            suggestion = self._check_duplicate(payload, dataset)
            child = Child(id=dataset.nextChildId, createdAt=self._now_iso(), **self._child_fields(payload))
            dataset.nextChildId += 1
            dataset.children.append(child)
        logger.info("Child created: %s (id %s)", child.displayName, child.id)
        return child, suggestion

    def edit_child(self, child_id: int, payload: Dict[str, Any]) -> Tuple[Child, Optional[str]]:
        payload = self._parse_child(payload)
        with self.locks.hold(f"child:{child_id}"), self._transaction() as dataset:
            index = next((i for i, c in enumerate(dataset.children) if c.id == child_id), None)
            if index is None:
                raise NotFoundError("Child not found")
            suggestion = self._check_duplicate(payload, dataset, exclude_id=child_id)
            child = dataset.children[index].model_copy(update=self._child_fields(payload))
            dataset.children[index] = child
        logger.info("Child edited: %s (id %s)", child.displayName, child.id)
        return self._with_stats(child, dataset.sessions), suggestion

    def delete_child(self, child_id: int) -> None:
        # Sessions of the child stay behind as history
        with self.locks.hold(f"child:{child_id}"), self._transaction() as dataset:
            child = dataset.find_child(child_id)
            if child is None:
                raise NotFoundError("Child not found")
            dataset.children.remove(child)
        logger.info("Child deleted: id %s", child_id)

    # -----------------------------
    # Games
    # -----------------------------

    def list_games(self) -> List[Game]:
        return self._read().games

    def create_game(self, payload: Dict[str, Any]) -> Game:
        payload = self._parse(parse_game, payload)
        with self._transaction() as dataset:
            game = Game(id=dataset.nextGameId, name=payload.name.strip())
            dataset.nextGameId += 1
            dataset.games.append(game)
        logger.info("Game created: %s (id %s)", game.name, game.id)
        return game

    def delete_game(self, game_id: int) -> None:
        with self._transaction() as dataset:
            game = dataset.find_game(game_id)
            if game is None:
                raise NotFoundError("Game not found")
            dataset.games.remove(game)
        logger.info("Game deleted: id %s", game_id)

    # -----------------------------
    # Sessions
    # -----------------------------

    def start_session(self, payload: Dict[str, Any]) -> Session:
        payload = self._parse(parse_session_start, payload)
        child_id, game_id = payload.childId, payload.gameId
        with self.locks.hold(f"child:{child_id}"), self._transaction() as dataset:
            session = sessions.start_session(dataset, child_id, game_id, payload.duration, self.clock())
        logger.info("Session %s started: child %s, game %s, %s min",
                    session.id, child_id, game_id, session.duration)
        return session

    def extend_session(self, payload: Dict[str, Any]) -> Session:
        payload = self._parse(parse_session_extend, payload)
        session_id = payload.sessionId
        with self.locks.hold(f"session:{session_id}"), self._transaction() as dataset:
            session = sessions.extend_session(
                dataset, session_id, payload.additionalTime,
                max_duration=self.settings.max_session_duration,
            )
        logger.info("Session %s extended to %s min", session.id, session.duration)
        return session

    def end_session_from(self, payload: Dict[str, Any]) -> Session:
        """End the session named by a request body; unusable ids are simply not found."""
        try:
            session_id = parse_session_end(payload).sessionId
        except ValidationError as exc:
            raise NotFoundError("Session not found or already ended") from exc
        return self.end_session(session_id)

    def end_session(self, session_id: int) -> Session:
        with self.locks.hold(f"session:{session_id}"), self._transaction() as dataset:
            session = sessions.end_session(dataset, session_id, self.clock())
        logger.info("Session %s ended", session.id)
        return session

    def delete_session(self, session_id: int) -> None:
        with self.locks.hold(f"session:{session_id}"), self._transaction() as dataset:
            session = dataset.find_session(session_id)
            if session is None:
                raise NotFoundError("Session not found")
            dataset.sessions.remove(session)
        logger.info("Session deleted: id %s", session_id)

    def active_sessions(self) -> List[Session]:
        return [s for s in self._read().sessions if s.active]

    def session_history(self) -> List[Session]:
        return sessions.history(self._read())

    def remaining_time(self, session_id: int) -> Dict[str, Any]:
        session = self._read().find_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        now = self.clock()
        return {
            "sessionId": session.id,
            "active": session.active,
            "remainingMs": sessions.remaining_ms(session, now) if session.active else 0,
            "expired": sessions.is_expired(session, now),
        }

    # -----------------------------
    # Admin
    # -----------------------------

    def seed_defaults(self) -> bool:
        """Add the default children and games when the dataset is empty."""
        with self._transaction() as dataset:
            if dataset.children or dataset.games:
                return False
            for name in DEFAULT_CHILDREN:
                dataset.children.append(Child(
                    id=dataset.nextChildId, name=name, displayName=name,
                    avatar=avatar_for(name), createdAt=self._now_iso(),
                ))
                dataset.nextChildId += 1
            for name in DEFAULT_GAMES:
                dataset.games.append(Game(id=dataset.nextGameId, name=name))
                dataset.nextGameId += 1
        logger.info("Seeded default children and games")
        return True

    def status(self) -> Dict[str, Any]:
        dataset = self._read()
        return {
            "backend": self.store.name,
            "children": len(dataset.children),
            "games": len(dataset.games),
            "sessions": len(dataset.sessions),
            "activeSessions": sum(1 for s in dataset.sessions if s.active),
            "nextChildId": dataset.nextChildId,
            "nextGameId": dataset.nextGameId,
            "nextSessionId": dataset.nextSessionId,
        }

    def reset(self) -> None:
        with self._mutex:
            self.store.save_dataset(Dataset())
        logger.warning("Dataset reset")

    def sync(self, payload: Dict[str, Any]) -> Dict[str, int]:
        if not all(isinstance(payload.get(k), list) for k in ("children", "games", "sessions")):
            raise ValidationError("Invalid data: children, games and sessions must be lists")
        try:
            dataset = Dataset(
                children=payload["children"],
                games=payload["games"],
                sessions=payload["sessions"],
                nextChildId=payload.get("nextChildId") or 1,
                nextGameId=payload.get("nextGameId") or 1,
                nextSessionId=payload.get("nextSessionId") or 1,
            )
        except SchemaError as exc:
            raise ValidationError(f"Invalid data: {exc.error_count()} field errors") from exc
        with self._mutex:
            self.store.save_dataset(dataset)
        logger.info("Dataset replaced by sync: %d children, %d games, %d sessions",
                    len(dataset.children), len(dataset.games), len(dataset.sessions))
        return {
            "children": len(dataset.children),
            "games": len(dataset.games),
            "sessions": len(dataset.sessions),
        }
