"""
Play session lifecycle.

A child has no session, one active session (``end`` unset) or only ended
ones. These functions mutate an in-memory Dataset; persisting it is the
caller's job. Expiry is a read-time projection: an active session whose time
ran out stays active until it is ended.
"""
from typing import Dict, List, Optional, Union

from errors import ConflictError, NotFoundError, ValidationError
from schemas import Dataset, Session

MS_PER_MINUTE = 60_000

Minutes = Union[int, float]


def active_session_for(dataset: Dataset, child_id) -> Optional[Session]:
    return next((s for s in dataset.sessions if s.childId == child_id and s.active), None)


def _find_active(dataset: Dataset, session_id) -> Session:
    session = dataset.find_session(session_id)
    if session is None or not session.active:
        raise NotFoundError("Session not found or already ended")
    return session


def start_session(dataset: Dataset, child_id, game_id, duration: Minutes, now: int) -> Session:
    if dataset.find_child(child_id) is None:
        raise NotFoundError("Child not found")
    if dataset.find_game(game_id) is None:
        raise NotFoundError("Game not found")
    if active_session_for(dataset, child_id) is not None:
        raise ConflictError("Child already has an active session")

    session = Session(
        id=dataset.nextSessionId,
        childId=child_id,
        gameId=game_id,
        start=now,
        duration=duration,
    )
    dataset.nextSessionId += 1
    dataset.sessions.append(session)
    return session


def extend_session(
    dataset: Dataset,
    session_id,
    additional: Minutes,
    max_duration: Optional[Minutes] = None,
) -> Session:
    session = _find_active(dataset, session_id)
    new_duration = session.duration + additional
    if max_duration is not None and new_duration > max_duration:
        raise ValidationError(f"Session duration cannot exceed {max_duration} minutes in total")
    session.duration = new_duration
    return session


def end_session(dataset: Dataset, session_id, now: int) -> Session:
    session = _find_active(dataset, session_id)
    session.end = max(now, session.start)
    return session


def remaining_ms(session: Session, now: int) -> float:
    return session.duration * MS_PER_MINUTE - (now - session.start)


def is_expired(session: Session, now: int) -> bool:
    return session.active and remaining_ms(session, now) <= 0


def child_stats(sessions: List[Session], child_id) -> Dict[str, Minutes]:
    completed = [s for s in sessions if s.childId == child_id and not s.active]
    return {
        "totalSessions": len(completed),
        "totalTimePlayed": sum(s.duration for s in completed),
    }


def history(dataset: Dataset) -> List[Session]:
    return sorted(dataset.sessions, key=lambda s: s.start, reverse=True)
