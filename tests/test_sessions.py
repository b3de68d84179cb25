import pytest

import sessions
from errors import ConflictError, NotFoundError, ValidationError
from schemas import Child, Dataset, Game

T0 = 1_700_000_000_000


@pytest.fixture
def dataset():
    return Dataset(
        children=[
            Child(id=1, name="Ana", displayName="Ana", avatar="A", createdAt="x"),
            Child(id=2, name="Leo", displayName="Leo", avatar="L", createdAt="x"),
        ],
        games=[Game(id=1, name="bici")],
        nextChildId=3,
        nextGameId=2,
    )


def test_start_allocates_ids(dataset):
    first = sessions.start_session(dataset, 1, 1, 10, T0)
    second = sessions.start_session(dataset, 2, 1, 20, T0)
    assert (first.id, second.id) == (1, 2)
    assert first.start == T0 and first.end is None and first.duration == 10
    assert dataset.nextSessionId == 3


def test_start_requires_child_and_game(dataset):
    with pytest.raises(NotFoundError, match="Child"):
        sessions.start_session(dataset, 99, 1, 10, T0)
    with pytest.raises(NotFoundError, match="Game"):
        sessions.start_session(dataset, 1, 99, 10, T0)


def test_one_active_session_per_child(dataset):
    sessions.start_session(dataset, 1, 1, 10, T0)
    with pytest.raises(ConflictError):
        sessions.start_session(dataset, 1, 1, 45, T0 + 1000)
    assert len(dataset.sessions) == 1


def test_extend_only_touches_duration(dataset):
    session = sessions.start_session(dataset, 1, 1, 10, T0)
    before = session.model_dump()
    sessions.extend_session(dataset, session.id, 5)
    after = session.model_dump()
    assert after["duration"] == 15
    assert {k: v for k, v in after.items() if k != "duration"} == {
        k: v for k, v in before.items() if k != "duration"
    }


def test_extend_is_uncapped_by_default(dataset):
    session = sessions.start_session(dataset, 1, 1, 180, T0)
    for _ in range(5):
        sessions.extend_session(dataset, session.id, 60)
    assert session.duration == 480


def test_extend_respects_cap(dataset):
    session = sessions.start_session(dataset, 1, 1, 170, T0)
    with pytest.raises(ValidationError):
        sessions.extend_session(dataset, session.id, 20, max_duration=180)
    assert session.duration == 170


def test_end_then_end_again(dataset):
    session = sessions.start_session(dataset, 1, 1, 10, T0)
    sessions.end_session(dataset, session.id, T0 + 5000)
    assert session.end == T0 + 5000
    with pytest.raises(NotFoundError):
        sessions.end_session(dataset, session.id, T0 + 6000)
    with pytest.raises(NotFoundError):
        sessions.extend_session(dataset, session.id, 5)


def test_child_can_start_again_after_end(dataset):
    session = sessions.start_session(dataset, 1, 1, 10, T0)
    sessions.end_session(dataset, session.id, T0 + 1)
    assert sessions.start_session(dataset, 1, 1, 10, T0 + 2).id == 2


def test_remaining_and_expiry(dataset):
    session = sessions.start_session(dataset, 1, 1, 10, T0)
    assert sessions.remaining_ms(session, T0 + 60_000) == 9 * 60_000
    assert not sessions.is_expired(session, T0 + 60_000)
    assert sessions.is_expired(session, T0 + 10 * 60_000)
    # expiry never ends the session
    assert session.active


def test_stats_count_only_ended(dataset):
    a = sessions.start_session(dataset, 1, 1, 10, T0)
    sessions.end_session(dataset, a.id, T0 + 1)
    b = sessions.start_session(dataset, 1, 1, 25, T0 + 2)
    sessions.end_session(dataset, b.id, T0 + 3)
    sessions.start_session(dataset, 1, 1, 40, T0 + 4)
    assert sessions.child_stats(dataset.sessions, 1) == {"totalSessions": 2, "totalTimePlayed": 35}
    assert sessions.child_stats(dataset.sessions, 2) == {"totalSessions": 0, "totalTimePlayed": 0}


def test_history_sorted_newest_first(dataset):
    sessions.start_session(dataset, 1, 1, 10, T0)
    sessions.start_session(dataset, 2, 1, 10, T0 + 500)
    assert [s.childId for s in sessions.history(dataset)] == [2, 1]
