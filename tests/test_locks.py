import pytest

from errors import LockedError
from locks import WriteLock


class Ticker:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def ticker():
    return Ticker()


def test_second_acquire_fails_until_release(ticker):
    lock = WriteLock(clock=ticker)
    assert lock.try_acquire("child:1")
    assert not lock.try_acquire("child:1")
    assert lock.try_acquire("child:2")
    lock.release("child:1")
    assert lock.try_acquire("child:1")


def test_lock_expires_after_timeout(ticker):
    lock = WriteLock(timeout=30, clock=ticker)
    assert lock.try_acquire("children")
    ticker.now = 29.9
    assert lock.is_locked("children")
    assert not lock.try_acquire("children")
    ticker.now = 30.0
    assert not lock.is_locked("children")
    assert lock.try_acquire("children")


def test_release_unknown_key_is_harmless():
    WriteLock().release("nothing")


def test_hold_releases_on_error(ticker):
    lock = WriteLock(clock=ticker)
    with pytest.raises(RuntimeError):
        with lock.hold("session:1"):
            raise RuntimeError("boom")
    assert not lock.is_locked("session:1")


def test_hold_rejects_when_taken(ticker):
    lock = WriteLock(clock=ticker)
    lock.try_acquire("session:1")
    with pytest.raises(LockedError):
        with lock.hold("session:1"):
            pass
    # the first holder keeps it
    assert lock.is_locked("session:1")


def test_expired_holder_does_not_free_new_owner(ticker):
    lock = WriteLock(timeout=30, clock=ticker)
    with lock.hold("child:1"):
        ticker.now = 31.0
        assert lock.try_acquire("child:1")
    # the late exit of the first block leaves the second acquisition in place
    assert lock.is_locked("child:1")
    assert not lock.try_acquire("child:1")


def test_release_with_token_only_frees_own_acquisition(ticker):
    lock = WriteLock(timeout=30, clock=ticker)
    first = lock.acquire("session:1")
    ticker.now = 40.0
    second = lock.acquire("session:1")
    assert second is not None and second is not first
    lock.release("session:1", first)
    assert lock.is_locked("session:1")
    lock.release("session:1", second)
    assert not lock.is_locked("session:1")
