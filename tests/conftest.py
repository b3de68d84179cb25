"""Shared fixtures: an app over an in-memory store with a controllable clock."""

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MemoryStore
from main import create_app
from service import TimerService

START_MS = 1_700_000_000_000


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float = 0, ms: int = 0) -> None:
        self.now += int(minutes * 60_000) + ms


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def settings():
    return Settings(storage_backend="memory")


@pytest.fixture
def service(settings, clock):
    return TimerService(MemoryStore(), settings, clock=clock)


@pytest.fixture
def client(service):
    with TestClient(create_app(service)) as c:
        yield c


@pytest.fixture
def ana(client):
    return client.post("/children", json={"name": "Ana"}).json()


@pytest.fixture
def bici(client):
    return client.post("/games", json={"name": "bici"}).json()
