import os
import sys
from datetime import datetime, timedelta

import pytest

# Ensure the project root (containing models.py, core/, api/) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from fastapi.testclient import TestClient

from core import game_manager
from core.store import GameStore
from database import settings
from main import create_app


class FrozenClock:
    """Stands in for game_manager.utcnow; tests move time explicitly."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, 'store_retry_backoff_seconds', 0)
    monkeypatch.setattr(settings, 'store_retry_attempts', 3)


@pytest.fixture()
def clock(monkeypatch):
    frozen = FrozenClock(datetime(2026, 3, 1, 12, 0, 0))
    monkeypatch.setattr(game_manager, 'utcnow', frozen)
    return frozen


@pytest.fixture()
def store():
    test_store = GameStore('sqlite://')
    test_store.create_all()
    yield test_store
    test_store.drop_all()
    test_store.dispose()


@pytest.fixture()
def db(store):
    session = store.session()
    yield session
    session.close()


@pytest.fixture()
def client(store):
    with TestClient(create_app(store)) as test_client:
        yield test_client
