"""Shared test fixtures for TaskFlow board tests."""

import sys
from pathlib import Path

import pytest

# Ensure the repo root (taskflow package + server module) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from taskflow.board import Board
from taskflow.config import Config
from taskflow.events import BoardEvents, EVENT_TYPES
from taskflow.session import BoardSession
from taskflow.store import SnapshotStore


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "taskflow.db")


@pytest.fixture
def store(db_path):
    return SnapshotStore(db_path)


@pytest.fixture
def events():
    return BoardEvents()


@pytest.fixture
def board(events):
    return Board(events=events)


@pytest.fixture
def config(db_path):
    return Config(db_path=db_path, secret_key="test-secret")


@pytest.fixture
def board_session(store, config):
    session = BoardSession("alice", store, config)
    session.load()
    return session


@pytest.fixture
def recorder(events):
    """Collects (event_type, kwargs) for every event the board emits."""
    seen = []
    for event_type in EVENT_TYPES:
        events.subscribe(event_type, lambda _t=event_type, **kw: seen.append((_t, kw)))
    return seen


@pytest.fixture
def client(monkeypatch, config):
    import taskflow_server

    monkeypatch.delenv("TASKFLOW_DB", raising=False)
    app = taskflow_server.init_app(config)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
    taskflow_server.init_app(Config(db_path=config.db_path))


@pytest.fixture
def logged_in(client):
    client.post("/api/register", json={"username": "alice", "password": "secret1"})
    resp = client.post("/api/login", json={"username": "alice", "password": "secret1"})
    assert resp.status_code == 200
    return client
