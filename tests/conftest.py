import pytest
from fastapi.testclient import TestClient

from tasktracker.main import create_app
from tasktracker.models import metadata
from tasktracker.repository import build_engine, build_session_factory


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def client(session_factory):
    with TestClient(create_app(session_factory)) as client:
        yield client


@pytest.fixture()
def task_payload():
    return {
        "title": "Write report",
        "startTime": "2024-05-01T09:00:00Z",
        "endTime": "2024-05-01T17:00:00Z",
        "priority": "High",
        "status": "Pending",
    }
