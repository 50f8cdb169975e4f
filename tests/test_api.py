from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from tasktracker.main import create_app
from tasktracker.models import TaskStatus
from tasktracker.repository import build_engine, build_session_factory

REQUIRED = ["title", "startTime", "endTime", "priority", "status"]


def parse_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def create(client, payload, **overrides):
    response = client.post("/tasks", json={**payload, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/db-health").json() == {"db": "ok"}


def test_create_task_echoes_input(client, task_payload):
    response = client.post("/tasks", json=task_payload)

    assert response.status_code == 201
    body = response.json()
    assert body["id"]
    assert body["title"] == "Write report"
    assert body["priority"] == "High"
    assert body["status"] == "Pending"
    assert parse_time(body["startTime"]) == datetime(2024, 5, 1, 9, tzinfo=timezone.utc)
    assert parse_time(body["endTime"]) == datetime(2024, 5, 1, 17, tzinfo=timezone.utc)


@pytest.mark.parametrize("field", REQUIRED)
def test_create_task_missing_field(client, task_payload, field):
    del task_payload[field]

    response = client.post("/tasks", json=task_payload)

    assert response.status_code == 400
    assert response.json() == {"error": "All fields are required."}
    assert client.get("/tasks").json() == []


@pytest.mark.parametrize("field,value", [("title", ""), ("status", None), ("startTime", 0)])
def test_create_task_falsy_field(client, task_payload, field, value):
    task_payload[field] = value

    response = client.post("/tasks", json=task_payload)

    assert response.status_code == 400
    assert client.get("/tasks").json() == []


def test_create_task_bad_timestamp(client, task_payload):
    task_payload["startTime"] = "not-a-date"

    response = client.post("/tasks", json=task_payload)

    assert response.status_code == 400
    assert "error" in response.json()


def test_list_tasks_default_sort_by_start_time(client, task_payload):
    create(client, task_payload, title="late", startTime="2024-05-03T09:00:00Z")
    create(client, task_payload, title="early", startTime="2024-05-01T09:00:00Z")
    create(client, task_payload, title="middle", startTime="2024-05-02T09:00:00Z")

    response = client.get("/tasks")

    assert response.status_code == 200
    assert [t["title"] for t in response.json()] == ["early", "middle", "late"]


def test_list_tasks_filters(client, task_payload):
    create(client, task_payload, title="a", status="Pending", priority="Low")
    create(client, task_payload, title="b", status="Finished", priority="Low")
    create(client, task_payload, title="c", status="Pending", priority="High")

    pending = client.get("/tasks", params={"status": "Pending"}).json()
    assert sorted(t["title"] for t in pending) == ["a", "c"]
    assert all(t["status"] == "Pending" for t in pending)

    low_pending = client.get("/tasks", params={"status": "Pending", "priority": "Low"}).json()
    assert [t["title"] for t in low_pending] == ["a"]

    assert client.get("/tasks", params={"status": TaskStatus.CANCELLED}).json() == []


def test_list_tasks_sort_by(client, task_payload):
    create(client, task_payload, title="b")
    create(client, task_payload, title="c")
    create(client, task_payload, title="a")

    response = client.get("/tasks", params={"sortBy": "title"})

    assert [t["title"] for t in response.json()] == ["a", "b", "c"]


def test_list_tasks_unknown_sort_field(client):
    response = client.get("/tasks", params={"sortBy": "password"})

    assert response.status_code == 400
    assert "password" in response.json()["error"]


def test_get_task_not_found(client):
    response = client.get("/tasks/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Task not found."}


def test_update_task_changes_only_supplied_fields(client, task_payload):
    task = create(client, task_payload)

    response = client.put(f"/tasks/{task['id']}", json={"status": "Finished"})

    assert response.status_code == 200
    assert response.json()["status"] == "Finished"

    stored = client.get(f"/tasks/{task['id']}").json()
    assert stored["status"] == "Finished"
    for field in ("title", "startTime", "endTime", "priority"):
        assert stored[field] == task[field]


def test_update_task_not_found(client):
    response = client.put("/tasks/missing", json={"status": "Finished"})

    assert response.status_code == 404
    assert response.json() == {"error": "Task not found."}


def test_delete_task_twice(client, task_payload):
    task = create(client, task_payload)

    first = client.delete(f"/tasks/{task['id']}")
    second = client.delete(f"/tasks/{task['id']}")

    assert first.status_code == 200
    assert first.json() == {"message": "Task deleted successfully."}
    assert second.status_code == 404
    assert client.get("/tasks").json() == []


def test_stats_route_is_not_an_id(client):
    response = client.get("/tasks/stats")

    assert response.status_code == 200
    assert response.json() == {
        "totalTasks": 0,
        "completedPercentage": 0,
        "pendingPercentage": 0,
        "timeLapsed": 0,
        "balanceTime": 0,
        "averageCompletionTime": 0,
    }


def test_stats_over_stored_tasks(client, task_payload):
    create(client, task_payload, status="Finished",
           startTime="2024-05-01T09:00:00Z", endTime="2024-05-01T11:00:00Z")
    create(client, task_payload, status=TaskStatus.CANCELLED)

    stats = client.get("/tasks/stats").json()

    assert stats["totalTasks"] == 2
    assert stats["completedPercentage"] == pytest.approx(50)
    assert stats["pendingPercentage"] == 0
    assert stats["averageCompletionTime"] == pytest.approx(2)


def test_create_task_numeric_priority(client, task_payload):
    task = create(client, task_payload, priority=2)

    assert task["priority"] == "2"
    assert client.get("/tasks", params={"priority": "2"}).json()[0]["id"] == task["id"]


def test_update_task_bad_timestamp(client, task_payload):
    task = create(client, task_payload)

    response = client.put(f"/tasks/{task['id']}", json={"startTime": "nope"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request."}
    assert client.get(f"/tasks/{task['id']}").json()["startTime"] == task["startTime"]


def test_unsupported_method_has_error_body(client):
    response = client.patch("/tasks", json={})

    assert response.status_code == 405
    assert response.json() == {"error": "Method Not Allowed"}


class UnreachableSession:
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))


def test_db_health_unreachable_store():
    client = TestClient(create_app(UnreachableSession))

    response = client.get("/db-health")

    assert response.status_code == 503
    assert response.json() == {"error": "Database connection failed"}


def test_store_failure_is_generic_500(task_payload):
    # No tables and no startup hook, so every query fails.
    app = create_app(build_session_factory(build_engine("sqlite://")))
    client = TestClient(app)

    response = client.get("/tasks")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch tasks."}

    response = client.get("/tasks/stats")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch statistics."}

    response = client.post("/tasks", json=task_payload)
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create task."}

    response = client.get("/tasks/some-id")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch task."}

    response = client.put("/tasks/some-id", json={"status": TaskStatus.FINISHED})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to update task."}

    response = client.delete("/tasks/some-id")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to delete task."}
