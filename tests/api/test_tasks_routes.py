"""
Tests for the scheduled-task routes.
"""
import pytest
from datetime import timedelta
from fastapi.testclient import TestClient

from sitewatch.config import Settings
from sitewatch.models.scheduled_task import (
    DailyTrigger,
    ScheduledTask,
    TaskAction,
    TaskEvent,
    TaskTrigger,
)
from sitewatch.services.platform_files import PlatformReadError
from tests.factories import T0

BACKUP = ScheduledTask(
    name="Nightly Backup",
    path="\\Sitewatch\\Nightly Backup",
    folder_path="\\Sitewatch",
    state="Ready",
    last_run_time=T0,
    last_task_result=0x41303,
    triggers=[TaskTrigger(DailyTrigger(T0.replace(hour=2)))],
    actions=[TaskAction(type="Execute", path="C:\\backup.cmd")],
)
CLEANUP = ScheduledTask(name="Cleanup", path="\\Cleanup", folder_path="\\")


class FakeTaskReader:

    def __init__(self):
        self.fail = False

    def list_tasks(self):
        if self.fail:
            raise PlatformReadError("Task Scheduler unavailable")
        return [BACKUP, CLEANUP]

    def task_events(self, task_path):
        if task_path != BACKUP.path:
            return []
        return [
            TaskEvent(100, T0, {"TriggerName": "Daily"}),
            TaskEvent(102, T0 + timedelta(minutes=3)),
        ]


@pytest.fixture
def task_reader():
    return FakeTaskReader()


@pytest.fixture
def task_client(inventory, mock_checker, task_reader):
    from sitewatch.main import create_app

    app = create_app(
        settings=Settings(polling_enabled=False),
        inventory=inventory,
        checker=mock_checker,
        task_reader=task_reader,
    )
    with TestClient(app) as test_client:
        yield test_client


def test_tasks_not_configured(client):
    res = client.get("/api/tasks")

    assert res.status_code == 503
    assert res.json()["detail"] == "Scheduled task reader is not configured"


def test_list_tasks(task_client):
    tasks = task_client.get("/api/tasks").json()

    assert [t["name"] for t in tasks] == ["Nightly Backup", "Cleanup"]
    backup = tasks[0]
    assert backup["last_task_result_message"] == "Task has not yet run"
    assert backup["triggers"] == [
        {"type": "Daily", "enabled": True, "description": "Daily at 02:00, every 1 day(s)"}
    ]
    assert backup["actions"][0]["path"] == "C:\\backup.cmd"


def test_list_tasks_by_folder(task_client):
    tasks = task_client.get("/api/tasks", params={"folder": "\\Sitewatch"}).json()

    assert [t["name"] for t in tasks] == ["Nightly Backup"]


def test_folders(task_client):
    assert task_client.get("/api/tasks/folders").json() == ["\\", "\\Sitewatch"]


def test_task_detail(task_client):
    res = task_client.get("/api/tasks/detail", params={"path": "\\Cleanup"})

    assert res.status_code == 200
    assert res.json()["name"] == "Cleanup"


def test_task_detail_not_found(task_client):
    assert task_client.get("/api/tasks/detail", params={"path": "\\Missing"}).status_code == 404


def test_task_history(task_client):
    runs = task_client.get("/api/tasks/history", params={"path": BACKUP.path}).json()

    assert len(runs) == 1
    assert runs[0]["result_message"] == "Success"
    assert runs[0]["triggered_by"] == "Daily"
    assert runs[0]["duration"] is not None


def test_task_history_not_found(task_client):
    assert task_client.get("/api/tasks/history", params={"path": "\\Missing"}).status_code == 404


def test_reader_failure_is_503(task_client, task_reader):
    task_reader.fail = True

    res = task_client.get("/api/tasks")

    assert res.status_code == 503
    assert "Task Scheduler unavailable" in res.json()["detail"]
