"""
Tests for the event-log routes.
"""
import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient

from sitewatch.config import Settings
from sitewatch.services.event_log_service import RawEventEntry


class FakeEventReader:

    def read_entries(self, since):
        now = datetime.now(timezone.utc)
        return [
            RawEventEntry("ASP.NET 4.0.30319.0", "Error", now - timedelta(minutes=5), "Unhandled exception", 1309),
            RawEventEntry("w3wp", "Warning", now - timedelta(minutes=10), "Slow request", 2001),
            RawEventEntry("Application Error", "Error", now - timedelta(hours=3), "Faulting module", 1000),
            RawEventEntry("Service Control Manager", "Error", now - timedelta(minutes=1), "Unrelated", 7000),
        ]


@pytest.fixture
def event_client(inventory, mock_checker):
    from sitewatch.main import create_app

    app = create_app(
        settings=Settings(polling_enabled=False),
        inventory=inventory,
        checker=mock_checker,
        event_reader=FakeEventReader(),
    )
    with TestClient(app) as test_client:
        yield test_client


def test_events_not_configured(client):
    assert client.get("/api/events").status_code == 503


def test_list_events(event_client):
    events = event_client.get("/api/events").json()

    assert [e["source"] for e in events] == ["ASP.NET 4.0.30319.0", "w3wp", "Application Error"]
    assert events[0]["instance_id"] == 1309


def test_list_events_window(event_client):
    events = event_client.get("/api/events", params={"hours": 1}).json()

    assert [e["source"] for e in events] == ["ASP.NET 4.0.30319.0", "w3wp"]


def test_event_summary(event_client):
    body = event_client.get("/api/events/summary").json()

    assert body["hours"] == 24
    assert body["total_errors"] == 2
    assert body["total_warnings"] == 1
    assert body["errors_by_source"] == {"ASP.NET 4.0.30319.0": 1, "Application Error": 1}
    assert len(body["recent_events"]) == 3


def test_hours_validated(event_client):
    assert event_client.get("/api/events", params={"hours": 0}).status_code == 422
