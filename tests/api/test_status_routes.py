"""
Tests for the liveness and endpoint-status routes.
"""
from datetime import datetime, timedelta, timezone

from sitewatch.models.status import CheckOutcome, EndpointIdentity

ROOT = EndpointIdentity("Default Web Site", "/")
API = EndpointIdentity("Default Web Site", "/api")


def test_liveness(client):
    res = client.get("/api/health")

    assert res.status_code == 200
    assert res.json()["status"] == "healthy"


def test_liveness_ignores_inventory_failure(client, inventory):
    inventory.fail = True

    assert client.get("/api/health").status_code == 200


def test_unchecked_endpoint(client):
    res = client.get("/api/status/Default%20Web%20Site")

    assert res.status_code == 200
    body = res.json()
    assert body["checked"] is False
    assert body["status"] is None
    assert body["application_path"] == "/"


def test_latest_status(client, app):
    now = datetime.now(timezone.utc)
    app.state.store.record(ROOT, CheckOutcome(True, 35, 200), now - timedelta(seconds=30))
    app.state.store.record(ROOT, CheckOutcome(False, 0, 503, "HTTP 503"), now)

    body = client.get("/api/status/Default%20Web%20Site").json()

    assert body["checked"] is True
    assert body["status"]["is_responding"] is False
    assert body["status"]["http_status_code"] == 503
    assert body["status"]["error_message"] == "HTTP 503"


def test_application_status_by_path(client, app):
    app.state.store.record(API, CheckOutcome(True, 12, 200), datetime.now(timezone.utc))

    body = client.get("/api/status/Default%20Web%20Site", params={"path": "/api"}).json()

    assert body["application_path"] == "/api"
    assert body["status"]["response_time_ms"] == 12


def test_history_newest_first_with_limit(client, app):
    start = datetime.now(timezone.utc) - timedelta(minutes=10)
    for i in range(5):
        app.state.store.record(ROOT, CheckOutcome(True, 10 + i, 200), start + timedelta(seconds=30 * i))

    res = client.get("/api/status/Default%20Web%20Site/history", params={"limit": 3})

    assert res.status_code == 200
    assert [e["response_time_ms"] for e in res.json()] == [14, 13, 12]


def test_history_unknown_endpoint_is_empty(client):
    res = client.get("/api/status/Nowhere/history")

    assert res.status_code == 200
    assert res.json() == []


def test_history_limit_validated(client):
    assert client.get("/api/status/Default%20Web%20Site/history", params={"limit": 0}).status_code == 422


def test_summary(client, app):
    now = datetime.now(timezone.utc)
    outcomes = [CheckOutcome(True, 100, 200)] * 3 + [CheckOutcome(False, 0, None, "request timed out")]
    for i, outcome in enumerate(outcomes):
        app.state.store.record(ROOT, outcome, now - timedelta(minutes=10 - i))

    body = client.get("/api/status/Default%20Web%20Site/summary").json()

    assert body["window_hours"] == 24
    assert body["total_checks"] == 4
    assert body["successful_checks"] == 3
    assert body["failed_checks"] == 1
    assert body["uptime_percentage"] == 75.0
    assert body["average_response_time_ms"] == 100.0
    assert body["last_downtime"] is not None
    assert [e["error_message"] for e in body["recent_errors"]] == ["request timed out"]


def test_summary_without_history(client):
    body = client.get("/api/status/Nowhere/summary").json()

    assert body["total_checks"] == 0
    assert body["uptime_percentage"] == 0.0
    assert body["last_downtime"] is None


def test_scheduler_state_when_polling_disabled(client):
    body = client.get("/api/scheduler").json()

    assert body["state"] == "idle"
    assert body["running"] is False
    assert body["cycles_completed"] == 0
    assert body["interval_seconds"] == 30


def test_site_named_scheduler_has_its_own_status(client, app):
    app.state.store.record(
        EndpointIdentity("scheduler", "/"), CheckOutcome(True, 8, 200), datetime.now(timezone.utc)
    )

    body = client.get("/api/status/scheduler").json()

    assert body["site_name"] == "scheduler"
    assert body["checked"] is True
    assert body["status"]["response_time_ms"] == 8
