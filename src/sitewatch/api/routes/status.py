"""
API routes for endpoint health state.

Endpoints:
- GET /api/health - Liveness of this process
- GET /api/scheduler - Poll scheduler state
- GET /api/status/{site_name} - Latest status of a site root or sub-application
- GET /api/status/{site_name}/history - Check history, newest first
- GET /api/status/{site_name}/summary - Uptime/latency summary over the trailing window
"""

from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from opentelemetry import trace
from pydantic import BaseModel

from sitewatch.api.dependencies import get_scheduler, get_store
from sitewatch.models.status import ROOT_PATH, EndpointIdentity, HistoryEntry, StatusRecord
from sitewatch.services.poll_scheduler import PollScheduler
from sitewatch.services.status_store import StatusStore

router = APIRouter(prefix="/api", tags=["status"])
tracer = trace.get_tracer(__name__)


# Response Models

class StatusResponse(BaseModel):
    """Latest check outcome for an endpoint."""
    is_responding: bool
    response_time_ms: int
    http_status_code: Optional[int]
    error_message: Optional[str]
    last_checked: datetime

    class Config:
        from_attributes = True


class EndpointStatusResponse(BaseModel):
    site_name: str
    application_path: str
    checked: bool
    status: Optional[StatusResponse]


class HistoryEntryResponse(BaseModel):
    timestamp: datetime
    is_responding: bool
    response_time_ms: int
    http_status_code: Optional[int]
    error_message: Optional[str]

    class Config:
        from_attributes = True


class HealthSummaryResponse(BaseModel):
    site_name: str
    application_path: str
    window_hours: int
    uptime_percentage: float
    total_checks: int
    successful_checks: int
    failed_checks: int
    average_response_time_ms: float
    last_downtime: Optional[datetime]
    recent_errors: List[HistoryEntryResponse]


class SchedulerResponse(BaseModel):
    state: str
    running: bool
    interval_seconds: float
    cycles_completed: int
    last_cycle_at: Optional[datetime]
    tracked_endpoints: int


def status_response(record: Optional[StatusRecord]) -> Optional[StatusResponse]:
    if record is None:
        return None
    return StatusResponse.model_validate(record)


def history_response(entry: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse.model_validate(entry)


# Endpoints

@router.get("/health")
def liveness():
    """Always 200 while the process is up; does not look at monitored state."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}


@router.get("/scheduler", response_model=SchedulerResponse)
def get_scheduler_state(
    scheduler: PollScheduler = Depends(get_scheduler),
    store: StatusStore = Depends(get_store),
):
    return SchedulerResponse(
        state=scheduler.state.value,
        running=scheduler.is_running,
        interval_seconds=scheduler.interval_seconds,
        cycles_completed=scheduler.cycles_completed,
        last_cycle_at=scheduler.last_cycle_at,
        tracked_endpoints=len(store),
    )


@router.get("/status/{site_name}", response_model=EndpointStatusResponse)
def get_latest_status(
    site_name: str,
    path: str = Query(ROOT_PATH, description="Application path; '/' for the site root"),
    store: StatusStore = Depends(get_store),
):
    """
    Latest status of one endpoint.

    `checked` is False when the endpoint has never been polled, which is
    different from a status with `is_responding` False.
    """
    record = store.latest(EndpointIdentity(site_name, path))
    return EndpointStatusResponse(
        site_name=site_name,
        application_path=path,
        checked=record is not None,
        status=status_response(record),
    )


@router.get("/status/{site_name}/history", response_model=List[HistoryEntryResponse])
def get_status_history(
    site_name: str,
    path: str = Query(ROOT_PATH, description="Application path; '/' for the site root"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum entries to return"),
    store: StatusStore = Depends(get_store),
):
    with tracer.start_as_current_span("get_status_history"):
        entries = store.history(EndpointIdentity(site_name, path))
        return [history_response(entry) for entry in entries[:limit]]


@router.get("/status/{site_name}/summary", response_model=HealthSummaryResponse)
def get_status_summary(
    site_name: str,
    path: str = Query(ROOT_PATH, description="Application path; '/' for the site root"),
    store: StatusStore = Depends(get_store),
):
    with tracer.start_as_current_span("get_status_summary"):
        summary = store.summary(EndpointIdentity(site_name, path), datetime.now(timezone.utc))
        return HealthSummaryResponse(
            site_name=site_name,
            application_path=path,
            window_hours=store.summary_window_hours,
            uptime_percentage=summary.uptime_percentage,
            total_checks=summary.total_checks,
            successful_checks=summary.successful_checks,
            failed_checks=summary.failed_checks,
            average_response_time_ms=summary.average_response_time_ms,
            last_downtime=summary.last_downtime,
            recent_errors=[history_response(entry) for entry in summary.recent_errors],
        )
