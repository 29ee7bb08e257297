"""
API routes for application event-log entries.

Endpoints:
- GET /api/events - Recent errors and warnings from web-serving sources
- GET /api/events/summary - Counts per type and source
"""

from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from sitewatch.api.dependencies import get_event_service
from sitewatch.services.event_log_service import EventLogService

router = APIRouter(prefix="/api/events", tags=["events"])


class EventResponse(BaseModel):
    source: str
    event_type: str
    time_generated: datetime
    message: str
    instance_id: int
    category: str

    class Config:
        from_attributes = True


class EventSummaryResponse(BaseModel):
    hours: int
    total_errors: int
    total_warnings: int
    errors_by_source: Dict[str, int]
    warnings_by_source: Dict[str, int]
    recent_events: List[EventResponse]


@router.get("", response_model=List[EventResponse])
def list_events(
    hours: int = Query(24, ge=1, le=24 * 30, description="Time window in hours"),
    service: EventLogService = Depends(get_event_service),
):
    return [EventResponse.model_validate(e) for e in service.recent_events(hours)]


@router.get("/summary", response_model=EventSummaryResponse)
def get_event_summary(
    hours: int = Query(24, ge=1, le=24 * 30, description="Time window in hours"),
    service: EventLogService = Depends(get_event_service),
):
    summary = service.summary(hours)
    return EventSummaryResponse(
        hours=hours,
        total_errors=summary.total_errors,
        total_warnings=summary.total_warnings,
        errors_by_source=summary.errors_by_source,
        warnings_by_source=summary.warnings_by_source,
        recent_events=[EventResponse.model_validate(e) for e in summary.recent_events],
    )
