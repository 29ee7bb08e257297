"""
FastAPI dependencies resolving the collaborators owned by the app.

Everything lives on `app.state`, set up by `sitewatch.main.create_app`.
"""

from typing import Optional

from fastapi import HTTPException, Request, status

from sitewatch.config import Settings
from sitewatch.services.event_log_service import EventLogService
from sitewatch.services.inventory_provider import InventoryProvider
from sitewatch.services.poll_scheduler import PollScheduler
from sitewatch.services.scheduled_task_service import ScheduledTaskService
from sitewatch.services.status_store import StatusStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> StatusStore:
    return request.app.state.store


def get_inventory(request: Request) -> InventoryProvider:
    return request.app.state.inventory


def get_scheduler(request: Request) -> PollScheduler:
    return request.app.state.scheduler


def get_task_service(request: Request) -> ScheduledTaskService:
    service: Optional[ScheduledTaskService] = request.app.state.task_service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduled task reader is not configured",
        )
    return service


def get_event_service(request: Request) -> EventLogService:
    service: Optional[EventLogService] = request.app.state.event_service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Event log reader is not configured",
        )
    return service
