from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_fastapi_instrumentator import Instrumentator

from sitewatch.api.routes.app_pools import router as app_pools_router
from sitewatch.api.routes.events import router as events_router
from sitewatch.api.routes.sites import router as sites_router
from sitewatch.api.routes.status import router as status_router
from sitewatch.api.routes.tasks import router as tasks_router
from sitewatch.config import Settings
from sitewatch.logging_config import configure_logging
from sitewatch.services.event_log_service import EventLogReader, EventLogService, FileEventLogReader
from sitewatch.services.health_checker import EndpointHealthChecker
from sitewatch.services.inventory_provider import FileInventoryProvider, InventoryProvider
from sitewatch.services.poll_scheduler import PollScheduler
from sitewatch.services.scheduled_task_service import (
    FileScheduledTaskReader,
    ScheduledTaskReader,
    ScheduledTaskService,
)
from sitewatch.services.status_store import StatusStore
from sitewatch.tracing import configure_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler: PollScheduler = app.state.scheduler
    if app.state.settings.polling_enabled:
        scheduler.start()
    else:
        logger.info("Polling disabled; serving inventory and stored state only")
    try:
        yield
    finally:
        await scheduler.stop()
        await app.state.checker.aclose()


def create_app(
    settings: Optional[Settings] = None,
    inventory: Optional[InventoryProvider] = None,
    checker: Optional[EndpointHealthChecker] = None,
    task_reader: Optional[ScheduledTaskReader] = None,
    event_reader: Optional[EventLogReader] = None,
) -> FastAPI:
    """
    Composition root.

    Builds the StatusStore, checker and scheduler once and hangs them on
    `app.state`; routes reach them through `sitewatch.api.dependencies`.
    """
    settings = settings or Settings.from_env()

    if inventory is None:
        inventory = FileInventoryProvider(settings.inventory_file)
    if task_reader is None and settings.tasks_file:
        task_reader = FileScheduledTaskReader(settings.tasks_file)
    if event_reader is None and settings.events_file:
        event_reader = FileEventLogReader(settings.events_file)

    store = StatusStore(
        max_history=settings.max_history,
        summary_window_hours=settings.summary_window_hours,
    )
    checker = checker or EndpointHealthChecker(
        timeout_seconds=settings.check_timeout_seconds,
        verify=settings.tls_verify,
    )
    scheduler = PollScheduler(
        inventory=inventory,
        checker=checker,
        store=store,
        interval_seconds=settings.refresh_interval_seconds,
        max_concurrent_checks=settings.max_concurrent_checks,
    )

    app = FastAPI(title="sitewatch", lifespan=lifespan)
    app.state.settings = settings
    app.state.inventory = inventory
    app.state.store = store
    app.state.checker = checker
    app.state.scheduler = scheduler
    app.state.task_service = ScheduledTaskService(task_reader) if task_reader else None
    app.state.event_service = (
        EventLogService(event_reader, sources=settings.event_sources) if event_reader else None
    )

    app.include_router(status_router)
    app.include_router(sites_router)
    app.include_router(app_pools_router)
    app.include_router(tasks_router)
    app.include_router(events_router)

    return app


# ------------------------------------------------------------------
# Configure Observability
# ------------------------------------------------------------------
configure_logging()
configure_tracing()

app = create_app()

FastAPIInstrumentor.instrument_app(app)
Instrumentator().instrument(app).expose(app)
