from sitewatch.models.status import (
    EndpointIdentity,
    CheckOutcome,
    StatusRecord,
    HistoryEntry,
    HealthSummary,
)
from sitewatch.models.inventory import (
    Binding,
    Application,
    Site,
    ProcessModel,
    Recycling,
    WorkerProcess,
    AppPool,
)

__all__ = [
    "EndpointIdentity",
    "CheckOutcome",
    "StatusRecord",
    "HistoryEntry",
    "HealthSummary",
    "Binding",
    "Application",
    "Site",
    "ProcessModel",
    "Recycling",
    "WorkerProcess",
    "AppPool",
]
