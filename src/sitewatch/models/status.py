"""
Health-state types: what a single check produced and what is retained.

EndpointIdentity is derived from inventory on every poll and never stored on
its own; StatusRecord and HistoryEntry are owned by the StatusStore.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple, Optional, Tuple

ROOT_PATH = "/"


class EndpointIdentity(NamedTuple):
    """(site, application path) naming one checkable endpoint."""
    site_name: str
    application_path: str = ROOT_PATH

    @property
    def is_site_root(self) -> bool:
        return self.application_path == ROOT_PATH

    def __str__(self) -> str:
        return f"{self.site_name}:{self.application_path}"


@dataclass(frozen=True)
class CheckOutcome:
    """Result of one HTTP probe."""
    success: bool
    latency_ms: int = 0
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class StatusRecord:
    """Latest known outcome for one identity."""
    is_responding: bool
    response_time_ms: int
    http_status_code: Optional[int]
    error_message: Optional[str]
    last_checked: datetime

    @classmethod
    def from_outcome(cls, outcome: CheckOutcome, timestamp: datetime) -> "StatusRecord":
        return cls(
            is_responding=outcome.success,
            response_time_ms=max(0, int(outcome.latency_ms)),
            http_status_code=outcome.status_code,
            error_message=outcome.error,
            last_checked=timestamp,
        )


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable snapshot of one check, kept in the per-identity history ring."""
    timestamp: datetime
    is_responding: bool
    response_time_ms: int
    http_status_code: Optional[int] = None
    error_message: Optional[str] = None

    @classmethod
    def from_record(cls, record: StatusRecord) -> "HistoryEntry":
        return cls(
            timestamp=record.last_checked,
            is_responding=record.is_responding,
            response_time_ms=record.response_time_ms,
            http_status_code=record.http_status_code,
            error_message=record.error_message,
        )


@dataclass(frozen=True)
class HealthSummary:
    """Uptime and latency figures over a trailing window of history."""
    uptime_percentage: float = 0.0
    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    average_response_time_ms: float = 0.0
    last_downtime: Optional[datetime] = None
    recent_errors: Tuple[HistoryEntry, ...] = field(default_factory=tuple)
