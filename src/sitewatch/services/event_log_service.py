"""
Application event-log reporting.

Filters Error and Warning entries from web-serving related sources out of
the host's Application log, with a short-lived cache because reading the
log is slow.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from sitewatch.config import DEFAULT_EVENT_SOURCES
from sitewatch.services.platform_files import PlatformReadError, load_document

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500
MAX_EVENTS = 500
SUMMARY_RECENT_EVENTS = 20
CACHE_TTL = timedelta(minutes=5)

# Matched in addition to the configured sources
ALWAYS_MATCHED_SOURCES = ("w3wp", "ASP", ".NET")
REPORTED_TYPES = ("Error", "Warning")


@dataclass(frozen=True)
class RawEventEntry:
    source: str
    entry_type: str
    time_generated: datetime
    message: str = ""
    instance_id: int = 0
    category: str = ""


@dataclass(frozen=True)
class AppEvent:
    source: str
    event_type: str
    time_generated: datetime
    message: str
    instance_id: int
    category: str


@dataclass
class EventSummary:
    total_errors: int = 0
    total_warnings: int = 0
    errors_by_source: Dict[str, int] = field(default_factory=dict)
    warnings_by_source: Dict[str, int] = field(default_factory=dict)
    recent_events: List[AppEvent] = field(default_factory=list)


class EventLogReader(Protocol):
    def read_entries(self, since: datetime) -> List[RawEventEntry]:
        ...


def truncate_message(message: Optional[str], max_length: int = MAX_MESSAGE_LENGTH) -> str:
    if not message:
        return ""
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."


def _source_matches(source: str, sources: Sequence[str]) -> bool:
    lowered = source.lower()
    return any(s.lower() in lowered for s in list(sources) + list(ALWAYS_MATCHED_SOURCES))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventLogService:
    """Recent web-serving errors and warnings, cached for CACHE_TTL."""

    def __init__(
        self,
        reader: EventLogReader,
        sources: Optional[Sequence[str]] = None,
        clock: Callable[[], datetime] = _utcnow,
        cache_ttl: timedelta = CACHE_TTL,
    ):
        self.reader = reader
        self.sources = list(sources) if sources else list(DEFAULT_EVENT_SOURCES)
        self.clock = clock
        self.cache_ttl = cache_ttl
        # (read at, hours covered, matching entries)
        self._cache: Optional[Tuple[datetime, int, List[RawEventEntry]]] = None
        # Held across the refresh so concurrent misses read the log once
        self._cache_lock = threading.Lock()

    def _matching_entries(self, hours_back: int) -> List[RawEventEntry]:
        with self._cache_lock:
            now = self.clock()
            if self._cache is not None:
                read_at, hours_cached, entries = self._cache
                if now - read_at < self.cache_ttl and hours_back <= hours_cached:
                    return entries

            since = now - timedelta(hours=hours_back)
            entries = [
                entry
                for entry in self.reader.read_entries(since)
                if entry.time_generated >= since
                and entry.entry_type in REPORTED_TYPES
                and _source_matches(entry.source, self.sources)
            ]
            self._cache = (now, hours_back, entries)
            return entries

    def recent_events(self, hours_back: int = 24) -> List[AppEvent]:
        """
        Error/Warning events from matching sources, newest first.

        Read failures are logged and yield an empty list; the event log is
        a secondary panel and must not fail the dashboard.
        """
        try:
            entries = self._matching_entries(hours_back)
        except PlatformReadError as e:
            logger.error(f"Error reading event log: {e}")
            return []

        cutoff = self.clock() - timedelta(hours=hours_back)
        events = [
            AppEvent(
                source=entry.source,
                event_type=entry.entry_type,
                time_generated=entry.time_generated,
                message=truncate_message(entry.message),
                instance_id=entry.instance_id,
                category=entry.category,
            )
            for entry in entries
            if entry.time_generated >= cutoff
        ]
        events.sort(key=lambda e: e.time_generated, reverse=True)
        return events[:MAX_EVENTS]

    def summary(self, hours_back: int = 24) -> EventSummary:
        events = self.recent_events(hours_back)
        errors = [e for e in events if e.event_type == "Error"]
        warnings = [e for e in events if e.event_type == "Warning"]
        return EventSummary(
            total_errors=len(errors),
            total_warnings=len(warnings),
            errors_by_source=dict(Counter(e.source for e in errors)),
            warnings_by_source=dict(Counter(e.source for e in warnings)),
            recent_events=events[:SUMMARY_RECENT_EVENTS],
        )


class FileEventLogReader:
    """EventLogReader over an exported YAML/JSON listing of log entries."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read_entries(self, since: datetime) -> List[RawEventEntry]:
        document = load_document(self.path)
        entries = []
        try:
            for raw in document.get("events") or []:
                generated = raw["time_generated"]
                if not isinstance(generated, datetime):
                    generated = datetime.fromisoformat(str(generated))
                if generated.tzinfo is None:
                    generated = generated.replace(tzinfo=timezone.utc)
                if generated < since:
                    continue
                entries.append(
                    RawEventEntry(
                        source=raw.get("source", ""),
                        entry_type=raw.get("entry_type", "Information"),
                        time_generated=generated,
                        message=raw.get("message") or "",
                        instance_id=int(raw.get("instance_id", 0)),
                        category=raw.get("category") or "",
                    )
                )
        except (KeyError, TypeError, ValueError) as e:
            raise PlatformReadError(f"Invalid event entry in {self.path}: {e}") from e
        return entries
