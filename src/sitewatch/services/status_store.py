# src/sitewatch/services/status_store.py

"""
In-memory store of endpoint health.

Holds, per EndpointIdentity, the latest StatusRecord and a bounded history
ring of HistoryEntry values. One instance is created by the application's
composition root and shared by the poll scheduler (writer) and the API
routes (readers).

Concurrency:
- Each identity has its own lock. Writes to different identities never
  contend; the registry lock is only held to look up or create a slot.
- Writes to the same identity are serialized by that identity's lock.
  History keeps arrival order. The latest record is replaced unless the
  incoming timestamp is older than the one already stored
  (last-timestamp-wins).
- `latest()` takes no lock; it may return a record that an in-flight
  `record()` is about to supersede.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Deque, Dict, List, Optional

from sitewatch.models.status import (
    CheckOutcome,
    EndpointIdentity,
    HealthSummary,
    HistoryEntry,
    StatusRecord,
)
from sitewatch.services.health_summarizer import summarize

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 100


class _Slot:
    """Per-identity state. Only touched while holding `lock`, except reads of `latest`."""

    __slots__ = ("lock", "latest", "history")

    def __init__(self, max_history: int):
        self.lock = threading.Lock()
        self.latest: Optional[StatusRecord] = None
        self.history: Deque[HistoryEntry] = deque(maxlen=max_history)


class StatusStore:
    """Latest status plus bounded history for every checked endpoint."""

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY, summary_window_hours: int = 24):
        if max_history <= 0:
            raise ValueError("max_history must be positive")
        self.max_history = max_history
        self.summary_window_hours = summary_window_hours
        self._slots: Dict[EndpointIdentity, _Slot] = {}
        self._registry_lock = threading.Lock()

    def _slot_for_write(self, identity: EndpointIdentity) -> _Slot:
        slot = self._slots.get(identity)
        if slot is not None:
            return slot
        with self._registry_lock:
            slot = self._slots.get(identity)
            if slot is None:
                slot = _Slot(self.max_history)
                self._slots[identity] = slot
                logger.debug(f"Tracking new endpoint {identity}")
            return slot

    def record(
        self,
        identity: EndpointIdentity,
        outcome: CheckOutcome,
        timestamp: datetime,
    ) -> StatusRecord:
        """
        Store `outcome` as the latest status and append it to history.

        Append and eviction of the oldest entry happen in the same critical
        section as the status overwrite, so readers never see one without
        the other.

        Returns:
            The StatusRecord built from the outcome.
        """
        status = StatusRecord.from_outcome(outcome, timestamp)
        entry = HistoryEntry.from_record(status)
        slot = self._slot_for_write(identity)

        with slot.lock:
            slot.history.append(entry)
            if slot.latest is None or status.last_checked >= slot.latest.last_checked:
                slot.latest = status

        return status

    def latest(self, identity: EndpointIdentity) -> Optional[StatusRecord]:
        """Latest StatusRecord, or None if the endpoint was never checked."""
        slot = self._slots.get(identity)
        if slot is None:
            return None
        return slot.latest

    def history(self, identity: EndpointIdentity) -> List[HistoryEntry]:
        """Snapshot of the history ring, newest first."""
        slot = self._slots.get(identity)
        if slot is None:
            return []
        with slot.lock:
            entries = list(slot.history)
        entries.reverse()
        return entries

    def summary(self, identity: EndpointIdentity, now: datetime) -> HealthSummary:
        """Health summary over the store's configured trailing window."""
        return summarize(self.history(identity), now, window_hours=self.summary_window_hours)

    def identities(self) -> List[EndpointIdentity]:
        with self._registry_lock:
            return list(self._slots.keys())

    def __contains__(self, identity: EndpointIdentity) -> bool:
        return identity in self._slots

    def __len__(self) -> int:
        return len(self._slots)
