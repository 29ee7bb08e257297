"""
Uptime and latency summaries over a slice of check history.
"""

from datetime import datetime, timedelta
from typing import Iterable

from sitewatch.models.status import HealthSummary, HistoryEntry

DEFAULT_WINDOW_HOURS = 24
MAX_RECENT_ERRORS = 10


def summarize(
    history: Iterable[HistoryEntry],
    now: datetime,
    window_hours: int = DEFAULT_WINDOW_HOURS,
    max_recent_errors: int = MAX_RECENT_ERRORS,
) -> HealthSummary:
    """
    Summarize the entries of `history` that fall inside the trailing window.

    Pure: `now` is supplied by the caller and the input is not modified.
    History may be in any order; recent errors are reported newest first.

    Args:
        history: HistoryEntry values for one endpoint
        now: End of the window
        window_hours: Length of the trailing window
        max_recent_errors: How many failing entries to return

    Returns:
        HealthSummary (all zeros when no entry is inside the window)
    """
    cutoff = now - timedelta(hours=window_hours)
    window = [entry for entry in history if entry.timestamp >= cutoff]

    if not window:
        return HealthSummary()

    successes = [entry for entry in window if entry.is_responding]
    failures = sorted(
        (entry for entry in window if not entry.is_responding),
        key=lambda entry: entry.timestamp,
        reverse=True,
    )

    total = len(window)
    uptime = (len(successes) / total) * 100

    avg_latency = 0.0
    if successes:
        avg_latency = sum(entry.response_time_ms for entry in successes) / len(successes)

    return HealthSummary(
        uptime_percentage=round(uptime, 2),
        total_checks=total,
        successful_checks=len(successes),
        failed_checks=len(failures),
        average_response_time_ms=round(avg_latency, 2),
        last_downtime=failures[0].timestamp if failures else None,
        recent_errors=tuple(failures[:max_recent_errors]),
    )
