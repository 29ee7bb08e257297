# src/sitewatch/config.py

"""
Runtime settings for sitewatch.

Values come from environment variables (optionally loaded from a `.env`
file by the entry points). Every knob has a default so the service starts
with no configuration at all.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_EVENT_SOURCES = ["ASP.NET", ".NET Runtime", "Application Error", "IIS-W3SVC-WP"]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Configuration consumed by the polling engine and the API."""

    refresh_interval_seconds: int = 30
    check_timeout_seconds: int = 10
    max_history: int = 100
    summary_window_hours: int = 24
    max_concurrent_checks: int = 8
    verify_tls: bool = True
    ca_bundle: Optional[str] = None
    inventory_file: str = "inventory.yaml"
    tasks_file: Optional[str] = None
    events_file: Optional[str] = None
    event_sources: List[str] = field(default_factory=lambda: list(DEFAULT_EVENT_SOURCES))
    polling_enabled: bool = True

    @property
    def tls_verify(self):
        """Value passed to httpx as `verify`: CA bundle path or a bool."""
        if self.verify_tls and self.ca_bundle:
            return self.ca_bundle
        return self.verify_tls

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            refresh_interval_seconds=_env_int("SITEWATCH_REFRESH_INTERVAL_SECONDS", 30),
            check_timeout_seconds=_env_int("SITEWATCH_CHECK_TIMEOUT_SECONDS", 10),
            max_history=_env_int("SITEWATCH_MAX_HISTORY", 100),
            summary_window_hours=_env_int("SITEWATCH_SUMMARY_WINDOW_HOURS", 24),
            max_concurrent_checks=_env_int("SITEWATCH_MAX_CONCURRENT_CHECKS", 8),
            verify_tls=_env_bool("SITEWATCH_VERIFY_TLS", True),
            ca_bundle=os.getenv("SITEWATCH_CA_BUNDLE") or None,
            inventory_file=os.getenv("SITEWATCH_INVENTORY_FILE", "inventory.yaml"),
            tasks_file=os.getenv("SITEWATCH_TASKS_FILE") or None,
            events_file=os.getenv("SITEWATCH_EVENTS_FILE") or None,
            event_sources=_env_list("SITEWATCH_EVENT_SOURCES", DEFAULT_EVENT_SOURCES),
            polling_enabled=_env_bool("SITEWATCH_POLLING_ENABLED", True),
        )
