# src/sitewatch/services/inventory_provider.py

"""
Inventory providers.

The platform's management API is an external collaborator reached through
the InventoryProvider protocol. Every call re-reads live state; nothing is
cached here.

FileInventoryProvider reads the same structure from a YAML or JSON document
that is re-parsed on every call, which lets the monitor run against an
exported inventory or a test fixture.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from sitewatch.models.inventory import (
    NO_MANAGED_CODE,
    STATE_STARTED,
    AppPool,
    Application,
    Binding,
    ProcessModel,
    Recycling,
    Site,
    WorkerProcess,
)
from sitewatch.services.platform_files import PlatformReadError, load_document

logger = logging.getLogger(__name__)

_TIMESPAN_RE = re.compile(r"^(?:(\d+)\.)?(\d{1,2}):(\d{2}):(\d{2})$")


class InventoryError(PlatformReadError):
    """The platform inventory could not be read."""


class InventoryProvider(Protocol):
    def list_sites(self) -> List[Site]:
        ...

    def list_pools(self) -> List[AppPool]:
        ...


@dataclass(frozen=True)
class ApplicationListing:
    """A sub-application with the context needed to probe it."""
    application: Application
    site_state: str
    site_bindings: List[Binding] = field(default_factory=list)


def list_applications(provider: InventoryProvider) -> List[ApplicationListing]:
    """All sub-applications across all sites, with their site's bindings and state."""
    listings = []
    for site in provider.list_sites():
        for app in site.applications:
            listings.append(
                ApplicationListing(
                    application=app,
                    site_state=site.state,
                    site_bindings=list(site.bindings),
                )
            )
    return listings


def parse_timespan(value: Any) -> timedelta:
    """
    Accept seconds (int/float) or a "[d.]hh:mm:ss" string.

    Raises:
        ValueError: for anything else
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid timespan: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if isinstance(value, str):
        match = _TIMESPAN_RE.match(value.strip())
        if match:
            days, hours, minutes, seconds = match.groups()
            return timedelta(
                days=int(days or 0),
                hours=int(hours),
                minutes=int(minutes),
                seconds=int(seconds),
            )
    raise ValueError(f"Invalid timespan: {value!r}")


def format_timespan(value: timedelta) -> str:
    """Inverse of parse_timespan: "[d.]hh:mm:ss"."""
    total = int(value.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    hms = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{days}.{hms}" if days else hms


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _site_from_dict(raw: Dict[str, Any]) -> Site:
    name = raw["name"]
    bindings = [
        Binding(
            protocol=b.get("protocol", "http"),
            binding_information=str(b.get("binding_information", "")),
            host=b.get("host") or "",
        )
        for b in raw.get("bindings") or []
    ]
    site_pool = raw.get("app_pool") or "N/A"
    applications = [
        Application(
            path=a["path"],
            site_name=name,
            physical_path=a.get("physical_path") or "N/A",
            app_pool_name=a.get("app_pool") or site_pool,
            enabled_protocols=a.get("enabled_protocols") or "http",
        )
        for a in raw.get("applications") or []
        # The root application is the site itself
        if a.get("path") != "/"
    ]
    return Site(
        id=int(raw.get("id", 0)),
        name=name,
        state=raw.get("state", "Unknown"),
        bindings=bindings,
        physical_path=raw.get("physical_path") or "N/A",
        app_pool_name=site_pool,
        applications=applications,
    )


def _pool_from_dict(raw: Dict[str, Any]) -> AppPool:
    state = raw.get("state", "Unknown")
    pm = raw.get("process_model") or {}
    rc = raw.get("recycling") or {}

    process_model = ProcessModel(
        identity_type=pm.get("identity_type", "ApplicationPoolIdentity"),
        idle_timeout=parse_timespan(pm.get("idle_timeout", "00:20:00")),
        max_processes=int(pm.get("max_processes", 1)),
    )
    recycling = Recycling(
        regular_time_interval=parse_timespan(rc.get("regular_time_interval", "1.05:00:00")),
        private_memory=int(rc.get("private_memory", 0)),
        requests=int(rc.get("requests", 0)),
    )

    workers = []
    # Worker processes only exist for running pools
    if state == STATE_STARTED:
        workers = [
            WorkerProcess(
                process_id=int(wp["process_id"]),
                state=wp.get("state", "Running"),
                start_time=_parse_datetime(wp.get("start_time")),
            )
            for wp in raw.get("worker_processes") or []
        ]

    return AppPool(
        name=raw["name"],
        state=state,
        managed_runtime_version=raw.get("managed_runtime_version") or NO_MANAGED_CODE,
        managed_pipeline_mode=raw.get("managed_pipeline_mode", "Integrated"),
        enable_32bit_app_on_win64=bool(raw.get("enable_32bit_app_on_win64", False)),
        start_mode=raw.get("start_mode", "OnDemand"),
        auto_start=bool(raw.get("auto_start", True)),
        process_model=process_model,
        recycling=recycling,
        worker_processes=workers,
    )


class FileInventoryProvider:
    """InventoryProvider backed by a YAML/JSON document, re-read on every call."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def list_sites(self) -> List[Site]:
        document = load_document(self.path, InventoryError)
        try:
            return [_site_from_dict(raw) for raw in document.get("sites") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise InventoryError(f"Invalid site entry in {self.path}: {e}") from e

    def list_pools(self) -> List[AppPool]:
        document = load_document(self.path, InventoryError)
        try:
            return [_pool_from_dict(raw) for raw in document.get("app_pools") or []]
        except (KeyError, TypeError, ValueError) as e:
            raise InventoryError(f"Invalid app pool entry in {self.path}: {e}") from e
