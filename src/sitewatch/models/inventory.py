"""
Inventory types: the structural listing of sites, applications and pools.

Rebuilt from the platform on every read and treated as read-only input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

NO_MANAGED_CODE = "No Managed Code"
STATE_STARTED = "Started"


@dataclass(frozen=True)
class Binding:
    protocol: str
    binding_information: str    # "ip:port:host", host optional
    host: str = ""


@dataclass(frozen=True)
class Application:
    """A sub-application mounted under a site (never the site root)."""
    path: str
    site_name: str
    physical_path: str = "N/A"
    app_pool_name: str = "N/A"
    enabled_protocols: str = "http"


@dataclass(frozen=True)
class Site:
    id: int
    name: str
    state: str
    bindings: List[Binding] = field(default_factory=list)
    physical_path: str = "N/A"
    app_pool_name: str = "N/A"
    applications: List[Application] = field(default_factory=list)

    @property
    def is_started(self) -> bool:
        return self.state == STATE_STARTED


@dataclass(frozen=True)
class ProcessModel:
    identity_type: str = "ApplicationPoolIdentity"
    idle_timeout: timedelta = timedelta(minutes=20)
    max_processes: int = 1


@dataclass(frozen=True)
class Recycling:
    regular_time_interval: timedelta = timedelta(hours=29)
    private_memory: int = 0
    requests: int = 0


@dataclass(frozen=True)
class WorkerProcess:
    process_id: int
    state: str
    start_time: Optional[datetime] = None


@dataclass(frozen=True)
class AppPool:
    name: str
    state: str
    managed_runtime_version: str = NO_MANAGED_CODE
    managed_pipeline_mode: str = "Integrated"
    enable_32bit_app_on_win64: bool = False
    start_mode: str = "OnDemand"
    auto_start: bool = True
    process_model: ProcessModel = field(default_factory=ProcessModel)
    recycling: Recycling = field(default_factory=Recycling)
    worker_processes: List[WorkerProcess] = field(default_factory=list)

    @property
    def is_started(self) -> bool:
        return self.state == STATE_STARTED
