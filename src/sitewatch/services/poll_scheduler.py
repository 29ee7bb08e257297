# src/sitewatch/services/poll_scheduler.py

"""
Poll scheduler.

Once per interval: read fresh inventory, derive one endpoint per started
site plus one per sub-application, probe each, and record the outcomes in
the StatusStore. A failed inventory read skips that cycle only; the store
keeps whatever it already had.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple

from opentelemetry import trace

from sitewatch import metrics
from sitewatch.models.inventory import Binding, Site
from sitewatch.models.status import ROOT_PATH, CheckOutcome, EndpointIdentity
from sitewatch.services.health_checker import EndpointHealthChecker
from sitewatch.services.inventory_provider import InventoryProvider
from sitewatch.services.status_store import StatusStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_INTERVAL_SECONDS = 30
DEFAULT_MAX_CONCURRENT_CHECKS = 8

_DEFAULT_PORTS = {"http": "80", "https": "443"}


class SchedulerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class PollTarget(NamedTuple):
    identity: EndpointIdentity
    url: str


def build_url(binding: Binding) -> Optional[str]:
    """
    Build a probe URL from an "ip:port:host" binding.

    A blank host becomes "localhost"; default ports are left out.

    Returns:
        "{scheme}://{host}[:port]/" or None if the binding cannot be parsed
    """
    parts = binding.binding_information.split(":")
    if len(parts) < 2:
        return None

    port = parts[1].strip()
    if not port:
        return None

    host = parts[2].strip() if len(parts) > 2 and parts[2].strip() else "localhost"
    scheme = binding.protocol.lower()

    port_suffix = "" if _DEFAULT_PORTS.get(scheme) == port else f":{port}"
    return f"{scheme}://{host}{port_suffix}/"


def site_base_url(site: Site) -> Optional[str]:
    """
    URL of the first HTTP(S) binding, in inventory order, that yields one.

    Only one binding per site is probed even when several are configured.
    """
    for binding in site.bindings:
        if not binding.protocol.lower().startswith("http"):
            continue
        url = build_url(binding)
        if url:
            return url
        logger.debug(f"Unusable binding {binding.binding_information!r} on site {site.name}")
    return None


def derive_poll_targets(sites: Iterable[Site]) -> Tuple[List[PollTarget], List[str]]:
    """
    Endpoints to probe this cycle.

    Returns:
        (targets, names of started sites skipped for lack of a usable binding)
    """
    targets: List[PollTarget] = []
    skipped: List[str] = []

    for site in sites:
        if not site.is_started:
            continue

        base_url = site_base_url(site)
        if base_url is None:
            skipped.append(site.name)
            continue

        targets.append(PollTarget(EndpointIdentity(site.name, ROOT_PATH), base_url))

        trimmed = base_url.rstrip("/")
        for app in site.applications:
            targets.append(PollTarget(EndpointIdentity(site.name, app.path), f"{trimmed}{app.path}"))

    return targets, skipped


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PollScheduler:
    """
    Timer-driven driver: Idle -> Polling -> Sleeping -> Idle ... until stopped.

    Cycles never overlap. Within a cycle, checks run concurrently up to
    `max_concurrent_checks`; the StatusStore serializes writes per endpoint.
    """

    def __init__(
        self,
        inventory: InventoryProvider,
        checker: EndpointHealthChecker,
        store: StatusStore,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_concurrent_checks: int = DEFAULT_MAX_CONCURRENT_CHECKS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.inventory = inventory
        self.checker = checker
        self.store = store
        self.interval_seconds = interval_seconds
        self.max_concurrent_checks = max(1, max_concurrent_checks)
        self.clock = clock

        self.state = SchedulerState.IDLE
        self.cycles_completed = 0
        self.last_cycle_at: Optional[datetime] = None
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def run_cycle(self) -> dict:
        """
        Run a single poll cycle.

        Returns a dict with the cycle result:
        {
            "status": "success" | "error",
            "checked": int,
            "responding": int,
            "down": int,
            "skipped_sites": [str],
            "error": str | None
        }
        """
        with tracer.start_as_current_span("poll.cycle") as span:
            try:
                sites = await asyncio.to_thread(self.inventory.list_sites)
            except Exception as e:
                logger.exception("Inventory fetch failed, skipping this poll cycle")
                metrics.inventory_failures_total.inc()
                metrics.poll_cycles_total.labels(result="error").inc()
                span.set_attribute("poll.error", str(e))
                return {
                    "status": "error",
                    "checked": 0,
                    "responding": 0,
                    "down": 0,
                    "skipped_sites": [],
                    "error": str(e),
                }

            targets, skipped = derive_poll_targets(sites)
            span.set_attribute("poll.targets", len(targets))
            if skipped:
                logger.info(f"No usable HTTP binding for sites: {', '.join(skipped)}")

            semaphore = asyncio.Semaphore(self.max_concurrent_checks)
            outcomes = await asyncio.gather(
                *(self._check_and_record(target, semaphore) for target in targets),
                return_exceptions=True,
            )

            responding = 0
            down = 0
            for target, outcome in zip(targets, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    logger.error(f"Recording {target.identity} failed: {outcome!r}")
                    down += 1
                elif outcome.success:
                    responding += 1
                else:
                    down += 1

            self.cycles_completed += 1
            self.last_cycle_at = self.clock()
            metrics.poll_cycles_total.labels(result="success").inc()
            logger.info(
                f"Poll cycle complete: {len(targets)} endpoints, "
                f"{responding} responding, {down} down"
            )

            return {
                "status": "success",
                "checked": len(targets),
                "responding": responding,
                "down": down,
                "skipped_sites": skipped,
                "error": None,
            }

    async def _check_and_record(self, target: PollTarget, semaphore: asyncio.Semaphore) -> CheckOutcome:
        async with semaphore:
            try:
                outcome = await self.checker.check(target.url)
            except Exception as e:
                logger.error(f"Check of {target.identity} failed unexpectedly: {e!r}")
                outcome = CheckOutcome(success=False, error=str(e) or type(e).__name__)

        self.store.record(target.identity, outcome, self.clock())
        self._observe(target.identity, outcome)
        return outcome

    def _observe(self, identity: EndpointIdentity, outcome: CheckOutcome) -> None:
        labels = {"site": identity.site_name, "application_path": identity.application_path}
        metrics.endpoint_up.labels(**labels).set(1 if outcome.success else 0)
        if outcome.success:
            metrics.endpoint_response_time_seconds.labels(**labels).observe(outcome.latency_ms / 1000.0)
        metrics.endpoint_checks_total.labels(
            status="responding" if outcome.success else "down", **labels
        ).inc()

    async def run(self) -> None:
        """Poll until `stop()` is called."""
        logger.info(f"Poll scheduler starting (interval {self.interval_seconds}s)")

        try:
            while not self._stop_event.is_set():
                self.state = SchedulerState.POLLING
                try:
                    await self.run_cycle()
                except Exception:
                    logger.exception("Error in poll cycle")

                if self._stop_event.is_set():
                    break

                self.state = SchedulerState.SLEEPING
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
                self.state = SchedulerState.IDLE
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("Poll scheduler stopped")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._stop_event.clear()
            self._task = asyncio.create_task(self.run(), name="sitewatch-poll-scheduler")
        return self._task

    async def stop(self) -> None:
        """
        Signal the loop to exit and wait for it.

        A sleeping loop wakes at once. Otherwise the task is cancelled, so
        shutdown does not wait on outstanding probes and a loop that has not
        started yet never runs. Cancellation of the caller propagates.
        """
        self._stop_event.set()
        task = self._task
        if task is None:
            return
        if not task.done() and self.state != SchedulerState.SLEEPING:
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not task.cancelled() or (current is not None and current.cancelling()):
                raise
        self._task = None
        self.state = SchedulerState.STOPPED

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()
