"""
Unit tests for the poll scheduler: URL building, endpoint derivation,
single cycles, and the timer loop's start/stop behavior.
"""
import asyncio
import pytest
from datetime import timedelta

from sitewatch.models.inventory import Binding
from sitewatch.models.status import CheckOutcome, EndpointIdentity
from sitewatch.services.poll_scheduler import (
    PollScheduler,
    PollTarget,
    SchedulerState,
    build_url,
    derive_poll_targets,
    site_base_url,
)
from tests.factories import T0, FakeInventory, make_site


class FakeChecker:
    """Returns canned outcomes per URL and tracks concurrency."""

    def __init__(self, outcomes=None, delay=0.0):
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def check(self, url):
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.outcomes.get(url, CheckOutcome(success=True, latency_ms=50, status_code=200))
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.in_flight -= 1

    async def aclose(self):
        pass


class FixedClock:
    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class TestBuildUrl:

    @pytest.mark.parametrize(
        "protocol, info, expected",
        [
            ("http", "*:80:", "http://localhost/"),
            ("https", "*:8443:internal.example", "https://internal.example:8443/"),
            ("http", "80", None),
            ("https", "*:443:secure.example", "https://secure.example/"),
            ("http", "10.0.0.5:8080:", "http://localhost:8080/"),
            ("http", "*:80:www.example.com", "http://www.example.com/"),
            ("https", "*:80:", "https://localhost:80/"),
            ("http", "*::", None),
            ("HTTP", "*:80:", "http://localhost/"),
        ],
    )
    def test_build_url(self, protocol, info, expected):
        assert build_url(Binding(protocol=protocol, binding_information=info)) == expected


class TestDerivePollTargets:

    def test_first_http_binding_wins(self):
        site = make_site("Shop", bindings=[
            Binding("net.tcp", "808:*"),
            Binding("https", "*:443:shop.example"),
            Binding("http", "*:80:shop.example"),
        ])

        assert site_base_url(site) == "https://shop.example/"

    def test_unusable_binding_falls_through_to_next(self):
        site = make_site("Shop", bindings=[
            Binding("http", "80"),
            Binding("http", "*:8080:"),
        ])

        assert site_base_url(site) == "http://localhost:8080/"

    def test_site_root_and_applications(self):
        site = make_site("Default Web Site", apps=["/api", "/admin/v2"],
                         bindings=[Binding("http", "*:8080:")])

        targets, skipped = derive_poll_targets([site])

        assert skipped == []
        assert targets == [
            PollTarget(EndpointIdentity("Default Web Site", "/"), "http://localhost:8080/"),
            PollTarget(EndpointIdentity("Default Web Site", "/api"), "http://localhost:8080/api"),
            PollTarget(EndpointIdentity("Default Web Site", "/admin/v2"), "http://localhost:8080/admin/v2"),
        ]

    def test_stopped_sites_are_skipped(self):
        sites = [make_site("Up"), make_site("Down", state="Stopped", apps=["/x"])]

        targets, skipped = derive_poll_targets(sites)

        assert [t.identity.site_name for t in targets] == ["Up"]
        assert skipped == []

    def test_started_site_without_http_binding_reported(self):
        site = make_site("Tcp", bindings=[Binding("net.tcp", "808:*")], apps=["/svc"])

        targets, skipped = derive_poll_targets([site])

        assert targets == []
        assert skipped == ["Tcp"]


@pytest.mark.anyio
class TestRunCycle:

    async def test_records_every_endpoint(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site", apps=["/api"])])
        checker = FakeChecker(outcomes={
            "http://localhost/api": CheckOutcome(False, 0, None, "request timed out"),
        })
        scheduler = PollScheduler(inventory, checker, store, clock=FixedClock())

        result = await scheduler.run_cycle()

        assert result["status"] == "success"
        assert result["checked"] == 2
        assert result["responding"] == 1
        assert result["down"] == 1

        root = store.latest(EndpointIdentity("Default Web Site", "/"))
        api = store.latest(EndpointIdentity("Default Web Site", "/api"))
        assert root.is_responding is True
        assert root.last_checked == T0
        assert api.is_responding is False
        assert api.error_message == "request timed out"
        assert scheduler.cycles_completed == 1

    async def test_stopped_site_status_left_untouched(self, store):
        identity = EndpointIdentity("Intranet", "/")
        store.record(identity, CheckOutcome(True, 10, 200), T0 - timedelta(hours=1))
        inventory = FakeInventory(sites=[make_site("Intranet", state="Stopped")])
        scheduler = PollScheduler(inventory, FakeChecker(), store, clock=FixedClock())

        await scheduler.run_cycle()

        assert store.latest(identity).last_checked == T0 - timedelta(hours=1)
        assert len(store.history(identity)) == 1

    async def test_inventory_failure_leaves_store_unchanged(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site", apps=["/api"])])
        clock = FixedClock()
        scheduler = PollScheduler(inventory, FakeChecker(), store, clock=clock)
        await scheduler.run_cycle()

        identities = store.identities()
        before = {i: (store.latest(i), store.history(i)) for i in identities}

        inventory.fail = True
        clock.advance(30)
        result = await scheduler.run_cycle()

        assert result["status"] == "error"
        assert "unreachable" in result["error"]
        assert {i: (store.latest(i), store.history(i)) for i in identities} == before

        # Next cycle proceeds normally
        inventory.fail = False
        clock.advance(30)
        result = await scheduler.run_cycle()

        assert result["status"] == "success"
        assert len(store.history(EndpointIdentity("Default Web Site", "/"))) == 2

    async def test_raising_check_recorded_as_down(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site", apps=["/api", "/admin"])])
        checker = FakeChecker(outcomes={"http://localhost/api": RuntimeError("boom")})
        scheduler = PollScheduler(inventory, checker, store, clock=FixedClock())

        result = await scheduler.run_cycle()

        assert result["down"] == 1
        assert result["responding"] == 2
        assert store.latest(EndpointIdentity("Default Web Site", "/admin")).is_responding is True
        api = store.latest(EndpointIdentity("Default Web Site", "/api"))
        assert api is not None
        assert api.is_responding is False
        assert api.error_message == "boom"
        assert len(store.history(EndpointIdentity("Default Web Site", "/api"))) == 1

    async def test_concurrent_checks_are_bounded(self, store):
        sites = [make_site(f"site{i}", site_id=i, bindings=[Binding("http", f"*:{8000 + i}:")])
                 for i in range(10)]
        checker = FakeChecker(delay=0.02)
        scheduler = PollScheduler(FakeInventory(sites=sites), checker, store, max_concurrent_checks=3)

        result = await scheduler.run_cycle()

        assert result["checked"] == 10
        assert 1 <= checker.max_in_flight <= 3
        assert len(store) == 10

    async def test_empty_inventory(self, store):
        scheduler = PollScheduler(FakeInventory(), FakeChecker(), store)

        result = await scheduler.run_cycle()

        assert result["status"] == "success"
        assert result["checked"] == 0
        assert len(store) == 0


@pytest.mark.anyio
class TestSchedulerLoop:

    async def test_stop_wakes_sleeping_loop(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site")])
        scheduler = PollScheduler(inventory, FakeChecker(), store, interval_seconds=60)

        scheduler.start()
        await wait_until(lambda: scheduler.state == SchedulerState.SLEEPING)
        assert scheduler.is_running

        await asyncio.wait_for(scheduler.stop(), timeout=1.0)

        assert scheduler.state == SchedulerState.STOPPED
        assert scheduler.cycles_completed == 1
        assert not scheduler.is_running

    async def test_stop_cancels_in_flight_cycle(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site")])
        checker = FakeChecker(delay=30)
        scheduler = PollScheduler(inventory, checker, store, interval_seconds=60)

        scheduler.start()
        await wait_until(lambda: checker.calls)

        await asyncio.wait_for(scheduler.stop(), timeout=1.0)

        assert scheduler.state == SchedulerState.STOPPED
        assert scheduler.cycles_completed == 0

    async def test_loop_survives_inventory_failure(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site")])
        inventory.fail = True
        scheduler = PollScheduler(inventory, FakeChecker(), store, interval_seconds=0.01)

        scheduler.start()
        await wait_until(lambda: inventory.site_calls >= 2)
        inventory.fail = False
        await wait_until(lambda: scheduler.cycles_completed >= 1)
        await scheduler.stop()

        assert store.latest(EndpointIdentity("Default Web Site", "/")) is not None

    async def test_repeated_cycles_append_history(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site")])
        scheduler = PollScheduler(inventory, FakeChecker(), store, interval_seconds=0.01)

        scheduler.start()
        await wait_until(lambda: scheduler.cycles_completed >= 3)
        await scheduler.stop()

        assert len(store.history(EndpointIdentity("Default Web Site", "/"))) >= 3

    async def test_stop_right_after_start(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site")])
        scheduler = PollScheduler(inventory, FakeChecker(), store, interval_seconds=0.05)

        scheduler.start()
        await asyncio.wait_for(scheduler.stop(), timeout=1.0)

        assert scheduler.state == SchedulerState.STOPPED
        assert not scheduler.is_running
        cycles = scheduler.cycles_completed
        await asyncio.sleep(0.2)
        assert scheduler.cycles_completed == cycles
        assert cycles <= 1

    async def test_restart_after_stop(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site")])
        scheduler = PollScheduler(inventory, FakeChecker(), store, interval_seconds=60)

        scheduler.start()
        await scheduler.stop()
        scheduler.start()
        await wait_until(lambda: scheduler.state == SchedulerState.SLEEPING)
        await asyncio.wait_for(scheduler.stop(), timeout=1.0)

        assert scheduler.state == SchedulerState.STOPPED
        assert scheduler.cycles_completed >= 1

    async def test_cancelled_stop_propagates(self, store):
        inventory = FakeInventory(sites=[make_site("Default Web Site")])
        checker = FakeChecker(delay=30)
        scheduler = PollScheduler(inventory, checker, store, interval_seconds=60)
        scheduler.start()
        await wait_until(lambda: checker.calls)

        stopper = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0)
        stopper.cancel()

        with pytest.raises(asyncio.CancelledError):
            await stopper
        await asyncio.wait_for(scheduler.stop(), timeout=1.0)
        assert scheduler.state == SchedulerState.STOPPED

    async def test_stop_without_start_is_noop(self, store):
        scheduler = PollScheduler(FakeInventory(), FakeChecker(), store)

        await scheduler.stop()

        assert scheduler.state == SchedulerState.IDLE
