"""
View assembly: merge live inventory (structure) with the StatusStore (health).

Inventory is read fresh by the caller on every request; the store supplies
whatever the last poll recorded. A `status` of None means the endpoint has
never been checked, which is distinct from a record with
`is_responding=False`.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sitewatch.models.inventory import AppPool, Application, Site
from sitewatch.models.status import ROOT_PATH, EndpointIdentity, StatusRecord
from sitewatch.services.poll_scheduler import site_base_url
from sitewatch.services.status_store import StatusStore


@dataclass
class ApplicationView:
    application: Application
    url: Optional[str]
    status: Optional[StatusRecord]


@dataclass
class SiteView:
    site: Site
    url: Optional[str]
    status: Optional[StatusRecord]
    applications: List[ApplicationView] = field(default_factory=list)


@dataclass
class PoolView:
    pool: AppPool
    worker_process_count: int
    site_names: List[str] = field(default_factory=list)


@dataclass
class DashboardOverview:
    total_sites: int = 0
    started_sites: int = 0
    total_endpoints: int = 0
    responding_endpoints: int = 0
    down_endpoints: int = 0
    never_checked_endpoints: int = 0
    total_pools: int = 0
    started_pools: int = 0
    worker_processes: int = 0


def assemble_site(site: Site, store: StatusStore) -> SiteView:
    base_url = site_base_url(site)
    trimmed = base_url.rstrip("/") if base_url else None

    apps = [
        ApplicationView(
            application=app,
            url=f"{trimmed}{app.path}" if trimmed else None,
            status=store.latest(EndpointIdentity(site.name, app.path)),
        )
        for app in site.applications
    ]
    return SiteView(
        site=site,
        url=base_url,
        status=store.latest(EndpointIdentity(site.name, ROOT_PATH)),
        applications=apps,
    )


def assemble_sites(sites: Sequence[Site], store: StatusStore) -> List[SiteView]:
    return [assemble_site(site, store) for site in sites]


def assemble_pools(pools: Sequence[AppPool], sites: Sequence[Site] = ()) -> List[PoolView]:
    """Pool views with their worker counts and the sites whose root app uses them."""
    views = []
    for pool in pools:
        views.append(
            PoolView(
                pool=pool,
                worker_process_count=len(pool.worker_processes),
                site_names=[s.name for s in sites if s.app_pool_name == pool.name],
            )
        )
    return views


def dashboard_overview(
    site_views: Sequence[SiteView],
    pools: Sequence[AppPool],
) -> DashboardOverview:
    overview = DashboardOverview(
        total_sites=len(site_views),
        started_sites=sum(1 for v in site_views if v.site.is_started),
        total_pools=len(pools),
        started_pools=sum(1 for p in pools if p.is_started),
        worker_processes=sum(len(p.worker_processes) for p in pools),
    )

    for view in site_views:
        statuses = [view.status] + [app.status for app in view.applications]
        for status in statuses:
            overview.total_endpoints += 1
            if status is None:
                overview.never_checked_endpoints += 1
            elif status.is_responding:
                overview.responding_endpoints += 1
            else:
                overview.down_endpoints += 1

    return overview
