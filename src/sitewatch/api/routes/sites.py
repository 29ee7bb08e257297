"""
API routes for sites and applications.

Inventory is read fresh on every request and merged with the latest polled
status of each endpoint.

Endpoints:
- GET /api/sites - All sites with their applications and status
- GET /api/sites/{site_name} - One site
- GET /api/applications - All sub-applications across sites
- GET /api/overview - Dashboard counts
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from pydantic import BaseModel

from sitewatch.api.dependencies import get_inventory, get_store
from sitewatch.api.routes.status import StatusResponse, status_response
from sitewatch.services.inventory_provider import InventoryError, InventoryProvider
from sitewatch.services.status_store import StatusStore
from sitewatch.services.view_assembler import (
    ApplicationView,
    SiteView,
    assemble_sites,
    dashboard_overview,
)

router = APIRouter(prefix="/api", tags=["sites"])
tracer = trace.get_tracer(__name__)


# Response Models

class BindingResponse(BaseModel):
    protocol: str
    binding_information: str
    host: str

    class Config:
        from_attributes = True


class ApplicationResponse(BaseModel):
    site_name: str
    path: str
    physical_path: str
    app_pool_name: str
    enabled_protocols: str
    url: Optional[str]
    status: Optional[StatusResponse]


class SiteResponse(BaseModel):
    id: int
    name: str
    state: str
    physical_path: str
    app_pool_name: str
    bindings: List[BindingResponse]
    url: Optional[str]
    status: Optional[StatusResponse]
    applications: List[ApplicationResponse]


class OverviewResponse(BaseModel):
    total_sites: int
    started_sites: int
    total_endpoints: int
    responding_endpoints: int
    down_endpoints: int
    never_checked_endpoints: int
    total_pools: int
    started_pools: int
    worker_processes: int

    class Config:
        from_attributes = True


def _application_response(view: ApplicationView) -> ApplicationResponse:
    app = view.application
    return ApplicationResponse(
        site_name=app.site_name,
        path=app.path,
        physical_path=app.physical_path,
        app_pool_name=app.app_pool_name,
        enabled_protocols=app.enabled_protocols,
        url=view.url,
        status=status_response(view.status),
    )


def _site_response(view: SiteView) -> SiteResponse:
    site = view.site
    return SiteResponse(
        id=site.id,
        name=site.name,
        state=site.state,
        physical_path=site.physical_path,
        app_pool_name=site.app_pool_name,
        bindings=[BindingResponse.model_validate(b) for b in site.bindings],
        url=view.url,
        status=status_response(view.status),
        applications=[_application_response(a) for a in view.applications],
    )


def _read_site_views(inventory: InventoryProvider, store: StatusStore) -> List[SiteView]:
    try:
        sites = inventory.list_sites()
    except InventoryError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Inventory unavailable: {e}",
        )
    return assemble_sites(sites, store)


# Endpoints

@router.get("/sites", response_model=List[SiteResponse])
def list_sites(
    inventory: InventoryProvider = Depends(get_inventory),
    store: StatusStore = Depends(get_store),
):
    with tracer.start_as_current_span("list_sites"):
        return [_site_response(view) for view in _read_site_views(inventory, store)]


@router.get("/sites/{site_name}", response_model=SiteResponse)
def get_site(
    site_name: str,
    inventory: InventoryProvider = Depends(get_inventory),
    store: StatusStore = Depends(get_store),
):
    with tracer.start_as_current_span("get_site"):
        for view in _read_site_views(inventory, store):
            if view.site.name == site_name:
                return _site_response(view)

        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Site not found",
        )


@router.get("/applications", response_model=List[ApplicationResponse])
def list_applications(
    inventory: InventoryProvider = Depends(get_inventory),
    store: StatusStore = Depends(get_store),
):
    with tracer.start_as_current_span("list_applications"):
        return [
            _application_response(app_view)
            for view in _read_site_views(inventory, store)
            for app_view in view.applications
        ]


@router.get("/overview", response_model=OverviewResponse)
def get_overview(
    inventory: InventoryProvider = Depends(get_inventory),
    store: StatusStore = Depends(get_store),
):
    """Counts for the dashboard header."""
    with tracer.start_as_current_span("get_overview"):
        views = _read_site_views(inventory, store)
        try:
            pools = inventory.list_pools()
        except InventoryError as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Inventory unavailable: {e}",
            )
        return OverviewResponse.model_validate(dashboard_overview(views, pools))
