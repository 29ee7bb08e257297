"""
API routes for application pools.

Endpoints:
- GET /api/app-pools - Pools with worker processes and the sites using them
- GET /api/app-pools/drift - Settings that differ from the baseline pool
"""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from opentelemetry import trace
from pydantic import BaseModel

from sitewatch.api.dependencies import get_inventory
from sitewatch.services.config_drift import BaselinePolicy, compare_pools
from sitewatch.services.inventory_provider import (
    InventoryError,
    InventoryProvider,
    format_timespan,
)
from sitewatch.services.view_assembler import PoolView, assemble_pools

router = APIRouter(prefix="/api/app-pools", tags=["app-pools"])
tracer = trace.get_tracer(__name__)


# Response Models

class WorkerProcessResponse(BaseModel):
    process_id: int
    state: str
    start_time: Optional[datetime]

    class Config:
        from_attributes = True


class AppPoolResponse(BaseModel):
    name: str
    state: str
    managed_runtime_version: str
    managed_pipeline_mode: str
    enable_32bit_app_on_win64: bool
    start_mode: str
    auto_start: bool
    identity_type: str
    idle_timeout: str
    max_processes: int
    recycling_interval: str
    recycling_private_memory: int
    recycling_requests: int
    worker_processes: List[WorkerProcessResponse]
    worker_process_count: int
    site_names: List[str]


class ConfigDifferenceResponse(BaseModel):
    setting: str
    base_value: str
    current_value: str

    class Config:
        from_attributes = True


class DriftResponse(BaseModel):
    baseline: Optional[str]
    policy: str
    differences: Dict[str, List[ConfigDifferenceResponse]]


def _pool_response(view: PoolView) -> AppPoolResponse:
    pool = view.pool
    return AppPoolResponse(
        name=pool.name,
        state=pool.state,
        managed_runtime_version=pool.managed_runtime_version,
        managed_pipeline_mode=pool.managed_pipeline_mode,
        enable_32bit_app_on_win64=pool.enable_32bit_app_on_win64,
        start_mode=pool.start_mode,
        auto_start=pool.auto_start,
        identity_type=pool.process_model.identity_type,
        idle_timeout=format_timespan(pool.process_model.idle_timeout),
        max_processes=pool.process_model.max_processes,
        recycling_interval=format_timespan(pool.recycling.regular_time_interval),
        recycling_private_memory=pool.recycling.private_memory,
        recycling_requests=pool.recycling.requests,
        worker_processes=[WorkerProcessResponse.model_validate(wp) for wp in pool.worker_processes],
        worker_process_count=view.worker_process_count,
        site_names=view.site_names,
    )


def _unavailable(e: InventoryError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Inventory unavailable: {e}",
    )


# Endpoints

@router.get("", response_model=List[AppPoolResponse])
def list_app_pools(inventory: InventoryProvider = Depends(get_inventory)):
    with tracer.start_as_current_span("list_app_pools"):
        try:
            pools = inventory.list_pools()
            sites = inventory.list_sites()
        except InventoryError as e:
            raise _unavailable(e)
        return [_pool_response(view) for view in assemble_pools(pools, sites)]


@router.get("/drift", response_model=DriftResponse)
def get_config_drift(
    baseline: Optional[str] = Query(None, description="Pool to compare against; overrides policy"),
    policy: BaselinePolicy = Query(BaselinePolicy.MOST_COMMON, description="How to pick the baseline"),
    inventory: InventoryProvider = Depends(get_inventory),
):
    with tracer.start_as_current_span("get_config_drift") as span:
        try:
            pools = inventory.list_pools()
        except InventoryError as e:
            raise _unavailable(e)

        try:
            base_name, differences = compare_pools(pools, baseline=baseline, policy=policy)
        except KeyError:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Baseline pool not found: {baseline}",
            )

        span.set_attribute("drift.pools_differing", len(differences))
        return DriftResponse(
            baseline=base_name,
            policy="explicit" if baseline else BaselinePolicy(policy).value,
            differences={
                name: [ConfigDifferenceResponse.model_validate(d) for d in diffs]
                for name, diffs in differences.items()
            },
        )
