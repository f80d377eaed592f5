"""Admin endpoints for the series/phase lifecycle."""

from decimal import Decimal
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Request, Security
from pydantic import BaseModel

from auth import get_current_admin
from lifecycle import (
    LifecycleController, LifecycleStatus, AdvanceResult, PauseResult,
    Phase, Series, LifecycleSettings
)

# Create router
router = APIRouter(
    prefix="/admin/lifecycle",
    tags=["Lifecycle"]
)

def get_controller(request: Request) -> LifecycleController:
    """The controller built at startup."""
    return request.app.state.controller

def acting_admin(request: Request, admin: Dict[str, Any]) -> Dict[str, Any]:
    """Admin claims plus the client address, for the audit log."""
    return {**admin, 'ip_address': request.client.host if request.client else None}

class AdvanceRequest(BaseModel):
    """Request model for advancing the lifecycle."""
    expected_version: Optional[int] = None

class PhaseDurationRequest(BaseModel):
    """Request model for setting a phase duration."""
    duration_days: Decimal
    series_number: Optional[int] = None

class SeriesGrowthRequest(BaseModel):
    """Request model for the legacy growth percent."""
    percent: Decimal

class SaleRequest(BaseModel):
    """Request model for recording a completed purchase."""
    amount: Decimal
    quantity: int = 1

@router.get("/status", response_model=LifecycleStatus)
async def get_status(
    controller: LifecycleController = Depends(get_controller),
    admin: Dict[str, Any] = Security(get_current_admin)
):
    """Current series and phase, remaining time and the full roster."""
    return await controller.status()

@router.post("/advance", response_model=AdvanceResult)
async def advance(
    request: Request,
    body: Optional[AdvanceRequest] = None,
    controller: LifecycleController = Depends(get_controller),
    admin: Dict[str, Any] = Security(get_current_admin)
):
    """Complete the active phase and activate the next one."""
    expected_version = body.expected_version if body else None
    return await controller.advance(expected_version, acting_admin(request, admin))

@router.post("/pause", response_model=PauseResult)
async def pause(
    request: Request,
    controller: LifecycleController = Depends(get_controller),
    admin: Dict[str, Any] = Security(get_current_admin)
):
    """Pause the active phase timer."""
    return await controller.pause(acting_admin(request, admin))

@router.post("/resume", response_model=PauseResult)
async def resume(
    request: Request,
    controller: LifecycleController = Depends(get_controller),
    admin: Dict[str, Any] = Security(get_current_admin)
):
    """Resume the active phase timer."""
    return await controller.resume(acting_admin(request, admin))

@router.put("/phases/{phase_number}/duration", response_model=Phase)
async def set_phase_duration(
    phase_number: int,
    body: PhaseDurationRequest,
    request: Request,
    controller: LifecycleController = Depends(get_controller),
    admin: Dict[str, Any] = Security(get_current_admin)
):
    """Set a phase duration in days. Defaults to the active series."""
    return await controller.set_phase_duration(
        phase_number,
        body.duration_days,
        body.series_number,
        acting_admin(request, admin)
    )

@router.put("/series-growth", response_model=LifecycleSettings)
async def set_series_growth(
    body: SeriesGrowthRequest,
    request: Request,
    controller: LifecycleController = Depends(get_controller),
    admin: Dict[str, Any] = Security(get_current_admin)
):
    """Set the legacy series growth percent."""
    return await controller.set_series_growth(body.percent, acting_admin(request, admin))

@router.post("/sales", response_model=Series)
async def record_sale(
    body: SaleRequest,
    controller: LifecycleController = Depends(get_controller),
    admin: Dict[str, Any] = Security(get_current_admin)
):
    """Count a completed purchase against the active series and phase."""
    return await controller.record_sale(body.amount, body.quantity)
