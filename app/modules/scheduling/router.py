"""Scheduling API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.modules.identity.service import get_current_user
from app.modules.scheduling.schemas import (
    AvailabilityWindowCreate,
    AvailabilityWindowRead,
    AvailabilityWindowUpdate,
    AvailableSlotsRead,
    TimeBlockCreate,
    TimeBlockRead,
)
from app.modules.scheduling.service import SchedulingService, get_scheduling_service

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


@router.get("/tutors/{tutor_id}/windows", response_model=list[AvailabilityWindowRead])
async def list_windows(
    tutor_id: UUID,
    active_only: bool = Query(default=True),
    service: SchedulingService = Depends(get_scheduling_service),
) -> list[AvailabilityWindowRead]:
    """List weekly availability windows of tutor."""
    windows = await service.list_windows(tutor_id, active_only=active_only)
    return [AvailabilityWindowRead.model_validate(item) for item in windows]


@router.post("/windows", response_model=AvailabilityWindowRead, status_code=status.HTTP_201_CREATED)
async def create_window(
    payload: AvailabilityWindowCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> AvailabilityWindowRead:
    """Create weekly availability window."""
    window = await service.create_window(payload, current_user)
    return AvailabilityWindowRead.model_validate(window)


@router.patch("/windows/{window_id}", response_model=AvailabilityWindowRead)
async def update_window(
    window_id: UUID,
    payload: AvailabilityWindowUpdate,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> AvailabilityWindowRead:
    """Update window times or active flag."""
    window = await service.update_window(window_id, payload, current_user)
    return AvailabilityWindowRead.model_validate(window)


@router.delete("/windows/{window_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_window(
    window_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> None:
    """Delete weekly availability window."""
    await service.delete_window(window_id, current_user)


@router.get("/tutors/{tutor_id}/blocks", response_model=list[TimeBlockRead])
async def list_blocks(
    tutor_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> list[TimeBlockRead]:
    """List upcoming time blocks of tutor."""
    blocks = await service.list_blocks(tutor_id, current_user)
    return [TimeBlockRead.model_validate(item) for item in blocks]


@router.post("/blocks", response_model=TimeBlockRead, status_code=status.HTTP_201_CREATED)
async def create_block(
    payload: TimeBlockCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> TimeBlockRead:
    """Create one-off unavailable block."""
    block = await service.create_block(payload, current_user)
    return TimeBlockRead.model_validate(block)


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    block_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(get_current_user),
) -> None:
    """Delete time block."""
    await service.delete_block(block_id, current_user)


@router.get("/tutors/{tutor_id}/slots", response_model=AvailableSlotsRead)
async def list_tutor_slots(
    tutor_id: UUID,
    day: date = Query(...),
    duration_minutes: int | None = Query(default=None, ge=15, le=480),
    service: SchedulingService = Depends(get_scheduling_service),
) -> AvailableSlotsRead:
    """List bookable starts for tutor on a date."""
    return await service.list_tutor_slots(tutor_id, day, duration_minutes)
