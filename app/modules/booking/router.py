"""Booking API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import RoleEnum
from app.modules.booking.schemas import (
    AvailabilitySnapshotRead,
    BatchBookingRead,
    BookingOutcomeRead,
    BookingPreviewRead,
    BookingRequest,
    RecurringSessionsCreate,
    ScheduleRequest,
    SessionCancelRequest,
    SessionCreate,
    TutoringSessionRead,
)
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.service import get_current_user, require_roles
from app.modules.scheduling.schemas import AvailableSlotsRead
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/booking", tags=["booking"])

require_booker = require_roles(RoleEnum.PARENT, RoleEnum.ADMIN)


@router.get("/subscriptions/{subscription_id}/availability", response_model=AvailabilitySnapshotRead)
async def get_subscription_availability(
    subscription_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> AvailabilitySnapshotRead:
    """Return tutor windows, booked intervals and blocks for a subscription."""
    return await service.get_availability(subscription_id, current_user)


@router.get("/subscriptions/{subscription_id}/slots", response_model=AvailableSlotsRead)
async def list_subscription_slots(
    subscription_id: UUID,
    day: date = Query(...),
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> AvailableSlotsRead:
    """List bookable starts on a date for the subscription's course length."""
    return await service.list_available_slots(subscription_id, day, current_user)


@router.post("/preview", response_model=BookingPreviewRead)
async def preview_booking(
    payload: BookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(require_booker),
) -> BookingPreviewRead:
    """Plan occurrences and report conflicts without booking."""
    return await service.preview(payload, current_user)


@router.post("/schedule", response_model=BookingOutcomeRead)
async def schedule_booking(
    payload: ScheduleRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(require_booker),
) -> BookingOutcomeRead:
    """Run the booking flow for a single or recurring request."""
    return await service.schedule(payload, current_user)


@router.post("/sessions", response_model=TutoringSessionRead, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(require_booker),
) -> TutoringSessionRead:
    """Book one session at an exact instant."""
    tutoring_session = await service.book_single(payload, current_user)
    return TutoringSessionRead.model_validate(tutoring_session)


@router.post("/sessions/recurring", response_model=BatchBookingRead, status_code=status.HTTP_201_CREATED)
async def create_recurring_sessions(
    payload: RecurringSessionsCreate,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(require_booker),
) -> BatchBookingRead:
    """Book planned occurrences; each one succeeds or fails on its own."""
    result = await service.book_recurring(payload, current_user)
    return BatchBookingRead.model_validate(result)


@router.post("/sessions/{session_id}/cancel", response_model=TutoringSessionRead)
async def cancel_session(
    session_id: UUID,
    payload: SessionCancelRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> TutoringSessionRead:
    """Cancel a scheduled session."""
    tutoring_session = await service.cancel_session(session_id, payload, current_user)
    return TutoringSessionRead.model_validate(tutoring_session)


@router.get("/sessions/my", response_model=Page[TutoringSessionRead])
async def list_my_sessions(
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> Page[TutoringSessionRead]:
    """List sessions for current user."""
    items, total = await service.list_sessions(current_user, pagination.limit, pagination.offset)
    serialized = [TutoringSessionRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
