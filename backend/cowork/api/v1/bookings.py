"""Bookings API router.

Ownership rule: a booking is visible to the user who made it, the owner of the
booked property, and admins. Lifecycle actions that belong to the guest
(edit, check-in/out, cancel) are limited to the booking's user and admins,
and only that user may rate it. Recording payments (confirm, overtime
payment, prepaid or priced creates) is reserved for admins and the payment
service. Engine errors are rendered by the handler registered in
``cowork.main``.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cowork.api.deps import (
    Principal,
    get_clock,
    get_current_principal,
    get_db,
    require_admin,
    require_payment_recorder,
)
from cowork.booking.availability import check_availability, check_duration
from cowork.booking.charges import compute_refund
from cowork.booking.clock import Clock
from cowork.booking.conflicts import check_conflict, find_property_bookings_in_range, find_user_active_bookings
from cowork.booking.errors import BookingError, ValidationError
from cowork.booking.pricing import quote_booking
from cowork.booking.timeslots import to_local
from cowork.models.booking import Booking
from cowork.schemas.booking import (
    BOOKING_TYPE_PATTERN,
    AvailabilityResponse,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    CalendarEntry,
    CalendarResponse,
    CancelBookingRequest,
    CancelBookingResponse,
    CheckInRequest,
    CheckOutRequest,
    CheckOutResponse,
    ConfirmPaymentRequest,
    NoShowRequest,
    OvertimePaymentRequest,
    QuoteResponse,
    RatingCreate,
    RatingResponse,
    RefundQuoteRequest,
    RefundQuoteResponse,
)
from cowork.services import booking_service

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _authorize(booking: Booking, principal: Principal, *, allow_property_owner: bool = True) -> None:
    """Raise ``HTTPException 403`` unless the caller may act on ``booking``."""
    if principal.is_admin or booking.user_id == principal.user_id:
        return
    if allow_property_owner and booking.property_owner_id == principal.user_id:
        return
    logger.warning("User %s denied access to booking %s", principal.user_id, booking.booking_id)
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You are not authorized to access this booking",
    )


async def _get_authorized_booking(
    booking_id: uuid.UUID,
    principal: Principal,
    db: AsyncSession,
    *,
    allow_property_owner: bool = True,
) -> Booking:
    booking = await booking_service.get_booking(db, booking_id)
    _authorize(booking, principal, allow_property_owner=allow_property_owner)
    return booking


def _require_aware(**moments: datetime) -> None:
    for name, moment in moments.items():
        if moment.tzinfo is None:
            raise ValidationError(f"{name} must include a timezone offset", code="naive_datetime")


def _search_filters(
    booking_status: str | None,
    booking_type: str | None,
    check_in_from: datetime | None,
    check_in_to: datetime | None,
) -> list:
    """Optional list filters shared by the member and owner listings."""
    filters = []
    if booking_status is not None:
        filters.append(Booking.booking_status == booking_status)
    if booking_type is not None:
        filters.append(Booking.booking_type == booking_type)
    if check_in_from is not None:
        _require_aware(check_in_from=check_in_from)
        filters.append(Booking.check_in_time >= check_in_from)
    if check_in_to is not None:
        _require_aware(check_in_to=check_in_to)
        filters.append(Booking.check_in_time <= check_in_to)
    return filters


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new booking",
)
async def create_booking(
    body: BookingCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> Booking:
    """Book a property for the current user.

    Members always get a server-side quote and a ``pending_payment`` booking.
    Admins and the payment service may also supply amounts, a completed
    payment, and the ``user_id`` the booking is made for.
    """
    privileged = body.has_supplied_amounts or body.is_prepaid or body.user_id not in (None, principal.user_id)
    if privileged and not principal.can_record_payments:
        logger.warning("User %s tried to set prices or payment on a new booking", principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the payment service can set amounts, payment status or the booking user",
        )

    user_id = body.user_id or principal.user_id
    return await booking_service.create_booking(db, body, user_id, clock=clock)


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    summary="Check whether a time window can be booked",
)
async def get_availability(
    property_id: uuid.UUID = Query(..., description="Property to check"),
    check_in_time: datetime = Query(..., description="Requested start (ISO 8601 with offset)"),
    check_out_time: datetime = Query(..., description="Requested end (ISO 8601 with offset)"),
    number_of_seats: int = Query(1, ge=1),
    booking_type: str = Query("hourly", pattern=BOOKING_TYPE_PATTERN),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> AvailabilityResponse:
    """Report the first reason the window is not bookable, or a price quote when it is."""
    _require_aware(check_in_time=check_in_time, check_out_time=check_out_time)
    if check_out_time <= check_in_time:
        raise ValidationError("Check-out time must be after check-in time", code="invalid_interval")

    prop = await booking_service.get_property(db, property_id)
    try:
        check_duration(prop, check_in_time, check_out_time)
        check_availability(prop, check_in_time, check_out_time)
    except BookingError as exc:
        return AvailabilityResponse(is_available=False, conflicting_bookings=0, reason=exc.code)

    result = await check_conflict(
        db,
        prop.id,
        check_in_time,
        check_out_time,
        principal.user_id,
        buffer_hours=prop.rules.buffer_hours,
    )
    if not result.ok:
        return AvailabilityResponse(
            is_available=False,
            conflicting_bookings=len(result.booking_ids),
            reason=f"booking_conflict_{result.rule}",
        )

    quote = quote_booking(prop.rates, check_in_time, check_out_time, number_of_seats, booking_type)
    return AvailabilityResponse(
        is_available=True,
        conflicting_bookings=0,
        pricing=QuoteResponse.model_validate(quote),
    )


@router.get(
    "/me",
    response_model=BookingListResponse,
    summary="List the current user's bookings",
)
async def list_my_bookings(
    status_filter: str | None = Query(None, alias="status", description="Filter by booking status"),
    booking_type: str | None = Query(None, pattern=BOOKING_TYPE_PATTERN, description="Filter by booking type"),
    check_in_from: datetime | None = Query(None, description="Bookings with check-in at or after this time"),
    check_in_to: datetime | None = Query(None, description="Bookings with check-in at or before this time"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict:
    """Return a paginated list of the caller's bookings, latest check-in first."""
    filters = [Booking.user_id == principal.user_id]
    filters += _search_filters(status_filter, booking_type, check_in_from, check_in_to)
    items, total = await booking_service.list_bookings(db, filters, skip=skip, limit=limit)
    return {"items": items, "total": total}


@router.get(
    "/me/upcoming",
    response_model=BookingListResponse,
    summary="List the current user's upcoming bookings",
)
async def list_my_upcoming_bookings(
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Confirmed bookings that have not started yet, soonest first."""
    items, total = await booking_service.list_user_upcoming_bookings(
        db, principal.user_id, clock(), skip=skip, limit=limit
    )
    return {"items": items, "total": total}


@router.get(
    "/me/history",
    response_model=BookingListResponse,
    summary="List the current user's past bookings",
)
async def list_my_booking_history(
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(10, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict:
    """Completed, cancelled and no-show bookings, most recent checkout first."""
    items, total = await booking_service.list_user_booking_history(db, principal.user_id, skip=skip, limit=limit)
    return {"items": items, "total": total}


@router.get(
    "/me/active",
    response_model=BookingListResponse,
    summary="List the current user's active bookings",
)
async def list_my_active_bookings(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict:
    """Confirmed, checked-in and extended bookings, soonest first."""
    items = await find_user_active_bookings(db, principal.user_id)
    return {"items": items, "total": len(items)}


@router.get(
    "/owner",
    response_model=BookingListResponse,
    summary="List bookings on the current user's properties",
)
async def list_owner_bookings(
    property_id: uuid.UUID | None = Query(None, description="Filter by property"),
    status_filter: str | None = Query(None, alias="status", description="Filter by booking status"),
    booking_type: str | None = Query(None, pattern=BOOKING_TYPE_PATTERN, description="Filter by booking type"),
    check_in_from: datetime | None = Query(None, description="Bookings with check-in at or after this time"),
    check_in_to: datetime | None = Query(None, description="Bookings with check-in at or before this time"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict:
    """Return a paginated list of bookings made on properties the caller owns."""
    filters = [Booking.property_owner_id == principal.user_id]
    if property_id is not None:
        filters.append(Booking.property_id == property_id)
    filters += _search_filters(status_filter, booking_type, check_in_from, check_in_to)
    items, total = await booking_service.list_bookings(db, filters, skip=skip, limit=limit)
    return {"items": items, "total": total}


@router.get(
    "/properties/{property_id}/calendar",
    response_model=CalendarResponse,
    summary="Bookings on a property grouped by local date",
)
async def get_property_calendar(
    property_id: uuid.UUID,
    start_date: date = Query(..., description="First local date (inclusive)"),
    end_date: date = Query(..., description="Last local date (inclusive)"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> CalendarResponse:
    """Calendar view for the property owner. Cancelled bookings are left out."""
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date", code="invalid_range")

    prop = await booking_service.get_property(db, property_id)
    if prop.owner_id != principal.user_id and not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not authorized to view this calendar",
        )

    tz = ZoneInfo(prop.timezone)
    range_start = datetime.combine(start_date, time.min, tzinfo=tz)
    range_end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)
    bookings = await find_property_bookings_in_range(db, prop.id, range_start, range_end)

    calendar: dict[str, list[CalendarEntry]] = defaultdict(list)
    for booking in bookings:
        day = to_local(booking.check_in_time, prop.timezone).date().isoformat()
        calendar[day].append(
            CalendarEntry(
                booking_id=booking.booking_id,
                user_id=booking.user_id,
                check_in_time=booking.check_in_time,
                check_out_time=booking.check_out_time,
                status=booking.booking_status,
                number_of_seats=booking.number_of_seats,
                total_amount=booking.total_amount,
            )
        )

    return CalendarResponse(
        property_id=prop.id,
        start_date=start_date,
        end_date=end_date,
        calendar=dict(calendar),
        total_bookings=len(bookings),
    )


@router.post(
    "/refund-quote",
    response_model=RefundQuoteResponse,
    summary="Preview the cancellation refund for a booking amount",
)
async def refund_quote(
    body: RefundQuoteRequest,
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> RefundQuoteResponse:
    now = clock()
    hours = (body.check_in_time - now).total_seconds() / 3600
    return RefundQuoteResponse(
        refund_amount=compute_refund(now, body.check_in_time, body.total_amount),
        hours_until_check_in=round(hours, 2),
    )


# ---------------------------------------------------------------------------
# Single-booking endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking detail",
)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Booking:
    return await _get_authorized_booking(booking_id, principal, db)


@router.patch(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Modify a booking before check-in",
)
async def update_booking(
    booking_id: uuid.UUID,
    body: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> Booking:
    """Partially update a booking.

    Changing the window or seat count re-runs availability and conflict checks
    and re-prices the booking.
    """
    await _get_authorized_booking(booking_id, principal, db, allow_property_owner=False)
    return await booking_service.update_booking(db, booking_id, body, clock=clock)


@router.post(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    summary="Record payment and confirm a pending booking",
)
async def confirm_booking(
    booking_id: uuid.UUID,
    body: ConfirmPaymentRequest,
    db: AsyncSession = Depends(get_db),
    _recorder: Principal = Depends(require_payment_recorder),
    clock: Clock = Depends(get_clock),
) -> Booking:
    """Called by the payment service once the gateway has captured the payment."""
    return await booking_service.confirm_booking(
        db, booking_id, body.transaction_id, body.amount_paid, clock=clock
    )


@router.post(
    "/{booking_id}/check-in",
    response_model=BookingResponse,
    summary="Check in to a confirmed booking",
)
async def check_in(
    booking_id: uuid.UUID,
    body: CheckInRequest | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> Booking:
    await _get_authorized_booking(booking_id, principal, db, allow_property_owner=False)
    at = body.actual_check_in_time if body else None
    return await booking_service.check_in(db, booking_id, at, clock=clock)


@router.post(
    "/{booking_id}/check-out",
    response_model=CheckOutResponse,
    summary="Check out and compute overtime",
)
async def check_out(
    booking_id: uuid.UUID,
    body: CheckOutRequest | None = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> CheckOutResponse:
    """Overtime beyond the property's grace period moves the booking to ``extended``."""
    await _get_authorized_booking(booking_id, principal, db, allow_property_owner=False)
    at = body.actual_check_out_time if body else None
    result = await booking_service.check_out(db, booking_id, at, clock=clock)
    return CheckOutResponse(
        booking_id=result.booking.booking_id,
        status=result.new_status,
        overtime_amount=result.overtime_amount,
        overtime_hours=result.overtime_hours,
        needs_overtime_payment=result.overtime_amount > 0,
    )


@router.post(
    "/{booking_id}/overtime-payment",
    response_model=BookingResponse,
    summary="Settle pending overtime charges",
)
async def pay_overtime(
    booking_id: uuid.UUID,
    body: OvertimePaymentRequest,
    db: AsyncSession = Depends(get_db),
    _recorder: Principal = Depends(require_payment_recorder),
    clock: Clock = Depends(get_clock),
) -> Booking:
    """Called by the payment service once the overtime charge has been captured."""
    return await booking_service.settle_overtime(db, booking_id, body.transaction_id, clock=clock)


@router.post(
    "/{booking_id}/cancel",
    response_model=CancelBookingResponse,
    summary="Cancel a booking",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    body: CancelBookingRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> CancelBookingResponse:
    """Cancel before check-in. The refund follows the cancellation tiers unless an admin sets it."""
    await _get_authorized_booking(booking_id, principal, db, allow_property_owner=False)
    if body.refund_amount is not None and not principal.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can override the refund amount",
        )

    result = await booking_service.cancel_booking(
        db, booking_id, body.cancellation_reason, body.refund_amount, clock=clock
    )
    return CancelBookingResponse(
        booking_id=result.booking.booking_id,
        status=result.status,
        refund_amount=result.refund_amount,
        cancellation_reason=result.booking.cancellation_reason,
    )


@router.post(
    "/{booking_id}/no-show",
    response_model=BookingResponse,
    summary="Mark a booking as no-show (admin)",
)
async def mark_no_show(
    booking_id: uuid.UUID,
    body: NoShowRequest | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> Booking:
    notes = body.admin_notes if body else None
    return await booking_service.mark_no_show(db, booking_id, notes)


@router.post(
    "/{booking_id}/rating",
    response_model=RatingResponse,
    summary="Rate a completed booking",
)
async def add_rating(
    booking_id: uuid.UUID,
    body: RatingCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    clock: Clock = Depends(get_clock),
) -> RatingResponse:
    """Only the guest who made the booking may rate it, once, after completion."""
    booking = await booking_service.get_booking(db, booking_id)
    if booking.user_id != principal.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the booking user can add ratings",
        )

    booking = await booking_service.add_rating(db, booking_id, body, clock=clock)
    return RatingResponse(
        booking_id=booking.booking_id,
        overall=booking.rating_overall,
        cleanliness=booking.rating_cleanliness,
        amenities=booking.rating_amenities,
        location=booking.rating_location,
        value=booking.rating_value,
        review_text=booking.review_text,
        review_date=booking.review_date,
    )
