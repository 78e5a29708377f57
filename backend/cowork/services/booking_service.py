"""Booking service: lifecycle operations over a property's booking timeline.

Create and update run an explicit pipeline::

    validate_invariants -> check_availability -> check_conflict -> persist

Every stage is a plain function that raises a ``BookingError`` subclass, and the
whole pipeline runs inside the property's timeline lock up to and including
the commit, so a rejected check never leaves partial state behind.
"""

import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cowork.booking.availability import check_availability, check_duration
from cowork.booking.charges import compute_overtime, compute_refund, money, resolve_overtime_rate
from cowork.booking.clock import Clock, utc_now
from cowork.booking.conflicts import ensure_no_conflict
from cowork.booking.errors import InvalidTransitionError, NotFoundError, ValidationError
from cowork.booking.lifecycle import TERMINAL_STATUSES, checkout_status, refund_payment_status, require_transition
from cowork.booking.locks import PropertyLockRegistry, property_timeline_lock, registry
from cowork.booking.pricing import Quote, quote_booking
from cowork.config import settings
from cowork.models.booking import Booking
from cowork.models.property import Property
from cowork.schemas.booking import BookingCreate, BookingUpdate, RatingCreate

AMOUNT_TOLERANCE = Decimal("0.01")
MIN_TOTAL_HOURS = 0.25

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    booking: Booking
    overtime_amount: Decimal
    overtime_hours: int
    new_status: str


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    status: str
    refund_amount: Decimal


# ---------------------------------------------------------------------------
# Units of work
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _transaction(db: AsyncSession) -> AsyncIterator[None]:
    """Commit on success, roll back and re-raise on any error."""
    try:
        yield
        await db.commit()
    except Exception:
        await db.rollback()
        raise


@asynccontextmanager
async def _timeline_transaction(
    db: AsyncSession,
    property_id: uuid.UUID,
    locks: PropertyLockRegistry,
) -> AsyncIterator[Property]:
    """Like ``_transaction`` but holds the property timeline lock until after commit."""
    try:
        async with property_timeline_lock(db, property_id, locks) as prop:
            yield prop
            await db.commit()
    except Exception:
        await db.rollback()
        raise


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_property(db: AsyncSession, property_id: uuid.UUID) -> Property:
    result = await db.execute(select(Property).where(Property.id == property_id))
    prop = result.scalar_one_or_none()
    if prop is None:
        raise NotFoundError("property", property_id)
    return prop


async def get_booking(db: AsyncSession, booking_id: uuid.UUID, *, for_update: bool = False) -> Booking:
    """Fetch a booking by internal id, always reloading its current row state."""
    query = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("booking", booking_id)
    return booking


async def get_booking_by_reference(db: AsyncSession, booking_ref: str) -> Booking:
    """Fetch a booking by its human-readable ``BK...`` id."""
    result = await db.execute(select(Booking).where(Booking.booking_id == booking_ref))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("booking", booking_ref)
    return booking


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


def resolve_amounts(data: BookingCreate, prop: Property) -> Quote:
    """Use the amounts supplied by the caller, or quote them from the property's pricing."""
    supplied = (data.base_amount, data.cleaning_fee, data.taxes, data.total_amount)
    if all(value is None for value in supplied):
        return quote_booking(
            prop.rates,
            data.check_in_time,
            data.check_out_time,
            data.number_of_seats,
            data.booking_type,
            data.discount_amount,
        )

    if data.base_amount is None or data.total_amount is None:
        raise ValidationError(
            "base_amount and total_amount are required when amounts are supplied",
            code="missing_amounts",
        )
    hours = (data.check_out_time - data.check_in_time).total_seconds() / 3600
    return Quote(
        base_amount=data.base_amount,
        cleaning_fee=data.cleaning_fee or Decimal("0"),
        taxes=data.taxes or Decimal("0"),
        discount_amount=data.discount_amount,
        total_amount=data.total_amount,
        total_hours=money(max(hours, 0)),
    )


def validate_invariants(
    check_in: datetime,
    check_out: datetime,
    amounts: Quote,
    payment_status: str = "pending",
    amount_paid: Decimal = Decimal("0"),
) -> None:
    """Structural checks on a booking's interval and money, before any lookup."""
    if check_in.tzinfo is None or check_out.tzinfo is None:
        raise ValidationError("Check-in and check-out times must include a timezone", code="naive_datetime")
    if check_out <= check_in:
        raise ValidationError(
            "Check-out time must be after check-in time",
            code="invalid_interval",
            details={"check_in_time": check_in.isoformat(), "check_out_time": check_out.isoformat()},
        )
    hours = (check_out - check_in).total_seconds() / 3600
    if hours < MIN_TOTAL_HOURS:
        raise ValidationError(
            "Bookings must last at least 15 minutes",
            code="duration_too_short",
            details={"total_hours": round(hours, 4)},
        )

    expected = amounts.base_amount + amounts.cleaning_fee + amounts.taxes - amounts.discount_amount
    if abs(amounts.total_amount - expected) > AMOUNT_TOLERANCE:
        raise ValidationError(
            "Total amount calculation is incorrect",
            code="amount_mismatch",
            details={"total_amount": str(amounts.total_amount), "expected_total": str(expected)},
        )
    if amounts.total_amount < 0:
        raise ValidationError("Total amount cannot be negative", code="negative_total")

    if payment_status == "completed" and abs(amount_paid - amounts.total_amount) > AMOUNT_TOLERANCE:
        raise ValidationError(
            "Payment amount must match total booking amount",
            code="payment_mismatch",
            details={"amount_paid": str(amount_paid), "total_amount": str(amounts.total_amount)},
        )


def _check_seats(prop: Property, seats: int) -> None:
    if seats > prop.seating_capacity:
        raise ValidationError(
            "Number of seats cannot exceed property's seating capacity",
            code="seats_exceed_capacity",
            details={"number_of_seats": seats, "seating_capacity": prop.seating_capacity},
        )


# ---------------------------------------------------------------------------
# Lifecycle operations
# ---------------------------------------------------------------------------


async def create_booking(
    db: AsyncSession,
    data: BookingCreate,
    user_id: uuid.UUID,
    *,
    clock: Clock = utc_now,
    locks: PropertyLockRegistry = registry,
) -> Booking:
    """Validate and persist a new booking.

    The booking starts as ``pending_payment`` unless the request already carries
    a completed payment (e.g. a wallet debit), in which case it is ``confirmed``
    and holds the slot immediately.
    """
    now = clock()
    payment = data.payment

    async with _timeline_transaction(db, data.property_id, locks) as prop:
        amounts = resolve_amounts(data, prop)
        validate_invariants(
            data.check_in_time, data.check_out_time, amounts, payment.payment_status, payment.amount_paid
        )
        if data.check_in_time <= now:
            raise ValidationError("Check-in time must be in the future", code="check_in_in_past")
        _check_seats(prop, data.number_of_seats)
        check_duration(prop, data.check_in_time, data.check_out_time)

        check_availability(prop, data.check_in_time, data.check_out_time)
        await ensure_no_conflict(
            db,
            prop.id,
            data.check_in_time,
            data.check_out_time,
            user_id,
            buffer_hours=prop.rules.buffer_hours,
        )

        paid = payment.payment_status == "completed"
        booking = Booking(
            property_id=prop.id,
            property_owner_id=prop.owner_id,
            user_id=user_id,
            booking_date=now,
            check_in_time=data.check_in_time,
            check_out_time=data.check_out_time,
            number_of_seats=data.number_of_seats,
            booking_type=data.booking_type,
            total_hours=amounts.total_hours,
            guest_count=data.guest_count,
            special_requests=data.special_requests,
            base_amount=amounts.base_amount,
            cleaning_fee=amounts.cleaning_fee,
            taxes=amounts.taxes,
            discount_amount=amounts.discount_amount,
            total_amount=amounts.total_amount,
            payment_method=payment.payment_method,
            payment_status=payment.payment_status,
            amount_paid=payment.amount_paid,
            currency=settings.currency,
            transaction_id=payment.transaction_id,
            wallet_id=payment.wallet_id,
            payment_date=now if paid else None,
            booking_status="confirmed" if paid else "pending_payment",
            refund_amount=Decimal("0"),
        )
        db.add(booking)
        await db.flush()

    await db.refresh(booking)
    logger.info(
        "Created booking %s on property %s for user %s (%s)",
        booking.booking_id,
        booking.property_id,
        user_id,
        booking.booking_status,
    )
    return booking


async def confirm_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    transaction_id: str,
    amount_paid: Decimal,
    *,
    clock: Clock = utc_now,
    locks: PropertyLockRegistry = registry,
) -> Booking:
    """Record the captured payment and move ``pending_payment`` to ``confirmed``.

    Pending holds never block each other, so the slot is re-checked here under
    the timeline lock: of several overlapping holds only the first paid one wins.
    """
    property_id = (await get_booking(db, booking_id)).property_id

    async with _timeline_transaction(db, property_id, locks) as prop:
        booking = await get_booking(db, booking_id, for_update=True)
        require_transition(booking.booking_status, "confirm")
        if abs(amount_paid - booking.total_amount) > AMOUNT_TOLERANCE:
            raise ValidationError(
                "Payment amount must match total booking amount",
                code="payment_mismatch",
                details={"amount_paid": str(amount_paid), "total_amount": str(booking.total_amount)},
            )
        await ensure_no_conflict(
            db,
            prop.id,
            booking.check_in_time,
            booking.check_out_time,
            booking.user_id,
            exclude_booking_id=booking.id,
            buffer_hours=prop.rules.buffer_hours,
        )

        booking.payment_status = "completed"
        booking.amount_paid = amount_paid
        booking.transaction_id = transaction_id
        booking.payment_date = clock()
        booking.booking_status = "confirmed"
        await db.flush()

    await db.refresh(booking)
    logger.info("Confirmed booking %s (transaction %s)", booking.booking_id, transaction_id)
    return booking


async def update_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    data: BookingUpdate,
    *,
    clock: Clock = utc_now,
    locks: PropertyLockRegistry = registry,
) -> Booking:
    """Modify a booking that has not started yet, re-running every timeline check."""
    property_id = (await get_booking(db, booking_id)).property_id
    changes = data.model_dump(exclude_unset=True)

    async with _timeline_transaction(db, property_id, locks) as prop:
        booking = await get_booking(db, booking_id, for_update=True)
        require_transition(booking.booking_status, "update")

        now = clock()
        if booking.check_in_time - now < timedelta(hours=settings.modification_cutoff_hours):
            raise ValidationError(
                f"Bookings cannot be modified within {settings.modification_cutoff_hours} hours of check-in time",
                code="modification_window_closed",
            )

        check_in = changes.get("check_in_time") or booking.check_in_time
        check_out = changes.get("check_out_time") or booking.check_out_time
        seats = changes.get("number_of_seats") or booking.number_of_seats
        window_changed = check_in != booking.check_in_time or check_out != booking.check_out_time

        if window_changed or seats != booking.number_of_seats:
            amounts = quote_booking(
                prop.rates, check_in, check_out, seats, booking.booking_type, booking.discount_amount
            )
            validate_invariants(check_in, check_out, amounts, booking.payment_status, booking.amount_paid)
            if window_changed and check_in <= now:
                raise ValidationError("Check-in time must be in the future", code="check_in_in_past")
            _check_seats(prop, seats)
            check_duration(prop, check_in, check_out)
            check_availability(prop, check_in, check_out)
            await ensure_no_conflict(
                db,
                prop.id,
                check_in,
                check_out,
                booking.user_id,
                exclude_booking_id=booking.id,
                buffer_hours=prop.rules.buffer_hours,
            )

            booking.check_in_time = check_in
            booking.check_out_time = check_out
            booking.number_of_seats = seats
            booking.base_amount = amounts.base_amount
            booking.cleaning_fee = amounts.cleaning_fee
            booking.taxes = amounts.taxes
            booking.total_amount = amounts.total_amount
            booking.total_hours = amounts.total_hours

        if "guest_count" in changes and changes["guest_count"] is not None:
            booking.guest_count = changes["guest_count"]
        if "special_requests" in changes:
            booking.special_requests = changes["special_requests"]
        await db.flush()

    await db.refresh(booking)
    logger.info("Updated booking %s", booking.booking_id)
    return booking


async def check_in(
    db: AsyncSession,
    booking_id: uuid.UUID,
    at: datetime | None = None,
    *,
    clock: Clock = utc_now,
) -> Booking:
    """Move a confirmed booking to ``checked_in``.

    Check-in opens ``settings.checkin_early_minutes`` before the planned start.
    """
    async with _transaction(db):
        booking = await get_booking(db, booking_id, for_update=True)
        require_transition(booking.booking_status, "check_in")

        now = clock()
        opens_at = booking.check_in_time - timedelta(minutes=settings.checkin_early_minutes)
        if now < opens_at:
            raise ValidationError(
                f"Check-in is not yet available. Please wait until {settings.checkin_early_minutes} "
                "minutes before your scheduled time.",
                code="check_in_too_early",
                details={"opens_at": opens_at.isoformat()},
            )

        booking.actual_check_in_time = at or now
        booking.booking_status = "checked_in"
        await db.flush()

    await db.refresh(booking)
    logger.info("Checked in booking %s at %s", booking.booking_id, booking.actual_check_in_time.isoformat())
    return booking


async def check_out(
    db: AsyncSession,
    booking_id: uuid.UUID,
    at: datetime | None = None,
    *,
    clock: Clock = utc_now,
) -> CheckoutResult:
    """Record the actual checkout and charge overtime past the grace period.

    Repeating a checkout with the same time returns the stored outcome without
    changing the booking.
    """
    async with _transaction(db):
        booking = await get_booking(db, booking_id, for_update=True)
        actual = at or clock()

        if (
            booking.booking_status in ("completed", "extended")
            and booking.actual_check_out_time == actual
        ):
            return CheckoutResult(
                booking=booking,
                overtime_amount=booking.overtime_amount or Decimal("0"),
                overtime_hours=booking.overtime_hours or 0,
                new_status=booking.booking_status,
            )

        require_transition(booking.booking_status, "check_out")
        if booking.actual_check_in_time and actual < booking.actual_check_in_time:
            raise ValidationError(
                "Check-out time cannot be before the actual check-in time",
                code="check_out_before_check_in",
            )

        prop = await get_property(db, booking.property_id)
        charge = compute_overtime(
            booking.check_out_time,
            actual,
            prop.rules.checkout_grace_period,
            resolve_overtime_rate(prop.rates),
            booking.number_of_seats,
        )

        booking.actual_check_out_time = actual
        booking.booking_status = checkout_status(charge.amount)
        if charge.amount > 0:
            booking.is_extended = True
            booking.overtime_hours = charge.hours
            booking.overtime_amount = charge.amount
            booking.overtime_payment_status = "pending"
            booking.overtime_within_grace = charge.within_grace
        else:
            booking.is_extended = False
            booking.overtime_hours = None
            booking.overtime_amount = None
            booking.overtime_payment_status = None
            booking.overtime_within_grace = None
        await db.flush()

    await db.refresh(booking)
    logger.info(
        "Checked out booking %s: %s, overtime %s",
        booking.booking_id,
        booking.booking_status,
        charge.amount,
    )
    return CheckoutResult(
        booking=booking,
        overtime_amount=charge.amount,
        overtime_hours=charge.hours,
        new_status=booking.booking_status,
    )


async def settle_overtime(
    db: AsyncSession,
    booking_id: uuid.UUID,
    transaction_id: str,
    *,
    clock: Clock = utc_now,
) -> Booking:
    """Mark pending overtime as paid and complete the booking."""
    async with _transaction(db):
        booking = await get_booking(db, booking_id, for_update=True)
        require_transition(booking.booking_status, "settle_overtime")
        if not booking.has_pending_overtime():
            raise InvalidTransitionError(
                booking.booking_status,
                "settle_overtime",
                "No pending overtime charges for this booking",
            )

        booking.overtime_payment_status = "completed"
        booking.overtime_transaction_id = transaction_id
        booking.overtime_payment_date = clock()
        booking.booking_status = "completed"
        await db.flush()

    await db.refresh(booking)
    logger.info("Settled overtime %s for booking %s", booking.overtime_amount, booking.booking_id)
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    reason: str,
    refund_amount: Decimal | None = None,
    *,
    clock: Clock = utc_now,
) -> CancellationResult:
    """Cancel a booking that has not been checked in.

    Without an explicit ``refund_amount`` the cancellation policy tiers apply.
    An explicit amount may not exceed the booking total.
    """
    if not reason or not reason.strip():
        raise ValidationError("Cancellation reason is required", code="missing_reason")

    async with _transaction(db):
        booking = await get_booking(db, booking_id, for_update=True)
        require_transition(booking.booking_status, "cancel")

        now = clock()
        if refund_amount is None:
            refund = compute_refund(now, booking.check_in_time, booking.total_amount)
        else:
            refund = money(refund_amount)
            if refund < 0 or refund > booking.total_amount:
                raise ValidationError(
                    "Refund amount must be between 0 and the booking total",
                    code="refund_out_of_range",
                    details={"refund_amount": str(refund), "total_amount": str(booking.total_amount)},
                )

        booking.booking_status = "cancelled"
        booking.cancellation_reason = reason.strip()
        booking.cancellation_date = now
        booking.refund_amount = refund
        new_payment_status = refund_payment_status(refund, booking.total_amount)
        if new_payment_status is not None:
            booking.payment_status = new_payment_status
            booking.refund_date = now
        await db.flush()

    await db.refresh(booking)
    logger.info("Cancelled booking %s, refund %s", booking.booking_id, refund)
    return CancellationResult(booking=booking, status=booking.booking_status, refund_amount=refund)


async def mark_no_show(
    db: AsyncSession,
    booking_id: uuid.UUID,
    admin_notes: str | None = None,
) -> Booking:
    """Administrative transition to ``no_show``."""
    async with _transaction(db):
        booking = await get_booking(db, booking_id, for_update=True)
        require_transition(booking.booking_status, "mark_no_show")
        booking.booking_status = "no_show"
        if admin_notes:
            booking.admin_notes = admin_notes
        await db.flush()

    await db.refresh(booking)
    logger.warning("Booking %s marked as no-show", booking.booking_id)
    return booking


async def add_rating(
    db: AsyncSession,
    booking_id: uuid.UUID,
    data: RatingCreate,
    *,
    clock: Clock = utc_now,
) -> Booking:
    """Attach the guest's rating to a completed booking. A booking is rated once."""
    async with _transaction(db):
        booking = await get_booking(db, booking_id, for_update=True)
        if booking.booking_status != "completed":
            raise InvalidTransitionError(booking.booking_status, "rate", "Only completed bookings can be rated")
        if booking.is_rated():
            raise InvalidTransitionError(booking.booking_status, "rate", "Rating already exists for this booking")

        booking.rating_overall = data.overall
        booking.rating_cleanliness = data.cleanliness
        booking.rating_amenities = data.amenities
        booking.rating_location = data.location
        booking.rating_value = data.value
        booking.review_text = data.review_text
        booking.review_date = clock()
        await db.flush()

    await db.refresh(booking)
    logger.info("Booking %s rated %s/5", booking.booking_id, booking.rating_overall)
    return booking


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def list_bookings(
    db: AsyncSession,
    filters: Sequence[ColumnElement[bool]],
    *,
    order_by: Sequence[ColumnElement] = (Booking.check_in_time.desc(),),
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Booking], int]:
    """Return one page of bookings matching ``filters`` and the total match count."""
    count_query = select(func.count()).select_from(Booking).where(*filters)
    total = (await db.execute(count_query)).scalar_one()

    items_query = select(Booking).where(*filters).order_by(*order_by).offset(skip).limit(limit)
    result = await db.execute(items_query)
    return list(result.scalars().all()), total


async def list_user_upcoming_bookings(
    db: AsyncSession,
    user_id: uuid.UUID,
    now: datetime,
    *,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Booking], int]:
    """Confirmed bookings that have not started yet, soonest first."""
    return await list_bookings(
        db,
        [Booking.user_id == user_id, Booking.booking_status == "confirmed", Booking.check_in_time > now],
        order_by=(Booking.check_in_time.asc(),),
        skip=skip,
        limit=limit,
    )


async def list_user_booking_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    skip: int = 0,
    limit: int = 10,
) -> tuple[list[Booking], int]:
    """Completed, cancelled and no-show bookings, most recent checkout first."""
    return await list_bookings(
        db,
        [Booking.user_id == user_id, Booking.booking_status.in_(sorted(TERMINAL_STATUSES))],
        order_by=(Booking.check_out_time.desc(),),
        skip=skip,
        limit=limit,
    )
