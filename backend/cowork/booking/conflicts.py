"""Booking conflict checker.

Two independent rules guard a property's timeline:

* **overlap**: the candidate may not intersect a booking that has progressed
  past payment (``confirmed``, ``checked_in``, ``extended``). Unpaid
  ``pending_payment`` holds never block.
* **buffer**: bookings by *different* users need a gap of at least the
  mandatory buffer (30 minutes, or the property's ``buffer_hours`` when
  longer). A user may book back-to-back slots.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cowork.booking.errors import ConflictError
from cowork.config import settings
from cowork.models.booking import Booking

OVERLAP_BLOCKING_STATUSES = ("confirmed", "checked_in", "extended")
BUFFER_BLOCKING_STATUSES = ("confirmed", "checked_in", "completed", "checked_out", "extended")
ACTIVE_STATUSES = ("confirmed", "checked_in", "extended")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of a conflict check; ``rule`` is ``None`` when the slot is free."""

    rule: str | None = None
    booking_ids: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.rule is None


# ---------------------------------------------------------------------------
# Pure predicates
# ---------------------------------------------------------------------------


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def violates_buffer(
    existing_start: datetime,
    existing_end: datetime,
    candidate_start: datetime,
    candidate_end: datetime,
    buffer: timedelta,
) -> bool:
    """Existing booking ends within ``buffer`` before, or starts within ``buffer`` after, the candidate."""
    ends_just_before = candidate_start - buffer < existing_end <= candidate_start
    starts_just_after = candidate_end <= existing_start < candidate_end + buffer
    return ends_just_before or starts_just_after


def buffer_for(buffer_hours: float | None = None) -> timedelta:
    """Mandatory buffer, widened by a longer property-specific ``buffer_hours``."""
    mandatory = timedelta(minutes=settings.mandatory_buffer_minutes)
    if buffer_hours is None:
        return mandatory
    return max(mandatory, timedelta(hours=buffer_hours))


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def find_conflicting_bookings(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: datetime,
    check_out: datetime,
    exclude_booking_id: uuid.UUID | None = None,
) -> list[Booking]:
    """Return every blocking booking on the property that overlaps the window."""
    query = select(Booking).where(
        Booking.property_id == property_id,
        Booking.booking_status.in_(OVERLAP_BLOCKING_STATUSES),
        Booking.check_in_time < check_out,
        Booking.check_out_time > check_in,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    result = await db.execute(query.order_by(Booking.check_in_time))
    return list(result.scalars().all())


async def find_buffer_violations(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: datetime,
    check_out: datetime,
    user_id: uuid.UUID,
    buffer: timedelta,
    exclude_booking_id: uuid.UUID | None = None,
) -> list[Booking]:
    """Return other users' bookings that sit inside the buffer around the window."""
    query = select(Booking).where(
        Booking.property_id == property_id,
        Booking.user_id != user_id,
        Booking.booking_status.in_(BUFFER_BLOCKING_STATUSES),
        or_(
            and_(
                Booking.check_out_time > check_in - buffer,
                Booking.check_out_time <= check_in,
            ),
            and_(
                Booking.check_in_time >= check_out,
                Booking.check_in_time < check_out + buffer,
            ),
        ),
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def check_conflict(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: datetime,
    check_out: datetime,
    user_id: uuid.UUID,
    exclude_booking_id: uuid.UUID | None = None,
    buffer_hours: float | None = None,
) -> ConflictResult:
    """Run the overlap rule, then the buffer rule; report the first one violated."""
    clashing = await find_conflicting_bookings(db, property_id, check_in, check_out, exclude_booking_id)
    if clashing:
        return ConflictResult(rule="overlap", booking_ids=tuple(b.booking_id for b in clashing))

    too_close = await find_buffer_violations(
        db,
        property_id,
        check_in,
        check_out,
        user_id,
        buffer_for(buffer_hours),
        exclude_booking_id,
    )
    if too_close:
        return ConflictResult(rule="buffer", booking_ids=tuple(b.booking_id for b in too_close))

    return ConflictResult()


async def ensure_no_conflict(
    db: AsyncSession,
    property_id: uuid.UUID,
    check_in: datetime,
    check_out: datetime,
    user_id: uuid.UUID,
    exclude_booking_id: uuid.UUID | None = None,
    buffer_hours: float | None = None,
) -> None:
    """Raise ``ConflictError`` when ``check_conflict`` reports a violation."""
    result = await check_conflict(
        db, property_id, check_in, check_out, user_id, exclude_booking_id, buffer_hours
    )
    if result.ok:
        return

    logger.info(
        "Rejected window %s..%s on property %s: %s rule (%s)",
        check_in.isoformat(),
        check_out.isoformat(),
        property_id,
        result.rule,
        ", ".join(result.booking_ids),
    )
    if result.rule == "overlap":
        raise ConflictError(
            "overlap",
            "Property is already booked for the selected time slot",
            details={"conflicting_bookings": list(result.booking_ids)},
        )
    minutes = int(buffer_for(buffer_hours).total_seconds() // 60)
    raise ConflictError(
        "buffer",
        f"Minimum {minutes}-minute gap required between bookings by different users",
        details={"conflicting_bookings": list(result.booking_ids), "buffer_minutes": minutes},
    )


async def find_user_active_bookings(db: AsyncSession, user_id: uuid.UUID) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id, Booking.booking_status.in_(ACTIVE_STATUSES))
        .order_by(Booking.check_in_time.asc())
    )
    return list(result.scalars().all())


async def find_property_bookings_in_range(
    db: AsyncSession,
    property_id: uuid.UUID,
    start: datetime,
    end: datetime,
) -> list[Booking]:
    """Non-cancelled bookings that lie entirely inside ``[start, end]``."""
    result = await db.execute(
        select(Booking)
        .where(
            Booking.property_id == property_id,
            Booking.booking_status != "cancelled",
            Booking.check_in_time >= start,
            Booking.check_out_time <= end,
        )
        .order_by(Booking.check_in_time.asc())
    )
    return list(result.scalars().all())
