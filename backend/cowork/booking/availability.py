"""Property availability policy.

Answers "is this time window bookable at all" from the property's own
configuration, independent of other bookings. Nothing here touches the
database.
"""

from datetime import date, datetime

from cowork.booking.errors import NotAvailableError, ValidationError
from cowork.booking.timeslots import split_by_local_day, weekday_name
from cowork.models.property import Property


def is_bookable(prop: Property, day: date, start_time: str, end_time: str) -> bool:
    """Return whether ``start_time..end_time`` on ``day`` fits the property's rules.

    ``start_time``/``end_time`` are zero-padded ``HH:MM`` strings in the
    property's local time. A property without configured slots imposes no
    time-window restriction.
    """
    if day.isoformat() in set(prop.unavailable_dates or []):
        return False
    if prop.property_status != "active":
        return False

    slots = prop.rules.allowed_time_slots
    if not slots:
        return True

    day_name = weekday_name(day)
    return any(
        slot.start_time <= start_time and end_time <= slot.end_time
        for slot in slots
        if slot.day == day_name and slot.is_available
    )


def is_interval_bookable(prop: Property, check_in: datetime, check_out: datetime) -> bool:
    """Check every local calendar day touched by ``[check_in, check_out)``."""
    return all(
        is_bookable(prop, window.day, window.start_time, window.end_time)
        for window in split_by_local_day(check_in, check_out, prop.timezone)
    )


def check_duration(prop: Property, check_in: datetime, check_out: datetime) -> None:
    """Raise ``ValidationError`` if the duration breaks the property's min/max hours."""
    rules = prop.rules
    hours = (check_out - check_in).total_seconds() / 3600
    if hours < rules.min_booking_hours or hours > rules.max_booking_hours:
        raise ValidationError(
            f"Booking must last between {rules.min_booking_hours:g} and {rules.max_booking_hours:g} hours",
            code="duration_out_of_range",
            details={
                "hours": round(hours, 2),
                "min_booking_hours": rules.min_booking_hours,
                "max_booking_hours": rules.max_booking_hours,
            },
        )


def check_availability(prop: Property, check_in: datetime, check_out: datetime) -> None:
    """Raise ``NotAvailableError`` naming the first rule the interval breaks."""
    if prop.property_status != "active":
        raise NotAvailableError(
            "property_inactive",
            "Property is not available for booking",
            details={"property_status": prop.property_status},
        )

    blocked = set(prop.unavailable_dates or [])
    for window in split_by_local_day(check_in, check_out, prop.timezone):
        if window.day.isoformat() in blocked:
            raise NotAvailableError(
                "date_unavailable",
                f"Property is closed on {window.day.isoformat()}",
                details={"date": window.day.isoformat()},
            )
        if not is_bookable(prop, window.day, window.start_time, window.end_time):
            raise NotAvailableError(
                "outside_allowed_slots",
                "Property is not available for the selected time slot",
                details={
                    "date": window.day.isoformat(),
                    "day": weekday_name(window.day),
                    "start_time": window.start_time,
                    "end_time": window.end_time,
                },
            )
