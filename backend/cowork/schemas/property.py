"""Pydantic v2 schemas for the property configuration the booking engine reads."""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cowork.booking.timeslots import WEEKDAY_NAMES, normalize_hhmm

# ---------------------------------------------------------------------------
# Booking rules
# ---------------------------------------------------------------------------


class TimeSlot(BaseModel):
    """A weekly window during which the property accepts bookings."""

    day: str
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator("day")
    @classmethod
    def _check_day(cls, value: str) -> str:
        day = value.strip().lower()
        if day not in WEEKDAY_NAMES:
            raise ValueError(f"Invalid day: {value}. Must be one of: {', '.join(WEEKDAY_NAMES)}")
        return day

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return normalize_hhmm(value)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeSlot":
        if self.start_time >= self.end_time:
            raise ValueError(f"Start time must be before end time for {self.day}")
        return self


class BookingRules(BaseModel):
    """Operating rules stored in ``Property.booking_rules``."""

    min_booking_hours: float = Field(1, ge=0.25, le=24)
    max_booking_hours: float = Field(24, ge=1, le=1728)
    buffer_hours: float = Field(0.5, ge=0, le=4)
    allowed_time_slots: list[TimeSlot] = Field(default_factory=list)
    checkout_grace_period: int = Field(15, ge=0, le=60)  # minutes


class PropertyPricing(BaseModel):
    """Rates stored in ``Property.pricing``."""

    hourly_rate: Decimal | None = Field(None, gt=0)
    daily_rate: Decimal | None = Field(None, gt=0)
    weekly_rate: Decimal | None = Field(None, gt=0)
    monthly_rate: Decimal | None = Field(None, gt=0)
    cleaning_fee: Decimal = Field(Decimal("0"), ge=0)
    overtime_hourly_rate: Decimal | None = Field(None, gt=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PropertySummary(BaseModel):
    """Availability-relevant view of a property."""

    id: uuid.UUID
    name: str
    property_status: str
    seating_capacity: int
    timezone: str
    unavailable_dates: list[date] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
