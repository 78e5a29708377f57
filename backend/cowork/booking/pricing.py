"""Price quotes for a candidate booking from the property's rate card."""

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from cowork.booking.charges import money
from cowork.booking.errors import ValidationError
from cowork.config import settings
from cowork.schemas.property import PropertyPricing

HOURS_PER_DAY = 24
HOURS_PER_WEEK = 24 * 7
HOURS_PER_MONTH = 24 * 30


@dataclass(frozen=True)
class Quote:
    base_amount: Decimal
    cleaning_fee: Decimal
    taxes: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    total_hours: Decimal


def _daily(p: PropertyPricing) -> Decimal:
    return p.daily_rate or (p.hourly_rate or Decimal("0")) * HOURS_PER_DAY


def _weekly(p: PropertyPricing) -> Decimal:
    return p.weekly_rate or _daily(p) * 7


def _monthly(p: PropertyPricing) -> Decimal:
    return p.monthly_rate or _weekly(p) * 4


def quote_booking(
    pricing: PropertyPricing,
    check_in: datetime,
    check_out: datetime,
    seats: int,
    booking_type: str = "hourly",
    discount_amount: Decimal = Decimal("0"),
) -> Quote:
    """Compute base, cleaning fee, tax and total for the window.

    Longer booking types bill whole periods, rounded up, and fall back to the
    next shorter rate when a longer one is not configured.
    """
    hours = (check_out - check_in).total_seconds() / 3600

    if booking_type == "hourly":
        base = (pricing.hourly_rate or Decimal("0")) * Decimal(str(hours))
    elif booking_type == "daily":
        base = _daily(pricing) * math.ceil(hours / HOURS_PER_DAY)
    elif booking_type == "weekly":
        base = _weekly(pricing) * math.ceil(hours / HOURS_PER_WEEK)
    elif booking_type == "monthly":
        base = _monthly(pricing) * math.ceil(hours / HOURS_PER_MONTH)
    else:
        raise ValidationError(f"Unknown booking type '{booking_type}'", code="invalid_booking_type")

    base = money(base * seats)
    cleaning_fee = money(pricing.cleaning_fee)
    taxes = money((base + cleaning_fee) * settings.tax_rate)
    discount = money(discount_amount)
    return Quote(
        base_amount=base,
        cleaning_fee=cleaning_fee,
        taxes=taxes,
        discount_amount=discount,
        total_amount=base + cleaning_fee + taxes - discount,
        total_hours=money(hours),
    )
