"""Overtime and refund calculations.

Pure functions: every input, including "now", is passed in, so results are
deterministic and the cancellation flow can call them or let a caller override.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from cowork.config import settings
from cowork.schemas.property import PropertyPricing

CENT = Decimal("0.01")

# (minimum hours before check-in, share of the total refunded), highest first
REFUND_TIERS: tuple[tuple[int, Decimal], ...] = (
    (24, Decimal("0.80")),
    (12, Decimal("0.50")),
    (4, Decimal("0.25")),
)


@dataclass(frozen=True)
class OvertimeCharge:
    amount: Decimal
    hours: int
    within_grace: bool


NO_OVERTIME = OvertimeCharge(amount=Decimal("0"), hours=0, within_grace=True)


def money(value: Decimal | int | float) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def resolve_overtime_rate(pricing: PropertyPricing) -> Decimal:
    """Explicit overtime rate, else ``1.5 × hourly_rate`` (0 without an hourly rate)."""
    if pricing.overtime_hourly_rate:
        return pricing.overtime_hourly_rate
    return (pricing.hourly_rate or Decimal("0")) * settings.default_overtime_multiplier


def compute_overtime(
    planned_checkout: datetime,
    actual_checkout: datetime,
    grace_period_minutes: int,
    overtime_hourly_rate: Decimal,
    seats: int,
) -> OvertimeCharge:
    """Charge whole hours started after the grace period ends."""
    if actual_checkout <= planned_checkout:
        return NO_OVERTIME

    effective_start = planned_checkout + timedelta(minutes=grace_period_minutes)
    if actual_checkout <= effective_start:
        return NO_OVERTIME

    overtime_seconds = (actual_checkout - effective_start).total_seconds()
    hours = math.ceil(overtime_seconds / 3600)
    amount = money(Decimal(hours) * Decimal(overtime_hourly_rate) * seats)
    return OvertimeCharge(amount=amount, hours=hours, within_grace=False)


def refund_ratio(hours_until_check_in: float) -> Decimal:
    for min_hours, ratio in REFUND_TIERS:
        if hours_until_check_in >= min_hours:
            return ratio
    return Decimal("0")


def compute_refund(now: datetime, check_in_time: datetime, total_amount: Decimal) -> Decimal:
    """Refund owed when cancelling at ``now``, stepped on hours left before check-in."""
    hours_until = (check_in_time - now).total_seconds() / 3600
    return money(Decimal(total_amount) * refund_ratio(hours_until))
