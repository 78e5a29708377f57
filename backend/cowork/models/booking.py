"""Booking model: time-sliced reservations of a coworking property."""

import secrets
import time
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cowork.database import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin

BOOKING_STATUSES = (
    "pending_payment",
    "confirmed",
    "checked_in",
    "checked_out",
    "completed",
    "cancelled",
    "no_show",
    "extended",
)
BOOKING_TYPES = ("hourly", "daily", "weekly", "monthly")
PAYMENT_METHODS = ("wallet", "card", "upi", "netbanking", "cash")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded", "partially_refunded")
OVERTIME_PAYMENT_STATUSES = ("pending", "completed", "failed")


def generate_booking_id() -> str:
    """Human-readable id: ``BK`` + epoch millis + 8 random hex chars."""
    return f"BK{int(time.time() * 1000)}{secrets.token_hex(4)}"


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A reservation of a property by a user for a planned time window."""

    __tablename__ = "bookings"

    booking_id: Mapped[str] = mapped_column(
        String(40), unique=True, nullable=False, default=generate_booking_id
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    property_owner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)

    # Time window
    booking_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    check_in_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    check_out_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    actual_check_in_time: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    actual_check_out_time: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    number_of_seats: Mapped[int] = mapped_column(Integer, default=1)
    booking_type: Mapped[str] = mapped_column(String(20), default="hourly")  # hourly, daily, weekly, monthly
    total_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    guest_count: Mapped[int] = mapped_column(Integer, default=1)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Pricing
    base_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cleaning_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    taxes: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Payment
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(30), default="pending")
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    transaction_id: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    wallet_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    payment_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    refund_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    booking_status: Mapped[str] = mapped_column(
        String(30),
        default="pending_payment",
        index=True,
    )

    # Overtime, populated only when charged
    is_extended: Mapped[bool] = mapped_column(Boolean, default=False)
    overtime_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overtime_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    overtime_payment_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    overtime_within_grace: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    overtime_transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    overtime_payment_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Cancellation
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cancellation_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    admin_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Guest rating (1-5), set once after completion
    rating_overall: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_cleanliness: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_amenities: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_location: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    review_text: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    review_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    property: Mapped["Property"] = relationship(back_populates="bookings", lazy="raise")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (
        Index(
            "ix_bookings_property_window_status",
            "property_id",
            "check_in_time",
            "check_out_time",
            "booking_status",
        ),
        Index("ix_bookings_user_status_check_in", "user_id", "booking_status", "check_in_time"),
    )

    # ------------------------------------------------------------------
    # Status predicates
    # ------------------------------------------------------------------

    def is_active(self) -> bool:
        return self.booking_status in ("confirmed", "checked_in", "extended")

    def is_modifiable(self) -> bool:
        return self.booking_status in ("pending_payment", "confirmed")

    def can_be_cancelled(self) -> bool:
        return self.booking_status in ("pending_payment", "confirmed")

    def has_pending_overtime(self) -> bool:
        return bool(self.overtime_amount) and self.overtime_payment_status == "pending"

    def is_rated(self) -> bool:
        return self.rating_overall is not None

    # ------------------------------------------------------------------
    # Time helpers
    # ------------------------------------------------------------------

    def duration(self) -> dict[str, float]:
        """Planned duration in hours, minutes and (rounded up) days."""
        seconds = (self.check_out_time - self.check_in_time).total_seconds()
        hours = seconds / 3600
        return {
            "total_hours": hours,
            "total_minutes": seconds / 60,
            "total_days": float(-(-hours // 24)),
        }

    def time_remaining(self, now: datetime) -> dict[str, int]:
        """Hours and minutes until the planned check-in, floored at zero."""
        remaining = self.check_in_time - now
        if remaining <= timedelta(0):
            return {"hours": 0, "minutes": 0}
        total_minutes = int(remaining.total_seconds() // 60)
        return {"hours": total_minutes // 60, "minutes": total_minutes % 60}

    def __repr__(self) -> str:
        return (
            f"<Booking(booking_id={self.booking_id}, property_id={self.property_id}, "
            f"user_id={self.user_id}, status={self.booking_status})>"
        )
