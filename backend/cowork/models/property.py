"""Property model: the coworking space whose timeline bookings are checked against.

Property CRUD lives in the listings service; this service only reads the
fields the booking engine needs.
"""

import uuid

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cowork.config import settings
from cowork.database import Base, TimestampMixin, UUIDPrimaryKeyMixin
from cowork.schemas.property import BookingRules, PropertyPricing


class Property(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A coworking space, meeting room, or managed office."""

    __tablename__ = "properties"

    owner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    property_status: Mapped[str] = mapped_column(
        String(50), default="active", server_default="active"
    )  # active, inactive, under_maintenance
    seating_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    timezone: Mapped[str] = mapped_column(String(64), default=settings.default_timezone)
    unavailable_dates: Mapped[list] = mapped_column(JSON, default=list)  # ["2025-08-21", ...]
    booking_rules: Mapped[dict] = mapped_column(JSON, default=dict)
    pricing: Mapped[dict] = mapped_column(JSON, default=dict)
    # Relationships
    bookings: Mapped[list["Booking"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="property", lazy="raise"
    )

    @property
    def rules(self) -> BookingRules:
        return BookingRules.model_validate(self.booking_rules or {})

    @property
    def rates(self) -> PropertyPricing:
        return PropertyPricing.model_validate(self.pricing or {})

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name!r}, status={self.property_status!r})>"
