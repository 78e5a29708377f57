"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

BOOKING_TYPE_PATTERN = "^(hourly|daily|weekly|monthly)$"
PAYMENT_METHOD_PATTERN = "^(wallet|card|upi|netbanking|cash)$"

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PaymentDetailsIn(BaseModel):
    """Payment attached to a booking request."""

    payment_method: str = Field(..., pattern=PAYMENT_METHOD_PATTERN)
    payment_status: str = Field("pending", pattern="^(pending|completed)$")
    amount_paid: Decimal = Field(Decimal("0"), ge=0)
    transaction_id: str | None = Field(None, min_length=1, max_length=100)
    wallet_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def check_wallet(self) -> "PaymentDetailsIn":
        """Wallet payments must name the wallet."""
        if self.payment_method == "wallet" and self.wallet_id is None:
            raise ValueError("wallet_id is required for wallet payments")
        return self


class BookingCreate(BaseModel):
    """Schema for creating a new booking.

    Amounts are optional: when omitted they are quoted from the property's
    pricing. When supplied, ``total_amount`` must equal
    ``base + cleaning + taxes - discount``. Over HTTP only admins and the
    payment service may supply amounts, a completed payment, or ``user_id``.
    """

    property_id: uuid.UUID
    user_id: uuid.UUID | None = None
    check_in_time: AwareDatetime
    check_out_time: AwareDatetime
    number_of_seats: int = Field(1, ge=1)
    booking_type: str = Field("hourly", pattern=BOOKING_TYPE_PATTERN)
    guest_count: int = Field(1, ge=1)
    special_requests: str | None = Field(None, max_length=500)
    payment: PaymentDetailsIn

    base_amount: Decimal | None = Field(None, ge=0)
    cleaning_fee: Decimal | None = Field(None, ge=0)
    taxes: Decimal | None = Field(None, ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal | None = Field(None, ge=0)

    @property
    def has_supplied_amounts(self) -> bool:
        return any(
            value is not None for value in (self.base_amount, self.cleaning_fee, self.taxes, self.total_amount)
        ) or self.discount_amount > 0

    @property
    def is_prepaid(self) -> bool:
        return self.payment.payment_status == "completed"


class BookingUpdate(BaseModel):
    """Schema for modifying a booking before check-in. All fields optional."""

    check_in_time: AwareDatetime | None = None
    check_out_time: AwareDatetime | None = None
    number_of_seats: int | None = Field(None, ge=1)
    guest_count: int | None = Field(None, ge=1)
    special_requests: str | None = Field(None, max_length=500)


class ConfirmPaymentRequest(BaseModel):
    """Payment captured by the gateway for a pending booking."""

    transaction_id: str = Field(..., min_length=1, max_length=100)
    amount_paid: Decimal = Field(..., ge=0)


class CheckInRequest(BaseModel):
    actual_check_in_time: AwareDatetime | None = None


class CheckOutRequest(BaseModel):
    actual_check_out_time: AwareDatetime | None = None


class CancelBookingRequest(BaseModel):
    cancellation_reason: str = Field(..., min_length=1, max_length=500)
    refund_amount: Decimal | None = Field(None, ge=0)


class OvertimePaymentRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, max_length=100)


class NoShowRequest(BaseModel):
    admin_notes: str | None = Field(None, max_length=1000)


class RatingCreate(BaseModel):
    """Guest rating for a completed booking. Scores run from 1 to 5."""

    overall: int = Field(..., ge=1, le=5)
    cleanliness: int | None = Field(None, ge=1, le=5)
    amenities: int | None = Field(None, ge=1, le=5)
    location: int | None = Field(None, ge=1, le=5)
    value: int | None = Field(None, ge=1, le=5)
    review_text: str | None = Field(None, max_length=1000)


class RefundQuoteRequest(BaseModel):
    check_in_time: AwareDatetime
    total_amount: Decimal = Field(..., ge=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    """Standard booking response returned from lifecycle operations."""

    id: uuid.UUID
    booking_id: str
    property_id: uuid.UUID
    property_owner_id: uuid.UUID
    user_id: uuid.UUID
    booking_date: datetime
    check_in_time: datetime
    check_out_time: datetime
    actual_check_in_time: datetime | None = None
    actual_check_out_time: datetime | None = None
    number_of_seats: int
    booking_type: str
    total_hours: Decimal
    guest_count: int
    special_requests: str | None = None
    base_amount: Decimal
    cleaning_fee: Decimal
    taxes: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    payment_method: str
    payment_status: str
    amount_paid: Decimal
    currency: str
    transaction_id: str | None = None
    booking_status: str
    is_extended: bool
    overtime_hours: int | None = None
    overtime_amount: Decimal | None = None
    overtime_payment_status: str | None = None
    refund_amount: Decimal
    cancellation_reason: str | None = None
    cancellation_date: datetime | None = None
    rating_overall: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int


class CheckOutResponse(BaseModel):
    booking_id: str
    status: str
    overtime_amount: Decimal
    overtime_hours: int
    needs_overtime_payment: bool


class CancelBookingResponse(BaseModel):
    booking_id: str
    status: str
    refund_amount: Decimal
    cancellation_reason: str


class QuoteResponse(BaseModel):
    base_amount: Decimal
    cleaning_fee: Decimal
    taxes: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    total_hours: Decimal

    model_config = ConfigDict(from_attributes=True)


class AvailabilityResponse(BaseModel):
    is_available: bool
    conflicting_bookings: int
    reason: str | None = None
    pricing: QuoteResponse | None = None


class CalendarEntry(BaseModel):
    booking_id: str
    user_id: uuid.UUID
    check_in_time: datetime
    check_out_time: datetime
    status: str
    number_of_seats: int
    total_amount: Decimal


class CalendarResponse(BaseModel):
    property_id: uuid.UUID
    start_date: date
    end_date: date
    calendar: dict[str, list[CalendarEntry]]
    total_bookings: int


class RefundQuoteResponse(BaseModel):
    refund_amount: Decimal
    hours_until_check_in: float


class RatingResponse(BaseModel):
    booking_id: str
    overall: int
    cleanliness: int | None = None
    amenities: int | None = None
    location: int | None = None
    value: int | None = None
    review_text: str | None = None
    review_date: datetime
