"""Tests for booking lifecycle operations against a real session."""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select

from cowork.booking.errors import ConflictError, InvalidTransitionError, NotAvailableError, NotFoundError, ValidationError
from cowork.booking.pricing import Quote
from cowork.models.booking import Booking
from cowork.schemas.booking import BookingCreate, BookingUpdate, RatingCreate
from cowork.services import booking_service
from cowork.services.booking_service import validate_invariants

pytestmark = pytest.mark.asyncio

IST = ZoneInfo("Asia/Kolkata")


def _at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    return datetime(2026, 10, 19, tzinfo=IST) + timedelta(days=days, hours=hour, minutes=minute)


def _request(prop, start: datetime, end: datetime, **overrides) -> BookingCreate:
    data = {
        "property_id": prop.id,
        "check_in_time": start,
        "check_out_time": end,
        "payment": {"payment_method": "card"},
    }
    data.update(overrides)
    return BookingCreate(**data)


def _prepaid(amount: str, **overrides) -> dict:
    payment = {
        "payment_method": "card",
        "payment_status": "completed",
        "amount_paid": amount,
        "transaction_id": f"txn-{uuid.uuid4().hex[:12]}",
    }
    payment.update(overrides)
    return payment


async def _count(db) -> int:
    return (await db.execute(select(func.count()).select_from(Booking))).scalar_one()


# ---------------------------------------------------------------------------
# validate_invariants
# ---------------------------------------------------------------------------


class TestValidateInvariants:
    QUOTE = Quote(
        base_amount=Decimal("200.00"),
        cleaning_fee=Decimal("0.00"),
        taxes=Decimal("36.00"),
        discount_amount=Decimal("0.00"),
        total_amount=Decimal("236.00"),
        total_hours=Decimal("2.00"),
    )

    async def test_valid(self):
        validate_invariants(_at(10), _at(12), self.QUOTE, "completed", Decimal("236.00"))

    async def test_interval_must_be_ordered(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_invariants(_at(12), _at(10), self.QUOTE)
        assert exc_info.value.code == "invalid_interval"

    async def test_minimum_fifteen_minutes(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_invariants(_at(10), _at(10, 10), self.QUOTE)
        assert exc_info.value.code == "duration_too_short"

    async def test_amount_within_a_cent(self):
        quote = Quote(**{**self.QUOTE.__dict__, "total_amount": Decimal("236.01")})
        validate_invariants(_at(10), _at(12), quote)

    async def test_amount_mismatch(self):
        quote = Quote(**{**self.QUOTE.__dict__, "total_amount": Decimal("240.00")})
        with pytest.raises(ValidationError) as exc_info:
            validate_invariants(_at(10), _at(12), quote)
        assert exc_info.value.code == "amount_mismatch"
        assert exc_info.value.details["expected_total"] == "236.00"

    async def test_completed_payment_must_cover_total(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_invariants(_at(10), _at(12), self.QUOTE, "completed", Decimal("200.00"))
        assert exc_info.value.code == "payment_mismatch"


# ---------------------------------------------------------------------------
# create_booking
# ---------------------------------------------------------------------------


class TestCreateBooking:
    async def test_pending_by_default(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(
            db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock
        )
        assert booking.booking_status == "pending_payment"
        assert booking.payment_status == "pending"
        assert booking.total_amount == Decimal("236.00")
        assert booking.total_hours == Decimal("2.00")
        assert booking.property_owner_id == workspace.owner_id
        assert booking.booking_id.startswith("BK")
        assert booking.created_at is not None

    async def test_prepaid_is_confirmed(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(
            db_session,
            _request(workspace, _at(10), _at(12), payment=_prepaid("236.00")),
            member_id,
            clock=clock,
        )
        assert booking.booking_status == "confirmed"
        assert booking.payment_date == clock()

    async def test_supplied_amounts_are_kept(self, db_session, workspace, member_id, clock):
        data = _request(
            workspace,
            _at(10),
            _at(12),
            base_amount="180.00",
            taxes="32.40",
            discount_amount="12.40",
            total_amount="200.00",
        )
        booking = await booking_service.create_booking(db_session, data, member_id, clock=clock)
        assert booking.total_amount == Decimal("200.00")
        assert booking.discount_amount == Decimal("12.40")

    async def test_supplied_amounts_must_add_up(self, db_session, workspace, member_id, clock):
        data = _request(workspace, _at(10), _at(12), base_amount="200.00", taxes="36.00", total_amount="250.00")
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.create_booking(db_session, data, member_id, clock=clock)
        assert exc_info.value.code == "amount_mismatch"
        assert await _count(db_session) == 0

    async def test_prepaid_amount_must_match(self, db_session, workspace, member_id, clock):
        data = _request(workspace, _at(10), _at(12), payment=_prepaid("100.00"))
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.create_booking(db_session, data, member_id, clock=clock)
        assert exc_info.value.code == "payment_mismatch"

    async def test_rejects_past_check_in(self, db_session, workspace, member_id, clock):
        clock.set(_at(11))
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        assert exc_info.value.code == "check_in_in_past"

    async def test_rejects_too_many_seats(self, db_session, workspace, member_id, clock):
        data = _request(workspace, _at(10), _at(12), number_of_seats=11)
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.create_booking(db_session, data, member_id, clock=clock)
        assert exc_info.value.code == "seats_exceed_capacity"

    async def test_rejects_short_duration(self, db_session, workspace, member_id, clock):
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.create_booking(
                db_session, _request(workspace, _at(10), _at(10, 30)), member_id, clock=clock
            )
        assert exc_info.value.code == "duration_out_of_range"

    async def test_rejects_outside_slot(self, db_session, workspace, member_id, clock):
        with pytest.raises(NotAvailableError) as exc_info:
            await booking_service.create_booking(
                db_session, _request(workspace, _at(17), _at(19)), member_id, clock=clock
            )
        assert exc_info.value.reason == "outside_allowed_slots"

    async def test_rejects_unknown_property(self, db_session, member_id, clock):
        data = BookingCreate(
            property_id=uuid.uuid4(),
            check_in_time=_at(10),
            check_out_time=_at(12),
            payment={"payment_method": "card"},
        )
        with pytest.raises(NotFoundError) as exc_info:
            await booking_service.create_booking(db_session, data, member_id, clock=clock)
        assert exc_info.value.code == "property_not_found"

    async def test_overlap_with_confirmed_rejected(self, db_session, workspace, member_id, other_member_id, clock):
        await booking_service.create_booking(
            db_session,
            _request(workspace, _at(10), _at(12), payment=_prepaid("236.00")),
            other_member_id,
            clock=clock,
        )
        with pytest.raises(ConflictError) as exc_info:
            await booking_service.create_booking(
                db_session, _request(workspace, _at(11), _at(13)), member_id, clock=clock
            )
        assert exc_info.value.rule == "overlap"
        assert await _count(db_session) == 1

    async def test_pending_holds_do_not_block(self, db_session, workspace, member_id, other_member_id, clock):
        await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), other_member_id, clock=clock)
        booking = await booking_service.create_booking(
            db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock
        )
        assert booking.booking_status == "pending_payment"


# ---------------------------------------------------------------------------
# confirm_booking / update_booking
# ---------------------------------------------------------------------------


class TestConfirmBooking:
    async def test_confirm(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        confirmed = await booking_service.confirm_booking(
            db_session, booking.id, "txn-1", Decimal("236.00"), clock=clock
        )
        assert confirmed.booking_status == "confirmed"
        assert confirmed.payment_status == "completed"
        assert confirmed.transaction_id == "txn-1"

    async def test_confirm_amount_mismatch(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        with pytest.raises(ValidationError):
            await booking_service.confirm_booking(db_session, booking.id, "txn-1", Decimal("200.00"), clock=clock)

    async def test_confirm_twice(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        await booking_service.confirm_booking(db_session, booking.id, "txn-1", Decimal("236.00"), clock=clock)
        with pytest.raises(InvalidTransitionError):
            await booking_service.confirm_booking(db_session, booking.id, "txn-2", Decimal("236.00"), clock=clock)

    async def test_second_overlapping_hold_cannot_confirm(
        self, db_session, workspace, member_id, other_member_id, clock
    ):
        first = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        second = await booking_service.create_booking(
            db_session, _request(workspace, _at(11), _at(13)), other_member_id, clock=clock
        )
        second_id = second.id
        await booking_service.confirm_booking(db_session, first.id, "txn-a", Decimal("236.00"), clock=clock)
        with pytest.raises(ConflictError):
            await booking_service.confirm_booking(db_session, second_id, "txn-b", Decimal("236.00"), clock=clock)

        refreshed = await booking_service.get_booking(db_session, second_id)
        assert refreshed.booking_status == "pending_payment"


class TestUpdateBooking:
    async def test_move_and_reprice(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        updated = await booking_service.update_booking(
            db_session,
            booking.id,
            BookingUpdate(check_in_time=_at(13), check_out_time=_at(16), special_requests="Quiet corner"),
            clock=clock,
        )
        assert updated.check_in_time == _at(13)
        assert updated.total_amount == Decimal("354.00")
        assert updated.total_hours == Decimal("3.00")
        assert updated.special_requests == "Quiet corner"

    async def test_cutoff_before_check_in(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        clock.set(_at(8, 30))
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.update_booking(db_session, booking.id, BookingUpdate(guest_count=2), clock=clock)
        assert exc_info.value.code == "modification_window_closed"

    async def test_move_into_conflict(self, db_session, workspace, member_id, other_member_id, clock):
        await booking_service.create_booking(
            db_session,
            _request(workspace, _at(14), _at(16), payment=_prepaid("236.00")),
            other_member_id,
            clock=clock,
        )
        booking = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        booking_id = booking.id
        with pytest.raises(ConflictError) as exc_info:
            await booking_service.update_booking(
                db_session, booking_id, BookingUpdate(check_out_time=_at(13, 45)), clock=clock
            )
        assert exc_info.value.rule == "buffer"

        unchanged = await booking_service.get_booking(db_session, booking_id)
        assert unchanged.check_out_time == _at(12)

    async def test_own_window_does_not_conflict(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(
            db_session,
            _request(workspace, _at(10), _at(12), payment=_prepaid("236.00")),
            member_id,
            clock=clock,
        )
        updated = await booking_service.update_booking(
            db_session, booking.id, BookingUpdate(check_in_time=_at(10), check_out_time=_at(12), guest_count=3), clock=clock
        )
        assert updated.guest_count == 3

    async def test_paid_booking_cannot_change_price(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(
            db_session,
            _request(workspace, _at(10), _at(12), payment=_prepaid("236.00")),
            member_id,
            clock=clock,
        )
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.update_booking(db_session, booking.id, BookingUpdate(number_of_seats=2), clock=clock)
        assert exc_info.value.code == "payment_mismatch"


# ---------------------------------------------------------------------------
# check-in / check-out / overtime
# ---------------------------------------------------------------------------


class TestCheckInOut:
    async def _confirmed(self, db, prop, user_id, clock, seats: int = 2) -> Booking:
        total = "472.00" if seats == 2 else "236.00"
        return await booking_service.create_booking(
            db,
            _request(prop, _at(10), _at(12), number_of_seats=seats, payment=_prepaid(total)),
            user_id,
            clock=clock,
        )

    async def test_check_in_too_early(self, db_session, workspace, member_id, clock):
        booking = await self._confirmed(db_session, workspace, member_id, clock)
        clock.set(_at(9, 44))
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.check_in(db_session, booking.id, clock=clock)
        assert exc_info.value.code == "check_in_too_early"

    async def test_check_in_requires_confirmation(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock)
        clock.set(_at(10))
        with pytest.raises(InvalidTransitionError):
            await booking_service.check_in(db_session, booking.id, clock=clock)

    async def test_monday_overtime_scenario(self, db_session, workspace, member_id, clock):
        booking = await self._confirmed(db_session, workspace, member_id, clock)
        clock.set(_at(9, 45))
        checked_in = await booking_service.check_in(db_session, booking.id, clock=clock)
        assert checked_in.booking_status == "checked_in"
        assert checked_in.actual_check_in_time == _at(9, 45)

        result = await booking_service.check_out(db_session, booking.id, _at(12, 20), clock=clock)
        assert result.overtime_amount == Decimal("300.00")
        assert result.overtime_hours == 1
        assert result.new_status == "extended"
        assert result.booking.is_extended is True
        assert result.booking.overtime_payment_status == "pending"

        again = await booking_service.check_out(db_session, booking.id, _at(12, 20), clock=clock)
        assert again.overtime_amount == result.overtime_amount
        assert again.new_status == result.new_status

        settled = await booking_service.settle_overtime(db_session, booking.id, "txn-ot", clock=clock)
        assert settled.booking_status == "completed"
        assert settled.overtime_payment_status == "completed"

        with pytest.raises(InvalidTransitionError):
            await booking_service.settle_overtime(db_session, booking.id, "txn-ot-2", clock=clock)

    async def test_checkout_within_grace_completes(self, db_session, workspace, member_id, clock):
        booking = await self._confirmed(db_session, workspace, member_id, clock)
        clock.set(_at(10))
        await booking_service.check_in(db_session, booking.id, clock=clock)
        clock.set(_at(12, 10))
        result = await booking_service.check_out(db_session, booking.id, clock=clock)
        assert result.new_status == "completed"
        assert result.overtime_amount == Decimal("0")

        repeat = await booking_service.check_out(db_session, booking.id, _at(12, 10), clock=clock)
        assert repeat.new_status == "completed"

        with pytest.raises(InvalidTransitionError):
            await booking_service.check_out(db_session, booking.id, _at(12, 40), clock=clock)

    async def test_recheckout_from_extended_recomputes(self, db_session, workspace, member_id, clock):
        booking = await self._confirmed(db_session, workspace, member_id, clock, seats=1)
        clock.set(_at(10))
        await booking_service.check_in(db_session, booking.id, clock=clock)
        await booking_service.check_out(db_session, booking.id, _at(12, 20), clock=clock)

        result = await booking_service.check_out(db_session, booking.id, _at(13, 30), clock=clock)
        assert result.overtime_hours == 2
        assert result.overtime_amount == Decimal("300.00")
        assert result.new_status == "extended"

    async def test_checkout_before_check_in_time(self, db_session, workspace, member_id, clock):
        booking = await self._confirmed(db_session, workspace, member_id, clock)
        clock.set(_at(10))
        await booking_service.check_in(db_session, booking.id, clock=clock)
        with pytest.raises(ValidationError):
            await booking_service.check_out(db_session, booking.id, _at(9, 30), clock=clock)

    async def test_checkout_requires_check_in(self, db_session, workspace, member_id, clock):
        booking = await self._confirmed(db_session, workspace, member_id, clock)
        with pytest.raises(InvalidTransitionError):
            await booking_service.check_out(db_session, booking.id, _at(12), clock=clock)


# ---------------------------------------------------------------------------
# cancel / no-show
# ---------------------------------------------------------------------------


class TestCancelBooking:
    async def _prepaid_booking(self, db, prop, user_id, clock) -> Booking:
        return await booking_service.create_booking(
            db, _request(prop, _at(10), _at(12), payment=_prepaid("236.00")), user_id, clock=clock
        )

    async def test_two_hours_before_refunds_nothing(self, db_session, workspace, member_id, clock):
        booking = await self._prepaid_booking(db_session, workspace, member_id, clock)
        clock.set(_at(8))
        result = await booking_service.cancel_booking(db_session, booking.id, "Plans changed", clock=clock)
        assert result.status == "cancelled"
        assert result.refund_amount == Decimal("0.00")
        assert result.booking.payment_status == "completed"
        assert result.booking.cancellation_date == _at(8)

    async def test_four_hours_before_partial_refund(self, db_session, workspace, member_id, clock):
        booking = await self._prepaid_booking(db_session, workspace, member_id, clock)
        result = await booking_service.cancel_booking(db_session, booking.id, "Sick", clock=clock)
        assert result.refund_amount == Decimal("59.00")
        assert result.booking.payment_status == "partially_refunded"
        assert result.booking.refund_date == clock()

    async def test_explicit_full_refund(self, db_session, workspace, member_id, clock):
        booking = await self._prepaid_booking(db_session, workspace, member_id, clock)
        result = await booking_service.cancel_booking(
            db_session, booking.id, "Venue issue", Decimal("236.00"), clock=clock
        )
        assert result.booking.payment_status == "refunded"

    async def test_refund_capped_at_total(self, db_session, workspace, member_id, clock):
        booking = await self._prepaid_booking(db_session, workspace, member_id, clock)
        with pytest.raises(ValidationError) as exc_info:
            await booking_service.cancel_booking(db_session, booking.id, "Goodwill", Decimal("300.00"), clock=clock)
        assert exc_info.value.code == "refund_out_of_range"

    async def test_reason_required(self, db_session, workspace, member_id, clock):
        booking = await self._prepaid_booking(db_session, workspace, member_id, clock)
        with pytest.raises(ValidationError):
            await booking_service.cancel_booking(db_session, booking.id, "   ", clock=clock)

    async def test_cannot_cancel_after_check_in(self, db_session, workspace, member_id, clock):
        booking = await self._prepaid_booking(db_session, workspace, member_id, clock)
        clock.set(_at(10))
        await booking_service.check_in(db_session, booking.id, clock=clock)
        with pytest.raises(InvalidTransitionError):
            await booking_service.cancel_booking(db_session, booking.id, "Too late", clock=clock)

    async def test_cancelled_slot_can_be_rebooked(self, db_session, workspace, member_id, other_member_id, clock):
        booking = await self._prepaid_booking(db_session, workspace, member_id, clock)
        await booking_service.cancel_booking(db_session, booking.id, "Plans changed", clock=clock)
        rebooked = await self._prepaid_booking(db_session, workspace, other_member_id, clock)
        assert rebooked.booking_status == "confirmed"


class TestNoShow:
    async def test_mark_no_show(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(
            db_session, _request(workspace, _at(10), _at(12), payment=_prepaid("236.00")), member_id, clock=clock
        )
        result = await booking_service.mark_no_show(db_session, booking.id, "Did not arrive")
        assert result.booking_status == "no_show"
        assert result.admin_notes == "Did not arrive"

    async def test_no_show_after_check_in_rejected(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(
            db_session, _request(workspace, _at(10), _at(12), payment=_prepaid("236.00")), member_id, clock=clock
        )
        clock.set(_at(10))
        await booking_service.check_in(db_session, booking.id, clock=clock)
        with pytest.raises(InvalidTransitionError):
            await booking_service.mark_no_show(db_session, booking.id)

    async def test_unknown_booking(self, db_session):
        with pytest.raises(NotFoundError):
            await booking_service.mark_no_show(db_session, uuid.uuid4())


class TestRating:
    async def _completed(self, db, prop, user_id, clock) -> uuid.UUID:
        booking = await booking_service.create_booking(
            db, _request(prop, _at(10), _at(12), payment=_prepaid("236.00")), user_id, clock=clock
        )
        booking_id = booking.id
        clock.set(_at(10))
        await booking_service.check_in(db, booking_id, clock=clock)
        await booking_service.check_out(db, booking_id, _at(12), clock=clock)
        return booking_id

    async def test_rate_completed_booking(self, db_session, workspace, member_id, clock):
        booking_id = await self._completed(db_session, workspace, member_id, clock)
        clock.set(_at(13))
        rated = await booking_service.add_rating(
            db_session, booking_id, RatingCreate(overall=4, cleanliness=5, review_text="Quiet and bright"), clock=clock
        )
        assert rated.rating_overall == 4
        assert rated.rating_cleanliness == 5
        assert rated.rating_amenities is None
        assert rated.review_text == "Quiet and bright"
        assert rated.review_date == _at(13)
        assert rated.is_rated()

    async def test_rated_only_once(self, db_session, workspace, member_id, clock):
        booking_id = await self._completed(db_session, workspace, member_id, clock)
        await booking_service.add_rating(db_session, booking_id, RatingCreate(overall=5), clock=clock)
        with pytest.raises(InvalidTransitionError) as exc_info:
            await booking_service.add_rating(db_session, booking_id, RatingCreate(overall=1), clock=clock)
        assert exc_info.value.operation == "rate"

        stored = await booking_service.get_booking(db_session, booking_id)
        assert stored.rating_overall == 5

    async def test_confirmed_booking_cannot_be_rated(self, db_session, workspace, member_id, clock):
        booking = await booking_service.create_booking(
            db_session, _request(workspace, _at(10), _at(12), payment=_prepaid("236.00")), member_id, clock=clock
        )
        with pytest.raises(InvalidTransitionError) as exc_info:
            await booking_service.add_rating(db_session, booking.id, RatingCreate(overall=3), clock=clock)
        assert exc_info.value.current_status == "confirmed"


class TestListings:
    async def test_list_bookings_pages_and_counts(self, db_session, workspace, member_id, clock):
        for hour in (10, 12, 14):
            await booking_service.create_booking(
                db_session, _request(workspace, _at(hour), _at(hour + 1)), member_id, clock=clock
            )

        items, total = await booking_service.list_bookings(
            db_session, [Booking.user_id == member_id], skip=0, limit=2
        )
        assert total == 3
        assert [b.check_in_time for b in items] == [_at(14), _at(12)]

        rest, _ = await booking_service.list_bookings(db_session, [Booking.user_id == member_id], skip=2, limit=2)
        assert [b.check_in_time for b in rest] == [_at(10)]

    async def test_upcoming_only_confirmed_and_future(self, db_session, workspace, member_id, clock):
        await booking_service.create_booking(db_session, _request(workspace, _at(10), _at(11)), member_id, clock=clock)
        confirmed = await booking_service.create_booking(
            db_session, _request(workspace, _at(12), _at(14), payment=_prepaid("236.00")), member_id, clock=clock
        )
        confirmed_ref = confirmed.booking_id

        items, total = await booking_service.list_user_upcoming_bookings(db_session, member_id, clock())
        assert total == 1
        assert items[0].booking_id == confirmed_ref

        items, total = await booking_service.list_user_upcoming_bookings(db_session, member_id, _at(12))
        assert (items, total) == ([], 0)

    async def test_history_holds_finished_bookings(self, db_session, workspace, member_id, clock):
        kept = await booking_service.create_booking(
            db_session, _request(workspace, _at(10), _at(12)), member_id, clock=clock
        )
        dropped = await booking_service.create_booking(
            db_session, _request(workspace, _at(14), _at(16)), member_id, clock=clock
        )
        kept_ref, dropped_id = kept.booking_id, dropped.id
        await booking_service.cancel_booking(db_session, dropped_id, "Plans changed", clock=clock)

        items, total = await booking_service.list_user_booking_history(db_session, member_id)
        assert total == 1
        assert items[0].id == dropped_id
        assert items[0].booking_status == "cancelled"
        assert kept_ref not in [b.booking_id for b in items]
