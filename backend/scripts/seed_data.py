"""Seed the database with sample coworking spaces and bookings.

Bookings are created through the booking service, so every seeded row has
passed the same availability, conflict and pricing checks as API traffic.

Run inside Docker:
    docker compose exec backend python -m scripts.seed_data
"""

import asyncio
import sys
import uuid
from datetime import datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete

from cowork.auth.jwt import create_access_token
from cowork.database import async_session_factory, engine
from cowork.models.booking import Booking
from cowork.models.property import Property
from cowork.schemas.booking import BookingCreate, PaymentDetailsIn
from cowork.services import booking_service

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

DEMO_OWNER_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
DEMO_MEMBER_ID = uuid.UUID("00000000-0000-4000-8000-000000000002")
DEMO_ADMIN_ID = uuid.UUID("00000000-0000-4000-8000-000000000003")
DEMO_PAYMENTS_ID = uuid.UUID("00000000-0000-4000-8000-000000000004")

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]

PROPERTIES = [
    {
        "name": "Indiranagar Hot Desks",
        "seating_capacity": 40,
        "timezone": "Asia/Kolkata",
        "booking_rules": {
            "min_booking_hours": 1,
            "max_booking_hours": 12,
            "buffer_hours": 0.5,
            "checkout_grace_period": 15,
            "allowed_time_slots": [
                {"day": day, "start_time": "08:00", "end_time": "20:00"} for day in WEEKDAYS
            ]
            + [{"day": "saturday", "start_time": "10:00", "end_time": "16:00"}],
        },
        "pricing": {
            "hourly_rate": "100.00",
            "daily_rate": "700.00",
            "cleaning_fee": "0.00",
        },
    },
    {
        "name": "Bandra Boardroom",
        "seating_capacity": 12,
        "timezone": "Asia/Kolkata",
        "booking_rules": {
            "min_booking_hours": 2,
            "max_booking_hours": 8,
            "buffer_hours": 1,
            "checkout_grace_period": 10,
        },
        "pricing": {
            "hourly_rate": "1500.00",
            "overtime_hourly_rate": "2000.00",
            "cleaning_fee": "250.00",
        },
    },
]


def _next_weekday(after: datetime, tz: ZoneInfo) -> datetime:
    """Local midnight of the first Monday-to-Friday date after ``after``."""
    day = after.astimezone(tz).date() + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return datetime.combine(day, time.min, tzinfo=tz)


def _build_bookings(properties: list[Property], now: datetime) -> list[BookingCreate]:
    """Non-conflicting sample bookings on the next working day."""
    desks, boardroom = properties
    day = _next_weekday(now, ZoneInfo(desks.timezone))
    wallet = PaymentDetailsIn(payment_method="wallet", wallet_id=uuid.uuid4())

    return [
        BookingCreate(
            property_id=desks.id,
            check_in_time=day + timedelta(hours=9),
            check_out_time=day + timedelta(hours=13),
            number_of_seats=2,
            payment=PaymentDetailsIn(payment_method="card"),
            special_requests="Window seats if possible",
        ),
        BookingCreate(
            property_id=desks.id,
            check_in_time=day + timedelta(hours=14),
            check_out_time=day + timedelta(hours=18),
            payment=wallet,
        ),
        BookingCreate(
            property_id=boardroom.id,
            check_in_time=day + timedelta(hours=10),
            check_out_time=day + timedelta(hours=12),
            number_of_seats=8,
            guest_count=8,
            payment=PaymentDetailsIn(payment_method="upi"),
        ),
    ]


async def seed() -> None:
    """Populate the database with sample coworking data.

    Idempotent: removes everything owned by the demo owner before re-seeding.
    """
    async with async_session_factory() as session:
        await session.execute(delete(Booking).where(Booking.property_owner_id == DEMO_OWNER_ID))
        await session.execute(delete(Property).where(Property.owner_id == DEMO_OWNER_ID))
        await session.commit()

        # ------------------------------------------------------------------
        # 1. Create properties
        # ------------------------------------------------------------------
        created_properties: list[Property] = []
        for prop_data in PROPERTIES:
            prop = Property(owner_id=DEMO_OWNER_ID, **prop_data)
            session.add(prop)
            created_properties.append(prop)
        await session.commit()
        for prop in created_properties:
            print(f"   🏢 {prop.name} ({prop.seating_capacity} seats)")

        # ------------------------------------------------------------------
        # 2. Create bookings through the engine
        # ------------------------------------------------------------------
        now = datetime.now(ZoneInfo("UTC"))
        booking_count = 0
        for data in _build_bookings(created_properties, now):
            booking = await booking_service.create_booking(session, data, DEMO_MEMBER_ID)
            booking_count += 1
            print(f"   📅 {booking.booking_id} {booking.booking_status} total={booking.total_amount}")

        print(f"✅ Created {booking_count} bookings")
        print()
        print("=" * 60)
        print("📊 Seed Summary")
        print("=" * 60)
        print(f"   Properties: {len(created_properties)}")
        print(f"   Bookings:   {booking_count}")
        print()
        print("   Member token:")
        print(f"   {create_access_token({'sub': str(DEMO_MEMBER_ID)}, timedelta(days=7))}")
        print("   Owner token:")
        print(f"   {create_access_token({'sub': str(DEMO_OWNER_ID)}, timedelta(days=7))}")
        print("   Admin token:")
        print(f"   {create_access_token({'sub': str(DEMO_ADMIN_ID), 'role': 'admin'}, timedelta(days=7))}")
        print("   Payment service token:")
        print(f"   {create_access_token({'sub': str(DEMO_PAYMENTS_ID), 'role': 'payments'}, timedelta(days=7))}")
        print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
