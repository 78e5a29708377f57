"""create_properties_and_bookings

Revision ID: 3f7c2a9d41b8
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f7c2a9d41b8'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("owner_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("property_status", sa.String(length=50), server_default="active", nullable=False),
        sa.Column("seating_capacity", sa.Integer(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("unavailable_dates", sa.JSON(), nullable=False),
        sa.Column("booking_rules", sa.JSON(), nullable=False),
        sa.Column("pricing", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_properties_owner_id", "properties", ["owner_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("booking_id", sa.String(length=40), nullable=False),
        sa.Column("property_id", sa.UUID(), nullable=False),
        sa.Column("property_owner_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("booking_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_check_in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("number_of_seats", sa.Integer(), nullable=False),
        sa.Column("booking_type", sa.String(length=20), nullable=False),
        sa.Column("total_hours", sa.Numeric(10, 2), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("base_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("cleaning_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("taxes", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("payment_status", sa.String(length=30), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("transaction_id", sa.String(length=100), nullable=True),
        sa.Column("wallet_id", sa.UUID(), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booking_status", sa.String(length=30), nullable=False),
        sa.Column("is_extended", sa.Boolean(), nullable=False),
        sa.Column("overtime_hours", sa.Integer(), nullable=True),
        sa.Column("overtime_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("overtime_payment_status", sa.String(length=20), nullable=True),
        sa.Column("overtime_within_grace", sa.Boolean(), nullable=True),
        sa.Column("overtime_transaction_id", sa.String(length=100), nullable=True),
        sa.Column("overtime_payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("cancellation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("booking_id"),
        sa.UniqueConstraint("transaction_id"),
    )
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"])
    op.create_index("ix_bookings_property_owner_id", "bookings", ["property_owner_id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_booking_status", "bookings", ["booking_status"])
    op.create_index(
        "ix_bookings_property_window_status",
        "bookings",
        ["property_id", "check_in_time", "check_out_time", "booking_status"],
    )
    op.create_index(
        "ix_bookings_user_status_check_in",
        "bookings",
        ["user_id", "booking_status", "check_in_time"],
    )


def downgrade() -> None:
    op.drop_index("ix_bookings_user_status_check_in", table_name="bookings")
    op.drop_index("ix_bookings_property_window_status", table_name="bookings")
    op.drop_index("ix_bookings_booking_status", table_name="bookings")
    op.drop_index("ix_bookings_user_id", table_name="bookings")
    op.drop_index("ix_bookings_property_owner_id", table_name="bookings")
    op.drop_index("ix_bookings_property_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_properties_owner_id", table_name="properties")
    op.drop_table("properties")
