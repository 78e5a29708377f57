"""add_booking_ratings

Revision ID: 8b1e5d0c7a24
Revises: 3f7c2a9d41b8
Create Date: 2026-10-18 15:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b1e5d0c7a24'
down_revision: Union[str, Sequence[str], None] = '3f7c2a9d41b8'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


RATING_COLUMNS = (
    "rating_overall",
    "rating_cleanliness",
    "rating_amenities",
    "rating_location",
    "rating_value",
)


def upgrade() -> None:
    for name in RATING_COLUMNS:
        op.add_column("bookings", sa.Column(name, sa.Integer(), nullable=True))
    op.add_column("bookings", sa.Column("review_text", sa.String(length=1000), nullable=True))
    op.add_column("bookings", sa.Column("review_date", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    op.drop_column("bookings", "review_date")
    op.drop_column("bookings", "review_text")
    for name in reversed(RATING_COLUMNS):
        op.drop_column("bookings", name)
