"""SQLAlchemy models for the cowork booking engine.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from cowork.models.booking import Booking
from cowork.models.property import Property

__all__ = [
    "Booking",
    "Property",
]
