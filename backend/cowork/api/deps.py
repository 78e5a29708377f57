"""Shared API dependencies: single import point for all routers.

Re-exports database session, clock and authentication dependencies so that
router modules can import everything they need from one place::

    from cowork.api.deps import get_db, get_current_principal
"""

from cowork.auth.dependencies import (
    Principal,
    get_current_principal,
    require_admin,
    require_payment_recorder,
)
from cowork.booking.clock import get_clock
from cowork.database import get_db

__all__ = [
    "get_db",
    "get_clock",
    "get_current_principal",
    "require_admin",
    "require_payment_recorder",
    "Principal",
]
