"""Per-property serialization of check-then-write sequences.

A conflict check followed by an insert is two store operations; without a lock
two requests for overlapping slots can both pass the check. Every timeline
mutation therefore runs inside ``property_timeline_lock``:

* an ``asyncio.Lock`` per property id serializes requests in this process, and
* ``SELECT ... FOR UPDATE`` on the property row makes PostgreSQL serialize
  writers across processes until the surrounding transaction commits.

The lock must be held until the transaction commits.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cowork.booking.errors import NotFoundError
from cowork.models.property import Property

logger = logging.getLogger(__name__)


class PropertyLockRegistry:
    """``asyncio.Lock`` objects keyed by property id, kept only while in use.

    Each lock carries a count of the tasks holding or waiting for it. The entry
    is dropped when the count returns to zero, so the registry stays as small
    as the set of properties currently being written.
    """

    def __init__(self) -> None:
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}
        self._users: dict[uuid.UUID, int] = {}

    @asynccontextmanager
    async def hold(self, property_id: uuid.UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(property_id, asyncio.Lock())
        self._users[property_id] = self._users.get(property_id, 0) + 1
        try:
            if lock.locked():
                logger.debug("Waiting for timeline lock on property %s", property_id)
            async with lock:
                yield
        finally:
            self._users[property_id] -= 1
            if self._users[property_id] == 0:
                del self._users[property_id]
                del self._locks[property_id]

    def __len__(self) -> int:
        return len(self._locks)


registry = PropertyLockRegistry()


async def load_property_for_update(db: AsyncSession, property_id: uuid.UUID) -> Property:
    """Load the property row with a row lock (ignored on backends without FOR UPDATE)."""
    result = await db.execute(
        select(Property)
        .where(Property.id == property_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    prop = result.scalar_one_or_none()
    if prop is None:
        raise NotFoundError("property", property_id)
    return prop


@asynccontextmanager
async def property_timeline_lock(
    db: AsyncSession,
    property_id: uuid.UUID,
    locks: PropertyLockRegistry = registry,
) -> AsyncIterator[Property]:
    """Hold the property's timeline lock and yield the row-locked property."""
    async with locks.hold(property_id):
        yield await load_property_for_update(db, property_id)
