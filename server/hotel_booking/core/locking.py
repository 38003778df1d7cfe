"""Inventory locks serializing allocation changes per (hotel, room type)."""

import asyncio
import logging
import weakref
from collections import defaultdict
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Iterable, Tuple

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Fallback locks for databases without advisory locks, one table per event loop
_local_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, defaultdict]" = (
    weakref.WeakKeyDictionary()
)


def inventory_lock_key(hotel_id: int, room_type_id: int) -> str:
    return f"inventory:{hotel_id}:{room_type_id}"


def _loop_locks() -> defaultdict:
    loop = asyncio.get_running_loop()
    locks = _local_locks.get(loop)
    if locks is None:
        locks = defaultdict(asyncio.Lock)
        _local_locks[loop] = locks
    return locks


def _is_postgres(db: AsyncSession) -> bool:
    return bool(db.bind) and db.bind.dialect.name == "postgresql"


@asynccontextmanager
async def inventory_lock(
    db: AsyncSession,
    scopes: Iterable[Tuple[int, int]],
) -> AsyncIterator[None]:
    """
    Hold the inventory lock of every (hotel_id, room_type_id) in ``scopes``.

    Keys are acquired in sorted order so that overlapping requests cannot
    deadlock. On PostgreSQL the lock is a transaction-scoped advisory lock
    released at commit or rollback; elsewhere an in-process ``asyncio.Lock``
    is held until the block exits, so callers must commit inside the block.

    Args:
        db: Session whose transaction owns the lock
        scopes: (hotel_id, room_type_id) pairs touched by the operation
    """
    keys = sorted({inventory_lock_key(hotel_id, room_type_id) for hotel_id, room_type_id in scopes})

    if _is_postgres(db):
        for key in keys:
            await db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
                {"lock_key": key}
            )
        logger.debug("Acquired advisory inventory locks", extra={"lock_keys": keys})
        yield
        return

    locks = _loop_locks()
    async with AsyncExitStack() as stack:
        for key in keys:
            await stack.enter_async_context(locks[key])
        logger.debug("Acquired local inventory locks", extra={"lock_keys": keys})
        yield
