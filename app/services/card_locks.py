"""
Per-card mutexes for the transfer engine.

Balance updates are read-modify-write, so two transfers touching the same
card must not interleave. Each card id maps to its own asyncio.Lock; a
transfer holds the locks of both of its cards until its database
transaction has committed.

Deadlock prevention:
  Locks are always acquired in ascending card-id order, no matter which
  card is the source. Two transfers between the same pair of cards in
  opposite directions therefore queue on the same first lock instead of
  each holding one lock and waiting for the other.

The registry keeps locks in a WeakValueDictionary: a lock exists only
while some task holds or waits on it, so the map doesn't grow with the
number of cards ever touched.

These locks serialize transfers inside one process. Across processes the
row locks taken by SELECT ... FOR UPDATE (PostgreSQL) play the same role.
"""

import asyncio
import uuid
import weakref
from contextlib import AsyncExitStack, asynccontextmanager


class CardLockRegistry:
    """Hands out one asyncio.Lock per card id."""

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, card_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(card_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[card_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *card_ids: uuid.UUID):
        """
        Acquire the locks for all given cards in ascending id order.

        Duplicate ids are acquired once. Locks are released in reverse
        order when the block exits, including on error or cancellation.
        """
        ordered = sorted(set(card_ids))
        # Keep strong references for the duration of the block
        locks = [self.lock_for(card_id) for card_id in ordered]
        async with AsyncExitStack() as stack:
            for lock in locks:
                await stack.enter_async_context(lock)
            yield


# Shared by every request served by this process
card_locks = CardLockRegistry()
