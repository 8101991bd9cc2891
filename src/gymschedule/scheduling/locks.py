"""Per-entity serialization for read-validate-write sequences.

Locks are process-local; writers in other processes are caught by the
database uniqueness constraint on schedule slots instead.
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

logger = logging.getLogger(__name__)

TRAINER = "trainer"
REGISTRATION = "registration"
SLOT = "slot"

# Locks are always taken in this order so multi-entity verbs cannot deadlock.
_KIND_ORDER = {TRAINER: 0, REGISTRATION: 1, SLOT: 2}

LockKey = tuple[str, int]


class EntityLocks:
    """A registry of asyncio locks keyed by ``(kind, entity_id)``."""

    def __init__(self) -> None:
        # Weak values: a lock disappears once nobody holds or waits on it.
        self._locks: weakref.WeakValueDictionary[LockKey, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *keys: LockKey) -> AsyncIterator[None]:
        """Acquire every lock in ``keys`` in the global order, release on exit."""
        ordered = sorted(set(keys), key=lambda k: (_KIND_ORDER[k[0]], k[1]))
        async with AsyncExitStack() as stack:
            for key in ordered:
                lock = self._get(key)
                if lock.locked():
                    logger.debug("Waiting for %s lock %s", key[0], key[1])
                await stack.enter_async_context(lock)
            yield

    def __len__(self) -> int:
        return len(self._locks)


def trainer_key(trainer_id: int) -> LockKey:
    return (TRAINER, trainer_id)


def registration_key(registration_id: int) -> LockKey:
    return (REGISTRATION, registration_id)


def slot_key(slot_id: int) -> LockKey:
    return (SLOT, slot_id)
