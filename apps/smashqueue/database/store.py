"""
Transactional store handle shared by the engine components.

Every engine operation runs inside ``Store.transaction()``: one database
transaction with a bounded timeout that commits on success and rolls back on
any exception, task cancellation included. Conflicting mutations are
serialized with two kinds of locks, always taken in the same order:

1. the queue-wide lock (join, leave, call-next, match create/resolve);
2. per-participant locks in ascending participant id (stats updates).

The locks are in-process ``asyncio.Lock`` objects. On PostgreSQL the same
keys are also taken as transaction-scoped advisory locks so that several API
worker processes serialize against each other.
"""

import asyncio
import logging
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, Set

from sqlalchemy import text
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from smashqueue.services.errors import IntegrityViolationError, StoreUnavailableError

logger = logging.getLogger(__name__)

# Advisory lock keys: (namespace, key) pairs
QUEUE_LOCK_NAMESPACE = 7340
PARTICIPANT_LOCK_NAMESPACE = 7341


@asynccontextmanager
async def _held(lock: asyncio.Lock):
    await lock.acquire()
    try:
        yield lock
    finally:
        lock.release()


class StoreTransaction:
    """An open transaction: the session plus the locks held until it ends."""

    def __init__(self, store: "Store", session: AsyncSession, stack: AsyncExitStack):
        self.store = store
        self.session = session
        self._stack = stack
        self._locked_participants: Set[int] = set()

    async def lock_participants(self, participant_ids: Iterable[int]) -> None:
        """
        Take the per-participant locks and hold them until commit/rollback.

        Call once per transaction with every participant the transaction
        will update, so that locks are always acquired in ascending order.
        """
        for participant_id in sorted(set(participant_ids) - self._locked_participants):
            lock = self.store._participant_lock(participant_id)
            await self._stack.enter_async_context(_held(lock))
            self._locked_participants.add(participant_id)
            if self.store.is_postgres(self.session):
                await self.session.execute(
                    text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
                    {"namespace": PARTICIPANT_LOCK_NAMESPACE, "key": participant_id},
                )


class Store:
    """Session factory plus the locking discipline of the engine."""

    def __init__(self, session_factory: async_sessionmaker, timeout_seconds: Optional[float] = None):
        if timeout_seconds is None:
            from smashqueue.database.db import STORE_TIMEOUT_SECONDS

            timeout_seconds = STORE_TIMEOUT_SECONDS
        self._session_factory = session_factory
        self.timeout_seconds = timeout_seconds
        self._queue_lock = asyncio.Lock()
        self._participant_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _participant_lock(self, participant_id: int) -> asyncio.Lock:
        lock = self._participant_locks.get(participant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._participant_locks[participant_id] = lock
        return lock

    @staticmethod
    def is_postgres(session: AsyncSession) -> bool:
        return session.get_bind().dialect.name == "postgresql"

    @asynccontextmanager
    async def transaction(self, lock_queue: bool = False) -> AsyncIterator[StoreTransaction]:
        """
        Open one atomic unit of work.

        Args:
            lock_queue: Hold the queue-wide lock for the whole transaction

        Raises:
            StoreUnavailableError: Timeout, lost connection or pool exhaustion
            IntegrityViolationError: The store rejected the write
        """
        try:
            async with asyncio.timeout(self.timeout_seconds):
                async with AsyncExitStack() as stack:
                    if lock_queue:
                        await stack.enter_async_context(_held(self._queue_lock))
                    session = await stack.enter_async_context(self._session_factory())
                    async with session.begin():
                        if lock_queue and self.is_postgres(session):
                            await session.execute(
                                text("SELECT pg_advisory_xact_lock(:namespace, 0)"),
                                {"namespace": QUEUE_LOCK_NAMESPACE},
                            )
                        yield StoreTransaction(self, session, stack)
        except TimeoutError as e:
            logger.error(f"Store transaction timed out after {self.timeout_seconds}s")
            raise StoreUnavailableError("Store transaction timed out") from e
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            logger.error(f"Store unavailable: {e}")
            raise StoreUnavailableError(f"Store unavailable: {e}") from e
        except IntegrityError as e:
            logger.error(f"Store rejected write, transaction aborted: {e}")
            raise IntegrityViolationError(f"Store rejected write: {e.orig}") from e
