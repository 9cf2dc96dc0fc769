"""
Waiting-line manager.

Maintains the single ordered line of participants waiting for a court.
Waiting positions are always the dense sequence 1..K: every operation that
removes a waiting entry renumbers the rest inside the same transaction,
so "next in line" is position 1 and displayed positions never drift.

Entry lifecycle: waiting -> called -> playing -> deleted. Leaving while
waiting deletes the entry; a resolved match deletes its playing entries.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from smashqueue.database.models import Match, MatchResult, QueueEntry, QueueEntryStatus
from smashqueue.database.store import Store
from smashqueue.services.errors import (
    AlreadyQueuedError,
    IntegrityViolationError,
    NotQueuedError,
    QueueEmptyError,
)
from smashqueue.utils.constants import (
    COURTS,
    CURRENTLY_PLAYING_LIMIT,
    DEFAULT_CALL_COUNT,
    MATCH_DURATION_MINUTES,
)
from smashqueue.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)


def entry_to_dict(entry: QueueEntry) -> Dict:
    return {
        "id": entry.id,
        "participant_id": entry.participant_id,
        "position": entry.position,
        "status": QueueEntryStatus(entry.status).value,
        "joined_at": isoformat_or_none(entry.joined_at),
        "called_at": isoformat_or_none(entry.called_at),
    }


def estimated_wait_minutes(position: int) -> int:
    """Minutes until a participant at `position` is likely called."""
    return max(position - 1, 0) * MATCH_DURATION_MINUTES


def format_wait(minutes: int) -> str:
    if minutes <= 0:
        return "Next up!"
    return f"~{minutes} min"


async def next_available_court(session: AsyncSession) -> str:
    """
    First configured court without a pending match.

    Falls back to the first court when every court is busy.
    """
    result = await session.execute(
        select(Match.court).where(Match.result == MatchResult.PENDING).distinct()
    )
    busy = set(result.scalars().all())
    for court in COURTS:
        if court not in busy:
            return court
    return COURTS[0]


async def _waiting_entries(session: AsyncSession, limit: Optional[int] = None) -> List[QueueEntry]:
    query = (
        select(QueueEntry)
        .where(QueueEntry.status == QueueEntryStatus.WAITING)
        .order_by(QueueEntry.position.asc(), QueueEntry.id.asc())
    )
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def _active_entry(session: AsyncSession, participant_id: int) -> Optional[QueueEntry]:
    result = await session.execute(
        select(QueueEntry).where(QueueEntry.participant_id == participant_id)
    )
    return result.scalar_one_or_none()


async def renumber_waiting(session: AsyncSession) -> int:
    """
    Reassign waiting positions to 1..K preserving their relative order.

    Must run in the same transaction as the removal that opened the gap,
    with the queue lock held.

    Returns:
        K, the number of waiting entries
    """
    waiting = await _waiting_entries(session)
    for new_position, entry in enumerate(waiting, start=1):
        if entry.position != new_position:
            entry.position = new_position
    await session.flush()
    await verify_dense_positions(session)
    return len(waiting)


async def verify_dense_positions(session: AsyncSession) -> None:
    """Raise IntegrityViolationError unless waiting positions are exactly 1..K."""
    result = await session.execute(
        select(QueueEntry.position)
        .where(QueueEntry.status == QueueEntryStatus.WAITING)
        .order_by(QueueEntry.position.asc())
    )
    positions = list(result.scalars().all())
    if positions != list(range(1, len(positions) + 1)):
        logger.error(f"Waiting positions are not dense after write: {positions}")
        raise IntegrityViolationError("Waiting positions are not a dense 1..K sequence")


class WaitingLineManager:
    """Join / leave / call-next over the waiting line."""

    def __init__(self, store: Store):
        self.store = store

    async def join(self, participant_id: int) -> Dict:
        """
        Append a participant to the end of the waiting line.

        A participant who was called but never put into a match gives up
        the called entry and rejoins at the tail.

        Raises:
            AlreadyQueuedError: The participant is waiting or playing
        """
        async with self.store.transaction(lock_queue=True) as txn:
            session = txn.session
            existing = await _active_entry(session, participant_id)
            if existing is not None and existing.status == QueueEntryStatus.CALLED:
                await session.delete(existing)
                await session.flush()
                logger.info(f"Participant {participant_id} rejoined after being called")
            elif existing is not None:
                logger.warning(
                    f"Participant {participant_id} tried to join while {QueueEntryStatus(existing.status).value}"
                )
                raise AlreadyQueuedError("Participant is already in the queue")

            max_result = await session.execute(
                select(func.coalesce(func.max(QueueEntry.position), 0)).where(
                    QueueEntry.status == QueueEntryStatus.WAITING
                )
            )
            next_position = (max_result.scalar() or 0) + 1

            entry = QueueEntry(
                participant_id=participant_id,
                position=next_position,
                status=QueueEntryStatus.WAITING,
                joined_at=utcnow(),
            )
            session.add(entry)
            await session.flush()
            logger.info(f"Participant {participant_id} joined the queue at position {next_position}")
            return entry_to_dict(entry)

    async def leave(self, participant_id: int) -> None:
        """
        Remove a participant's waiting entry and close the gap.

        Raises:
            NotQueuedError: The participant has no waiting entry
        """
        async with self.store.transaction(lock_queue=True) as txn:
            session = txn.session
            result = await session.execute(
                delete(QueueEntry).where(
                    QueueEntry.participant_id == participant_id,
                    QueueEntry.status == QueueEntryStatus.WAITING,
                )
            )
            if result.rowcount == 0:
                raise NotQueuedError("Participant is not in the queue")
            remaining = await renumber_waiting(session)
            logger.info(f"Participant {participant_id} left the queue ({remaining} waiting)")

    async def call_next(self, count: int = DEFAULT_CALL_COUNT) -> List[Dict]:
        """
        Call the `count` participants at the front of the line.

        Returns fewer entries when fewer are waiting. A non-positive count
        falls back to DEFAULT_CALL_COUNT.

        Returns:
            Called entries in ascending position order

        Raises:
            QueueEmptyError: Nobody is waiting
        """
        if count <= 0:
            count = DEFAULT_CALL_COUNT

        async with self.store.transaction(lock_queue=True) as txn:
            session = txn.session
            selected = await _waiting_entries(session, limit=count)
            if not selected:
                raise QueueEmptyError("Queue is empty")

            now = utcnow()
            for entry in selected:
                entry.status = QueueEntryStatus.CALLED
                entry.called_at = now
            await session.flush()

            called = [entry_to_dict(entry) for entry in selected]
            remaining = await renumber_waiting(session)
            logger.info(
                f"Called {len(called)} participant(s) "
                f"{[entry['participant_id'] for entry in called]} ({remaining} still waiting)"
            )
            return called

    async def status(self, participant_id: Optional[int] = None) -> Dict:
        """
        Read-only snapshot of the line, personalised when a participant is given.

        Returns:
            dict with total_in_queue, your_position, estimated_wait_minutes,
            estimated_wait, next_court and currently_playing
        """
        async with self.store.transaction() as txn:
            session = txn.session
            count_result = await session.execute(
                select(func.count(QueueEntry.id)).where(
                    QueueEntry.status == QueueEntryStatus.WAITING
                )
            )
            info = {
                "total_in_queue": count_result.scalar() or 0,
                "your_position": None,
                "estimated_wait_minutes": None,
                "estimated_wait": None,
                "next_court": None,
                "currently_playing": [],
            }

            if participant_id is not None:
                entry = await _active_entry(session, participant_id)
                if entry is not None and entry.status == QueueEntryStatus.WAITING:
                    minutes = estimated_wait_minutes(entry.position)
                    info["your_position"] = entry.position
                    info["estimated_wait_minutes"] = minutes
                    info["estimated_wait"] = format_wait(minutes)
                    info["next_court"] = await next_available_court(session)

            playing_result = await session.execute(
                select(QueueEntry)
                .where(QueueEntry.status == QueueEntryStatus.PLAYING)
                .order_by(QueueEntry.called_at.desc(), QueueEntry.id.desc())
                .limit(CURRENTLY_PLAYING_LIMIT)
            )
            info["currently_playing"] = [
                entry_to_dict(entry) for entry in playing_result.scalars().all()
            ]
            return info

    async def mark_playing(self, session: AsyncSession, participant_ids: Iterable[int]) -> int:
        """
        Move waiting/called entries of the given participants to playing.

        Runs inside the caller's transaction, which must hold the queue lock.
        Participants without an entry are skipped, and so are participants
        already playing (logged, since their entry is released by whichever
        match resolves first).

        Returns:
            Number of entries moved to playing
        """
        participant_ids = list(participant_ids)
        result = await session.execute(
            select(QueueEntry).where(QueueEntry.participant_id.in_(participant_ids))
        )
        entries = []
        for entry in result.scalars().all():
            if entry.status == QueueEntryStatus.PLAYING:
                logger.warning(
                    f"Participant {entry.participant_id} is already playing another match"
                )
            else:
                entries.append(entry)
        left_waiting = False
        now = utcnow()
        for entry in entries:
            if entry.status == QueueEntryStatus.WAITING:
                left_waiting = True
            if entry.called_at is None:
                entry.called_at = now
            entry.status = QueueEntryStatus.PLAYING
        await session.flush()
        if left_waiting:
            await renumber_waiting(session)
        if entries:
            logger.info(f"Participants {[e.participant_id for e in entries]} are now playing")
        return len(entries)

    async def release_from_playing(self, session: AsyncSession, participant_ids: Iterable[int]) -> int:
        """
        Delete the playing entries of the given participants.

        Runs inside the caller's transaction, which must hold the queue lock.

        Returns:
            Number of entries removed
        """
        result = await session.execute(
            delete(QueueEntry).where(
                QueueEntry.participant_id.in_(list(participant_ids)),
                QueueEntry.status == QueueEntryStatus.PLAYING,
            )
        )
        return result.rowcount or 0
