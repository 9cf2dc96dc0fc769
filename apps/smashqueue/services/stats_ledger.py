"""
Stats ledger: derives each participant's running record from match outcomes.

The derivation itself is pure (``skill_tier`` and ``apply_outcome``); the
ledger only adds the read-modify-write of one ``UserStats`` row, serialized
per participant.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smashqueue.database.models import SkillLevel, UserStats
from smashqueue.database.store import Store
from smashqueue.services.errors import IntegrityViolationError
from smashqueue.utils.constants import (
    ADVANCED_WIN_RATE,
    EXPERT_WIN_RATE,
    INTERMEDIATE_WIN_RATE,
    POINTS_PER_MATCH,
    POINTS_PER_WIN,
    PROVISIONAL_MATCHES,
)
from smashqueue.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)


def skill_tier(win_rate: float, total_matches: int) -> SkillLevel:
    """
    Classify a participant from win rate and match volume.

    Fewer than PROVISIONAL_MATCHES matches is always Beginner.
    """
    if total_matches < PROVISIONAL_MATCHES:
        return SkillLevel.BEGINNER
    if win_rate >= EXPERT_WIN_RATE:
        return SkillLevel.EXPERT
    if win_rate >= ADVANCED_WIN_RATE:
        return SkillLevel.ADVANCED
    if win_rate >= INTERMEDIATE_WIN_RATE:
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER


def new_user_stats(participant_id: int) -> UserStats:
    """Build a zeroed record (column defaults only apply on insert)."""
    return UserStats(
        participant_id=participant_id,
        total_matches=0,
        wins=0,
        losses=0,
        win_rate=0.0,
        current_streak=0,
        best_streak=0,
        skill_level=SkillLevel.BEGINNER,
        skill_points=0,
        updated_at=utcnow(),
    )


def apply_outcome(stats: UserStats, won: bool) -> UserStats:
    """
    Apply one match outcome to a stats record in place.

    A win extends a win streak or resets a losing streak to +1; a loss
    extends a losing streak or resets a win streak to -1.
    """
    stats.total_matches += 1
    if won:
        stats.wins += 1
        stats.current_streak = max(stats.current_streak, 0) + 1
    else:
        stats.losses += 1
        stats.current_streak = min(stats.current_streak, 0) - 1
    stats.best_streak = max(stats.best_streak, stats.current_streak)
    stats.win_rate = round(stats.wins * 100 / stats.total_matches, 2)
    stats.skill_level = skill_tier(stats.win_rate, stats.total_matches)
    stats.skill_points = stats.total_matches * POINTS_PER_MATCH + stats.wins * POINTS_PER_WIN
    return stats


def check_invariants(stats: UserStats, previous_best_streak: int = 0) -> None:
    """Raise IntegrityViolationError if the record is internally inconsistent."""
    problems = []
    if stats.total_matches != stats.wins + stats.losses:
        problems.append("total_matches != wins + losses")
    if abs(stats.current_streak) > stats.total_matches:
        problems.append("|current_streak| > total_matches")
    if stats.best_streak < max(stats.current_streak, 0, previous_best_streak):
        problems.append("best_streak decreased or below current_streak")
    expected_rate = round(stats.wins * 100 / stats.total_matches, 2) if stats.total_matches else 0.0
    if abs(stats.win_rate - expected_rate) > 0.005:
        problems.append("win_rate out of sync")
    if problems:
        logger.error(
            f"Stats invariant violated for participant {stats.participant_id}: {', '.join(problems)}"
        )
        raise IntegrityViolationError(
            f"Stats invariant violated for participant {stats.participant_id}: {', '.join(problems)}"
        )


def stats_to_dict(stats: UserStats) -> Dict:
    return {
        "participant_id": stats.participant_id,
        "total_matches": stats.total_matches,
        "wins": stats.wins,
        "losses": stats.losses,
        "win_rate": stats.win_rate,
        "current_streak": stats.current_streak,
        "best_streak": stats.best_streak,
        "skill_level": SkillLevel(stats.skill_level).value,
        "skill_points": stats.skill_points,
        "updated_at": isoformat_or_none(stats.updated_at),
    }


class StatsLedger:
    """Read-modify-write of UserStats rows."""

    def __init__(self, store: Store):
        self.store = store

    async def _load_for_update(self, session: AsyncSession, participant_id: int) -> Optional[UserStats]:
        result = await session.execute(
            select(UserStats)
            .where(UserStats.participant_id == participant_id)
            .with_for_update()  # Row lock on PostgreSQL, ignored by SQLite
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, session: AsyncSession, participant_id: int) -> UserStats:
        """Load a participant's record, inserting a zeroed one if absent."""
        stats = await self._load_for_update(session, participant_id)
        if stats is None:
            stats = new_user_stats(participant_id)
            session.add(stats)
            await session.flush()
        return stats

    async def apply(self, session: AsyncSession, participant_id: int, won: bool) -> UserStats:
        """
        Apply an outcome inside the caller's transaction.

        The caller must hold the participant's lock
        (``StoreTransaction.lock_participants``).
        """
        stats = await self.get_or_create(session, participant_id)
        previous_best = stats.best_streak
        apply_outcome(stats, won)
        stats.updated_at = utcnow()
        check_invariants(stats, previous_best)
        await session.flush()
        logger.info(
            f"Participant {participant_id} {'won' if won else 'lost'}: "
            f"{stats.wins}-{stats.losses}, streak {stats.current_streak}, {SkillLevel(stats.skill_level).value}"
        )
        return stats

    async def record_outcome(self, participant_id: int, won: bool) -> Dict:
        """
        Record one match outcome for a participant in its own transaction.

        Returns:
            Updated stats dict
        """
        async with self.store.transaction() as txn:
            await txn.lock_participants([participant_id])
            stats = await self.apply(txn.session, participant_id, won)
            return stats_to_dict(stats)

    async def get_stats(self, participant_id: int) -> Dict:
        """Return a participant's stats, creating a zeroed record on first read."""
        async with self.store.transaction() as txn:
            await txn.lock_participants([participant_id])
            stats = await self.get_or_create(txn.session, participant_id)
            return stats_to_dict(stats)
