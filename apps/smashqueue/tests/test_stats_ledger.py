"""
Tests for the stats ledger: tier classification, outcome derivation and
the persisted read-modify-write.
"""

import pytest
from sqlalchemy import select

from smashqueue.database.models import SkillLevel, UserStats
from smashqueue.services.errors import IntegrityViolationError
from smashqueue.services.stats_ledger import (
    apply_outcome,
    check_invariants,
    new_user_stats,
    skill_tier,
    stats_to_dict,
)


def play(outcomes, participant_id=1):
    stats = new_user_stats(participant_id)
    for won in outcomes:
        apply_outcome(stats, won)
    return stats


# ============================================================================
# skill_tier
# ============================================================================

@pytest.mark.parametrize(
    "win_rate,total,expected",
    [
        (100.0, 4, SkillLevel.BEGINNER),
        (100.0, 5, SkillLevel.EXPERT),
        (75.0, 8, SkillLevel.EXPERT),
        (74.99, 8, SkillLevel.ADVANCED),
        (55.0, 20, SkillLevel.ADVANCED),
        (54.99, 20, SkillLevel.INTERMEDIATE),
        (40.0, 10, SkillLevel.INTERMEDIATE),
        (39.99, 10, SkillLevel.BEGINNER),
        (0.0, 0, SkillLevel.BEGINNER),
    ],
)
def test_skill_tier_thresholds(win_rate, total, expected):
    assert skill_tier(win_rate, total) == expected


# ============================================================================
# apply_outcome
# ============================================================================

def test_new_user_stats_is_zeroed():
    stats = new_user_stats(7)
    assert stats.participant_id == 7
    assert stats.total_matches == 0
    assert stats.win_rate == 0.0
    assert stats.current_streak == 0
    assert stats.skill_level == SkillLevel.BEGINNER
    check_invariants(stats)


def test_win_win_loss():
    stats = play([True, True, False])

    assert stats.total_matches == 3
    assert stats.wins == 2
    assert stats.losses == 1
    assert stats.current_streak == -1
    assert stats.best_streak == 2
    assert stats.win_rate == 66.67
    assert stats.skill_level == SkillLevel.BEGINNER
    assert stats.skill_points == 3 * 10 + 2 * 5


def test_losing_streak_is_negative_and_best_streak_stays_zero():
    stats = play([False, False, False])

    assert stats.current_streak == -3
    assert stats.best_streak == 0
    assert stats.win_rate == 0.0
    assert stats.skill_points == 30


def test_win_after_losses_resets_streak_to_one():
    stats = play([False, False, True])
    assert stats.current_streak == 1
    assert stats.best_streak == 1


@pytest.mark.parametrize(
    "outcomes,expected",
    [
        ([True] * 5, SkillLevel.EXPERT),
        ([True, True, True, True, False], SkillLevel.EXPERT),
        ([True, True, True, False, False], SkillLevel.ADVANCED),
        ([True, True, False, False, False], SkillLevel.INTERMEDIATE),
        ([True, False, False, False, False], SkillLevel.BEGINNER),
    ],
)
def test_tier_after_five_matches(outcomes, expected):
    assert play(outcomes).skill_level == expected


def test_best_streak_never_decreases():
    stats = new_user_stats(1)
    best_seen = 0
    for won in [True, True, True, False, True, False, False, True, True, True, True]:
        previous_best = stats.best_streak
        apply_outcome(stats, won)
        check_invariants(stats, previous_best)
        assert stats.best_streak >= best_seen
        best_seen = stats.best_streak
    assert stats.best_streak == 4


def test_check_invariants_rejects_inconsistent_record():
    stats = play([True, False])
    stats.wins = 5

    with pytest.raises(IntegrityViolationError):
        check_invariants(stats)


def test_check_invariants_rejects_decreased_best_streak():
    stats = play([True])

    with pytest.raises(IntegrityViolationError):
        check_invariants(stats, previous_best_streak=3)


def test_stats_to_dict():
    data = stats_to_dict(play([True]))
    assert data["skill_level"] == "Beginner"
    assert data["win_rate"] == 100.0
    assert data["current_streak"] == 1


# ============================================================================
# Persisted ledger
# ============================================================================

@pytest.mark.asyncio
async def test_get_stats_creates_zeroed_record(queue_engine, db_session):
    stats = await queue_engine.get_stats(42)

    assert stats["participant_id"] == 42
    assert stats["total_matches"] == 0
    assert stats["skill_level"] == "Beginner"

    result = await db_session.execute(
        select(UserStats.participant_id).where(UserStats.participant_id == 42)
    )
    assert result.scalar_one() == 42


@pytest.mark.asyncio
async def test_record_outcome_persists(queue_engine):
    await queue_engine.record_outcome(3, True)
    await queue_engine.record_outcome(3, True)
    stats = await queue_engine.record_outcome(3, False)

    assert stats["wins"] == 2
    assert stats["losses"] == 1
    assert stats["current_streak"] == -1
    assert stats["best_streak"] == 2

    reread = await queue_engine.get_stats(3)
    assert reread["total_matches"] == 3
    assert reread["win_rate"] == 66.67
    assert reread["skill_points"] == 40
