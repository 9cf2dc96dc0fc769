"""
Match lifecycle: creation from two teams, result recording, history.

A match is created pending, resolved exactly once by ``record_result`` and
never deleted. Resolution, the stats update of every participant and the
release of their queue entries commit together or not at all.
"""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smashqueue.database.models import Match, MatchParticipant, MatchResult, MatchScore
from smashqueue.database.store import Store
from smashqueue.services.errors import (
    InvalidScoreError,
    InvalidTeamError,
    MatchAlreadyResolvedError,
    MatchNotFoundError,
)
from smashqueue.services.queue_service import WaitingLineManager, next_available_court
from smashqueue.services.stats_ledger import StatsLedger
from smashqueue.utils.constants import (
    DEFAULT_COMPLETED_LIMIT,
    DEFAULT_HISTORY_LIMIT,
    MAX_TEAM_SIZE,
    MIN_TEAM_SIZE,
)
from smashqueue.utils.datetime_utils import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)


# ============================================================================
# Pure helpers
# ============================================================================

def validate_teams(team1: Sequence[int], team2: Sequence[int]) -> None:
    """
    Check team sizes and that no participant appears twice.

    Raises:
        InvalidTeamError: On any violation
    """
    for name, team in (("team1", team1), ("team2", team2)):
        if not MIN_TEAM_SIZE <= len(team) <= MAX_TEAM_SIZE:
            raise InvalidTeamError(
                f"Each team must have {MIN_TEAM_SIZE}-{MAX_TEAM_SIZE} players ({name} has {len(team)})"
            )
        if len(set(team)) != len(team):
            raise InvalidTeamError(f"{name} lists the same player twice")
    if set(team1) & set(team2):
        raise InvalidTeamError("A player cannot be on both teams")


def determine_result(scores: Sequence[Dict]) -> MatchResult:
    """
    Decide the match result from per-game scores.

    A game goes to the team with strictly more points; the team that won
    more games wins the match. Equal game wins (including no games) is a draw.
    """
    team1_games = 0
    team2_games = 0
    for score in scores:
        if score["team1_score"] > score["team2_score"]:
            team1_games += 1
        elif score["team2_score"] > score["team1_score"]:
            team2_games += 1
    if team1_games > team2_games:
        return MatchResult.TEAM1
    if team2_games > team1_games:
        return MatchResult.TEAM2
    return MatchResult.DRAW


def team_ids(match: Match, team_no: int) -> List[int]:
    return [p.participant_id for p in match.participants if p.team_no == team_no]


def match_to_dict(match: Match) -> Dict:
    return {
        "id": match.id,
        "court": match.court,
        "team1": team_ids(match, 1),
        "team2": team_ids(match, 2),
        "result": MatchResult(match.result).value,
        "scores": [
            {
                "game": score.game_number,
                "team1_score": score.team1_score,
                "team2_score": score.team2_score,
            }
            for score in match.scores
        ],
        "started_at": isoformat_or_none(match.started_at),
        "ended_at": isoformat_or_none(match.ended_at),
        "created_at": isoformat_or_none(match.created_at),
    }


def participant_won(match: Match, participant_id: int) -> bool:
    """True only when the participant's team is the recorded winner."""
    if match.result == MatchResult.TEAM1:
        return participant_id in team_ids(match, 1)
    if match.result == MatchResult.TEAM2:
        return participant_id in team_ids(match, 2)
    return False


# ============================================================================
# Lifecycle
# ============================================================================

class MatchLifecycle:
    """Creates, resolves and lists matches."""

    def __init__(self, store: Store, waiting_line: WaitingLineManager, stats: StatsLedger):
        self.store = store
        self.waiting_line = waiting_line
        self.stats = stats

    async def create(self, court: Optional[str], team1: Sequence[int], team2: Sequence[int]) -> Dict:
        """
        Create a pending match and move its players to playing.

        Args:
            court: Court label; empty picks the next available court
            team1: Ordered participant ids (1-2)
            team2: Ordered participant ids (1-2)

        Raises:
            InvalidTeamError: Bad team size, duplicates or overlap
        """
        team1 = list(team1)
        team2 = list(team2)
        validate_teams(team1, team2)

        async with self.store.transaction(lock_queue=True) as txn:
            session = txn.session
            if not court:
                court = await next_available_court(session)

            now = utcnow()
            match = Match(
                court=court,
                result=MatchResult.PENDING,
                started_at=now,
                created_at=now,
                participants=[],
                scores=[],
            )
            for team_no, team in ((1, team1), (2, team2)):
                for slot, participant_id in enumerate(team, start=1):
                    match.participants.append(
                        MatchParticipant(participant_id=participant_id, team_no=team_no, slot=slot)
                    )
            session.add(match)
            await session.flush()

            await self.waiting_line.mark_playing(session, team1 + team2)
            logger.info(f"Match {match.id} created on {court}: {team1} vs {team2}")
            return match_to_dict(match)

    async def _get_match_for_update(self, session: AsyncSession, match_id: int) -> Optional[Match]:
        result = await session.execute(
            select(Match).where(Match.id == match_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def record_result(self, match_id: int, scores: Sequence[Dict]) -> Dict:
        """
        Resolve a pending match from its game scores.

        Scores are stored in submitted order as games 1..n. Unless the
        result is a draw, every participant's stats are updated; then all
        of them leave the playing state.

        Args:
            match_id: Match to resolve
            scores: dicts with team1_score and team2_score

        Raises:
            MatchNotFoundError: No such match
            MatchAlreadyResolvedError: The match already has a result
            InvalidScoreError: A game score is negative
        """
        scores = list(scores)
        for score in scores:
            if score["team1_score"] < 0 or score["team2_score"] < 0:
                raise InvalidScoreError("Game scores cannot be negative")

        async with self.store.transaction(lock_queue=True) as txn:
            session = txn.session
            match = await self._get_match_for_update(session, match_id)
            if match is None:
                raise MatchNotFoundError(f"Match {match_id} not found")
            if match.result != MatchResult.PENDING:
                logger.warning(
                    f"Refusing to re-record match {match_id} (already {MatchResult(match.result).value})"
                )
                raise MatchAlreadyResolvedError(f"Match {match_id} already has a result")

            result = determine_result(scores)
            match.result = result
            match.ended_at = utcnow()
            for game_number, score in enumerate(scores, start=1):
                match.scores.append(
                    MatchScore(
                        game_number=game_number,
                        team1_score=score["team1_score"],
                        team2_score=score["team2_score"],
                    )
                )
            await session.flush()

            team1 = team_ids(match, 1)
            team2 = team_ids(match, 2)
            if result != MatchResult.DRAW:
                await txn.lock_participants(team1 + team2)
                for participant_id in team1:
                    await self.stats.apply(session, participant_id, result == MatchResult.TEAM1)
                for participant_id in team2:
                    await self.stats.apply(session, participant_id, result == MatchResult.TEAM2)

            released = await self.waiting_line.release_from_playing(session, team1 + team2)
            logger.info(
                f"Match {match_id} resolved as {result.value}; released {released} queue entr"
                f"{'y' if released == 1 else 'ies'}"
            )
            return match_to_dict(match)

    async def history(self, participant_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Dict]:
        """
        Matches the participant played in, newest first.

        Returns:
            List of {"match": ..., "won": bool}
        """
        if limit <= 0:
            limit = DEFAULT_HISTORY_LIMIT
        async with self.store.transaction() as txn:
            result = await txn.session.execute(
                select(Match)
                .join(MatchParticipant, MatchParticipant.match_id == Match.id)
                .where(MatchParticipant.participant_id == participant_id)
                .order_by(Match.started_at.desc(), Match.id.desc())
                .limit(limit)
            )
            return [
                {"match": match_to_dict(match), "won": participant_won(match, participant_id)}
                for match in result.scalars().all()
            ]

    async def active_matches(self) -> List[Dict]:
        """Pending matches, newest first."""
        async with self.store.transaction() as txn:
            result = await txn.session.execute(
                select(Match)
                .where(Match.result == MatchResult.PENDING)
                .order_by(Match.started_at.desc(), Match.id.desc())
            )
            return [match_to_dict(match) for match in result.scalars().all()]

    async def completed_matches(self, limit: int = DEFAULT_COMPLETED_LIMIT) -> List[Dict]:
        """Resolved matches, most recently ended first."""
        if limit <= 0:
            limit = DEFAULT_COMPLETED_LIMIT
        async with self.store.transaction() as txn:
            result = await txn.session.execute(
                select(Match)
                .where(Match.result != MatchResult.PENDING)
                .order_by(Match.ended_at.desc(), Match.id.desc())
                .limit(limit)
            )
            return [match_to_dict(match) for match in result.scalars().all()]
