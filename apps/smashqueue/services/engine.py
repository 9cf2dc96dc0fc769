"""
Queue/match facade: the operations the HTTP layer invokes.

Wires the waiting line, match lifecycle and stats ledger around one store
handle. Holds no logic of its own.
"""

from typing import Dict, List, Optional, Sequence

from smashqueue.database.store import Store
from smashqueue.services.match_service import MatchLifecycle
from smashqueue.services.queue_service import WaitingLineManager
from smashqueue.services.stats_ledger import StatsLedger
from smashqueue.utils.constants import (
    DEFAULT_CALL_COUNT,
    DEFAULT_COMPLETED_LIMIT,
    DEFAULT_HISTORY_LIMIT,
)


class QueueEngine:
    """Facade over the queue and match engine."""

    def __init__(self, store: Store):
        self.store = store
        self.stats = StatsLedger(store)
        self.waiting_line = WaitingLineManager(store)
        self.matches = MatchLifecycle(store, self.waiting_line, self.stats)

    # Queue

    async def join(self, participant_id: int) -> Dict:
        return await self.waiting_line.join(participant_id)

    async def leave(self, participant_id: int) -> None:
        await self.waiting_line.leave(participant_id)

    async def call_next(self, count: int = DEFAULT_CALL_COUNT) -> List[Dict]:
        return await self.waiting_line.call_next(count)

    async def status(self, participant_id: Optional[int] = None) -> Dict:
        return await self.waiting_line.status(participant_id)

    # Matches

    async def create_match(self, court: Optional[str], team1: Sequence[int], team2: Sequence[int]) -> Dict:
        return await self.matches.create(court, team1, team2)

    async def record_result(self, match_id: int, scores: Sequence[Dict]) -> Dict:
        return await self.matches.record_result(match_id, scores)

    async def history(self, participant_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Dict]:
        return await self.matches.history(participant_id, limit)

    async def active_matches(self) -> List[Dict]:
        return await self.matches.active_matches()

    async def completed_matches(self, limit: int = DEFAULT_COMPLETED_LIMIT) -> List[Dict]:
        return await self.matches.completed_matches(limit)

    # Stats

    async def get_stats(self, participant_id: int) -> Dict:
        return await self.stats.get_stats(participant_id)

    async def record_outcome(self, participant_id: int, won: bool) -> Dict:
        return await self.stats.record_outcome(participant_id, won)
