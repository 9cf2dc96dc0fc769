"""Participant stats and history route handlers."""

from typing import List

from fastapi import APIRouter, Depends

from smashqueue.api.auth_dependencies import get_current_principal, require_organizer
from smashqueue.api.routes import get_queue_engine, to_http_exception
from smashqueue.models.schemas import MatchHistoryResponse, Principal, UserStatsResponse
from smashqueue.services.engine import QueueEngine
from smashqueue.utils.constants import ADMIN_HISTORY_LIMIT

router = APIRouter()


@router.get("/api/users/me/stats", response_model=UserStatsResponse)
async def get_my_stats(
    principal: Principal = Depends(get_current_principal),
    engine: QueueEngine = Depends(get_queue_engine),
):
    try:
        return await engine.get_stats(principal.participant_id)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)


@router.get("/api/users/{participant_id}/stats", response_model=UserStatsResponse)
async def get_user_stats(
    participant_id: int,
    principal: Principal = Depends(require_organizer),
    engine: QueueEngine = Depends(get_queue_engine),
):
    try:
        return await engine.get_stats(participant_id)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)


@router.get("/api/users/{participant_id}/matches", response_model=List[MatchHistoryResponse])
async def get_user_match_history(
    participant_id: int,
    principal: Principal = Depends(require_organizer),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """A participant's match history (organizer only)."""
    try:
        return await engine.history(participant_id, ADMIN_HISTORY_LIMIT)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)
