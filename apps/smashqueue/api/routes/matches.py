"""Match route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from smashqueue.api.auth_dependencies import get_current_principal, require_organizer
from smashqueue.api.routes import get_queue_engine, to_http_exception
from smashqueue.models.schemas import (
    CreateMatchRequest,
    MatchHistoryResponse,
    MatchResponse,
    Principal,
    RecordResultRequest,
)
from smashqueue.services.engine import QueueEngine
from smashqueue.utils.constants import DEFAULT_COMPLETED_LIMIT, DEFAULT_HISTORY_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches", response_model=List[MatchHistoryResponse])
async def get_my_match_history(
    principal: Principal = Depends(get_current_principal),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """The caller's most recent matches."""
    try:
        return await engine.history(principal.participant_id, DEFAULT_HISTORY_LIMIT)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)


@router.post("/api/matches", response_model=MatchResponse, status_code=201)
async def create_match(
    match_request: CreateMatchRequest,
    principal: Principal = Depends(require_organizer),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """
    Create a match (organizer only).

    Request body:
        {
            "court": "Court 1",   // Optional - next available court if omitted
            "team1": [1, 2],
            "team2": [3, 4]
        }
    """
    try:
        return await engine.create_match(match_request.court, match_request.team1, match_request.team2)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)


@router.put("/api/matches/result", response_model=MatchResponse)
async def record_match_result(
    result_request: RecordResultRequest,
    principal: Principal = Depends(require_organizer),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """
    Record per-game scores of a pending match (organizer only).

    Request body:
        {
            "match_id": 1,
            "scores": [
                {"game": 1, "team1_score": 21, "team2_score": 15},
                {"game": 2, "team1_score": 19, "team2_score": 21}
            ]
        }
    """
    scores = [score.model_dump() for score in result_request.scores]
    try:
        return await engine.record_result(result_request.match_id, scores)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)


@router.get("/api/matches/active", response_model=List[MatchResponse])
async def get_active_matches(engine: QueueEngine = Depends(get_queue_engine)):
    """Matches currently in progress."""
    try:
        return await engine.active_matches()
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)


@router.get("/api/matches/completed", response_model=List[MatchResponse])
async def get_completed_matches(
    limit: int = Query(default=DEFAULT_COMPLETED_LIMIT, ge=1, le=500),
    principal: Principal = Depends(require_organizer),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Resolved matches, most recent first (organizer only)."""
    try:
        return await engine.completed_matches(limit)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)
