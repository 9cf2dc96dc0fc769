"""Waiting-line route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from smashqueue.api.auth_dependencies import (
    get_current_principal,
    get_current_principal_optional,
    require_organizer,
)
from smashqueue.api.routes import get_queue_engine, to_http_exception
from smashqueue.models.schemas import (
    CallNextRequest,
    CallNextResponse,
    Principal,
    QueueActionResponse,
    QueueInfoResponse,
)
from smashqueue.services.engine import QueueEngine
from smashqueue.services.errors import QueueEmptyError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/queue", response_model=QueueInfoResponse)
async def get_queue_status(
    principal: Optional[Principal] = Depends(get_current_principal_optional),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Queue snapshot; includes the caller's position when authenticated."""
    try:
        return await engine.status(principal.participant_id if principal else None)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)


@router.post("/api/queue/join", response_model=QueueActionResponse)
async def join_queue(
    principal: Principal = Depends(get_current_principal),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Join the end of the waiting line."""
    try:
        entry = await engine.join(principal.participant_id)
        info = await engine.status(principal.participant_id)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)
    return {"entry": entry, "info": info, "message": "Joined queue successfully"}


@router.post("/api/queue/leave", response_model=QueueActionResponse)
async def leave_queue(
    principal: Principal = Depends(get_current_principal),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Leave the waiting line."""
    try:
        await engine.leave(principal.participant_id)
        info = await engine.status(principal.participant_id)
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)
    return {"info": info, "message": "Left queue successfully"}


@router.post("/api/queue/call", response_model=CallNextResponse)
async def call_next(
    call_request: Optional[CallNextRequest] = None,
    principal: Principal = Depends(require_organizer),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """
    Call the next participants from the front of the line (organizer only).

    Request body (optional):
        {"count": 4}
    """
    count = call_request.count if call_request else CallNextRequest().count
    try:
        called = await engine.call_next(count)
    except QueueEmptyError:
        return {"called": [], "count": 0, "message": "Queue is empty"}
    except (ValueError, RuntimeError) as e:
        raise to_http_exception(e)
    logger.info(f"Organizer {principal.participant_id} called {len(called)} participant(s)")
    return {"called": called, "count": len(called)}
