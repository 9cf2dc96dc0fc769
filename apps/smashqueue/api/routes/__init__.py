"""
API routes - combined router from all domain modules.

Shared infrastructure (engine dependency, error mapping) lives here; every
sub-router imports what it needs from this package.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from smashqueue.database import db
from smashqueue.database.store import Store
from smashqueue.services import errors
from smashqueue.services.engine import QueueEngine

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engine dependency
# ---------------------------------------------------------------------------
_queue_engine: Optional[QueueEngine] = None


def get_queue_engine() -> QueueEngine:
    """Get the application's engine instance (overridden in tests)."""
    global _queue_engine
    if _queue_engine is None:
        _queue_engine = QueueEngine(Store(db.AsyncSessionLocal))
    return _queue_engine


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
ERROR_STATUS_CODES = {
    errors.AlreadyQueuedError: 409,
    errors.NotQueuedError: 404,
    errors.QueueEmptyError: 404,  # /api/queue/call answers an empty queue with 200 itself
    errors.InvalidTeamError: 400,
    errors.InvalidScoreError: 400,
    errors.MatchNotFoundError: 404,
    errors.MatchAlreadyResolvedError: 409,
    errors.StoreUnavailableError: 503,
    errors.IntegrityViolationError: 500,
}


def to_http_exception(exc: Exception) -> HTTPException:
    """Translate an engine error into the HTTPException the client sees."""
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(exc, error_type):
            headers = {"Retry-After": "1"} if status_code == 503 else None
            return HTTPException(status_code=status_code, detail=str(exc), headers=headers)
    logger.error(f"Unexpected engine error: {exc}", exc_info=exc)
    return HTTPException(status_code=500, detail="Internal server error")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from smashqueue.api.routes.queue import router as queue_router  # noqa: E402
from smashqueue.api.routes.matches import router as matches_router  # noqa: E402
from smashqueue.api.routes.users import router as users_router  # noqa: E402

router = APIRouter()
router.include_router(queue_router)
router.include_router(matches_router)
router.include_router(users_router)
