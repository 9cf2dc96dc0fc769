"""
Typed failures raised by the queue and match engine.

Domain errors subclass ValueError and are never retried by the engine.
Store errors subclass RuntimeError; only StoreUnavailableError is retryable.
"""


class AlreadyQueuedError(ValueError):
    """Raised when a participant joins while already holding an active entry."""


class NotQueuedError(ValueError):
    """Raised when a participant leaves without a waiting entry."""


class QueueEmptyError(ValueError):
    """Raised when call-next finds no waiting entries."""


class InvalidTeamError(ValueError):
    """Raised when a team is empty, too large, has duplicates or overlaps the other team."""


class InvalidScoreError(ValueError):
    """Raised when a submitted game score is negative."""


class MatchNotFoundError(ValueError):
    """Raised when a match id does not match any record."""


class MatchAlreadyResolvedError(ValueError):
    """Raised when recording a result for a match that is no longer pending."""


class StoreUnavailableError(RuntimeError):
    """Raised when a transaction times out or the store cannot be reached. Safe to retry."""


class IntegrityViolationError(RuntimeError):
    """Raised when a post-write invariant check fails. The transaction is aborted."""
