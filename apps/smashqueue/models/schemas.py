"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, model_validator


class Principal(BaseModel):
    """Authenticated caller, as supplied by the identity layer."""

    participant_id: int
    role: str = "player"


class QueueEntryResponse(BaseModel):
    """A participant's entry in the waiting line."""

    id: int
    participant_id: int
    position: int
    status: str
    joined_at: Optional[str] = None
    called_at: Optional[str] = None


class QueueInfoResponse(BaseModel):
    """Queue status snapshot."""

    total_in_queue: int
    your_position: Optional[int] = None
    estimated_wait_minutes: Optional[int] = None
    estimated_wait: Optional[str] = None
    next_court: Optional[str] = None
    currently_playing: List[QueueEntryResponse] = []


class QueueActionResponse(BaseModel):
    """Response after joining or leaving the queue."""

    entry: Optional[QueueEntryResponse] = None
    info: QueueInfoResponse
    message: str


class CallNextRequest(BaseModel):
    """Request to call the next participants (defaults to a doubles match)."""

    count: int = Field(default=4, ge=1, le=16)


class CallNextResponse(BaseModel):
    """Participants called from the front of the line."""

    called: List[QueueEntryResponse]
    count: int
    message: Optional[str] = None


class GameScore(BaseModel):
    """Points of one game."""

    game: Optional[int] = None  # Informational; games are numbered in submitted order
    team1_score: int = Field(ge=0)
    team2_score: int = Field(ge=0)


class CreateMatchRequest(BaseModel):
    """Request to create a match from two teams."""

    court: Optional[str] = None  # If not provided, use the next available court
    team1: List[int] = Field(min_length=1, max_length=2)
    team2: List[int] = Field(min_length=1, max_length=2)

    @model_validator(mode="after")
    def check_disjoint(self):
        if set(self.team1) & set(self.team2):
            raise ValueError("A player cannot be on both teams")
        return self


class RecordResultRequest(BaseModel):
    """Request to record the result of a match."""

    match_id: int
    scores: List[GameScore] = Field(max_length=5)


class MatchResponse(BaseModel):
    """Match data."""

    id: int
    court: str
    team1: List[int]
    team2: List[int]
    result: str
    scores: List[GameScore] = []
    started_at: Optional[str] = None
    ended_at: Optional[str] = None
    created_at: Optional[str] = None


class MatchHistoryResponse(BaseModel):
    """A match from one participant's point of view."""

    match: MatchResponse
    won: bool


class UserStatsResponse(BaseModel):
    """Participant performance record."""

    participant_id: int
    total_matches: int
    wins: int
    losses: int
    win_rate: float
    current_streak: int
    best_streak: int
    skill_level: str
    skill_points: int
    updated_at: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    message: str
