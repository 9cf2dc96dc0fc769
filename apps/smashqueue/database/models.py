"""
SQLAlchemy ORM models for the court queue and match engine.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from smashqueue.database.db import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class QueueEntryStatus(str, enum.Enum):
    """Queue entry status enum. Finished entries are deleted, not stored."""

    WAITING = "waiting"
    CALLED = "called"
    PLAYING = "playing"


class MatchResult(str, enum.Enum):
    """Match result enum."""

    PENDING = "pending"
    TEAM1 = "team1"
    TEAM2 = "team2"
    DRAW = "draw"


class SkillLevel(str, enum.Enum):
    """Skill tier derived from win rate and match volume."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"


class QueueEntry(Base):
    """A participant currently tracked by the waiting line."""

    __tablename__ = "queue_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    participant_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(
        Enum(QueueEntryStatus, name="queue_entry_status", values_callable=_enum_values),
        nullable=False,
        default=QueueEntryStatus.WAITING,
    )
    joined_at = Column(DateTime(timezone=True), nullable=False)
    called_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # Every stored entry is active, so one row per participant
        UniqueConstraint("participant_id", name="uq_queue_entries_participant"),
        CheckConstraint("position > 0", name="ck_queue_entries_position_positive"),
        Index("idx_queue_entries_status_position", "status", "position"),
        Index("idx_queue_entries_status_called_at", "status", "called_at"),
    )


class Match(Base):
    """A scheduled contest between two teams on a court."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    court = Column(String, nullable=False)
    result = Column(
        Enum(MatchResult, name="match_result", values_callable=_enum_values),
        nullable=False,
        default=MatchResult.PENDING,
    )
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    participants = relationship(
        "MatchParticipant",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="[MatchParticipant.team_no, MatchParticipant.slot]",
        lazy="selectin",
    )
    scores = relationship(
        "MatchScore",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchScore.game_number",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_matches_result_started", "result", "started_at"),
        Index("idx_matches_court_result", "court", "result"),
        Index("idx_matches_ended_at", "ended_at"),
    )


class MatchParticipant(Base):
    """Team membership of a participant in a match."""

    __tablename__ = "match_participants"

    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True)
    participant_id = Column(Integer, primary_key=True)
    team_no = Column(Integer, nullable=False)
    slot = Column(Integer, nullable=False)  # Order within the team

    match = relationship("Match", back_populates="participants")

    __table_args__ = (
        CheckConstraint("team_no in (1, 2)", name="ck_match_participants_team_no"),
        UniqueConstraint("match_id", "team_no", "slot", name="uq_match_participants_slot"),
        Index("idx_match_participants_participant", "participant_id", "match_id"),
    )


class MatchScore(Base):
    """Points of one game within a match."""

    __tablename__ = "match_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    game_number = Column(Integer, nullable=False)
    team1_score = Column(Integer, nullable=False)
    team2_score = Column(Integer, nullable=False)

    match = relationship("Match", back_populates="scores")

    __table_args__ = (
        UniqueConstraint("match_id", "game_number", name="uq_match_scores_game"),
        CheckConstraint("game_number > 0", name="ck_match_scores_game_number"),
        CheckConstraint(
            "team1_score >= 0 AND team2_score >= 0", name="ck_match_scores_non_negative"
        ),
    )


class UserStats(Base):
    """Running performance record of a participant."""

    __tablename__ = "user_stats"

    participant_id = Column(Integer, primary_key=True, autoincrement=False)
    total_matches = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    win_rate = Column(Float, nullable=False, default=0.0)  # 0-100, two decimals
    current_streak = Column(Integer, nullable=False, default=0)  # +wins / -losses
    best_streak = Column(Integer, nullable=False, default=0)
    skill_level = Column(
        Enum(SkillLevel, name="skill_level", values_callable=_enum_values),
        nullable=False,
        default=SkillLevel.BEGINNER,
    )
    skill_points = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("total_matches = wins + losses", name="ck_user_stats_totals"),
        Index("idx_user_stats_skill_points", "skill_points"),
    )
