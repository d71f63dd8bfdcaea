"""
SQLAlchemy ORM models for the training scheduler.

Every table carries ``tenant_id``; no query in the services runs without it.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    JSON,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from rundeklar.database.db import Base

# JSON documents are JSONB on PostgreSQL and plain JSON elsewhere (tests use SQLite)
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class SessionStatus(str, enum.Enum):
    """Training session status enum."""

    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class PlayerCategory(str, enum.Enum):
    """Which match types a player may be placed in."""

    SINGLES_ONLY = "singles"
    DOUBLES_ONLY = "doubles"
    EITHER = "either"


class Gender(str, enum.Enum):
    """Player gender tag."""

    MALE = "male"
    FEMALE = "female"


class Sport(str, enum.Enum):
    """Sport tag on match results."""

    BADMINTON = "badminton"
    TENNIS = "tennis"
    PADEL = "padel"


class Player(Base):
    """Club players."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    alias = Column(String, nullable=True)
    level_single = Column(Float, nullable=True)
    level_double = Column(Float, nullable=True)
    level_mix = Column(Float, nullable=True)
    gender = Column(Enum(Gender), nullable=True)
    primary_category = Column(Enum(PlayerCategory), nullable=True)  # None behaves as EITHER
    active = Column(Boolean, default=True, nullable=False)
    training_groups = Column(JsonDocument, nullable=False, default=list)
    preferred_doubles_partners = Column(JsonDocument, nullable=False, default=list)
    preferred_mixed_partners = Column(JsonDocument, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    check_ins = relationship("CheckIn", back_populates="player")

    __table_args__ = (
        Index("idx_players_tenant_name", "tenant_id", "name"),
        Index("idx_players_tenant_active", "tenant_id", "active"),
    )

    @property
    def level(self):
        """Legacy single rating, kept as an alias of ``level_single``."""
        return self.level_single

    @level.setter
    def level(self, value):
        self.level_single = value


class Court(Base):
    """Courts of a club, numbered 1..N."""

    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    idx = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("tenant_id", "idx", name="uq_courts_tenant_idx"),
        CheckConstraint("idx >= 1", name="ck_courts_idx_positive"),
    )


class TrainingSession(Base):
    """Training sessions. At most one ACTIVE row per tenant."""

    __tablename__ = "training_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    check_ins = relationship("CheckIn", back_populates="training_session", cascade="all, delete-orphan")
    matches = relationship("Match", back_populates="training_session", cascade="all, delete-orphan")

    __table_args__ = (
        Index(
            "uq_training_sessions_one_active",
            "tenant_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("idx_training_sessions_tenant_date", "tenant_id", "date"),
    )


class CheckIn(Base):
    """Players attending a training session."""

    __tablename__ = "check_ins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    session_id = Column(Integer, ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    max_rounds = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)  # Arrival time, set by the ledger

    # Relationships
    training_session = relationship("TrainingSession", back_populates="check_ins")
    player = relationship("Player", back_populates="check_ins")

    __table_args__ = (
        UniqueConstraint("session_id", "player_id", name="uq_check_ins_session_player"),
        CheckConstraint("max_rounds IS NULL OR max_rounds >= 1", name="ck_check_ins_max_rounds"),
        Index("idx_check_ins_tenant_session", "tenant_id", "session_id"),
    )


class Match(Base):
    """A court in one round of a training session."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    session_id = Column(Integer, ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=False)
    round = Column(Integer, nullable=False, default=1)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    training_session = relationship("TrainingSession", back_populates="matches")
    court = relationship("Court")
    players = relationship(
        "MatchPlayer",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchPlayer.slot",
    )
    result = relationship("MatchResult", back_populates="match", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("session_id", "court_id", "round", name="uq_matches_session_court_round"),
        CheckConstraint("round >= 1", name="ck_matches_round_positive"),
        Index("idx_matches_tenant_session_round", "tenant_id", "session_id", "round"),
    )


class MatchPlayer(Base):
    """Slot assignment of a player on a match."""

    __tablename__ = "match_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    slot = Column(Integer, nullable=False)

    # Relationships
    match = relationship("Match", back_populates="players")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint("match_id", "slot", name="uq_match_players_match_slot"),
        UniqueConstraint("match_id", "player_id", name="uq_match_players_match_player"),
        CheckConstraint("slot >= 0 AND slot <= 3", name="ck_match_players_slot_range"),
    )


class MatchResult(Base):
    """Recorded score of a match."""

    __tablename__ = "match_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    sport = Column(Enum(Sport), nullable=False, default=Sport.BADMINTON)
    score_data = Column(JsonDocument, nullable=False)
    winner_team = Column(String, nullable=False)  # "team1" or "team2"
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    match = relationship("Match", back_populates="result")

    __table_args__ = (
        UniqueConstraint("match_id", "tenant_id", name="uq_match_results_match_tenant"),
    )


class StatisticsSnapshot(Base):
    """Frozen copy of an ended session. Never references live rows."""

    __tablename__ = "statistics_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String, nullable=False)
    session_id = Column(Integer, nullable=False, unique=True)  # No FK: the snapshot outlives the session
    session_date = Column(DateTime(timezone=True), nullable=False)
    season = Column(String, nullable=False)
    format_version = Column(Integer, nullable=False, default=1)
    matches = Column(JsonDocument, nullable=False, default=list)
    match_players = Column(JsonDocument, nullable=False, default=list)
    check_ins = Column(JsonDocument, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_statistics_snapshots_tenant_season", "tenant_id", "season"),
        Index("idx_statistics_snapshots_tenant_date", "tenant_id", "session_date"),
    )
