"""
Pydantic models for command input validation and responses.
"""

from datetime import datetime
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from rundeklar.database.models import Gender, PlayerCategory, SessionStatus, Sport
from rundeklar.utils.constants import MAX_NOTES_LENGTH


# ============================================================================
# Players
# ============================================================================


class PlayerListFilters(BaseModel):
    """Filters for listing players."""

    q: Optional[str] = None
    active: Optional[bool] = None


class PlayerCreateRequest(BaseModel):
    """Request to create a player."""

    name: str = Field(min_length=1)
    alias: Optional[str] = Field(default=None, min_length=1)
    level: Optional[float] = None  # Legacy alias for level_single
    level_single: Optional[float] = None
    level_double: Optional[float] = None
    level_mix: Optional[float] = None
    gender: Optional[Gender] = None
    primary_category: Optional[PlayerCategory] = None
    active: bool = True
    training_groups: List[str] = Field(default_factory=list)
    preferred_doubles_partners: List[int] = Field(default_factory=list)
    preferred_mixed_partners: List[int] = Field(default_factory=list)

    @field_validator("name", "alias")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def apply_legacy_level(self):
        if self.level is not None and self.level_single is None:
            self.level_single = self.level
        return self


class PlayerUpdateRequest(BaseModel):
    """Patch for a player. At least one field must be set."""

    name: Optional[str] = Field(default=None, min_length=1)
    alias: Optional[str] = None
    level: Optional[float] = None
    level_single: Optional[float] = None
    level_double: Optional[float] = None
    level_mix: Optional[float] = None
    gender: Optional[Gender] = None
    primary_category: Optional[PlayerCategory] = None
    active: Optional[bool] = None
    training_groups: Optional[List[str]] = None
    preferred_doubles_partners: Optional[List[int]] = None
    preferred_mixed_partners: Optional[List[int]] = None

    @model_validator(mode="after")
    def require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("patch must update at least one field")
        if "name" in self.model_fields_set and (self.name is None or not self.name.strip()):
            raise ValueError("name must not be blank")
        return self

    def changes(self) -> dict:
        """Explicitly set fields, with the legacy ``level`` folded into ``level_single``."""
        data = self.model_dump(include=self.model_fields_set)
        if "level" in data:
            level = data.pop("level")
            data.setdefault("level_single", level)
        if "name" in data:
            data["name"] = data["name"].strip()
        return data


class PlayerResponse(BaseModel):
    """Player data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    alias: Optional[str]
    level_single: Optional[float]
    level_double: Optional[float]
    level_mix: Optional[float]
    gender: Optional[Gender]
    primary_category: Optional[PlayerCategory]
    active: bool
    training_groups: List[str]
    preferred_doubles_partners: List[int]
    preferred_mixed_partners: List[int]


# ============================================================================
# Sessions
# ============================================================================


class TrainingSessionResponse(BaseModel):
    """Training session data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    date: datetime
    status: SessionStatus
    ended_at: Optional[datetime]


# ============================================================================
# Check-ins
# ============================================================================


class CheckInCreateRequest(BaseModel):
    """Request to check a player in."""

    player_id: int
    max_rounds: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class CheckInUpdateRequest(BaseModel):
    """Patch for a check-in. Only fields that are sent are changed."""

    player_id: int
    max_rounds: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)

    def changes(self) -> dict:
        return self.model_dump(include=self.model_fields_set - {"player_id"})


class CheckInRemoveRequest(BaseModel):
    """Request to remove a check-in."""

    player_id: int


class CheckInResponse(BaseModel):
    """Check-in row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    player_id: int
    max_rounds: Optional[int]
    notes: Optional[str]
    created_at: datetime


class CheckedInPlayerResponse(PlayerResponse):
    """Player data together with the check-in."""

    check_in_at: datetime
    max_rounds: Optional[int]
    notes: Optional[str]


# ============================================================================
# Matches
# ============================================================================


class MatchMoveRequest(BaseModel):
    """
    Move a player within a round.

    Omitting ``to_court_idx`` benches the player.
    """

    player_id: int
    to_court_idx: Optional[int] = Field(default=None, ge=1)
    to_slot: Optional[int] = Field(default=None, ge=0, le=3)
    round: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def slot_required_with_court(self):
        if self.to_court_idx is not None and self.to_slot is None:
            raise ValueError("to_slot is required when to_court_idx is set")
        return self


class MatchSwapRequest(BaseModel):
    """Swap the positions of two players within a round."""

    player_a_id: int
    player_b_id: int
    round: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def distinct_players(self):
        if self.player_a_id == self.player_b_id:
            raise ValueError("cannot swap a player with themselves")
        return self


class SlotResponse(BaseModel):
    """One occupied slot on a court."""

    slot: int
    player: PlayerResponse


class ScoreSet(BaseModel):
    """Points of one set."""

    team1: Optional[int] = None
    team2: Optional[int] = None


class BadmintonScore(BaseModel):
    """Badminton score document."""

    sets: List[ScoreSet]
    winner: Literal["team1", "team2"]


class MatchResultRequest(BaseModel):
    """Request to record the result of a match."""

    match_id: int
    sport: Sport = Sport.BADMINTON
    score_data: dict


class MatchResultResponse(BaseModel):
    """Recorded match result."""

    model_config = ConfigDict(from_attributes=True)

    match_id: int
    sport: Sport
    score_data: dict
    winner_team: str


class CourtWithPlayersResponse(BaseModel):
    """A court in a round, with its occupied slots."""

    court_idx: int
    match_id: Optional[int] = None
    round: int
    slots: List[SlotResponse] = Field(default_factory=list)
    incomplete: bool = False  # Slot count other than 0, 2 or 4
    result: Optional[MatchResultResponse] = None


class AutoArrangeResponse(BaseModel):
    """Outcome of automatic arrangement of a round."""

    round: int
    filled_courts: int
    benched: int
    benched_player_ids: List[int] = Field(default_factory=list)


# ============================================================================
# Statistics
# ============================================================================


class SnapshotResponse(BaseModel):
    """Statistics snapshot of an ended session."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    session_date: datetime
    season: str
    format_version: int
    matches: List[dict]
    match_players: List[dict]
    check_ins: List[dict]


class PairCount(BaseModel):
    """How often a player shared a court with another player."""

    player_id: int
    player_name: str
    count: int


class PlayerStatisticsResponse(BaseModel):
    """Statistics of one player, read from snapshots."""

    player_id: int
    season: Optional[str]
    sessions_attended: int
    matches_played: int
    wins: int
    losses: int
    partners: List[PairCount]
    opponents: List[PairCount]


class AttendanceEntry(BaseModel):
    """Attendance of one ended session."""

    session_id: int
    session_date: datetime
    season: str
    check_ins: int
    matches: int
