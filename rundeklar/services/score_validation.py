"""
Sport-specific match score validation.

Badminton rules:
- 1 to 3 sets; sets where both sides are empty (None or 0) are skipped
- Scores are between 0 and 30
- A set winner needs at least 21 points and a 2-point margin, except 30-29
- One team must win 2 sets, and the declared winner must be that team
"""

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from rundeklar.database.models import Sport
from rundeklar.utils.constants import (
    BADMINTON_GOLDEN_POINT,
    BADMINTON_MAX_SCORE,
    BADMINTON_MAX_SETS,
    BADMINTON_MIN_SCORE_DIFFERENCE,
    BADMINTON_MIN_WINNING_SCORE,
    BADMINTON_SETS_TO_WIN,
)

TEAMS = ("team1", "team2")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    winner: Optional[str] = None

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


def _is_empty(value) -> bool:
    return value is None or value == 0


def _set_winner(team1: int, team2: int) -> Optional[str]:
    """Winner of one set, or None if the set score is not a legal final score."""
    if team1 == team2:
        return None
    high, low = max(team1, team2), min(team1, team2)
    if high < BADMINTON_MIN_WINNING_SCORE:
        return None
    if (high, low) != BADMINTON_GOLDEN_POINT and high - low < BADMINTON_MIN_SCORE_DIFFERENCE:
        return None
    return "team1" if team1 > team2 else "team2"


def validate_badminton_sets(sets: List[Mapping[str, Any]]) -> ValidationResult:
    """
    Validate the sets of a badminton match.

    Returns:
        ValidationResult with ``winner`` set to the team that won 2 sets
    """
    if not sets:
        return ValidationResult.fail("At least one set must be entered")
    if len(sets) > BADMINTON_MAX_SETS:
        return ValidationResult.fail(f"At most {BADMINTON_MAX_SETS} sets are allowed")

    wins = {team: 0 for team in TEAMS}
    for index, score_set in enumerate(sets, start=1):
        team1 = score_set.get("team1")
        team2 = score_set.get("team2")
        if _is_empty(team1) and _is_empty(team2):
            continue

        for value in (team1, team2):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                return ValidationResult.fail(f"Set {index}: scores must be whole numbers")
            if value < 0:
                return ValidationResult.fail(f"Set {index}: score cannot be negative")
            if value > BADMINTON_MAX_SCORE:
                return ValidationResult.fail(
                    f"Set {index}: maximum score is {BADMINTON_MAX_SCORE} points"
                )

        if team1 is None or team2 is None:
            return ValidationResult.fail(f"Set {index}: both teams must have a score")
        if team1 == team2:
            return ValidationResult.fail(f"Set {index}: a set must have a winner")

        winner = _set_winner(team1, team2)
        if winner is None:
            if max(team1, team2) < BADMINTON_MIN_WINNING_SCORE:
                return ValidationResult.fail(
                    f"Set {index}: winner needs at least {BADMINTON_MIN_WINNING_SCORE} points"
                )
            return ValidationResult.fail(
                f"Set {index}: winner needs a {BADMINTON_MIN_SCORE_DIFFERENCE}-point margin (except 30-29)"
            )
        wins[winner] += 1

    match_winner = next((team for team in TEAMS if wins[team] == BADMINTON_SETS_TO_WIN), None)
    if match_winner is None:
        return ValidationResult.fail(f"A team must win {BADMINTON_SETS_TO_WIN} sets")
    return ValidationResult(valid=True, winner=match_winner)


def validate_badminton_score(score_data: Mapping[str, Any]) -> ValidationResult:
    """Validate a full badminton score document ``{"sets": [...], "winner": ...}``."""
    sets = score_data.get("sets") if isinstance(score_data, Mapping) else None
    if not isinstance(sets, list) or not all(isinstance(s, Mapping) for s in sets):
        return ValidationResult.fail("Invalid badminton score data format")

    result = validate_badminton_sets(sets)
    if not result.valid:
        return result

    declared = score_data.get("winner")
    if declared not in TEAMS:
        return ValidationResult.fail("Winner must be 'team1' or 'team2'")
    if declared != result.winner:
        return ValidationResult.fail(f"Declared winner {declared} does not match the sets ({result.winner})")
    return result


def validate_match_result(sport: Sport, score_data: Mapping[str, Any]) -> ValidationResult:
    """Dispatch to the validator of the sport."""
    if sport == Sport.BADMINTON:
        return validate_badminton_score(score_data)
    if sport == Sport.TENNIS:
        return ValidationResult.fail("Tennis scoring not yet implemented")
    if sport == Sport.PADEL:
        return ValidationResult.fail("Padel scoring not yet implemented")
    return ValidationResult.fail(f"Unknown sport: {sport}")
