"""
Skill and category model.

Pure functions over a player's three ratings and category. No database access.
"""

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

from rundeklar.database.models import PlayerCategory


class MatchKind(str, enum.Enum):
    """Kind of match a rating applies to."""

    SINGLES = "singles"
    DOUBLES = "doubles"
    MIXED = "mixed"


# Lookup order when the rating for the intended kind is missing
_FALLBACK_ORDER = {
    MatchKind.SINGLES: (MatchKind.SINGLES, MatchKind.DOUBLES, MatchKind.MIXED),
    MatchKind.DOUBLES: (MatchKind.DOUBLES, MatchKind.MIXED, MatchKind.SINGLES),
    MatchKind.MIXED: (MatchKind.MIXED, MatchKind.DOUBLES, MatchKind.SINGLES),
}


@dataclass(frozen=True)
class SkillProfile:
    """Planner view of a player."""

    player_id: int
    name: str = ""
    level_single: Optional[float] = None
    level_double: Optional[float] = None
    level_mix: Optional[float] = None
    category: PlayerCategory = PlayerCategory.EITHER

    @classmethod
    def from_player(cls, player) -> "SkillProfile":
        """Build a profile from a ``Player`` row."""
        return cls(
            player_id=player.id,
            name=player.name,
            level_single=player.level_single,
            level_double=player.level_double,
            level_mix=player.level_mix,
            category=player.primary_category or PlayerCategory.EITHER,
        )

    def rating(self, kind: MatchKind) -> Optional[float]:
        """Raw rating for a kind, without fallback."""
        if kind == MatchKind.SINGLES:
            return self.level_single
        if kind == MatchKind.DOUBLES:
            return self.level_double
        return self.level_mix


def effective_skill(profile: SkillProfile, kind: MatchKind) -> Optional[float]:
    """
    Rating used for a match kind.

    Falls back doubles<->mixed first, then singles. Returns None when the
    player has no rating at all.
    """
    for candidate in _FALLBACK_ORDER[kind]:
        value = profile.rating(candidate)
        if value is not None:
            return value
    return None


def ordering_skill(profile: SkillProfile, kind: MatchKind) -> float:
    """Skill for sorting and tie-breaking; a missing rating counts as 0."""
    value = effective_skill(profile, kind)
    return 0.0 if value is None else value


def skill_gap(a: SkillProfile, b: SkillProfile, kind: MatchKind) -> float:
    """Absolute rating difference; 0 when either rating is missing."""
    skill_a = effective_skill(a, kind)
    skill_b = effective_skill(b, kind)
    if skill_a is None or skill_b is None:
        return 0.0
    return abs(skill_a - skill_b)


def team_total_gap(
    team1: Tuple[SkillProfile, SkillProfile],
    team2: Tuple[SkillProfile, SkillProfile],
    kind: MatchKind,
) -> float:
    """Difference of team rating sums; 0 when any of the four is unrated."""
    skills = [effective_skill(p, kind) for p in (*team1, *team2)]
    if any(s is None for s in skills):
        return 0.0
    return abs((skills[0] + skills[1]) - (skills[2] + skills[3]))


def can_play_singles(profile: SkillProfile) -> bool:
    """Doubles-only players never appear in a 2-player match."""
    return profile.category != PlayerCategory.DOUBLES_ONLY


def is_doubles_only(profile: SkillProfile) -> bool:
    return profile.category == PlayerCategory.DOUBLES_ONLY
