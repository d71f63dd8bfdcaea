"""
Round planner - arranges checked-in players onto free courts for one round.

Deterministic greedy heuristic. Given the same players, courts, history and
round number it always returns the same plan: every input is sorted by id
before iteration and ties keep the first candidate.

Priorities, in order:
    1. No doubles-only player left unassigned (they seed doubles courts).
    2. Fill courts with 2 vs 2.
    3. Pair leftover singles-eligible players 1 vs 1.
    4. Co-opt: doubles-only players left over with nobody to fill their court
       pull the players of a singles match (planned in this call, or already
       on the round and not yet played) into a doubles on that court.
    5. Remaining singles-eligible players play 1 vs 1.

Singles-only players join a doubles match only as fillers next to a
doubles-only player (priorities 1 and 4).

The planner is pure and synchronous; persistence lives in match_service.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, FrozenSet

from rundeklar.database.models import PlayerCategory
from rundeklar.services.skill import (
    MatchKind,
    SkillProfile,
    can_play_singles,
    is_doubles_only,
    ordering_skill,
    skill_gap,
    team_total_gap,
)
from rundeklar.utils.constants import (
    DOUBLES_SLOTS,
    MAX_PLAYERS_PER_COURT,
    OPPONENT_GAP_WEIGHT,
    REPEAT_OPPONENT_PENALTY,
    REPEAT_PARTNER_PENALTY,
    SINGLES_SLOTS,
)

logger = logging.getLogger(__name__)

Pair = FrozenSet[int]


@dataclass(frozen=True)
class HistorySlot:
    """A slot assignment from an earlier round of the same session."""

    match_id: int
    round: int
    player_id: int
    slot: int


@dataclass(frozen=True)
class PlannedMatch:
    """One court of the plan. ``player_ids`` is team 1 then team 2."""

    court_idx: int
    kind: MatchKind
    player_ids: Tuple[int, ...]

    def slot_assignments(self) -> List[Tuple[int, int]]:
        """(slot, player_id) pairs: doubles use 0-3, singles use 1 and 2."""
        slots = SINGLES_SLOTS if self.kind == MatchKind.SINGLES else DOUBLES_SLOTS
        return list(zip(slots, self.player_ids))


@dataclass
class RoundPlan:
    """Planner output."""

    round: int
    matches: List[PlannedMatch] = field(default_factory=list)
    benched: List[int] = field(default_factory=list)
    # Courts whose existing singles match was turned into one of ``matches``
    co_opted_courts: List[int] = field(default_factory=list)


class MatchupHistory:
    """
    Who partnered or faced whom in earlier rounds, and how much each player
    has played so far.

    If the slot rows are structurally inconsistent the repeat penalties are
    disabled for the round; play counts are still kept.
    """

    def __init__(self):
        self.partners: Set[Pair] = set()
        self.shared_court: Set[Pair] = set()
        self.matches_played: Counter = Counter()
        self.rounds_played: Dict[int, Set[int]] = defaultdict(set)
        self.consistent = True

    @classmethod
    def from_slots(cls, slots: Iterable[HistorySlot], before_round: int) -> "MatchupHistory":
        """Build history from slot rows of rounds ``1..before_round-1``."""
        history = cls()
        by_match: Dict[int, List[HistorySlot]] = defaultdict(list)
        for row in slots:
            if row.round < before_round:
                by_match[row.match_id].append(row)

        for match_id in sorted(by_match):
            rows = by_match[match_id]
            for row in rows:
                history.matches_played[row.player_id] += 1
                history.rounds_played[row.player_id].add(row.round)
            if not _is_consistent(rows):
                history.consistent = False

        if not history.consistent:
            logger.warning(
                f"Inconsistent slot history before round {before_round}; "
                f"planning without repeat penalties"
            )
            return history

        for match_id in sorted(by_match):
            history._record_match(by_match[match_id])
        return history

    def _record_match(self, rows: List[HistorySlot]) -> None:
        player_ids = [row.player_id for row in rows]
        for i, a in enumerate(player_ids):
            for b in player_ids[i + 1:]:
                self.shared_court.add(frozenset((a, b)))
        # In 1 vs 1 both players are opponents regardless of slot numbers
        if len(rows) <= 2:
            return
        teams: Dict[int, List[int]] = defaultdict(list)
        for row in rows:
            teams[row.slot // 2].append(row.player_id)
        for members in teams.values():
            if len(members) == 2:
                self.partners.add(frozenset(members))

    def were_partners(self, a: int, b: int) -> bool:
        return frozenset((a, b)) in self.partners

    def shared_a_court(self, a: int, b: int) -> bool:
        return frozenset((a, b)) in self.shared_court

    def rounds_of(self, player_id: int) -> int:
        """Number of distinct earlier rounds containing the player."""
        return len(self.rounds_played.get(player_id, ()))


def _is_consistent(rows: List[HistorySlot]) -> bool:
    if len(rows) > MAX_PLAYERS_PER_COURT:
        return False
    if len({row.player_id for row in rows}) != len(rows):
        return False
    if len({row.slot for row in rows}) != len(rows):
        return False
    if any(row.slot not in DOUBLES_SLOTS for row in rows):
        return False
    return len({row.round for row in rows}) == 1


def apply_round_caps(
    players: Sequence[SkillProfile],
    max_rounds: Mapping[int, Optional[int]],
    history: MatchupHistory,
) -> Tuple[List[SkillProfile], List[int]]:
    """
    Split players into (eligible, capped ids).

    A player is capped once the number of earlier rounds they appear in has
    reached their check-in's ``max_rounds``.
    """
    eligible = []
    capped = []
    for profile in sorted(players, key=lambda p: p.player_id):
        cap = max_rounds.get(profile.player_id)
        if cap is not None and history.rounds_of(profile.player_id) >= cap:
            capped.append(profile.player_id)
        else:
            eligible.append(profile)
    return eligible, capped


class RoundPlanner:
    """Greedy planner for a single round."""

    def __init__(
        self,
        players: Sequence[SkillProfile],
        court_indices: Sequence[int],
        history: Optional[MatchupHistory] = None,
        round_number: int = 1,
        existing_singles: Sequence[Tuple[int, Sequence[SkillProfile]]] = (),
    ):
        self.players = sorted(players, key=lambda p: p.player_id)
        # Unplayed singles matches already on the round: (court_idx, players)
        self.existing_singles = sorted(
            [
                (court_idx, tuple(sorted(profiles, key=lambda p: p.player_id)))
                for court_idx, profiles in existing_singles
            ],
            key=lambda entry: entry[0],
        )
        self.court_indices = sorted(court_indices)
        self.history = history or MatchupHistory()
        self.round_number = round_number
        self._penalties_enabled = round_number > 1 and self.history.consistent

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def fairness_key(self, profile: SkillProfile) -> Tuple[int, float, int]:
        """Fewest matches this session first, then lowest skill, then id."""
        return (
            self.history.matches_played.get(profile.player_id, 0),
            ordering_skill(profile, MatchKind.DOUBLES),
            profile.player_id,
        )

    def partner_penalty(self, a: SkillProfile, b: SkillProfile) -> float:
        if self._penalties_enabled and self.history.were_partners(a.player_id, b.player_id):
            return REPEAT_PARTNER_PENALTY
        return 0

    def opponent_penalty(self, a: SkillProfile, b: SkillProfile) -> float:
        if self._penalties_enabled and self.history.shared_a_court(a.player_id, b.player_id):
            return REPEAT_OPPONENT_PENALTY
        return 0

    def score_split(
        self,
        team1: Tuple[SkillProfile, SkillProfile],
        team2: Tuple[SkillProfile, SkillProfile],
    ) -> float:
        """Score a 2 vs 2 split; lower is better."""
        kind = MatchKind.DOUBLES
        a, b = team1
        c, d = team2
        partner_gap = (
            skill_gap(a, b, kind) + self.partner_penalty(a, b)
            + skill_gap(c, d, kind) + self.partner_penalty(c, d)
        )
        opponent_gap = sum(
            skill_gap(x, y, kind) + self.opponent_penalty(x, y)
            for x in team1
            for y in team2
        )
        return partner_gap + OPPONENT_GAP_WEIGHT * opponent_gap + team_total_gap(team1, team2, kind)

    def score_singles(self, a: SkillProfile, b: SkillProfile) -> float:
        return skill_gap(a, b, MatchKind.SINGLES) + self.opponent_penalty(a, b)

    # ------------------------------------------------------------------
    # Match builders
    # ------------------------------------------------------------------

    def build_doubles(self, group: Sequence[SkillProfile], court_idx: int) -> PlannedMatch:
        """Pick the best of the three team splits of four players."""
        first, rest = group[0], list(group[1:])
        best_split = None
        best_score = None
        for partner in rest:
            team1 = (first, partner)
            team2 = tuple(p for p in rest if p is not partner)
            score = self.score_split(team1, team2)
            if best_score is None or score < best_score:
                best_score = score
                best_split = (team1, team2)
        team1, team2 = best_split
        return PlannedMatch(
            court_idx=court_idx,
            kind=MatchKind.DOUBLES,
            player_ids=tuple(p.player_id for p in (*team1, *team2)),
        )

    def build_singles(self, candidates: Sequence[SkillProfile], court_idx: int) -> PlannedMatch:
        """Pair the first candidate with their best-scoring opponent."""
        first = candidates[0]
        opponent = min(candidates[1:], key=lambda p: self.score_singles(first, p))
        return PlannedMatch(
            court_idx=court_idx,
            kind=MatchKind.SINGLES,
            player_ids=(first.player_id, opponent.player_id),
        )

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def plan(self) -> RoundPlan:
        plan = RoundPlan(round=self.round_number)
        by_id = {p.player_id: p for p in self.players}
        for _, profiles in self.existing_singles:
            by_id.update((p.player_id, p) for p in profiles)
        remaining: List[SkillProfile] = list(self.players)
        free_courts: List[int] = list(self.court_indices)

        while len(remaining) >= 2:
            remaining.sort(key=self.fairness_key)
            doubles_only = [p for p in remaining if is_doubles_only(p)]
            either = [p for p in remaining if p.category == PlayerCategory.EITHER]
            singles_only = [p for p in remaining if p.category == PlayerCategory.SINGLES_ONLY]
            singles_eligible = [p for p in remaining if can_play_singles(p)]

            group = None
            if free_courts:
                if doubles_only and len(remaining) >= MAX_PLAYERS_PER_COURT:
                    group = (doubles_only + either + singles_only)[:MAX_PLAYERS_PER_COURT]
                    group.sort(key=self.fairness_key)
                elif len(doubles_only) + len(either) >= MAX_PLAYERS_PER_COURT:
                    group = (doubles_only + either)[:MAX_PLAYERS_PER_COURT]
                    group.sort(key=self.fairness_key)
            if group:
                plan.matches.append(self.build_doubles(group, free_courts.pop(0)))
                remaining = _without(remaining, group)
                continue

            if doubles_only and len(remaining) < MAX_PLAYERS_PER_COURT:
                co_opted = self._co_opt(plan, remaining, by_id)
                if co_opted is not None:
                    remaining = co_opted
                    continue

            if free_courts and len(singles_eligible) >= 2:
                match = self.build_singles(singles_eligible, free_courts.pop(0))
                plan.matches.append(match)
                remaining = [p for p in remaining if p.player_id not in match.player_ids]
                continue

            break

        plan.benched = sorted(p.player_id for p in remaining)
        logger.debug(
            f"Round {self.round_number}: planned {len(plan.matches)} match(es), "
            f"benched {len(plan.benched)}"
        )
        return plan

    def _co_opt(
        self,
        plan: RoundPlan,
        remaining: List[SkillProfile],
        by_id: Dict[int, SkillProfile],
    ) -> Optional[List[SkillProfile]]:
        """
        Turn a singles match into a doubles by pulling the leftover
        doubles-only players onto its court. Both singles players stay on the
        court. Singles planned in this call go first,
        then unplayed singles already on the round (highest court first).

        Returns the new remaining list, or None if there is nobody to co-opt.
        """
        donor = next((m for m in reversed(plan.matches) if m.kind == MatchKind.SINGLES), None)
        existing = None
        if donor is None:
            existing = next(
                (
                    (court_idx, profiles)
                    for court_idx, profiles in reversed(self.existing_singles)
                    if court_idx not in plan.co_opted_courts
                ),
                None,
            )
            if existing is None:
                return None
            court_idx, donor_players = existing[0], list(existing[1])
        else:
            court_idx, donor_players = donor.court_idx, [by_id[pid] for pid in donor.player_ids]

        need = MAX_PLAYERS_PER_COURT - len(donor_players)
        if need <= 0 or len(remaining) < need:
            return None

        candidates = sorted(remaining, key=self.fairness_key)
        doubles_only = [p for p in candidates if is_doubles_only(p)]
        either = [p for p in candidates if p.category == PlayerCategory.EITHER]
        singles_only = [p for p in candidates if p.category == PlayerCategory.SINGLES_ONLY]
        joining = (doubles_only + either + singles_only)[:need]
        group = sorted(joining + donor_players, key=self.fairness_key)

        if donor is not None:
            plan.matches.remove(donor)
        else:
            plan.co_opted_courts.append(court_idx)
        plan.matches.append(self.build_doubles(group, court_idx))
        logger.debug(
            f"Round {self.round_number}: co-opted singles on court {court_idx} "
            f"to seat doubles-only players"
        )
        return _without(remaining, joining)


def _without(players: List[SkillProfile], taken: Sequence[SkillProfile]) -> List[SkillProfile]:
    taken_ids = {p.player_id for p in taken}
    return [p for p in players if p.player_id not in taken_ids]


def plan_round(
    players: Sequence[SkillProfile],
    court_indices: Sequence[int],
    history: Optional[MatchupHistory] = None,
    round_number: int = 1,
    existing_singles: Sequence[Tuple[int, Sequence[SkillProfile]]] = (),
) -> RoundPlan:
    """Plan one round. See ``RoundPlanner``."""
    return RoundPlanner(players, court_indices, history, round_number, existing_singles).plan()
