"""
Match service - round listings, automatic arrangement, manual adjustment
(place, bench, swap) and match results.

Every operation touches a single round of the active session. After each
operation a player holds at most one slot per round, a match holds at most
four slots, and (match, slot) and (match, player) are unique.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, select

from rundeklar.database.models import (
    Court,
    Match,
    MatchPlayer,
    MatchResult,
    Player,
    SessionStatus,
    Sport,
    TrainingSession,
)
from rundeklar.models.schemas import (
    AutoArrangeResponse,
    CourtWithPlayersResponse,
    MatchResultResponse,
    PlayerResponse,
    SlotResponse,
)
from rundeklar.services import checkin_service, court_service, player_service
from rundeklar.services.context import TenantContext
from rundeklar.services.round_planner import (
    HistorySlot,
    MatchupHistory,
    apply_round_caps,
    plan_round,
)
from rundeklar.services.score_validation import validate_match_result
from rundeklar.services.skill import SkillProfile
from rundeklar.utils.constants import MAX_PLAYERS_PER_COURT
from rundeklar.utils.datetime_utils import utcnow
from rundeklar.utils.errors import (
    CourtFullError,
    NotCheckedInError,
    SessionAlreadyEndedError,
    SlotOccupiedError,
    UnknownMatchError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_ROUND = 1


@dataclass
class Position:
    """Where a player sits in a round."""

    row: MatchPlayer
    match: Match


# ---------------------------------------------------------------------------
# Round state helpers
# ---------------------------------------------------------------------------


async def _round_positions(ctx: TenantContext, session_id: int, round_number: int) -> List[Position]:
    result = await ctx.session.execute(
        select(MatchPlayer, Match)
        .join(Match, Match.id == MatchPlayer.match_id)
        .where(
            Match.tenant_id == ctx.tenant_id,
            Match.session_id == session_id,
            Match.round == round_number,
        )
        .order_by(Match.id, MatchPlayer.slot)
    )
    return [Position(row=row[0], match=row[1]) for row in result.all()]


async def _round_matches(ctx: TenantContext, session_id: int, round_number: int) -> List[Match]:
    result = await ctx.session.execute(
        select(Match)
        .where(
            Match.tenant_id == ctx.tenant_id,
            Match.session_id == session_id,
            Match.round == round_number,
        )
        .order_by(Match.id)
    )
    return list(result.scalars().all())


def _find_position(positions: List[Position], player_id: int) -> Optional[Position]:
    return next((p for p in positions if p.row.player_id == player_id), None)


async def _require_checked_in(ctx: TenantContext, session_id: int, player_id: int) -> None:
    if not await checkin_service.is_checked_in(ctx, session_id, player_id):
        raise NotCheckedInError(player_id=player_id)


async def _create_match(ctx: TenantContext, session_id: int, court: Court, round_number: int) -> Match:
    match = Match(
        tenant_id=ctx.tenant_id,
        session_id=session_id,
        court_id=court.id,
        round=round_number,
        started_at=utcnow(),
        ended_at=None,
    )
    ctx.session.add(match)
    await ctx.session.flush()
    return match


def _add_slot(ctx: TenantContext, match_id: int, player_id: int, slot: int) -> None:
    ctx.session.add(
        MatchPlayer(tenant_id=ctx.tenant_id, match_id=match_id, player_id=player_id, slot=slot)
    )


async def _delete_slot_rows(ctx: TenantContext, rows: List[MatchPlayer]) -> None:
    if rows:
        await ctx.session.execute(
            delete(MatchPlayer).where(MatchPlayer.id.in_([row.id for row in rows]))
        )
        await ctx.session.flush()


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def _result_response(result: Optional[MatchResult]) -> Optional[MatchResultResponse]:
    if result is None:
        return None
    return MatchResultResponse(
        match_id=result.match_id,
        sport=result.sport,
        score_data=result.score_data,
        winner_team=result.winner_team,
    )


async def list_courts(ctx: TenantContext, round_number: int = DEFAULT_ROUND) -> List[CourtWithPlayersResponse]:
    """
    Every court of the tenant with its slots in the given round.

    Without an active session all courts are returned empty.
    """
    courts = await court_service.list_courts(ctx)
    training_session = await ctx.active_session()
    if training_session is None:
        return [CourtWithPlayersResponse(court_idx=court.idx, round=round_number) for court in courts]

    matches = await _round_matches(ctx, training_session.id, round_number)
    match_by_court = {match.court_id: match for match in matches}
    match_ids = [match.id for match in matches]

    slots_by_match: Dict[int, List[SlotResponse]] = {match_id: [] for match_id in match_ids}
    results: Dict[int, MatchResult] = {}
    if match_ids:
        slot_rows = await ctx.session.execute(
            select(MatchPlayer, Player)
            .join(Player, Player.id == MatchPlayer.player_id)
            .where(MatchPlayer.match_id.in_(match_ids))
            .order_by(MatchPlayer.match_id, MatchPlayer.slot)
        )
        for match_player, player in slot_rows.all():
            slots_by_match[match_player.match_id].append(
                SlotResponse(slot=match_player.slot, player=PlayerResponse.model_validate(player))
            )
        result_rows = await ctx.session.execute(
            select(MatchResult).where(
                MatchResult.tenant_id == ctx.tenant_id,
                MatchResult.match_id.in_(match_ids),
            )
        )
        results = {row.match_id: row for row in result_rows.scalars().all()}

    listing = []
    for court in courts:
        match = match_by_court.get(court.id)
        if match is None:
            listing.append(CourtWithPlayersResponse(court_idx=court.idx, round=round_number))
            continue
        slots = slots_by_match.get(match.id, [])
        listing.append(
            CourtWithPlayersResponse(
                court_idx=court.idx,
                match_id=match.id,
                round=round_number,
                slots=slots,
                incomplete=len(slots) not in (0, 2, MAX_PLAYERS_PER_COURT),
                result=_result_response(results.get(match.id)),
            )
        )
    return listing


# ---------------------------------------------------------------------------
# Automatic arrangement
# ---------------------------------------------------------------------------


async def _history_before(ctx: TenantContext, session_id: int, round_number: int) -> List[HistorySlot]:
    result = await ctx.session.execute(
        select(MatchPlayer.match_id, Match.round, MatchPlayer.player_id, MatchPlayer.slot)
        .join(Match, Match.id == MatchPlayer.match_id)
        .where(
            Match.tenant_id == ctx.tenant_id,
            Match.session_id == session_id,
            Match.round < round_number,
        )
    )
    return [
        HistorySlot(match_id=row.match_id, round=row.round, player_id=row.player_id, slot=row.slot)
        for row in result.all()
    ]


async def _open_singles(
    ctx: TenantContext, positions: List[Position], court_idx_by_id: Dict[int, int]
) -> Tuple[List[Tuple[int, List[SkillProfile]]], Dict[int, Match]]:
    """Unplayed 2-player matches of the round, as planner input and by court index."""
    by_match: Dict[int, List[Position]] = {}
    for position in positions:
        by_match.setdefault(position.match.id, []).append(position)
    candidates = {
        match_id: rows
        for match_id, rows in by_match.items()
        if len(rows) == 2 and rows[0].match.ended_at is None
    }
    if not candidates:
        return [], {}

    played = await ctx.session.execute(
        select(MatchResult.match_id).where(MatchResult.match_id.in_(list(candidates)))
    )
    played_ids = set(played.scalars().all())
    players = await player_service.get_players_by_ids(
        ctx, [p.row.player_id for rows in candidates.values() for p in rows]
    )

    singles = []
    matches_by_court = {}
    for match_id, rows in sorted(candidates.items()):
        if match_id in played_ids:
            continue
        court_idx = court_idx_by_id[rows[0].match.court_id]
        singles.append((court_idx, [SkillProfile.from_player(players[p.row.player_id]) for p in rows]))
        matches_by_court[court_idx] = rows[0].match
    return singles, matches_by_court


async def auto_arrange(ctx: TenantContext, round_number: int = DEFAULT_ROUND) -> AutoArrangeResponse:
    """
    Fill the free courts of a round with checked-in players.

    Players already placed in the round and courts already holding a match in
    the round are left alone, so manual placements survive. The one exception
    is an unplayed singles match whose players are needed to seat leftover
    doubles-only players; that court is rebuilt as a doubles.
    """
    training_session = await ctx.require_active_session()
    session_id = training_session.id

    ledger = await checkin_service.list_active(ctx)
    positions = await _round_positions(ctx, session_id, round_number)
    placed = {p.row.player_id for p in positions}
    busy_courts = {match.court_id for match in await _round_matches(ctx, session_id, round_number)}
    courts = await court_service.list_courts(ctx)
    free_courts = {court.idx: court for court in courts if court.id not in busy_courts}
    open_singles, open_singles_by_court = await _open_singles(
        ctx, positions, {court.id: court.idx for court in courts}
    )

    candidates = [
        SkillProfile.from_player(player)
        for _, player in ledger
        if player.active and player.id not in placed
    ]
    max_rounds = {check_in.player_id: check_in.max_rounds for check_in, _ in ledger}

    history = MatchupHistory.from_slots(
        await _history_before(ctx, session_id, round_number), before_round=round_number
    )
    eligible, capped = apply_round_caps(candidates, max_rounds, history)

    plan = plan_round(eligible, list(free_courts), history, round_number, open_singles)

    for planned in plan.matches:
        if planned.court_idx in plan.co_opted_courts:
            match = open_singles_by_court[planned.court_idx]
            await ctx.session.execute(delete(MatchPlayer).where(MatchPlayer.match_id == match.id))
            await ctx.session.flush()
        else:
            match = await _create_match(ctx, session_id, free_courts[planned.court_idx], round_number)
        for slot, player_id in planned.slot_assignments():
            _add_slot(ctx, match.id, player_id, slot)
    await ctx.session.flush()

    logger.info(
        f"Auto-arranged round {round_number} of session {session_id}: "
        f"{len(plan.matches)} court(s), {len(plan.benched)} benched, {len(capped)} capped"
    )
    return AutoArrangeResponse(
        round=round_number,
        filled_courts=len(plan.matches),
        benched=len(plan.benched),
        benched_player_ids=plan.benched,
    )


async def reset(ctx: TenantContext, round_number: Optional[int] = None) -> int:
    """
    Delete the matches of the active session (all rounds, or one round),
    including their slots and results. Returns the number of matches deleted.
    """
    training_session = await ctx.require_active_session()
    query = select(Match.id).where(
        Match.tenant_id == ctx.tenant_id,
        Match.session_id == training_session.id,
    )
    if round_number is not None:
        query = query.where(Match.round == round_number)
    match_ids = list((await ctx.session.execute(query)).scalars().all())
    if not match_ids:
        return 0

    await ctx.session.execute(delete(MatchResult).where(MatchResult.match_id.in_(match_ids)))
    await ctx.session.execute(delete(MatchPlayer).where(MatchPlayer.match_id.in_(match_ids)))
    await ctx.session.execute(delete(Match).where(Match.id.in_(match_ids)))
    await ctx.session.flush()
    logger.info(f"Reset {len(match_ids)} match(es) in session {training_session.id}")
    return len(match_ids)


# ---------------------------------------------------------------------------
# Manual adjustment
# ---------------------------------------------------------------------------


async def place(
    ctx: TenantContext,
    player_id: int,
    court_idx: int,
    slot: int,
    round_number: int = DEFAULT_ROUND,
) -> None:
    """
    Put a player in a slot of a court in a round.

    The player leaves any other court of the same round; a match is created
    on the target court if the round has none there yet. Placing a player in
    the slot they already hold is a no-op.

    Raises:
        NotCheckedInError: Player is not in the ledger
        CourtNotFoundError: No court with that index
        SlotOccupiedError: Slot belongs to another player
        CourtFullError: Court already holds four other players
    """
    training_session = await ctx.require_active_session()
    session_id = training_session.id
    await _require_checked_in(ctx, session_id, player_id)
    court = await court_service.get_court_by_idx(ctx, court_idx)

    positions = await _round_positions(ctx, session_id, round_number)
    current = _find_position(positions, player_id)
    target_match = next(
        (match for match in await _round_matches(ctx, session_id, round_number) if match.court_id == court.id),
        None,
    )

    if target_match is not None:
        on_target = [p for p in positions if p.match.id == target_match.id]
        occupant = next((p for p in on_target if p.row.slot == slot), None)
        if occupant is not None:
            if occupant.row.player_id == player_id:
                return
            raise SlotOccupiedError(court_idx=court_idx, slot=slot)
        others = [p for p in on_target if p.row.player_id != player_id]
        if len(others) >= MAX_PLAYERS_PER_COURT:
            raise CourtFullError(court_idx=court_idx)

    if current is not None:
        if target_match is not None and current.match.id == target_match.id:
            current.row.slot = slot
            await ctx.session.flush()
            return
        await _delete_slot_rows(ctx, [current.row])
        await checkin_service.delete_empty_matches(ctx, [current.match.id])

    if target_match is None:
        target_match = await _create_match(ctx, session_id, court, round_number)
    _add_slot(ctx, target_match.id, player_id, slot)
    await ctx.session.flush()


async def bench(ctx: TenantContext, player_id: int, round_number: int = DEFAULT_ROUND) -> bool:
    """
    Take a player off their court in a round. The match is deleted if it
    becomes empty. Returns False if the player was already benched.
    """
    training_session = await ctx.require_active_session()
    positions = await _round_positions(ctx, training_session.id, round_number)
    current = _find_position(positions, player_id)
    if current is None:
        return False
    await _delete_slot_rows(ctx, [current.row])
    await checkin_service.delete_empty_matches(ctx, [current.match.id])
    await ctx.session.flush()
    return True


async def move(
    ctx: TenantContext,
    player_id: int,
    to_court_idx: Optional[int] = None,
    to_slot: Optional[int] = None,
    round_number: int = DEFAULT_ROUND,
) -> None:
    """Place the player, or bench them when no court is given."""
    if to_court_idx is None:
        training_session = await ctx.require_active_session()
        await _require_checked_in(ctx, training_session.id, player_id)
        await bench(ctx, player_id, round_number)
        return
    if to_slot is None:
        raise ValidationError("to_slot", "to_slot is required when to_court_idx is set")
    await place(ctx, player_id, to_court_idx, to_slot, round_number)


async def swap(
    ctx: TenantContext,
    player_a_id: int,
    player_b_id: int,
    round_number: int = DEFAULT_ROUND,
) -> None:
    """
    Exchange the positions of two players in a round.

    If one of them is benched, the other takes the bench. Old slots are
    deleted and flushed before the new ones are inserted so no unique
    constraint is hit halfway.
    """
    training_session = await ctx.require_active_session()
    session_id = training_session.id
    await _require_checked_in(ctx, session_id, player_a_id)
    await _require_checked_in(ctx, session_id, player_b_id)

    positions = await _round_positions(ctx, session_id, round_number)
    pos_a = _find_position(positions, player_a_id)
    pos_b = _find_position(positions, player_b_id)
    if pos_a is None and pos_b is None:
        return

    targets: List[Tuple[int, int, int]] = []
    if pos_b is not None:
        targets.append((pos_b.match.id, pos_b.row.slot, player_a_id))
    if pos_a is not None:
        targets.append((pos_a.match.id, pos_a.row.slot, player_b_id))

    await _delete_slot_rows(ctx, [p.row for p in (pos_a, pos_b) if p is not None])
    for match_id, slot, player_id in targets:
        _add_slot(ctx, match_id, player_id, slot)
    await ctx.session.flush()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


async def record_result(
    ctx: TenantContext,
    match_id: int,
    sport: Sport,
    score_data: dict,
) -> MatchResultResponse:
    """
    Validate and store the score of a match, replacing an earlier result.

    Raises:
        UnknownMatchError: No such match in the tenant
        SessionAlreadyEndedError: The match belongs to an ended session
        ValidationError: Score breaks the rules of the sport
    """
    row = (
        await ctx.session.execute(
            select(Match, TrainingSession.status)
            .join(TrainingSession, TrainingSession.id == Match.session_id)
            .where(Match.tenant_id == ctx.tenant_id, Match.id == match_id)
        )
    ).first()
    if row is None:
        raise UnknownMatchError(match_id=match_id)
    if row.status == SessionStatus.ENDED:
        raise SessionAlreadyEndedError()

    validation = validate_match_result(sport, score_data)
    if not validation.valid:
        raise ValidationError("score_data", validation.error)

    existing = (
        await ctx.session.execute(
            select(MatchResult).where(
                MatchResult.tenant_id == ctx.tenant_id,
                MatchResult.match_id == match_id,
            )
        )
    ).scalar_one_or_none()
    if existing is None:
        existing = MatchResult(tenant_id=ctx.tenant_id, match_id=match_id)
        ctx.session.add(existing)
    existing.sport = sport
    existing.score_data = dict(score_data)
    existing.winner_team = validation.winner
    await ctx.session.flush()

    logger.info(f"Recorded {sport.value} result for match {match_id}: {validation.winner} won")
    return _result_response(existing)
