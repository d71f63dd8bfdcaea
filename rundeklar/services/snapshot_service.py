"""
Statistics snapshots - frozen copies of ended training sessions.

A snapshot embeds every match (court index, round, timestamps, result), slot
assignment and check-in of the session as JSON documents, so statistics can
be read without touching the live tables. Snapshots are created once, when
the session ends, and never change afterwards.
"""

import copy
import logging
from collections import Counter
from typing import Dict, List, Optional

from sqlalchemy import select

from rundeklar.database.models import (
    CheckIn,
    Court,
    Match,
    MatchPlayer,
    MatchResult,
    Player,
    StatisticsSnapshot,
    TrainingSession,
)
from rundeklar.models.schemas import AttendanceEntry, PairCount, PlayerStatisticsResponse
from rundeklar.services.context import TenantContext
from rundeklar.utils.constants import SNAPSHOT_FORMAT_VERSION
from rundeklar.utils.datetime_utils import isoformat_or_none, season_for_date

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def _collect_matches(ctx: TenantContext, session_id: int) -> List[dict]:
    result = await ctx.session.execute(
        select(Match, Court.idx, MatchResult)
        .join(Court, Court.id == Match.court_id)
        .outerjoin(MatchResult, MatchResult.match_id == Match.id)
        .where(Match.tenant_id == ctx.tenant_id, Match.session_id == session_id)
        .order_by(Match.round, Court.idx, Match.id)
    )
    documents = []
    for match, court_idx, match_result in result.all():
        documents.append(
            {
                "id": match.id,
                "court_idx": court_idx,
                "round": match.round,
                "started_at": isoformat_or_none(match.started_at),
                "ended_at": isoformat_or_none(match.ended_at),
                "result": None if match_result is None else {
                    "sport": match_result.sport.value,
                    "score_data": copy.deepcopy(match_result.score_data),
                    "winner_team": match_result.winner_team,
                },
            }
        )
    return documents


async def _collect_match_players(ctx: TenantContext, session_id: int) -> List[dict]:
    result = await ctx.session.execute(
        select(MatchPlayer, Player.name)
        .join(Match, Match.id == MatchPlayer.match_id)
        .join(Player, Player.id == MatchPlayer.player_id)
        .where(Match.tenant_id == ctx.tenant_id, Match.session_id == session_id)
        .order_by(MatchPlayer.match_id, MatchPlayer.slot)
    )
    return [
        {
            "id": match_player.id,
            "match_id": match_player.match_id,
            "player_id": match_player.player_id,
            "player_name": name,
            "slot": match_player.slot,
        }
        for match_player, name in result.all()
    ]


async def _collect_check_ins(ctx: TenantContext, session_id: int) -> List[dict]:
    result = await ctx.session.execute(
        select(CheckIn, Player.name)
        .join(Player, Player.id == CheckIn.player_id)
        .where(CheckIn.tenant_id == ctx.tenant_id, CheckIn.session_id == session_id)
        .order_by(CheckIn.created_at, CheckIn.id)
    )
    return [
        {
            "id": check_in.id,
            "player_id": check_in.player_id,
            "player_name": name,
            "max_rounds": check_in.max_rounds,
            "notes": check_in.notes,
            "created_at": isoformat_or_none(check_in.created_at),
        }
        for check_in, name in result.all()
    ]


async def create_snapshot(ctx: TenantContext, training_session: TrainingSession) -> StatisticsSnapshot:
    """
    Snapshot an ended session. Raises on store errors; the caller decides
    whether the surrounding transaction survives.
    """
    snapshot = StatisticsSnapshot(
        tenant_id=ctx.tenant_id,
        session_id=training_session.id,
        session_date=training_session.date,
        season=season_for_date(training_session.date),
        format_version=SNAPSHOT_FORMAT_VERSION,
        matches=await _collect_matches(ctx, training_session.id),
        match_players=await _collect_match_players(ctx, training_session.id),
        check_ins=await _collect_check_ins(ctx, training_session.id),
    )
    ctx.session.add(snapshot)
    await ctx.session.flush()
    logger.info(
        f"Created statistics snapshot for session {training_session.id} "
        f"({len(snapshot.matches)} matches, {len(snapshot.check_ins)} check-ins)"
    )
    return snapshot


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_snapshots(ctx: TenantContext, season: Optional[str] = None) -> List[StatisticsSnapshot]:
    """Snapshots of the tenant, newest session first."""
    query = select(StatisticsSnapshot).where(StatisticsSnapshot.tenant_id == ctx.tenant_id)
    if season:
        query = query.where(StatisticsSnapshot.season == season)
    query = query.order_by(StatisticsSnapshot.session_date.desc(), StatisticsSnapshot.id.desc())
    result = await ctx.session.execute(query)
    return list(result.scalars().all())


async def list_seasons(ctx: TenantContext) -> List[str]:
    """Seasons that have at least one snapshot, newest first."""
    result = await ctx.session.execute(
        select(StatisticsSnapshot.season)
        .where(StatisticsSnapshot.tenant_id == ctx.tenant_id)
        .distinct()
    )
    return sorted(result.scalars().all(), reverse=True)


def _team_of(slot: int) -> str:
    # Slots 0,1 are team 1 and 2,3 team 2; singles use 1 and 2
    return "team1" if slot < 2 else "team2"


def _pair_counts(counter: Counter, names: Dict[int, str]) -> List[PairCount]:
    pairs = [
        PairCount(player_id=player_id, player_name=names.get(player_id, ""), count=count)
        for player_id, count in counter.items()
    ]
    return sorted(pairs, key=lambda p: (-p.count, p.player_name, p.player_id))


async def player_statistics(
    ctx: TenantContext, player_id: int, season: Optional[str] = None
) -> PlayerStatisticsResponse:
    """Attendance, wins, losses, partners and opponents of one player."""
    snapshots = await list_snapshots(ctx, season)

    sessions_attended = 0
    matches_played = wins = losses = 0
    partners: Counter = Counter()
    opponents: Counter = Counter()
    names: Dict[int, str] = {}

    for snapshot in snapshots:
        if any(c.get("player_id") == player_id for c in snapshot.check_ins):
            sessions_attended += 1

        slots_by_match: Dict[int, List[dict]] = {}
        for mp in snapshot.match_players:
            slots_by_match.setdefault(mp["match_id"], []).append(mp)
            names[mp["player_id"]] = mp.get("player_name", "")

        for match in snapshot.matches:
            slots = slots_by_match.get(match["id"], [])
            own = next((mp for mp in slots if mp["player_id"] == player_id), None)
            if own is None:
                continue
            matches_played += 1
            team = _team_of(own["slot"])
            for mp in slots:
                if mp["player_id"] == player_id:
                    continue
                if _team_of(mp["slot"]) == team and len(slots) > 2:
                    partners[mp["player_id"]] += 1
                else:
                    opponents[mp["player_id"]] += 1
            result = match.get("result")
            if result:
                if result.get("winner_team") == team:
                    wins += 1
                else:
                    losses += 1

    return PlayerStatisticsResponse(
        player_id=player_id,
        season=season,
        sessions_attended=sessions_attended,
        matches_played=matches_played,
        wins=wins,
        losses=losses,
        partners=_pair_counts(partners, names),
        opponents=_pair_counts(opponents, names),
    )


async def attendance(ctx: TenantContext, season: Optional[str] = None) -> List[AttendanceEntry]:
    snapshots = await list_snapshots(ctx, season)
    return [
        AttendanceEntry(
            session_id=snapshot.session_id,
            session_date=snapshot.session_date,
            season=snapshot.season,
            check_ins=len(snapshot.check_ins),
            matches=len(snapshot.matches),
        )
        for snapshot in snapshots
    ]
