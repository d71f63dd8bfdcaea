"""
Check-in ledger - which players attend the active training session.

Rows are unique per (session, player). Admission is optimistic: a duplicate
caught by the store's unique constraint is reported as AlreadyCheckedInError
carrying the row that won the race.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError

from rundeklar.database.models import CheckIn, Match, MatchPlayer, MatchResult, Player
from rundeklar.services import player_service
from rundeklar.services.context import TenantContext
from rundeklar.utils.datetime_utils import utcnow
from rundeklar.utils.errors import (
    AlreadyCheckedInError,
    InactivePlayerError,
    NotCheckedInError,
)

logger = logging.getLogger(__name__)

CHECK_IN_FIELDS = ("max_rounds", "notes")


async def _find_check_in(ctx: TenantContext, session_id: int, player_id: int) -> Optional[CheckIn]:
    result = await ctx.session.execute(
        select(CheckIn).where(
            CheckIn.tenant_id == ctx.tenant_id,
            CheckIn.session_id == session_id,
            CheckIn.player_id == player_id,
        )
    )
    return result.scalar_one_or_none()


async def admit(
    ctx: TenantContext,
    player_id: int,
    max_rounds: Optional[int] = None,
    notes: Optional[str] = None,
) -> CheckIn:
    """
    Check a player in to the active session.

    Raises:
        NoActiveSessionError: No active session
        UnknownPlayerError: Player id not in the tenant
        InactivePlayerError: Player is inactive
        AlreadyCheckedInError: Player already in the ledger (``check_in`` holds the row)
    """
    training_session = await ctx.require_active_session()
    session_id = training_session.id
    player = await player_service.get_player(ctx, player_id)
    if not player.active:
        raise InactivePlayerError(player_id=player_id)

    existing = await _find_check_in(ctx, session_id, player_id)
    if existing is not None:
        raise AlreadyCheckedInError(check_in=existing, player_id=player_id)

    check_in = CheckIn(
        tenant_id=ctx.tenant_id,
        session_id=session_id,
        player_id=player_id,
        max_rounds=max_rounds,
        notes=notes,
        created_at=utcnow(),
    )
    ctx.session.add(check_in)
    try:
        await ctx.session.flush()
    except IntegrityError:
        # Lost a race against a concurrent admit of the same player
        await ctx.session.rollback()
        ctx.forget_active_session()
        winner = await _find_check_in(ctx, session_id, player_id)
        if winner is None:
            raise
        logger.warning(f"Concurrent check-in of player {player_id} in session {session_id}")
        raise AlreadyCheckedInError(check_in=winner, player_id=player_id)

    logger.info(f"Player {player_id} checked in to session {session_id}")
    return check_in


async def update(ctx: TenantContext, player_id: int, changes: dict) -> CheckIn:
    """Change max_rounds and/or notes of a check-in; absent keys are left alone."""
    training_session = await ctx.require_active_session()
    check_in = await _find_check_in(ctx, training_session.id, player_id)
    if check_in is None:
        raise NotCheckedInError(player_id=player_id)
    for key in CHECK_IN_FIELDS:
        if key in changes:
            setattr(check_in, key, changes[key])
    await ctx.session.flush()
    return check_in


def _unplayed_match_filter():
    return (
        Match.ended_at.is_(None),
        ~exists().where(MatchResult.match_id == Match.id),
    )


async def release_from_unplayed_matches(ctx: TenantContext, session_id: int, player_id: int) -> int:
    """
    Drop the player's slots in matches of the session that have not been
    played, deleting matches left empty. Returns the number of slots removed.
    """
    result = await ctx.session.execute(
        select(MatchPlayer.id, MatchPlayer.match_id)
        .join(Match, Match.id == MatchPlayer.match_id)
        .where(
            MatchPlayer.tenant_id == ctx.tenant_id,
            MatchPlayer.player_id == player_id,
            Match.session_id == session_id,
            *_unplayed_match_filter(),
        )
    )
    rows = result.all()
    if not rows:
        return 0

    await ctx.session.execute(
        delete(MatchPlayer).where(MatchPlayer.id.in_([row.id for row in rows]))
    )
    await delete_empty_matches(ctx, [row.match_id for row in rows])
    return len(rows)


async def delete_empty_matches(ctx: TenantContext, match_ids) -> None:
    """Delete the given matches if they have no slot left."""
    ids = list(set(match_ids))
    if not ids:
        return
    occupied = await ctx.session.execute(
        select(MatchPlayer.match_id).where(MatchPlayer.match_id.in_(ids)).distinct()
    )
    still_used = set(occupied.scalars().all())
    empty = [match_id for match_id in ids if match_id not in still_used]
    if empty:
        await ctx.session.execute(delete(MatchResult).where(MatchResult.match_id.in_(empty)))
        await ctx.session.execute(
            delete(Match).where(Match.tenant_id == ctx.tenant_id, Match.id.in_(empty))
        )


async def remove(ctx: TenantContext, player_id: int) -> bool:
    """
    Remove a player's check-in. Removing an absent player is a no-op.

    Slots in played matches are kept for history; slots in unplayed matches
    are released.

    Returns:
        True if a row was removed
    """
    training_session = await ctx.require_active_session()
    session_id = training_session.id
    check_in = await _find_check_in(ctx, session_id, player_id)
    if check_in is None:
        return False

    released = await release_from_unplayed_matches(ctx, session_id, player_id)
    await ctx.session.execute(delete(CheckIn).where(CheckIn.id == check_in.id))
    await ctx.session.flush()
    logger.info(
        f"Player {player_id} checked out of session {session_id} "
        f"(released {released} unplayed slot(s))"
    )
    return True


async def list_active(ctx: TenantContext) -> List[Tuple[CheckIn, Player]]:
    """Ledger of the active session with players, by arrival then id."""
    training_session = await ctx.require_active_session()
    result = await ctx.session.execute(
        select(CheckIn, Player)
        .join(Player, Player.id == CheckIn.player_id)
        .where(
            CheckIn.tenant_id == ctx.tenant_id,
            CheckIn.session_id == training_session.id,
        )
        .order_by(CheckIn.created_at, CheckIn.id)
    )
    return [(row[0], row[1]) for row in result.all()]


async def is_checked_in(ctx: TenantContext, session_id: int, player_id: int) -> bool:
    return await _find_check_in(ctx, session_id, player_id) is not None
