"""
Player directory - list, create and update club players.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, or_, select

from rundeklar.database.models import Player
from rundeklar.models.schemas import PlayerCreateRequest, PlayerUpdateRequest
from rundeklar.services.context import TenantContext
from rundeklar.utils.errors import UnknownPlayerError

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    """Escape LIKE-special characters (%, _) so they match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def list_players(
    ctx: TenantContext, q: Optional[str] = None, active: Optional[bool] = None
) -> List[Player]:
    """
    List players of the tenant sorted by name.

    Args:
        ctx: Tenant context
        q: Case-insensitive substring matched against name and alias
        active: Only active (True) or inactive (False) players
    """
    query = select(Player).where(Player.tenant_id == ctx.tenant_id)
    if q and q.strip():
        pattern = f"%{_escape_like(q.strip().lower())}%"
        query = query.where(
            or_(
                func.lower(Player.name).like(pattern, escape="\\"),
                func.lower(func.coalesce(Player.alias, "")).like(pattern, escape="\\"),
            )
        )
    if active is not None:
        query = query.where(Player.active == active)
    query = query.order_by(func.lower(Player.name), Player.id)

    result = await ctx.session.execute(query)
    return list(result.scalars().all())


async def get_player(ctx: TenantContext, player_id: int) -> Player:
    result = await ctx.session.execute(
        select(Player).where(Player.tenant_id == ctx.tenant_id, Player.id == player_id)
    )
    player = result.scalar_one_or_none()
    if player is None:
        raise UnknownPlayerError(player_id=player_id)
    return player


async def get_players_by_ids(ctx: TenantContext, player_ids) -> dict:
    """Map of id -> Player for the given ids (missing ids are left out)."""
    ids = list(set(player_ids))
    if not ids:
        return {}
    result = await ctx.session.execute(
        select(Player).where(Player.tenant_id == ctx.tenant_id, Player.id.in_(ids))
    )
    return {player.id: player for player in result.scalars().all()}


async def create_player(ctx: TenantContext, data: PlayerCreateRequest) -> Player:
    player = Player(
        tenant_id=ctx.tenant_id,
        name=data.name,
        alias=data.alias,
        level_single=data.level_single,
        level_double=data.level_double,
        level_mix=data.level_mix,
        gender=data.gender,
        primary_category=data.primary_category,
        active=data.active,
        training_groups=list(data.training_groups),
        preferred_doubles_partners=list(data.preferred_doubles_partners),
        preferred_mixed_partners=list(data.preferred_mixed_partners),
    )
    ctx.session.add(player)
    await ctx.session.flush()
    logger.info(f"Created player {player.id} ({player.name}) for tenant {ctx.tenant_id}")
    return player


async def update_player(ctx: TenantContext, player_id: int, patch: PlayerUpdateRequest) -> Player:
    """Apply the fields set on ``patch``; unknown ids raise UnknownPlayerError."""
    player = await get_player(ctx, player_id)
    for key, value in patch.changes().items():
        if key in ("training_groups", "preferred_doubles_partners", "preferred_mixed_partners"):
            value = list(value or [])
        setattr(player, key, value)
    await ctx.session.flush()
    await ctx.session.refresh(player)
    return player
