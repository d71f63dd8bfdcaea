"""
Court lookup and seeding.

Courts are numbered 1..N per tenant and outlive training sessions.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rundeklar.database.models import Court
from rundeklar.services.context import TenantContext
from rundeklar.utils.errors import CourtNotFoundError

logger = logging.getLogger(__name__)


async def list_courts(ctx: TenantContext) -> List[Court]:
    """All courts of the tenant, ordered by index."""
    result = await ctx.session.execute(
        select(Court).where(Court.tenant_id == ctx.tenant_id).order_by(Court.idx)
    )
    return list(result.scalars().all())


async def get_court_by_idx(ctx: TenantContext, court_idx: int) -> Court:
    result = await ctx.session.execute(
        select(Court).where(Court.tenant_id == ctx.tenant_id, Court.idx == court_idx)
    )
    court = result.scalar_one_or_none()
    if court is None:
        raise CourtNotFoundError(court_idx=court_idx)
    return court


async def ensure_courts(session: AsyncSession, tenant_id: str, count: int) -> int:
    """
    Make sure the tenant has courts 1..count. Existing courts are kept.

    Returns:
        Number of courts created
    """
    result = await session.execute(select(Court.idx).where(Court.tenant_id == tenant_id))
    existing = set(result.scalars().all())
    missing = [idx for idx in range(1, count + 1) if idx not in existing]
    for idx in missing:
        session.add(Court(tenant_id=tenant_id, idx=idx))
    if missing:
        await session.flush()
        logger.info(f"Seeded {len(missing)} court(s) for tenant {tenant_id}")
    return len(missing)
