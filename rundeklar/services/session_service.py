"""
Training session lifecycle: start (or reuse) the active session, and end it.

Ending a session stamps ``ended_at`` on its open matches, moves it to ENDED
and writes the statistics snapshot, all in the caller's transaction. A failed
snapshot raises SnapshotFailedError so the whole end is rolled back.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from rundeklar.database.models import Match, SessionStatus, TrainingSession
from rundeklar.services import snapshot_service
from rundeklar.services.context import TenantContext
from rundeklar.utils.datetime_utils import utcnow
from rundeklar.utils.errors import (
    NoActiveSessionError,
    SessionAlreadyEndedError,
    SnapshotFailedError,
)

logger = logging.getLogger(__name__)


async def get_active(ctx: TenantContext) -> Optional[TrainingSession]:
    return await ctx.active_session()


async def start_or_get(ctx: TenantContext) -> TrainingSession:
    """
    Return the active session, creating one dated now if there is none.

    Two concurrent starts race on the one-active-per-tenant index; the loser
    gets the winner's session.
    """
    active = await ctx.active_session()
    if active is not None:
        return active

    training_session = TrainingSession(
        tenant_id=ctx.tenant_id,
        date=utcnow(),
        status=SessionStatus.ACTIVE,
        ended_at=None,
    )
    ctx.session.add(training_session)
    try:
        await ctx.session.flush()
    except IntegrityError:
        await ctx.session.rollback()
        ctx.forget_active_session()
        active = await ctx.active_session()
        if active is None:
            raise
        logger.warning(
            f"Concurrent session start for tenant {ctx.tenant_id}; using session {active.id}"
        )
        return active

    ctx.set_active_session(training_session)
    logger.info(f"Started training session {training_session.id} for tenant {ctx.tenant_id}")
    return training_session


async def _get_session(ctx: TenantContext, session_id: int) -> Optional[TrainingSession]:
    result = await ctx.session.execute(
        select(TrainingSession).where(
            TrainingSession.tenant_id == ctx.tenant_id,
            TrainingSession.id == session_id,
        )
    )
    return result.scalar_one_or_none()


async def end(ctx: TenantContext, session_id: Optional[int] = None) -> TrainingSession:
    """
    End a session (the active one by default).

    Raises:
        NoActiveSessionError: No session to end
        SessionAlreadyEndedError: The session is not active
        SnapshotFailedError: The snapshot could not be written
    """
    if session_id is None:
        training_session = await ctx.active_session()
        if training_session is None:
            raise NoActiveSessionError()
    else:
        training_session = await _get_session(ctx, session_id)
        if training_session is None:
            raise NoActiveSessionError()
    if training_session.status != SessionStatus.ACTIVE:
        raise SessionAlreadyEndedError(session_id=training_session.id)

    now = utcnow()
    await ctx.session.execute(
        update(Match)
        .where(
            Match.tenant_id == ctx.tenant_id,
            Match.session_id == training_session.id,
            Match.ended_at.is_(None),
        )
        .values(ended_at=now)
    )
    training_session.status = SessionStatus.ENDED
    training_session.ended_at = now
    await ctx.session.flush()

    try:
        await snapshot_service.create_snapshot(ctx, training_session)
    except Exception as e:
        logger.error(f"Snapshot of session {training_session.id} failed: {e}", exc_info=True)
        raise SnapshotFailedError(session_id=training_session.id) from e

    ctx.set_active_session(None)
    logger.info(f"Ended training session {training_session.id} for tenant {ctx.tenant_id}")
    return training_session
