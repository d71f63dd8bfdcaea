"""
Session cleanup service - auto-ends ACTIVE sessions left open too long.

Background worker that polls every few minutes. Sessions active for longer
than SESSION_MAX_DURATION_HOURS are ended through the normal end path, so
they get a statistics snapshot like any other session.
"""

import asyncio
import logging
import os
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import select

from rundeklar.database import db
from rundeklar.database.models import SessionStatus, TrainingSession
from rundeklar.services import session_service
from rundeklar.services.context import TenantContext
from rundeklar.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Sessions active longer than this are ended automatically
SESSION_MAX_DURATION_HOURS = float(os.getenv("SESSION_MAX_DURATION_HOURS", "5"))

# How often the worker checks for stale sessions (seconds)
POLL_INTERVAL_SECONDS = float(os.getenv("SESSION_CLEANUP_POLL_SECONDS", "300"))


class SessionCleanupService:
    """Background service that ends stale ACTIVE sessions."""

    def __init__(
        self,
        max_duration_hours: float = SESSION_MAX_DURATION_HOURS,
        poll_interval_seconds: float = POLL_INTERVAL_SECONDS,
    ):
        self.max_duration_hours = max_duration_hours
        self.poll_interval_seconds = poll_interval_seconds
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        """Start the background cleanup worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Session cleanup worker started")

    def stop(self) -> None:
        """Stop the background cleanup worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Session cleanup worker stopped")

    async def _poll_loop(self) -> None:
        """Main loop: process stale sessions, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.process_stale_sessions()
            except Exception as e:
                logger.error(f"Error in session cleanup worker: {e}", exc_info=True)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.poll_interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass

    async def _stale_tenants(self, cutoff) -> List[str]:
        """Tenant ids with at least one stale ACTIVE session."""
        async with db.AsyncSessionLocal() as session:
            result = await session.execute(
                select(TrainingSession.tenant_id)
                .where(
                    TrainingSession.status == SessionStatus.ACTIVE,
                    TrainingSession.date < cutoff,
                )
                .distinct()
            )
            return sorted(result.scalars().all())

    async def process_stale_sessions(self) -> int:
        """
        End every stale ACTIVE session, one tenant at a time.

        Returns:
            Number of sessions ended
        """
        cutoff = utcnow() - timedelta(hours=self.max_duration_hours)
        tenants = await self._stale_tenants(cutoff)
        if not tenants:
            return 0

        logger.info(f"Found stale session(s) in {len(tenants)} tenant(s)")
        ended = 0
        for tenant_id in tenants:
            try:
                ended += await self._end_stale_for_tenant(tenant_id, cutoff)
            except Exception as e:
                logger.error(
                    f"Error cleaning up sessions of tenant {tenant_id}: {e}", exc_info=True
                )
        return ended

    async def _end_stale_for_tenant(self, tenant_id: str, cutoff) -> int:
        async with db.AsyncSessionLocal() as session:
            ctx = TenantContext(session=session, tenant_id=tenant_id)
            result = await session.execute(
                select(TrainingSession.id).where(
                    TrainingSession.tenant_id == tenant_id,
                    TrainingSession.status == SessionStatus.ACTIVE,
                    TrainingSession.date < cutoff,
                )
            )
            session_ids = list(result.scalars().all())
            for session_id in session_ids:
                try:
                    await session_service.end(ctx, session_id)
                    await session.commit()
                    logger.info(f"Auto-ended stale session {session_id} of tenant {tenant_id}")
                except Exception:
                    await session.rollback()
                    raise
            return len(session_ids)


_session_cleanup_service: Optional[SessionCleanupService] = None


def get_session_cleanup_service() -> SessionCleanupService:
    """Get the global session cleanup service instance."""
    global _session_cleanup_service
    if _session_cleanup_service is None:
        _session_cleanup_service = SessionCleanupService()
    return _session_cleanup_service
