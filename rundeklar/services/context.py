"""
Per-command tenant context.

Carries the database session, the tenant id and the active training session
once it has been looked up, so services never rely on ambient state.
"""

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rundeklar.database.models import TrainingSession, SessionStatus
from rundeklar.utils.errors import NoActiveSessionError


@dataclass
class TenantContext:
    session: AsyncSession
    tenant_id: str
    _active: Optional[TrainingSession] = field(default=None, repr=False)
    _active_loaded: bool = field(default=False, repr=False)

    async def active_session(self) -> Optional[TrainingSession]:
        """The tenant's ACTIVE training session, or None. Cached per context."""
        if not self._active_loaded:
            result = await self.session.execute(
                select(TrainingSession)
                .where(
                    TrainingSession.tenant_id == self.tenant_id,
                    TrainingSession.status == SessionStatus.ACTIVE,
                )
                .order_by(TrainingSession.id)
                .limit(1)
            )
            self._active = result.scalar_one_or_none()
            self._active_loaded = True
        return self._active

    async def require_active_session(self) -> TrainingSession:
        active = await self.active_session()
        if active is None:
            raise NoActiveSessionError()
        return active

    def set_active_session(self, training_session: Optional[TrainingSession]) -> None:
        self._active = training_session
        self._active_loaded = True

    def forget_active_session(self) -> None:
        """Drop the cached row, e.g. after a rollback expired it."""
        self._active = None
        self._active_loaded = False
