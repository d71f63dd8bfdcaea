"""
TrainingApi - the command facade used by the HTTP layer (and scripts).

Each command runs in its own database transaction under the store timeout.
Timeouts and lost connections surface as StoreUnavailableError after one
retry. Inputs are validated with the pydantic schemas; a failure becomes a
ValidationError carrying the field path.
"""

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import InterfaceError, OperationalError

from rundeklar.database import db
from rundeklar.models.schemas import (
    AttendanceEntry,
    AutoArrangeResponse,
    CheckInCreateRequest,
    CheckInRemoveRequest,
    CheckInResponse,
    CheckInUpdateRequest,
    CheckedInPlayerResponse,
    CourtWithPlayersResponse,
    MatchMoveRequest,
    MatchResultRequest,
    MatchResultResponse,
    MatchSwapRequest,
    PlayerCreateRequest,
    PlayerListFilters,
    PlayerResponse,
    PlayerStatisticsResponse,
    PlayerUpdateRequest,
    SnapshotResponse,
    TrainingSessionResponse,
)
from rundeklar.services import (
    checkin_service,
    match_service,
    player_service,
    session_service,
    snapshot_service,
)
from rundeklar.services.context import TenantContext
from rundeklar.utils.errors import AlreadyCheckedInError, StoreUnavailableError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TENANT_ID = os.getenv("DEFAULT_TENANT_ID", "default")

# Attempts per command when the store is unavailable
STORE_ATTEMPTS = 2

ModelT = TypeVar("ModelT", bound=BaseModel)
Operation = Callable[[TenantContext], Awaitable[Any]]


def parse_input(model: Type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` against ``model``; pydantic errors become ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or "input"
        raise ValidationError(field, first.get("msg", "invalid value")) from e


def parse_round(value: Optional[int], default: int = match_service.DEFAULT_ROUND) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("round", "round must be a positive integer")
    return value


class TrainingApi:
    """
    Entry point for all commands of one tenant.

    Usage:
        api = TrainingApi("club-42")
        await api.session.start_or_get_active()
        await api.check_ins.add({"player_id": 7})
        await api.matches.auto_arrange(1)
    """

    def __init__(
        self,
        tenant_id: str = DEFAULT_TENANT_ID,
        session_factory=None,
        timeout_seconds: Optional[float] = None,
    ):
        if not tenant_id:
            raise ValidationError("tenant_id", "tenant id is required")
        self.tenant_id = tenant_id
        self._session_factory = session_factory
        self.timeout_seconds = timeout_seconds or db.STORE_TIMEOUT_SECONDS

        self.players = PlayerCommands(self)
        self.session = SessionCommands(self)
        self.check_ins = CheckInCommands(self)
        self.matches = MatchCommands(self)
        self.statistics = StatisticsCommands(self)

    def _new_session(self):
        factory = self._session_factory or db.AsyncSessionLocal
        return factory()

    async def _run_once(self, operation: Operation):
        async with self._new_session() as session:
            ctx = TenantContext(session=session, tenant_id=self.tenant_id)
            try:
                result = await operation(ctx)
                await session.commit()
                return result
            except Exception:
                await session.rollback()
                raise

    async def run(self, operation: Operation):
        """Run one command in its own transaction, retrying once if the store is unavailable."""
        for attempt in range(1, STORE_ATTEMPTS + 1):
            try:
                return await asyncio.wait_for(self._run_once(operation), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as e:
                failure = e
                reason = f"timed out after {self.timeout_seconds}s"
            except (OperationalError, InterfaceError, ConnectionError) as e:
                failure = e
                reason = f"connection failed: {e}"

            if attempt < STORE_ATTEMPTS:
                logger.warning(f"Store unavailable for tenant {self.tenant_id} ({reason}); retrying")
                continue
            logger.error(f"Store unavailable for tenant {self.tenant_id} ({reason})")
            raise StoreUnavailableError(reason) from failure


class PlayerCommands:
    def __init__(self, api: TrainingApi):
        self.api = api

    async def list(self, filters=None) -> List[PlayerResponse]:
        parsed = parse_input(PlayerListFilters, filters)

        async def operation(ctx):
            players = await player_service.list_players(ctx, q=parsed.q, active=parsed.active)
            return [PlayerResponse.model_validate(p) for p in players]

        return await self.api.run(operation)

    async def create(self, data) -> PlayerResponse:
        parsed = parse_input(PlayerCreateRequest, data)

        async def operation(ctx):
            return PlayerResponse.model_validate(await player_service.create_player(ctx, parsed))

        return await self.api.run(operation)

    async def update(self, player_id: int, patch) -> PlayerResponse:
        parsed = parse_input(PlayerUpdateRequest, patch)

        async def operation(ctx):
            player = await player_service.update_player(ctx, player_id, parsed)
            return PlayerResponse.model_validate(player)

        return await self.api.run(operation)


class SessionCommands:
    def __init__(self, api: TrainingApi):
        self.api = api

    async def start_or_get_active(self) -> TrainingSessionResponse:
        async def operation(ctx):
            return TrainingSessionResponse.model_validate(await session_service.start_or_get(ctx))

        return await self.api.run(operation)

    async def get_active(self) -> Optional[TrainingSessionResponse]:
        async def operation(ctx):
            active = await session_service.get_active(ctx)
            return None if active is None else TrainingSessionResponse.model_validate(active)

        return await self.api.run(operation)

    async def end_active(self) -> TrainingSessionResponse:
        async def operation(ctx):
            return TrainingSessionResponse.model_validate(await session_service.end(ctx))

        return await self.api.run(operation)


class CheckInCommands:
    def __init__(self, api: TrainingApi):
        self.api = api

    async def list_active(self) -> List[CheckedInPlayerResponse]:
        async def operation(ctx):
            rows = await checkin_service.list_active(ctx)
            return [
                CheckedInPlayerResponse(
                    **PlayerResponse.model_validate(player).model_dump(),
                    check_in_at=check_in.created_at,
                    max_rounds=check_in.max_rounds,
                    notes=check_in.notes,
                )
                for check_in, player in rows
            ]

        return await self.api.run(operation)

    async def add(self, data) -> CheckInResponse:
        """Check a player in. A player who is already checked in is a success."""
        parsed = parse_input(CheckInCreateRequest, data)

        async def operation(ctx):
            try:
                check_in = await checkin_service.admit(
                    ctx, parsed.player_id, max_rounds=parsed.max_rounds, notes=parsed.notes
                )
            except AlreadyCheckedInError as e:
                logger.info(f"Player {parsed.player_id} already checked in; returning existing row")
                check_in = e.check_in
            return CheckInResponse.model_validate(check_in)

        return await self.api.run(operation)

    async def update(self, data) -> CheckInResponse:
        parsed = parse_input(CheckInUpdateRequest, data)

        async def operation(ctx):
            check_in = await checkin_service.update(ctx, parsed.player_id, parsed.changes())
            return CheckInResponse.model_validate(check_in)

        return await self.api.run(operation)

    async def remove(self, data) -> bool:
        parsed = parse_input(CheckInRemoveRequest, data)

        async def operation(ctx):
            return await checkin_service.remove(ctx, parsed.player_id)

        return await self.api.run(operation)


class MatchCommands:
    def __init__(self, api: TrainingApi):
        self.api = api

    async def list(self, round: Optional[int] = None) -> List[CourtWithPlayersResponse]:
        round_number = parse_round(round)

        async def operation(ctx):
            return await match_service.list_courts(ctx, round_number)

        return await self.api.run(operation)

    async def auto_arrange(self, round: Optional[int] = None) -> AutoArrangeResponse:
        round_number = parse_round(round)

        async def operation(ctx):
            return await match_service.auto_arrange(ctx, round_number)

        return await self.api.run(operation)

    async def reset(self, round: Optional[int] = None) -> int:
        round_number = None if round is None else parse_round(round)

        async def operation(ctx):
            return await match_service.reset(ctx, round_number)

        return await self.api.run(operation)

    async def move(self, payload, round: Optional[int] = None) -> None:
        parsed = parse_input(MatchMoveRequest, payload)
        round_number = parse_round(parsed.round if parsed.round is not None else round)

        async def operation(ctx):
            await match_service.move(
                ctx,
                parsed.player_id,
                to_court_idx=parsed.to_court_idx,
                to_slot=parsed.to_slot,
                round_number=round_number,
            )

        await self.api.run(operation)

    async def swap(self, payload, round: Optional[int] = None) -> None:
        parsed = parse_input(MatchSwapRequest, payload)
        round_number = parse_round(parsed.round if parsed.round is not None else round)

        async def operation(ctx):
            await match_service.swap(ctx, parsed.player_a_id, parsed.player_b_id, round_number)

        await self.api.run(operation)

    async def record_result(self, data) -> MatchResultResponse:
        parsed = parse_input(MatchResultRequest, data)

        async def operation(ctx):
            return await match_service.record_result(
                ctx, parsed.match_id, parsed.sport, parsed.score_data
            )

        return await self.api.run(operation)


class StatisticsCommands:
    def __init__(self, api: TrainingApi):
        self.api = api

    async def snapshots(self, season: Optional[str] = None) -> List[SnapshotResponse]:
        async def operation(ctx):
            rows = await snapshot_service.list_snapshots(ctx, season)
            return [SnapshotResponse.model_validate(row) for row in rows]

        return await self.api.run(operation)

    async def seasons(self) -> List[str]:
        return await self.api.run(snapshot_service.list_seasons)

    async def player(self, player_id: int, season: Optional[str] = None) -> PlayerStatisticsResponse:
        async def operation(ctx):
            return await snapshot_service.player_statistics(ctx, player_id, season)

        return await self.api.run(operation)

    async def attendance(self, season: Optional[str] = None) -> List[AttendanceEntry]:
        async def operation(ctx):
            return await snapshot_service.attendance(ctx, season)

        return await self.api.run(operation)
