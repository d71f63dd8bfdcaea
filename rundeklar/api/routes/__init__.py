"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, tenant dependency, error mapping) lives here;
every sub-router imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, Header, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from rundeklar.services.training_api import DEFAULT_TENANT_ID, TrainingApi
from rundeklar.utils.errors import (
    AlreadyActiveError,
    AlreadyCheckedInError,
    CourtFullError,
    CourtNotFoundError,
    InactivePlayerError,
    NoActiveSessionError,
    NotCheckedInError,
    SessionAlreadyEndedError,
    SlotOccupiedError,
    SnapshotFailedError,
    StoreUnavailableError,
    TrainingError,
    UnknownMatchError,
    UnknownPlayerError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Tenant-scoped facade
# ---------------------------------------------------------------------------


def get_training_api(x_tenant_id: str = Header(default=DEFAULT_TENANT_ID)) -> TrainingApi:
    """Facade for the tenant named in the X-Tenant-ID header."""
    tenant_id = x_tenant_id.strip()
    if not tenant_id:
        raise HTTPException(status_code=400, detail="X-Tenant-ID header must not be empty")
    return TrainingApi(tenant_id)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
ERROR_STATUS = (
    (ValidationError, 422),
    (NoActiveSessionError, 409),
    (AlreadyActiveError, 409),
    (AlreadyCheckedInError, 409),
    (SessionAlreadyEndedError, 409),
    (SlotOccupiedError, 409),
    (CourtFullError, 409),
    (UnknownPlayerError, 404),
    (CourtNotFoundError, 404),
    (UnknownMatchError, 404),
    (NotCheckedInError, 404),
    (InactivePlayerError, 400),
    (StoreUnavailableError, 503),
    (SnapshotFailedError, 500),
)


async def read_json(request: Request) -> dict:
    """JSON object body of a request; an empty body reads as {}."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=422, detail="Request body must be valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=422, detail="Request body must be a JSON object")
    return body


def http_error(e: TrainingError) -> HTTPException:
    """Translate a domain error to an HTTPException with a localized message."""
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(e, cls)), 400)
    detail = {"code": e.code, "message": e.localized()}
    if isinstance(e, ValidationError):
        detail["field"] = e.field
    return HTTPException(status_code=status_code, detail=detail)


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from rundeklar.api.routes.players import router as players_router  # noqa: E402
from rundeklar.api.routes.sessions import router as sessions_router  # noqa: E402
from rundeklar.api.routes.check_ins import router as check_ins_router  # noqa: E402
from rundeklar.api.routes.matches import router as matches_router  # noqa: E402
from rundeklar.api.routes.statistics import router as statistics_router  # noqa: E402
from rundeklar.api.routes.health import router as health_router  # noqa: E402

router = APIRouter()
router.include_router(players_router)
router.include_router(sessions_router)
router.include_router(check_ins_router)
router.include_router(matches_router)
router.include_router(statistics_router)
router.include_router(health_router)
