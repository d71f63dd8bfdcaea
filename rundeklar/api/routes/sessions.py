"""Training session route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from rundeklar.api.routes import get_training_api, http_error
from rundeklar.services.training_api import TrainingApi
from rundeklar.utils.errors import TrainingError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/session/start")
async def start_or_get_session(api: TrainingApi = Depends(get_training_api)):
    """Start a training session, or return the one already active."""
    try:
        return await api.session.start_or_get_active()
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error starting session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error starting session: {str(e)}")


@router.get("/api/session/active")
async def get_active_session(api: TrainingApi = Depends(get_training_api)):
    """Active training session, or null."""
    try:
        return await api.session.get_active()
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error loading active session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error loading active session: {str(e)}")


@router.post("/api/session/end")
async def end_active_session(api: TrainingApi = Depends(get_training_api)):
    """End the active session and store its statistics snapshot."""
    try:
        return await api.session.end_active()
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error ending session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error ending session: {str(e)}")
