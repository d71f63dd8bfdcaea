"""Check-in route handlers for the active session."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from rundeklar.api.routes import get_training_api, http_error, read_json
from rundeklar.services.training_api import TrainingApi
from rundeklar.utils.errors import TrainingError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/check-ins")
async def list_check_ins(api: TrainingApi = Depends(get_training_api)):
    """Checked-in players in arrival order."""
    try:
        return await api.check_ins.list_active()
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing check-ins: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing check-ins: {str(e)}")


@router.post("/api/check-ins")
async def add_check_in(request: Request, api: TrainingApi = Depends(get_training_api)):
    """Check a player in. Checking in twice returns the existing check-in."""
    try:
        body = await read_json(request)
        return await api.check_ins.add(body)
    except HTTPException:
        raise
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error adding check-in: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error adding check-in: {str(e)}")


@router.patch("/api/check-ins/{player_id}")
async def update_check_in(
    player_id: int, request: Request, api: TrainingApi = Depends(get_training_api)
):
    """Change max_rounds and/or notes of a check-in."""
    try:
        body = await read_json(request)
        body["player_id"] = player_id
        return await api.check_ins.update(body)
    except HTTPException:
        raise
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating check-in of player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating check-in: {str(e)}")


@router.delete("/api/check-ins/{player_id}")
async def remove_check_in(player_id: int, api: TrainingApi = Depends(get_training_api)):
    try:
        removed = await api.check_ins.remove({"player_id": player_id})
        return {"removed": removed}
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error removing check-in of player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error removing check-in: {str(e)}")
