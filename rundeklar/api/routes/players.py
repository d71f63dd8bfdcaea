"""Player directory route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from rundeklar.api.routes import get_training_api, http_error, read_json
from rundeklar.services.training_api import TrainingApi
from rundeklar.utils.errors import TrainingError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players")
async def list_players(
    q: Optional[str] = None,
    active: Optional[bool] = None,
    api: TrainingApi = Depends(get_training_api),
):
    """List players, optionally filtered by search text and active flag."""
    try:
        return await api.players.list({"q": q, "active": active})
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing players: {str(e)}")


@router.post("/api/players")
async def create_player(request: Request, api: TrainingApi = Depends(get_training_api)):
    """Create a player."""
    try:
        body = await read_json(request)
        return await api.players.create(body)
    except HTTPException:
        raise
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error creating player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating player: {str(e)}")


@router.patch("/api/players/{player_id}")
async def update_player(
    player_id: int, request: Request, api: TrainingApi = Depends(get_training_api)
):
    """Update the fields sent in the body."""
    try:
        body = await read_json(request)
        return await api.players.update(player_id, body)
    except HTTPException:
        raise
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating player: {str(e)}")
