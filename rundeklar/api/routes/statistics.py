"""Statistics route handlers. Everything here reads snapshots only."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from rundeklar.api.routes import get_training_api, http_error
from rundeklar.services.training_api import TrainingApi
from rundeklar.utils.errors import TrainingError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/statistics/snapshots")
async def list_snapshots(season: Optional[str] = None, api: TrainingApi = Depends(get_training_api)):
    try:
        return await api.statistics.snapshots(season)
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing snapshots: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing snapshots: {str(e)}")


@router.get("/api/statistics/seasons")
async def list_seasons(api: TrainingApi = Depends(get_training_api)):
    try:
        return await api.statistics.seasons()
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing seasons: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing seasons: {str(e)}")


@router.get("/api/statistics/players/{player_id}")
async def player_statistics(
    player_id: int, season: Optional[str] = None, api: TrainingApi = Depends(get_training_api)
):
    """Matches, wins, partners and opponents of a player."""
    try:
        return await api.statistics.player(player_id, season)
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error loading statistics of player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error loading player statistics: {str(e)}")


@router.get("/api/statistics/attendance")
async def attendance(season: Optional[str] = None, api: TrainingApi = Depends(get_training_api)):
    try:
        return await api.statistics.attendance(season)
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error loading attendance: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error loading attendance: {str(e)}")
