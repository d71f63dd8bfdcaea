"""Round listing, arrangement and match result route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from rundeklar.api.routes import get_training_api, http_error, limiter, read_json
from rundeklar.services.training_api import TrainingApi
from rundeklar.utils.errors import TrainingError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches")
async def list_matches(round: Optional[int] = None, api: TrainingApi = Depends(get_training_api)):
    """Courts with their slots in a round (round 1 by default)."""
    try:
        return await api.matches.list(round)
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing matches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing matches: {str(e)}")


@router.post("/api/matches/auto-arrange")
@limiter.limit("30/minute")
async def auto_arrange(
    request: Request,
    round: Optional[int] = None,
    api: TrainingApi = Depends(get_training_api),
):
    """Fill the free courts of a round with checked-in players."""
    try:
        return await api.matches.auto_arrange(round)
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error arranging round {round}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error arranging matches: {str(e)}")


@router.post("/api/matches/reset")
async def reset_matches(round: Optional[int] = None, api: TrainingApi = Depends(get_training_api)):
    """Delete the matches of the active session (one round, or all)."""
    try:
        deleted = await api.matches.reset(round)
        return {"deleted": deleted}
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error resetting matches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error resetting matches: {str(e)}")


@router.post("/api/matches/move")
async def move_player(
    request: Request,
    round: Optional[int] = None,
    api: TrainingApi = Depends(get_training_api),
):
    """
    Move a player to a court slot, or to the bench when no court is given.

    Body: {"player_id": int, "to_court_idx": int?, "to_slot": int?, "round": int?}
    """
    try:
        body = await read_json(request)
        await api.matches.move(body, round)
        return {"status": "ok"}
    except HTTPException:
        raise
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error moving player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error moving player: {str(e)}")


@router.post("/api/matches/swap")
async def swap_players(
    request: Request,
    round: Optional[int] = None,
    api: TrainingApi = Depends(get_training_api),
):
    """Swap two players' positions in a round."""
    try:
        body = await read_json(request)
        await api.matches.swap(body, round)
        return {"status": "ok"}
    except HTTPException:
        raise
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error swapping players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error swapping players: {str(e)}")


@router.put("/api/matches/{match_id}/result")
async def record_result(
    match_id: int, request: Request, api: TrainingApi = Depends(get_training_api)
):
    """Record (or replace) the score of a match."""
    try:
        body = await read_json(request)
        body["match_id"] = match_id
        return await api.matches.record_result(body)
    except HTTPException:
        raise
    except TrainingError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error recording result of match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error recording result: {str(e)}")
