"""
Similar games API router
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, sessionmaker

from gamecluster.api.dependencies import get_config, get_database, get_session_factory, get_snapshot
from gamecluster.models.schemas import SimilarGamesRequest, SimilarGamesResponse
from gamecluster.pipeline.snapshot import TrainedModelSnapshot
from gamecluster.recommender.store import GameClusterStore
from gamecluster.services.similar_games_service import SimilarGamesService
from gamecluster.utils.config_loader import ConfigLoader
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/similar-games", tags=["Similar Games"])


@router.post("", response_model=SimilarGamesResponse)
async def similar_games(
    request: SimilarGamesRequest,
    session_factory: sessionmaker = Depends(get_session_factory),
    cfg: ConfigLoader = Depends(get_config),
    snapshot: Optional[TrainedModelSnapshot] = Depends(get_snapshot)
):
    """
    Games similar to request.app_id

    One point lookup plus one range query against the store, run in a worker
    thread and bounded by api.request_timeout_seconds. A timeout answers
    {results: []} right away; the worker owns its session and closes it when
    its read returns. The path performs no writes.

    Args:
        request: app_id, similar_game_count, optional strategy / page cursor

    Returns:
        SimilarGamesResponse

    Raises:
        HTTPException: 422 when similar_game_count exceeds retrieval.max_similar_games
    """
    logger.info(f"Similar games request: app_id={request.app_id}, count={request.similar_game_count}")

    max_count = cfg.get_max_similar_games()
    if request.similar_game_count > max_count:
        raise HTTPException(
            status_code=422,
            detail=f"similar_game_count must be at most {max_count}; page with exclusive_start for more"
        )

    timeout = cfg.get_request_timeout()

    def find_similar() -> SimilarGamesResponse:
        with session_factory() as db:
            return SimilarGamesService(db, cfg, snapshot).find_similar(request)

    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(loop.run_in_executor(None, find_similar), timeout=timeout)

    except asyncio.TimeoutError:
        logger.warning(f"Similar games query timed out after {timeout}s (app_id={request.app_id})")
        return SimilarGamesResponse()

    except Exception as e:
        logger.error(f"Similar games query failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Similar games query failed")


@router.get("/health")
def health_check(
    db: Session = Depends(get_database),
    cfg: ConfigLoader = Depends(get_config),
    snapshot: Optional[TrainedModelSnapshot] = Depends(get_snapshot)
):
    """
    Service status

    Returns:
        dict: store connectivity, exported record count and the trained run
    """
    try:
        exported = GameClusterStore(db).count()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable")

    return {
        "status": "healthy",
        "store": {"connected": True, "exported_records": exported},
        "model": {
            "trained": snapshot is not None,
            "run_id": snapshot.run_id if snapshot else None,
            "n_clusters": snapshot.n_clusters if snapshot else None,
        },
        "retrieval": {
            "default_strategy": cfg.get_default_strategy(),
            "max_similar_games": cfg.get_max_similar_games(),
        },
    }
