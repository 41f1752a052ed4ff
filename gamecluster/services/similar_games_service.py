"""
Similar Games Service
Online path: app_id -> cluster lookup -> same-cluster neighbours.

Unknown ids, an untrained system, stale stored features and k = 0 all answer
{results: []}; typed errors are recovered here and never reach the transport.
"""
from typing import Optional

from sqlalchemy.orm import Session

from gamecluster.errors import GameClusterError, NotFound, UntrainedModel
from gamecluster.models.schemas import (
    DistanceCursor,
    RetrievalStrategy,
    SimilarGameItem,
    SimilarGamesRequest,
    SimilarGamesResponse,
)
from gamecluster.pipeline.snapshot import TrainedModelSnapshot
from gamecluster.recommender.lookup import ClusterLookupService
from gamecluster.recommender.neighbors import build_retriever
from gamecluster.recommender.store import GameClusterStore
from gamecluster.utils.config_loader import ConfigLoader
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)


class SimilarGamesService:
    def __init__(self, db: Session, cfg: ConfigLoader, snapshot: Optional[TrainedModelSnapshot] = None):
        """
        Args:
            db: read-only session for this request
            cfg: config loader
            snapshot: latest trained snapshot (only the cosine strategy needs it)
        """
        self.store = GameClusterStore(db)
        self.lookup_service = ClusterLookupService(self.store)
        self.config = cfg
        self.snapshot = snapshot

    def resolve_strategy(self, requested: Optional[RetrievalStrategy]) -> RetrievalStrategy:
        if requested is not None:
            return requested
        return RetrievalStrategy(self.config.get_default_strategy())

    def find_similar(self, request: SimilarGamesRequest) -> SimilarGamesResponse:
        """
        Args:
            request: anchor app_id and neighbour count

        Returns:
            SimilarGamesResponse (empty results when the anchor is unknown)
        """
        k = min(request.similar_game_count, self.config.get_max_similar_games())
        if k <= 0:
            return SimilarGamesResponse()

        try:
            app_id = int(request.app_id)
        except (TypeError, ValueError):
            logger.info(f"Non-numeric app_id treated as unknown: {request.app_id!r}")
            return SimilarGamesResponse()

        strategy = self.resolve_strategy(request.strategy)

        try:
            location = self.lookup_service.lookup(app_id)
            retriever = build_retriever(strategy, self.store, self.snapshot)
            records = retriever.retrieve(
                location.cluster_id,
                location.app_id,
                location.distance_to_centroid,
                k,
                exclusive_start=request.exclusive_start,
            )
        except NotFound:
            logger.info(f"No cluster record for app_id={app_id}")
            return SimilarGamesResponse()
        except UntrainedModel as e:
            logger.warning(f"Similar games unavailable: {e}")
            return SimilarGamesResponse()
        except GameClusterError as e:
            logger.warning(f"Similar games degraded to empty for app_id={app_id}: {e}")
            return SimilarGamesResponse()

        last_evaluated = None
        if strategy == RetrievalStrategy.RANGE_SCAN and len(records) == k:
            last = records[-1]
            last_evaluated = DistanceCursor(distance_to_centroid=last.distance_to_centroid, app_id=last.app_id)

        logger.info(
            f"Similar games: app_id={app_id}, cluster={location.cluster_id}, "
            f"strategy={strategy.value}, returned={len(records)}/{k}"
        )
        return SimilarGamesResponse(
            results=[SimilarGameItem.from_record(r) for r in records],
            last_evaluated=last_evaluated,
        )
