"""
Cluster lookup: app_id -> (cluster_id, distance_to_centroid)
"""

from gamecluster.models.schemas import ClusterLocation
from gamecluster.utils.logger import get_logger

from .store import GameClusterStore

logger = get_logger(__name__)


class ClusterLookupService:
    """
    Resolves where a game sits through a primary-key point get.

    The distance returned is the one stored at export time, never a
    re-derived value, so neighbour scans anchor on exactly what was indexed.
    """

    def __init__(self, store: GameClusterStore):
        self.store = store

    def lookup(self, app_id: int) -> ClusterLocation:
        """
        Args:
            app_id: game to resolve

        Returns:
            ClusterLocation of the game

        Raises:
            NotFound: never exported, unclustered, or purged
        """
        record = self.store.get_by_id(app_id)
        logger.debug(
            f"lookup app_id={app_id} -> cluster={record.cluster_id}, "
            f"distance={record.distance_to_centroid}"
        )
        return ClusterLocation(
            app_id=record.app_id,
            cluster_id=record.cluster_id,
            distance_to_centroid=record.distance_to_centroid,
        )
