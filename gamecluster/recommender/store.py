"""
Persisted store of exported cluster records

Point gets go through the app_id primary key; range queries walk the
(cluster_id, distance_to_centroid, app_id) index in key order.
"""

from typing import Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from gamecluster.errors import NotFound
from gamecluster.models.orm_models import GameClusterORM
from gamecluster.models.schemas import DistanceCursor, ExportRecord
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)


class GameClusterStore:
    """put / get_by_id / range_query over the game_clusters table"""

    def __init__(self, db: Session):
        """
        Args:
            db: SQLAlchemy session
        """
        self.db = db

    def put(self, record: ExportRecord) -> None:
        """Insert or overwrite the row of record.app_id (not committed)."""
        self.db.merge(GameClusterORM(**record.model_dump()))

    def get_by_id(self, app_id: int) -> ExportRecord:
        """
        Raises:
            NotFound: no row for app_id
        """
        row = self.db.get(GameClusterORM, app_id)
        if row is None:
            raise NotFound(app_id)
        return ExportRecord.model_validate(row)

    def range_query(
        self,
        cluster_id: int,
        start_distance: float,
        ascending: bool = True,
        limit: Optional[int] = None,
        exclude_app_id: Optional[int] = None,
        exclusive_start: Optional[DistanceCursor] = None
    ) -> List[ExportRecord]:
        """
        Ordered scan of one cluster starting at start_distance.

        Args:
            cluster_id: cluster to scan
            start_distance: first distance included (inclusive bound)
            ascending: scan towards larger distances when True
            limit: maximum rows returned (None = whole remainder of the cluster)
            exclude_app_id: app_id never returned by this scan
            exclusive_start: continue strictly after this composite key

        Returns:
            Records ordered by (distance_to_centroid, app_id) in scan direction
        """
        if limit is not None and limit <= 0:
            return []

        distance = GameClusterORM.distance_to_centroid
        app_id = GameClusterORM.app_id

        query = self.db.query(GameClusterORM).filter(GameClusterORM.cluster_id == cluster_id)

        if ascending:
            query = query.filter(distance >= start_distance)
        else:
            query = query.filter(distance <= start_distance)

        if exclude_app_id is not None:
            query = query.filter(app_id != exclude_app_id)

        if exclusive_start is not None:
            cursor_distance = exclusive_start.distance_to_centroid
            cursor_app_id = exclusive_start.app_id
            if ascending:
                query = query.filter(or_(
                    distance > cursor_distance,
                    and_(distance == cursor_distance, app_id > cursor_app_id),
                ))
            else:
                query = query.filter(or_(
                    distance < cursor_distance,
                    and_(distance == cursor_distance, app_id < cursor_app_id),
                ))

        if ascending:
            query = query.order_by(distance.asc(), app_id.asc())
        else:
            query = query.order_by(distance.desc(), app_id.desc())

        if limit is not None:
            query = query.limit(limit)

        rows = query.all()
        logger.debug(f"range_query cluster={cluster_id} start={start_distance} -> {len(rows)} rows")
        return [ExportRecord.model_validate(row) for row in rows]

    def cluster_members(self, cluster_id: int) -> List[ExportRecord]:
        """Every record of a cluster, ordered by (distance, app_id)."""
        return self.range_query(cluster_id, start_distance=0.0)

    def purge_except(self, run_id: str) -> int:
        """
        Delete rows written by any training run other than run_id (not committed).

        Returns:
            Number of deleted rows
        """
        deleted = (
            self.db.query(GameClusterORM)
            .filter(GameClusterORM.training_run_id != run_id)
            .delete(synchronize_session=False)
        )
        logger.info(f"Purged {deleted} records not written by {run_id}")
        return deleted

    def count(self) -> int:
        return self.db.query(GameClusterORM).count()

    def cluster_sizes(self) -> Dict[int, int]:
        """Number of exported games per cluster id."""
        rows = (
            self.db.query(GameClusterORM.cluster_id, func.count(GameClusterORM.app_id))
            .group_by(GameClusterORM.cluster_id)
            .order_by(GameClusterORM.cluster_id)
            .all()
        )
        return {int(cluster_id): int(count) for cluster_id, count in rows}
