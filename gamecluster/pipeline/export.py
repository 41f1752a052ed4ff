"""
Export of cluster assignments to the persisted store

Every exported row feeds both read paths at once: the app_id primary key
(point lookups) and the (cluster_id, distance_to_centroid, app_id) index
(range scans).

Re-exporting a run overwrites the rows of the same app_ids. Rows of games
that a later run no longer contains are left in place; retire them with
GameClusterStore.purge_except (scripts/purge_stale_records.py).
"""

from typing import Iterable, List, Mapping, Optional, Tuple

from gamecluster.errors import UntrainedModel
from gamecluster.models.schemas import ExportRecord, ExportSummary, GameMetadata
from gamecluster.recommender.store import GameClusterStore
from gamecluster.utils.logger import get_logger, log_banner

from .clustering import ClusterAssignment
from .snapshot import TrainedModelSnapshot, require_snapshot

logger = get_logger(__name__)

ExportRow = Tuple[ClusterAssignment, GameMetadata]


def pair_rows(
    assignments: Iterable[ClusterAssignment],
    metadata: Mapping[int, GameMetadata]
) -> List[ExportRow]:
    """
    Match each assignment with its metadata blob.

    Raises:
        KeyError: an assignment has no metadata
    """
    return [(assignment, metadata[assignment.app_id]) for assignment in assignments]


class ExportWriter:
    """Writes one ExportRecord per clustered game"""

    def __init__(self, store: GameClusterStore, distance_precision: int = 4):
        """
        Args:
            store: target store
            distance_precision: decimal places kept for distance_to_centroid
        """
        self.store = store
        self.distance_precision = distance_precision

    def to_record(self, snapshot: TrainedModelSnapshot, assignment: ClusterAssignment, metadata: GameMetadata) -> ExportRecord:
        if metadata.app_id != assignment.app_id:
            raise ValueError(
                f"Metadata app_id={metadata.app_id} does not match assignment app_id={assignment.app_id}"
            )

        return ExportRecord(
            app_id=assignment.app_id,
            cluster_id=assignment.cluster_id,
            distance_to_centroid=round(assignment.distance_to_centroid, self.distance_precision),
            image_url=metadata.image_url,
            game_json=metadata.model_dump_json(),
            training_run_id=snapshot.run_id,
        )

    def write(self, snapshot: Optional[TrainedModelSnapshot], rows: Iterable[ExportRow]) -> ExportSummary:
        """
        Validate every row, then upsert them in one transaction.

        Args:
            snapshot: the completed run the assignments came from
            rows: (assignment, metadata) per game

        Returns:
            ExportSummary

        Raises:
            UntrainedModel: no snapshot, or an assignment outside its population
        """
        snapshot = require_snapshot(snapshot)
        summary = ExportSummary(training_run_id=snapshot.run_id)

        log_banner(logger, f"Export started (run_id={snapshot.run_id})")

        records = []
        for assignment, metadata in rows:
            if not snapshot.covers(assignment.app_id):
                raise UntrainedModel(
                    f"app_id={assignment.app_id} was not part of training run {snapshot.run_id}"
                )

            if not assignment.is_clustered:
                summary.skipped_unclustered += 1
                continue

            if assignment.flagged:
                summary.flagged += 1
                logger.warning(
                    f"Exporting flagged assignment app_id={assignment.app_id} "
                    f"cluster_id={assignment.cluster_id} with sentinel distance"
                )

            records.append(self.to_record(snapshot, assignment, metadata))

        try:
            for record in records:
                self.store.put(record)
            self.store.db.commit()
        except Exception as e:
            logger.error(f"Export failed, rolling back: {e}", exc_info=True)
            self.store.db.rollback()
            raise

        summary.written = len(records)
        logger.info(
            f"Export complete: written={summary.written}, "
            f"skipped_unclustered={summary.skipped_unclustered}, flagged={summary.flagged}"
        )
        return summary
