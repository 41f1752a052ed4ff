"""
Cluster Training Service
Runs the offline pipeline: features -> cluster assignment -> snapshot -> export,
and records each run in MLflow.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import mlflow
import mlflow.sklearn
import numpy as np
import pandas as pd
from sklearn.metrics import davies_bouldin_score
from sqlalchemy.orm import Session

from gamecluster.models.schemas import ExportSummary
from gamecluster.pipeline.clustering import (
    ClusterAssigner,
    ClusterAssignment,
    ClusteringPrimitive,
    KMeansClusterer,
)
from gamecluster.pipeline.export import ExportWriter, pair_rows
from gamecluster.pipeline.features import FeatureBuilder, FeatureSet
from gamecluster.pipeline.snapshot import TrainedModelSnapshot, new_run_id, save_snapshot
from gamecluster.recommender.store import GameClusterStore
from gamecluster.utils.config_loader import ConfigLoader, config
from gamecluster.utils.logger import get_logger, log_banner

logger = get_logger(__name__)


@dataclass
class TrainingResult:
    snapshot: TrainedModelSnapshot
    assignments: List[ClusterAssignment]
    export: ExportSummary
    metrics: Dict[str, Any] = field(default_factory=dict)


class ClusterTrainingService:
    """One call to run() is one training run; it never mutates an earlier snapshot."""

    def __init__(
        self,
        db: Session,
        cfg: ConfigLoader = config,
        primitive: Optional[ClusteringPrimitive] = None,
        track_experiments: Optional[bool] = None,
        snapshot_path: Optional[str] = None
    ):
        """
        Args:
            db: session of the target store
            cfg: config loader
            primitive: clustering primitive (KMeans when None)
            track_experiments: log to MLflow (config tracking.enabled when None)
            snapshot_path: where to persist the snapshot (settings when None, "" to skip)
        """
        self.db = db
        self.config = cfg
        self.random_state = int(cfg.get("clustering.random_state", 42))
        self.primitive = primitive or KMeansClusterer(random_state=self.random_state)
        self.feature_builder = FeatureBuilder(expected_tag_width=cfg.get("features.tag_width"))
        self.assigner = ClusterAssigner(self.primitive)
        self.writer = ExportWriter(GameClusterStore(db), distance_precision=cfg.get_distance_precision())

        if track_experiments is None:
            track_experiments = bool(cfg.get("tracking.enabled", True))
        self.track_experiments = track_experiments
        self.snapshot_path = cfg.settings.snapshot_path if snapshot_path is None else snapshot_path

        logger.info(f"ClusterTrainingService ready (tracking={self.track_experiments})")

    def train(self, attributes: pd.DataFrame, tags: pd.DataFrame, n_clusters: int):
        """
        Build features and assign clusters.

        Returns:
            tuple: (FeatureSet, assignments, TrainedModelSnapshot)
        """
        features = self.feature_builder.build(attributes, tags)
        assignments = self.assigner.assign(features, n_clusters)

        snapshot = TrainedModelSnapshot(
            run_id=new_run_id(),
            n_clusters=n_clusters,
            bounds=features.bounds,
            app_ids=frozenset(features.app_ids),
            clusterer=getattr(self.primitive, "model", None),
        )
        return features, assignments, snapshot

    def evaluate(self, features: FeatureSet, assignments: List[ClusterAssignment]) -> Dict[str, Any]:
        """
        Clustering quality metrics.

        Returns:
            dict: average_distance, davies_bouldin_index (None when fewer than
            two clusters are populated), flagged, unassigned, cluster_sizes
        """
        valid = [a for a in assignments if a.is_clustered and not a.flagged]
        labels = np.array([a.cluster_id for a in assignments])
        sizes = Counter(a.cluster_id for a in assignments if a.is_clustered)

        metrics: Dict[str, Any] = {
            "average_distance": float(np.mean([a.distance_to_centroid for a in valid])) if valid else None,
            "davies_bouldin_index": None,
            "flagged": sum(1 for a in assignments if a.flagged),
            "unassigned": sum(1 for a in assignments if not a.is_clustered),
            "cluster_sizes": dict(sorted(sizes.items())),
        }

        n_labels = len(set(labels.tolist()))
        if 2 <= n_labels < len(labels):
            metrics["davies_bouldin_index"] = float(davies_bouldin_score(features.vectors, labels))

        logger.info("Clustering evaluation:")
        logger.info(f"  Average Distance     : {metrics['average_distance']}")
        logger.info(f"  Davies-Bouldin Index : {metrics['davies_bouldin_index']}")
        logger.info("Cluster distribution:")
        for cluster_id, count in metrics["cluster_sizes"].items():
            logger.info(f"  cluster {cluster_id:>2}: {count} games")

        return metrics

    def run(
        self,
        attributes: pd.DataFrame,
        tags: pd.DataFrame,
        image_urls: Optional[Mapping[int, str]] = None,
        n_clusters: Optional[int] = None
    ) -> TrainingResult:
        """
        Full training run.

        Args:
            attributes: prepared game attributes
            tags: app_id + tag columns
            image_urls: header image per app_id
            n_clusters: K (config clustering.n_clusters when None)

        Returns:
            TrainingResult

        Raises:
            SchemaMismatch: feature sources are incompatible (nothing is exported)
            ValueError: n_clusters is not between 1 and the number of games
        """
        if n_clusters is None:
            n_clusters = self.config.get_n_clusters()
        log_banner(logger, f"Training run started (k={n_clusters})")
        start_time = datetime.now()

        try:
            features, assignments, snapshot = self.train(attributes, tags, n_clusters)
            metrics = self.evaluate(features, assignments)

            rows = pair_rows(assignments, features.metadata(image_urls))

            # the store never holds rows of a run whose snapshot was not persisted
            if self.snapshot_path:
                save_snapshot(snapshot, self.snapshot_path)

            export_summary = self.writer.write(snapshot, rows)

        except Exception as e:
            logger.error(f"Training run failed: {e}", exc_info=True)
            raise

        metrics["training_time_seconds"] = (datetime.now() - start_time).total_seconds()
        result = TrainingResult(snapshot=snapshot, assignments=assignments, export=export_summary, metrics=metrics)

        if self.track_experiments:
            self.log_to_mlflow(result, len(features))

        log_banner(logger, f"Training run complete (run_id={snapshot.run_id})")
        return result

    def log_to_mlflow(self, result: TrainingResult, n_games: int) -> None:
        """
        Record params, metrics and the fitted model of a run.

        Tracking is best effort: a failure here is logged and the finished
        export stays in place.
        """
        snapshot = result.snapshot
        try:
            mlflow.set_tracking_uri(self.config.settings.mlflow_tracking_uri)
            mlflow.set_experiment(self.config.get("tracking.experiment", "game-clusters"))

            with mlflow.start_run(run_name=snapshot.run_id):
                mlflow.log_params({
                    "n_clusters": snapshot.n_clusters,
                    "random_state": self.random_state,
                    "tag_width": snapshot.tag_width,
                    "n_games": n_games,
                })

                for name, value in result.metrics.items():
                    if isinstance(value, (int, float)):
                        mlflow.log_metric(name, value)
                mlflow.log_metric("exported", result.export.written)
                mlflow.log_metric("skipped_unclustered", result.export.skipped_unclustered)

                if snapshot.clusterer is not None:
                    mlflow.sklearn.log_model(snapshot.clusterer, "model")

                mlflow.set_tag("model_type", "KMeans")
                mlflow.set_tag("training_run_id", snapshot.run_id)

            logger.info("MLflow run recorded")

        except Exception as e:
            logger.warning(f"MLflow logging failed: {e}", exc_info=True)
