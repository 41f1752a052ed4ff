"""
Offline quality check of the exported clusters

For a sample of anchors in every cluster, compares the range-scan proxy
(distance-to-centroid) against the exact within-cluster cosine ranking.

Metrics:
1. overlap@K: share of the cosine top-K that the range scan also returns
2. mean_cosine@K: average cosine similarity of the range-scan results to the anchor
3. fill_rate: returned / requested neighbours of the range scan

Usage:
    python scripts/evaluate_clusters.py --k 10 --anchors-per-cluster 20

Requires:
    - a completed training run (models/cluster_snapshot.pkl + game_clusters table)
"""

import argparse
import os
import random
import sys
from collections import defaultdict
from typing import Dict

import numpy as np
from dotenv import load_dotenv

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

load_dotenv()

import mlflow

from gamecluster.pipeline.snapshot import TrainedModelSnapshot, load_snapshot
from gamecluster.recommender.neighbors import CosineRerankRetriever, RangeScanRetriever
from gamecluster.recommender.store import GameClusterStore
from gamecluster.utils.config_loader import config
from gamecluster.utils.database import SessionLocal
from gamecluster.utils.logger import get_logger, log_banner

logger = get_logger(__name__)


class ClusterEvaluator:
    """Range scan vs cosine re-ranking on the exported store"""

    def __init__(self, store: GameClusterStore, snapshot: TrainedModelSnapshot, seed: int = 42):
        self.store = store
        self.snapshot = snapshot
        self.range_retriever = RangeScanRetriever(store)
        self.cosine_retriever = CosineRerankRetriever(store, snapshot)
        self.rng = random.Random(seed)

    def evaluate_anchor(self, app_id: int, k: int) -> Dict[str, float]:
        anchor = self.store.get_by_id(app_id)
        ranked = self.cosine_retriever.rank(anchor.cluster_id, anchor.app_id)
        if not ranked:
            return {}

        similarity_by_id = {record.app_id: similarity for record, similarity in ranked}
        cosine_top = {record.app_id for record, _ in ranked[:k]}

        scanned = self.range_retriever.retrieve(anchor.cluster_id, anchor.app_id, anchor.distance_to_centroid, k)
        scanned_ids = [record.app_id for record in scanned]

        return {
            "overlap": len(cosine_top.intersection(scanned_ids)) / min(k, len(ranked)),
            "mean_cosine": float(np.mean([similarity_by_id[i] for i in scanned_ids])) if scanned_ids else 0.0,
            "fill_rate": len(scanned_ids) / k,
        }

    def run(self, k: int = 10, anchors_per_cluster: int = 20) -> Dict[str, float]:
        log_banner(logger, f"Cluster evaluation (run_id={self.snapshot.run_id}, k={k})")

        totals = defaultdict(list)
        for cluster_id, size in self.store.cluster_sizes().items():
            members = [r.app_id for r in self.store.cluster_members(cluster_id)]
            anchors = self.rng.sample(members, min(anchors_per_cluster, len(members)))

            per_cluster = defaultdict(list)
            for app_id in anchors:
                for name, value in self.evaluate_anchor(app_id, k).items():
                    per_cluster[name].append(value)
                    totals[name].append(value)

            summary = ", ".join(f"{name}={np.mean(values):.3f}" for name, values in per_cluster.items())
            logger.info(f"  cluster {cluster_id:>2} ({size} games): {summary or 'no neighbours'}")

        metrics = {f"{name}@{k}": float(np.mean(values)) for name, values in totals.items()}
        for name, value in metrics.items():
            logger.info(f"  - {name}: {value:.4f}")
        return metrics


def main():
    """Entry point"""
    parser = argparse.ArgumentParser(description="Compare range-scan neighbours with cosine re-ranking")
    parser.add_argument("--k", type=int, default=10)
    parser.add_argument("--anchors-per-cluster", type=int, default=20)
    parser.add_argument("--no-tracking", action="store_true", help="skip MLflow logging")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        snapshot = load_snapshot(config.settings.snapshot_path)
        evaluator = ClusterEvaluator(GameClusterStore(db), snapshot)
        metrics = evaluator.run(k=args.k, anchors_per_cluster=args.anchors_per_cluster)

        if not args.no_tracking:
            mlflow.set_tracking_uri(config.settings.mlflow_tracking_uri)
            mlflow.set_experiment(config.get("tracking.experiment", "game-clusters"))
            with mlflow.start_run(run_name=f"eval_{snapshot.run_id}"):
                mlflow.log_metrics({name.replace("@", "_at_"): value for name, value in metrics.items()})
                mlflow.set_tag("training_run_id", snapshot.run_id)
            logger.info("MLflow evaluation recorded")

        sys.exit(0)

    except Exception as e:
        logger.error(f"Evaluation failed: {e}", exc_info=True)
        sys.exit(1)

    finally:
        db.close()


if __name__ == "__main__":
    main()
