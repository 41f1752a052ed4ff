"""
Cluster assignment

The clustering primitive is an external collaborator: it takes the full set
of feature vectors plus a target cluster count and returns, per vector, a
cluster id and a dense distance vector indexed by cluster id. KMeansClusterer
adapts scikit-learn's KMeans to that contract.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np
from sklearn.cluster import KMeans

from gamecluster.errors import GameClusterError, InconsistentClusterOutput
from gamecluster.pipeline.features import FeatureSet
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)

UNASSIGNED_CLUSTER = 0
SENTINEL_DISTANCE = float(np.finfo(np.float32).max)

ClusterOutput = Tuple[int, Sequence[float]]


class ClusteringPrimitive(Protocol):
    def fit_predict(self, vectors: np.ndarray, k: int) -> List[ClusterOutput]:
        ...


@dataclass(frozen=True)
class ClusterAssignment:
    """Cluster assignment of one game for one training run"""
    app_id: int
    cluster_id: int
    distance_to_centroid: float
    flagged: bool = False

    @property
    def is_clustered(self) -> bool:
        return self.cluster_id != UNASSIGNED_CLUSTER


class KMeansClusterer:
    """
    scikit-learn KMeans behind the clustering primitive contract.

    Cluster ids are 1-based so that 0 stays reserved for "unassigned". The
    distance vector has K + 1 entries: slot 0 belongs to the reserved id and
    holds SENTINEL_DISTANCE, slot c holds the distance to centroid c.
    """

    def __init__(self, random_state: int = 42, n_init="auto", max_iter: int = 300):
        self.random_state = random_state
        self.n_init = n_init
        self.max_iter = max_iter
        self.model: Optional[KMeans] = None

    def fit_predict(self, vectors: np.ndarray, k: int) -> List[ClusterOutput]:
        model = KMeans(
            n_clusters=k,
            n_init=self.n_init,
            max_iter=self.max_iter,
            random_state=self.random_state,
        )
        labels = model.fit_predict(vectors)
        distances = model.transform(vectors)
        self.model = model

        logger.info(f"KMeans fitted: k={k}, inertia={model.inertia_:.4f}, iterations={model.n_iter_}")

        return [
            (int(label) + 1, [SENTINEL_DISTANCE] + row.tolist())
            for label, row in zip(labels, distances)
        ]


class ClusterAssigner:
    """
    Runs the primitive once over the whole corpus and derives each game's
    distance to its own centroid.

    An assigned id with no entry in its distance vector does not abort the
    run: the distance is clamped to SENTINEL_DISTANCE and the assignment is
    flagged and logged as InconsistentClusterOutput.
    """

    def __init__(self, primitive: ClusteringPrimitive):
        self.primitive = primitive

    def assign(self, features: FeatureSet, n_clusters: int) -> List[ClusterAssignment]:
        """
        Args:
            features: vectors of the complete training corpus
            n_clusters: target cluster count K (caller tuned)

        Returns:
            One ClusterAssignment per game, in features.app_ids order

        Raises:
            ValueError: K is not between 1 and the number of games
            GameClusterError: the primitive returned the wrong number of results
        """
        n_games = len(features)
        if not 1 <= n_clusters <= n_games:
            raise ValueError(f"n_clusters must be between 1 and {n_games}, got {n_clusters}")

        outputs = self.primitive.fit_predict(features.vectors, n_clusters)
        if len(outputs) != n_games:
            raise GameClusterError(
                f"Clustering primitive returned {len(outputs)} results for {n_games} vectors"
            )

        assignments = []
        for app_id, (cluster_id, distances) in zip(features.app_ids, outputs):
            assignments.append(self._derive(app_id, int(cluster_id), distances))

        flagged = sum(1 for a in assignments if a.flagged)
        unassigned = sum(1 for a in assignments if not a.is_clustered)
        logger.info(
            f"Assigned {n_games} games to {n_clusters} clusters "
            f"(flagged={flagged}, unassigned={unassigned})"
        )
        return assignments

    def _derive(self, app_id: int, cluster_id: int, distances: Sequence[float]) -> ClusterAssignment:
        if cluster_id == UNASSIGNED_CLUSTER:
            logger.warning(f"Primitive returned the reserved cluster id 0 for app_id={app_id}")

        if 0 <= cluster_id < len(distances):
            return ClusterAssignment(app_id, cluster_id, float(distances[cluster_id]))

        error = InconsistentClusterOutput(app_id, cluster_id, len(distances))
        logger.warning(f"InconsistentClusterOutput: {error}; distance clamped to sentinel")
        # cluster ids are unsigned; a negative one can only mean "unassigned"
        return ClusterAssignment(app_id, max(cluster_id, UNASSIGNED_CLUSTER), SENTINEL_DISTANCE, flagged=True)
