"""
Neighbour retrieval inside a cluster

Cluster membership is the coarse similarity bucket. Inside a cluster two
strategies rank candidates behind the same contract:

- RangeScanRetriever: distance-to-centroid as a 1-D proxy; one ascending
  range scan over the composite index, O(log n + k). Two games equally far
  from the centroid in different directions rank as equally similar.
- CosineRerankRetriever: rebuilds the full feature vectors of every cluster
  member and ranks by cosine similarity to the anchor, O(cluster size * d).

Scan policy of the range strategy:
- starts at the anchor's own distance (inclusive) and moves upward; games
  below the anchor's distance are never returned
- games tied with the anchor's distance are included, ordered by app_id
- the anchor is excluded inside the query predicate, so a full page of k
  comes back whenever k qualifying games exist
"""

from typing import List, Optional, Protocol, Tuple

from gamecluster.models.schemas import DistanceCursor, ExportRecord, RetrievalStrategy
from gamecluster.pipeline.features import FeatureBuilder
from gamecluster.pipeline.snapshot import TrainedModelSnapshot, require_snapshot
from gamecluster.utils.logger import get_logger

from .similarity import cosine_similarity_to
from .store import GameClusterStore

logger = get_logger(__name__)


class NeighborRetriever(Protocol):
    def retrieve(
        self,
        cluster_id: int,
        anchor_app_id: int,
        anchor_distance: float,
        k: int,
        exclusive_start: Optional[DistanceCursor] = None
    ) -> List[ExportRecord]:
        ...


class RangeScanRetriever:
    """k nearest same-cluster games by distance-to-centroid"""

    strategy = RetrievalStrategy.RANGE_SCAN

    def __init__(self, store: GameClusterStore):
        self.store = store

    def retrieve(
        self,
        cluster_id: int,
        anchor_app_id: int,
        anchor_distance: float,
        k: int,
        exclusive_start: Optional[DistanceCursor] = None
    ) -> List[ExportRecord]:
        """
        Args:
            cluster_id: anchor's cluster
            anchor_app_id: game the neighbours are for (never returned)
            anchor_distance: anchor's stored distance-to-centroid
            k: maximum neighbours
            exclusive_start: last record of the previous page

        Returns:
            Up to k records, non-decreasing in distance_to_centroid. Fewer than
            k only when the cluster has no more games at or above the anchor.
        """
        if k <= 0:
            return []

        records = self.store.range_query(
            cluster_id,
            start_distance=anchor_distance,
            ascending=True,
            limit=k,
            exclude_app_id=anchor_app_id,
            exclusive_start=exclusive_start,
        )
        logger.debug(f"range scan cluster={cluster_id} anchor={anchor_app_id}: {len(records)}/{k}")
        return records


class CosineRerankRetriever:
    """Exact within-cluster ranking by cosine similarity of feature vectors"""

    strategy = RetrievalStrategy.COSINE

    def __init__(self, store: GameClusterStore, snapshot: Optional[TrainedModelSnapshot]):
        """
        Args:
            store: persisted records (metadata blobs carry the raw features)
            snapshot: run whose frozen bounds re-encode the metadata
        """
        self.store = store
        self.snapshot = snapshot

    def rank(self, cluster_id: int, anchor_app_id: int) -> List[Tuple[ExportRecord, float]]:
        """
        Every other cluster member with its cosine similarity to the anchor,
        most similar first (ties by app_id).
        Members whose stored tag width differs from the snapshot (rows left
        by an earlier run) are skipped.

        Raises:
            UntrainedModel: no snapshot to take feature bounds from
            NotFound: the anchor has no record
            SchemaMismatch: the anchor's own stored tag width is stale
        """
        snapshot = require_snapshot(self.snapshot)
        anchor = self.store.get_by_id(anchor_app_id)

        members = []
        stale = 0
        for record in self.store.cluster_members(cluster_id):
            if record.app_id == anchor_app_id:
                continue
            metadata = record.metadata
            if len(metadata.tag_vector) != snapshot.tag_width:
                stale += 1
                continue
            members.append((record, metadata))

        if stale:
            logger.warning(
                f"Skipped {stale} members of cluster {cluster_id} whose stored tag width "
                f"differs from run {snapshot.run_id} ({snapshot.tag_width})"
            )
        if not members:
            return []

        vectors = FeatureBuilder.encode_metadata(
            [anchor.metadata] + [metadata for _, metadata in members],
            snapshot.bounds,
        )
        similarities = cosine_similarity_to(vectors[0], vectors[1:])

        ranked = sorted(
            zip([record for record, _ in members], similarities.tolist()),
            key=lambda pair: (-pair[1], pair[0].app_id),
        )
        return ranked

    def retrieve(
        self,
        cluster_id: int,
        anchor_app_id: int,
        anchor_distance: float,
        k: int,
        exclusive_start: Optional[DistanceCursor] = None
    ) -> List[ExportRecord]:
        """
        Same contract as RangeScanRetriever.retrieve, ordered by cosine
        similarity instead of distance. anchor_distance and exclusive_start
        are not used by this strategy.
        """
        if k <= 0:
            return []

        ranked = self.rank(cluster_id, anchor_app_id)
        logger.debug(f"cosine rerank cluster={cluster_id} anchor={anchor_app_id}: {len(ranked)} candidates")
        return [record for record, _ in ranked[:k]]


def build_retriever(
    strategy: RetrievalStrategy,
    store: GameClusterStore,
    snapshot: Optional[TrainedModelSnapshot] = None
) -> NeighborRetriever:
    """Retriever for the requested strategy."""
    if strategy == RetrievalStrategy.COSINE:
        return CosineRerankRetriever(store, snapshot)
    return RangeScanRetriever(store)
