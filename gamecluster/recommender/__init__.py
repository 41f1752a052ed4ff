"""
Recommender package
Cluster lookup and same-cluster neighbour retrieval.
"""

from .store import GameClusterStore
from .lookup import ClusterLookupService
from .neighbors import (
    NeighborRetriever,
    RangeScanRetriever,
    CosineRerankRetriever,
    build_retriever,
)
from .similarity import cosine_similarity_to

__all__ = [
    "GameClusterStore",
    "ClusterLookupService",
    "NeighborRetriever",
    "RangeScanRetriever",
    "CosineRerankRetriever",
    "build_retriever",
    "cosine_similarity_to",
]
