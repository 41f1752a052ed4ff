"""
Offline pipeline
Feature engineering, cluster assignment, snapshot and export.
"""

from .features import FeatureBounds, FeatureBuilder, FeatureSet, prepare_attributes
from .clustering import (
    ClusterAssigner,
    ClusterAssignment,
    ClusteringPrimitive,
    KMeansClusterer,
    SENTINEL_DISTANCE,
    UNASSIGNED_CLUSTER,
)
from .snapshot import TrainedModelSnapshot, load_snapshot, save_snapshot, new_run_id
from .export import ExportWriter, pair_rows

__all__ = [
    "FeatureBounds",
    "FeatureBuilder",
    "FeatureSet",
    "prepare_attributes",
    "ClusterAssigner",
    "ClusterAssignment",
    "ClusteringPrimitive",
    "KMeansClusterer",
    "SENTINEL_DISTANCE",
    "UNASSIGNED_CLUSTER",
    "TrainedModelSnapshot",
    "load_snapshot",
    "save_snapshot",
    "new_run_id",
    "ExportWriter",
    "pair_rows",
]
