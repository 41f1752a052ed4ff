"""
Trained model snapshot

Everything a finished training run hands to export and query code: frozen
feature bounds, the fitted clustering handle and the game population. The
snapshot is an immutable value; a new training run produces a new one.
"""

import os
import pickle
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, Optional

from gamecluster.errors import UntrainedModel
from gamecluster.pipeline.features import FeatureBounds
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)


def new_run_id() -> str:
    return f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"


@dataclass(frozen=True)
class TrainedModelSnapshot:
    run_id: str
    n_clusters: int
    bounds: FeatureBounds
    app_ids: FrozenSet[int]
    clusterer: Any = None
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def tag_width(self) -> int:
        return self.bounds.tag_width

    def covers(self, app_id: int) -> bool:
        return app_id in self.app_ids


def require_snapshot(snapshot: Optional[TrainedModelSnapshot]) -> TrainedModelSnapshot:
    """Raise UntrainedModel unless a completed run's snapshot is given."""
    if snapshot is None:
        raise UntrainedModel("No completed clustering run; train the model first")
    return snapshot


def save_snapshot(snapshot: TrainedModelSnapshot, output_path: str) -> None:
    """
    Persist the snapshot atomically: a reader sees the previous file or the
    complete new one, never a partial pickle.

    Args:
        snapshot: snapshot of a completed run
        output_path: pickle file path
    """
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory or ".", suffix=".tmp")
    try:
        with os.fdopen(fd, 'wb') as f:
            pickle.dump(snapshot, f)
        os.replace(tmp_path, output_path)
    except Exception:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    logger.info(f"Snapshot saved: {output_path} (run_id={snapshot.run_id})")


def load_snapshot(snapshot_path: str) -> TrainedModelSnapshot:
    """
    Load a persisted snapshot.

    Raises:
        UntrainedModel: no snapshot file exists yet
    """
    if not os.path.exists(snapshot_path):
        raise UntrainedModel(f"Snapshot file not found: {snapshot_path}")

    with open(snapshot_path, 'rb') as f:
        snapshot = pickle.load(f)

    logger.info(f"Snapshot loaded: {snapshot_path} (run_id={snapshot.run_id})")
    return snapshot
