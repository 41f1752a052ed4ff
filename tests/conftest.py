"""
Shared fixtures: an isolated in-memory store per test, a default config and
record/snapshot factories.
"""

import copy
import os
import tempfile

# Settings and loggers read these at import time
os.environ.setdefault("GAMECLUSTER_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("GAMECLUSTER_SNAPSHOT_PATH", os.path.join(tempfile.gettempdir(), "gamecluster-tests", "missing.pkl"))
os.environ.setdefault("GAMECLUSTER_LOG_DIR", os.path.join(tempfile.gettempdir(), "gamecluster-tests", "logs"))

import pandas as pd
import pytest
from sqlalchemy.orm import sessionmaker

from gamecluster.models.schemas import ExportRecord, GameMetadata
from gamecluster.pipeline.features import FeatureBounds
from gamecluster.pipeline.snapshot import TrainedModelSnapshot
from gamecluster.recommender.store import GameClusterStore
from gamecluster.utils.config_loader import DEFAULT_CONFIG, config
from gamecluster.utils.database import build_engine, init_db

TAG_WIDTH = 3


@pytest.fixture
def engine():
    """Fresh in-memory database with the store table."""
    engine = build_engine("sqlite:///:memory:")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return GameClusterStore(db)


@pytest.fixture
def cfg():
    """The config singleton holding the built-in defaults; restored afterwards."""
    saved = (config._config, config._config_path, config._last_loaded)
    config.use_config(copy.deepcopy(DEFAULT_CONFIG))
    yield config
    config._config, config._config_path, config._last_loaded = saved


@pytest.fixture
def bounds():
    return FeatureBounds(ratio_min=0.0, ratio_max=1.0, price_min=0.0, price_max=100.0, tag_width=TAG_WIDTH)


@pytest.fixture
def make_snapshot(bounds):
    def _make(app_ids, run_id="run_test", n_clusters=3):
        return TrainedModelSnapshot(
            run_id=run_id,
            n_clusters=n_clusters,
            bounds=bounds,
            app_ids=frozenset(app_ids),
        )
    return _make


@pytest.fixture
def make_metadata():
    def _make(app_id, tags=(1.0, 0.0, 0.0), positive_ratio=0.8, price=10.0, title=None):
        return GameMetadata(
            app_id=app_id,
            title=title or f"Game {app_id}",
            positive_ratio=positive_ratio,
            price=price,
            is_win=True,
            tag_vector=list(tags),
            image_url=f"https://cdn.example.com/{app_id}.jpg",
        )
    return _make


@pytest.fixture
def seed(store, make_metadata):
    """
    Put records straight into the store and commit.

    Usage:
        seed([(app_id, cluster_id, distance), ...])
        seed([(app_id, cluster_id, distance, tags), ...], run_id="run_b")
    """
    def _seed(rows, run_id="run_test"):
        for row in rows:
            app_id, cluster_id, distance = row[:3]
            metadata = make_metadata(app_id, tags=row[3]) if len(row) > 3 else make_metadata(app_id)
            store.put(ExportRecord(
                app_id=app_id,
                cluster_id=cluster_id,
                distance_to_centroid=distance,
                image_url=metadata.image_url,
                game_json=metadata.model_dump_json(),
                training_run_id=run_id,
            ))
        store.db.commit()
    return _seed


@pytest.fixture
def attributes():
    """Prepared attributes of five games; app_id 50 has no tag data."""
    return pd.DataFrame({
        "app_id": [10, 20, 30, 40, 50],
        "title": ["Alpha", "Beta", "Gamma", "Delta", "Untagged"],
        "release_date": ["2019-01-01", "2020-05-05", None, "2018-03-03", "2021-07-07"],
        "positive_ratio": [0.9, 0.5, 0.7, 0.1, 0.6],
        "price": [0.0, 20.0, 10.0, 40.0, 5.0],
        "is_win": [True, True, False, True, True],
        "is_mac": [False, True, False, False, False],
        "is_linux": [False, False, True, False, True],
    })


@pytest.fixture
def tags():
    """Tag counts of four games (three tag columns)."""
    return pd.DataFrame({
        "app_id": [40, 10, 20, 30],
        "action": [0, 120, 3, 0],
        "puzzle": [7, 0, 0, 15],
        "rpg": [0, 0, 44, 1],
    })
