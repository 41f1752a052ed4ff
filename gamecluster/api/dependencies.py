"""
FastAPI dependencies
DB session, config and the trained snapshot.
"""

import os
from functools import lru_cache
from typing import Generator, Optional

from sqlalchemy.orm import Session, sessionmaker

from gamecluster.errors import UntrainedModel
from gamecluster.pipeline.snapshot import TrainedModelSnapshot, load_snapshot
from gamecluster.utils.config_loader import ConfigLoader, config
from gamecluster.utils.database import SessionLocal
from gamecluster.utils.logger import get_logger

logger = get_logger(__name__)


def get_database() -> Generator[Session, None, None]:
    """
    Database session dependency

    Usage:
        @router.post("/endpoint")
        def endpoint(db: Session = Depends(get_database)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> sessionmaker:
    """
    Session factory dependency

    For work handed to a worker thread: the worker opens and closes its own
    session, so the request teardown never closes a session still in use.
    """
    return SessionLocal


def get_config() -> ConfigLoader:
    """
    Config dependency

    Returns:
        ConfigLoader: the singleton, reloaded when config.json changed
    """
    config.reload_if_changed()
    return config


@lru_cache(maxsize=4)
def _cached_snapshot(path: str, mtime: float) -> TrainedModelSnapshot:
    return load_snapshot(path)


def get_snapshot() -> Optional[TrainedModelSnapshot]:
    """
    Latest persisted snapshot, or None before the first training run.
    A newer snapshot file is picked up on the next request.
    """
    path = config.settings.snapshot_path
    try:
        return _cached_snapshot(path, os.path.getmtime(path))
    except (OSError, UntrainedModel):
        logger.debug(f"No trained snapshot at {path}")
        return None
