"""
SQLAlchemy database setup
Engine creation and session management
"""

from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config_loader import config
from .logger import get_logger

logger = get_logger(__name__)


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for any SQLAlchemy URL.

    sqlite files get their parent directory created; in-memory sqlite shares
    one connection across threads so API worker threads see the same data.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            echo=False,
        )

    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


engine = build_engine(config.settings.database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for every ORM model
Base = declarative_base()


def init_db(bind: Engine = None) -> None:
    """
    Create the tables (registers the ORM models first).
    """
    from gamecluster.models import orm_models  # noqa: F401  (registers tables)

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ready")
