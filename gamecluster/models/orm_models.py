"""
SQLAlchemy ORM models
One row per exported game; the primary key serves point lookups and the
composite index serves ordered range scans inside a cluster.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Index

from gamecluster.utils.database import Base


class GameClusterORM(Base):
    """Exported cluster assignment of a game"""
    __tablename__ = 'game_clusters'

    # Primary lookup path
    app_id = Column(Integer, primary_key=True, autoincrement=False)

    # Composite range-query path
    cluster_id = Column(Integer, nullable=False)
    distance_to_centroid = Column(Float, nullable=False)

    # Sideband metadata
    image_url = Column(String(512), nullable=False, default="")
    game_json = Column(Text, nullable=False)

    # Which training run wrote the row
    training_run_id = Column(String(64), nullable=False, index=True)
    exported_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index("ix_game_clusters_cluster_distance", "cluster_id", "distance_to_centroid", "app_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<GameClusterORM app_id={self.app_id} cluster_id={self.cluster_id} "
            f"distance={self.distance_to_centroid}>"
        )
