"""
Pydantic schemas
Typed game metadata, exported records and the similar-games API contract.
"""

from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field


class RetrievalStrategy(str, Enum):
    """How neighbours inside a cluster are ranked"""
    RANGE_SCAN = "range_scan"  # distance-to-centroid proxy, O(log n + k)
    COSINE = "cosine"          # full feature vectors, O(cluster size * d)


# ========== Stored records ==========

class GameMetadata(BaseModel):
    """Metadata blob stored with every exported game (game_json column)"""
    app_id: int
    title: str = ""
    release_date: Optional[str] = None
    positive_ratio: float = Field(0.0, ge=0.0, le=1.0)
    price: float = Field(0.0, ge=0.0)
    is_win: bool = False
    is_mac: bool = False
    is_linux: bool = False
    tag_vector: List[float] = Field(default_factory=list, description="Binarized tag presence")
    image_url: str = ""


class ExportRecord(BaseModel):
    """One row of the persisted store"""
    app_id: int
    cluster_id: int = Field(..., ge=0)
    distance_to_centroid: float = Field(..., ge=0.0)
    image_url: str = ""
    game_json: str
    training_run_id: str

    model_config = ConfigDict(from_attributes=True)  # built straight from GameClusterORM

    @property
    def metadata(self) -> GameMetadata:
        return GameMetadata.model_validate_json(self.game_json)


class ClusterLocation(BaseModel):
    """Where a game sits: its cluster and its own distance to that centroid"""
    app_id: int
    cluster_id: int
    distance_to_centroid: float


class DistanceCursor(BaseModel):
    """Composite-key position used to continue a range scan"""
    distance_to_centroid: float = Field(..., ge=0.0)
    app_id: int


class ExportSummary(BaseModel):
    """What an export pass did"""
    training_run_id: str
    written: int = 0
    skipped_unclustered: int = 0
    flagged: int = 0


# ========== API request/response ==========

class SimilarGamesRequest(BaseModel):
    """Similar games request"""
    app_id: str = Field(..., description="Anchor game id")
    similar_game_count: int = Field(..., ge=0, description="Number of neighbours to return")
    strategy: Optional[RetrievalStrategy] = Field(None, description="Ranking strategy (config default when omitted)")
    exclusive_start: Optional[DistanceCursor] = Field(
        None,
        description="last_evaluated from the previous page (range_scan only)"
    )


class SimilarGameItem(BaseModel):
    """One neighbour"""
    app_id: int
    cluster_id: int
    distance_to_centroid: float
    title: str
    price: float
    image_url: str

    @classmethod
    def from_record(cls, record: ExportRecord) -> "SimilarGameItem":
        metadata = record.metadata
        return cls(
            app_id=record.app_id,
            cluster_id=record.cluster_id,
            distance_to_centroid=record.distance_to_centroid,
            title=metadata.title,
            price=metadata.price,
            image_url=record.image_url or metadata.image_url,
        )


class SimilarGamesResponse(BaseModel):
    """Similar games response"""
    results: List[SimilarGameItem] = Field(default_factory=list)
    last_evaluated: Optional[DistanceCursor] = Field(
        None,
        description="Pass back as exclusive_start to fetch the next page"
    )
