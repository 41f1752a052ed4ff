"""
Models package
ORM table and pydantic schemas.
"""

from .schemas import (
    # Enums
    RetrievalStrategy,

    # Stored records
    GameMetadata,
    ExportRecord,
    ClusterLocation,
    DistanceCursor,
    ExportSummary,

    # API Schemas
    SimilarGamesRequest,
    SimilarGameItem,
    SimilarGamesResponse,
)

__all__ = [
    # Enums
    "RetrievalStrategy",

    # Stored records
    "GameMetadata",
    "ExportRecord",
    "ClusterLocation",
    "DistanceCursor",
    "ExportSummary",

    # API Schemas
    "SimilarGamesRequest",
    "SimilarGameItem",
    "SimilarGamesResponse",
]
