"""
Services package
Offline training runs and the online similar-games path.
"""

from .training_service import ClusterTrainingService, TrainingResult
from .similar_games_service import SimilarGamesService

__all__ = [
    "ClusterTrainingService",
    "TrainingResult",
    "SimilarGamesService",
]
