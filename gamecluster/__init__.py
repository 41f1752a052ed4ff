"""
Game cluster recommender
Offline clustering of the game catalog and online similar-games retrieval.
"""

__version__ = "1.0.0"
