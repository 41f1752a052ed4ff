"""
Similarity helpers for the cosine re-ranking strategy
"""

import numpy as np

COSINE_EPSILON = 1e-6


def cosine_similarity_to(anchor: np.ndarray, candidates: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of every candidate row to the anchor vector.

    similarity = (a . b) / (|a| |b| + eps)

    The epsilon keeps all-zero vectors (no tags, zero-scaled fields) at 0
    instead of dividing by zero.

    Args:
        anchor: shape (d,)
        candidates: shape (n, d)

    Returns:
        ndarray of shape (n,)
    """
    if candidates.shape[0] == 0:
        return np.zeros(0, dtype=np.float64)

    if candidates.shape[1] != anchor.shape[0]:
        raise ValueError(f"Vector lengths differ: {anchor.shape[0]} vs {candidates.shape[1]}")

    dots = candidates @ anchor
    norms = np.linalg.norm(candidates, axis=1) * np.linalg.norm(anchor)
    return dots / (norms + COSINE_EPSILON)
