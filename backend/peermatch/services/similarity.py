"""
Vector similarity for embedding comparison.

Cosine similarity is mathematically in [-1, 1]. Results are returned
unclamped; a negative value simply never clears a match threshold.
Absent or mismatched vectors carry no signal and score 0.0.
"""

from typing import List, Optional, Sequence

import numpy as np

Vector = Optional[Sequence[float]]


def cosine_similarity(vec1: Vector, vec2: Vector) -> float:
    """
    Calculate cosine similarity between two embedding vectors.

    Formula: cos(θ) = (a · b) / (||a|| × ||b||)

    Args:
        vec1: First embedding vector (may be None)
        vec2: Second embedding vector (may be None)

    Returns:
        Similarity score. 0.0 if either vector is absent or empty, if the
        lengths differ, or if either vector has zero magnitude.
    """
    if vec1 is None or vec2 is None:
        return 0.0
    if len(vec1) == 0 or len(vec1) != len(vec2):
        return 0.0

    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(a, b) / (norm_a * norm_b))


def batch_similarity(target: Vector, candidates: Sequence[Vector]) -> List[float]:
    """Cosine similarity of target against each candidate, in input order."""
    return [cosine_similarity(target, candidate) for candidate in candidates]
