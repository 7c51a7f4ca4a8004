"""
Cosine similarity over plain float vectors.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np

from ..errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``.

    A zero-magnitude vector on either side yields ``0.0``.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    magnitude = float(np.linalg.norm(left)) * float(np.linalg.norm(right))
    if magnitude == 0.0:
        return 0.0

    similarity = float(np.dot(left, right)) / magnitude
    # Rounding can push |similarity| marginally past 1.
    return max(-1.0, min(1.0, similarity))


def score_vectors(
    query: Sequence[float],
    vectors: Iterable[tuple[str, Sequence[float]]],
) -> list[tuple[str, float]]:
    """Score each ``(subject_id, vector)`` pair against *query* in input order."""
    return [
        (subject_id, cosine_similarity(query, vector)) for subject_id, vector in vectors
    ]
