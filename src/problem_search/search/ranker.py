"""
Ranking helpers: threshold/sort/truncate for similarity candidates, and rank
fusion for result sets coming from different sources.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..config import (
    DEFAULT_INTERNAL_BONUS,
    DEFAULT_TOP_N,
    DEFAULT_YOUTUBE_SCORE,
    SearchSettings,
)
from ..models import (
    FusedResult,
    InternalResult,
    RankedCandidate,
    SearchResult,
    SourceTag,
    StackOverflowResult,
    YouTubeResult,
)


def rank(
    candidates: Iterable[tuple[str, float]],
    *,
    threshold: float,
    limit: int | None,
    source: SourceTag = "internal_db",
) -> list[RankedCandidate]:
    """Drop candidates below *threshold*, sort descending, apply *limit*.

    ``sorted`` is stable, so bit-identical scores keep their input order.
    ``limit=None`` means no truncation.
    """
    if limit is not None and limit <= 0:
        return []
    kept = [
        RankedCandidate(subject_id=subject_id, score=float(score), source=source)
        for subject_id, score in candidates
        if score >= threshold
    ]
    ordered = sorted(kept, key=lambda candidate: -candidate.score)
    if limit is None:
        return ordered
    return ordered[:limit]


@dataclass(frozen=True)
class FusionWeights:
    """Constants placing every source on one comparable scale."""

    internal_bonus: float = DEFAULT_INTERNAL_BONUS
    youtube_flat_score: float = DEFAULT_YOUTUBE_SCORE
    top_n: int = DEFAULT_TOP_N

    @classmethod
    def from_settings(cls, settings: SearchSettings) -> FusionWeights:
        return cls(
            internal_bonus=settings.internal_bonus,
            youtube_flat_score=settings.youtube_score,
            top_n=settings.top_n,
        )


def fused_score(result: SearchResult, weights: FusionWeights) -> float:
    """Source-weighted score of one result."""
    if isinstance(result, InternalResult):
        # Internal curated answers outrank external hits of similar quality.
        base = (
            float(result.relevance_score)
            if result.relevance_score
            else result.similarity * 100
        )
        return base + weights.internal_bonus
    if isinstance(result, StackOverflowResult):
        return float(result.relevance_score)
    if isinstance(result, YouTubeResult):
        return weights.youtube_flat_score
    raise TypeError(f"Unsupported result type: {type(result).__name__}")


def fuse_results(
    results: Sequence[SearchResult],
    weights: FusionWeights | None = None,
) -> list[FusedResult]:
    """Merge results from all sources into one list ordered by fused score."""
    effective = weights or FusionWeights()
    fused = [
        FusedResult(result=result, rank_score=fused_score(result, effective))
        for result in results
    ]
    ordered = sorted(fused, key=lambda item: -item.rank_score)
    return ordered[: max(effective.top_n, 0)]
