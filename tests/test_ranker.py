"""Tests for threshold ranking and multi-source fusion."""

from __future__ import annotations

import pytest

from problem_search.config import SearchSettings
from problem_search.models import InternalResult, StackOverflowResult, YouTubeResult
from problem_search.search.ranker import FusionWeights, fuse_results, fused_score, rank


def test_rank_filters_sorts_and_limits() -> None:
    ranked = rank(
        [("a", 0.2), ("b", 0.9), ("c", 0.05), ("d", 0.5)],
        threshold=0.1,
        limit=2,
    )

    assert [candidate.subject_id for candidate in ranked] == ["b", "d"]
    assert [candidate.score for candidate in ranked] == [0.9, 0.5]
    assert all(candidate.source == "internal_db" for candidate in ranked)


def test_rank_threshold_is_inclusive() -> None:
    ranked = rank([("a", 0.5), ("b", 0.4999)], threshold=0.5, limit=10)
    assert [candidate.subject_id for candidate in ranked] == ["a"]


def test_rank_ties_keep_input_order() -> None:
    ranked = rank([("x", 0.7), ("y", 0.7), ("z", 0.7)], threshold=0.0, limit=None)
    assert [candidate.subject_id for candidate in ranked] == ["x", "y", "z"]


def test_rank_non_positive_limit_returns_empty() -> None:
    assert rank([("a", 1.0)], threshold=0.0, limit=0) == []
    assert rank([("a", 1.0)], threshold=0.0, limit=-3) == []


def test_rank_without_limit_keeps_everything_above_threshold() -> None:
    ranked = rank([(str(i), i / 10) for i in range(10)], threshold=0.3, limit=None)
    assert len(ranked) == 7
    assert ranked[0].subject_id == "9"


def test_rank_negative_threshold_admits_opposites() -> None:
    ranked = rank([("a", -0.4), ("b", -0.9)], threshold=-0.5, limit=5)
    assert [candidate.subject_id for candidate in ranked] == ["a"]


def _internal(problem_id: str, similarity: float, relevance: int) -> InternalResult:
    return InternalResult(
        problem_id=problem_id,
        title=f"Problem {problem_id}",
        description="desc",
        similarity=similarity,
        relevance_score=relevance,
    )


def _stackoverflow(question_id: str, relevance: int) -> StackOverflowResult:
    return StackOverflowResult(
        question_id=question_id,
        title=f"Question {question_id}",
        link=f"https://stackoverflow.com/q/{question_id}",
        relevance_score=relevance,
    )


def _youtube(video_id: str) -> YouTubeResult:
    return YouTubeResult(
        video_id=video_id,
        title=f"Video {video_id}",
        link=f"https://www.youtube.com/watch?v={video_id}",
    )


def test_fused_score_per_source() -> None:
    weights = FusionWeights()

    assert fused_score(_internal("p", 0.42, 42), weights) == pytest.approx(142.0)
    assert fused_score(_stackoverflow("q", 115), weights) == pytest.approx(115.0)
    assert fused_score(_youtube("v"), weights) == pytest.approx(30.0)


def test_fused_score_internal_falls_back_to_similarity() -> None:
    result = _internal("p", 0.004, 0)
    assert fused_score(result, FusionWeights()) == pytest.approx(100.4)


def test_fused_score_rejects_unknown_results() -> None:
    with pytest.raises(TypeError):
        fused_score(object(), FusionWeights())  # type: ignore[arg-type]


def test_fuse_results_orders_and_caps() -> None:
    results = [
        _youtube("v1"),
        _stackoverflow("q1", 250),
        _internal("p1", 0.8, 80),
        _stackoverflow("q2", 10),
    ]

    fused = fuse_results(results, FusionWeights(top_n=3))

    assert [item.result.id for item in fused] == ["q1", "p1", "v1"]
    assert [item.rank_score for item in fused] == [250.0, 180.0, 30.0]
    assert fused[1].source == "internal_db"


def test_fuse_results_respects_custom_weights() -> None:
    weights = FusionWeights(internal_bonus=0.0, youtube_flat_score=500.0, top_n=10)

    fused = fuse_results([_internal("p", 0.9, 90), _youtube("v")], weights)

    assert [item.result.id for item in fused] == ["v", "p"]


def test_fusion_weights_from_settings(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PROBLEM_SEARCH_INTERNAL_BONUS", "50")
    monkeypatch.setenv("PROBLEM_SEARCH_YOUTUBE_SCORE", "5")
    monkeypatch.setenv("PROBLEM_SEARCH_TOP_N", "3")

    settings = SearchSettings.from_env(db_path=str(tmp_path / "db.duckdb"))

    weights = FusionWeights.from_settings(settings)

    assert weights == FusionWeights(internal_bonus=50.0, youtube_flat_score=5.0, top_n=3)


def test_fusion_weights_ignore_blank_env(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("PROBLEM_SEARCH_INTERNAL_BONUS", "")
    monkeypatch.setenv("PROBLEM_SEARCH_YOUTUBE_SCORE", " ")
    monkeypatch.setenv("PROBLEM_SEARCH_TOP_N", "")

    settings = SearchSettings.from_env(db_path=str(tmp_path / "db.duckdb"))

    assert FusionWeights.from_settings(settings) == FusionWeights()
