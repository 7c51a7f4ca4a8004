"""
Search result variants and the aggregated search response.

Each source produces its own frozen result type. They share ``id``, ``score``
and ``source`` so rank fusion can treat them uniformly while still matching
on the concrete variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias

SourceTag: TypeAlias = Literal["internal_db", "stackoverflow", "youtube"]

SOURCE_TAGS: tuple[SourceTag, ...] = ("internal_db", "stackoverflow", "youtube")


@dataclass(frozen=True)
class RankedCandidate:
    """A scored subject produced by the ranker."""

    subject_id: str
    score: float
    source: SourceTag = "internal_db"


@dataclass(frozen=True)
class SolutionSummary:
    """A solution attached to an internal hit."""

    id: str
    description: str
    source: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "source": self.source,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class InternalResult:
    """A problem from the internal knowledge base matched by similarity."""

    problem_id: str
    title: str
    description: str
    similarity: float
    relevance_score: int
    tags: tuple[str, ...] = ()
    created_at: str | None = None
    solutions: tuple[SolutionSummary, ...] = ()
    source: Literal["internal_db"] = "internal_db"

    @property
    def id(self) -> str:
        return self.problem_id

    @property
    def score(self) -> float:
        return self.similarity

    @property
    def links(self) -> list[str]:
        return [sol.source for sol in self.solutions if sol.source]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "id": self.problem_id,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "similarity": self.similarity,
            "relevance_score": self.relevance_score,
            "solutions": [sol.to_dict() for sol in self.solutions],
        }


@dataclass(frozen=True)
class StackOverflowResult:
    """A Stack Overflow question with its computed relevance heuristic."""

    question_id: str
    title: str
    link: str
    relevance_score: int
    vote_score: int = 0
    answer_count: int = 0
    view_count: int = 0
    is_answered: bool = False
    has_accepted_answer: bool = False
    tags: tuple[str, ...] = ()
    creation_date: str | None = None
    excerpt: str = ""
    source: Literal["stackoverflow"] = "stackoverflow"

    @property
    def id(self) -> str:
        return self.question_id

    @property
    def score(self) -> float:
        return float(self.relevance_score)

    @property
    def links(self) -> list[str]:
        return [self.link] if self.link else []

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "id": self.question_id,
            "title": self.title,
            "link": self.link,
            "score": self.vote_score,
            "answer_count": self.answer_count,
            "view_count": self.view_count,
            "is_answered": self.is_answered,
            "has_accepted_answer": self.has_accepted_answer,
            "tags": list(self.tags),
            "creation_date": self.creation_date,
            "excerpt": self.excerpt,
            "relevance_score": self.relevance_score,
        }


@dataclass(frozen=True)
class YouTubeResult:
    """A YouTube video. The API exposes no relevance number."""

    video_id: str
    title: str
    link: str
    description: str = ""
    channel: str = ""
    channel_id: str = ""
    published_at: str | None = None
    thumbnail: str | None = None
    source: Literal["youtube"] = "youtube"

    @property
    def id(self) -> str:
        return self.video_id

    @property
    def score(self) -> float:
        return 0.0

    @property
    def links(self) -> list[str]:
        return [self.link] if self.link else []

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "id": self.video_id,
            "video_id": self.video_id,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "channel": self.channel,
            "channel_id": self.channel_id,
            "published_at": self.published_at,
            "thumbnail": self.thumbnail,
        }


SearchResult: TypeAlias = InternalResult | StackOverflowResult | YouTubeResult


@dataclass(frozen=True)
class FusedResult:
    """A result from any source placed on the shared fused scale."""

    result: SearchResult
    rank_score: float

    @property
    def source(self) -> SourceTag:
        return self.result.source

    def to_dict(self) -> dict[str, Any]:
        payload = self.result.to_dict()
        payload["rank_score"] = self.rank_score
        return payload


@dataclass(frozen=True)
class SourceResults:
    """Results returned by one source."""

    results: tuple[SearchResult, ...] = ()
    error: str | None = None

    @property
    def count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "count": self.count,
            "results": [item.to_dict() for item in self.results],
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class AggregatedResult:
    """Output of a combined search across every source."""

    query: str
    timestamp: str
    internal: SourceResults = field(default_factory=SourceResults)
    stackoverflow: SourceResults = field(default_factory=SourceResults)
    youtube: SourceResults = field(default_factory=SourceResults)
    top_results: tuple[FusedResult, ...] = ()

    @property
    def total_results(self) -> int:
        return self.internal.count + self.stackoverflow.count + self.youtube.count

    @property
    def sources(self) -> dict[str, SourceResults]:
        return {
            "internal": self.internal,
            "stackoverflow": self.stackoverflow,
            "youtube": self.youtube,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "timestamp": self.timestamp,
            "total_results": self.total_results,
            "sources": {name: res.to_dict() for name, res in self.sources.items()},
            "top_results": [item.to_dict() for item in self.top_results],
        }
