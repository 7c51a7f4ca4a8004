"""
Combined search across the internal knowledge base and external providers.

All sources are queried concurrently and joined settle-all: a failing source
contributes an empty result set and a warning, never an exception.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from ..config import (
    DEFAULT_INTERNAL_LIMIT,
    DEFAULT_STACKOVERFLOW_LIMIT,
    DEFAULT_YOUTUBE_LIMIT,
)
from ..errors import EmptyInputError, SourceUnavailable
from ..models import (
    AggregatedResult,
    InternalResult,
    SearchResult,
    SourceResults,
)
from ..sources import StackOverflowSource, YouTubeSource
from .ranker import FusionWeights, fuse_results

log = structlog.get_logger(__name__)

InternalSearchFn = Callable[[str, int], Awaitable[Sequence[InternalResult]]]


async def _call_source(
    name: str, fn: Callable[[str, int], Awaitable[Sequence[Any]]], query: str, limit: int
) -> Sequence[Any]:
    try:
        return await fn(query, limit)
    except Exception as exc:
        raise SourceUnavailable(name, str(exc) or type(exc).__name__) from exc


def _settle(name: str, outcome: Any) -> SourceResults:
    if isinstance(outcome, (Exception, asyncio.CancelledError)):
        reason = outcome.reason if isinstance(outcome, SourceUnavailable) else repr(outcome)
        log.warning("source_unavailable", source=name, error=reason)
        return SourceResults(results=(), error=reason)
    if isinstance(outcome, BaseException):
        raise outcome
    return SourceResults(results=tuple(outcome))


async def search_all_sources(
    query: str,
    internal_search_fn: InternalSearchFn,
    *,
    internal_limit: int = DEFAULT_INTERNAL_LIMIT,
    stackoverflow_limit: int = DEFAULT_STACKOVERFLOW_LIMIT,
    youtube_limit: int = DEFAULT_YOUTUBE_LIMIT,
    stackoverflow: StackOverflowSource | None = None,
    youtube: YouTubeSource | None = None,
    weights: FusionWeights | None = None,
) -> AggregatedResult:
    """Query every source concurrently and fuse the results into one ranking."""
    if not isinstance(query, str) or not query.strip():
        raise EmptyInputError("Query must be a non-empty string.")

    so_source = stackoverflow or StackOverflowSource()
    yt_source = youtube or YouTubeSource()
    search_log = log.bind(query=query)
    search_log.info("combined_search_started")

    outcomes = await asyncio.gather(
        _call_source("internal", internal_search_fn, query, internal_limit),
        _call_source("stackoverflow", so_source.search, query, stackoverflow_limit),
        _call_source("youtube", yt_source.search, query, youtube_limit),
        return_exceptions=True,
    )
    internal, so_results, yt_results = (
        _settle(name, outcome)
        for name, outcome in zip(("internal", "stackoverflow", "youtube"), outcomes)
    )

    merged: list[SearchResult] = [
        *internal.results,
        *so_results.results,
        *yt_results.results,
    ]
    aggregated = AggregatedResult(
        query=query,
        timestamp=datetime.now(timezone.utc).isoformat(),
        internal=internal,
        stackoverflow=so_results,
        youtube=yt_results,
        top_results=tuple(fuse_results(merged, weights)),
    )
    search_log.info(
        "combined_search_completed",
        total=aggregated.total_results,
        internal=internal.count,
        stackoverflow=so_results.count,
        youtube=yt_results.count,
    )
    return aggregated


def extract_all_links(aggregated: AggregatedResult) -> list[str]:
    """Unique links from every source, in first-seen order."""
    links: list[str] = []
    for source_results in aggregated.sources.values():
        for result in source_results.results:
            links.extend(result.links)
    return list(dict.fromkeys(links))
