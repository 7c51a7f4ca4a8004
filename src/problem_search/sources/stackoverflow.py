"""
Stack Overflow search through the Stack Exchange API 2.3.
"""

from __future__ import annotations

import math
import os
import re
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx

from ..models import StackOverflowResult
from .base import ExternalSource

_TAG_PATTERN = re.compile(r"<[^>]*>")
_SECONDS_PER_DAY = 60 * 60 * 24
_EXCERPT_CHARS = 200


def stackoverflow_relevance(item: dict[str, Any], *, now: float) -> int:
    """Heuristic relevance of a question.

    Votes and answers count linearly, views logarithmically so that busy but
    off-topic questions do not dominate, and questions younger than a year get
    a small bonus.
    """
    score = 0.0
    score += int(item.get("score", 0)) * 5
    score += int(item.get("answer_count", 0)) * 10
    if item.get("is_answered"):
        score += 20
    if item.get("accepted_answer_id"):
        score += 30
    score += math.log10(int(item.get("view_count", 0)) + 1) * 5

    created = item.get("creation_date")
    if created is not None:
        age_in_days = (now - float(created)) / _SECONDS_PER_DAY
        if age_in_days < 365:
            score += 10

    # Half-up rounding.
    return math.floor(score + 0.5)


def _excerpt(body: str | None) -> str:
    if not body:
        return ""
    return _TAG_PATTERN.sub("", body[:_EXCERPT_CHARS]) + "..."


class StackOverflowSource(ExternalSource[StackOverflowResult]):
    """Search Stack Overflow questions by title."""

    source = "stackoverflow"
    base_url = "https://api.stackexchange.com/2.3/search/advanced"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        # A key only raises the rate limit; it is optional.
        self.api_key = api_key or os.getenv("STACK_OVERFLOW_KEY")
        self._clock = clock

    def build_params(self, query: str, limit: int) -> dict[str, Any]:
        params: dict[str, Any] = {
            "order": "desc",
            "sort": "relevance",
            "intitle": query,
            "site": "stackoverflow",
            "pagesize": limit,
            "filter": "withbody",
        }
        if self.api_key:
            params["key"] = self.api_key
        return params

    def parse_items(self, payload: Any) -> list[StackOverflowResult]:
        if not isinstance(payload, dict) or not payload.get("items"):
            return []
        now = self._clock()
        results: list[StackOverflowResult] = []
        for item in payload["items"]:
            created = item.get("creation_date")
            results.append(
                StackOverflowResult(
                    question_id=str(item.get("question_id", item["link"])),
                    title=str(item["title"]),
                    link=str(item["link"]),
                    relevance_score=stackoverflow_relevance(item, now=now),
                    vote_score=int(item.get("score", 0)),
                    answer_count=int(item.get("answer_count", 0)),
                    view_count=int(item.get("view_count", 0)),
                    is_answered=bool(item.get("is_answered", False)),
                    has_accepted_answer=item.get("accepted_answer_id") is not None,
                    tags=tuple(item.get("tags", [])),
                    creation_date=(
                        datetime.fromtimestamp(float(created), tz=timezone.utc).isoformat()
                        if created is not None
                        else None
                    ),
                    excerpt=_excerpt(item.get("body")),
                )
            )
        results.sort(key=lambda result: -result.relevance_score)
        return results
