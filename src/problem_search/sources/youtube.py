"""
YouTube video search through the YouTube Data API v3.
"""

from __future__ import annotations

import os
from typing import Any

import httpx
import structlog

from ..models import YouTubeResult
from .base import ExternalSource

log = structlog.get_logger(__name__)


class YouTubeSource(ExternalSource[YouTubeResult]):
    """Search YouTube videos. Skipped when no API key is configured."""

    source = "youtube"
    base_url = "https://www.googleapis.com/youtube/v3/search"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        relevance_language: str = "de",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key or os.getenv("YOUTUBE_API_KEY")
        self.relevance_language = relevance_language

    def build_params(self, query: str, limit: int) -> dict[str, Any] | None:
        if not self.api_key:
            log.warning("youtube_api_key_missing", source=self.source)
            return None
        return {
            "part": "snippet",
            "q": query,
            "type": "video",
            "maxResults": limit,
            "order": "relevance",
            "key": self.api_key,
            "relevanceLanguage": self.relevance_language,
            "safeSearch": "none",
        }

    def parse_items(self, payload: Any) -> list[YouTubeResult]:
        if not isinstance(payload, dict) or not payload.get("items"):
            return []
        results: list[YouTubeResult] = []
        for item in payload["items"]:
            video_id = str(item["id"]["videoId"])
            snippet = item["snippet"]
            thumbnails = snippet.get("thumbnails") or {}
            medium = thumbnails.get("medium") or {}
            results.append(
                YouTubeResult(
                    video_id=video_id,
                    title=str(snippet["title"]),
                    link=f"https://www.youtube.com/watch?v={video_id}",
                    description=str(snippet.get("description", "")),
                    channel=str(snippet.get("channelTitle", "")),
                    channel_id=str(snippet.get("channelId", "")),
                    published_at=snippet.get("publishedAt"),
                    thumbnail=medium.get("url"),
                )
            )
        return results
