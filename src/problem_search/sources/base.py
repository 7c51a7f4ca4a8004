"""
Shared HTTP plumbing for external search providers.

Adapters never raise past ``search``: every transport or payload failure is
classified, logged and turned into an empty result list.
"""

from __future__ import annotations

import os
from typing import Any, ClassVar, Generic, TypeVar

import httpx
import structlog

from ..config import DEFAULT_SOURCE_TIMEOUT
from ..models import SourceTag

log = structlog.get_logger(__name__)

ResultT = TypeVar("ResultT")


class ExternalSource(Generic[ResultT]):
    """Base class for a stateless query-to-results adapter."""

    source: ClassVar[SourceTag]
    base_url: ClassVar[str]

    def __init__(
        self,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = (
            timeout
            if timeout is not None
            else float(
                os.getenv("PROBLEM_SEARCH_SOURCE_TIMEOUT", str(DEFAULT_SOURCE_TIMEOUT))
            )
        )
        self._transport = transport

    async def search(self, query: str, limit: int = 5) -> list[ResultT]:
        """Return normalized results for *query*; ``[]`` on any failure."""
        if not isinstance(query, str) or not query.strip() or limit <= 0:
            return []
        source_log = log.bind(source=self.source, query=query, limit=limit)
        params = self.build_params(query.strip(), limit)
        if params is None:
            return []

        try:
            payload = await self._get_json(params)
            results = self.parse_items(payload)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            source_log.warning(
                "source_request_failed",
                failure=self.classify_status(status),
                status_code=status,
            )
            return []
        except httpx.TimeoutException as exc:
            source_log.warning("source_request_failed", failure="timeout", error=str(exc))
            return []
        except httpx.RequestError as exc:
            source_log.warning("source_request_failed", failure="network", error=str(exc))
            return []
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            source_log.warning(
                "source_request_failed", failure="invalid_payload", error=str(exc)
            )
            return []
        except Exception as exc:
            source_log.exception("source_request_failed", failure="unexpected", error=str(exc))
            return []

        source_log.info("source_search_completed", results=len(results))
        return results[:limit]

    async def _get_json(self, params: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Accept-Encoding": "gzip"},
        ) as client:
            response = await client.get(self.base_url, params=params)
            response.raise_for_status()
            return response.json()

    @staticmethod
    def classify_status(status_code: int) -> str:
        if status_code == 429:
            return "rate_limited"
        if status_code == 403:
            return "quota_exceeded"
        if status_code >= 500:
            return "server_error"
        return "http_error"

    def build_params(self, query: str, limit: int) -> dict[str, Any] | None:
        """Return request parameters, or None to skip the request."""
        raise NotImplementedError

    def parse_items(self, payload: Any) -> list[ResultT]:
        """Map the provider payload to normalized results."""
        raise NotImplementedError
