"""
Problem service: CRUD over problems and solutions with embeddings kept in sync.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from .config import (
    DEFAULT_INTERNAL_LIMIT,
    DEFAULT_LIMIT,
    DEFAULT_STACKOVERFLOW_LIMIT,
    DEFAULT_THRESHOLD,
    DEFAULT_YOUTUBE_LIMIT,
    EMBEDDING_MODEL,
)
from .embeddings import EmbeddingEncoder
from .errors import EncodingError, ProblemNotFoundError
from .models import AggregatedResult, InternalResult
from .search import FusionWeights, SemanticSearchEngine, search_all_sources
from .sources import StackOverflowSource, YouTubeSource
from .storage import ProblemRecord, SolutionRecord, StorageBackend

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProblemChange:
    """A stored problem and whether its embedding was written.

    ``embedding_written`` is None when no embedding write was attempted.
    """

    problem: ProblemRecord
    embedding_written: bool | None = None


@dataclass(frozen=True)
class ReembedReport:
    """Summary output for a re-embedding run."""

    total: int
    succeeded: int
    failed: int
    errors: list[dict[str, str]] = field(default_factory=list)


class ProblemService:
    """Coordinate storage, the encoder and the search components."""

    def __init__(
        self,
        storage: StorageBackend,
        encoder: EmbeddingEncoder,
        *,
        stackoverflow: StackOverflowSource | None = None,
        youtube: YouTubeSource | None = None,
        weights: FusionWeights | None = None,
    ) -> None:
        self.storage = storage
        self.encoder = encoder
        self.stackoverflow = stackoverflow or StackOverflowSource()
        self.youtube = youtube or YouTubeSource()
        self.weights = weights or FusionWeights()
        self.engine = SemanticSearchEngine(storage, encoder)

    # ------------------------------------------------------------------
    # Problems
    # ------------------------------------------------------------------

    async def add_problem(
        self,
        *,
        title: str,
        description: str,
        tags: list[str] | None = None,
    ) -> ProblemChange:
        clean_title = (title or "").strip()
        clean_description = (description or "").strip()
        if not clean_title or not clean_description:
            raise ValueError("Title and description are required.")

        problem = self.storage.insert_problem(
            title=clean_title, description=clean_description, tags=list(tags or [])
        )
        log.info("problem_created", problem_id=problem.id)

        try:
            await self._write_embedding(problem)
        except EncodingError as exc:
            # The problem row stays; the embedding can be rebuilt later.
            log.warning("problem_embedding_failed", problem_id=problem.id, error=str(exc))
            return ProblemChange(problem=problem, embedding_written=False)
        return ProblemChange(problem=problem, embedding_written=True)

    async def update_problem(
        self,
        problem_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
        regenerate_embedding: bool = True,
    ) -> ProblemChange:
        clean_title = (title or "").strip() or None
        clean_description = (description or "").strip() or None
        if clean_title is None and clean_description is None and tags is None:
            raise ValueError("No fields to update.")

        previous = self.storage.get_problem(problem_id)
        if previous is None:
            raise ProblemNotFoundError(problem_id)

        problem = self.storage.update_problem(
            problem_id,
            title=clean_title,
            description=clean_description,
            tags=list(tags) if tags is not None else None,
        )
        if problem is None:
            raise ProblemNotFoundError(problem_id)
        log.info("problem_updated", problem_id=problem_id)

        if not regenerate_embedding or problem.embedding_text == previous.embedding_text:
            return ProblemChange(problem=problem)

        try:
            await self._write_embedding(problem)
        except EncodingError as exc:
            log.warning("problem_embedding_failed", problem_id=problem_id, error=str(exc))
            return ProblemChange(problem=problem, embedding_written=False)
        return ProblemChange(problem=problem, embedding_written=True)

    async def update_embedding(self, problem_id: str) -> ProblemRecord:
        """Regenerate the embedding of one problem."""
        problem = self.storage.get_problem(problem_id)
        if problem is None:
            raise ProblemNotFoundError(problem_id)
        await self._write_embedding(problem)
        return problem

    def get_problem(self, problem_id: str) -> ProblemRecord:
        problem = self.storage.get_problem(problem_id, with_solutions=True)
        if problem is None:
            raise ProblemNotFoundError(problem_id)
        return problem

    def list_problems(self, *, limit: int = 50, offset: int = 0) -> list[ProblemRecord]:
        return self.storage.list_problems(limit=limit, offset=offset)

    def delete_problem(self, problem_id: str) -> None:
        if not self.storage.delete_problem(problem_id):
            raise ProblemNotFoundError(problem_id)
        log.info("problem_deleted", problem_id=problem_id)

    # ------------------------------------------------------------------
    # Solutions
    # ------------------------------------------------------------------

    def add_solution(
        self,
        problem_id: str,
        *,
        description: str,
        source: str | None = None,
    ) -> SolutionRecord:
        clean_description = (description or "").strip()
        if not clean_description:
            raise ValueError("Solution description is required.")
        if self.storage.get_problem(problem_id) is None:
            raise ProblemNotFoundError(problem_id)
        solution = self.storage.add_solution(
            problem_id=problem_id, description=clean_description, source=source
        )
        log.info("solution_created", problem_id=problem_id, solution_id=solution.id)
        return solution

    def get_solutions(self, problem_id: str) -> list[SolutionRecord]:
        if self.storage.get_problem(problem_id) is None:
            raise ProblemNotFoundError(problem_id)
        return self.storage.list_solutions(problem_id)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def semantic_search(
        self,
        query: str,
        *,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[InternalResult]:
        return await self.engine.search(query, limit=limit, threshold=threshold)

    async def search_all_sources(
        self,
        query: str,
        *,
        internal_limit: int = DEFAULT_INTERNAL_LIMIT,
        stackoverflow_limit: int = DEFAULT_STACKOVERFLOW_LIMIT,
        youtube_limit: int = DEFAULT_YOUTUBE_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> AggregatedResult:
        async def internal_search(text: str, limit: int) -> list[InternalResult]:
            return await self.engine.search(text, limit=limit, threshold=threshold)

        return await search_all_sources(
            query,
            internal_search,
            internal_limit=internal_limit,
            stackoverflow_limit=stackoverflow_limit,
            youtube_limit=youtube_limit,
            stackoverflow=self.stackoverflow,
            youtube=self.youtube,
            weights=self.weights,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def reembed_all(self, *, clear_existing: bool = True) -> ReembedReport:
        """Regenerate every stored embedding with the current model."""
        problems: list[ProblemRecord] = []
        offset = 0
        while True:
            page = self.storage.list_problems(limit=500, offset=offset)
            if not page:
                break
            problems.extend(page)
            offset += len(page)

        if not problems:
            return ReembedReport(total=0, succeeded=0, failed=0)

        if clear_existing:
            removed = self.storage.delete_all_embeddings()
            log.info("embeddings_cleared", removed=removed)

        succeeded = 0
        errors: list[dict[str, str]] = []
        for position, problem in enumerate(problems, start=1):
            try:
                await self._write_embedding(problem)
            except EncodingError as exc:
                log.warning(
                    "reembed_failed",
                    problem_id=problem.id,
                    progress=f"{position}/{len(problems)}",
                    error=str(exc),
                )
                errors.append(
                    {"problem_id": problem.id, "title": problem.title, "error": str(exc)}
                )
                continue
            succeeded += 1

        log.info("reembed_completed", succeeded=succeeded, failed=len(errors))
        return ReembedReport(
            total=len(problems),
            succeeded=succeeded,
            failed=len(errors),
            errors=errors,
        )

    def model_info(self) -> dict[str, Any]:
        info = self.encoder.model_info()
        info["stored_embeddings"] = self.storage.count_embeddings()
        return info

    async def _write_embedding(self, problem: ProblemRecord) -> None:
        vector = await self.encoder.embed_document(problem.embedding_text)
        self.storage.upsert_embedding(
            problem_id=problem.id, vector=vector, model_name=EMBEDDING_MODEL
        )
        log.debug("problem_embedding_stored", problem_id=problem.id, dim=len(vector))
