"""
Vector-based semantic search over stored problems.

Embeds the query, scores it against every stored problem vector with cosine
similarity, keeps the candidates above the threshold and loads the matching
problems with their solutions.
"""

from __future__ import annotations

import math

import structlog

from ..config import DEFAULT_LIMIT, DEFAULT_THRESHOLD
from ..embeddings import EmbeddingEncoder
from ..errors import EmptyInputError, VectorParseError
from ..models import InternalResult, SolutionSummary
from ..storage import StorageBackend, fit_dimension, parse_vector
from .ranker import rank
from .similarity import cosine_similarity

log = structlog.get_logger(__name__)


class SemanticSearchEngine:
    """Embed a query and rank stored problem embeddings."""

    def __init__(
        self,
        storage: StorageBackend,
        encoder: EmbeddingEncoder,
    ) -> None:
        self.storage = storage
        self.encoder = encoder

    async def search(
        self,
        query: str,
        *,
        limit: int = DEFAULT_LIMIT,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[InternalResult]:
        """Return problems ranked by cosine similarity to *query*."""
        if not isinstance(query, str) or not query.strip():
            raise EmptyInputError("Query must be a non-empty string.")

        search_log = log.bind(query=query, limit=limit, threshold=threshold)
        query_embedding = await self.encoder.embed(query)

        rows = self.storage.list_embeddings()
        if not rows:
            search_log.info("semantic_search_no_embeddings")
            return []

        scored: list[tuple[str, float]] = []
        for row in rows:
            try:
                vector = parse_vector(row.vector)
            except VectorParseError as exc:
                search_log.warning(
                    "stored_vector_unparseable", problem_id=row.problem_id, error=str(exc)
                )
                continue
            vector, repaired = fit_dimension(vector, len(query_embedding))
            if repaired:
                search_log.warning(
                    "stored_vector_dimension_repaired",
                    problem_id=row.problem_id,
                    expected=len(query_embedding),
                )
            scored.append((row.problem_id, cosine_similarity(query_embedding, vector)))

        top_matches = rank(scored, threshold=threshold, limit=limit)
        if not top_matches:
            search_log.info("semantic_search_no_matches", candidates=len(scored))
            return []

        problems = {
            problem.id: problem
            for problem in self.storage.get_problems_by_ids(
                [match.subject_id for match in top_matches]
            )
        }

        results: list[InternalResult] = []
        for match in top_matches:
            problem = problems.get(match.subject_id)
            if problem is None:
                continue
            results.append(
                InternalResult(
                    problem_id=problem.id,
                    title=problem.title,
                    description=problem.description,
                    similarity=match.score,
                    # Half-up rounding.
                    relevance_score=math.floor(match.score * 100 + 0.5),
                    tags=problem.tags,
                    created_at=problem.created_at,
                    solutions=tuple(
                        SolutionSummary(
                            id=sol.id,
                            description=sol.description,
                            source=sol.source,
                            created_at=sol.created_at,
                        )
                        for sol in problem.solutions
                    ),
                )
            )

        search_log.info(
            "semantic_search_completed", candidates=len(scored), results=len(results)
        )
        return results
