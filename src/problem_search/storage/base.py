"""
Storage interfaces and data models for problem persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class SolutionRecord:
    """A solution attached to a problem."""

    id: str
    problem_id: str
    description: str
    source: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "problem_id": self.problem_id,
            "description": self.description,
            "source": self.source,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class ProblemRecord:
    """A stored problem, optionally with its solutions."""

    id: str
    title: str
    description: str
    tags: tuple[str, ...]
    created_at: str
    updated_at: str
    solutions: tuple[SolutionRecord, ...] = field(default=())

    @property
    def embedding_text(self) -> str:
        return f"{self.title} {self.description}"

    def to_dict(self, *, include_solutions: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if include_solutions:
            payload["solutions"] = [sol.to_dict() for sol in self.solutions]
        return payload


@dataclass(frozen=True)
class EmbeddingRow:
    """A stored vector as returned by the store, before parsing."""

    problem_id: str
    vector: Any
    model_name: str


class StorageBackend(Protocol):
    """Protocol for persistence operations used by the problem service."""

    def initialize(self) -> None:
        """Initialize required tables/indexes."""

    def insert_problem(
        self, *, title: str, description: str, tags: list[str]
    ) -> ProblemRecord:
        """Insert a problem and return the stored record."""

    def update_problem(
        self,
        problem_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> ProblemRecord | None:
        """Update the given fields; return None when the problem does not exist."""

    def get_problem(
        self, problem_id: str, *, with_solutions: bool = False
    ) -> ProblemRecord | None:
        """Get a problem by id."""

    def get_problems_by_ids(self, problem_ids: list[str]) -> list[ProblemRecord]:
        """Get problems with their solutions, in no particular order."""

    def list_problems(self, *, limit: int = 50, offset: int = 0) -> list[ProblemRecord]:
        """List problems, newest first."""

    def delete_problem(self, problem_id: str) -> bool:
        """Delete a problem with its solutions and embedding."""

    def add_solution(
        self, *, problem_id: str, description: str, source: str | None = None
    ) -> SolutionRecord:
        """Attach a solution to a problem."""

    def list_solutions(self, problem_id: str) -> list[SolutionRecord]:
        """List solutions for a problem, oldest first."""

    def upsert_embedding(
        self, *, problem_id: str, vector: list[float], model_name: str
    ) -> None:
        """Replace the embedding stored for a problem."""

    def list_embeddings(self) -> list[EmbeddingRow]:
        """Bulk-read every stored vector."""

    def delete_all_embeddings(self) -> int:
        """Delete every stored vector; return how many were removed."""

    def count_embeddings(self) -> int:
        """Count stored vectors."""
