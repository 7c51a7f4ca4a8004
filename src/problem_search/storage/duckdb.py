"""
DuckDB storage backend for problems, solutions and embeddings.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import duckdb

from .base import EmbeddingRow, ProblemRecord, SolutionRecord


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DuckDBStorage:
    """DuckDB-backed persistence for problems, solutions, and their vectors.

    Deletes cascade in code: DuckDB foreign keys do not support ON DELETE
    CASCADE, so the child tables carry no FK constraints.
    """

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        if db_path == ":memory:":
            self.db_path = db_path
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        self._conn.execute("CREATE SEQUENCE IF NOT EXISTS problem_seq START 1;")
        self._conn.execute("CREATE SEQUENCE IF NOT EXISTS solution_seq START 1;")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS problems (
                id VARCHAR PRIMARY KEY,
                seq BIGINT NOT NULL DEFAULT nextval('problem_seq'),
                title VARCHAR NOT NULL CHECK (length(title) > 0),
                description VARCHAR NOT NULL CHECK (length(description) > 0),
                tags_json VARCHAR NOT NULL DEFAULT '[]',
                created_at VARCHAR NOT NULL,
                updated_at VARCHAR NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS solutions (
                id VARCHAR PRIMARY KEY,
                seq BIGINT NOT NULL DEFAULT nextval('solution_seq'),
                problem_id VARCHAR NOT NULL,
                description VARCHAR NOT NULL CHECK (length(description) > 0),
                source VARCHAR,
                created_at VARCHAR NOT NULL
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS embeddings (
                problem_id VARCHAR PRIMARY KEY,
                vector DOUBLE[] NOT NULL,
                model_name VARCHAR NOT NULL,
                created_at VARCHAR NOT NULL
            );
            """
        )

    # ------------------------------------------------------------------
    # Problems
    # ------------------------------------------------------------------

    def insert_problem(
        self, *, title: str, description: str, tags: list[str]
    ) -> ProblemRecord:
        problem_id = _new_id()
        timestamp = _now()
        self._conn.execute(
            """
            INSERT INTO problems (id, title, description, tags_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [problem_id, title, description, json.dumps(list(tags)), timestamp, timestamp],
        )
        record = self.get_problem(problem_id)
        if record is None:
            raise RuntimeError(f"Failed to insert problem: {title!r}")
        return record

    def update_problem(
        self,
        problem_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> ProblemRecord | None:
        if self.get_problem(problem_id) is None:
            return None

        assignments: list[str] = []
        params: list[Any] = []
        if title is not None:
            assignments.append("title = ?")
            params.append(title)
        if description is not None:
            assignments.append("description = ?")
            params.append(description)
        if tags is not None:
            assignments.append("tags_json = ?")
            params.append(json.dumps(list(tags)))
        assignments.append("updated_at = ?")
        params.append(_now())
        params.append(problem_id)

        self._conn.execute(
            f"UPDATE problems SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        return self.get_problem(problem_id)

    def get_problem(
        self, problem_id: str, *, with_solutions: bool = False
    ) -> ProblemRecord | None:
        row = self._conn.execute(
            """
            SELECT id, title, description, tags_json, created_at, updated_at
            FROM problems
            WHERE id = ?
            LIMIT 1
            """,
            [problem_id],
        ).fetchone()
        if row is None:
            return None
        solutions = tuple(self.list_solutions(problem_id)) if with_solutions else ()
        return self._row_to_problem(row, solutions)

    def get_problems_by_ids(self, problem_ids: list[str]) -> list[ProblemRecord]:
        if not problem_ids:
            return []
        placeholders = ", ".join(["?"] * len(problem_ids))
        rows = self._conn.execute(
            f"""
            SELECT id, title, description, tags_json, created_at, updated_at
            FROM problems
            WHERE id IN ({placeholders})
            """,
            list(problem_ids),
        ).fetchall()
        solutions_by_problem = self._solutions_for(problem_ids)
        return [
            self._row_to_problem(row, tuple(solutions_by_problem.get(str(row[0]), [])))
            for row in rows
        ]

    def list_problems(self, *, limit: int = 50, offset: int = 0) -> list[ProblemRecord]:
        rows = self._conn.execute(
            """
            SELECT id, title, description, tags_json, created_at, updated_at
            FROM problems
            ORDER BY created_at DESC, seq DESC
            LIMIT ? OFFSET ?
            """,
            [max(limit, 0), max(offset, 0)],
        ).fetchall()
        return [self._row_to_problem(row, ()) for row in rows]

    def delete_problem(self, problem_id: str) -> bool:
        if self.get_problem(problem_id) is None:
            return False
        self._conn.execute("DELETE FROM embeddings WHERE problem_id = ?", [problem_id])
        self._conn.execute("DELETE FROM solutions WHERE problem_id = ?", [problem_id])
        self._conn.execute("DELETE FROM problems WHERE id = ?", [problem_id])
        return True

    # ------------------------------------------------------------------
    # Solutions
    # ------------------------------------------------------------------

    def add_solution(
        self, *, problem_id: str, description: str, source: str | None = None
    ) -> SolutionRecord:
        solution_id = _new_id()
        self._conn.execute(
            """
            INSERT INTO solutions (id, problem_id, description, source, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            [solution_id, problem_id, description, source, _now()],
        )
        row = self._conn.execute(
            """
            SELECT id, problem_id, description, source, created_at
            FROM solutions
            WHERE id = ?
            """,
            [solution_id],
        ).fetchone()
        if row is None:
            raise RuntimeError(f"Failed to insert solution for problem: {problem_id}")
        return self._row_to_solution(row)

    def list_solutions(self, problem_id: str) -> list[SolutionRecord]:
        rows = self._conn.execute(
            """
            SELECT id, problem_id, description, source, created_at
            FROM solutions
            WHERE problem_id = ?
            ORDER BY created_at ASC, seq ASC
            """,
            [problem_id],
        ).fetchall()
        return [self._row_to_solution(row) for row in rows]

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def upsert_embedding(
        self, *, problem_id: str, vector: list[float], model_name: str
    ) -> None:
        # Replace wholesale: list columns are not updated in place.
        self._conn.execute("DELETE FROM embeddings WHERE problem_id = ?", [problem_id])
        self._conn.execute(
            """
            INSERT INTO embeddings (problem_id, vector, model_name, created_at)
            VALUES (?, ?, ?, ?)
            """,
            [problem_id, [float(value) for value in vector], model_name, _now()],
        )

    def list_embeddings(self) -> list[EmbeddingRow]:
        rows = self._conn.execute(
            """
            SELECT e.problem_id, e.vector, e.model_name
            FROM embeddings e
            JOIN problems p ON p.id = e.problem_id
            ORDER BY p.seq ASC
            """
        ).fetchall()
        return [
            EmbeddingRow(problem_id=str(row[0]), vector=row[1], model_name=str(row[2]))
            for row in rows
        ]

    def delete_all_embeddings(self) -> int:
        count = self.count_embeddings()
        self._conn.execute("DELETE FROM embeddings")
        return count

    def count_embeddings(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) FROM embeddings").fetchone()
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    def _solutions_for(self, problem_ids: list[str]) -> dict[str, list[SolutionRecord]]:
        placeholders = ", ".join(["?"] * len(problem_ids))
        rows = self._conn.execute(
            f"""
            SELECT id, problem_id, description, source, created_at
            FROM solutions
            WHERE problem_id IN ({placeholders})
            ORDER BY created_at ASC, seq ASC
            """,
            list(problem_ids),
        ).fetchall()
        grouped: dict[str, list[SolutionRecord]] = {}
        for row in rows:
            solution = self._row_to_solution(row)
            grouped.setdefault(solution.problem_id, []).append(solution)
        return grouped

    @staticmethod
    def _row_to_problem(
        row: tuple[Any, ...], solutions: tuple[SolutionRecord, ...]
    ) -> ProblemRecord:
        return ProblemRecord(
            id=str(row[0]),
            title=str(row[1]),
            description=str(row[2]),
            tags=tuple(json.loads(str(row[3]))),
            created_at=str(row[4]),
            updated_at=str(row[5]),
            solutions=solutions,
        )

    @staticmethod
    def _row_to_solution(row: tuple[Any, ...]) -> SolutionRecord:
        return SolutionRecord(
            id=str(row[0]),
            problem_id=str(row[1]),
            description=str(row[2]),
            source=str(row[3]) if row[3] is not None else None,
            created_at=str(row[4]),
        )
