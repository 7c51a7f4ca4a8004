"""
Configuration helpers for storage, embeddings and search defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_DB_PATH = "~/.problem_search/problems.duckdb"
ENV_DB_PATH = "PROBLEM_SEARCH_DB_PATH"

EMBEDDING_DIM = 384
EMBEDDING_MODEL = "all-MiniLM-L6-v2"
EMBEDDING_MODEL_SOURCE = "sentence-transformers/all-MiniLM-L6-v2"
EMBEDDING_MAX_TOKENS = 256

DEFAULT_LIMIT = 5
DEFAULT_THRESHOLD = 0.1
DEFAULT_INTERNAL_LIMIT = 5
DEFAULT_STACKOVERFLOW_LIMIT = 3
DEFAULT_YOUTUBE_LIMIT = 2

DEFAULT_INTERNAL_BONUS = 100.0
DEFAULT_YOUTUBE_SCORE = 30.0
DEFAULT_TOP_N = 10
DEFAULT_SOURCE_TIMEOUT = 10.0


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) PROBLEM_SEARCH_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SearchSettings:
    """Runtime settings read from the environment."""

    db_path: str
    embedding_backend: str = "local"
    log_level: str = "INFO"
    log_json: bool = False
    preload_model: bool = False
    internal_bonus: float = DEFAULT_INTERNAL_BONUS
    youtube_score: float = DEFAULT_YOUTUBE_SCORE
    top_n: int = DEFAULT_TOP_N
    source_timeout: float = DEFAULT_SOURCE_TIMEOUT
    stackoverflow_key: str | None = None
    youtube_api_key: str | None = None

    @classmethod
    def from_env(cls, *, db_path: str | None = None) -> SearchSettings:
        return cls(
            db_path=resolve_db_path(db_path),
            embedding_backend=os.getenv("PROBLEM_SEARCH_EMBEDDING_BACKEND", "local"),
            log_level=os.getenv("PROBLEM_SEARCH_LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("PROBLEM_SEARCH_LOG_JSON", False),
            preload_model=_env_bool("PROBLEM_SEARCH_PRELOAD_MODEL", False),
            internal_bonus=_env_float(
                "PROBLEM_SEARCH_INTERNAL_BONUS", DEFAULT_INTERNAL_BONUS
            ),
            youtube_score=_env_float(
                "PROBLEM_SEARCH_YOUTUBE_SCORE", DEFAULT_YOUTUBE_SCORE
            ),
            top_n=_env_int("PROBLEM_SEARCH_TOP_N", DEFAULT_TOP_N),
            source_timeout=_env_float(
                "PROBLEM_SEARCH_SOURCE_TIMEOUT", DEFAULT_SOURCE_TIMEOUT
            ),
            stackoverflow_key=os.getenv("STACK_OVERFLOW_KEY") or None,
            youtube_api_key=os.getenv("YOUTUBE_API_KEY") or None,
        )
