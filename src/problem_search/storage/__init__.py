"""Storage backends for problem-search persistence."""

from .base import EmbeddingRow, ProblemRecord, SolutionRecord, StorageBackend
from .duckdb import DuckDBStorage
from .vectors import fit_dimension, parse_vector

__all__ = [
    "EmbeddingRow",
    "ProblemRecord",
    "SolutionRecord",
    "StorageBackend",
    "DuckDBStorage",
    "fit_dimension",
    "parse_vector",
]
