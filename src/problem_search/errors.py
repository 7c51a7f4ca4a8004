"""
Exception types raised by the search core and the problem service.
"""

from __future__ import annotations


class ProblemSearchError(Exception):
    """Base class for problem-search errors."""


class EmptyInputError(ProblemSearchError, ValueError):
    """Text was empty after trimming whitespace."""


class EncodingError(ProblemSearchError):
    """The embedding model failed to load or to produce output."""


class DimensionMismatchError(ProblemSearchError, ValueError):
    """Two vectors of unequal length were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vectors must have equal length, got {left} and {right}.")
        self.left = left
        self.right = right


class VectorParseError(ProblemSearchError, ValueError):
    """A stored vector could not be converted to a list of floats."""


class SourceUnavailable(ProblemSearchError):
    """A search source failed; the aggregator degrades it to an empty result."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Source {source!r} unavailable: {reason}")
        self.source = source
        self.reason = reason


class ProblemNotFoundError(ProblemSearchError, LookupError):
    """No problem exists with the requested id."""

    def __init__(self, problem_id: str) -> None:
        super().__init__(f"Problem not found: {problem_id}")
        self.problem_id = problem_id
