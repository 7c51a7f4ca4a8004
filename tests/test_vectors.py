"""Tests for stored-vector parsing and dimension repair."""

from __future__ import annotations

import numpy as np
import pytest

from problem_search.errors import VectorParseError
from problem_search.storage import fit_dimension, parse_vector


def test_parse_vector_text() -> None:
    assert parse_vector("[0.1, -2, 3.5]") == [0.1, -2.0, 3.5]


def test_parse_vector_text_with_whitespace_and_bytes() -> None:
    assert parse_vector("  [1, 2]\n") == [1.0, 2.0]
    assert parse_vector(b"[1.5]") == [1.5]


def test_parse_vector_native_sequences() -> None:
    assert parse_vector([1, 2.5]) == [1.0, 2.5]
    assert parse_vector((0.25,)) == [0.25]
    assert parse_vector(np.array([1.0, 2.0], dtype=np.float32)) == [1.0, 2.0]


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "0.1, 0.2",
        "[0.1, 0.2",
        "[0.1, abc]",
        '["a", "b"]',
        "[true, 1]",
        "[NaN, 1]",
        "{}",
        42,
        np.zeros((2, 2)),
    ],
)
def test_parse_vector_rejects_malformed_input(raw) -> None:
    with pytest.raises(VectorParseError):
        parse_vector(raw)


def test_parse_vector_rejects_non_finite_components() -> None:
    with pytest.raises(VectorParseError):
        parse_vector([1.0, float("inf")])


def test_fit_dimension_pads_and_truncates() -> None:
    padded, repaired = fit_dimension([1.0, 2.0], 4)
    assert padded == [1.0, 2.0, 0.0, 0.0]
    assert repaired is True

    truncated, repaired = fit_dimension([1.0, 2.0, 3.0], 2)
    assert truncated == [1.0, 2.0]
    assert repaired is True

    same, repaired = fit_dimension([1.0, 2.0], 2)
    assert same == [1.0, 2.0]
    assert repaired is False


def test_fit_dimension_rejects_non_positive_dim() -> None:
    with pytest.raises(ValueError):
        fit_dimension([1.0], 0)
