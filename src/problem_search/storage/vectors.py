"""
Conversion of stored vectors into plain float lists.

Stores hand vectors back either as native numeric arrays or as text such as
``"[0.1, 0.2, ...]"`` (pgvector's wire format). Everything is normalized here
so the similarity code only ever sees ``list[float]``.
"""

from __future__ import annotations

import json
import math
from collections.abc import Sequence
from typing import Any

import numpy as np

from ..errors import VectorParseError


def parse_vector(raw: Any) -> list[float]:
    """Parse a stored vector into a list of finite floats."""
    if raw is None:
        raise VectorParseError("Vector is missing.")

    values: Any
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        text = raw.strip()
        if not (text.startswith("[") and text.endswith("]")):
            raise VectorParseError(f"Malformed vector text: {_preview(text)}")
        try:
            values = json.loads(text)
        except json.JSONDecodeError as exc:
            raise VectorParseError(f"Malformed vector text: {_preview(text)}") from exc
    elif isinstance(raw, np.ndarray):
        if raw.ndim != 1:
            raise VectorParseError(f"Vector must be one-dimensional, got shape {raw.shape}")
        values = raw.tolist()
    elif isinstance(raw, Sequence):
        values = list(raw)
    else:
        raise VectorParseError(f"Unsupported vector type: {type(raw).__name__}")

    if not isinstance(values, list):
        raise VectorParseError("Vector text must encode a list.")

    parsed: list[float] = []
    for item in values:
        if isinstance(item, bool) or not isinstance(item, (int, float, np.number)):
            raise VectorParseError(f"Non-numeric vector component: {item!r}")
        value = float(item)
        if not math.isfinite(value):
            raise VectorParseError(f"Non-finite vector component: {item!r}")
        parsed.append(value)
    return parsed


def fit_dimension(vector: Sequence[float], dim: int) -> tuple[list[float], bool]:
    """Pad with zeros or truncate *vector* to *dim* components.

    Returns the fitted vector and whether a repair was needed.
    """
    if dim <= 0:
        raise ValueError(f"Dimension must be positive, got {dim}")
    length = len(vector)
    if length == dim:
        return list(vector), False
    if length < dim:
        return list(vector) + [0.0] * (dim - length), True
    return list(vector[:dim]), True


def _preview(text: str, max_chars: int = 40) -> str:
    if len(text) <= max_chars:
        return repr(text)
    return repr(text[:max_chars] + "...")
