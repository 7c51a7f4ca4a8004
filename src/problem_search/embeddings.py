"""
Text embedding for semantic problem search.

``EmbeddingEncoder`` turns text into a fixed-length, L2-normalized vector.
The model backend is loaded lazily through a single shared load task, so
concurrent first callers wait on one load instead of starting their own.

Two backends are available:

- ``SentenceTransformerBackend``: local all-MiniLM-L6-v2 (384 dimensions).
- ``GenAIBackend``: the Google GenAI embedding API with a 384-dimension output.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Sequence
from functools import partial
from typing import Any, Protocol

import numpy as np
import structlog

from .config import (
    EMBEDDING_DIM,
    EMBEDDING_MAX_TOKENS,
    EMBEDDING_MODEL,
    EMBEDDING_MODEL_SOURCE,
)
from .errors import EmptyInputError, EncodingError
from .storage.vectors import fit_dimension

log = structlog.get_logger(__name__)

_DEFAULT_GENAI_MODEL = "gemini-embedding-001"

QUERY_TASK = "RETRIEVAL_QUERY"
DOCUMENT_TASK = "RETRIEVAL_DOCUMENT"


class TextModelBackend(Protocol):
    """Opaque model capability used by the encoder."""

    name: str

    def infer(self, text: str, *, task_type: str = QUERY_TASK) -> Any:
        """Return a raw numeric array for *text* (pooled or per-token).

        *task_type* tells query and document embeddings apart; symmetric
        models ignore it.
        """


class SentenceTransformerBackend:
    """Local sentence-transformers model returning per-token embeddings."""

    def __init__(
        self,
        model_name: str = EMBEDDING_MODEL_SOURCE,
        *,
        device: str | None = None,
    ) -> None:
        # Import here to avoid loading torch at module import time
        from sentence_transformers import SentenceTransformer

        self.name = model_name
        self._model = SentenceTransformer(model_name, device=device)

    def infer(self, text: str, *, task_type: str = QUERY_TASK) -> np.ndarray:
        output = self._model.encode(text, output_value="token_embeddings")
        if hasattr(output, "detach"):
            output = output.detach().cpu().numpy()
        return np.asarray(output, dtype=np.float32)


class GenAIBackend:
    """Google GenAI embeddings truncated server-side to the index dimension."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int = EMBEDDING_DIM,
        task_type: str = QUERY_TASK,
        client: Any | None = None,
    ) -> None:
        self.name = model or os.getenv(
            "PROBLEM_SEARCH_GENAI_EMBEDDING_MODEL", _DEFAULT_GENAI_MODEL
        )
        self.dim = dim
        self.task_type = task_type

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            from google.genai import Client as GenAIClient

            self._client = GenAIClient(api_key=resolved_key)

    def infer(self, text: str, *, task_type: str | None = None) -> list[float]:
        result = self._client.models.embed_content(
            model=self.name,
            contents=[text],
            config={
                "task_type": task_type or self.task_type,
                "output_dimensionality": self.dim,
            },
        )
        return list(result.embeddings[0].values)


def create_backend(name: str | None = None) -> TextModelBackend:
    """Build the backend selected by *name* or ``PROBLEM_SEARCH_EMBEDDING_BACKEND``."""
    selected = (name or os.getenv("PROBLEM_SEARCH_EMBEDDING_BACKEND", "local")).lower()
    if selected == "local":
        return SentenceTransformerBackend()
    if selected == "genai":
        return GenAIBackend()
    raise ValueError(f"Unknown embedding backend: {selected!r}")


class EmbeddingEncoder:
    """Generate unit-length embeddings of a fixed dimension."""

    def __init__(
        self,
        backend_factory: Callable[[], TextModelBackend] | None = None,
        *,
        dim: int = EMBEDDING_DIM,
    ) -> None:
        self.dim = dim
        self.repairs = 0
        self._backend_factory = backend_factory or create_backend
        self._backend: TextModelBackend | None = None
        self._loading: asyncio.Task[TextModelBackend] | None = None

    @property
    def loaded(self) -> bool:
        return self._backend is not None

    async def initialize(self) -> TextModelBackend:
        """Load the backend once; concurrent callers share the same load."""
        if self._backend is not None:
            return self._backend

        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load())
        task = self._loading
        try:
            # Shield so one cancelled waiter does not abort the shared load.
            return await asyncio.shield(task)
        finally:
            if task.done() and self._loading is task and self._backend is None:
                # Failed load: let the next call try again.
                self._loading = None

    async def _load(self) -> TextModelBackend:
        log.info("embedding_model_loading", dim=self.dim)
        try:
            backend = await asyncio.to_thread(self._backend_factory)
        except Exception as exc:
            log.error("embedding_model_load_failed", error=str(exc))
            raise EncodingError(f"Failed to load embedding model: {exc}") from exc
        self._backend = backend
        log.info("embedding_model_loaded", model=getattr(backend, "name", None))
        return backend

    async def aclose(self) -> None:
        """Drop the loaded backend."""
        if self._loading is not None and not self._loading.done():
            await asyncio.gather(self._loading, return_exceptions=True)
        backend = self._backend
        self._backend = None
        self._loading = None
        close = getattr(backend, "close", None)
        if callable(close):
            close()

    async def embed(self, text: str, *, task_type: str = QUERY_TASK) -> list[float]:
        """Embed a single text into a unit-length vector of ``dim`` floats."""
        if not isinstance(text, str):
            raise EmptyInputError("Text must be a non-empty string.")
        cleaned = text.strip()
        if not cleaned:
            raise EmptyInputError("Text is empty after trimming whitespace.")

        backend = await self.initialize()
        try:
            raw = await asyncio.to_thread(backend.infer, cleaned, task_type=task_type)
        except Exception as exc:
            log.error("embedding_inference_failed", error=str(exc))
            raise EncodingError(f"Embedding inference failed: {exc}") from exc
        return self._postprocess(raw)

    async def embed_document(self, text: str) -> list[float]:
        """Embed text that will be stored and searched against."""
        return await self.embed(text, task_type=DOCUMENT_TASK)

    async def embed_many(
        self, texts: Sequence[str], *, task_type: str = QUERY_TASK
    ) -> list[list[float]]:
        """Embed texts one after another, preserving order."""
        embeddings: list[list[float]] = []
        for text in texts:
            embeddings.append(await self.embed(text, task_type=task_type))
        return embeddings

    async def preload(self) -> bool:
        """Warm up the model; failures are logged, not raised."""
        try:
            await self.initialize()
        except EncodingError as exc:
            log.warning("embedding_model_preload_failed", error=str(exc))
            return False
        return True

    def model_info(self) -> dict[str, Any]:
        return {
            "name": EMBEDDING_MODEL,
            "source": EMBEDDING_MODEL_SOURCE,
            "dimensions": self.dim,
            "max_tokens": EMBEDDING_MAX_TOKENS,
            "backend": getattr(self._backend, "name", None),
            "loaded": self.loaded,
            "dimension_repairs": self.repairs,
        }

    def _postprocess(self, raw: Any) -> list[float]:
        try:
            array = np.asarray(raw, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Model returned non-numeric output: {exc}") from exc

        if array.ndim == 2:
            # Mean pooling over token representations.
            if array.shape[0] == 0:
                raise EncodingError("Model returned no token embeddings.")
            array = array.mean(axis=0)
        elif array.ndim != 1:
            raise EncodingError(f"Unexpected model output shape: {array.shape}")
        if not np.all(np.isfinite(array)):
            raise EncodingError("Model returned non-finite values.")

        vector, repaired = fit_dimension(array.tolist(), self.dim)
        if repaired:
            self.repairs += 1
            log.warning(
                "embedding_dimension_repaired",
                actual=int(array.shape[0]),
                expected=self.dim,
                degraded=True,
            )

        values = np.asarray(vector, dtype=np.float64)
        norm = float(np.linalg.norm(values))
        if norm == 0.0:
            log.warning("embedding_zero_vector", dim=self.dim, degraded=True)
            return values.tolist()
        return (values / norm).tolist()


_ENCODER: EmbeddingEncoder | None = None


def get_encoder(backend: str | None = None) -> EmbeddingEncoder:
    """Return the process-wide encoder, creating it on first use.

    *backend* only applies when the encoder is created.
    """
    global _ENCODER
    if _ENCODER is None:
        _ENCODER = EmbeddingEncoder(partial(create_backend, backend))
    return _ENCODER


def reset_encoder(encoder: EmbeddingEncoder | None = None) -> None:
    """Replace (or clear) the process-wide encoder."""
    global _ENCODER
    _ENCODER = encoder
