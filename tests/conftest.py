import hashlib
from pathlib import Path

import pytest

from problem_search.embeddings import EmbeddingEncoder
from problem_search.logging_config import setup_logging
from problem_search.storage import DuckDBStorage


class FakeBackend:
    """Deterministic text model: mapped vectors, else a hash-derived one."""

    name = "fake-backend"

    def __init__(self, vectors: dict[str, list[float]] | None = None) -> None:
        self.vectors = dict(vectors or {})
        self.calls: list[str] = []
        self.task_types: list[str] = []

    def infer(self, text: str, *, task_type: str = "RETRIEVAL_QUERY") -> list[float]:
        self.calls.append(text)
        self.task_types.append(task_type)
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        # 32 bytes * 12 = 384 components
        return [byte / 255 for byte in digest] * 12


@pytest.fixture()
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def make_encoder():
    def _make(vectors: dict[str, list[float]] | None = None) -> EmbeddingEncoder:
        backend = FakeBackend(vectors)
        return EmbeddingEncoder(lambda: backend)

    return _make


@pytest.fixture()
def encoder(fake_backend: FakeBackend) -> EmbeddingEncoder:
    return EmbeddingEncoder(lambda: fake_backend)


@pytest.fixture()
def storage(tmp_path: Path):
    store = DuckDBStorage(str(tmp_path / "problems.duckdb"))
    yield store
    store.close()


@pytest.fixture(autouse=True, scope="session")
def _quiet_logging() -> None:
    # Route structlog through stdlib on stderr so CLI stdout stays parseable.
    setup_logging("WARNING")
