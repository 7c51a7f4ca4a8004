"""Tests for the problem service."""

from __future__ import annotations

import pytest

from problem_search.embeddings import EmbeddingEncoder
from problem_search.errors import EmptyInputError, ProblemNotFoundError
from problem_search.search import FusionWeights
from problem_search.service import ProblemService


class _NoResults:
    async def search(self, query: str, limit: int = 5):
        return []


class _FlakyBackend:
    """Fails on texts containing a marker word."""

    name = "flaky"

    def __init__(self, marker: str = "explode") -> None:
        self.marker = marker

    def infer(self, text: str, *, task_type: str = "RETRIEVAL_QUERY") -> list[float]:
        if self.marker in text:
            raise RuntimeError("inference failed")
        return [1.0] * 384


def _service(storage, encoder) -> ProblemService:
    return ProblemService(
        storage,
        encoder,
        stackoverflow=_NoResults(),
        youtube=_NoResults(),
        weights=FusionWeights(),
    )


@pytest.mark.asyncio
async def test_add_problem_stores_embedding(storage, encoder, fake_backend) -> None:
    service = _service(storage, encoder)

    change = await service.add_problem(
        title="  Printer offline ", description="Shows offline after update", tags=["printer"]
    )

    assert change.embedding_written is True
    assert change.problem.title == "Printer offline"
    assert fake_backend.calls == ["Printer offline Shows offline after update"]
    rows = storage.list_embeddings()
    assert [row.problem_id for row in rows] == [change.problem.id]
    assert rows[0].model_name == "all-MiniLM-L6-v2"
    assert len(rows[0].vector) == 384


@pytest.mark.asyncio
async def test_stored_problems_use_document_task(storage, encoder, fake_backend) -> None:
    service = _service(storage, encoder)

    problem = (await service.add_problem(title="Printer", description="offline")).problem
    await service.update_problem(problem.id, description="offline again")
    await service.reembed_all()
    assert fake_backend.task_types == ["RETRIEVAL_DOCUMENT"] * 3

    await service.semantic_search("Printer offline")
    await service.search_all_sources("Printer offline")
    assert fake_backend.task_types[3:] == ["RETRIEVAL_QUERY"] * 2


@pytest.mark.asyncio
@pytest.mark.parametrize("title, description", [("", "d"), ("t", "   "), (None, "d")])
async def test_add_problem_requires_title_and_description(
    storage, encoder, title, description
) -> None:
    service = _service(storage, encoder)

    with pytest.raises(ValueError):
        await service.add_problem(title=title, description=description)
    assert storage.list_problems() == []


@pytest.mark.asyncio
async def test_add_problem_keeps_row_when_embedding_fails(storage) -> None:
    service = _service(storage, EmbeddingEncoder(lambda: _FlakyBackend()))

    change = await service.add_problem(title="explode", description="boom")

    assert change.embedding_written is False
    assert storage.get_problem(change.problem.id) is not None
    assert storage.count_embeddings() == 0


@pytest.mark.asyncio
async def test_update_problem_reembeds_when_text_changes(storage, encoder, fake_backend) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="VPN", description="Drops")).problem

    change = await service.update_problem(problem.id, description="Drops hourly")

    assert change.embedding_written is True
    assert change.problem.description == "Drops hourly"
    assert fake_backend.calls[-1] == "VPN Drops hourly"


@pytest.mark.asyncio
async def test_update_problem_tags_only_skips_embedding(storage, encoder, fake_backend) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="VPN", description="Drops")).problem
    calls_before = len(fake_backend.calls)

    change = await service.update_problem(problem.id, tags=["network"])

    assert change.embedding_written is None
    assert change.problem.tags == ("network",)
    assert len(fake_backend.calls) == calls_before


@pytest.mark.asyncio
async def test_update_problem_without_regeneration(storage, encoder, fake_backend) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="VPN", description="Drops")).problem
    calls_before = len(fake_backend.calls)

    change = await service.update_problem(
        problem.id, title="VPN client", regenerate_embedding=False
    )

    assert change.embedding_written is None
    assert change.problem.title == "VPN client"
    assert len(fake_backend.calls) == calls_before


@pytest.mark.asyncio
async def test_update_problem_validation(storage, encoder) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="VPN", description="Drops")).problem

    with pytest.raises(ValueError, match="No fields"):
        await service.update_problem(problem.id, title="   ")
    with pytest.raises(ProblemNotFoundError):
        await service.update_problem("missing", title="New")


@pytest.mark.asyncio
async def test_update_embedding(storage, encoder) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="Disk", description="Full")).problem
    storage.delete_all_embeddings()

    refreshed = await service.update_embedding(problem.id)

    assert refreshed.id == problem.id
    assert storage.count_embeddings() == 1
    with pytest.raises(ProblemNotFoundError):
        await service.update_embedding("missing")


@pytest.mark.asyncio
async def test_solutions_lifecycle(storage, encoder) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="Outlook", description="Crashes")).problem

    solution = service.add_solution(problem.id, description=" Start in safe mode ")

    assert solution.description == "Start in safe mode"
    assert [s.id for s in service.get_solutions(problem.id)] == [solution.id]
    assert len(service.get_problem(problem.id).solutions) == 1

    with pytest.raises(ValueError):
        service.add_solution(problem.id, description="  ")
    with pytest.raises(ProblemNotFoundError):
        service.add_solution("missing", description="fix")
    with pytest.raises(ProblemNotFoundError):
        service.get_solutions("missing")


@pytest.mark.asyncio
async def test_delete_problem(storage, encoder) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="WiFi", description="Slow")).problem
    service.add_solution(problem.id, description="Restart router")

    service.delete_problem(problem.id)

    assert service.list_problems() == []
    assert storage.count_embeddings() == 0
    with pytest.raises(ProblemNotFoundError):
        service.get_problem(problem.id)
    with pytest.raises(ProblemNotFoundError):
        service.delete_problem(problem.id)


@pytest.mark.asyncio
async def test_semantic_search_finds_stored_problem(storage, encoder) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="Printer", description="offline")).problem

    results = await service.semantic_search("Printer offline", threshold=0.99)

    assert [result.problem_id for result in results] == [problem.id]
    assert results[0].similarity == pytest.approx(1.0)
    with pytest.raises(EmptyInputError):
        await service.semantic_search("")


@pytest.mark.asyncio
async def test_search_all_sources_uses_internal_threshold(storage, encoder) -> None:
    service = _service(storage, encoder)
    problem = (await service.add_problem(title="Printer", description="offline")).problem
    await service.add_problem(title="Completely", description="different words")

    aggregated = await service.search_all_sources("Printer offline", threshold=0.99)

    assert [result.id for result in aggregated.internal.results] == [problem.id]
    assert aggregated.stackoverflow.count == 0
    assert aggregated.youtube.count == 0
    assert aggregated.top_results[0].rank_score == pytest.approx(200.0)


@pytest.mark.asyncio
async def test_reembed_all_rebuilds_every_vector(storage, encoder) -> None:
    service = _service(storage, encoder)
    for i in range(3):
        await service.add_problem(title=f"P{i}", description="d")
    storage.delete_all_embeddings()

    report = await service.reembed_all()

    assert (report.total, report.succeeded, report.failed) == (3, 3, 0)
    assert storage.count_embeddings() == 3


@pytest.mark.asyncio
async def test_reembed_all_reports_failures(storage) -> None:
    service = _service(storage, EmbeddingEncoder(lambda: _FlakyBackend()))
    await service.add_problem(title="fine", description="ok")
    bad = (await service.add_problem(title="explode", description="boom")).problem

    report = await service.reembed_all()

    assert (report.total, report.succeeded, report.failed) == (2, 1, 1)
    assert report.errors[0]["problem_id"] == bad.id
    assert report.errors[0]["title"] == "explode"
    assert storage.count_embeddings() == 1


@pytest.mark.asyncio
async def test_reembed_all_on_empty_store(storage, encoder) -> None:
    report = await _service(storage, encoder).reembed_all()
    assert report.total == 0


@pytest.mark.asyncio
async def test_model_info_counts_stored_vectors(storage, encoder) -> None:
    service = _service(storage, encoder)
    await service.add_problem(title="A", description="a")

    info = service.model_info()

    assert info["stored_embeddings"] == 1
    assert info["dimensions"] == 384
    assert info["loaded"] is True
