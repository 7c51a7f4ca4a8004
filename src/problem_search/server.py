"""
FastAPI server for the IT-problem knowledge base.

Provides CRUD endpoints for problems and solutions, semantic search over the
stored problems, and a combined search that also queries Stack Overflow and
YouTube.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import (
    DEFAULT_INTERNAL_LIMIT,
    DEFAULT_LIMIT,
    DEFAULT_STACKOVERFLOW_LIMIT,
    DEFAULT_THRESHOLD,
    DEFAULT_YOUTUBE_LIMIT,
    SearchSettings,
)
from .embeddings import get_encoder
from .errors import EmptyInputError, EncodingError, ProblemNotFoundError
from .logging_config import setup_logging
from .search import FusionWeights
from .service import ProblemChange, ProblemService
from .sources import StackOverflowSource, YouTubeSource
from .storage import DuckDBStorage

log = structlog.get_logger(__name__)

_SERVICE: ProblemService | None = None


def get_service() -> ProblemService:
    """Return the process-wide service, building it from the environment."""
    global _SERVICE
    if _SERVICE is None:
        settings = SearchSettings.from_env()
        _SERVICE = ProblemService(
            DuckDBStorage(settings.db_path),
            get_encoder(settings.embedding_backend),
            stackoverflow=StackOverflowSource(
                api_key=settings.stackoverflow_key, timeout=settings.source_timeout
            ),
            youtube=YouTubeSource(
                api_key=settings.youtube_api_key, timeout=settings.source_timeout
            ),
            weights=FusionWeights.from_settings(settings),
        )
    return _SERVICE


def reset_service(service: ProblemService | None = None) -> None:
    global _SERVICE
    _SERVICE = service


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = SearchSettings.from_env()
    setup_logging(settings.log_level, json_logs=settings.log_json)
    service = get_service()
    if settings.preload_model:
        await service.encoder.preload()
    yield
    await service.encoder.aclose()


app = FastAPI(
    title="problem-search",
    description="IT problem knowledge base with semantic search",
    lifespan=lifespan,
)


class ProblemCreate(BaseModel):
    """Request model for problem creation."""

    title: str
    description: str
    tags: list[str] = Field(default_factory=list)


class ProblemUpdate(BaseModel):
    """Request model for partial problem updates."""

    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    regenerate_embedding: bool = True


class SolutionCreate(BaseModel):
    """Request model for attaching a solution."""

    description: str
    source: str | None = None


class SearchRequest(BaseModel):
    """Request model for semantic search."""

    query: str
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=100)
    threshold: float = Field(default=DEFAULT_THRESHOLD, ge=-1.0, le=1.0)


class CombinedSearchRequest(BaseModel):
    """Request model for search across all sources."""

    query: str
    internal_limit: int = Field(default=DEFAULT_INTERNAL_LIMIT, ge=0, le=50)
    stackoverflow_limit: int = Field(default=DEFAULT_STACKOVERFLOW_LIMIT, ge=0, le=50)
    youtube_limit: int = Field(default=DEFAULT_YOUTUBE_LIMIT, ge=0, le=50)
    threshold: float = Field(default=DEFAULT_THRESHOLD, ge=-1.0, le=1.0)


def _error_response(exc: Exception) -> JSONResponse:
    if isinstance(exc, ProblemNotFoundError):
        return JSONResponse({"error": str(exc)}, status_code=404)
    if isinstance(exc, (EmptyInputError, ValueError)):
        return JSONResponse({"error": str(exc)}, status_code=400)
    if isinstance(exc, EncodingError):
        return JSONResponse({"error": str(exc)}, status_code=503)
    log.exception("request_failed", error=str(exc))
    return JSONResponse({"error": str(exc)}, status_code=500)


def _change_payload(change: ProblemChange, flag: str) -> dict:
    payload = change.problem.to_dict()
    if change.embedding_written is not None:
        payload[flag] = change.embedding_written
    return payload


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


@app.get("/api/model")
async def model_info():
    """Describe the embedding model and how many vectors are stored."""
    try:
        return get_service().model_info()
    except Exception as exc:
        return _error_response(exc)


@app.post("/api/problems", status_code=201)
async def create_problem(request: ProblemCreate):
    """Create a problem and embed it."""
    try:
        change = await get_service().add_problem(
            title=request.title, description=request.description, tags=request.tags
        )
        return _change_payload(change, "embedding_created")
    except Exception as exc:
        return _error_response(exc)


@app.get("/api/problems")
async def list_problems(limit: int = 50, offset: int = 0):
    """List problems, newest first."""
    try:
        problems = get_service().list_problems(limit=limit, offset=offset)
        return {
            "count": len(problems),
            "limit": limit,
            "offset": offset,
            "problems": [problem.to_dict() for problem in problems],
        }
    except Exception as exc:
        return _error_response(exc)


@app.get("/api/problems/{problem_id}")
async def get_problem(problem_id: str):
    """Get a problem with all its solutions."""
    try:
        return get_service().get_problem(problem_id).to_dict(include_solutions=True)
    except Exception as exc:
        return _error_response(exc)


@app.put("/api/problems/{problem_id}")
async def update_problem(problem_id: str, request: ProblemUpdate):
    """Update a problem; its embedding is regenerated when the text changes."""
    try:
        change = await get_service().update_problem(
            problem_id,
            title=request.title,
            description=request.description,
            tags=request.tags,
            regenerate_embedding=request.regenerate_embedding,
        )
        return _change_payload(change, "embedding_updated")
    except Exception as exc:
        return _error_response(exc)


@app.delete("/api/problems/{problem_id}")
async def delete_problem(problem_id: str):
    """Delete a problem together with its solutions and embedding."""
    try:
        get_service().delete_problem(problem_id)
        return {"deleted": True, "id": problem_id}
    except Exception as exc:
        return _error_response(exc)


@app.post("/api/problems/{problem_id}/embedding")
async def refresh_embedding(problem_id: str):
    """Regenerate the embedding of one problem."""
    try:
        problem = await get_service().update_embedding(problem_id)
        return {"id": problem.id, "embedding_updated": True}
    except Exception as exc:
        return _error_response(exc)


@app.post("/api/problems/{problem_id}/solutions", status_code=201)
async def create_solution(problem_id: str, request: SolutionCreate):
    """Attach a solution to a problem."""
    try:
        solution = get_service().add_solution(
            problem_id, description=request.description, source=request.source
        )
        return solution.to_dict()
    except Exception as exc:
        return _error_response(exc)


@app.get("/api/problems/{problem_id}/solutions")
async def list_solutions(problem_id: str):
    """List the solutions of a problem, oldest first."""
    try:
        solutions = get_service().get_solutions(problem_id)
        return {
            "problem_id": problem_id,
            "count": len(solutions),
            "solutions": [solution.to_dict() for solution in solutions],
        }
    except Exception as exc:
        return _error_response(exc)


@app.post("/api/search")
async def semantic_search(request: SearchRequest):
    """Rank stored problems by similarity to the query."""
    try:
        results = await get_service().semantic_search(
            request.query, limit=request.limit, threshold=request.threshold
        )
        return {
            "query": request.query,
            "count": len(results),
            "results": [result.to_dict() for result in results],
        }
    except Exception as exc:
        return _error_response(exc)


@app.post("/api/search/all")
async def combined_search(request: CombinedSearchRequest):
    """Search the knowledge base, Stack Overflow and YouTube together."""
    try:
        aggregated = await get_service().search_all_sources(
            request.query,
            internal_limit=request.internal_limit,
            stackoverflow_limit=request.stackoverflow_limit,
            youtube_limit=request.youtube_limit,
            threshold=request.threshold,
        )
        return aggregated.to_dict()
    except Exception as exc:
        return _error_response(exc)


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
