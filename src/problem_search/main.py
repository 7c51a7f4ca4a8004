import asyncio
import json
from functools import partial
from typing import Annotated

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer, echo

from .config import (
    DEFAULT_INTERNAL_LIMIT,
    DEFAULT_LIMIT,
    DEFAULT_STACKOVERFLOW_LIMIT,
    DEFAULT_THRESHOLD,
    DEFAULT_YOUTUBE_LIMIT,
    SearchSettings,
)
from .embeddings import EmbeddingEncoder, create_backend
from .errors import ProblemSearchError
from .logging_config import setup_logging
from .search import FusionWeights
from .service import ProblemService
from .sources import StackOverflowSource, YouTubeSource
from .storage import DuckDBStorage

app = Typer(help="IT problem knowledge base with semantic search.")
console = Console()

DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="DuckDB file (defaults to PROBLEM_SEARCH_DB_PATH)."),
]


def build_service(db_path: str | None = None) -> ProblemService:
    settings = SearchSettings.from_env(db_path=db_path)
    setup_logging(settings.log_level, json_logs=settings.log_json)
    return ProblemService(
        DuckDBStorage(settings.db_path),
        EmbeddingEncoder(partial(create_backend, settings.embedding_backend)),
        stackoverflow=StackOverflowSource(
            api_key=settings.stackoverflow_key, timeout=settings.source_timeout
        ),
        youtube=YouTubeSource(
            api_key=settings.youtube_api_key, timeout=settings.source_timeout
        ),
        weights=FusionWeights.from_settings(settings),
    )


def _fail(exc: Exception) -> None:
    console.print(f"[bold red]Error:[/] {exc}")
    raise Exit(code=1)


@app.command()
def add(
    title: Annotated[str, Option("--title", "-t", help="Problem title.")],
    description: Annotated[str, Option("--description", "-d", help="Problem description.")],
    tag: Annotated[list[str] | None, Option("--tag", help="Tag (repeatable).")] = None,
    db_path: DbPathOption = None,
) -> None:
    """Store a new problem and embed it."""
    service = build_service(db_path)
    try:
        change = asyncio.run(
            service.add_problem(title=title, description=description, tags=tag or [])
        )
    except (ProblemSearchError, ValueError) as exc:
        _fail(exc)
    console.print(
        Panel(
            f"[bold]{change.problem.title}[/]\nid: {change.problem.id}\n"
            f"embedding created: {change.embedding_written}",
            title="Problem stored",
            title_align="left",
            border_style="bold green",
        )
    )


@app.command("list")
def list_problems(
    limit: Annotated[int, Option("--limit", "-n")] = 50,
    offset: Annotated[int, Option("--offset")] = 0,
    db_path: DbPathOption = None,
) -> None:
    """List stored problems, newest first."""
    service = build_service(db_path)
    problems = service.list_problems(limit=limit, offset=offset)
    table = Table(title=f"{len(problems)} problems")
    table.add_column("id")
    table.add_column("title")
    table.add_column("tags")
    for problem in problems:
        table.add_row(problem.id, problem.title, ", ".join(problem.tags))
    console.print(table)


@app.command()
def search(
    query: Annotated[str, Argument(help="Search query.")],
    limit: Annotated[int, Option("--limit", "-n")] = DEFAULT_LIMIT,
    threshold: Annotated[float, Option("--threshold")] = DEFAULT_THRESHOLD,
    as_json: Annotated[bool, Option("--json", help="Print raw JSON.")] = False,
    db_path: DbPathOption = None,
) -> None:
    """Semantic search over stored problems."""
    service = build_service(db_path)
    try:
        results = asyncio.run(
            service.semantic_search(query, limit=limit, threshold=threshold)
        )
    except (ProblemSearchError, ValueError) as exc:
        _fail(exc)

    if as_json:
        echo(json.dumps([result.to_dict() for result in results]))
        return
    if not results:
        console.print("[yellow]No problems above the similarity threshold.[/]")
        return
    table = Table(title=f"Results for {query!r}")
    table.add_column("similarity", justify="right")
    table.add_column("title")
    table.add_column("solutions", justify="right")
    for result in results:
        table.add_row(f"{result.similarity:.3f}", result.title, str(len(result.solutions)))
    console.print(table)


@app.command("search-all")
def search_all(
    query: Annotated[str, Argument(help="Search query.")],
    internal_limit: Annotated[int, Option("--internal-limit")] = DEFAULT_INTERNAL_LIMIT,
    stackoverflow_limit: Annotated[
        int, Option("--stackoverflow-limit")
    ] = DEFAULT_STACKOVERFLOW_LIMIT,
    youtube_limit: Annotated[int, Option("--youtube-limit")] = DEFAULT_YOUTUBE_LIMIT,
    threshold: Annotated[float, Option("--threshold")] = DEFAULT_THRESHOLD,
    as_json: Annotated[bool, Option("--json", help="Print raw JSON.")] = False,
    db_path: DbPathOption = None,
) -> None:
    """Search the knowledge base, Stack Overflow and YouTube together."""
    service = build_service(db_path)
    try:
        aggregated = asyncio.run(
            service.search_all_sources(
                query,
                internal_limit=internal_limit,
                stackoverflow_limit=stackoverflow_limit,
                youtube_limit=youtube_limit,
                threshold=threshold,
            )
        )
    except (ProblemSearchError, ValueError) as exc:
        _fail(exc)

    if as_json:
        echo(json.dumps(aggregated.to_dict()))
        return
    counts = ", ".join(
        f"{name}: {results.count}" for name, results in aggregated.sources.items()
    )
    table = Table(title=f"Top results for {query!r} ({counts})")
    table.add_column("rank score", justify="right")
    table.add_column("source")
    table.add_column("title")
    for item in aggregated.top_results:
        table.add_row(f"{item.rank_score:.1f}", item.source, item.result.title)
    console.print(table)


@app.command()
def reembed(
    keep_existing: Annotated[
        bool, Option("--keep-existing", help="Do not clear stored vectors first.")
    ] = False,
    db_path: DbPathOption = None,
) -> None:
    """Regenerate the embedding of every stored problem."""
    service = build_service(db_path)
    with console.status(status="Regenerating embeddings..."):
        report = asyncio.run(service.reembed_all(clear_existing=not keep_existing))
    console.print(
        f"[bold green]{report.succeeded}/{report.total}[/] embeddings regenerated, "
        f"[bold red]{report.failed}[/] failed."
    )
    for error in report.errors:
        console.print(f"  - {error['title']} ({error['problem_id']}): {error['error']}")
    if report.failed:
        raise Exit(code=1)


@app.command()
def serve(
    host: Annotated[str, Option("--host")] = "127.0.0.1",
    port: Annotated[int, Option("--port")] = 8000,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port)
