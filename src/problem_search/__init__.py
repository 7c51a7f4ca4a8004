"""
problem-search - semantic search over a knowledge base of IT problems.

Problems and their solutions are stored in DuckDB together with one
384-dimension embedding per problem. Queries are embedded with
all-MiniLM-L6-v2, ranked by cosine similarity, and can be fused with
Stack Overflow and YouTube results into one ranking.

Example usage:
    >>> from problem_search import DuckDBStorage, EmbeddingEncoder, ProblemService
    >>> service = ProblemService(DuckDBStorage("problems.duckdb"), EmbeddingEncoder())
    >>> results = await service.semantic_search("printer offline after update")
"""

from .embeddings import (
    EmbeddingEncoder,
    GenAIBackend,
    SentenceTransformerBackend,
    get_encoder,
    reset_encoder,
)
from .errors import (
    DimensionMismatchError,
    EmptyInputError,
    EncodingError,
    ProblemNotFoundError,
    ProblemSearchError,
    SourceUnavailable,
    VectorParseError,
)
from .models import (
    AggregatedResult,
    FusedResult,
    InternalResult,
    RankedCandidate,
    SearchResult,
    StackOverflowResult,
    YouTubeResult,
)
from .search import (
    FusionWeights,
    SemanticSearchEngine,
    cosine_similarity,
    extract_all_links,
    fuse_results,
    rank,
    search_all_sources,
)
from .service import ProblemChange, ProblemService, ReembedReport
from .storage import DuckDBStorage, parse_vector

__all__ = [
    # Encoder
    "EmbeddingEncoder",
    "GenAIBackend",
    "SentenceTransformerBackend",
    "get_encoder",
    "reset_encoder",
    # Errors
    "DimensionMismatchError",
    "EmptyInputError",
    "EncodingError",
    "ProblemNotFoundError",
    "ProblemSearchError",
    "SourceUnavailable",
    "VectorParseError",
    # Models
    "AggregatedResult",
    "FusedResult",
    "InternalResult",
    "RankedCandidate",
    "SearchResult",
    "StackOverflowResult",
    "YouTubeResult",
    # Search
    "FusionWeights",
    "SemanticSearchEngine",
    "cosine_similarity",
    "extract_all_links",
    "fuse_results",
    "rank",
    "search_all_sources",
    # Service
    "ProblemChange",
    "ProblemService",
    "ReembedReport",
    # Storage
    "DuckDBStorage",
    "parse_vector",
]
