"""Semantic search, ranking and multi-source aggregation."""

from .aggregator import extract_all_links, search_all_sources
from .ranker import FusionWeights, fuse_results, fused_score, rank
from .semantic import SemanticSearchEngine
from .similarity import cosine_similarity, score_vectors

__all__ = [
    "extract_all_links",
    "search_all_sources",
    "FusionWeights",
    "fuse_results",
    "fused_score",
    "rank",
    "SemanticSearchEngine",
    "cosine_similarity",
    "score_vectors",
]
