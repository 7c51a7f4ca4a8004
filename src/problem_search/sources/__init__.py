"""External search providers."""

from .base import ExternalSource
from .stackoverflow import StackOverflowSource, stackoverflow_relevance
from .youtube import YouTubeSource

__all__ = [
    "ExternalSource",
    "StackOverflowSource",
    "stackoverflow_relevance",
    "YouTubeSource",
]
