"""
Academic search sources.

Each source turns its API payload into Reference records; ``search_all``
merges, deduplicates and ranks the hits.
"""

from .aggregate import SearchResult, default_sources, search_all
from .sources import ArxivSource, CrossRefSource, SearchSource, SemanticScholarSource, SourceError

__all__ = [
    "ArxivSource",
    "CrossRefSource",
    "SearchResult",
    "SearchSource",
    "SemanticScholarSource",
    "SourceError",
    "default_sources",
    "search_all",
]
