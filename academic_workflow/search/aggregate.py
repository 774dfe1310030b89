"""Multi-source search: query every source, merge, deduplicate and rank."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..references.citation import to_bibtex
from ..references.dedup import deduplicate_references, sort_by_relevance
from ..references.models import Reference
from .sources import ArxivSource, CrossRefSource, SearchSource, SemanticScholarSource, SourceError

logger = logging.getLogger(__name__)

# Flat per-source charge applied when the source returned anything
COST_PER_SOURCE = 0.001


@dataclass
class SearchResult:
    """Merged hits from all sources plus per-source errors."""
    references: List[Reference]
    sources: List[str]
    errors: Dict[str, Optional[str]] = field(default_factory=dict)
    cost: float = 0.0

    @property
    def count(self) -> int:
        return len(self.references)

    def to_dict(self, include_bibtex: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "references": [ref.to_dict() for ref in self.references],
            "sources": list(self.sources),
            "count": self.count,
            "errors": dict(self.errors),
            "cost": self.cost,
        }
        if include_bibtex:
            data["bibtex"] = to_bibtex(self.references)
        return data


def default_sources(contact_email: Optional[str] = None) -> List[SearchSource]:
    return [
        SemanticScholarSource(contact_email=contact_email),
        CrossRefSource(contact_email=contact_email),
        ArxivSource(contact_email=contact_email),
    ]


def search_all(
    query: str,
    sources: Optional[Sequence[SearchSource]] = None,
    max_results: int = 5
) -> SearchResult:
    """Query every source, tolerating individual failures.

    Args:
        query: Search query (at least 3 characters)
        sources: Sources to query, defaults to Semantic Scholar, CrossRef and arXiv
        max_results: Hits requested from each source

    Returns:
        SearchResult with deduplicated, ranked references

    Raises:
        ValueError: If query or max_results are out of range
    """
    if not query or len(query.strip()) < 3:
        raise ValueError("query must be at least 3 characters")
    if max_results < 1 or max_results > 50:
        raise ValueError("max_results must be between 1 and 50")

    sources = list(sources) if sources is not None else default_sources()
    hits: List[Reference] = []
    responding: List[str] = []
    errors: Dict[str, Optional[str]] = {}

    for source in sources:
        try:
            found = source.search(query.strip(), limit=max_results)
        except (SourceError, requests.RequestException, ValueError) as e:
            logger.warning("%s search failed: %s", source.name, e)
            errors[source.key] = str(e)
            continue
        errors[source.key] = None
        if found:
            responding.append(source.name)
            hits.extend(found)

    references = sort_by_relevance(deduplicate_references(hits))
    return SearchResult(
        references=references,
        sources=responding,
        errors=errors,
        cost=round(COST_PER_SOURCE * len(responding), 6)
    )
