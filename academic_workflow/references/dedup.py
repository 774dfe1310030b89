"""Deduplication and ordering of references merged from several sources."""

from typing import Iterable, List

from .matching import normalize_doi
from .models import Reference


def dedup_key(ref: Reference) -> str:
    """Identity of a search hit: its DOI, else compact title plus first author."""
    if ref.doi:
        return f"doi:{normalize_doi(ref.doi)}"
    title = "".join((ref.title or "").lower().split())
    first_author = ref.authors[0].lower() if ref.authors else ""
    return f"title:{title}{first_author}"


def deduplicate_references(refs: Iterable[Reference]) -> List[Reference]:
    """Drop later hits that share a key with an earlier one."""
    seen = set()
    unique = []
    for ref in refs:
        key = dedup_key(ref)
        if key in seen:
            continue
        seen.add(key)
        unique.append(ref)
    return unique


def sort_by_relevance(refs: Iterable[Reference]) -> List[Reference]:
    """Newest first (unknown years last), then title alphabetically."""
    return sorted(refs, key=lambda ref: (-(ref.year or 0), ref.title.lower()))
