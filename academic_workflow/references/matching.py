"""Fuzzy matching of titles and author names.

The heuristics are deliberately loose: two distinct papers whose authors
share a surname and whose titles nearly coincide are treated as one work.
"""

import re
from typing import Sequence

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")

# Relative edit distance below which two titles are considered the same
TITLE_DISTANCE_RATIO = 0.2
# Surnames of this length or shorter never match on their own
MIN_SURNAME_LENGTH = 2


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = _PUNCT_RE.sub("", (title or "").lower())
    return _SPACE_RE.sub(" ", text).strip()


def normalize_name(name: str) -> str:
    """Lowercase and strip punctuation from an author display name."""
    return normalize_title(name)


def normalize_doi(doi: str) -> str:
    """Normalize DOI by removing URL prefixes and converting to lowercase."""
    doi = (doi or "").strip()
    for prefix in ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/", "doi:"):
        if doi.lower().startswith(prefix):
            doi = doi[len(prefix):]
    return doi.strip().lower()


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + (char_a != char_b),  # substitution
            ))
        previous = current
    return previous[-1]


def similar_titles(title1: str, title2: str) -> bool:
    """Check whether two titles plausibly name the same work.

    Titles match when their normalized forms are equal, when one contains
    the other, or when their edit distance is under 20% of the longer one.
    """
    norm1 = normalize_title(title1)
    norm2 = normalize_title(title2)
    if not norm1 or not norm2:
        return False

    if norm1 == norm2 or norm1 in norm2 or norm2 in norm1:
        return True

    longest = max(len(norm1), len(norm2))
    return levenshtein_distance(norm1, norm2) < longest * TITLE_DISTANCE_RATIO


def similar_names(name1: str, name2: str) -> bool:
    """Check whether two author names plausibly denote the same person.

    Handles initials vs. full names through containment, and falls back
    to surname (last token) equality.
    """
    norm1 = normalize_name(name1)
    norm2 = normalize_name(name2)
    if not norm1 or not norm2:
        return False

    if norm1 == norm2:
        return True

    if norm1 in norm2 or norm2 in norm1:
        return True

    surname1 = norm1.split(" ")[-1]
    surname2 = norm2.split(" ")[-1]
    return surname1 == surname2 and len(surname1) > MIN_SURNAME_LENGTH


def similar_authors(authors1: Sequence[str], authors2: Sequence[str]) -> bool:
    """Check whether two author lists share at least one author."""
    if not authors1 and not authors2:
        return True
    if not authors1 or not authors2:
        return False

    return any(
        similar_names(author1, author2)
        for author1 in authors1
        for author2 in authors2
    )
