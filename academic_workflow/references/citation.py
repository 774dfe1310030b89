"""Citation and BibTeX formatting for references."""

from typing import Iterable, Optional, Sequence

from .models import Reference


def format_citation_apa(
    authors: Sequence[str],
    year: Optional[int],
    title: str,
    venue: Optional[str] = None
) -> str:
    """Short APA-style citation: ``(Surname, Year) Title. Venue.``"""
    surname = "Unknown"
    if authors:
        parts = authors[0].split()
        if parts:
            surname = parts[-1]
    year_str = year if year else "n.d."
    venue_str = f". {venue}." if venue else ""
    return f"({surname}, {year_str}) {title}{venue_str}"


def _bibtex_key(ref: Reference) -> str:
    first = ref.authors[0].split() if ref.authors else []
    surname = first[-1].lower() if first else "unknown"
    return f"{surname}{ref.year or ''}"


def bibtex_for_reference(ref: Reference) -> str:
    """Minimal ``@article`` entry for one reference."""
    title = ref.title.replace("{", "").replace("}", "")
    return (
        f"@article{{{_bibtex_key(ref)},\n"
        f"  title={{{title}}},\n"
        f"  author={{{' and '.join(ref.authors)}}},\n"
        f"  journal={{{ref.source}}},\n"
        f"  year={{{ref.year or ''}}},\n"
        f"  doi={{{ref.doi or ''}}}\n"
        f"}}"
    )


def to_bibtex(refs: Iterable[Reference]) -> str:
    return "\n".join(bibtex_for_reference(ref) for ref in refs)
