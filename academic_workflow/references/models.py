"""Reference data models."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


_YEAR_RE = re.compile(r"\b(\d{4})\b")


def parse_year(value: Any) -> Optional[int]:
    """Read a year from an int or a free-form date string."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    match = _YEAR_RE.search(str(value))
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class Reference:
    """A bibliographic record exchanged between local storage and remote sources.

    Records are never mutated; merges and exports produce new instances.
    """

    title: str
    authors: List[str] = field(default_factory=list)
    year: Optional[int] = None
    source: str = ""
    doi: Optional[str] = None
    abstract: Optional[str] = None
    citation: str = ""
    url: Optional[str] = None
    external_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reference":
        """Build a Reference from a loosely typed mapping (JSON payloads)."""
        authors = data.get("authors") or []
        if isinstance(authors, str):
            authors = [a.strip() for a in authors.split(",") if a.strip()]
        return cls(
            title=str(data.get("title") or ""),
            authors=[str(a) for a in authors],
            year=parse_year(data.get("year")),
            source=str(data.get("source") or ""),
            doi=data.get("doi") or None,
            abstract=data.get("abstract") or None,
            citation=str(data.get("citation") or ""),
            url=data.get("url") or None,
            external_key=data.get("key") or data.get("external_key") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "authors": list(self.authors),
            "year": self.year,
            "source": self.source,
            "doi": self.doi,
            "abstract": self.abstract,
            "citation": self.citation,
            "url": self.url,
        }
        if self.external_key:
            data["key"] = self.external_key
        return data


class ConflictReason(Enum):
    """Secondary field that differs between two records of the same work.

    Declared in the order fields are compared.
    """
    DIFFERENT_YEAR = "Different year"
    DIFFERENT_SOURCE = "Different source"
    DIFFERENT_DOI = "Different DOI"


class ResolutionStrategy(Enum):
    """How a caller chose to settle a conflict."""
    USE_LOCAL = "use-local"
    USE_REMOTE = "use-remote"
    MERGE = "merge"


@dataclass(frozen=True)
class ConflictRecord:
    """A local and a remote record judged to be the same work, but differing."""

    local: Reference
    remote: Reference
    reason: ConflictReason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local": self.local.to_dict(),
            "remote": self.remote.to_dict(),
            "reason": self.reason.value,
        }


@dataclass
class ReconciliationResult:
    """Three-way partition produced by a reconciliation run."""

    imported: List[Reference] = field(default_factory=list)
    exported: List[Reference] = field(default_factory=list)
    conflicts: List[ConflictRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_offline(self) -> bool:
        return self.error is not None

    @property
    def summary(self) -> Dict[str, int]:
        return {
            "imported": len(self.imported),
            "exported": len(self.exported),
            "conflicts": len(self.conflicts),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Caller-facing shape: ``{imported, exported, conflicts, error?}``."""
        data: Dict[str, Any] = {
            "imported": [ref.to_dict() for ref in self.imported],
            "exported": [ref.to_dict() for ref in self.exported],
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
            "summary": self.summary,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
