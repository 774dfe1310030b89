"""Semantic Scholar, CrossRef and arXiv search clients."""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import feedparser
import requests

from ..core.errors import AcademicWorkflowError
from ..references.citation import format_citation_apa
from ..references.models import Reference, parse_year

USER_AGENT = "AcademicWorkflow/1.0"
DEFAULT_TIMEOUT = 20

SEMANTIC_SCHOLAR_API = "https://api.semanticscholar.org/graph/v1/paper/search"
CROSSREF_API = "https://api.crossref.org/works"
ARXIV_API = "https://export.arxiv.org/api/query"

_TAG_RE = re.compile(r"<[^>]+>")


def _clean_text(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    cleaned = " ".join(_TAG_RE.sub(" ", value).split())
    return cleaned or None


class SourceError(AcademicWorkflowError):
    """Raised when one search source fails."""

    code = "SOURCE_ERROR"

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class SearchSource(ABC):
    """One academic search API."""

    name: str = ""
    key: str = ""  # Identifier used in per-source error maps

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, contact_email: Optional[str] = None):
        self.timeout = timeout
        self.contact_email = contact_email

    def _headers(self, accept: str) -> Dict[str, str]:
        agent = USER_AGENT
        if self.contact_email:
            agent = f"{USER_AGENT} (mailto:{self.contact_email})"
        return {"User-Agent": agent, "Accept": accept}

    def _get(self, url: str, params: Dict[str, Any], accept: str) -> requests.Response:
        response = requests.get(url, params=params, headers=self._headers(accept), timeout=self.timeout)
        if response.status_code == 429:
            raise SourceError(self.name, f"{self.name} rate limit", 429)
        if not response.ok:
            raise SourceError(
                self.name,
                f"{self.name} error: {response.status_code} {response.text[:200]}",
                response.status_code
            )
        return response

    @abstractmethod
    def search(self, query: str, limit: int = 5) -> List[Reference]:
        """Search the source and return normalized references.

        Raises:
            SourceError: On HTTP errors or rate limiting
            requests.RequestException: On transport errors
        """


class SemanticScholarSource(SearchSource):
    name = "Semantic Scholar"
    key = "SemanticScholar"

    def search(self, query: str, limit: int = 5) -> List[Reference]:
        response = self._get(
            SEMANTIC_SCHOLAR_API,
            params={
                "query": query,
                "fields": "title,authors,year,abstract,externalIds,venue,url",
                "limit": limit,
            },
            accept="application/json",
        )
        refs = []
        for paper in response.json().get("data") or []:
            title = paper.get("title") or ""
            authors = [a.get("name", "") for a in paper.get("authors") or [] if a.get("name")]
            year = paper.get("year")
            venue = paper.get("venue") or None
            external_ids = paper.get("externalIds") or {}
            refs.append(Reference(
                title=title,
                authors=authors,
                year=year,
                source=self.name,
                doi=external_ids.get("DOI") or None,
                abstract=paper.get("abstract") or None,
                citation=format_citation_apa(authors, year, title, venue),
                url=paper.get("url") or None,
            ))
        return refs


class CrossRefSource(SearchSource):
    name = "CrossRef"
    key = "CrossRef"

    def search(self, query: str, limit: int = 5) -> List[Reference]:
        response = self._get(
            CROSSREF_API,
            params={"query": query, "rows": limit},
            accept="application/json",
        )
        refs = []
        for item in response.json().get("message", {}).get("items") or []:
            titles = item.get("title") or []
            title = titles[0] if titles else ""
            authors = [
                f"{a.get('given', '')} {a.get('family', '')}".strip()
                for a in item.get("author") or []
            ]
            authors = [a for a in authors if a]
            date_parts = (item.get("issued") or {}).get("date-parts") or [[None]]
            year = date_parts[0][0] if date_parts and date_parts[0] else None
            containers = item.get("container-title") or []
            venue = containers[0] if containers else None
            doi = item.get("DOI") or None
            refs.append(Reference(
                title=title,
                authors=authors,
                year=year,
                source=self.name,
                doi=doi,
                abstract=_clean_text(item.get("abstract")),
                citation=format_citation_apa(authors, year, title, venue),
                url=item.get("URL") or (f"https://doi.org/{doi}" if doi else None),
            ))
        return refs


class ArxivSource(SearchSource):
    name = "ArXiv"
    key = "ArXiv"

    def search(self, query: str, limit: int = 5) -> List[Reference]:
        response = self._get(
            ARXIV_API,
            params={"search_query": f"all:{query}", "start": 0, "max_results": limit},
            accept="application/atom+xml",
        )
        parsed = feedparser.parse(response.text)
        refs = []
        for entry in parsed.entries:
            title = _clean_text(entry.get("title")) or ""
            authors = [a.get("name", "") for a in entry.get("authors") or [] if a.get("name")]
            year = parse_year(entry.get("published"))
            journal_ref = _clean_text(entry.get("arxiv_journal_ref"))
            refs.append(Reference(
                title=title,
                authors=authors,
                year=year,
                source=self.name,
                doi=entry.get("arxiv_doi") or None,
                abstract=_clean_text(entry.get("summary")),
                citation=format_citation_apa(authors, year, title, journal_ref),
                url=entry.get("link") or None,
            ))
        return refs
