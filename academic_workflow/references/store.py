"""Remote bibliographic stores consumed by the reconciler."""

import dataclasses
import itertools
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pyzotero import zotero

from ..core.errors import RemoteCreateFailed, RemoteStoreUnreachable
from .citation import format_citation_apa
from .models import Reference, parse_year

# Zotero item types that are not bibliographic records
_SKIPPED_ITEM_TYPES = {"attachment", "note", "annotation"}


class RemoteStore(ABC):
    """A remote store of references (e.g. a Zotero library)."""

    @abstractmethod
    def list(self) -> List[Reference]:
        """Fetch every reference held remotely.

        Raises:
            RemoteStoreUnreachable: If the store cannot be contacted
        """

    @abstractmethod
    def create(self, ref: Reference) -> str:
        """Create a reference remotely and return its external key.

        Raises:
            RemoteCreateFailed: If the store did not accept the record
        """

    @abstractmethod
    def update(self, external_key: str, ref: Reference) -> None:
        """Overwrite the remote record identified by ``external_key``."""


class InMemoryStore(RemoteStore):
    """Dict-backed store, used for offline runs and tests."""

    def __init__(self, refs: Optional[List[Reference]] = None, key_prefix: str = "ITEM"):
        self._counter = itertools.count(1)
        self._key_prefix = key_prefix
        self.items: Dict[str, Reference] = {}
        for ref in refs or []:
            key = ref.external_key or self._next_key()
            self.items[key] = dataclasses.replace(ref, external_key=key)

    def _next_key(self) -> str:
        return f"{self._key_prefix}{next(self._counter)}"

    def list(self) -> List[Reference]:
        return list(self.items.values())

    def create(self, ref: Reference) -> str:
        key = self._next_key()
        self.items[key] = dataclasses.replace(ref, external_key=key)
        return key

    def update(self, external_key: str, ref: Reference) -> None:
        if external_key not in self.items:
            raise KeyError(f"Unknown item: {external_key}")
        self.items[external_key] = dataclasses.replace(ref, external_key=external_key)


def _creator_name(creator: Dict[str, Any]) -> str:
    if creator.get("name"):
        return creator["name"].strip()
    return f"{creator.get('firstName', '')} {creator.get('lastName', '')}".strip()


def _creators_for(authors: List[str]) -> List[Dict[str, str]]:
    creators = []
    for name in authors:
        parts = name.split()
        if not parts:
            continue
        if len(parts) == 1:
            creators.append({"creatorType": "author", "name": parts[0]})
        else:
            creators.append({
                "creatorType": "author",
                "firstName": " ".join(parts[:-1]),
                "lastName": parts[-1],
            })
    return creators


def zotero_item_to_reference(item: Dict[str, Any]) -> Reference:
    """Convert a Zotero API item into a Reference.

    Args:
        item: Item as returned by the Zotero API (``{"key", "data"}``)

    Returns:
        Reference keyed by the Zotero item key
    """
    data = item.get("data", item)
    creators = data.get("creators") or []
    authors = [_creator_name(c) for c in creators if c.get("creatorType", "author") == "author"]
    authors = [a for a in authors if a]
    title = data.get("title") or ""
    year = parse_year(data.get("date"))
    source = data.get("publicationTitle") or data.get("journalAbbreviation") or ""

    return Reference(
        title=title,
        authors=authors,
        year=year,
        source=source,
        doi=data.get("DOI") or None,
        abstract=data.get("abstractNote") or None,
        citation=format_citation_apa(authors, year, title, source or None),
        url=data.get("url") or None,
        external_key=item.get("key") or data.get("key"),
    )


def reference_to_zotero_fields(ref: Reference) -> Dict[str, Any]:
    """Zotero ``journalArticle`` fields for a Reference."""
    return {
        "itemType": "journalArticle",
        "title": ref.title,
        "creators": _creators_for(ref.authors),
        "date": str(ref.year) if ref.year else "",
        "publicationTitle": ref.source or "",
        "DOI": ref.doi or "",
        "abstractNote": ref.abstract or "",
        "url": ref.url or "",
    }


class ZoteroStore(RemoteStore):
    """Zotero library accessed through pyzotero."""

    def __init__(
        self,
        api_key: Optional[str],
        library_id: Optional[str],
        library_type: str = "user",
        collection_key: Optional[str] = None
    ):
        """Initialize Zotero store.

        Args:
            api_key: Zotero API key
            library_id: Library ID (user ID or group ID)
            library_type: 'user' or 'group'
            collection_key: Optional collection new items are filed under
        """
        if library_type not in ("user", "group"):
            raise ValueError("library_type must be 'user' or 'group'")
        self.api_key = api_key
        self.library_id = library_id
        self.library_type = library_type
        self.collection_key = collection_key
        self._client = None
        if self.is_configured():
            self._client = zotero.Zotero(library_id, library_type, api_key)

    def is_configured(self) -> bool:
        return bool(self.api_key and self.library_id)

    def _require_client(self):
        if self._client is None:
            raise RemoteStoreUnreachable("Zotero client not configured")
        return self._client

    def list(self) -> List[Reference]:
        client = self._require_client()
        try:
            items = client.everything(client.top())
        except Exception as e:
            raise RemoteStoreUnreachable(f"Zotero unreachable: {e}") from e
        return [
            zotero_item_to_reference(item)
            for item in items
            if item.get("data", {}).get("itemType") not in _SKIPPED_ITEM_TYPES
        ]

    def create(self, ref: Reference) -> str:
        client = self._require_client()
        template = client.item_template("journalArticle")
        template.update(reference_to_zotero_fields(ref))
        if self.collection_key:
            template["collections"] = [self.collection_key]

        try:
            created = client.create_items([template])
        except Exception as e:
            raise RemoteCreateFailed(ref.title, str(e)) from e

        try:
            return list(created["successful"].values())[0]["key"]
        except (KeyError, IndexError, TypeError):
            failed = created.get("failed") if isinstance(created, dict) else None
            raise RemoteCreateFailed(ref.title, f"no key returned ({failed or created})")

    def update(self, external_key: str, ref: Reference) -> None:
        client = self._require_client()
        item = client.item(external_key)
        data = item["data"]
        data.update(reference_to_zotero_fields(ref))
        client.update_item(data)
