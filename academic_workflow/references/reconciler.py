"""
Reconciliation of local references against a remote store.

Produces a three-way partition without ever silently overwriting data:

- remote records with no local counterpart are imported
- valid local records with no remote counterpart are exported (created remotely)
- records describing the same work but differing on a secondary field
  become conflicts, settled later by an explicit caller decision

A store that cannot be reached degrades the run to offline mode rather
than raising.
"""

import dataclasses
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from ..config.loader import Settings
from ..core.errors import RemoteCreateFailed
from .matching import normalize_doi, similar_authors, similar_titles
from .models import (
    ConflictReason,
    ConflictRecord,
    ReconciliationResult,
    Reference,
    ResolutionStrategy,
)
from .store import RemoteStore, ZoteroStore

logger = logging.getLogger(__name__)

MIN_YEAR = 1800  # Exclusive
MAX_YEARS_AHEAD = 5

OFFLINE_SUFFIX = " - operating in offline mode"


def is_valid_reference(ref: Reference, current_year: int) -> bool:
    """Check a local reference is complete enough to export."""
    return bool(
        ref.title and ref.title.strip()
        and ref.authors
        and ref.year
        and MIN_YEAR < ref.year <= current_year + MAX_YEARS_AHEAD
    )


def find_conflict_reason(local: Reference, remote: Reference) -> Optional[ConflictReason]:
    """First secondary field that differs: year, then source, then DOI.

    DOIs are only compared when both records carry one.
    """
    if local.year != remote.year:
        return ConflictReason.DIFFERENT_YEAR
    if (local.source or "") != (remote.source or ""):
        return ConflictReason.DIFFERENT_SOURCE
    if local.doi and remote.doi and normalize_doi(local.doi) != normalize_doi(remote.doi):
        return ConflictReason.DIFFERENT_DOI
    return None


def is_same_work(local: Reference, remote: Reference) -> bool:
    return similar_titles(local.title, remote.title) and similar_authors(local.authors, remote.authors)


def merge_references(local: Reference, remote: Reference) -> Reference:
    """Field-by-field merge of a conflicting pair.

    Local title, authors and year win unless absent. Remote source, DOI,
    abstract and url win whenever present. Citation text is always local.
    """
    return Reference(
        title=local.title or remote.title,
        authors=list(local.authors) if local.authors else list(remote.authors),
        year=local.year or remote.year,
        source=remote.source or local.source,
        doi=remote.doi or local.doi,
        abstract=remote.abstract or local.abstract,
        citation=local.citation,
        url=remote.url or local.url,
        external_key=remote.external_key,
    )


class ReferenceReconciler:
    """Reconciles local references with a remote bibliographic store."""

    def __init__(self, store: RemoteStore, clock: Callable[[], datetime] = datetime.now):
        """Initialize reconciler.

        Args:
            store: Remote store used for listing, creation and updates
            clock: Source of the current date, for year validation
        """
        self.store = store
        self._clock = clock

    def validate_references(self, refs: Iterable[Reference]) -> List[Reference]:
        """Keep only references complete enough to export.

        Invalid records are dropped without error (lenient import policy).
        """
        current_year = self._clock().year
        return [ref for ref in refs if is_valid_reference(ref, current_year)]

    def reconcile(
        self,
        local_refs: Sequence[Reference],
        remote_refs: Optional[Sequence[Reference]] = None
    ) -> ReconciliationResult:
        """Partition local and remote references into import, export and conflicts.

        Args:
            local_refs: References held locally
            remote_refs: References already fetched from the store; listed
                from the store when omitted

        Returns:
            ReconciliationResult; offline (with ``error`` set) when the store
            cannot be reached
        """
        if remote_refs is None:
            try:
                remote_refs = self.store.list()
            except Exception as e:
                logger.error("Remote store unreachable, reconciling offline: %s", e)
                return ReconciliationResult(error=f"{e}{OFFLINE_SUFFIX}")
        remote_refs = list(remote_refs)

        result = ReconciliationResult()
        matched_remote = set()

        for local in self.validate_references(local_refs):
            match_index = None
            for index, remote in enumerate(remote_refs):
                if is_same_work(local, remote):
                    match_index = index
                    break

            if match_index is None:
                exported = self._export(local)
                if exported is not None:
                    result.exported.append(exported)
                continue

            matched_remote.add(match_index)
            remote = remote_refs[match_index]
            reason = find_conflict_reason(local, remote)
            if reason is not None:
                result.conflicts.append(ConflictRecord(local=local, remote=remote, reason=reason))

        result.imported = [
            remote for index, remote in enumerate(remote_refs)
            if index not in matched_remote
        ]
        return result

    def _export(self, ref: Reference) -> Optional[Reference]:
        try:
            key = self.store.create(ref)
        except Exception as e:
            failure = e if isinstance(e, RemoteCreateFailed) else RemoteCreateFailed(ref.title, str(e))
            logger.warning("Skipping export: %s", failure)
            return None
        return dataclasses.replace(ref, external_key=key)

    def export_references(self, refs: Iterable[Reference]) -> List[Reference]:
        """Create every valid reference remotely, skipping failures."""
        exported = []
        for ref in self.validate_references(refs):
            created = self._export(ref)
            if created is not None:
                exported.append(created)
        return exported

    def import_references(self) -> List[Reference]:
        """List the remote store, or return nothing when it is unreachable."""
        try:
            return self.store.list()
        except Exception as e:
            logger.error("Failed to import from remote store: %s", e)
            return []

    def resolve_conflict(self, conflict: ConflictRecord, strategy: ResolutionStrategy) -> Reference:
        """Settle a conflict the way the caller chose.

        Args:
            conflict: Conflict reported by ``reconcile``
            strategy: use-local, use-remote or merge

        Returns:
            The reference now held remotely
        """
        strategy = ResolutionStrategy(strategy)
        if strategy == ResolutionStrategy.USE_REMOTE:
            return conflict.remote

        if strategy == ResolutionStrategy.USE_LOCAL:
            resolved = dataclasses.replace(conflict.local, external_key=conflict.remote.external_key)
        else:
            resolved = merge_references(conflict.local, conflict.remote)

        if not conflict.remote.external_key:
            raise ValueError("Remote reference has no external key to update")
        self.store.update(conflict.remote.external_key, resolved)
        return resolved


def create_reconciler(settings: Settings, clock: Callable[[], datetime] = datetime.now) -> ReferenceReconciler:
    """Build a reconciler against the Zotero library named in settings.

    Missing credentials are not an error here; every run then reconciles
    offline.
    """
    store = ZoteroStore(
        api_key=settings.zotero.api_key,
        library_id=settings.zotero.user_id,
        library_type=settings.zotero.library_type,
        collection_key=settings.zotero.collection_key
    )
    return ReferenceReconciler(store, clock=clock)
