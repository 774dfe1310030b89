"""
Bibliographic references: matching, reconciliation and deduplication.
"""

from .models import (
    ConflictReason,
    ConflictRecord,
    ReconciliationResult,
    Reference,
    ResolutionStrategy,
)
from .reconciler import ReferenceReconciler

__all__ = [
    "ConflictReason",
    "ConflictRecord",
    "ReconciliationResult",
    "Reference",
    "ReferenceReconciler",
    "ResolutionStrategy",
]
