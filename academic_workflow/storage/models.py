"""
Data models for storage layer.

Defines the usage ledger entries written by the router.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UsageEvent:
    """Immutable record of one successful routed generation.

    Append-only events that create an auditable ledger of provider spend.
    Once written, these records must never be modified.
    """
    timestamp: datetime
    provider: str
    model: str
    task_type: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost: float
    attempt_count: int = 1  # Providers tried for this request, including the one that succeeded
    request_id: Optional[str] = None
