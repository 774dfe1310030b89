"""
Usage, budget and availability state for the router.

All state here is owned by a single router instance and mutated
synchronously right after each provider call resolves.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .token_counter import TokenUsage


class ProviderHealth(Enum):
    """Availability state of a provider."""
    HEALTHY = "healthy"
    RATE_LIMITED = "rate_limited"  # Cooling down after a retryable failure
    DISABLED = "disabled"  # Never eligible until re-enabled


@dataclass
class HealthRecord:
    """Availability of one provider, with the end of its cool-down window."""
    state: ProviderHealth = ProviderHealth.HEALTHY
    until: Optional[datetime] = None

    def is_healthy(self, now: datetime) -> bool:
        """Check eligibility, clearing an expired cool-down."""
        if self.state == ProviderHealth.RATE_LIMITED and self.until is not None and now >= self.until:
            self.mark_healthy()
        return self.state == ProviderHealth.HEALTHY

    def cool_down(self, now: datetime, seconds: float) -> None:
        """Mark the provider rate-limited for the given window."""
        self.state = ProviderHealth.RATE_LIMITED
        self.until = now + timedelta(seconds=seconds)

    def mark_healthy(self) -> None:
        self.state = ProviderHealth.HEALTHY
        self.until = None

    def disable(self) -> None:
        self.state = ProviderHealth.DISABLED
        self.until = None


@dataclass
class UsageRecord:
    """Running totals for one provider."""
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost: float = 0.0
    request_count: int = 0
    last_call: Optional[datetime] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def record(self, usage: TokenUsage, cost: float, at: datetime) -> None:
        """Add one completed call to the totals."""
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.total_cost += cost
        self.request_count += 1
        self.last_call = at

    def reset(self) -> None:
        """Clear the totals (operator action only)."""
        self.input_tokens = 0
        self.output_tokens = 0
        self.total_cost = 0.0
        self.request_count = 0
        self.last_call = None


@dataclass
class BudgetStatus:
    """Snapshot of monthly spending for callers."""
    used: float
    remaining: float
    percentage: float
    budget: float


@dataclass
class BudgetState:
    """Monthly spending ceiling and consumption for the current period."""
    monthly_limit: float
    consumed: float = 0.0
    period_start: Optional[datetime] = None

    def __post_init__(self):
        """Validate the limit is positive."""
        if self.monthly_limit <= 0:
            raise ValueError("monthly_limit must be > 0")

    @property
    def remaining(self) -> float:
        return max(0.0, self.monthly_limit - self.consumed)

    def roll_over(self, now: datetime) -> None:
        """Start a new period when the calendar month has changed."""
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        if self.period_start is None:
            self.period_start = month_start
        elif (self.period_start.year, self.period_start.month) != (now.year, now.month):
            self.period_start = month_start
            self.consumed = 0.0

    def is_exhausted(self) -> bool:
        return self.consumed >= self.monthly_limit

    def can_afford(self, projected_cost: float) -> bool:
        """Check whether a call of the projected cost fits under the limit."""
        return self.consumed + projected_cost <= self.monthly_limit

    def charge(self, cost: float) -> None:
        self.consumed += cost

    def status(self) -> BudgetStatus:
        return BudgetStatus(
            used=self.consumed,
            remaining=self.remaining,
            percentage=(self.consumed / self.monthly_limit) * 100,
            budget=self.monthly_limit
        )
