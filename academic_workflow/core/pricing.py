"""
Pricing calculations and rate management.

Handles cost computations for text-generation providers, with optional
per-task rates.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_UP
from enum import Enum
from typing import Dict, Optional

from .token_counter import TokenUsage, estimate_tokens

# Costs are tracked to a millionth of a currency unit
COST_QUANTUM = Decimal("0.000001")


class TaskType(Enum):
    """Categories of generation requests routed to providers."""
    RESEARCH = "research"
    WRITING = "writing"
    ANALYSIS = "analysis"
    OUTLINE = "outline"
    REVIEW = "review"


@dataclass(frozen=True)
class TokenRate:
    """Per-token pricing for one provider and task."""
    input_cost_per_1k: Decimal  # Cost per 1K input tokens
    output_cost_per_1k: Decimal  # Cost per 1K output tokens

    def __post_init__(self):
        """Validate rates are not negative."""
        if self.input_cost_per_1k < 0:
            raise ValueError("input_cost_per_1k cannot be negative")
        if self.output_cost_per_1k < 0:
            raise ValueError("output_cost_per_1k cannot be negative")


@dataclass(frozen=True)
class ProviderPricing:
    """Pricing for a provider: a default rate plus per-task overrides."""
    default: TokenRate
    tasks: Dict[TaskType, TokenRate] = field(default_factory=dict)

    def rate_for(self, task_type: TaskType) -> TokenRate:
        """Get the rate that applies to a task type."""
        return self.tasks.get(task_type, self.default)

    def cost_per_token(self, task_type: TaskType) -> Decimal:
        """Blended per-token cost, assuming equal input and output volume.

        Used to rank providers against each other for a task.
        """
        rate = self.rate_for(task_type)
        return (rate.input_cost_per_1k + rate.output_cost_per_1k) / Decimal("2000")


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table for known providers."""
    prices: Dict[str, ProviderPricing]

    def get_pricing(self, provider: str) -> ProviderPricing:
        """Get pricing for a specific provider.

        Args:
            provider: Provider identifier

        Returns:
            ProviderPricing for the provider

        Raises:
            ValueError: If provider is not supported
        """
        if provider not in self.prices:
            raise ValueError(f"Unsupported provider: {provider}")
        return self.prices[provider]


# Built-in rates per 1K tokens (Claude 3.5 Sonnet, GPT-4o)
PRICING_TABLE = PricingTable({
    "anthropic": ProviderPricing(
        default=TokenRate(
            input_cost_per_1k=Decimal("0.003"),
            output_cost_per_1k=Decimal("0.015")
        )
    ),
    "openai": ProviderPricing(
        default=TokenRate(
            input_cost_per_1k=Decimal("0.005"),
            output_cost_per_1k=Decimal("0.015")
        )
    ),
})


def _cost(rate: TokenRate, input_tokens: int, output_tokens: int) -> float:
    input_cost = (Decimal(input_tokens) / Decimal("1000")) * rate.input_cost_per_1k
    output_cost = (Decimal(output_tokens) / Decimal("1000")) * rate.output_cost_per_1k

    # Conservative rounding (always round UP)
    total_cost = input_cost + output_cost
    return float(total_cost.quantize(COST_QUANTUM, rounding=ROUND_UP))


def calculate_cost(
    pricing: ProviderPricing,
    task_type: TaskType,
    usage: TokenUsage
) -> float:
    """Calculate the exact cost of a completed call.

    Args:
        pricing: Pricing of the provider that served the call
        task_type: Task the call was made for
        usage: Token counts reported by the provider

    Returns:
        Total cost rounded UP to 6 decimal places
    """
    return _cost(pricing.rate_for(task_type), usage.input_tokens, usage.output_tokens)


def estimate_cost(
    pricing: ProviderPricing,
    task_type: TaskType,
    prompt: str,
    expected_output_tokens: Optional[int] = None
) -> float:
    """Project the cost of a call before making it.

    Output volume is assumed to match the prompt unless given explicitly.

    Args:
        pricing: Pricing of the candidate provider
        task_type: Task the call is made for
        prompt: Prompt text
        expected_output_tokens: Optional override for the output estimate

    Returns:
        Projected cost rounded UP to 6 decimal places
    """
    input_tokens = estimate_tokens(prompt)
    output_tokens = input_tokens if expected_output_tokens is None else expected_output_tokens
    return _cost(pricing.rate_for(task_type), input_tokens, output_tokens)
