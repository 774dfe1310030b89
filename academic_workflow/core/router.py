"""
Multi-provider generation router with failover and budget control.

Selection Order:
1. Drop providers that are unhealthy or whose projected cost would
   push spend past the monthly budget
2. Prefer the lowest per-token cost for the task
3. Break ties by fewest calls so far (best effort, not round-robin)

Retryable failures (429, 5xx, transport) put the provider on cool-down
and selection runs again over the remaining providers, at most once per
configured provider. Non-retryable failures propagate immediately.
"""

import dataclasses
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Union

from ..config.loader import Settings
from ..providers import AnthropicProvider, OpenAIProvider
from ..providers.base import Provider
from ..storage.models import UsageEvent
from ..storage.repository import UsageLedger
from .budget import BudgetState, BudgetStatus, HealthRecord, ProviderHealth, UsageRecord
from .errors import (
    BudgetExceeded,
    ConfigError,
    ProviderCallFailed,
    ProviderError,
    ProviderUnavailable,
)
from .pricing import TaskType, estimate_cost
from .token_counter import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_BUDGET = 100.0
DEFAULT_COOLDOWN_SECONDS = 60.0


@dataclass(frozen=True)
class GenerationResult:
    """Content generated by the provider that served the request."""
    content: str
    usage: TokenUsage
    cost: float
    provider: str

    def to_dict(self) -> Dict[str, Any]:
        """Caller-facing shape: ``{content, usage: {tokens, cost}, provider}``."""
        return {
            "content": self.content,
            "usage": {"tokens": self.usage.total_tokens, "cost": self.cost},
            "provider": self.provider,
        }


class AIRouter:
    """Routes generation requests across a pool of providers.

    Usage and budget state live on the instance; construct one router per
    owner (application, user, test) rather than sharing a module global.
    """

    def __init__(
        self,
        providers: Iterable[Provider],
        monthly_budget: float = DEFAULT_MONTHLY_BUDGET,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        ledger: Optional[UsageLedger] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """Initialize router.

        Args:
            providers: Provider pool, in preference order for exact ties
            monthly_budget: Monthly spending ceiling
            cooldown_seconds: Default cool-down after a retryable failure
            ledger: Optional ledger receiving one event per successful call
            clock: Source of the current time

        Raises:
            ValueError: If budget or cool-down are invalid
        """
        if cooldown_seconds < 0:
            raise ValueError("cooldown_seconds cannot be negative")

        self.cooldown_seconds = cooldown_seconds
        self.ledger = ledger
        self._clock = clock
        self.budget = BudgetState(monthly_limit=monthly_budget)
        self.budget.roll_over(clock())

        self._providers: Dict[str, Provider] = {}
        self._usage: Dict[str, UsageRecord] = {}
        self._health: Dict[str, HealthRecord] = {}
        for provider in providers:
            self.add_provider(provider)

    # -- pool management -------------------------------------------------

    def add_provider(self, provider: Provider) -> None:
        if provider.name in self._providers:
            raise ValueError(f"Duplicate provider: {provider.name}")
        self._providers[provider.name] = provider
        self._usage.setdefault(provider.name, UsageRecord(provider=provider.name))
        health = HealthRecord()
        if not provider.is_available():
            health.disable()
        self._health[provider.name] = health

    def remove_provider(self, name: str) -> None:
        self._providers.pop(name, None)
        self._usage.pop(name, None)
        self._health.pop(name, None)

    def disable_provider(self, name: str) -> None:
        self._health_for(name).disable()

    def enable_provider(self, name: str) -> None:
        self._health_for(name).mark_healthy()

    def provider_health(self, name: str) -> ProviderHealth:
        health = self._health_for(name)
        health.is_healthy(self._clock())
        return health.state

    def get_available_providers(self) -> List[str]:
        now = self._clock()
        return [name for name in self._providers if self._health[name].is_healthy(now)]

    def _health_for(self, name: str) -> HealthRecord:
        if name not in self._health:
            raise KeyError(f"Unknown provider: {name}")
        return self._health[name]

    # -- usage and budget ------------------------------------------------

    def get_usage_stats(self) -> Dict[str, UsageRecord]:
        """Copy of the per-provider usage records."""
        return {name: dataclasses.replace(record) for name, record in self._usage.items()}

    def reset_usage_stats(self) -> None:
        """Clear usage records and this period's spend (operator action)."""
        for record in self._usage.values():
            record.reset()
        self.budget.consumed = 0.0

    def get_budget_status(self) -> BudgetStatus:
        self.budget.roll_over(self._clock())
        return self.budget.status()

    # -- routing ---------------------------------------------------------

    def select_provider(
        self,
        prompt: str,
        task_type: TaskType,
        exclude: Iterable[str] = ()
    ) -> Provider:
        """Choose the provider for one attempt without calling it.

        Args:
            prompt: Prompt used to project the call's cost
            task_type: Task type used to look up rates
            exclude: Providers already tried for this request

        Returns:
            The cheapest eligible provider

        Raises:
            BudgetExceeded: If the budget is the only thing blocking every provider
            ProviderUnavailable: If no provider is eligible for any other reason
        """
        now = self._clock()
        excluded = set(exclude)
        eligible: List[Provider] = []
        over_budget: List[float] = []
        unhealthy = 0

        for name, provider in self._providers.items():
            if name in excluded:
                continue
            if not self._health[name].is_healthy(now):
                unhealthy += 1
                continue
            projected = estimate_cost(provider.pricing, task_type, prompt)
            if not self.budget.can_afford(projected):
                over_budget.append(projected)
                continue
            eligible.append(provider)

        if not eligible:
            if over_budget and not unhealthy and not excluded:
                logger.warning(
                    "Refusing %s request: budget %.2f exhausted (used %.4f)",
                    task_type.value, self.budget.monthly_limit, self.budget.consumed
                )
                raise BudgetExceeded(
                    used=self.budget.consumed,
                    limit=self.budget.monthly_limit,
                    projected=min(over_budget)
                )
            raise ProviderUnavailable("No AI providers are available")

        # min() keeps configured order among exact ties
        return min(
            eligible,
            key=lambda p: (p.pricing.cost_per_token(task_type), self._usage[p.name].request_count)
        )

    def generate_with_failover(
        self,
        prompt: str,
        task_type: Union[TaskType, str],
        **options: Any
    ) -> GenerationResult:
        """Generate content, failing over between providers on retryable errors.

        Args:
            prompt: Prompt text (required)
            task_type: Task category, as TaskType or its string value
            **options: Provider options such as ``max_tokens``

        Returns:
            GenerationResult tagged with the provider that served it

        Raises:
            ValueError: If the prompt is empty or the task type unknown
            BudgetExceeded: If the monthly budget blocks every provider
            ProviderUnavailable: If no provider is eligible or all failed
            ProviderCallFailed: If a provider rejected the request itself
        """
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required and cannot be empty")
        task_type = TaskType(task_type)

        self.budget.roll_over(self._clock())
        tried: Set[str] = set()
        attempts: List[ProviderError] = []

        for _ in range(len(self._providers)):
            try:
                provider = self.select_provider(prompt, task_type, exclude=tried)
            except ProviderUnavailable as e:
                if not attempts:
                    raise
                raise ProviderUnavailable("All AI providers failed", attempts) from e

            tried.add(provider.name)
            try:
                response = provider.complete(prompt, task_type, **options)
            except ProviderError as e:
                if not e.retryable:
                    logger.error("Provider %s rejected request: %s", provider.name, e)
                    raise ProviderCallFailed(e) from e
                attempts.append(e)
                cooldown = e.retry_after if e.retry_after is not None else self.cooldown_seconds
                self._health[provider.name].cool_down(self._clock(), cooldown)
                logger.warning(
                    "Provider %s failed (status=%s), cooling down %.0fs and failing over",
                    provider.name, e.status_code, cooldown
                )
                continue

            return self._record_success(provider, task_type, response, attempt_count=len(tried))

        if not self._providers:
            raise ProviderUnavailable("No AI providers are configured")
        raise ProviderUnavailable("All AI providers failed", attempts)

    def _record_success(self, provider, task_type, response, attempt_count) -> GenerationResult:
        # Applied synchronously, right after the call resolves
        now = self._clock()
        self._usage[provider.name].record(response.usage, response.cost, now)
        self.budget.charge(response.cost)
        self._health[provider.name].mark_healthy()

        if self.ledger is not None:
            try:
                self.ledger.record(UsageEvent(
                    timestamp=now,
                    provider=provider.name,
                    model=provider.model,
                    task_type=task_type.value,
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                    total_tokens=response.usage.total_tokens,
                    cost=response.cost,
                    attempt_count=attempt_count,
                    request_id=response.request_id
                ))
            except sqlite3.Error as e:
                # The call is already paid for; the reply still goes back
                logger.error("Failed to record usage for %s in ledger: %s", provider.name, e)

        return GenerationResult(
            content=response.content,
            usage=response.usage,
            cost=response.cost,
            provider=provider.name
        )


PROVIDER_CLASSES = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def create_router(
    settings: Settings,
    ledger: Optional[UsageLedger] = None,
    clock: Callable[[], datetime] = datetime.now
) -> AIRouter:
    """Build a router from settings.

    Only providers with an API key join the pool.

    Raises:
        ConfigError: If no provider API key is configured
    """
    names = settings.configured_providers
    if not names:
        raise ConfigError(
            "At least one AI provider API key must be configured (ANTHROPIC_API_KEY or OPENAI_API_KEY)"
        )

    providers = []
    for name in names:
        config = settings.provider_config(name)
        providers.append(PROVIDER_CLASSES[name](
            api_key=settings.api_keys[name],
            model=config.model,
            pricing=config.pricing,
            timeout=settings.router.timeout_seconds
        ))

    return AIRouter(
        providers,
        monthly_budget=settings.budget.monthly,
        cooldown_seconds=settings.router.cooldown_seconds,
        ledger=ledger,
        clock=clock
    )
