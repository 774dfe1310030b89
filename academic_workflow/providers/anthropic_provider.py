"""
Anthropic provider.

Wraps the Messages API and reports token usage and cost for routing.
"""

from typing import Any, Optional

import anthropic

from ..core.errors import ProviderError
from ..core.pricing import PRICING_TABLE, ProviderPricing, TaskType
from .base import DEFAULT_MAX_TOKENS, DEFAULT_TIMEOUT, Provider, ProviderResponse, system_prompt_for


class AnthropicProvider(Provider):
    """Anthropic Messages API backend."""

    name = "anthropic"
    default_model = "claude-sonnet-4-5-20250929"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        pricing: Optional[ProviderPricing] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT
    ):
        super().__init__(
            api_key=api_key,
            pricing=pricing or PRICING_TABLE.get_pricing(self.name),
            model=model,
            timeout=timeout
        )
        self.client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout, max_retries=0)

    def complete(self, prompt: str, task_type: TaskType, **options: Any) -> ProviderResponse:
        max_tokens = options.pop("max_tokens", DEFAULT_MAX_TOKENS)
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system_prompt_for(task_type),
                messages=[{"role": "user", "content": prompt}],
                **options
            )
        except anthropic.APIStatusError as e:
            raise self.status_error(e.message, e.status_code, e.response.headers) from e
        except anthropic.APIConnectionError as e:
            raise self.network_error(str(e)) from e

        usage = response.usage
        if not usage:
            raise ProviderError(
                provider=self.name,
                message="response missing usage information",
                retryable=True
            )

        # First text block carries the reply; tool and thinking blocks are skipped
        content = ""
        for block in response.content or []:
            if getattr(block, "type", None) == "text":
                content = block.text
                break

        return self.response(
            content=content,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            task_type=task_type,
            request_id=response.id
        )
