"""
OpenAI provider.

Wraps chat completions and reports token usage and cost for routing.
"""

from typing import Any, Optional

import openai
from openai import OpenAI

from ..core.errors import ProviderError
from ..core.pricing import PRICING_TABLE, ProviderPricing, TaskType
from .base import DEFAULT_MAX_TOKENS, DEFAULT_TIMEOUT, Provider, ProviderResponse, system_prompt_for


class OpenAIProvider(Provider):
    """OpenAI chat-completions backend.

    SDK failures are translated into ProviderError so the router can
    decide between failover and propagation.
    """

    name = "openai"
    default_model = "gpt-4o"

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
        self.client = OpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)

    def complete(self, prompt: str, task_type: TaskType, **options: Any) -> ProviderResponse:
        """Create a chat completion for the prompt.

        Args:
            prompt: User prompt (required)
            task_type: Task type, selects the system prompt and rate
            **options: ``max_tokens``, ``temperature`` and other OpenAI parameters

        Returns:
            ProviderResponse with content, usage and cost

        Raises:
            ProviderError: On API, transport or response errors
        """
        max_tokens = options.pop("max_tokens", DEFAULT_MAX_TOKENS)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt_for(task_type)},
                    {"role": "user", "content": prompt},
                ],
                **options
            )
        except openai.APIStatusError as e:
            raise self.status_error(e.message, e.status_code, e.response.headers) from e
        except openai.APIConnectionError as e:
            raise self.network_error(str(e)) from e

        usage = response.usage
        if not usage:
            raise ProviderError(
                provider=self.name,
                message="response missing usage information",
                retryable=True
            )

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        return self.response(
            content=content,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
            task_type=task_type,
            request_id=response.id
        )
