"""
Text-generation providers.

Concrete backends the router selects between. Each provider reports
token usage and cost, and raises ProviderError classified as retryable
or not.
"""

from .anthropic_provider import AnthropicProvider
from .base import Provider, ProviderResponse, classify_status, system_prompt_for
from .openai_provider import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "OpenAIProvider",
    "Provider",
    "ProviderResponse",
    "classify_status",
    "system_prompt_for",
]
