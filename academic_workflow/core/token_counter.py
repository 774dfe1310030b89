"""
Token counting and usage tracking.

Holds exact token counts reported by providers and the rough
pre-call estimate used for budget projection.
"""

import math
from dataclasses import dataclass

# Rough heuristic: ~4 characters per token for English prose
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for cost calculation.

    Contains exact token counts as reported by the provider.
    """
    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a prompt before it is sent.

    Args:
        text: Prompt text

    Returns:
        Estimated token count, never negative
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
