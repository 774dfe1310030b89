"""
Provider interface shared by all text-generation backends.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..core.errors import ProviderError
from ..core.pricing import ProviderPricing, TaskType, calculate_cost
from ..core.token_counter import TokenUsage

DEFAULT_MAX_TOKENS = 4000
# Seconds before an unanswered request counts as a retryable failure
DEFAULT_TIMEOUT = 60.0

_DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful academic assistant. Provide accurate, well-structured "
    "assistance with academic tasks."
)

SYSTEM_PROMPTS = {
    TaskType.RESEARCH: """You are an expert academic researcher. Provide comprehensive, accurate, and well-structured research assistance. Focus on:
- Identifying key concepts and themes
- Suggesting relevant academic sources
- Providing detailed analysis and insights
- Maintaining academic rigor and objectivity""",
    TaskType.ANALYSIS: """You are an expert academic analyst. Provide deep, thoughtful analysis of academic content. Focus on:
- Critical evaluation of arguments and evidence
- Identifying patterns and connections
- Providing nuanced interpretations
- Maintaining scholarly perspective""",
    TaskType.OUTLINE: """You are an expert academic writing coach. Help create well-structured outlines. Focus on:
- Logical flow and organization
- Clear hierarchical structure
- Comprehensive coverage of topics
- Academic writing standards""",
    TaskType.WRITING: """You are an expert academic writer. Assist with high-quality academic writing. Focus on:
- Clear, precise language
- Proper academic tone and style
- Well-structured arguments
- Accurate citations and references""",
    TaskType.REVIEW: """You are an expert academic reviewer. Provide constructive feedback on academic work. Focus on:
- Content accuracy and completeness
- Structural and logical flow
- Writing quality and clarity
- Suggestions for improvement""",
}


def system_prompt_for(task_type: TaskType) -> str:
    """Get the system prompt for a task type."""
    return SYSTEM_PROMPTS.get(task_type, _DEFAULT_SYSTEM_PROMPT)


def classify_status(status_code: Optional[int]) -> bool:
    """Decide whether a failed call may succeed on another provider.

    Rate limits (429), server errors (5xx) and transport failures (no
    status) are retryable. Any other 4xx is a caller-side defect.
    """
    if status_code is None:
        return True
    return status_code == 429 or status_code >= 500


def _parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    if not headers:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ProviderResponse:
    """Result of one successful provider call."""
    content: str
    usage: TokenUsage
    cost: float
    request_id: Optional[str] = None


class Provider(ABC):
    """Base class for text-generation providers.

    Subclasses implement ``complete`` and translate their SDK's exceptions
    into ProviderError through ``status_error`` and ``network_error``.
    """

    name: str = ""
    default_model: str = ""

    def __init__(
        self,
        api_key: str,
        pricing: ProviderPricing,
        model: Optional[str] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT
    ):
        """Initialize provider.

        Args:
            api_key: Provider API key (required)
            pricing: Token rates used to report call cost
            model: Model name (defaults to the provider's default model)
            timeout: Request timeout in seconds (None uses DEFAULT_TIMEOUT)

        Raises:
            ValueError: If the API key is missing/empty
        """
        if not api_key or not api_key.strip():
            raise ValueError(f"{self.name} API key is required")
        self.api_key = api_key
        self.pricing = pricing
        self.model = model or self.default_model
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT

    def is_available(self) -> bool:
        return bool(self.api_key)

    @abstractmethod
    def complete(self, prompt: str, task_type: TaskType, **options: Any) -> ProviderResponse:
        """Generate text for a prompt.

        Raises:
            ProviderError: On any failed attempt, classified as retryable or not
        """

    def response(
        self,
        content: str,
        input_tokens: int,
        output_tokens: int,
        task_type: TaskType,
        request_id: Optional[str] = None
    ) -> ProviderResponse:
        """Build a response with cost computed from this provider's rates."""
        usage = TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens)
        return ProviderResponse(
            content=content,
            usage=usage,
            cost=calculate_cost(self.pricing, task_type, usage),
            request_id=request_id
        )

    def status_error(
        self,
        message: str,
        status_code: int,
        headers: Optional[Mapping[str, str]] = None
    ) -> ProviderError:
        return ProviderError(
            provider=self.name,
            message=message,
            status_code=status_code,
            retryable=classify_status(status_code),
            retry_after=_parse_retry_after(headers)
        )

    def network_error(self, message: str) -> ProviderError:
        return ProviderError(provider=self.name, message=message, retryable=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.model!r})"
