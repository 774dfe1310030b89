"""
Error taxonomy for routing and reconciliation.

Failures of a single unit of work (one provider attempt, one reference
export) are recovered by the components. Failures of a whole operation
surface as one of the top-level errors below.
"""

from typing import Any, Dict, List, Optional


class AcademicWorkflowError(Exception):
    """Base class for all errors raised by this package."""

    code = "ACADEMIC_WORKFLOW_ERROR"

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for callers that report errors as data."""
        return {"error": str(self), "code": self.code}


class ConfigError(AcademicWorkflowError, ValueError):
    """Raised when configuration is missing or invalid."""

    code = "CONFIG_ERROR"


class ProviderError(AcademicWorkflowError):
    """Raised by a provider when a single generation attempt fails."""

    code = "PROVIDER_ERROR"

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
        retry_after: Optional[float] = None
    ):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "provider": self.provider,
            "status": self.status_code,
            "retryable": self.retryable,
            "retry_after": self.retry_after,
        })
        return data


class ProviderUnavailable(AcademicWorkflowError):
    """Raised when no provider is eligible, before or after failover."""

    code = "PROVIDER_UNAVAILABLE"

    def __init__(self, message: str, attempts: Optional[List[ProviderError]] = None):
        super().__init__(message)
        self.attempts = list(attempts or [])

    @property
    def retry_after(self) -> Optional[float]:
        """Shortest retry-after hint reported by any failed attempt."""
        hints = [a.retry_after for a in self.attempts if a.retry_after is not None]
        return min(hints) if hints else None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["attempts"] = [attempt.to_dict() for attempt in self.attempts]
        data["retry_after"] = self.retry_after
        return data


class BudgetExceeded(ProviderUnavailable):
    """Raised when the monthly budget is the only reason no provider is eligible."""

    code = "BUDGET_EXCEEDED"

    def __init__(self, used: float, limit: float, projected: Optional[float] = None):
        message = f"Monthly budget exceeded. Current usage: ${used:.4f}, Budget: ${limit:.2f}"
        if projected is not None:
            message += f", cheapest projected call: ${projected:.4f}"
        super().__init__(message)
        self.used = used
        self.limit = limit
        self.projected = projected


class ProviderCallFailed(AcademicWorkflowError):
    """Raised when a provider rejects a request for a caller-side reason."""

    code = "PROVIDER_CALL_FAILED"

    def __init__(self, error: ProviderError):
        super().__init__(str(error))
        self.error = error
        self.provider = error.provider
        self.status_code = error.status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"provider": self.provider, "status": self.status_code})
        return data


class RemoteStoreUnreachable(AcademicWorkflowError):
    """Raised when the remote bibliographic store cannot be contacted."""

    code = "REMOTE_STORE_UNREACHABLE"


class RemoteCreateFailed(AcademicWorkflowError):
    """Raised when one reference cannot be created in the remote store."""

    code = "REMOTE_CREATE_FAILED"

    def __init__(self, title: str, reason: str):
        super().__init__(f'Failed to export reference "{title}": {reason}')
        self.title = title
        self.reason = reason
