"""
Custom exception hierarchy for the collectible research backend.

All exceptions inherit from a base ResearchError class so callers can catch
and log application errors in one place.

Exception Hierarchy:
    ResearchError (base)
    ├── ValidationError
    ├── ResourceNotFoundError
    └── ExternalServiceError
        ├── ConfigurationMissingError
        ├── ProviderQuotaExceededError
        ├── ProviderError
        ├── LLMError
        └── ParsingError

Only ParsingError is allowed to escape the research pipeline. The provider
errors are normally captured as `error` / `errors[]` data on responses; the
classes exist so that a failure can be classified once and rendered the same
way everywhere (see `error_kind`).

Usage:
    from exceptions import ParsingError

    raise ParsingError("Model output is not a JSON array", detail={"preview": text[:200]})
"""

from typing import Optional, Dict, Any


class ResearchError(Exception):
    """
    Base exception for all research application errors.

    Attributes:
        message: Human-readable error message
        detail: Optional dict with additional error context
        status_code: Suggested HTTP status code (for API errors)
    """

    error_kind: str = "error"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for JSON serialization."""
        result = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        return result


class ValidationError(ResearchError):
    """
    Raised when request input validation fails.

    Examples:
        raise ValidationError("Either image_url or query is required")
    """

    error_kind = "validation"

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=400)


class ResourceNotFoundError(ResearchError):
    """
    Raised when a referenced seller or record doesn't exist.

    Inside the pipeline a missing seller is a non-match, never an exception;
    this is only raised at the HTTP edge.
    """

    error_kind = "not_found"

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, status_code=404)


class ExternalServiceError(ResearchError):
    """
    Base exception for external service failures (search providers, LLMs).
    """

    error_kind = "provider"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
    ):
        if service_name and detail is None:
            detail = {"service": service_name}
        elif service_name and detail:
            detail["service"] = service_name

        super().__init__(message, detail=detail, status_code=502)


class ConfigurationMissingError(ExternalServiceError):
    """
    Raised when a provider's credentials are absent.

    Checked before any quota is spent.

    Examples:
        raise ConfigurationMissingError("Serper API not configured", service_name="serper")
    """

    error_kind = "not_configured"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
    ):
        super().__init__(message, detail=detail, service_name=service_name)
        self.status_code = 503


class ProviderQuotaExceededError(ExternalServiceError):
    """
    Raised when a provider refuses a call because the quota is used up.

    Distinct from ProviderError: the caller should not retry now.
    """

    error_kind = "quota"

    def __init__(
        self,
        message: str = "Daily API quota exceeded. Try again tomorrow or upgrade your plan.",
        *,
        detail: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
    ):
        super().__init__(message, detail=detail, service_name=service_name)
        self.status_code = 429


class ProviderError(ExternalServiceError):
    """
    Raised on transport failures or non-2xx provider responses.

    Examples:
        raise ProviderError("Serper lens error: 500", service_name="serper_lens")
    """

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
        status: Optional[int] = None,
    ):
        if status is not None:
            detail = dict(detail or {})
            detail["status"] = status
        super().__init__(message, detail=detail, service_name=service_name)
        self.status = status


class LLMError(ExternalServiceError):
    """
    Raised when the generative model (OpenRouter, Gemini) call fails.
    """

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, service_name="llm")


class ParsingError(ExternalServiceError):
    """
    Raised when model output cannot be parsed even after sanitization.

    This is the one research failure that propagates to the caller, since
    unparseable structured output cannot be used safely.
    """

    error_kind = "parsing"

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message, detail=detail, service_name="llm")
