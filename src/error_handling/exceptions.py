"""Pipeline Exceptions

Exceptions are reserved for contract violations at the API boundary and for
durable-store failures. Bad domain data is reported through result objects.
"""

from typing import Any, Dict, Optional

from ..models.score_models import ErrorCode


class ScorePipelineError(Exception):
    """Base exception for score pipeline errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.details:
            parts.append(f"details: {self.details}")
        return " | ".join(parts)


class InvalidParamsError(ScorePipelineError):
    """Raised when an API is called with malformed arguments"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INVALID_PARAMS, details)


class CacheError(ScorePipelineError):
    """Raised when the durable cache store fails"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CACHE_ERROR, details)


class ConfigurationError(ValueError):
    """Raised when configuration values are invalid"""
    pass
