"""Error Handling Package

This package provides typed exceptions, error tracking and retry support for
the score pipeline.
"""

from .exceptions import (
    ScorePipelineError,
    InvalidParamsError,
    CacheError,
    ConfigurationError
)
from .error_manager import (
    ErrorHandler,
    ErrorRecord,
    ErrorContext,
    ErrorSeverity,
    ErrorCategory,
    RetryConfig
)

__all__ = [
    "ScorePipelineError",
    "InvalidParamsError",
    "CacheError",
    "ConfigurationError",
    "ErrorHandler",
    "ErrorRecord",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "RetryConfig"
]
