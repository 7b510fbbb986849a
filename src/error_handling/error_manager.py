"""Error Handling Manager

Tracks failures raised inside the score pipeline, logs them at a level that
matches their severity and retries async storage calls. Handlers are created
by the owning application and passed to the components that need them.
"""

import asyncio
import hashlib
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from .exceptions import ScorePipelineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _wall_clock_ms() -> float:
    return time.time() * 1000


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class ErrorCategory(Enum):
    """Pipeline stage an error came from"""
    VALIDATION = "validation"
    CACHE = "cache"
    STORAGE = "storage"
    TRANSFORM = "transform"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Where an error happened"""
    component: str
    operation: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def location(self) -> str:
        return f"{self.component}.{self.operation}"


@dataclass
class ErrorRecord:
    """One distinct failure and how often it was seen"""
    error_id: str
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    context: ErrorContext
    exception_type: str
    code: Optional[str] = None
    first_seen: float = 0.0
    last_seen: float = 0.0
    occurrence_count: int = 1
    resolved: bool = False
    resolution_notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_id": self.error_id,
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "location": self.context.location,
            "occurrence_count": self.occurrence_count,
            "last_seen": self.last_seen,
            "resolved": self.resolved,
        }


class RetryConfig:
    """Backoff settings for durable storage calls"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.1,
        max_delay: float = 5.0,
        exponential_backoff: bool = True,
        jitter: bool = False
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_backoff = exponential_backoff
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the failed attempt `attempt` (0-based)"""
        delay = self.base_delay * (2 ** attempt) if self.exponential_backoff else self.base_delay
        delay = min(delay, self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


class ErrorHandler:
    """Error tracking shared by the cache, storage and pipeline components"""

    def __init__(self, config: Optional[Dict[str, Any]] = None, clock: Optional[Callable[[], float]] = None):
        """Initialize error handler

        Args:
            config: Optional settings, `max_error_records` and `error_retention_ms`
            clock: Epoch-millisecond time source
        """
        self.config = config or {}
        self.clock = clock or _wall_clock_ms
        self.max_error_records = self.config.get("max_error_records", 1000)
        self.error_retention_ms = self.config.get("error_retention_ms", 24 * 60 * 60 * 1000)

        self.error_records: Dict[str, ErrorRecord] = {}
        self.error_callbacks: Dict[ErrorCategory, List[Callable[[ErrorRecord], None]]] = {}
        # category -> severity -> count
        self.error_counters: Dict[str, Dict[str, int]] = {}

    def register_error_callback(self, category: ErrorCategory, callback: Callable[[ErrorRecord], None]):
        self.error_callbacks.setdefault(category, []).append(callback)

    def handle_error(
        self,
        error: Exception,
        context: ErrorContext,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        should_raise: bool = False
    ) -> ErrorRecord:
        """Record and log an error, re-raising it when `should_raise` is set

        Repeats of the same exception type and message at the same location
        share one record.
        """
        now = self.clock()
        error_id = self._error_id(error, context)

        record = self.error_records.get(error_id)
        if record is not None:
            record.occurrence_count += 1
            record.last_seen = now
            record.severity = severity
        else:
            code = error.code.value if isinstance(error, ScorePipelineError) else None
            record = ErrorRecord(
                error_id=error_id,
                category=category,
                severity=severity,
                message=str(error),
                context=context,
                exception_type=type(error).__name__,
                code=code,
                first_seen=now,
                last_seen=now
            )
            self.error_records[error_id] = record

        self._log(record, error)

        counters = self.error_counters.setdefault(category.value, {})
        counters[severity.value] = counters.get(severity.value, 0) + 1

        for callback in self.error_callbacks.get(category, []):
            try:
                callback(record)
            except Exception as e:
                logger.error(f"Error callback for {category.value} failed: {e}")

        self._prune(now)

        if should_raise:
            raise error

        return record

    async def run_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        context: ErrorContext,
        category: ErrorCategory,
        retry_config: Optional[RetryConfig] = None,
        retryable_exceptions: Tuple[Type[BaseException], ...] = (Exception,)
    ) -> T:
        """Await `operation` until it succeeds or the attempts run out

        Failed attempts are recorded as LOW, the final one as HIGH, after
        which its exception propagates.
        """
        config = retry_config or RetryConfig()
        last_attempt = config.max_attempts - 1

        for attempt in range(config.max_attempts):
            try:
                return await operation()
            except retryable_exceptions as e:
                context.details.update(attempt=attempt + 1, max_attempts=config.max_attempts)
                if attempt == last_attempt:
                    self.handle_error(e, context, category, ErrorSeverity.HIGH, should_raise=True)

                self.handle_error(e, context, category, ErrorSeverity.LOW)
                delay = config.delay_for(attempt)
                logger.debug(f"Retrying {context.location} in {delay:.2f}s")
                await asyncio.sleep(delay)

        raise RuntimeError(f"{context.location} was never attempted")

    def _error_id(self, error: Exception, context: ErrorContext) -> str:
        signature = f"{type(error).__name__}|{error}|{context.location}"
        return "err_" + hashlib.sha1(signature.encode("utf-8")).hexdigest()[:8]

    def _log(self, record: ErrorRecord, error: Exception):
        message = f"[{record.error_id}] {record.category.value}: {record.message} in {record.context.location}"
        if record.occurrence_count > 1:
            message += f" (x{record.occurrence_count})"
        if record.context.details:
            message += f" {record.context.details}"

        logger.log(
            _LOG_LEVELS[record.severity],
            message,
            exc_info=error if logger.isEnabledFor(logging.DEBUG) else None
        )

    def _prune(self, now: float):
        """Drop expired records, then the least recently seen past the limit"""
        if len(self.error_records) <= self.max_error_records:
            return

        cutoff = now - self.error_retention_ms
        survivors = sorted(
            (record for record in self.error_records.values() if record.last_seen >= cutoff),
            key=lambda record: record.last_seen,
            reverse=True
        )[:self.max_error_records]
        self.error_records = {record.error_id: record for record in survivors}

        logger.debug(f"Pruned error records to {len(self.error_records)}")

    def get_error_statistics(self) -> Dict[str, Any]:
        """Totals per category and severity plus the ten most recent errors"""
        recent = sorted(self.error_records.values(), key=lambda record: record.last_seen, reverse=True)

        return {
            "total_errors": sum(sum(counts.values()) for counts in self.error_counters.values()),
            "unique_errors": len(self.error_records),
            "unresolved_errors": sum(1 for record in self.error_records.values() if not record.resolved),
            "error_by_category": {category: dict(counts) for category, counts in self.error_counters.items()},
            "recent_errors": [record.to_dict() for record in recent[:10]]
        }

    def get_error_record(self, error_id: str) -> Optional[ErrorRecord]:
        return self.error_records.get(error_id)

    def mark_error_resolved(self, error_id: str, resolution_notes: str = "") -> bool:
        record = self.error_records.get(error_id)
        if record is None:
            return False

        record.resolved = True
        record.resolution_notes = resolution_notes
        logger.info(f"Error {error_id} resolved: {resolution_notes}")
        return True
