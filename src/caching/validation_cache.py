"""
Validation Cache

Two-tier cache for validation results: an in-memory CacheStore in front of an
injected durable StorageProvider. Durable payloads are JSON and are re-checked
for shape and age before they are trusted, even when the provider has not
expired them yet.
"""

import logging
import math
from dataclasses import replace
from typing import Any, Awaitable, Callable, Mapping, Optional, Set, TypeVar

from ..config.config_manager import CacheSettings
from ..error_handling.error_manager import ErrorCategory, ErrorContext, ErrorHandler, RetryConfig
from ..error_handling.exceptions import CacheError, InvalidParamsError
from ..models.score_models import RawScore, ValidationMetadata, ValidationResult
from ..storage.storage_provider import StorageProvider
from .cache_keys import CacheKeyBuilder, RulesInput, ScoreInput
from .cache_store import CacheMetrics, CacheStore, Clock, now_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ValidationCache:
    """Cache of ValidationResults keyed by (score, rule set)

    Capacity is bounded by the number of distinct resident keys. Reaching it
    flushes the whole cache before the next new key is written. Every
    successful write invalidates the in-memory tier under the cache tag so
    readers sharing the namespace go back to the durable store.
    """

    def __init__(
        self,
        storage: StorageProvider,
        config: Optional[CacheSettings] = None,
        cache_store: Optional[CacheStore[ValidationResult]] = None,
        error_handler: Optional[ErrorHandler] = None,
        clock: Optional[Clock] = None
    ):
        self.config = config or CacheSettings()

        for name in ("ttl_ms", "max_cache_size"):
            value = getattr(self.config, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                raise InvalidParamsError(f"{name} must be a positive number", {name: value})

        self.storage = storage
        self.ttl_ms = self.config.ttl_ms
        self.max_cache_size = int(self.config.max_cache_size)
        self.cache_tag = self.config.cache_tag
        self._clock = clock or now_ms

        if cache_store is None:
            cache_store = CacheStore(
                ttl_ms=self.ttl_ms,
                max_entries=self.max_cache_size,
                cleanup_interval_ms=self.config.cleanup_interval_ms,
                clock=self._clock
            )
        self.memory: CacheStore[ValidationResult] = cache_store
        self.error_handler = error_handler or ErrorHandler()
        self.retry_config = RetryConfig(
            max_attempts=self.config.retry_attempts,
            base_delay=self.config.retry_base_delay,
            max_delay=self.config.retry_max_delay
        )

        self._resident_keys: Set[str] = set()
        # memory and durable tiers together
        self._hits = 0
        self._misses = 0

    @property
    def size(self) -> int:
        """Number of distinct keys written since the last flush"""
        return len(self._resident_keys)

    async def start(self) -> None:
        await self.memory.start()

    def dispose(self) -> None:
        self.memory.dispose()

    async def get(self, value: ScoreInput, rules: RulesInput) -> Optional[ValidationResult]:
        """Fetch a cached result

        Raises:
            InvalidParamsError: If the value is not finite or rules are missing
            CacheError: If the durable store fails
        """
        self._check_params(value, rules)
        key = CacheKeyBuilder.create_key(value, rules)

        cached = self.memory.get(key)
        if cached.cache_hit and not self._is_expired(cached.value):
            self._hits += 1
            return cached.value

        result = await self._load(key)
        if result is None:
            self._misses += 1
            return None

        self._hits += 1
        self.memory.set(key, result, tags={self.cache_tag})
        return result

    async def _load(self, key: str) -> Optional[ValidationResult]:
        payload = await self._storage_call(lambda: self.storage.get(key), "get", key)
        if not payload:
            return None

        result = self._parse(payload, key)
        if result is not None and self._is_expired(result):
            logger.debug(f"Discarding stale validation result for {key}")
            self._resident_keys.discard(key)
            return None
        return result

    async def set(self, value: ScoreInput, rules: RulesInput, result: Any) -> None:
        """Persist a result under the (value, rules) key

        Raises:
            InvalidParamsError: If the arguments or the result shape are invalid
            CacheError: If the durable store fails
        """
        self._check_params(value, rules)
        result = self._check_result(result)
        key = CacheKeyBuilder.create_key(value, rules)

        if key not in self._resident_keys and len(self._resident_keys) >= self.max_cache_size:
            logger.info(f"Validation cache reached capacity ({self.max_cache_size}), flushing")
            await self.clear()

        stamped = result.model_copy(update={
            "metadata": ValidationMetadata(validated_at=self._clock(), rules=list(result.metadata.rules))
        })

        try:
            payload = stamped.model_dump_json()
        except ValueError as e:
            raise CacheError(f"Could not serialize validation result for {key}", {"key": key}) from e

        await self._storage_call(lambda: self.storage.set(key, payload, ttl=self.ttl_ms), "set", key)

        self._resident_keys.add(key)
        self.invalidate_tag(self.cache_tag)

    async def clear(self) -> None:
        """Flush the durable store and the in-memory tier

        Raises:
            CacheError: If the durable store cannot be flushed
        """
        await self._storage_call(self.storage.flush_all, "flush_all", "*")
        self._resident_keys.clear()
        self.memory.invalidate_tag(self.cache_tag)
        logger.info("Validation cache cleared")

    def invalidate_tag(self, tag: str) -> int:
        """Drop in-memory entries under `tag`; the durable store is untouched"""
        return self.memory.invalidate_tag(tag)

    def get_metrics(self) -> CacheMetrics:
        """Memory tier timings with hits and misses counted across both tiers"""
        return replace(self.memory.get_metrics(), hits=self._hits, misses=self._misses)

    def _is_expired(self, result: ValidationResult) -> bool:
        return self._clock() - result.metadata.validated_at >= self.ttl_ms

    def _check_params(self, value: Any, rules: Any) -> None:
        if isinstance(value, bool):
            raise InvalidParamsError("Score value must be a number", {"value": value})

        if isinstance(value, (int, float)):
            components = [value]
        elif isinstance(value, (RawScore, Mapping)):
            try:
                raw = value if isinstance(value, RawScore) else RawScore.model_validate(value)
            except ValueError as e:
                raise InvalidParamsError(f"Malformed score: {e}", {"value": str(value)}) from e
            components = [raw.common_test, raw.second_test]
        else:
            raise InvalidParamsError(f"Unsupported score type {type(value).__name__}")

        if not all(math.isfinite(component) for component in components):
            raise InvalidParamsError("Score value must be finite", {"value": str(value)})

        if not rules:
            raise InvalidParamsError("Validation rules are required")

    def _check_result(self, result: Any) -> ValidationResult:
        if isinstance(result, ValidationResult):
            return result
        if isinstance(result, Mapping):
            try:
                return ValidationResult.model_validate(result)
            except ValueError as e:
                raise InvalidParamsError(f"Malformed validation result: {e}") from e
        raise InvalidParamsError(f"Unsupported validation result type {type(result).__name__}")

    def _parse(self, payload: Any, key: str) -> Optional[ValidationResult]:
        try:
            return ValidationResult.model_validate_json(payload)
        except ValueError as e:
            logger.warning(f"Discarding malformed cache payload for {key}: {e}")
            return None

    async def _storage_call(self, operation: Callable[[], Awaitable[T]], name: str, key: str) -> T:
        context = ErrorContext(component="ValidationCache", operation=name, details={"key": key})
        try:
            return await self.error_handler.run_with_retry(
                operation, context, ErrorCategory.STORAGE, self.retry_config
            )
        except Exception as e:
            raise CacheError(f"Cache {name} failed for key {key}: {e}", {"key": key, "operation": name}) from e
