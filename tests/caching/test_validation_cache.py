"""Tests for the two-tier validation cache"""

from unittest.mock import AsyncMock

import pytest

from src.caching.cache_keys import CacheKeyBuilder
from src.caching.cache_store import CacheStore
from src.caching.validation_cache import ValidationCache
from src.config.config_manager import CacheSettings
from src.error_handling.error_manager import ErrorHandler
from src.error_handling.exceptions import CacheError, InvalidParamsError
from src.models.score_models import ErrorCode, RawScore
from src.storage.storage_provider import InMemoryStorageProvider, StorageProvider
from src.validation.score_validator import ScoreValidator, create_score_rules


def _settings(**overrides):
    values = dict(ttl_ms=1000, max_cache_size=3, retry_attempts=3, retry_base_delay=0, retry_max_delay=0)
    values.update(overrides)
    return CacheSettings(**values)


class TestValidationCache:
    """Test validation cache reads and writes"""

    @pytest.fixture(autouse=True)
    def _cache(self, clock):
        self.clock = clock
        self.storage = InMemoryStorageProvider()
        self.cache = ValidationCache(self.storage, config=_settings(), clock=clock)
        self.rules = create_score_rules()
        self.validator = ScoreValidator(rules=self.rules, clock=clock)
        self.score = RawScore(common_test=80, second_test=70)
        self.result = self.validator.validate(self.score)

    @pytest.mark.asyncio
    async def test_get_on_empty_cache(self):
        assert await self.cache.get(self.score, self.rules) is None

    @pytest.mark.asyncio
    async def test_set_then_get(self):
        """Test a stored result is returned with a fresh timestamp"""
        self.clock.advance(10)
        await self.cache.set(self.score, self.rules, self.result)

        cached = await self.cache.get(self.score, self.rules)

        assert cached.is_valid is True
        assert cached.data == self.result.data
        assert cached.metadata.validated_at == self.clock.now
        assert cached.metadata.rules == self.result.metadata.rules
        assert self.cache.size == 1

    @pytest.mark.asyncio
    async def test_mapping_and_model_share_entries(self):
        await self.cache.set({"commonTest": 80, "secondTest": 70}, self.rules, self.result)

        assert await self.cache.get(self.score, self.rules) is not None

    @pytest.mark.asyncio
    async def test_different_rules_do_not_share_entries(self):
        await self.cache.set(self.score, self.rules, self.result)

        assert await self.cache.get(self.score, create_score_rules(max_component=90)) is None

    @pytest.mark.asyncio
    async def test_result_valid_just_before_ttl(self):
        await self.cache.set(self.score, self.rules, self.result)
        self.clock.advance(999)

        assert await self.cache.get(self.score, self.rules) is not None

    @pytest.mark.asyncio
    async def test_result_expires_at_ttl(self):
        """Test a result exactly TTL old is treated as stale"""
        await self.cache.set(self.score, self.rules, self.result)
        self.clock.advance(1000)

        assert await self.cache.get(self.score, self.rules) is None

    @pytest.mark.asyncio
    async def test_memory_tier_expires_at_ttl(self):
        """Test a promoted result still expires by its validation time"""
        await self.cache.set(self.score, self.rules, self.result)
        self.clock.advance(500)
        assert await self.cache.get(self.score, self.rules) is not None

        self.clock.advance(500)
        assert await self.cache.get(self.score, self.rules) is None

    @pytest.mark.asyncio
    async def test_malformed_payload_is_a_miss(self):
        """Test unparseable durable payloads are ignored"""
        key = CacheKeyBuilder.create_key(self.score, self.rules)
        await self.storage.set(key, "not json")

        assert await self.cache.get(self.score, self.rules) is None

    @pytest.mark.asyncio
    async def test_wrong_shape_payload_is_a_miss(self):
        key = CacheKeyBuilder.create_key(self.score, self.rules)
        await self.storage.set(key, '{"is_valid": true}')

        assert await self.cache.get(self.score, self.rules) is None

    @pytest.mark.asyncio
    async def test_set_accepts_result_mapping(self):
        await self.cache.set(self.score, self.rules, self.result.model_dump())

        cached = await self.cache.get(self.score, self.rules)
        assert cached.data == self.result.data

    @pytest.mark.asyncio
    async def test_invalid_params(self):
        """Test malformed arguments raise InvalidParamsError"""
        with pytest.raises(InvalidParamsError) as exc_info:
            await self.cache.get(float("nan"), self.rules)
        assert exc_info.value.code == ErrorCode.INVALID_PARAMS

        with pytest.raises(InvalidParamsError):
            await self.cache.get(self.score, [])

        with pytest.raises(InvalidParamsError):
            await self.cache.get(self.score, None)

        with pytest.raises(InvalidParamsError):
            await self.cache.get({"commonTest": "x"}, self.rules)

        with pytest.raises(InvalidParamsError):
            await self.cache.set(self.score, self.rules, "not a result")

        with pytest.raises(InvalidParamsError):
            await self.cache.set(self.score, self.rules, {"is_valid": True})

    def test_invalid_settings(self):
        with pytest.raises(InvalidParamsError):
            ValidationCache(self.storage, config=_settings(ttl_ms=0))

        with pytest.raises(InvalidParamsError):
            ValidationCache(self.storage, config=_settings(max_cache_size=-1))

    @pytest.mark.asyncio
    async def test_capacity_flushes_whole_cache(self):
        """Test the cache is cleared before a new key beyond capacity is written"""
        for common in (1, 2, 3):
            score = RawScore(common_test=common, second_test=0)
            await self.cache.set(score, self.rules, self.validator.validate(score))
        assert self.cache.size == 3

        await self.cache.set(self.score, self.rules, self.result)

        assert self.cache.size == 1
        assert len(self.storage) == 1
        assert await self.cache.get(RawScore(common_test=1, second_test=0), self.rules) is None
        assert await self.cache.get(self.score, self.rules) is not None

    @pytest.mark.asyncio
    async def test_rewriting_a_key_at_capacity(self):
        scores = [RawScore(common_test=common, second_test=0) for common in (1, 2, 3)]
        for score in scores:
            await self.cache.set(score, self.rules, self.validator.validate(score))

        await self.cache.set(scores[0], self.rules, self.validator.validate(scores[0]))

        assert self.cache.size == 3
        assert len(self.storage) == 3

    @pytest.mark.asyncio
    async def test_write_invalidates_memory_tier(self):
        """Test every write drops the promoted in-memory entries"""
        await self.cache.set(self.score, self.rules, self.result)
        await self.cache.get(self.score, self.rules)
        assert len(self.cache.memory) == 1

        other = RawScore(common_test=10, second_test=10)
        await self.cache.set(other, self.rules, self.validator.validate(other))

        assert len(self.cache.memory) == 0

    def test_injected_store_is_used(self):
        store = CacheStore(clock=self.clock)
        cache = ValidationCache(self.storage, config=_settings(), cache_store=store, clock=self.clock)

        assert cache.memory is store

    @pytest.mark.asyncio
    async def test_metrics_count_both_tiers(self):
        """Test durable hits count as hits and absent keys as misses"""
        await self.cache.set(self.score, self.rules, self.result)

        await self.cache.get(self.score, self.rules)
        await self.cache.get(self.score, self.rules)
        await self.cache.get(RawScore(common_test=1, second_test=1), self.rules)

        metrics = self.cache.get_metrics()
        assert metrics.hits == 2
        assert metrics.misses == 1
        assert metrics.hit_rate == 66.67

    @pytest.mark.asyncio
    async def test_clear(self):
        await self.cache.set(self.score, self.rules, self.result)

        await self.cache.clear()

        assert self.cache.size == 0
        assert await self.cache.get(self.score, self.rules) is None


class TestValidationCacheStorageFailures:
    """Test durable store failures surface as CacheError"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = AsyncMock(spec=StorageProvider)
        self.error_handler = ErrorHandler()
        self.cache = ValidationCache(self.storage, config=_settings(), error_handler=self.error_handler)
        self.rules = create_score_rules()
        self.score = RawScore(common_test=80, second_test=70)
        self.result = ScoreValidator(rules=self.rules).validate(self.score)

    @pytest.mark.asyncio
    async def test_get_failure_after_retries(self):
        """Test a persistently failing read is retried then wrapped"""
        self.storage.get.side_effect = ConnectionError("storage down")

        with pytest.raises(CacheError) as exc_info:
            await self.cache.get(self.score, self.rules)

        assert exc_info.value.code == ErrorCode.CACHE_ERROR
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert self.storage.get.await_count == 3
        assert self.error_handler.get_error_statistics()["total_errors"] == 3

    @pytest.mark.asyncio
    async def test_transient_get_failure_recovers(self):
        self.storage.get.side_effect = [ConnectionError("blip"), None]

        assert await self.cache.get(self.score, self.rules) is None
        assert self.storage.get.await_count == 2

    @pytest.mark.asyncio
    async def test_set_failure(self):
        self.storage.set.side_effect = TimeoutError("slow")

        with pytest.raises(CacheError):
            await self.cache.set(self.score, self.rules, self.result)

        assert self.cache.size == 0

    @pytest.mark.asyncio
    async def test_clear_failure(self):
        self.storage.flush_all.side_effect = ConnectionError("storage down")

        with pytest.raises(CacheError):
            await self.cache.clear()
