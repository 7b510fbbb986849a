"""Tests for the score validator"""

import math

import pytest

from src.caching.cache_store import CacheStore
from src.models.score_models import RawScore, Severity
from src.validation.score_validator import ScoreValidator, create_score_rules


class TestDefaultRules:
    """Test the default rule set"""

    def test_rule_codes(self):
        rules = create_score_rules()

        assert [rule.code for rule in rules] == [
            "INVALID_SCORE", "INVALID_SCORE", "MAX_SCORE_EXCEEDED", "MISSING_SCORE"
        ]

    def test_limits_appear_in_messages(self):
        rules = create_score_rules(max_component=200, max_total=500)

        assert "200" in rules[0].message
        assert "500" in rules[2].message


class TestScoreValidator:
    """Test score validation"""

    @pytest.fixture(autouse=True)
    def _validator(self, clock):
        self.clock = clock
        self.validator = ScoreValidator(clock=clock)

    def test_valid_score(self):
        """Test a well-formed score inside every limit"""
        result = self.validator.validate({"commonTest": 80, "secondTest": 70})

        assert result.is_valid is True
        assert result.errors == []
        assert result.data.total == 150
        assert result.data.max_total == 1000
        assert result.data.percentage == 15.0
        assert result.metadata.validated_at == self.clock.now
        assert result.metadata.rules == self.validator.engine.rule_codes

    def test_accepts_raw_score_and_field_names(self):
        result = self.validator.validate(RawScore(common_test=80, second_test=70))
        assert result.is_valid

        result = self.validator.validate({"common_test": 10, "second_test": 5})
        assert result.is_valid
        assert result.data.total == 15

    def test_component_out_of_range(self):
        """Test a component above the per-component maximum"""
        result = self.validator.validate({"commonTest": 120, "secondTest": 50})

        assert result.is_valid is False
        assert result.error_codes() == ["INVALID_SCORE"]
        assert result.errors[0].field == "commonTest"

    def test_every_violation_reported(self):
        """Test both components failing are both reported"""
        result = self.validator.validate({"commonTest": -1, "secondTest": 101})

        assert result.error_codes() == ["INVALID_SCORE", "INVALID_SCORE"]
        assert [issue.field for issue in result.errors] == ["commonTest", "secondTest"]

    def test_total_exceeding_maximum(self):
        """Test the total rule and the percentage range check"""
        validator = ScoreValidator(max_component=600, max_total=1000, clock=self.clock)

        result = validator.validate({"commonTest": 600, "secondTest": 500})

        assert result.is_valid is False
        assert result.error_codes() == ["MAX_SCORE_EXCEEDED", "INVALID_PERCENTAGE"]
        assert result.data.percentage == 0.0
        assert result.data.total == 1100

    def test_both_components_zero_is_warning(self):
        """Test that an empty score is valid with a warning"""
        result = self.validator.validate({"commonTest": 0, "secondTest": 0})

        assert result.is_valid is True
        assert result.error_codes() == ["MISSING_SCORE"]
        assert result.errors[0].severity == Severity.WARNING

    def test_non_numeric_component(self):
        """Test structural failure short-circuits the business rules"""
        result = self.validator.validate({"commonTest": "80", "secondTest": 70})

        assert result.is_valid is False
        assert result.data is None
        assert result.error_codes() == ["INVALID_DATA_FORMAT"]
        assert result.errors[0].field == "commonTest"

    def test_boolean_component_rejected(self):
        result = self.validator.validate({"commonTest": 80, "secondTest": True})
        assert result.error_codes() == ["INVALID_DATA_FORMAT"]

    def test_missing_component(self):
        result = self.validator.validate({"commonTest": 80})

        assert result.error_codes() == ["INVALID_DATA_FORMAT"]
        assert result.errors[0].field == "secondTest"

    def test_non_finite_component(self):
        result = self.validator.validate({"commonTest": math.nan, "secondTest": 10})

        assert result.error_codes() == ["INVALID_NUMBER"]
        assert result.data is None

    def test_non_mapping_input(self):
        result = self.validator.validate([80, 70])

        assert result.error_codes() == ["INVALID_DATA_FORMAT"]
        assert result.errors[0].field == "score"

    def test_results_are_memoized(self):
        """Test a repeated score is served from the cache store"""
        first = self.validator.validate({"commonTest": 80, "secondTest": 70})
        second = self.validator.validate(RawScore(common_test=80, second_test=70))

        assert second is first
        metrics = self.validator.get_metrics()
        assert metrics.hits == 1
        assert metrics.misses == 1

    def test_memoized_result_expires(self):
        """Test memoized results follow the store TTL"""
        validator = ScoreValidator(cache_store=CacheStore(ttl_ms=1000, clock=self.clock), clock=self.clock)
        first = validator.validate({"commonTest": 80, "secondTest": 70})

        self.clock.advance(1001)
        second = validator.validate({"commonTest": 80, "secondTest": 70})

        assert second is not first
        assert second.metadata.validated_at == self.clock.now

    def test_injected_store_is_used(self):
        store = CacheStore(clock=self.clock)
        validator = ScoreValidator(cache_store=store, clock=self.clock)

        validator.validate({"commonTest": 80, "secondTest": 70})

        assert validator.cache_store is store
        assert len(store) == 1

    def test_shared_store_separates_summary_settings(self):
        """Test validators with different maximum totals do not share summaries"""
        store = CacheStore(clock=self.clock)
        rules = create_score_rules()
        narrow = ScoreValidator(rules=rules, cache_store=store, max_total=200, clock=self.clock)
        wide = ScoreValidator(rules=rules, cache_store=store, max_total=1000, clock=self.clock)

        narrow_result = narrow.validate({"commonTest": 50, "secondTest": 50})
        wide_result = wide.validate({"commonTest": 50, "secondTest": 50})

        assert narrow_result.data.percentage == 50.0
        assert wide_result.data.percentage == 10.0
        assert wide_result.data.max_total == 1000.0
        assert len(store) == 2

    def test_clear_cache_for_one_score(self):
        first = self.validator.validate({"commonTest": 80, "secondTest": 70})
        other = self.validator.validate({"commonTest": 10, "secondTest": 10})

        self.validator.clear_cache({"commonTest": 80, "secondTest": 70})

        assert self.validator.validate({"commonTest": 80, "secondTest": 70}) is not first
        assert self.validator.validate({"commonTest": 10, "secondTest": 10}) is other

    def test_clear_cache_entirely(self):
        first = self.validator.validate({"commonTest": 80, "secondTest": 70})

        self.validator.clear_cache()

        assert self.validator.validate({"commonTest": 80, "secondTest": 70}) is not first

    def test_calculate_total(self):
        assert self.validator.calculate_total({"commonTest": 80, "secondTest": 70}) == 150
        assert self.validator.calculate_total({"commonTest": 120, "secondTest": 70}) == 0.0

    def test_is_valid_score(self):
        assert self.validator.is_valid_score({"commonTest": 80, "secondTest": 70})
        assert not self.validator.is_valid_score({"commonTest": "x", "secondTest": 70})
