"""Score Validator

Validates raw subject scores against the default business rules, derives the
score summary and memoizes results per (score, rule set).
"""

import logging
import math
import numbers
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from ..caching.cache_keys import CacheKeyBuilder
from ..caching.cache_store import CacheMetrics, CacheStore, Clock, now_ms
from ..models.score_models import (
    ErrorCode,
    RawScore,
    ScoreSummary,
    Severity,
    ValidationIssue,
    ValidationResult
)
from ..scoring.score_calculator import is_percentage_in_range, percentage
from .rule_engine import RuleEngine, ValidationRule

logger = logging.getLogger(__name__)

DEFAULT_MAX_COMPONENT = 100.0
DEFAULT_MAX_TOTAL = 1000.0

_FIELD_ALIASES = {
    "common_test": ("commonTest", "common_test"),
    "second_test": ("secondTest", "second_test"),
}


def create_score_rules(
    max_component: float = DEFAULT_MAX_COMPONENT,
    max_total: float = DEFAULT_MAX_TOTAL
) -> List[ValidationRule[RawScore]]:
    """Default rules for a subject score"""
    return [
        ValidationRule(
            code=ErrorCode.INVALID_SCORE.value,
            field="commonTest",
            condition=lambda score: 0 <= score.common_test <= max_component,
            message=f"Common test score must be between 0 and {max_component:g}"
        ),
        ValidationRule(
            code=ErrorCode.INVALID_SCORE.value,
            field="secondTest",
            condition=lambda score: 0 <= score.second_test <= max_component,
            message=f"Secondary test score must be between 0 and {max_component:g}"
        ),
        ValidationRule(
            code=ErrorCode.MAX_SCORE_EXCEEDED.value,
            field="total",
            condition=lambda score: 0 <= score.common_test + score.second_test <= max_total,
            message=f"Total score must be between 0 and {max_total:g}"
        ),
        ValidationRule(
            code=ErrorCode.MISSING_SCORE.value,
            field="total",
            condition=lambda score: score.common_test > 0 or score.second_test > 0,
            message="No score recorded for either exam component",
            severity=Severity.WARNING
        ),
    ]


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


class ScoreValidator:
    """Score validation with memoized results

    Features:
    - Structural check before any business rule runs
    - Every rule evaluated, violations collected
    - Percentage of the maximum total with range checking
    - Results memoized in a CacheStore
    """

    def __init__(
        self,
        rules: Optional[Sequence[ValidationRule[RawScore]]] = None,
        cache_store: Optional[CacheStore[ValidationResult]] = None,
        max_component: float = DEFAULT_MAX_COMPONENT,
        max_total: float = DEFAULT_MAX_TOTAL,
        percentage_decimals: int = 2,
        clock: Optional[Clock] = None
    ):
        """Initialize score validator

        Args:
            rules: Rule list, defaults to create_score_rules(max_component, max_total)
            cache_store: Store used to memoize results
            max_component: Maximum score of a single exam component
            max_total: Maximum aggregate score, the base of the percentage
            percentage_decimals: Decimal places of the percentage
            clock: Time source returning epoch milliseconds
        """
        self._clock = clock or now_ms
        self.max_total = max_total
        self.percentage_decimals = percentage_decimals
        self.engine: RuleEngine[RawScore] = RuleEngine(
            rules if rules is not None else create_score_rules(max_component, max_total)
        )
        if cache_store is None:
            cache_store = CacheStore(clock=self._clock)
        self.cache_store: CacheStore[ValidationResult] = cache_store

        logger.info(f"Initialized score validator with {len(self.engine)} rules")

    @property
    def rules(self) -> Tuple[ValidationRule[RawScore], ...]:
        return self.engine.rules

    def validate(self, score: Any) -> ValidationResult:
        """Validate one subject score

        Args:
            score: RawScore or mapping with commonTest and secondTest

        Returns:
            ValidationResult whose data is the ScoreSummary of a well-formed score
        """
        raw, format_issue = self.check_structure(score)
        if format_issue is not None:
            return self.engine.build_result([format_issue], self._clock())

        key = self._memo_key(raw)
        cached = self.cache_store.get(key)
        if cached.cache_hit:
            return cached.value

        issues = self.engine.evaluate(raw)
        summary, percentage_issue = self._summarize(raw)
        if percentage_issue is not None:
            issues.append(percentage_issue)

        result = self.engine.build_result(issues, self._clock(), summary)

        stored = self.cache_store.set(key, result)
        if not stored.success:
            logger.warning(f"Validation result for {key} was not memoized: {stored.error}")

        return result

    def is_valid_score(self, score: Any) -> bool:
        return self.validate(score).is_valid

    def calculate_total(self, score: Any) -> float:
        """Sum of both components, 0 for a score that fails validation"""
        result = self.validate(score)
        if not result.is_valid or result.data is None:
            return 0.0
        return result.data.total

    def clear_cache(self, score: Any = None) -> None:
        """Forget one memoized score, or all of them"""
        if score is None:
            self.cache_store.clear()
            return

        raw, format_issue = self.check_structure(score)
        if format_issue is None:
            self.cache_store.delete(self._memo_key(raw))

    def get_metrics(self) -> CacheMetrics:
        return self.cache_store.get_metrics()

    def _memo_key(self, raw: RawScore) -> str:
        # The summary depends on these as well as on the rules
        params = {"max_total": self.max_total, "percentage_decimals": self.percentage_decimals}
        return CacheKeyBuilder.score_key(raw, self.engine.rules, params)

    def check_structure(self, score: Any) -> Tuple[Optional[RawScore], Optional[ValidationIssue]]:
        """Check the structure of the input before any rule runs"""
        if isinstance(score, RawScore):
            values = {"common_test": score.common_test, "second_test": score.second_test}
        elif isinstance(score, Mapping):
            values = {}
            for name, aliases in _FIELD_ALIASES.items():
                found = [score[alias] for alias in aliases if alias in score]
                if not found or not _is_number(found[0]):
                    return None, ValidationIssue(
                        code=ErrorCode.INVALID_DATA_FORMAT.value,
                        field=aliases[0],
                        message=f"{aliases[0]} must be a number",
                        severity=Severity.ERROR
                    )
                values[name] = found[0]
        else:
            return None, ValidationIssue(
                code=ErrorCode.INVALID_DATA_FORMAT.value,
                field="score",
                message=f"Score must be an object with commonTest and secondTest, got {type(score).__name__}",
                severity=Severity.ERROR
            )

        for name, value in values.items():
            if not math.isfinite(value):
                return None, ValidationIssue(
                    code=ErrorCode.INVALID_NUMBER.value,
                    field=_FIELD_ALIASES[name][0],
                    message=f"{_FIELD_ALIASES[name][0]} must be a finite number",
                    severity=Severity.ERROR
                )

        return RawScore(common_test=values["common_test"], second_test=values["second_test"]), None

    def _summarize(self, raw: RawScore) -> Tuple[ScoreSummary, Optional[ValidationIssue]]:
        total = raw.common_test + raw.second_test
        share = percentage(total, self.max_total, self.percentage_decimals)
        issue = None

        if not is_percentage_in_range(share):
            issue = ValidationIssue(
                code=ErrorCode.INVALID_PERCENTAGE.value,
                field="percentage",
                message=f"Percentage {share} is outside the range 0-100",
                severity=Severity.ERROR
            )
            share = 0.0

        return ScoreSummary(
            common_test=raw.common_test,
            second_test=raw.second_test,
            total=total,
            max_total=self.max_total,
            percentage=share
        ), issue
