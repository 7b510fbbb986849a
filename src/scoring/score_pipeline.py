"""Score Pipeline

Validates every subject (through the validation cache when possible) and
aggregates the valid ones into chart data.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ..error_handling.error_manager import ErrorCategory, ErrorContext, ErrorHandler, ErrorSeverity
from ..error_handling.exceptions import CacheError
from ..models.score_models import (
    AggregationResult,
    ErrorCode,
    RawScore,
    ScoreError,
    Severity,
    ValidationResult
)
from .chart_transform import ScoreAggregator

if TYPE_CHECKING:
    from ..caching.validation_cache import ValidationCache
    from ..validation.score_validator import ScoreValidator

logger = logging.getLogger(__name__)

_KNOWN_CODES = {code.value for code in ErrorCode}


def _issue_code(code: str) -> ErrorCode:
    return ErrorCode(code) if code in _KNOWN_CODES else ErrorCode.INVALID_SCORE


class ScorePipeline:
    """Validation, caching and aggregation for a batch of subjects"""

    def __init__(
        self,
        validator: "ScoreValidator",
        aggregator: Optional[ScoreAggregator] = None,
        cache: Optional["ValidationCache"] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        self.validator = validator
        self.aggregator = aggregator or ScoreAggregator()
        self.cache = cache
        self.error_handler = error_handler or ErrorHandler()

        self.stats = {
            "subjects_processed": 0,
            "cache_hits": 0,
            "cache_failures": 0,
            "invalid_subjects": 0
        }

    async def process(self, subjects: Mapping[str, Any]) -> AggregationResult:
        """Validate and aggregate a batch of subjects

        Args:
            subjects: Subject name to RawScore, score mapping or None

        Returns:
            AggregationResult for the valid subjects plus the validation
            errors of the invalid ones
        """
        valid: Dict[str, Any] = {}
        errors: List[ScoreError] = []

        for subject_name, score in subjects.items():
            self.stats["subjects_processed"] += 1

            # Missing scores are reported by the aggregator
            if score is None:
                valid[subject_name] = None
                continue

            result = await self.validate(subject_name, score)
            if result.is_valid:
                valid[subject_name] = score
                continue

            self.stats["invalid_subjects"] += 1
            errors.extend(
                ScoreError(subject_name=subject_name, code=_issue_code(issue.code), message=issue.message)
                for issue in result.errors
                if issue.severity == Severity.ERROR
            )

        aggregated = self.aggregator.aggregate(valid)

        logger.info(
            f"Processed {len(subjects)} subjects: {len(valid)} aggregated, "
            f"{len(errors) + len(aggregated.errors)} errors"
        )

        return aggregated.model_copy(update={"errors": errors + aggregated.errors})

    async def validate(self, subject_name: str, score: Any) -> ValidationResult:
        """Validate one subject, reading and writing the cache around it"""
        raw, format_issue = self.validator.check_structure(score)
        if format_issue is not None or self.cache is None or not self.validator.rules:
            return self.validator.validate(score)

        cached = await self._cache_get(subject_name, raw)
        if cached is not None:
            self.stats["cache_hits"] += 1
            return cached

        result = self.validator.validate(raw)
        await self._cache_set(subject_name, raw, result)
        return result

    async def _cache_get(self, subject_name: str, raw: RawScore) -> Optional[ValidationResult]:
        try:
            return await self.cache.get(raw, self.validator.rules)
        except CacheError as e:
            self._record_cache_failure(e, "get", subject_name)
            return None

    async def _cache_set(self, subject_name: str, raw: RawScore, result: ValidationResult) -> None:
        try:
            await self.cache.set(raw, self.validator.rules, result)
        except CacheError as e:
            self._record_cache_failure(e, "set", subject_name)

    def _record_cache_failure(self, error: CacheError, operation: str, subject_name: str) -> None:
        self.stats["cache_failures"] += 1
        self.error_handler.handle_error(
            error,
            ErrorContext(
                component="ScorePipeline",
                operation=f"cache_{operation}",
                details={"subject": subject_name}
            ),
            ErrorCategory.CACHE,
            ErrorSeverity.MEDIUM
        )
        logger.warning(f"Continuing without cache for {subject_name}")

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)
