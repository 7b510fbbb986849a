"""Chart Data Transform

Builds pie chart entries from extracted score records. Domain problems never
raise: each entry comes back with the error that was detected, if any, and a
percentage of 0 whenever it could not be computed.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union

from ..models.score_models import (
    AggregationResult,
    DetailedPieData,
    ErrorCode,
    ExamComponent,
    PieData,
    ScoreError,
    ScoreRecord
)
from .score_calculator import (
    DEFAULT_DECIMALS,
    calculate_category_total,
    calculate_total,
    is_percentage_in_range,
    percentage
)
from .score_extractor import SUBJECT_CATEGORIES, extract_scores, get_subject_category

logger = logging.getLogger(__name__)


class TransformOutcome(NamedTuple):
    data: Union[PieData, DetailedPieData]
    error: Optional[ScoreError] = None


def _checked_percentage(name: str, value: float, total: float, decimals: int):
    if not (math.isfinite(value) and math.isfinite(total)):
        return 0.0, ScoreError(
            subject_name=name,
            code=ErrorCode.INVALID_PERCENTAGE,
            message=f"Cannot compute a percentage of {value:g} out of {total:g} for {name}"
        )
    if total <= 0:
        return 0.0, ScoreError(
            subject_name=name,
            code=ErrorCode.TOTAL_EXCEEDED,
            message=f"Total score must be positive for {name}, got {total:g}"
        )
    if value > total:
        return 0.0, ScoreError(
            subject_name=name,
            code=ErrorCode.TOTAL_EXCEEDED,
            message=f"Score {value:g} of {name} exceeds the total {total:g}"
        )

    share = percentage(value, total, decimals)
    if not is_percentage_in_range(share) or value < 0:
        return 0.0, ScoreError(
            subject_name=name,
            code=ErrorCode.INVALID_PERCENTAGE,
            message=f"Percentage {share:g} of {name} is outside the range 0-100"
        )
    return share, None


def create_detailed_pie_data(
    subject_name: str,
    value: float,
    total: float,
    test_type: ExamComponent,
    category: Optional[str] = None,
    decimals: int = DEFAULT_DECIMALS
) -> TransformOutcome:
    """Chart entry for one subject and exam component"""
    share, error = _checked_percentage(subject_name, value, total, decimals)

    if category is None:
        category = get_subject_category(subject_name)

    return TransformOutcome(
        DetailedPieData(
            name=subject_name,
            value=value,
            percentage=share,
            category=category,
            display_name=f"{subject_name} ({test_type.label})",
            test_type=test_type,
            test_type_id=test_type.type_id
        ),
        error
    )


def create_outer_pie_data(
    category: str,
    category_total: float,
    total: float,
    decimals: int = DEFAULT_DECIMALS
) -> TransformOutcome:
    """Chart entry for one category"""
    share, error = _checked_percentage(category, category_total, total, decimals)
    return TransformOutcome(PieData(name=category, value=category_total, percentage=share), error)


class ScoreAggregator:
    """Aggregates a batch of subjects into detailed and per-category chart data"""

    def __init__(self, percentage_decimals: int = DEFAULT_DECIMALS):
        self.percentage_decimals = percentage_decimals

    def aggregate(self, subjects: Mapping[str, Any]) -> AggregationResult:
        """Build chart data for every subject

        Args:
            subjects: Subject name to RawScore, score mapping or None

        Returns:
            AggregationResult carrying every error found along the way
        """
        records: List[ScoreRecord] = []
        errors: List[ScoreError] = []

        for subject_name, raw in subjects.items():
            try:
                subject_records, subject_errors = extract_scores(raw, subject_name)
            except Exception as e:
                logger.warning(f"Could not extract scores for {subject_name}: {e}")
                errors.append(ScoreError(
                    subject_name=subject_name,
                    code=ErrorCode.TRANSFORM_ERROR,
                    message=f"Could not transform scores for subject {subject_name}: {e}"
                ))
                continue
            records.extend(subject_records)
            errors.extend(subject_errors)

        total = calculate_total(records)

        detailed: List[DetailedPieData] = []
        for record in records:
            outcome = create_detailed_pie_data(
                record.subject_name,
                record.value,
                total,
                record.test_type,
                category=record.category,
                decimals=self.percentage_decimals
            )
            detailed.append(outcome.data)
            if outcome.error is not None:
                errors.append(outcome.error)

        outer: List[PieData] = []
        category_scores = self._category_scores(records)
        for category in self._category_order(records):
            category_total = calculate_category_total(
                category_scores, lambda key, wanted=category: key.split("|", 1)[0] == wanted
            )
            outcome = create_outer_pie_data(category, category_total, total, self.percentage_decimals)
            outer.append(outcome.data)
            if outcome.error is not None:
                errors.append(outcome.error)

        logger.debug(
            f"Aggregated {len(subjects)} subjects into {len(detailed)} entries "
            f"and {len(outer)} categories with {len(errors)} errors"
        )

        return AggregationResult(detailed=detailed, outer=outer, total=total, errors=errors)

    @staticmethod
    def _category_scores(records: List[ScoreRecord]) -> Dict[str, float]:
        # "category|subject|test type" -> value
        return {
            f"{record.category}|{record.subject_name}|{record.test_type.value}": record.value
            for record in records
        }

    @staticmethod
    def _category_order(records: List[ScoreRecord]) -> List[str]:
        present = []
        for record in records:
            if record.category not in present:
                present.append(record.category)
        known = [category for category in SUBJECT_CATEGORIES if category in present]
        return known + [category for category in present if category not in known]
