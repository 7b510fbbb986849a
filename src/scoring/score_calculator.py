"""Score Calculator

Pure functions for totals and percentages. Identical inputs always give
identical outputs, so results can be memoized by input.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Iterable, Mapping, Union

from ..models.score_models import RawScore

CategoryMatcher = Union[str, Callable[[str], bool]]

DEFAULT_DECIMALS = 2


def round_to(value: float, decimals: int = DEFAULT_DECIMALS) -> float:
    """Round half away from zero to `decimals` places"""
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(value: float, total: float, decimals: int = DEFAULT_DECIMALS) -> float:
    """Share of `value` in `total` as a rounded percentage

    Returns 0 for a non-positive total or non-finite inputs.
    """
    if total is None or value is None:
        return 0.0
    if not (math.isfinite(value) and math.isfinite(total)) or total <= 0:
        return 0.0
    return round_to(value / total * 100, decimals)


def is_percentage_in_range(value: float) -> bool:
    return math.isfinite(value) and 0 <= value <= 100


def calculate_total(scores: Union[RawScore, Mapping[str, float], Iterable[Any]]) -> float:
    """Sum all component values

    Args:
        scores: A RawScore, a mapping of name to value, or an iterable of
            objects with a ``value`` attribute

    Returns:
        Sum of the values
    """
    if isinstance(scores, RawScore):
        return scores.common_test + scores.second_test
    if isinstance(scores, Mapping):
        return float(sum(scores.values()))
    return float(sum(item.value for item in scores))


def calculate_category_total(scores: Mapping[str, float], category: CategoryMatcher) -> float:
    """Sum the values whose key matches `category`

    A string category matches every key containing it; a callable is used as
    the predicate directly.
    """
    if callable(category):
        matches = category
    else:
        matches = lambda key: category in key  # noqa: E731

    return float(sum(value for key, value in scores.items() if matches(key)))
