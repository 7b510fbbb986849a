"""Cache Key Derivation

Keys are built from a canonical form of the score and of the rule set, so
equal (score, rules) pairs always map to the same key whatever the order of
the rules at the call site. Nothing volatile (timestamps, object ids) goes
into a key.
"""

import hashlib
import json
import math
from typing import Any, Mapping, Optional, Sequence, Union

from ..models.score_models import RawScore

ScoreInput = Union[int, float, RawScore, Mapping[str, Any]]
# Sequence of rules exposing descriptor(), or a mapping of rule parameters
RulesInput = Union[Sequence[Any], Mapping[str, Any]]


def _format_number(value: float) -> str:
    if isinstance(value, bool):
        raise TypeError("Boolean is not a score value")
    value = float(value)
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def _score_token(score: ScoreInput) -> str:
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        return _format_number(score)
    if isinstance(score, Mapping):
        score = RawScore.model_validate(score)
    if isinstance(score, RawScore):
        return f"{_format_number(score.common_test)}-{_format_number(score.second_test)}"
    raise TypeError(f"Unsupported score type for cache key: {type(score).__name__}")


def _canonical_rules(rules: RulesInput) -> str:
    if isinstance(rules, Mapping):
        return json.dumps(dict(rules), sort_keys=True, default=str)

    descriptors = []
    for rule in rules:
        if not callable(getattr(rule, "descriptor", None)):
            raise TypeError(f"Unsupported rule type for cache key: {type(rule).__name__}")
        descriptors.append(json.dumps(rule.descriptor(), sort_keys=True))
    return json.dumps(sorted(descriptors))


def _rules_digest(rules: RulesInput, params: Optional[Mapping[str, Any]] = None) -> str:
    canonical = _canonical_rules(rules)
    if params:
        canonical += json.dumps(dict(params), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


class CacheKeyBuilder:
    """Standardized cache key building"""

    @staticmethod
    def create_key(score: ScoreInput, rules: RulesInput) -> str:
        """Key for a cached validation result"""
        return f"validation:{_score_token(score)}:{_rules_digest(rules)}"

    @staticmethod
    def score_key(score: ScoreInput, rules: RulesInput = (), params: Optional[Mapping[str, Any]] = None) -> str:
        """Key for a memoized score computation

        `params` holds any other settings the computed value depends on.
        """
        return f"score:{_score_token(score)}:{_rules_digest(rules, params)}"
