"""Validation Rule Engine

Rules are tagged descriptors carrying a pure predicate. Every rule runs
against the subject in declaration order so the caller sees every violation.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from ..models.score_models import (
    ErrorCode,
    ScoreSummary,
    Severity,
    ValidationIssue,
    ValidationMetadata,
    ValidationResult
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationRule(Generic[T]):
    """A single business rule

    `condition` returns True when the subject satisfies the rule.
    """
    code: str
    field: str
    condition: Callable[[T], bool]
    message: str
    severity: Severity = Severity.ERROR

    def descriptor(self) -> Dict[str, str]:
        """Everything that identifies the rule except its predicate"""
        return {
            "code": self.code,
            "field": self.field,
            "message": self.message,
            "severity": self.severity.value
        }


class RuleEngine(Generic[T]):
    """Evaluates an ordered list of rules against a subject"""

    def __init__(self, rules: Sequence[ValidationRule[T]]):
        self._rules: Tuple[ValidationRule[T], ...] = tuple(rules)

    @property
    def rules(self) -> Tuple[ValidationRule[T], ...]:
        return self._rules

    @property
    def rule_codes(self) -> List[str]:
        return [rule.code for rule in self._rules]

    def evaluate(self, subject: T) -> List[ValidationIssue]:
        """Run every rule and collect the violations"""
        issues: List[ValidationIssue] = []

        for rule in self._rules:
            try:
                passed = bool(rule.condition(subject))
            except Exception as e:
                logger.warning(f"Rule {rule.code} on field {rule.field} raised {type(e).__name__}: {e}")
                issues.append(ValidationIssue(
                    code=ErrorCode.TRANSFORM_ERROR.value,
                    field=rule.field,
                    message=f"Rule {rule.code} could not be evaluated: {e}",
                    severity=Severity.ERROR
                ))
                continue

            if not passed:
                issues.append(ValidationIssue(
                    code=rule.code,
                    field=rule.field,
                    message=rule.message,
                    severity=rule.severity
                ))

        return issues

    def build_result(
        self,
        issues: List[ValidationIssue],
        validated_at: float,
        data: Optional[ScoreSummary] = None
    ) -> ValidationResult:
        """Assemble a result; only error-severity issues make it invalid"""
        return ValidationResult(
            is_valid=not any(issue.severity == Severity.ERROR for issue in issues),
            data=data,
            errors=list(issues),
            metadata=ValidationMetadata(validated_at=validated_at, rules=self.rule_codes)
        )

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)
