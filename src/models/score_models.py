"""Score Data Models

This module defines the data models shared by the validation, scoring and
caching layers. Everything that crosses the durable cache boundary is a
pydantic model so it can be serialized to and parsed from JSON.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Validation issue severity levels"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ErrorCode(str, Enum):
    """Error codes reported by the pipeline"""
    INVALID_PARAMS = "INVALID_PARAMS"
    INVALID_DATA_FORMAT = "INVALID_DATA_FORMAT"
    INVALID_NUMBER = "INVALID_NUMBER"
    INVALID_SCORE = "INVALID_SCORE"
    MAX_SCORE_EXCEEDED = "MAX_SCORE_EXCEEDED"
    INVALID_PERCENTAGE = "INVALID_PERCENTAGE"
    TOTAL_EXCEEDED = "TOTAL_EXCEEDED"
    CACHE_ERROR = "CACHE_ERROR"
    TRANSFORM_ERROR = "TRANSFORM_ERROR"
    MISSING_SCORE = "MISSING_SCORE"
    CALCULATION_ERROR = "CALCULATION_ERROR"


class ExamComponent(Enum):
    """Exam component a score belongs to"""
    COMMON = "common"
    SECONDARY = "secondary"

    @property
    def type_id(self) -> int:
        return _TEST_TYPE_IDS[self]

    @property
    def label(self) -> str:
        return _TEST_TYPE_LABELS[self]


_TEST_TYPE_IDS = {ExamComponent.COMMON: 1, ExamComponent.SECONDARY: 2}
_TEST_TYPE_LABELS = {ExamComponent.COMMON: "Common Test", ExamComponent.SECONDARY: "Secondary Test"}


class RawScore(BaseModel):
    """One subject's two exam-component scores"""
    model_config = ConfigDict(populate_by_name=True)

    common_test: float = Field(alias="commonTest")
    second_test: float = Field(alias="secondTest")

    def value_for(self, test_type: ExamComponent) -> float:
        """Score of a single exam component"""
        if test_type == ExamComponent.COMMON:
            return self.common_test
        return self.second_test


class ValidationIssue(BaseModel):
    """A single rule violation"""
    model_config = ConfigDict(frozen=True)

    code: str
    field: str
    message: str
    severity: Severity = Severity.ERROR


class ValidationMetadata(BaseModel):
    """When a result was produced and which rules produced it"""
    model_config = ConfigDict(frozen=True)

    validated_at: float  # epoch milliseconds
    rules: List[str] = Field(default_factory=list)


class ScoreSummary(BaseModel):
    """Derived metrics of a validated score"""
    model_config = ConfigDict(frozen=True)

    common_test: float
    second_test: float
    total: float
    max_total: float
    percentage: float


class ValidationResult(BaseModel):
    """Outcome of validating one score"""
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    data: Optional[ScoreSummary] = None
    errors: List[ValidationIssue] = Field(default_factory=list)
    metadata: ValidationMetadata

    def error_codes(self) -> List[str]:
        return [issue.code for issue in self.errors]

    def get_severity_counts(self) -> Dict[str, int]:
        """Get count of issues by severity"""
        counts = {severity.value: 0 for severity in Severity}
        for issue in self.errors:
            counts[issue.severity.value] += 1
        return counts


class ScoreRecord(BaseModel):
    """A positive score of one subject for one exam component"""
    subject_name: str
    test_type: ExamComponent
    test_type_id: int
    value: float
    percentage: float = 0.0
    category: str


class ScoreError(BaseModel):
    """A collected, per-subject domain error"""
    subject_name: str
    code: ErrorCode
    message: str


class PieData(BaseModel):
    """A percentage-bearing chart entry"""
    name: str
    value: float
    percentage: float


class DetailedPieData(PieData):
    """Chart entry for one subject and exam component"""
    category: str
    display_name: str
    test_type: ExamComponent
    test_type_id: int


class AggregationResult(BaseModel):
    """Chart data for a batch of subjects plus every error collected on the way"""
    detailed: List[DetailedPieData] = Field(default_factory=list)
    outer: List[PieData] = Field(default_factory=list)
    total: float = 0.0
    errors: List[ScoreError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0
