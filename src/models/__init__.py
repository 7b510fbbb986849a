"""
Score Models Module

Pydantic models and enums shared across the score pipeline
"""

from .score_models import (
    Severity,
    ErrorCode,
    ExamComponent,
    RawScore,
    ValidationIssue,
    ValidationMetadata,
    ValidationResult,
    ScoreSummary,
    ScoreRecord,
    ScoreError,
    PieData,
    DetailedPieData,
    AggregationResult
)

__all__ = [
    "Severity",
    "ErrorCode",
    "ExamComponent",
    "RawScore",
    "ValidationIssue",
    "ValidationMetadata",
    "ValidationResult",
    "ScoreSummary",
    "ScoreRecord",
    "ScoreError",
    "PieData",
    "DetailedPieData",
    "AggregationResult"
]
