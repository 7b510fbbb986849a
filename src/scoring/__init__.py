"""
Scoring Module

Score arithmetic, extraction, chart transforms and the processing pipeline
"""

from .score_calculator import (
    round_to,
    percentage,
    is_percentage_in_range,
    calculate_total,
    calculate_category_total
)
from .score_extractor import extract_scores, get_subject_category, SUBJECT_CATEGORIES
from .chart_transform import (
    TransformOutcome,
    ScoreAggregator,
    create_detailed_pie_data,
    create_outer_pie_data
)
from .score_pipeline import ScorePipeline

__all__ = [
    "round_to",
    "percentage",
    "is_percentage_in_range",
    "calculate_total",
    "calculate_category_total",
    "extract_scores",
    "get_subject_category",
    "SUBJECT_CATEGORIES",
    "TransformOutcome",
    "ScoreAggregator",
    "create_detailed_pie_data",
    "create_outer_pie_data",
    "ScorePipeline"
]
