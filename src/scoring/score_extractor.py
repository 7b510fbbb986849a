"""Score Extraction

Turns one subject's raw scores into per-component ScoreRecords and maps
subjects onto the chart categories.
"""

import math
from typing import Any, List, Optional, Tuple

from ..models.score_models import ErrorCode, ExamComponent, RawScore, ScoreError, ScoreRecord

SUBJECT_CATEGORIES = ("English", "Math", "Japanese", "Science", "Social Studies")

SUBJECT_CATEGORY_MAPPING = {
    "English": "English",
    "English R": "English",
    "English L": "English",
    "Reading": "English",
    "Listening": "English",
    "Math": "Math",
    "Mathematics": "Math",
    "Math IA": "Math",
    "Math IIB": "Math",
    "Japanese": "Japanese",
    "Classics": "Japanese",
    "Physics": "Science",
    "Chemistry": "Science",
    "Biology": "Science",
    "Earth Science": "Science",
    "Science": "Science",
    "History": "Social Studies",
    "World History": "Social Studies",
    "Japanese History": "Social Studies",
    "Geography": "Social Studies",
    "Civics": "Social Studies",
    "Ethics": "Social Studies",
    "Social Studies": "Social Studies",
}


def get_subject_category(subject_name: str) -> str:
    """Category a subject belongs to

    Known subjects map directly. Otherwise the longest known subject name
    contained in it decides, and unknown subjects are their own category.
    """
    category = SUBJECT_CATEGORY_MAPPING.get(subject_name)
    if category:
        return category

    lowered = subject_name.lower()
    # Longest names first so "Japanese History" beats "Japanese"
    for name in sorted(SUBJECT_CATEGORY_MAPPING, key=len, reverse=True):
        if name.lower() in lowered:
            return SUBJECT_CATEGORY_MAPPING[name]

    return subject_name


def extract_scores(
    raw: Optional[Any],
    subject_name: str
) -> Tuple[List[ScoreRecord], List[ScoreError]]:
    """Split a subject's scores into one record per positive component

    Args:
        raw: RawScore, mapping with commonTest/secondTest, or None
        subject_name: Subject the scores belong to

    Returns:
        Tuple of (records, errors); errors hold at most one entry
    """
    if raw is None:
        return [], [ScoreError(
            subject_name=subject_name,
            code=ErrorCode.MISSING_SCORE,
            message=f"Scores not found for subject {subject_name}"
        )]

    score = raw if isinstance(raw, RawScore) else RawScore.model_validate(raw)
    if not all(math.isfinite(score.value_for(component)) for component in ExamComponent):
        return [], [ScoreError(
            subject_name=subject_name,
            code=ErrorCode.INVALID_NUMBER,
            message=f"Scores for subject {subject_name} must be finite numbers"
        )]

    category = get_subject_category(subject_name)

    records = [
        ScoreRecord(
            subject_name=subject_name,
            test_type=test_type,
            test_type_id=test_type.type_id,
            value=score.value_for(test_type),
            category=category
        )
        for test_type in ExamComponent
        if score.value_for(test_type) > 0
    ]

    if not records:
        return [], [ScoreError(
            subject_name=subject_name,
            code=ErrorCode.CALCULATION_ERROR,
            message=f"No valid scores for subject {subject_name}"
        )]

    return records, []
