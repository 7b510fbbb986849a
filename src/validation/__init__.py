"""
Validation Module

Rule-based validation of exam scores
"""

from .rule_engine import ValidationRule, RuleEngine
from .score_validator import ScoreValidator, create_score_rules

__all__ = [
    "ValidationRule",
    "RuleEngine",
    "ScoreValidator",
    "create_score_rules"
]
