"""Exam score validation, caching and chart aggregation"""

__version__ = "1.0.0"
