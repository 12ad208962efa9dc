"""
feedback package

Parsing of reviewer output into FeedbackItem records.
"""

from feedback.parser import FeedbackParser, Tier, parse

__all__ = ["FeedbackParser", "Tier", "parse"]
