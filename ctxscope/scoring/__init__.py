"""Relevance scoring, keyword extraction and prompt budgeting."""

from .keywords import extract_keywords
from .scorer import RelevanceScorer, rank, score
from .tokens import TiktokenCounter, smart_preview

__all__ = [
    "RelevanceScorer",
    "TiktokenCounter",
    "extract_keywords",
    "rank",
    "score",
    "smart_preview",
]
