"""Keyword extraction from free-text task descriptions."""

from __future__ import annotations

import re
from typing import Dict, List

_TOKEN_RE = re.compile(r"[\w./-]+")

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "is", "in", "it", "of", "for", "on", "with", "to", "and",
        "or", "this", "fix", "update", "change", "add", "remove", "implement",
        "refactor", "style",
    }
)

MIN_KEYWORD_LENGTH = 4


def extract_keywords(text: str | None) -> List[str]:
    """Return unique lowercase keywords, keeping path-like tokens intact."""
    if not text:
        return []

    normalized = text.replace("\\", "/").lower()
    keywords: Dict[str, None] = {}
    for token in _TOKEN_RE.findall(normalized):
        word = token.rstrip(".")
        if len(word) < MIN_KEYWORD_LENGTH or word in STOP_WORDS or "..." in word:
            continue
        keywords.setdefault(word, None)
    return list(keywords)


def count_keyword_matches(path: str, keywords: List[str]) -> int:
    """Number of distinct keywords contained in ``path`` (case-insensitive)."""
    lowered = path.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


__all__ = ["STOP_WORDS", "count_keyword_matches", "extract_keywords"]
