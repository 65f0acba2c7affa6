"""Regex-based import scanning."""

from __future__ import annotations

from typing import Dict, List, Tuple

from .language import Language


def scan(path: str, content: str) -> List[str]:
    """Return the unique import specifiers in ``content``, in order of appearance.

    Files whose extension maps to no known language yield an empty list.
    """
    language = Language.for_path(path)
    if language is None:
        return []

    stripped = language.strip_comments(content)
    found: List[Tuple[int, str]] = []
    for pattern in language.import_patterns:
        for match in pattern.finditer(stripped):
            raw = match.group(1)
            if not raw:
                continue
            for specifier in language.split_specifiers(raw):
                found.append((match.start(1), specifier))

    found.sort(key=lambda item: item[0])
    ordered: Dict[str, None] = {}
    for _, specifier in found:
        ordered.setdefault(specifier, None)
    return list(ordered)


__all__ = ["scan"]
