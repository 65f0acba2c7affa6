"""Languages understood by the dependency scanner and resolver."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Tuple


class Language(Enum):
    """Closed set of language families with import detection support."""

    JAVASCRIPT = "javascript"
    PYTHON = "python"
    CSS = "css"

    @classmethod
    def for_path(cls, path: str) -> Optional["Language"]:
        suffix = PurePosixPath(path.replace("\\", "/")).suffix.lower()
        return _LANGUAGE_BY_SUFFIX.get(suffix)

    @property
    def import_patterns(self) -> Tuple[re.Pattern[str], ...]:
        return _IMPORT_PATTERNS[self]

    @property
    def resolvable_extensions(self) -> Tuple[str, ...]:
        return _RESOLVABLE_EXTENSIONS[self]

    def strip_comments(self, content: str) -> str:
        """Remove comments on a best-effort basis; string literals are not respected."""
        return _COMMENT_PATTERNS[self].sub("", content)

    def split_specifiers(self, raw: str) -> List[str]:
        """Turn one captured import clause into individual specifiers."""
        if self is Language.PYTHON:
            names = []
            for part in raw.split(","):
                name = part.strip().split()[0] if part.strip() else ""
                if name:
                    names.append(name)
            return names
        stripped = raw.strip()
        return [stripped] if stripped else []


_LANGUAGE_BY_SUFFIX: Dict[str, Language] = {
    ".js": Language.JAVASCRIPT,
    ".jsx": Language.JAVASCRIPT,
    ".ts": Language.JAVASCRIPT,
    ".tsx": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    ".vue": Language.JAVASCRIPT,
    ".svelte": Language.JAVASCRIPT,
    ".py": Language.PYTHON,
    ".css": Language.CSS,
    ".scss": Language.CSS,
    ".less": Language.CSS,
}

_IMPORT_PATTERNS: Dict[Language, Tuple[re.Pattern[str], ...]] = {
    Language.JAVASCRIPT: (
        re.compile(r"\b(?:import|export)\s+(?:[\w*{}\s,$]+?\s+from\s*)?['\"]([^'\"\n]+)['\"]"),
        re.compile(r"\brequire\(\s*['\"]([^'\"\n]+)['\"]\s*\)"),
        re.compile(r"\bimport\(\s*['\"]([^'\"\n]+)['\"]\s*\)"),
    ),
    Language.PYTHON: (
        re.compile(
            r"^[ \t]*import[ \t]+([\w.]+(?:[ \t]+as[ \t]+\w+)?(?:[ \t]*,[ \t]*[\w.]+(?:[ \t]+as[ \t]+\w+)?)*)",
            re.MULTILINE,
        ),
        re.compile(r"^[ \t]*from[ \t]+([.\w]+)[ \t]+import\b", re.MULTILINE),
    ),
    Language.CSS: (
        re.compile(r"@import\s+(?:url\(\s*)?['\"]([^'\"\n]+)['\"]"),
    ),
}

_COMMENT_PATTERNS: Dict[Language, re.Pattern[str]] = {
    Language.JAVASCRIPT: re.compile(r"/\*[\s\S]*?\*/|(?<!:)//.*$", re.MULTILINE),
    Language.PYTHON: re.compile(r"#.*$", re.MULTILINE),
    Language.CSS: re.compile(r"/\*[\s\S]*?\*/"),
}

_RESOLVABLE_EXTENSIONS: Dict[Language, Tuple[str, ...]] = {
    Language.JAVASCRIPT: (".ts", ".tsx", ".js", ".jsx", ".json"),
    Language.PYTHON: (".py",),
    Language.CSS: (".css", ".scss", ".less"),
}


__all__ = ["Language"]
