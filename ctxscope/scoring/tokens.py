"""Token counting and content previews for prompt budgeting."""

from __future__ import annotations

import re
import threading
from typing import Callable, Optional

import tiktoken

from ..logging import get_logger

TokenCounter = Callable[[str], int]

DEFAULT_ENCODING = "cl100k_base"
TRUNCATION_MARKER = "\n... (content truncated)"

_TOKEN_SPLIT_RE = re.compile(r"\w+|[^\w\s]")

logger = get_logger("scoring.tokens")


def estimate_tokens(text: str) -> int:
    """Rough token count used when no tokenizer encoding can be loaded."""
    if not text:
        return 0
    return len(_TOKEN_SPLIT_RE.findall(text))


class TiktokenCounter:
    """Counts tokens with a tiktoken encoding, loaded on first use."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name
        self._encoding: Optional[tiktoken.Encoding] = None
        self._unavailable = False
        self._lock = threading.Lock()

    def __call__(self, text: str) -> int:
        if not text:
            return 0
        encoding = self._load()
        if encoding is None:
            return estimate_tokens(text)
        return len(encoding.encode(text, disallowed_special=()))

    def _load(self) -> Optional[tiktoken.Encoding]:
        with self._lock:
            if self._encoding is None and not self._unavailable:
                try:
                    self._encoding = tiktoken.get_encoding(self.encoding_name)
                except (OSError, ValueError) as exc:
                    # The BPE file is fetched on first use and may be unreachable offline.
                    logger.warning(
                        "Tokenizer %s unavailable, estimating token counts: %s",
                        self.encoding_name,
                        exc,
                    )
                    self._unavailable = True
            return self._encoding


def smart_preview(content: str, *, min_lines: int, max_lines: int) -> str:
    """Return the head of ``content`` sized for a non-selected prompt file.

    Files up to ``max_lines`` lines are returned whole. Longer files show at
    least ``min_lines`` lines, extended to the next blank line unless two blank
    lines already appeared, and end with a truncation marker.
    """
    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content

    end_line = min_lines
    blank_lines = sum(1 for line in lines[:min_lines] if not line.strip())
    if blank_lines < 2:
        for index in range(min_lines, min(len(lines), max_lines)):
            end_line = index + 1
            if not lines[index].strip():
                break

    return "\n".join(lines[:end_line]) + TRUNCATION_MARKER


__all__ = [
    "DEFAULT_ENCODING",
    "TRUNCATION_MARKER",
    "TiktokenCounter",
    "TokenCounter",
    "estimate_tokens",
    "smart_preview",
]
