"""Source history adapters."""

from .history import GitHistory, NullHistory, SourceHistory

__all__ = ["GitHistory", "NullHistory", "SourceHistory"]
