"""Persistent stores for analysis artifacts."""

from .graph_cache import CACHE_FILENAME, GraphCache

__all__ = ["CACHE_FILENAME", "GraphCache"]
