"""Holder of the current graph snapshot and its query surface."""

from __future__ import annotations

import threading
from typing import List, Optional, Tuple

from ..logging import get_logger
from ..models import GraphSnapshot
from ..stores import GraphCache

logger = get_logger("graph")


class ProjectGraph:
    """Owns the current snapshot; replacement is a single reference swap."""

    def __init__(self, cache: GraphCache | None = None) -> None:
        self._cache = cache
        self._snapshot = GraphSnapshot()
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> GraphSnapshot:
        return self._snapshot

    def replace(self, snapshot: GraphSnapshot, *, persist: bool = True) -> None:
        with self._lock:
            self._snapshot = snapshot
        if persist and self._cache is not None:
            self._cache.save(snapshot)

    def reset(self, cache: Optional[GraphCache] = None) -> None:
        """Drop the current snapshot, optionally pointing at a different cache."""
        with self._lock:
            self._snapshot = GraphSnapshot()
            if cache is not None:
                self._cache = cache

    def load_cache(self) -> bool:
        if self._cache is None:
            return False
        snapshot = self._cache.load()
        if snapshot is None:
            return False
        self.replace(snapshot, persist=False)
        logger.info("Restored project graph from cache (%d hub files)", len(snapshot.hubs))
        return True

    # ------------------------------------------------------------------
    # Queries

    def dependencies_of(self, path: str) -> List[str]:
        """Raw import specifiers of ``path``; not resolved paths."""
        return list(self._snapshot.dependencies.get(path, ()))

    def dependents_of(self, path: str) -> List[str]:
        return list(self._snapshot.dependents.get(path, ()))

    def mentions_of(self, path: str) -> List[str]:
        return list(self._snapshot.mentions.get(path, ()))

    def hub_files(self) -> List[str]:
        return list(self._snapshot.hubs)

    def shared_commit_peers(self, path: str) -> List[Tuple[str, int]]:
        return list(self._snapshot.co_commits.get(path, ()))

    def recently_committed_files(self) -> List[str]:
        return sorted(self._snapshot.recent)


__all__ = ["ProjectGraph"]
