"""Core data models shared across ctxscope components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

import pathspec


@dataclass(frozen=True)
class IgnoreFile:
    """Compiled ignore spec discovered in one project directory."""

    directory: str
    rules: pathspec.PathSpec


@dataclass(frozen=True)
class CommitLog:
    """One commit reported by the source history."""

    hash: str
    message: str
    author: str
    date: str


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable result of one complete project analysis pass."""

    dependencies: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    dependents: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    mentions: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    hubs: Tuple[str, ...] = ()
    co_commits: Mapping[str, Tuple[Tuple[str, int], ...]] = field(default_factory=dict)
    recent: FrozenSet[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (
            self.dependencies
            or self.dependents
            or self.mentions
            or self.hubs
            or self.co_commits
            or self.recent
        )


@dataclass(frozen=True)
class ScoredFile:
    """A candidate file and its relevance score."""

    path: str
    score: float


@dataclass
class ContextResult:
    """Outcome of one relevance request."""

    user_selected: List[str]
    heuristic_seed_files: List[str] = field(default_factory=list)
    all_neighbors: List[ScoredFile] = field(default_factory=list)
    prompt_neighbors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "userSelected": list(self.user_selected),
            "heuristicSeedFiles": list(self.heuristic_seed_files),
            "allNeighbors": [
                {"path": item.path, "score": item.score} for item in self.all_neighbors
            ],
            "promptNeighbors": list(self.prompt_neighbors),
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Message returned by a background analysis pass."""

    root: str
    snapshot: Optional[GraphSnapshot] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None and self.error is None


__all__ = [
    "AnalysisResult",
    "CommitLog",
    "ContextResult",
    "GraphSnapshot",
    "IgnoreFile",
    "ScoredFile",
]
