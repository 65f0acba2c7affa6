"""Persistent cache for project graph snapshots."""

from __future__ import annotations

from datetime import UTC, datetime
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..logging import get_logger
from ..models import GraphSnapshot

CACHE_FILENAME = "project_graph.json"
_CACHE_VERSION = 1

logger = get_logger("stores.graph_cache")


class GraphCache:
    """Reads and writes the snapshot artifact under the project metadata directory."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def save(self, snapshot: GraphSnapshot) -> bool:
        payload = {
            "version": _CACHE_VERSION,
            "generated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "dependencies": _lists(snapshot.dependencies),
            "dependents": _lists(snapshot.dependents),
            "mentions": _lists(snapshot.mentions),
            "hubs": list(snapshot.hubs),
            "co_commits": {
                path: [[peer, count] for peer, count in peers]
                for path, peers in snapshot.co_commits.items()
            },
            "recent": sorted(snapshot.recent),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            logger.warning("Failed to save graph cache to %s: %s", self.path, exc)
            return False
        logger.debug("Saved graph cache to %s", self.path)
        return True

    def load(self) -> Optional[GraphSnapshot]:
        """Return the cached snapshot; a malformed artifact is deleted and None returned."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read graph cache %s: %s", self.path, exc)
            return None

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            data = None
        snapshot = _snapshot_from_dict(data)
        if snapshot is None:
            logger.warning("Discarding malformed graph cache at %s", self.path)
            self.clear()
            return None
        logger.debug("Loaded graph cache from %s", self.path)
        return snapshot

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove graph cache %s: %s", self.path, exc)


def _lists(graph: Mapping[str, Tuple[str, ...]]) -> Dict[str, List[str]]:
    return {path: list(values) for path, values in graph.items()}


def _snapshot_from_dict(data: Any) -> Optional[GraphSnapshot]:
    if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
        return None

    dependencies = _string_graph(data.get("dependencies"))
    dependents = _string_graph(data.get("dependents"))
    mentions = _string_graph(data.get("mentions"))
    hubs = _string_list(data.get("hubs"))
    co_commits = _co_commit_graph(data.get("co_commits"))
    recent = _string_list(data.get("recent"))
    if (
        dependencies is None
        or dependents is None
        or mentions is None
        or hubs is None
        or co_commits is None
        or recent is None
    ):
        return None

    return GraphSnapshot(
        dependencies=dependencies,
        dependents=dependents,
        mentions=mentions,
        hubs=tuple(hubs),
        co_commits=co_commits,
        recent=frozenset(recent),
    )


def _string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        return None
    return value


def _string_graph(value: Any) -> Optional[Dict[str, Tuple[str, ...]]]:
    if not isinstance(value, dict):
        return None
    graph: Dict[str, Tuple[str, ...]] = {}
    for key, items in value.items():
        entries = _string_list(items)
        if not isinstance(key, str) or entries is None:
            return None
        graph[key] = tuple(entries)
    return graph


def _co_commit_graph(value: Any) -> Optional[Dict[str, Tuple[Tuple[str, int], ...]]]:
    if not isinstance(value, dict):
        return None
    graph: Dict[str, Tuple[Tuple[str, int], ...]] = {}
    for key, pairs in value.items():
        if not isinstance(key, str) or not isinstance(pairs, list):
            return None
        parsed: List[Tuple[str, int]] = []
        for pair in pairs:
            if (
                not isinstance(pair, list)
                or len(pair) != 2
                or not isinstance(pair[0], str)
                or not isinstance(pair[1], int)
                or isinstance(pair[1], bool)
            ):
                return None
            parsed.append((pair[0], pair[1]))
        graph[key] = tuple(parsed)
    return graph


__all__ = ["CACHE_FILENAME", "GraphCache"]
