"""Full-tree project analysis producing a graph snapshot."""

from __future__ import annotations

import re
from collections import defaultdict
from itertools import combinations
from pathlib import Path, PurePosixPath
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from ..analyzers import KnownFiles, resolve, scan
from ..config import AnalysisConfig, ConfigError, CtxScopeConfig, load_config
from ..filestore import LocalFileStore
from ..git.history import GitHistory, SourceHistory
from ..ignore import IgnoreRules
from ..logging import get_logger
from ..models import AnalysisResult, GraphSnapshot

_WORD_RE = re.compile(r"\w+")
_PURE_WORD_RE = re.compile(r"^\w+$")

logger = get_logger("graph.builder")


class ProjectFiles(Protocol):
    """File Store surface used during analysis."""

    def all_files(self) -> List[str]:
        ...

    def read(self, path: str) -> str:
        ...


class ProjectGraphBuilder:
    """Builds dependency, mention, hub, co-commit and recency data in one pass."""

    def __init__(
        self,
        file_store: ProjectFiles,
        history: SourceHistory | None = None,
        settings: AnalysisConfig | None = None,
    ) -> None:
        self.file_store = file_store
        self.history = history
        self.settings = settings or AnalysisConfig()

    def build(self) -> GraphSnapshot:
        files = self.file_store.all_files()
        logger.info("Analyzing %d project files", len(files))
        if not files:
            return GraphSnapshot()

        dependencies, mentions = self._scan_files(files)
        dependents, hubs = self._link(files, dependencies)

        co_commits: Dict[str, Tuple[Tuple[str, int], ...]] = {}
        recent: FrozenSet[str] = frozenset()
        if self.history is not None and self.history.is_available():
            known = set(files)
            co_commits = self._co_commits(known)
            recent = self._recent(known)

        logger.info(
            "Analysis complete: %d hub files, %d files with co-commit peers",
            len(hubs),
            len(co_commits),
        )
        return GraphSnapshot(
            dependencies=dependencies,
            dependents=dependents,
            mentions=mentions,
            hubs=hubs,
            co_commits=co_commits,
            recent=recent,
        )

    # ------------------------------------------------------------------
    # Passes

    def _scan_files(
        self, files: Sequence[str]
    ) -> Tuple[Dict[str, Tuple[str, ...]], Dict[str, Tuple[str, ...]]]:
        stem_index = _StemIndex(files)
        dependencies: Dict[str, Tuple[str, ...]] = {}
        mentions: Dict[str, Tuple[str, ...]] = {}

        for path in files:
            try:
                content = self.file_store.read(path)
            except (OSError, UnicodeDecodeError):
                # Binary and vanished files are expected here.
                continue

            specifiers = scan(path, content)
            if specifiers:
                dependencies[path] = tuple(specifiers)

            mentioned = stem_index.mentioned_in(content, exclude=path)
            if mentioned:
                mentions[path] = mentioned

        return dependencies, mentions

    def _link(
        self, files: Sequence[str], dependencies: Dict[str, Tuple[str, ...]]
    ) -> Tuple[Dict[str, Tuple[str, ...]], Tuple[str, ...]]:
        lookup = KnownFiles(files)
        importers: Dict[str, Set[str]] = defaultdict(set)
        for importer, specifiers in dependencies.items():
            for specifier in specifiers:
                target = resolve(importer, specifier, lookup)
                if target is not None and target != importer:
                    importers[target].add(importer)

        dependents = {path: tuple(sorted(sources)) for path, sources in importers.items()}
        in_degree = {path: len(importers.get(path, ())) for path in files}
        hubs = select_hubs(
            files,
            in_degree,
            threshold=self.settings.hub_in_degree_threshold,
            max_hubs=self.settings.max_hub_files,
        )
        return dependents, hubs

    def _co_commits(self, known: Set[str]) -> Dict[str, Tuple[Tuple[str, int], ...]]:
        assert self.history is not None
        counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        hashes = self.history.recent_commit_hashes(self.settings.commit_sample_size)
        for commit_hash in hashes:
            touched = self.history.files_for_commit(commit_hash)
            if not (
                self.settings.co_commit_min_files
                <= len(touched)
                <= self.settings.co_commit_max_files
            ):
                continue
            tracked = sorted({path for path in touched if path in known})
            for left, right in combinations(tracked, 2):
                counts[left][right] += 1
                counts[right][left] += 1

        return {
            path: tuple(sorted(peers.items(), key=lambda item: (-item[1], item[0])))
            for path, peers in counts.items()
        }

    def _recent(self, known: Set[str]) -> FrozenSet[str]:
        assert self.history is not None
        touched = self.history.recently_touched_files(self.settings.recent_days)
        return frozenset(path for path in touched if path in known)


def select_hubs(
    files: Sequence[str],
    in_degree: Dict[str, int],
    *,
    threshold: int,
    max_hubs: int,
) -> Tuple[str, ...]:
    """Pick hub files by in-degree.

    Every file at or above ``threshold`` is a hub; remaining slots up to
    ``max_hubs`` go to the next most-imported files with at least two
    importers. Ties keep the order of ``files``.
    """
    ranked = sorted(files, key=lambda path: -in_degree.get(path, 0))
    hubs: List[str] = [path for path in ranked if in_degree.get(path, 0) >= threshold]
    chosen = set(hubs)
    for path in ranked:
        if len(hubs) >= max_hubs:
            break
        if path in chosen or in_degree.get(path, 0) < 2:
            continue
        hubs.append(path)
        chosen.add(path)
    return tuple(hubs)


class _StemIndex:
    """Finds whole-word mentions of file basename stems in text."""

    def __init__(self, files: Iterable[str]) -> None:
        self._word_stems: Dict[str, List[str]] = defaultdict(list)
        self._other_stems: List[Tuple[re.Pattern[str], List[str]]] = []
        others: Dict[str, List[str]] = defaultdict(list)
        for path in files:
            stem = PurePosixPath(path).stem
            if not stem:
                continue
            if _PURE_WORD_RE.match(stem):
                self._word_stems[stem].append(path)
            else:
                others[stem].append(path)
        for stem, paths in others.items():
            pattern = re.compile(rf"(?<!\w){re.escape(stem)}(?!\w)")
            self._other_stems.append((pattern, paths))

    def mentioned_in(self, content: str, *, exclude: str) -> Tuple[str, ...]:
        tokens = set(_WORD_RE.findall(content))
        found: Set[str] = set()
        for stem in tokens.intersection(self._word_stems):
            found.update(self._word_stems[stem])
        for pattern, paths in self._other_stems:
            if pattern.search(content):
                found.update(paths)
        found.discard(exclude)
        return tuple(sorted(found))


def analyze_project(root: Path | str, config: Optional[CtxScopeConfig] = None) -> AnalysisResult:
    """Worker entry point: build a snapshot for ``root`` from scratch.

    Failures are returned inside the result rather than raised.
    """
    root_path = Path(root).expanduser().resolve()
    try:
        if config is None:
            try:
                config = load_config(root_path)
            except ConfigError as exc:
                logger.warning("Using default settings: %s", exc)
                config = CtxScopeConfig(root=root_path)
        ignore_rules = IgnoreRules(root_path, use_gitignore=config.ignore.use_gitignore)
        file_store = LocalFileStore(root_path, ignore_rules)
        builder = ProjectGraphBuilder(file_store, GitHistory(root_path), config.analysis)
        snapshot = builder.build()
    except Exception as exc:
        logger.exception("Project analysis failed for %s", root_path)
        return AnalysisResult(root=str(root_path), error=exc)
    return AnalysisResult(root=str(root_path), snapshot=snapshot)


__all__ = ["ProjectFiles", "ProjectGraphBuilder", "analyze_project", "select_hubs"]
