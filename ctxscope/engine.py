"""Context engine that wires the ctxscope components for one project."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Sequence, Tuple

from .config import ConfigError, CtxScopeConfig, load_config
from .filestore import LocalFileStore
from .git.history import GitHistory, NullHistory, SourceHistory
from .graph.project_graph import ProjectGraph
from .ignore import FALLBACK_IGNORE_FILENAME, METADATA_DIRNAME, PRIMARY_IGNORE_FILENAME, IgnoreRules
from .logging import get_logger
from .models import AnalysisResult, ContextResult
from .orchestrator import AnalysisListener, AnalysisOrchestrator, RunPass, Scheduler
from .scoring.scorer import RelevanceScorer
from .scoring.tokens import TokenCounter
from .stores import CACHE_FILENAME, GraphCache

HistoryFactory = Callable[[Path], SourceHistory]

_IGNORE_SPEC_NAMES = {PRIMARY_IGNORE_FILENAME, FALLBACK_IGNORE_FILENAME}

logger = get_logger("engine")


class EngineNotReadyError(RuntimeError):
    """Raised when a project operation is called before ``set_base_dir``."""


class ContextEngine:
    """Owns every per-project component and exposes the relevance API.

    ``set_base_dir`` is the only transition between projects: it tears down the
    watcher, ignore rules and graph snapshot of the previous project before
    loading the new one.
    """

    def __init__(
        self,
        base_dir: Path | str | None = None,
        *,
        scheduler: Scheduler | None = None,
        executor: Executor | None = None,
        run_pass: RunPass | None = None,
        history_factory: HistoryFactory | None = None,
        token_counter: TokenCounter | None = None,
        watch: bool = True,
    ) -> None:
        self.graph = ProjectGraph()
        self.orchestrator = AnalysisOrchestrator(
            self.graph, run_pass=run_pass, scheduler=scheduler, executor=executor
        )
        self.ignore_rules = IgnoreRules()
        self.config: Optional[CtxScopeConfig] = None
        self.file_store: Optional[LocalFileStore] = None
        self.history: SourceHistory = NullHistory()
        self.scorer: Optional[RelevanceScorer] = None

        self._history_factory = history_factory or GitHistory
        self._token_counter = token_counter
        self._watch = watch
        self._unwatch: Optional[Callable[[], None]] = None
        self._lock = threading.RLock()

        if base_dir is not None:
            self.set_base_dir(base_dir)

    def __enter__(self) -> "ContextEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def base_dir(self) -> Optional[Path]:
        return self.file_store.root if self.file_store is not None else None

    # ------------------------------------------------------------------
    # Project lifecycle

    def set_base_dir(self, path: Path | str) -> Optional[Future[AnalysisResult]]:
        """Switch to ``path``; returns the analysis future when no cache was usable."""
        root = Path(path).expanduser().resolve()
        file_store = LocalFileStore(root)

        with self._lock:
            self._stop_watching()
            self.ignore_rules.clear()
            self.graph.reset()
            self.scorer = None

            config = self._load_config(root)
            ignore_rules = IgnoreRules(use_gitignore=config.ignore.use_gitignore)
            ignore_rules.set_root(root)
            file_store.ignore_rules = ignore_rules
            history = self._history_factory(root)

            self.config = config
            self.ignore_rules = ignore_rules
            self.file_store = file_store
            self.history = history
            self.scorer = RelevanceScorer(
                file_store,
                self.graph,
                history,
                config.scoring,
                token_counter=self._token_counter,
            )
            self.orchestrator.settings = config.analysis

            logger.info("Project base directory set to %s", root)
            cache = GraphCache(root / METADATA_DIRNAME / CACHE_FILENAME)
            future = self.orchestrator.set_root(root, cache)

            if self._watch:
                self._unwatch = file_store.watch(self._on_file_event)
        return future

    def close(self) -> None:
        with self._lock:
            self._stop_watching()
        self.orchestrator.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Relevance

    def calculate_context(
        self, selection: Sequence[str], task_text: Optional[str] = None
    ) -> ContextResult:
        scorer = self.scorer
        if scorer is None:
            raise EngineNotReadyError("No project base directory has been set")
        return scorer.calculate_context(selection, task_text)

    # ------------------------------------------------------------------
    # Ignore rules

    def is_ignored(self, path: str | Path, is_dir: bool = False) -> bool:
        return self.ignore_rules.is_ignored(path, is_dir)

    def add_ignore_pattern(self, path: str, match_all_by_name: bool = False) -> bool:
        added = self.ignore_rules.add_pattern(path, match_all_by_name)
        if added:
            self.orchestrator.notify_change(PRIMARY_IGNORE_FILENAME)
        return added

    # ------------------------------------------------------------------
    # Graph queries

    def force_reanalyze(self) -> Future[AnalysisResult]:
        if self.file_store is None:
            raise EngineNotReadyError("No project base directory has been set")
        return self.orchestrator.force_reanalyze()

    def get_hub_files(self) -> List[str]:
        return self.graph.hub_files()

    def get_dependents_for_file(self, path: str) -> List[str]:
        return self.graph.dependents_of(path)

    def get_dependencies_for_file(self, path: str) -> List[str]:
        return self.graph.dependencies_of(path)

    def get_mentions_for_file(self, path: str) -> List[str]:
        return self.graph.mentions_of(path)

    def get_shared_commit_peers(self, path: str) -> List[Tuple[str, int]]:
        return self.graph.shared_commit_peers(path)

    def get_recently_committed_files(self) -> List[str]:
        return self.graph.recently_committed_files()

    # ------------------------------------------------------------------
    # Activity signals

    def notify_file_change(self, path: str) -> None:
        self.orchestrator.notify_change(path)

    def record_activity(self) -> None:
        self.orchestrator.record_activity()

    def set_focus(self, focused: bool) -> None:
        self.orchestrator.set_focus(focused)

    def subscribe(self, listener: AnalysisListener) -> Callable[[], None]:
        return self.orchestrator.subscribe(listener)

    # ------------------------------------------------------------------
    # Internals

    def _load_config(self, root: Path) -> CtxScopeConfig:
        try:
            return load_config(root)
        except ConfigError as exc:
            logger.warning("Using default settings: %s", exc)
            return CtxScopeConfig(root=root)

    def _on_file_event(self, event: str, rel_path: str) -> None:
        if PurePosixPath(rel_path).name in _IGNORE_SPEC_NAMES:
            self.ignore_rules.discover()
        self.orchestrator.notify_change(rel_path)

    def _stop_watching(self) -> None:
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None


__all__ = ["ContextEngine", "EngineNotReadyError", "HistoryFactory"]
