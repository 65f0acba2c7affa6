"""Background scheduling of project analysis passes."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .config import AnalysisConfig
from .graph.builder import analyze_project
from .graph.project_graph import ProjectGraph
from .logging import get_logger
from .models import AnalysisResult
from .stores import GraphCache

ANALYSIS_STARTED = "analysis-started"
ANALYSIS_FINISHED = "analysis-finished"

AnalysisListener = Callable[[str, Optional[AnalysisResult]], None]
RunPass = Callable[[str], AnalysisResult]

logger = get_logger("orchestrator")


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Delayed-callback provider used for the quiescence and inactivity timers."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    """Runs each callback on its own daemon ``threading.Timer``."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class AnalysisOrchestrator:
    """Decides when to rebuild the project graph and runs one pass at a time.

    File changes mark the graph stale and restart a quiescence timer. Once the
    tree is quiet, analysis runs immediately unless the interactive surface is
    focused, in which case it waits for a period without user activity.
    """

    def __init__(
        self,
        graph: ProjectGraph,
        run_pass: RunPass | None = None,
        scheduler: Scheduler | None = None,
        executor: Executor | None = None,
        settings: AnalysisConfig | None = None,
    ) -> None:
        self.graph = graph
        self.settings = settings or AnalysisConfig()
        self._run_pass = run_pass or analyze_project
        self._scheduler = scheduler or ThreadingScheduler()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ctxscope-analysis"
        )
        self._lock = threading.RLock()
        self._listeners: List[AnalysisListener] = []

        self._root: Optional[str] = None
        self._stale = False
        self._focused = False
        self._change_seq = 0
        self._in_flight: Optional[Future[AnalysisResult]] = None
        self._in_flight_root: Optional[str] = None
        self._closed = False

        self._quiet_timer: Optional[TimerHandle] = None
        self._quiet_token: Optional[object] = None
        self._inactivity_timer: Optional[TimerHandle] = None
        self._inactivity_token: Optional[object] = None

    @property
    def root(self) -> Optional[str]:
        return self._root

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def is_focused(self) -> bool:
        return self._focused

    @property
    def has_pending_timer(self) -> bool:
        return self._quiet_timer is not None or self._inactivity_timer is not None

    def subscribe(self, listener: AnalysisListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Triggers

    def set_root(
        self, root: Path | str, cache: GraphCache | None = None
    ) -> Optional[Future[AnalysisResult]]:
        """Switch projects; returns the analysis future when the cache missed."""
        with self._lock:
            self._cancel_timers()
            self._root = str(root)
            self._stale = False
            self._change_seq += 1
            self.graph.reset(cache)
            if self.graph.load_cache():
                return None
            logger.info("No usable graph cache for %s", self._root)
            return self.request_analysis()

    def notify_change(self, path: str | None = None) -> None:
        with self._lock:
            if self._root is None:
                return
            if path:
                logger.debug("Change detected: %s", path)
            self._stale = True
            self._change_seq += 1
            self._cancel_inactivity_timer()
            self._start_quiet_timer()

    def record_activity(self) -> None:
        with self._lock:
            if self._inactivity_timer is not None:
                self._start_inactivity_timer()

    def set_focus(self, focused: bool) -> None:
        with self._lock:
            self._focused = focused
            if focused or not self._stale or self._quiet_timer is not None:
                return
            self._cancel_inactivity_timer()
            if self._root is not None:
                self.request_analysis()

    def force_reanalyze(self) -> Future[AnalysisResult]:
        with self._lock:
            self._cancel_timers()
            return self.request_analysis()

    def request_analysis(self) -> Future[AnalysisResult]:
        """Start a pass, or return the one already running for the current root."""
        with self._lock:
            if self._root is None:
                raise RuntimeError("No project root has been set")
            if (
                self._in_flight is not None
                and not self._in_flight.done()
                and self._in_flight_root == self._root
            ):
                return self._in_flight
            root = self._root
            seq = self._change_seq
            self._emit(ANALYSIS_STARTED, None)
            future = self._executor.submit(self._analyze, root, seq)
            self._in_flight = future
            self._in_flight_root = root
            return future

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            self._cancel_timers()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Timer callbacks

    def _on_quiet(self, token: object) -> None:
        with self._lock:
            if token is not self._quiet_token:
                return
            self._quiet_timer = None
            self._quiet_token = None
            if not self._stale or self._root is None:
                return
            if self._focused:
                self._start_inactivity_timer()
                return
            self.request_analysis()

    def _on_inactive(self, token: object) -> None:
        with self._lock:
            if token is not self._inactivity_token:
                return
            self._inactivity_timer = None
            self._inactivity_token = None
            if self._stale and self._root is not None:
                self.request_analysis()

    # ------------------------------------------------------------------
    # Internals

    def _analyze(self, root: str, seq: int) -> AnalysisResult:
        logger.info("Starting project analysis for %s", root)
        try:
            result = self._run_pass(root)
        except Exception as exc:
            logger.exception("Project analysis raised for %s", root)
            result = AnalysisResult(root=root, error=exc)

        with self._lock:
            if root != self._root:
                logger.info("Discarding analysis for %s; project root changed", root)
            elif result.ok and result.snapshot is not None:
                self.graph.replace(result.snapshot)
                if seq == self._change_seq:
                    self._stale = False
                logger.info("Project analysis finished for %s", root)
            else:
                logger.warning(
                    "Project analysis failed for %s; keeping previous graph: %s",
                    root,
                    result.error,
                )
            if (
                root == self._root
                and seq != self._change_seq
                and not self._closed
                and not self.has_pending_timer
            ):
                # Changes that arrived mid-pass joined this pass; schedule the follow-up.
                self._start_quiet_timer()
            self._emit(ANALYSIS_FINISHED, result)
        return result

    def _emit(self, event: str, result: Optional[AnalysisResult]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, result)
            except Exception:
                logger.exception("Analysis listener failed on %s", event)

    def _start_quiet_timer(self) -> None:
        self._cancel_quiet_timer()
        token = object()
        self._quiet_token = token
        self._quiet_timer = self._scheduler.call_later(
            self.settings.quiet_period, lambda: self._on_quiet(token)
        )

    def _start_inactivity_timer(self) -> None:
        self._cancel_inactivity_timer()
        token = object()
        self._inactivity_token = token
        self._inactivity_timer = self._scheduler.call_later(
            self.settings.inactivity_period, lambda: self._on_inactive(token)
        )

    def _cancel_quiet_timer(self) -> None:
        if self._quiet_timer is not None:
            self._quiet_timer.cancel()
        self._quiet_timer = None
        self._quiet_token = None

    def _cancel_inactivity_timer(self) -> None:
        if self._inactivity_timer is not None:
            self._inactivity_timer.cancel()
        self._inactivity_timer = None
        self._inactivity_token = None

    def _cancel_timers(self) -> None:
        self._cancel_quiet_timer()
        self._cancel_inactivity_timer()


__all__ = [
    "ANALYSIS_FINISHED",
    "ANALYSIS_STARTED",
    "AnalysisListener",
    "AnalysisOrchestrator",
    "RunPass",
    "Scheduler",
    "ThreadingScheduler",
    "TimerHandle",
]
