"""Tests for the background analysis orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from ctxscope.config import AnalysisConfig
from ctxscope.graph import ProjectGraph
from ctxscope.models import AnalysisResult, GraphSnapshot
from ctxscope.orchestrator import (
    ANALYSIS_FINISHED,
    ANALYSIS_STARTED,
    AnalysisOrchestrator,
)
from ctxscope.stores import GraphCache
from tests._fixtures.doubles import DeferredExecutor, InlineExecutor, ManualScheduler

QUIET = 2.0
INACTIVE = 30.0


class RecordingPass:
    """Analysis pass double returning a snapshot tagged with a call counter."""

    def __init__(self) -> None:
        self.roots: List[str] = []
        self.fail = False

    def __call__(self, root: str) -> AnalysisResult:
        self.roots.append(root)
        if self.fail:
            return AnalysisResult(root=root, error=RuntimeError("boom"))
        return AnalysisResult(
            root=root,
            snapshot=GraphSnapshot(hubs=(f"hub{len(self.roots)}.ts",)),
        )


def _orchestrator(
    scheduler: ManualScheduler,
    executor,  # type: ignore[no-untyped-def]
    run_pass: RecordingPass,
    graph: Optional[ProjectGraph] = None,
) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(
        graph or ProjectGraph(),
        run_pass=run_pass,
        scheduler=scheduler,
        executor=executor,
        settings=AnalysisConfig(quiet_period=QUIET, inactivity_period=INACTIVE),
    )


def test_set_root_analyzes_when_cache_misses(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    cache = GraphCache(tmp_path / "project_graph.json")

    future = orchestrator.set_root(tmp_path, cache)

    assert future is not None
    assert future.result().ok
    assert run_pass.roots == [str(tmp_path)]
    assert orchestrator.graph.hub_files() == ["hub1.ts"]
    assert cache.load() == GraphSnapshot(hubs=("hub1.ts",))


def test_set_root_uses_cache_when_available(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    cache = GraphCache(tmp_path / "project_graph.json")
    cache.save(GraphSnapshot(hubs=("cached.ts",)))
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)

    assert orchestrator.set_root(tmp_path, cache) is None
    assert run_pass.roots == []
    assert orchestrator.graph.hub_files() == ["cached.ts"]


def test_change_then_quiescence_analyzes_when_unfocused(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    orchestrator.set_root(tmp_path)

    orchestrator.notify_change("src/a.ts")
    orchestrator.notify_change("src/b.ts")

    assert orchestrator.is_stale
    assert len(scheduler.pending) == 1
    assert len(run_pass.roots) == 1

    scheduler.fire(QUIET)

    assert len(run_pass.roots) == 2
    assert not orchestrator.is_stale
    assert orchestrator.graph.hub_files() == ["hub2.ts"]


def test_focused_surface_waits_for_inactivity(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    orchestrator.set_root(tmp_path)
    orchestrator.set_focus(True)

    orchestrator.notify_change("a.ts")
    scheduler.fire(QUIET)

    assert len(run_pass.roots) == 1
    assert [handle.delay for handle in scheduler.pending] == [INACTIVE]

    orchestrator.record_activity()
    assert [handle.delay for handle in scheduler.pending] == [INACTIVE]
    assert len([handle for handle in scheduler.handles if handle.delay == INACTIVE]) == 2

    scheduler.fire(INACTIVE)

    assert len(run_pass.roots) == 2
    assert not orchestrator.is_stale


def test_record_activity_without_pending_timer_is_noop(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    orchestrator = _orchestrator(scheduler, inline_executor, RecordingPass())
    orchestrator.set_root(tmp_path)

    orchestrator.record_activity()

    assert scheduler.pending == []


def test_losing_focus_while_stale_analyzes_immediately(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    orchestrator.set_root(tmp_path)
    orchestrator.set_focus(True)
    orchestrator.notify_change("a.ts")
    scheduler.fire(QUIET)

    orchestrator.set_focus(False)

    assert len(run_pass.roots) == 2
    assert scheduler.pending == []


def test_losing_focus_during_quiescence_waits_for_timer(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    orchestrator.set_root(tmp_path)
    orchestrator.set_focus(True)
    orchestrator.notify_change("a.ts")

    orchestrator.set_focus(False)

    assert len(run_pass.roots) == 1
    scheduler.fire(QUIET)
    assert len(run_pass.roots) == 2


def test_force_reanalyze_bypasses_timers(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    orchestrator.set_root(tmp_path)
    orchestrator.notify_change("a.ts")

    orchestrator.force_reanalyze().result()

    assert len(run_pass.roots) == 2
    assert scheduler.pending == []
    assert not orchestrator.is_stale


def test_concurrent_requests_share_the_in_flight_pass(
    tmp_path: Path, scheduler: ManualScheduler
) -> None:
    executor = DeferredExecutor()
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, executor, run_pass)

    first = orchestrator.set_root(tmp_path)
    second = orchestrator.request_analysis()
    third = orchestrator.force_reanalyze()

    assert first is second is third
    assert len(executor.queue) == 1

    executor.run_all()

    assert first is not None and first.result().ok
    assert run_pass.roots == [str(tmp_path)]
    assert orchestrator.request_analysis() is not first


def test_change_during_pass_schedules_follow_up_analysis(
    tmp_path: Path, scheduler: ManualScheduler
) -> None:
    executor = DeferredExecutor()
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, executor, run_pass)
    orchestrator.set_root(tmp_path)

    orchestrator.notify_change("a.ts")
    scheduler.fire(QUIET)
    assert len(executor.queue) == 1

    executor.run_next()

    assert run_pass.roots == [str(tmp_path)]
    assert orchestrator.is_stale
    assert [handle.delay for handle in scheduler.pending] == [QUIET]

    scheduler.fire(QUIET)
    executor.run_all()

    assert run_pass.roots == [str(tmp_path), str(tmp_path)]
    assert not orchestrator.is_stale
    assert orchestrator.graph.hub_files() == ["hub2.ts"]
    assert scheduler.pending == []


def test_failed_pass_keeps_previous_snapshot_and_notifies(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    events: List[Tuple[str, Optional[AnalysisResult]]] = []
    orchestrator.subscribe(lambda event, result: events.append((event, result)))
    orchestrator.set_root(tmp_path)
    orchestrator.notify_change("a.ts")

    run_pass.fail = True
    result = orchestrator.force_reanalyze().result()

    assert result.ok is False
    assert orchestrator.graph.hub_files() == ["hub1.ts"]
    assert orchestrator.is_stale
    assert [event for event, _ in events] == [
        ANALYSIS_STARTED,
        ANALYSIS_FINISHED,
        ANALYSIS_STARTED,
        ANALYSIS_FINISHED,
    ]
    assert events[-1][1] is result


def test_raising_pass_is_reported_as_failure(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    def exploding(root: str) -> AnalysisResult:
        raise ValueError("unexpected")

    orchestrator = AnalysisOrchestrator(
        ProjectGraph(), run_pass=exploding, scheduler=scheduler, executor=inline_executor
    )

    future = orchestrator.set_root(tmp_path)

    assert future is not None
    result = future.result()
    assert isinstance(result.error, ValueError)
    assert orchestrator.graph.snapshot.is_empty


def test_results_for_previous_root_are_discarded(tmp_path: Path, scheduler: ManualScheduler) -> None:
    executor = DeferredExecutor()
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, executor, run_pass)
    old_root = tmp_path / "old"
    new_root = tmp_path / "new"

    old_future = orchestrator.set_root(old_root)
    new_future = orchestrator.set_root(new_root)

    assert old_future is not None and new_future is not None
    assert old_future is not new_future
    assert len(executor.queue) == 2

    executor.run_next()

    assert old_future.result().root == str(old_root)
    assert orchestrator.graph.snapshot.is_empty

    executor.run_next()

    assert run_pass.roots == [str(old_root), str(new_root)]
    assert new_future.result().root == str(new_root)
    assert orchestrator.graph.hub_files() == ["hub2.ts"]


def test_stale_timer_callbacks_are_ignored(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    run_pass = RecordingPass()
    orchestrator = _orchestrator(scheduler, inline_executor, run_pass)
    orchestrator.set_root(tmp_path)
    orchestrator.notify_change("a.ts")
    stale_handle = scheduler.pending[0]

    orchestrator.set_root(tmp_path / "other")
    stale_handle.callback()

    assert run_pass.roots == [str(tmp_path), str(tmp_path / "other")]


def test_request_without_root_is_an_error(
    scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    orchestrator = _orchestrator(scheduler, inline_executor, RecordingPass())

    with pytest.raises(RuntimeError):
        orchestrator.request_analysis()


def test_shutdown_cancels_timers(
    tmp_path: Path, scheduler: ManualScheduler, inline_executor: InlineExecutor
) -> None:
    orchestrator = _orchestrator(scheduler, inline_executor, RecordingPass())
    orchestrator.set_root(tmp_path)
    orchestrator.notify_change("a.ts")

    orchestrator.shutdown()

    assert scheduler.pending == []
    assert not orchestrator.has_pending_timer
