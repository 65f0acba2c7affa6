"""Test doubles for history, scheduling and execution."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from typing import Callable, Dict, List, Optional, Sequence

from ctxscope.models import CommitLog


class FakeHistory:
    """In-memory commit history keyed by commit hash."""

    def __init__(self, commits: Optional[Dict[str, Sequence[str]]] = None, *, available: bool = True) -> None:
        # Insertion order is newest first.
        self.commits: Dict[str, List[str]] = {key: list(files) for key, files in (commits or {}).items()}
        self.available = available
        self.recent: List[str] = []

    def is_available(self) -> bool:
        return self.available

    def commits_for_file(
        self, path: str, *, max_count: int = 50, since: Optional[str] = None
    ) -> List[CommitLog]:
        matching = [
            CommitLog(hash=key, message=f"commit {key}", author="dev", date="2024-01-01")
            for key, files in self.commits.items()
            if path in files
        ]
        return matching[:max_count] if max_count > 0 else matching

    def files_for_commit(self, commit_hash: str) -> List[str]:
        return list(self.commits.get(commit_hash, []))

    def recent_commit_hashes(self, count: int) -> List[str]:
        return list(self.commits)[:count]

    def recently_touched_files(self, days_ago: int) -> List[str]:
        return list(self.recent)


class _ManualHandle:
    def __init__(self, scheduler: "ManualScheduler", delay: float, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers only fire when a test says so."""

    def __init__(self) -> None:
        self.handles: List[_ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self, delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[_ManualHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire(self, delay: float) -> None:
        """Run every pending timer scheduled with ``delay``."""
        for handle in list(self.pending):
            if handle.delay == delay:
                handle.cancelled = True
                handle.callback()


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[no-untyped-def]
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # pragma: no cover - surfaced through the future
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Queues work until ``run_all`` so in-flight behaviour can be observed."""

    def __init__(self) -> None:
        self.queue: List[tuple] = []

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[no-untyped-def]
        future: Future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_next(self) -> None:
        future, fn, args, kwargs = self.queue.pop(0)
        future.set_result(fn(*args, **kwargs))

    def run_all(self) -> None:
        while self.queue:
            self.run_next()


def count_words(text: str) -> int:
    """Deterministic token counter for budget tests."""
    return len(text.split())


__all__ = [
    "DeferredExecutor",
    "FakeHistory",
    "InlineExecutor",
    "ManualScheduler",
    "count_words",
]
