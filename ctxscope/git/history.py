"""Commit history queries backed by the git command line."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from ..logging import get_logger
from ..models import CommitLog

_FIELD_SEPARATOR = "\x1f"
_LOG_FORMAT = _FIELD_SEPARATOR.join(("%H", "%s", "%an", "%ai"))

logger = get_logger("git.history")


class SourceHistory(Protocol):
    """Commit-history capability consumed by the graph builder and scorer."""

    def is_available(self) -> bool:
        ...

    def commits_for_file(
        self, path: str, *, max_count: int = 50, since: Optional[str] = None
    ) -> List[CommitLog]:
        ...

    def files_for_commit(self, commit_hash: str) -> List[str]:
        ...

    def recent_commit_hashes(self, count: int) -> List[str]:
        ...

    def recently_touched_files(self, days_ago: int) -> List[str]:
        ...


class GitHistory:
    """Answers history queries for one repository; failures degrade to empty results."""

    def __init__(self, repo_path: Path | str, runner: Callable[..., str] | None = None) -> None:
        self.repo = Path(repo_path)
        self._runner = runner or self._default_runner
        self._available: Optional[bool] = None
        self._prefix = ""
        self._commit_files: Dict[str, List[str]] = {}

    def is_available(self) -> bool:
        if self._available is None:
            # Prints the project directory relative to the work tree top level.
            prefix = self._query(["git", "rev-parse", "--show-prefix"])
            self._available = prefix is not None
            self._prefix = (prefix or "").strip().replace("\\", "/")
        return self._available

    def commits_for_file(
        self, path: str, *, max_count: int = 50, since: Optional[str] = None
    ) -> List[CommitLog]:
        if not self.is_available():
            return []
        args = ["git", "log", f"--format={_LOG_FORMAT}", "--follow"]
        if max_count > 0:
            args.extend(["-n", str(max_count)])
        if since:
            args.append(f"--since={since}")
        args.extend(["--", path])
        output = self._query(args)
        if not output:
            return []
        return _parse_commit_log(output)

    def files_for_commit(self, commit_hash: str) -> List[str]:
        if not self.is_available():
            return []
        cached = self._commit_files.get(commit_hash)
        if cached is not None:
            return list(cached)
        output = self._query(["git", "show", "--name-only", "--format=", commit_hash])
        files = self._reroot(_unique_lines(output or ""))
        # Commits are immutable, so their file lists can be memoized.
        self._commit_files[commit_hash] = files
        return list(files)

    def recent_commit_hashes(self, count: int) -> List[str]:
        if not self.is_available() or count <= 0:
            return []
        output = self._query(["git", "log", "--format=%H", "-n", str(count)])
        return _unique_lines(output or "")

    def recently_touched_files(self, days_ago: int) -> List[str]:
        if not self.is_available():
            return []
        output = self._query(
            ["git", "log", "--name-only", "--format=", f"--since={days_ago} days ago"]
        )
        return self._reroot(_unique_lines(output or ""))

    # ------------------------------------------------------------------
    # Internals

    def _reroot(self, paths: List[str]) -> List[str]:
        """Map top-level-relative paths to project-relative ones, dropping outsiders."""
        if not self._prefix:
            return paths
        return [path[len(self._prefix) :] for path in paths if path.startswith(self._prefix)]

    def _query(self, args: List[str]) -> Optional[str]:
        try:
            return self._runner(args, cwd=self.repo, capture_output=True)
        except (subprocess.CalledProcessError, OSError) as exc:
            logger.debug("git query %s failed: %s", " ".join(args[1:3]), exc)
            return None

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


class NullHistory:
    """History stand-in for projects outside version control."""

    def is_available(self) -> bool:
        return False

    def commits_for_file(
        self, path: str, *, max_count: int = 50, since: Optional[str] = None
    ) -> List[CommitLog]:
        return []

    def files_for_commit(self, commit_hash: str) -> List[str]:
        return []

    def recent_commit_hashes(self, count: int) -> List[str]:
        return []

    def recently_touched_files(self, days_ago: int) -> List[str]:
        return []


def _parse_commit_log(output: str) -> List[CommitLog]:
    commits: List[CommitLog] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split(_FIELD_SEPARATOR)
        if len(parts) < 4:
            continue
        commits.append(
            CommitLog(
                hash=parts[0].strip(),
                message=parts[1].strip(),
                author=parts[2].strip(),
                date=parts[3].strip(),
            )
        )
    return commits


def _unique_lines(output: str) -> List[str]:
    seen: Dict[str, None] = {}
    for line in output.splitlines():
        stripped = line.strip().replace("\\", "/")
        if stripped:
            seen.setdefault(stripped, None)
    return list(seen)


__all__ = ["GitHistory", "NullHistory", "SourceHistory"]
