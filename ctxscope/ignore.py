"""Nested ignore-rule discovery and matching.

Two spec files are honoured in every directory: ``.ctxignore`` (primary) and
``.gitignore`` (fallback). Within one directory the primary spec supersedes the
fallback spec, and primary rules are consulted before any fallback rule. Within
each class the deepest directory with a verdict wins, like nested gitignores.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import List, Optional, Sequence, Tuple

import pathspec

from .logging import get_logger
from .models import IgnoreFile

PRIMARY_IGNORE_FILENAME = ".ctxignore"
FALLBACK_IGNORE_FILENAME = ".gitignore"
METADATA_DIRNAME = ".ctxscope"

_ALWAYS_IGNORED_WITH_FALLBACK = ".git/"
_VCS_DIRS = frozenset({".git", ".hg", ".svn"})

logger = get_logger("ignore")


def compile_rules(lines: Sequence[str]) -> pathspec.PathSpec:
    """Compile gitignore-style lines into a path spec."""
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def rule_verdict(rules: pathspec.PathSpec, rel_path: str, is_dir: bool) -> Optional[bool]:
    """Return True/False when a pattern decides ``rel_path``, or None when none match.

    The last matching pattern wins, so negations re-include earlier matches.
    """
    target = f"{rel_path}/" if is_dir else rel_path
    verdict: Optional[bool] = None
    for pattern in rules.patterns:
        if pattern.include is None:
            continue
        if pattern.match_file(target) is not None:
            verdict = bool(pattern.include)
    return verdict


def _depth(directory: str) -> int:
    return 0 if directory == "." else directory.count("/") + 1


def _deepest_first(files: Sequence[IgnoreFile]) -> List[IgnoreFile]:
    return sorted(files, key=lambda item: _depth(item.directory), reverse=True)


def _read_lines(path: Path) -> Optional[List[str]]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Could not read ignore spec %s: %s", path, exc)
        return None


class IgnoreRules:
    """Discovers nested ignore specs and answers ignore queries for one project."""

    def __init__(self, root: Path | str | None = None, *, use_gitignore: bool = True) -> None:
        self.use_gitignore = use_gitignore
        self._root: Optional[Path] = None
        self._primary: List[IgnoreFile] = []
        self._fallback: List[IgnoreFile] = []
        if root is not None:
            self.set_root(root)

    @property
    def root(self) -> Optional[Path]:
        return self._root

    @property
    def primary_rules(self) -> List[IgnoreFile]:
        return list(self._primary)

    @property
    def fallback_rules(self) -> List[IgnoreFile]:
        return list(self._fallback)

    def set_root(self, root: Path | str) -> None:
        """Point at a new project root and rediscover every spec beneath it."""
        self._root = Path(root).expanduser().resolve()
        self.clear()
        self.discover()

    def clear(self) -> None:
        self._primary = []
        self._fallback = []

    def discover(self) -> Tuple[List[IgnoreFile], List[IgnoreFile]]:
        """Walk the project and replace both rule lists, each ordered deepest-first."""
        if self._root is None:
            logger.debug("No project root set; skipping ignore discovery")
            self.clear()
            return [], []

        primary: List[IgnoreFile] = []
        fallback: List[IgnoreFile] = []
        self._walk(self._root, ".", primary, fallback)

        self._primary = _deepest_first(primary)
        self._fallback = _deepest_first(fallback) if self.use_gitignore else []
        logger.debug(
            "Ignore discovery found %d %s and %d %s specs",
            len(self._primary),
            PRIMARY_IGNORE_FILENAME,
            len(self._fallback),
            FALLBACK_IGNORE_FILENAME,
        )
        return list(self._primary), list(self._fallback)

    def is_ignored(self, path: str | Path, is_dir: bool = False) -> bool:
        """Return True when ``path`` (absolute or project-relative) is excluded."""
        rel_path = self._relativize(path)
        if rel_path is None:
            return False

        parts = rel_path.split("/")
        if parts[0] == METADATA_DIRNAME:
            return True
        if _VCS_DIRS.intersection(parts[:-1]) or (is_dir and parts[-1] in _VCS_DIRS):
            return True
        for index in range(1, len(parts)):
            if self._decide("/".join(parts[:index]), True):
                return True
        return self._decide(rel_path, is_dir)

    def add_pattern(self, item_path: str, match_all_by_name: bool = False) -> bool:
        """Append a pattern for ``item_path`` to the root primary spec.

        Returns False when the same line is already present or the spec cannot
        be written.
        """
        if self._root is None:
            return False

        had_trailing_slash = item_path.endswith(("/", "\\"))
        normalized = item_path.replace("\\", "/")
        if match_all_by_name:
            line = normalized.lstrip("/")
        else:
            rel_path = self._relativize(normalized)
            if rel_path is None:
                return False
            line = f"/{rel_path}"
        line = line.rstrip("/")
        if not line or line == "/":
            return False
        if had_trailing_slash:
            line += "/"

        spec_path = self._root / PRIMARY_IGNORE_FILENAME
        try:
            existing = spec_path.read_text(encoding="utf-8") if spec_path.exists() else ""
            lines = [entry for entry in existing.splitlines() if entry.strip()]
            if line in lines:
                return False
            lines.append(line)
            spec_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to update %s: %s", spec_path, exc)
            return False

        logger.info("Added ignore pattern %s", line)
        self.discover()
        return True

    # ------------------------------------------------------------------
    # Internal helpers

    def _walk(
        self,
        absolute_dir: Path,
        rel_dir: str,
        primary: List[IgnoreFile],
        fallback: List[IgnoreFile],
    ) -> None:
        primary_lines = _read_lines(absolute_dir / PRIMARY_IGNORE_FILENAME)
        fallback_lines = _read_lines(absolute_dir / FALLBACK_IGNORE_FILENAME)

        pruning: Optional[pathspec.PathSpec] = None
        if primary_lines is not None:
            primary_spec = compile_rules(primary_lines)
            primary.append(IgnoreFile(directory=rel_dir, rules=primary_spec))
            pruning = primary_spec
        if fallback_lines is not None:
            fallback_spec = compile_rules([*fallback_lines, _ALWAYS_IGNORED_WITH_FALLBACK])
            fallback.append(IgnoreFile(directory=rel_dir, rules=fallback_spec))
            if pruning is None and self.use_gitignore:
                pruning = fallback_spec

        try:
            with os.scandir(absolute_dir) as iterator:
                subdirs = sorted(
                    entry.name for entry in iterator if _is_directory(entry)
                )
        except OSError as exc:
            logger.debug("Skipping unreadable directory %s: %s", absolute_dir, exc)
            return

        for name in subdirs:
            if rel_dir == "." and name == METADATA_DIRNAME:
                continue
            if name in _VCS_DIRS:
                continue
            if pruning is not None and rule_verdict(pruning, name, True):
                continue
            child_rel = name if rel_dir == "." else f"{rel_dir}/{name}"
            self._walk(absolute_dir / name, child_rel, primary, fallback)

    def _decide(self, rel_path: str, is_dir: bool) -> bool:
        for ignore_file in self._primary:
            verdict = _verdict_in(ignore_file, rel_path, is_dir)
            if verdict is not None:
                return verdict

        overridden = {ignore_file.directory for ignore_file in self._primary}
        for ignore_file in self._fallback:
            if ignore_file.directory in overridden:
                continue
            verdict = _verdict_in(ignore_file, rel_path, is_dir)
            if verdict is not None:
                return verdict
        return False

    def _relativize(self, path: str | Path) -> Optional[str]:
        text = str(path).replace("\\", "/")
        candidate = PurePosixPath(text)
        if candidate.is_absolute():
            if self._root is None:
                return None
            try:
                text = Path(text).resolve().relative_to(self._root).as_posix()
            except ValueError:
                return None
        rel_path = PurePosixPath(text.strip("/")).as_posix()
        if rel_path in {"", "."}:
            return None
        return rel_path


def _verdict_in(ignore_file: IgnoreFile, rel_path: str, is_dir: bool) -> Optional[bool]:
    if ignore_file.directory == ".":
        return rule_verdict(ignore_file.rules, rel_path, is_dir)
    prefix = f"{ignore_file.directory}/"
    if not rel_path.startswith(prefix):
        return None
    return rule_verdict(ignore_file.rules, rel_path[len(prefix):], is_dir)


def _is_directory(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir()
    except OSError:
        return False


__all__ = [
    "FALLBACK_IGNORE_FILENAME",
    "IgnoreRules",
    "METADATA_DIRNAME",
    "PRIMARY_IGNORE_FILENAME",
    "compile_rules",
    "rule_verdict",
]
