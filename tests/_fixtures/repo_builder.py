"""Helper utilities for constructing temporary projects in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping

from ctxscope.filestore import LocalFileStore
from ctxscope.ignore import IgnoreRules


class RepoBuilder:
    """Utility for writing files into a throwaway project and reading it back."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the project."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def mkdir(self, relative: str) -> Path:
        path = self.root / relative
        path.mkdir(parents=True, exist_ok=True)
        return path

    def store(self, *, use_gitignore: bool = True) -> LocalFileStore:
        """Return an ignore-aware file store over the current tree."""
        rules = IgnoreRules(self.root, use_gitignore=use_gitignore)
        return LocalFileStore(self.root, rules)

    def path(self) -> Path:
        """Return the project root path."""
        return self.root


__all__ = ["RepoBuilder"]
