from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.doubles import InlineExecutor, ManualScheduler
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()
