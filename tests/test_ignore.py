"""Tests for nested ignore-rule discovery and matching."""

from __future__ import annotations

from pathlib import Path

from ctxscope.ignore import IgnoreRules, compile_rules, rule_verdict
from tests._fixtures.repo_builder import RepoBuilder


def test_rule_verdict_honours_negation() -> None:
    rules = compile_rules(["*.log", "!keep.log"])

    assert rule_verdict(rules, "debug.log", False) is True
    assert rule_verdict(rules, "keep.log", False) is False
    assert rule_verdict(rules, "main.py", False) is None


def test_directory_patterns_only_match_directories() -> None:
    rules = compile_rules(["build/"])

    assert rule_verdict(rules, "build", True) is True
    assert rule_verdict(rules, "build", False) is None


def test_primary_spec_overrides_fallback_in_same_directory(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".gitignore": "*.log\n",
            ".ctxignore": "!important.log\n",
            "important.log": "keep",
            "other.log": "drop",
        }
    )
    rules = IgnoreRules(repo_builder.path())

    assert rules.is_ignored("important.log") is False
    # The primary spec supersedes the fallback spec of its directory entirely.
    assert rules.is_ignored("other.log") is False


def test_fallback_rules_apply_without_primary_spec(repo_builder: RepoBuilder) -> None:
    repo_builder.write({".gitignore": "*.log\ndist/\n", "app.log": "", "dist/out.js": ""})
    rules = IgnoreRules(repo_builder.path())

    assert rules.is_ignored("app.log") is True
    assert rules.is_ignored("dist", is_dir=True) is True
    assert rules.is_ignored("dist/out.js") is True
    assert rules.is_ignored("src/app.py") is False


def test_deeper_primary_spec_wins_over_root_primary(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".ctxignore": "*.gen.ts\n",
            "pkg/.ctxignore": "!*.gen.ts\n",
            "pkg/api.gen.ts": "",
            "other/api.gen.ts": "",
        }
    )
    rules = IgnoreRules(repo_builder.path())

    assert rules.is_ignored("pkg/api.gen.ts") is False
    assert rules.is_ignored("other/api.gen.ts") is True


def test_primary_rules_are_consulted_before_deeper_fallback(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".ctxignore": "!src/generated.py\n",
            "src/.gitignore": "generated.py\n",
            "src/generated.py": "",
        }
    )
    rules = IgnoreRules(repo_builder.path())

    assert rules.is_ignored("src/generated.py") is False


def test_files_inside_ignored_directory_cannot_be_reincluded(repo_builder: RepoBuilder) -> None:
    repo_builder.write({".ctxignore": "vendor/\n!vendor/keep.js\n", "vendor/keep.js": ""})
    rules = IgnoreRules(repo_builder.path())

    assert rules.is_ignored("vendor/keep.js") is True


def test_discovery_does_not_descend_into_pruned_directories(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".gitignore": "node_modules/\n",
            "node_modules/lib/.gitignore": "*.js\n",
            "src/.gitignore": "*.tmp\n",
        }
    )
    rules = IgnoreRules(repo_builder.path())

    directories = [item.directory for item in rules.fallback_rules]
    assert "node_modules/lib" not in directories
    assert directories == ["src", "."]


def test_rules_are_ordered_deepest_first(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".ctxignore": "a\n",
            "x/.ctxignore": "b\n",
            "x/y/.ctxignore": "c\n",
        }
    )
    rules = IgnoreRules(repo_builder.path())

    primary, fallback = rules.discover()

    assert [item.directory for item in primary] == ["x/y", "x", "."]
    assert fallback == []


def test_metadata_and_vcs_directories_are_always_ignored(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/app.py": ""})
    rules = IgnoreRules(repo_builder.path())

    assert rules.is_ignored(".ctxscope/project_graph.json") is True
    assert rules.is_ignored(".git/config") is True
    assert rules.is_ignored(".git", is_dir=True) is True
    assert rules.is_ignored("src/app.py") is False


def test_fallback_specs_can_be_disabled(repo_builder: RepoBuilder) -> None:
    repo_builder.write({".gitignore": "*.log\n", "app.log": ""})
    rules = IgnoreRules(repo_builder.path(), use_gitignore=False)

    assert rules.fallback_rules == []
    assert rules.is_ignored("app.log") is False


def test_absolute_paths_are_relativized(repo_builder: RepoBuilder, tmp_path: Path) -> None:
    repo_builder.write({".ctxignore": "secret.txt\n"})
    rules = IgnoreRules(repo_builder.path())

    assert rules.is_ignored(repo_builder.path() / "secret.txt") is True
    assert rules.is_ignored(tmp_path / "elsewhere" / "secret.txt") is False


def test_add_pattern_appends_root_anchored_entry(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/utils/helpers.py": "", "lib/helpers.py": ""})
    rules = IgnoreRules(repo_builder.path())

    assert rules.add_pattern("src/utils/helpers.py") is True

    content = (repo_builder.path() / ".ctxignore").read_text(encoding="utf-8")
    assert content == "/src/utils/helpers.py\n"
    assert rules.is_ignored("src/utils/helpers.py") is True
    assert rules.is_ignored("lib/helpers.py") is False


def test_add_pattern_by_name_matches_anywhere(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"a/cache/x.txt": "", "b/cache/y.txt": ""})
    rules = IgnoreRules(repo_builder.path())

    assert rules.add_pattern("/cache/", match_all_by_name=True) is True

    content = (repo_builder.path() / ".ctxignore").read_text(encoding="utf-8")
    assert content == "cache/\n"
    assert rules.is_ignored("a/cache/x.txt") is True
    assert rules.is_ignored("b/cache", is_dir=True) is True


def test_add_pattern_skips_duplicates(repo_builder: RepoBuilder) -> None:
    repo_builder.write({".ctxignore": "/build/\r\n"})
    rules = IgnoreRules(repo_builder.path())

    assert rules.add_pattern("build/") is False
    assert rules.add_pattern("dist\\") is True

    content = (repo_builder.path() / ".ctxignore").read_text(encoding="utf-8")
    assert content == "/build/\n/dist/\n"
