"""Configuration loading for ctxscope (.ctxscope.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_FILENAME = ".ctxscope.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class IgnoreConfig:
    """Ignore-rule discovery settings."""

    use_gitignore: bool = True


@dataclass
class AnalysisConfig:
    """Project graph analysis and scheduling settings."""

    hub_in_degree_threshold: int = 5
    max_hub_files: int = 10
    commit_sample_size: int = 300
    co_commit_min_files: int = 2
    co_commit_max_files: int = 19
    recent_days: int = 14
    quiet_period: float = 2.0
    inactivity_period: float = 30.0


@dataclass
class ScoringWeights:
    """Bonus values contributed by each relevance signal."""

    keyword_multi: float = 20.0
    keyword_single: float = 10.0
    hub: float = 5.0
    shared_commit_multi: float = 15.0
    shared_commit_single: float = 6.0
    direct_dependency: float = 25.0
    mention: float = 8.0
    same_folder: float = 4.0
    sibling: float = 6.0


@dataclass
class ScoringConfig:
    """Relevance scoring and prompt budget settings."""

    token_budget: int = 8000
    min_score: float = 1.0
    seed_expansion_threshold: int = 2
    seed_basket_size: int = 5
    heuristic_seed_modifier: float = 0.5
    shared_commit_depth: int = 20
    shared_commit_multi_threshold: float = 3.0
    preview_min_lines: int = 10
    preview_max_lines: int = 20
    weights: ScoringWeights = field(default_factory=ScoringWeights)


@dataclass
class CtxScopeConfig:
    """Represents the high-level settings defined in .ctxscope.yml."""

    root: Path
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)


def load_config(config_path: Path) -> CtxScopeConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CtxScopeConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    ignore_data = _as_dict(data.get("ignore"))
    ignore = IgnoreConfig()
    use_gitignore = _as_bool(ignore_data.get("use_gitignore"))
    if use_gitignore is not None:
        ignore.use_gitignore = use_gitignore

    analysis = _apply_numbers(AnalysisConfig(), _as_dict(data.get("analysis")))

    scoring_data = _as_dict(data.get("scoring"))
    scoring = _apply_numbers(ScoringConfig(), scoring_data)
    scoring.weights = _apply_numbers(ScoringWeights(), _as_dict(scoring_data.get("weights")))

    return CtxScopeConfig(root=root, ignore=ignore, analysis=analysis, scoring=scoring)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _apply_numbers(target: Any, values: Dict[str, Any]) -> Any:
    """Overwrite numeric dataclass fields with well-typed values from ``values``."""
    for spec in fields(target):
        if spec.name not in values:
            continue
        current = getattr(target, spec.name)
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            continue
        raw = values[spec.name]
        if isinstance(current, int) and not isinstance(current, bool):
            coerced: Optional[float] = _as_int(raw)
        else:
            coerced = _as_float(raw)
        if coerced is not None:
            setattr(target, spec.name, coerced)
    return target


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


__all__ = [
    "AnalysisConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "CtxScopeConfig",
    "IgnoreConfig",
    "ScoringConfig",
    "ScoringWeights",
    "load_config",
]
