"""Configuration loading for mdexpand (.mdexpand.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".mdexpand.yml"
DEFAULT_LANGUAGES: tuple[str, ...] = ("python", "py", "python3")
DEFAULT_MAX_INCLUDE_DEPTH = 50


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ExecutorConfig:
    """Settings for the code block executor."""

    languages: List[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGES))
    execute_by_default: bool = True
    echo_last_expression: bool = True
    capture_figures: bool = True


@dataclass
class IncludeConfig:
    """Directive resolution limits."""

    max_depth: int = DEFAULT_MAX_INCLUDE_DEPTH


@dataclass
class OutputConfig:
    """How the expanded document and its artifacts are written."""

    artifacts_dir: Optional[str] = None
    templates_dir: Optional[Path] = None
    result_language: str = "text"
    normalise: bool = False


@dataclass
class ExpandConfig:
    """Represents the settings defined in .mdexpand.yml."""

    root: Path
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    includes: IncludeConfig = field(default_factory=IncludeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def load_config(config_path: Path) -> ExpandConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ExpandConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    executor = ExecutorConfig()
    executor_data = _as_dict(data.get("executor"))
    if executor_data:
        languages = _as_str_list(executor_data.get("languages"))
        if languages:
            executor.languages = [language.lower() for language in languages]
        for key in ("execute_by_default", "echo_last_expression", "capture_figures"):
            value = _as_bool(executor_data.get(key))
            if value is not None:
                setattr(executor, key, value)

    includes = IncludeConfig()
    include_data = _as_dict(data.get("includes"))
    if include_data:
        max_depth = _as_int(include_data.get("max_depth"))
        if max_depth is not None:
            if max_depth < 1:
                raise ConfigError("includes.max_depth must be a positive integer")
            includes.max_depth = max_depth

    output = OutputConfig()
    output_data = _as_dict(data.get("output"))
    if output_data:
        output.artifacts_dir = _as_str(output_data.get("artifacts_dir"))
        templates_dir = _as_str(output_data.get("templates_dir"))
        output.templates_dir = root / templates_dir if templates_dir else None
        output.result_language = _as_str(output_data.get("result_language")) or "text"
        output.normalise = _as_bool(output_data.get("normalise")) or False

    return ExpandConfig(root=root, executor=executor, includes=includes, output=output)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


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
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ExecutorConfig",
    "ExpandConfig",
    "IncludeConfig",
    "OutputConfig",
    "load_config",
]
