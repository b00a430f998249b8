"""Tests for mdexpand.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdexpand.config import ConfigError, ExpandConfig, load_config


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, ExpandConfig)
    assert config.root == tmp_path.resolve()
    assert config.executor.languages == ["python", "py", "python3"]
    assert config.executor.execute_by_default is True
    assert config.executor.echo_last_expression is True
    assert config.executor.capture_figures is True
    assert config.includes.max_depth == 50
    assert config.output.artifacts_dir is None
    assert config.output.templates_dir is None
    assert config.output.result_language == "text"
    assert config.output.normalise is False


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".mdexpand.yml"
    config_file.write_text(
        """
executor:
  languages: [Python, pycon]
  execute_by_default: "no"
  echo_last_expression: false
  capture_figures: off
includes:
  max_depth: 8
output:
  artifacts_dir: "assets"
  templates_dir: "docs/templates"
  result_language: "console"
  normalise: true
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.executor.languages == ["python", "pycon"]
    assert config.executor.execute_by_default is False
    assert config.executor.echo_last_expression is False
    assert config.executor.capture_figures is False
    assert config.includes.max_depth == 8
    assert config.output.artifacts_dir == "assets"
    assert config.output.templates_dir == (tmp_path / "docs" / "templates")
    assert config.output.result_language == "console"
    assert config.output.normalise is True


def test_load_config_accepts_explicit_file_name(tmp_path: Path) -> None:
    config_file = tmp_path / "expand.yaml"
    config_file.write_text("includes:\n  max_depth: '3'\n", encoding="utf-8")

    config = load_config(config_file)

    assert config.includes.max_depth == 3
    assert config.root == tmp_path.resolve()


def test_empty_file_means_defaults(tmp_path: Path) -> None:
    (tmp_path / ".mdexpand.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path).includes.max_depth == 50


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "executor: [unclosed\n",
        "includes:\n  max_depth: 0\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    (tmp_path / ".mdexpand.yml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)
