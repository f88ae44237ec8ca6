"""Tests for configuration file loading."""

from pathlib import Path

import pytest

from testgate.config_loader import ConfigError, load_config_file
from testgate.models.categories import ProjectType, TestCategory, TestLevel
from testgate.models.config import ConfigFile


async def test_loads_full_config(tmp_path: Path) -> None:
    """Parses every supported section."""
    path = tmp_path / "testgate.yaml"
    path.write_text(
        """\
version: "1"
level: comprehensive
categories: [unit, e2e]
concurrency: 2
timeout: 120
run_timeout: 900
project_type: nodejs
flaky_runs: 3
thresholds:
  min_score: 85
  max_failures_per_category: 1
  min_coverage: 75.5
  category_weights:
    unit: 2
bindings:
  e2e:
    command: [npx, playwright, test]
    args: ["--reporter=line"]
    working_dir: web
    env:
      CI: "1"
    framework: playwright
"""
    )

    config = await load_config_file(path)

    assert config.level == TestLevel.COMPREHENSIVE
    assert config.categories == (TestCategory.UNIT, TestCategory.E2E)
    assert config.project_type == ProjectType.NODEJS
    assert config.thresholds is not None
    assert config.thresholds.min_score == 85.0
    assert config.thresholds.weight_for(TestCategory.UNIT) == 2.0
    e2e = config.bindings[TestCategory.E2E]
    assert e2e.command == ("npx", "playwright", "test")
    assert e2e.working_dir == Path("web")
    assert e2e.env == {"CI": "1"}


async def test_empty_file_gives_defaults(tmp_path: Path) -> None:
    """An empty file is a valid, empty configuration."""
    path = tmp_path / "testgate.yaml"
    path.write_text("")

    assert await load_config_file(path) == ConfigFile()


async def test_missing_file(tmp_path: Path) -> None:
    """Raises FileNotFoundError for a missing file."""
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        await load_config_file(tmp_path / "missing.yaml")


async def test_invalid_yaml(tmp_path: Path) -> None:
    """Raises ConfigError for malformed YAML."""
    path = tmp_path / "testgate.yaml"
    path.write_text("level: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        await load_config_file(path)


async def test_non_mapping(tmp_path: Path) -> None:
    """Top-level lists are rejected."""
    path = tmp_path / "testgate.yaml"
    path.write_text("- unit\n- e2e\n")

    with pytest.raises(ConfigError, match="must contain a mapping"):
        await load_config_file(path)


async def test_unknown_category(tmp_path: Path) -> None:
    """Unknown categories and keys are configuration errors."""
    path = tmp_path / "testgate.yaml"
    path.write_text("categories: [unit, fuzz]\n")

    with pytest.raises(ConfigError, match="Invalid configuration"):
        await load_config_file(path)


async def test_unknown_key(tmp_path: Path) -> None:
    """Misspelled keys are rejected rather than ignored."""
    path = tmp_path / "testgate.yaml"
    path.write_text("concurency: 4\n")

    with pytest.raises(ValueError, match="Invalid configuration"):
        await load_config_file(path)
