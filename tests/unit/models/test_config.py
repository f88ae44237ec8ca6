"""Tests for run configuration and bindings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from testgate.models.binding import FrameworkBinding
from testgate.models.categories import TestCategory
from testgate.models.config import (
    BindingOverride,
    RunConfig,
    Thresholds,
    default_concurrency,
)


class TestRunConfig:
    """Tests for RunConfig validation."""

    def test_defaults_to_standard_level(self, tmp_path: Path) -> None:
        """Default configuration runs the standard categories."""
        config = RunConfig(project=tmp_path)

        assert config.categories == (
            TestCategory.UNIT,
            TestCategory.INTEGRATION,
            TestCategory.SMOKE,
        )
        assert config.concurrency >= 1
        assert config.timeout == 600.0

    def test_rejects_single_flaky_run(self, tmp_path: Path) -> None:
        """One repetition cannot reveal flakiness."""
        with pytest.raises(ValidationError, match="flaky_runs"):
            RunConfig(project=tmp_path, flaky_runs=1)

    def test_update_baseline_requires_path(self, tmp_path: Path) -> None:
        """update_baseline without a baseline path is rejected."""
        with pytest.raises(ValidationError, match="requires a baseline path"):
            RunConfig(project=tmp_path, update_baseline=True)

    def test_rejects_zero_concurrency(self, tmp_path: Path) -> None:
        """At least one worker is needed."""
        with pytest.raises(ValidationError):
            RunConfig(project=tmp_path, concurrency=0)

    def test_is_immutable(self, tmp_path: Path) -> None:
        """Configuration cannot be changed after construction."""
        config = RunConfig(project=tmp_path)

        with pytest.raises(ValidationError):
            config.timeout = 1.0  # type: ignore[misc]


def test_thresholds_weight_defaults_to_one() -> None:
    """Categories without an explicit weight weigh 1.0."""
    thresholds = Thresholds(category_weights={TestCategory.UNIT: 2.0})

    assert thresholds.weight_for(TestCategory.UNIT) == 2.0
    assert thresholds.weight_for(TestCategory.SMOKE) == 1.0


def test_binding_override_becomes_binding() -> None:
    """Overrides from the config file map onto registry bindings."""
    override = BindingOverride(
        command=("make",), args=("test-unit",), env={"CI": "1"}, framework="make"
    )

    binding = override.to_binding(TestCategory.UNIT)

    assert binding.category == TestCategory.UNIT
    assert binding.framework == "make"
    assert binding.argv == ("make", "test-unit")
    assert binding.env == {"CI": "1"}


class TestFrameworkBinding:
    """Tests for FrameworkBinding.for_project."""

    def test_resolves_relative_working_dir(self, tmp_path: Path) -> None:
        """Relative working directories are resolved against the project."""
        binding = FrameworkBinding(
            category=TestCategory.UNIT,
            framework="npm",
            command=("npm", "test"),
            working_dir=Path("frontend"),
        )

        bound = binding.for_project(tmp_path)

        assert bound.working_dir == (tmp_path / "frontend").resolve()

    def test_substitutes_project_placeholder(self, tmp_path: Path) -> None:
        """'{project}' in arguments becomes the absolute project root."""
        binding = FrameworkBinding(
            category=TestCategory.SECURITY,
            framework="bandit",
            command=("bandit",),
            args_template=("-r", "{project}"),
        )

        bound = binding.for_project(tmp_path)

        assert bound.argv == ("bandit", "-r", str(tmp_path.resolve()))
        assert binding.args_template == ("-r", "{project}")


def test_default_concurrency_uses_cores_available_to_process(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A CPU affinity mask limits the default worker count."""
    monkeypatch.setattr(
        "testgate.models.config.os.sched_getaffinity",
        lambda pid: {0, 1},
        raising=False,
    )
    monkeypatch.setattr("testgate.models.config.os.cpu_count", lambda: 64)

    assert default_concurrency() == 2


def test_default_concurrency_without_affinity_support(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Platforms without affinity masks fall back to the core count."""
    monkeypatch.delattr(
        "testgate.models.config.os.sched_getaffinity", raising=False
    )
    monkeypatch.setattr("testgate.models.config.os.cpu_count", lambda: 4)

    assert default_concurrency() == 4
