"""Run configuration, built once at startup and passed to each component."""

import os
from pathlib import Path
from typing import Literal, Self, TypeAlias

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from testgate.models.base import Model
from testgate.models.binding import FrameworkBinding
from testgate.models.categories import (
    LEVEL_CATEGORIES,
    ProjectType,
    TestCategory,
    TestLevel,
)

ReportFormat: TypeAlias = Literal["json", "html", "both"]

DEFAULT_TIMEOUT = 600.0


def default_concurrency() -> int:
    """Number of CPU cores this process may use, at least one."""
    if hasattr(os, "sched_getaffinity"):
        return max(len(os.sched_getaffinity(0)), 1)
    return os.cpu_count() or 1


class Thresholds(Model):
    """Quality gate thresholds."""

    min_score: float = Field(default=70.0, ge=0.0, le=100.0)
    max_failures_per_category: int = Field(default=0, ge=0)
    min_coverage: float | None = Field(default=None, ge=0.0, le=100.0)
    category_weights: dict[TestCategory, float] = Field(default_factory=dict)

    def weight_for(self, category: TestCategory) -> float:
        """Weight of a category in the overall score (default 1.0)."""
        return self.category_weights.get(category, 1.0)


class BindingOverride(Model):
    """User supplied command for a category, as written in the config file."""

    command: tuple[str, ...] = Field(..., min_length=1)
    args: tuple[str, ...] = Field(default_factory=tuple)
    working_dir: Path = Field(default=Path("."))
    env: dict[str, str] = Field(default_factory=dict)
    framework: str = "custom"

    def to_binding(self, category: TestCategory) -> FrameworkBinding:
        """Turn the override into a registry binding."""
        return FrameworkBinding(
            category=category,
            framework=self.framework,
            command=self.command,
            args_template=self.args,
            working_dir=self.working_dir,
            env=self.env,
        )


class ConfigFile(Model):
    """Contents of a testgate.yaml configuration file.

    Every field is optional; command line flags take precedence.
    """

    version: str = "1"
    level: TestLevel | None = None
    categories: tuple[TestCategory, ...] | None = None
    concurrency: int | None = Field(default=None, ge=1)
    timeout: float | None = Field(default=None, gt=0)
    run_timeout: float | None = Field(default=None, gt=0)
    project_type: ProjectType | None = None
    flaky_runs: int | None = Field(default=None, ge=0)
    thresholds: Thresholds | None = None
    bindings: dict[TestCategory, BindingOverride] = Field(default_factory=dict)


class PublisherConfig(BaseModel):
    """Where to upload report.json after a run."""

    url: str
    token: SecretStr | None = None
    timeout: float = 30.0


class RunConfig(Model):
    """Immutable configuration for one orchestrated run."""

    project: Path
    level: TestLevel = TestLevel.STANDARD
    categories: tuple[TestCategory, ...] = LEVEL_CATEGORIES[TestLevel.STANDARD]
    concurrency: int = Field(default_factory=default_concurrency, ge=1)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    run_timeout: float | None = Field(default=None, gt=0)
    project_type: ProjectType | None = None
    flaky_runs: int = Field(default=0, ge=0)
    baseline: Path | None = None
    update_baseline: bool = False
    thresholds: Thresholds = Field(default_factory=Thresholds)
    binding_overrides: dict[TestCategory, FrameworkBinding] = Field(
        default_factory=dict
    )
    report_format: ReportFormat = "both"
    out_dir: Path = Field(default=Path("testgate-report"))

    @field_validator("flaky_runs")
    @classmethod
    def _check_flaky_runs(cls, value: int) -> int:
        if value == 1:
            raise ValueError("flaky_runs must be 0 (disabled) or at least 2")
        return value

    @model_validator(mode="after")
    def _check_baseline(self) -> Self:
        if self.update_baseline and self.baseline is None:
            raise ValueError("update_baseline requires a baseline path")
        return self
