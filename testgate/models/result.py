"""Models for normalized per-category test results."""

from typing import Self

from pydantic import Field, model_validator

from testgate.models.base import Model
from testgate.models.categories import CategoryStatus, TestCategory


class CategoryResult(Model):
    """Normalized outcome of one test category.

    Counts are only populated when a framework summary was recognized. When
    ``parse_fallback`` is set, ``total_tests`` is 0 and the status reflects
    the process exit code alone.
    """

    category: TestCategory
    status: CategoryStatus
    framework: str | None = None
    total_tests: int = Field(default=0, ge=0)
    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0.0, ge=0.0)
    coverage_percent: float | None = Field(default=None, ge=0.0, le=100.0)
    parse_fallback: bool = False
    timed_out: bool = False
    infrastructure_error: bool = False
    exit_code: int | None = None
    skip_reason: str | None = None
    message: str | None = None

    @model_validator(mode="after")
    def _check_counts(self) -> Self:
        counted = self.passed + self.failed + self.skipped
        if counted > self.total_tests:
            raise ValueError(
                f"passed + failed + skipped ({counted}) exceeds "
                f"total_tests ({self.total_tests}) for {self.category}"
            )
        return self

    @property
    def ran(self) -> bool:
        """Whether a command was actually executed for this category."""
        return self.status != CategoryStatus.SKIPPED

    @property
    def has_counts(self) -> bool:
        """Whether structured test counts are available."""
        return self.total_tests > 0

    @property
    def pass_rate(self) -> float | None:
        """Percentage of passed tests, or None without counts."""
        if not self.has_counts:
            return None
        return self.passed / self.total_tests * 100.0

    @property
    def effective_failures(self) -> int:
        """Failures to charge against the gate.

        A failed or errored category counts at least one failure even when
        its output could not be parsed.
        """
        if self.status in {CategoryStatus.FAILED, CategoryStatus.ERROR}:
            return max(self.failed, 1)
        return self.failed
