"""Models for the persisted regression baseline."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from testgate.models.base import Model
from testgate.models.categories import CategoryStatus, ProjectType, TestCategory
from testgate.models.report import AggregateReport

BASELINE_SCHEMA_VERSION = 1


class BaselineCategory(Model):
    """Reduced per-category counts kept in a baseline."""

    status: CategoryStatus
    total_tests: int = Field(default=0, ge=0)
    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)

    @property
    def has_counts(self) -> bool:
        """Whether structured test counts were stored."""
        return self.total_tests > 0

    @property
    def effective_failures(self) -> int:
        """Failures as charged by the gate, at least one for a failed category."""
        if self.status in {CategoryStatus.FAILED, CategoryStatus.ERROR}:
            return max(self.failed, 1)
        return self.failed


class Baseline(Model):
    """Snapshot of a previous run used as the reference for regressions."""

    schema_version: Literal[1] = BASELINE_SCHEMA_VERSION
    run_id: str
    created_at: datetime
    project_type: ProjectType
    categories: dict[TestCategory, BaselineCategory] = Field(default_factory=dict)

    @classmethod
    def from_report(cls, report: AggregateReport) -> "Baseline":
        """Reduce an aggregate report to the counts a baseline keeps.

        Skipped categories carry no information about failures and are left
        out, so a later run that executes them reports them as additions.
        """
        return cls(
            run_id=report.run_id,
            created_at=report.finished_at,
            project_type=report.project_type,
            categories={
                category: BaselineCategory(
                    status=result.status,
                    total_tests=result.total_tests,
                    passed=result.passed,
                    failed=result.failed,
                    skipped=result.skipped,
                )
                for category, result in report.category_results.items()
                if result.ran
            },
        )
