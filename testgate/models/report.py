"""Models for the aggregated run report written to report.json."""

from datetime import datetime
from typing import Literal, TypeAlias

from pydantic import Field

from testgate.models.base import Model
from testgate.models.categories import CategoryStatus, ProjectType, TestCategory
from testgate.models.profile import ProjectProfile
from testgate.models.result import CategoryResult

ScoreBasis: TypeAlias = Literal["test_counts", "exit_codes", "none"]


class Totals(Model):
    """Sums across every category of a run."""

    total_tests: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    categories_passed: int = 0
    categories_failed: int = 0
    categories_skipped: int = 0
    categories_errored: int = 0


class ScoreCard(Model):
    """Scores on a 0-100 scale. None means no data for that dimension."""

    overall: float = Field(default=0.0, ge=0.0, le=100.0)
    coverage: float | None = None
    performance: float | None = None
    security: float | None = None
    reliability: float | None = None
    basis: ScoreBasis = "none"


class AggregateReport(Model):
    """Aggregated results of a run.

    Built by the aggregator once every category has finished and finalized
    by the scoring engine. ``elapsed_seconds`` is wall-clock time across
    concurrently running categories, not the sum of their durations.
    """

    run_id: str
    project_type: ProjectType
    started_at: datetime
    finished_at: datetime
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
    category_results: dict[TestCategory, CategoryResult] = Field(default_factory=dict)
    totals: Totals = Field(default_factory=Totals)
    overall_score: float = Field(default=0.0, ge=0.0, le=100.0)
    scores: ScoreCard = Field(default_factory=ScoreCard)
    quality_gate_passed: bool = False
    gate_failures: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def has_infrastructure_error(self) -> bool:
        """Whether any category failed for reasons outside the tests."""
        return any(r.infrastructure_error for r in self.category_results.values())

    def results_with_status(self, status: CategoryStatus) -> list[CategoryResult]:
        """Category results that ended with ``status``."""
        return [r for r in self.category_results.values() if r.status == status]


class FlakinessVerdict(Model):
    """Outcome of re-running one category several times in a row."""

    category: TestCategory
    runs_compared: int = Field(..., ge=2)
    outcomes_differ: bool
    exit_codes: tuple[int, ...] = Field(default_factory=tuple)
    passed_counts: tuple[int | None, ...] = Field(default_factory=tuple)
    failed_counts: tuple[int | None, ...] = Field(default_factory=tuple)


class CategoryDelta(Model):
    """Change of one category relative to the baseline.

    The deltas are None when either side has no parsed test counts; the
    comparison then only looks at the status.
    """

    category: TestCategory
    passed_delta: int | None = None
    failed_delta: int | None = None
    regressed: bool


class RegressionReport(Model):
    """Differences between the current run and a stored baseline."""

    baseline_run_id: str
    deltas: tuple[CategoryDelta, ...] = Field(default_factory=tuple)
    new_failures: tuple[TestCategory, ...] = Field(default_factory=tuple)
    fixed_failures: tuple[TestCategory, ...] = Field(default_factory=tuple)
    added_categories: tuple[TestCategory, ...] = Field(default_factory=tuple)
    removed_categories: tuple[TestCategory, ...] = Field(default_factory=tuple)

    @property
    def has_regressions(self) -> bool:
        """Whether any category fails more often than in the baseline."""
        return bool(self.new_failures)


class ReportDocument(Model):
    """Everything written to report.json."""

    tool_version: str
    profile: ProjectProfile
    report: AggregateReport
    regression: RegressionReport | None = None
    regression_error: str | None = None
    flakiness: tuple[FlakinessVerdict, ...] = Field(default_factory=tuple)
    warnings: tuple[str, ...] = Field(default_factory=tuple)
