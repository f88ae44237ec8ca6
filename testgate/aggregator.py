"""Normalize invocations into category results and sum them into a report."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from testgate.models.categories import CategoryStatus, ProjectType, TestCategory
from testgate.models.invocation import TIMEOUT_EXIT_CODE, TestRunInvocation
from testgate.models.report import AggregateReport, Totals
from testgate.models.result import CategoryResult
from testgate.parsers import (
    SUMMARY_PARSERS,
    SummaryParser,
    parse_coverage,
    parse_summary,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ResultAggregator:
    """Turns raw process output into the unified result model."""

    parsers: Sequence[SummaryParser] = SUMMARY_PARSERS

    def parse(
        self, invocation: TestRunInvocation, framework: str | None = None
    ) -> CategoryResult:
        """Build a category result from an invocation.

        A recognized framework summary provides the counts. Otherwise the
        result is marked ``parse_fallback`` with no counts and its status
        follows the exit code.
        """
        if invocation.spawn_error is not None:
            return CategoryResult(
                category=invocation.category,
                status=CategoryStatus.ERROR,
                framework=framework,
                duration_seconds=invocation.duration,
                infrastructure_error=True,
                exit_code=invocation.exit_code,
                message=f"Failed to start {invocation.command[0]}: "
                f"{invocation.spawn_error}",
            )

        output = invocation.output
        counts = parse_summary(output, self.parsers)
        coverage = parse_coverage(output)

        if invocation.timed_out:
            status = CategoryStatus.FAILED
            message = f"Timed out after {invocation.duration:.1f}s"
        elif invocation.exit_code != 0 or (counts is not None and counts.failed):
            status = CategoryStatus.FAILED
            message = None
        else:
            status = CategoryStatus.PASSED
            message = None

        if counts is None:
            log.warning(
                "No test summary recognized for %s, using exit code %d",
                invocation.category,
                invocation.exit_code,
            )
            fallback_note = (
                "No test summary recognized; outcome derived from exit code "
                f"{invocation.exit_code}"
            )
            return CategoryResult(
                category=invocation.category,
                status=status,
                framework=framework,
                duration_seconds=invocation.duration,
                coverage_percent=coverage,
                parse_fallback=True,
                timed_out=invocation.timed_out,
                exit_code=invocation.exit_code,
                message=f"{message}. {fallback_note}" if message else fallback_note,
            )

        log.debug(
            "Parsed %s output with %s parser: %d passed, %d failed, %d skipped",
            invocation.category,
            counts.parser,
            counts.passed,
            counts.failed,
            counts.skipped,
        )
        return CategoryResult(
            category=invocation.category,
            status=status,
            framework=framework or counts.parser,
            total_tests=counts.total_tests,
            passed=counts.passed,
            failed=counts.failed,
            skipped=counts.skipped,
            duration_seconds=invocation.duration,
            coverage_percent=coverage,
            timed_out=invocation.timed_out,
            exit_code=invocation.exit_code,
            message=message,
        )

    @staticmethod
    def skipped(
        category: TestCategory, reason: str, framework: str | None = None
    ) -> CategoryResult:
        """Result for a category that was never executed."""
        return CategoryResult(
            category=category,
            status=CategoryStatus.SKIPPED,
            framework=framework,
            skip_reason=reason,
        )

    @staticmethod
    def interrupted(
        category: TestCategory, reason: str, framework: str | None = None
    ) -> CategoryResult:
        """Result for a category whose process was killed before it finished."""
        return CategoryResult(
            category=category,
            status=CategoryStatus.FAILED,
            framework=framework,
            timed_out=True,
            exit_code=TIMEOUT_EXIT_CODE,
            message=reason,
        )

    @staticmethod
    def crashed(
        category: TestCategory, error: BaseException, framework: str | None = None
    ) -> CategoryResult:
        """Result for a category whose worker raised unexpectedly."""
        return CategoryResult(
            category=category,
            status=CategoryStatus.ERROR,
            framework=framework,
            infrastructure_error=True,
            message=str(error) or type(error).__name__,
        )

    def aggregate(
        self,
        results: Sequence[CategoryResult],
        invocations: Sequence[TestRunInvocation],
        *,
        run_id: str,
        project_type: ProjectType,
        started_at: datetime,
        finished_at: datetime,
    ) -> AggregateReport:
        """Sum category results into an unscored report.

        Elapsed time spans the earliest start to the latest end of the
        invocations, so categories that ran in parallel are not double
        counted.
        """
        elapsed = 0.0
        if invocations:
            first_start = min(i.start_time for i in invocations)
            last_end = max(i.end_time for i in invocations)
            elapsed = max((last_end - first_start).total_seconds(), 0.0)

        by_status = {status: 0 for status in CategoryStatus}
        for result in results:
            by_status[result.status] += 1

        totals = Totals(
            total_tests=sum(r.total_tests for r in results),
            passed=sum(r.passed for r in results),
            failed=sum(r.failed for r in results),
            skipped=sum(r.skipped for r in results),
            categories_passed=by_status[CategoryStatus.PASSED],
            categories_failed=by_status[CategoryStatus.FAILED],
            categories_skipped=by_status[CategoryStatus.SKIPPED],
            categories_errored=by_status[CategoryStatus.ERROR],
        )

        ordered = sorted(results, key=lambda r: list(TestCategory).index(r.category))
        return AggregateReport(
            run_id=run_id,
            project_type=project_type,
            started_at=started_at,
            finished_at=finished_at,
            elapsed_seconds=round(elapsed, 3),
            category_results={r.category: r for r in ordered},
            totals=totals,
        )
