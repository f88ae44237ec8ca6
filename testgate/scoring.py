"""Score an aggregate report and decide the quality gate."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from testgate.models.categories import CategoryStatus, TestCategory
from testgate.models.config import Thresholds
from testgate.models.report import (
    AggregateReport,
    FlakinessVerdict,
    ScoreBasis,
    ScoreCard,
)
from testgate.models.result import CategoryResult

log = logging.getLogger(__name__)


def _mean(values: Sequence[float]) -> float | None:
    return round(sum(values) / len(values), 2) if values else None


@dataclass(frozen=True, kw_only=True)
class ScoringEngine:
    """Computes scores from aggregated counts against thresholds."""

    def score(
        self,
        report: AggregateReport,
        thresholds: Thresholds,
        flakiness: Sequence[FlakinessVerdict] = (),
    ) -> AggregateReport:
        """Return a finalized copy of ``report`` with scores and gate result.

        Categories without test counts are left out of the overall score
        instead of counting as 0 or 100.
        """
        results = list(report.category_results.values())
        overall, basis = self._overall(results, thresholds)

        scores = ScoreCard(
            overall=overall,
            coverage=_mean(
                [r.coverage_percent for r in results if r.coverage_percent is not None]
            ),
            performance=self._category_rate(report, TestCategory.PERFORMANCE),
            security=self._category_rate(report, TestCategory.SECURITY),
            reliability=self._reliability(flakiness),
            basis=basis,
        )

        gate_failures = self._gate_failures(results, scores, thresholds)
        passed = not gate_failures
        log.info(
            "Overall score %.1f (basis=%s), quality gate %s",
            overall,
            basis,
            "passed" if passed else "failed",
        )
        for reason in gate_failures:
            log.info("Quality gate: %s", reason)

        return report.model_copy(
            update={
                "overall_score": overall,
                "scores": scores,
                "quality_gate_passed": passed,
                "gate_failures": tuple(gate_failures),
            }
        )

    @staticmethod
    def _overall(
        results: Sequence[CategoryResult], thresholds: Thresholds
    ) -> tuple[float, ScoreBasis]:
        counted = [r for r in results if r.has_counts]
        if counted:
            weights = [thresholds.weight_for(r.category) for r in counted]
            total_weight = sum(weights)
            if total_weight > 0:
                pairs = zip(weights, counted, strict=True)
                weighted = sum(w * (r.pass_rate or 0.0) for w, r in pairs)
                return round(weighted / total_weight, 2), "test_counts"

        ran = [r for r in results if r.ran]
        if not ran:
            return 0.0, "none"
        passing = sum(1 for r in ran if r.status == CategoryStatus.PASSED)
        return round(passing / len(ran) * 100.0, 2), "exit_codes"

    @staticmethod
    def _category_rate(report: AggregateReport, category: TestCategory) -> float | None:
        result = report.category_results.get(category)
        if result is None or result.pass_rate is None:
            return None
        return round(result.pass_rate, 2)

    @staticmethod
    def _reliability(flakiness: Sequence[FlakinessVerdict]) -> float | None:
        if not flakiness:
            return None
        stable = sum(1 for v in flakiness if not v.outcomes_differ)
        return round(stable / len(flakiness) * 100.0, 2)

    @staticmethod
    def _gate_failures(
        results: Sequence[CategoryResult], scores: ScoreCard, thresholds: Thresholds
    ) -> list[str]:
        failures: list[str] = []
        if scores.overall < thresholds.min_score:
            failures.append(
                f"overall score {scores.overall:.1f} is below "
                f"{thresholds.min_score:.1f}"
            )

        for result in results:
            if result.effective_failures > thresholds.max_failures_per_category:
                failures.append(
                    f"{result.category} has {result.effective_failures} failure(s), "
                    f"more than {thresholds.max_failures_per_category} allowed"
                )

        if (
            thresholds.min_coverage is not None
            and scores.coverage is not None
            and scores.coverage < thresholds.min_coverage
        ):
            failures.append(
                f"coverage {scores.coverage:.1f}% is below "
                f"{thresholds.min_coverage:.1f}%"
            )
        return failures
