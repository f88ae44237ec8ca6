"""Detect unstable categories by running the same command repeatedly."""

import logging
from dataclasses import dataclass

from testgate.aggregator import ResultAggregator
from testgate.models.binding import FrameworkBinding
from testgate.models.report import FlakinessVerdict
from testgate.models.result import CategoryResult
from testgate.runner import ProcessRunner

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class FlakinessDetector:
    """Re-runs a binding and compares the outcomes.

    Runs happen one after another, never concurrently, so contention between
    the repetitions cannot explain a difference in outcome.
    """

    runner: ProcessRunner
    aggregator: ResultAggregator
    timeout: float

    async def detect_flaky(
        self, binding: FrameworkBinding, repetitions: int = 2
    ) -> FlakinessVerdict:
        """Run ``binding`` ``repetitions`` times and classify the outcomes.

        Raises:
            ValueError: If fewer than two repetitions are requested

        """
        if repetitions < 2:
            raise ValueError(f"Need at least 2 repetitions, got {repetitions}")

        log.info(
            "Checking %s for flakiness with %d sequential run(s)",
            binding.category,
            repetitions,
        )
        results: list[CategoryResult] = []
        for attempt in range(1, repetitions + 1):
            invocation = await self.runner.run(binding, self.timeout)
            result = self.aggregator.parse(invocation, binding.framework)
            log.debug(
                "Flakiness run %d/%d for %s: exit_code=%d",
                attempt,
                repetitions,
                binding.category,
                invocation.exit_code,
            )
            results.append(result)

        verdict = compare_outcomes(results)
        if verdict.outcomes_differ:
            log.warning("%s tests are flaky: %s", binding.category, verdict.exit_codes)
        return verdict


def compare_outcomes(results: list[CategoryResult]) -> FlakinessVerdict:
    """Classify repeated results of one category.

    Outcomes differ when exit codes differ, or when every run reported
    structured counts and the pass or fail counts differ.
    """
    exit_codes = tuple(r.exit_code if r.exit_code is not None else 0 for r in results)
    passed = tuple(r.passed if r.has_counts else None for r in results)
    failed = tuple(r.failed if r.has_counts else None for r in results)

    differ = len(set(exit_codes)) > 1
    if not differ and all(r.has_counts for r in results):
        differ = len(set(passed)) > 1 or len(set(failed)) > 1

    return FlakinessVerdict(
        category=results[0].category,
        runs_compared=len(results),
        outcomes_differ=differ,
        exit_codes=exit_codes,
        passed_counts=passed,
        failed_counts=failed,
    )
