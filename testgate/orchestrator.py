"""Test orchestrator coordinating detection, execution and reporting."""

import asyncio
import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from importlib.metadata import PackageNotFoundError, version

from testgate.aggregator import ResultAggregator
from testgate.detector import ProjectTypeDetector
from testgate.flakiness import FlakinessDetector
from testgate.models.binding import FrameworkBinding
from testgate.models.categories import ProjectType, TestCategory
from testgate.models.config import RunConfig
from testgate.models.invocation import TestRunInvocation
from testgate.models.profile import ProjectProfile
from testgate.models.report import (
    AggregateReport,
    FlakinessVerdict,
    RegressionReport,
    ReportDocument,
)
from testgate.models.result import CategoryResult
from testgate.regression import (
    BaselineError,
    BaselineNotFoundError,
    RegressionComparator,
    load_baseline,
    save_baseline,
)
from testgate.registry import FrameworkRegistry
from testgate.runner import ProcessRunner
from testgate.scoring import ScoringEngine

log = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled"
UNSUPPORTED_REASON = "unsupported"


class ProjectNotFoundError(Exception):
    """Raised when the project path does not exist."""


class NothingToRunError(Exception):
    """Raised when no requested category has a framework binding."""


def tool_version() -> str:
    """Installed version of testgate."""
    try:
        return version("testgate")
    except PackageNotFoundError:
        return "unknown"


def _new_run_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, kw_only=True)
class _Execution:
    """Outcome of running every planned category."""

    results: Mapping[TestCategory, CategoryResult]
    invocations: Sequence[TestRunInvocation]


@dataclass(frozen=True, kw_only=True)
class TestOrchestrator:
    """Runs the requested test categories of one project.

    Categories run concurrently, bounded by ``config.concurrency``. Results
    are collected by the orchestrating coroutine once every worker has
    finished, so aggregation always sees a complete set.
    """

    __test__ = False

    config: RunConfig
    registry: FrameworkRegistry
    detector: ProjectTypeDetector = field(default_factory=ProjectTypeDetector)
    runner: ProcessRunner = field(default_factory=ProcessRunner)
    aggregator: ResultAggregator = field(default_factory=ResultAggregator)
    scoring: ScoringEngine = field(default_factory=ScoringEngine)
    comparator: RegressionComparator = field(default_factory=RegressionComparator)
    run_id_factory: Callable[[], str] = _new_run_id

    @classmethod
    def from_config(cls, config: RunConfig) -> "TestOrchestrator":
        """Create an orchestrator with the default components."""
        return cls(
            config=config,
            registry=FrameworkRegistry(overrides=config.binding_overrides),
        )

    async def run(self) -> ReportDocument:
        """Execute the run and return the finalized report document.

        Raises:
            ProjectNotFoundError: If the project path does not exist
            NothingToRunError: If no requested category can be run

        """
        root = self.config.project
        if not root.is_dir():
            raise ProjectNotFoundError(f"Project path does not exist: {root}")

        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + self.config.run_timeout
            if self.config.run_timeout is not None
            else None
        )
        run_id = self.run_id_factory()
        started_at = datetime.now(UTC)
        warnings: list[str] = []

        log.info("Detecting project type under %s", root)
        profile = await asyncio.to_thread(self.detector.detect, root)
        warnings.extend(profile.warnings)
        project_type = self.config.project_type or profile.detected_type
        if self.config.project_type is not None:
            log.info("Using configured project type %s", project_type)

        plans, unsupported = self._plan(project_type, profile)
        for category in unsupported:
            warnings.append(
                f"No {category} test framework known for {project_type} projects"
            )
        if not plans:
            raise NothingToRunError(
                f"None of the requested categories "
                f"({', '.join(self.config.categories)}) can run for a "
                f"{project_type} project"
            )

        log.info(
            "Running %d categor%s for run %s: %s",
            len(plans),
            "y" if len(plans) == 1 else "ies",
            run_id,
            ", ".join(plans),
        )
        execution = await self._execute(plans, deadline)

        results = dict(execution.results)
        for category in unsupported:
            results[category] = self.aggregator.skipped(category, UNSUPPORTED_REASON)
        for result in results.values():
            if result.parse_fallback:
                warnings.append(
                    f"{result.category}: no test summary recognized, "
                    "counts unavailable"
                )

        report = self.aggregator.aggregate(
            list(results.values()),
            execution.invocations,
            run_id=run_id,
            project_type=project_type,
            started_at=started_at,
            finished_at=datetime.now(UTC),
        )

        flakiness = await self._check_flakiness(plans, report, deadline)
        for verdict in flakiness:
            if verdict.outcomes_differ:
                warnings.append(
                    f"{verdict.category} tests are flaky "
                    f"(exit codes {', '.join(map(str, verdict.exit_codes))})"
                )

        report = self.scoring.score(report, self.config.thresholds, flakiness)
        regression, regression_error = self._compare_baseline(report)
        if regression_error is not None:
            warnings.append(regression_error)
        if regression is not None:
            warnings.extend(
                f"{category} tests ran in the baseline but not in this run"
                for category in regression.removed_categories
            )
            warnings.extend(
                f"{category} has more failures than in baseline "
                f"{regression.baseline_run_id}"
                for category in regression.new_failures
            )

        if self.config.update_baseline and self.config.baseline is not None:
            try:
                save_baseline(report, self.config.baseline)
            except OSError as e:
                log.error("Failed to write baseline %s: %s", self.config.baseline, e)
                warnings.append(f"Baseline not updated: {e}")

        return ReportDocument(
            tool_version=tool_version(),
            profile=profile,
            report=report,
            regression=regression,
            regression_error=regression_error,
            flakiness=tuple(flakiness),
            warnings=tuple(warnings),
        )

    def _plan(
        self, project_type: ProjectType, profile: ProjectProfile
    ) -> tuple[dict[TestCategory, FrameworkBinding], list[TestCategory]]:
        """Resolve bindings for the requested categories."""
        plans: dict[TestCategory, FrameworkBinding] = {}
        unsupported: list[TestCategory] = []
        for category in self.config.categories:
            binding = self.registry.resolve(project_type, category)
            if binding is None:
                log.info("No %s framework for %s, skipping", category, project_type)
                unsupported.append(category)
                continue
            plans[category] = binding.for_project(profile.root_path)
        return plans, unsupported

    async def _execute(
        self,
        plans: Mapping[TestCategory, FrameworkBinding],
        deadline: float | None,
    ) -> _Execution:
        """Run every planned category in a bounded pool."""
        semaphore = asyncio.Semaphore(self.config.concurrency)
        started: set[TestCategory] = set()

        async def worker(binding: FrameworkBinding) -> TestRunInvocation:
            async with semaphore:
                started.add(binding.category)
                return await self.runner.run(binding, self.config.timeout)

        tasks = {
            category: asyncio.create_task(
                worker(binding), name=f"testgate-{category}"
            )
            for category, binding in plans.items()
        }
        _, pending = await asyncio.wait(
            tasks.values(), timeout=self._remaining(deadline)
        )
        if pending:
            log.warning(
                "Run timeout reached, cancelling %d unfinished categor%s",
                len(pending),
                "y" if len(pending) == 1 else "ies",
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        return self._collect(plans, tasks, started)

    def _collect(
        self,
        plans: Mapping[TestCategory, FrameworkBinding],
        tasks: Mapping[TestCategory, asyncio.Task[TestRunInvocation]],
        started: set[TestCategory],
    ) -> _Execution:
        """Turn finished worker tasks into category results."""
        results: dict[TestCategory, CategoryResult] = {}
        invocations: list[TestRunInvocation] = []

        for category, task in tasks.items():
            framework = plans[category].framework
            if task.cancelled():
                if category in started:
                    results[category] = self.aggregator.interrupted(
                        category, "Cancelled by the run timeout", framework
                    )
                else:
                    results[category] = self.aggregator.skipped(
                        category, CANCELLED_REASON, framework
                    )
            elif (error := task.exception()) is not None:
                log.error(
                    "%s test execution failed: %s", category, error, exc_info=error
                )
                results[category] = self.aggregator.crashed(category, error, framework)
            else:
                invocation = task.result()
                invocations.append(invocation)
                results[category] = self.aggregator.parse(invocation, framework)
                log.info(
                    "Test completed: category=%s status=%s duration=%.1fs",
                    category,
                    results[category].status,
                    invocation.duration,
                )

        return _Execution(results=results, invocations=invocations)

    async def _check_flakiness(
        self,
        plans: Mapping[TestCategory, FrameworkBinding],
        report: AggregateReport,
        deadline: float | None,
    ) -> list[FlakinessVerdict]:
        """Re-run categories that executed, one category per pool slot."""
        if self.config.flaky_runs < 2:
            return []

        candidates = [
            plans[category]
            for category, result in report.category_results.items()
            if category in plans and result.ran and not result.infrastructure_error
        ]
        if not candidates:
            return []

        detector = FlakinessDetector(
            runner=self.runner,
            aggregator=self.aggregator,
            timeout=self.config.timeout,
        )
        semaphore = asyncio.Semaphore(self.config.concurrency)

        async def check(binding: FrameworkBinding) -> FlakinessVerdict:
            async with semaphore:
                return await detector.detect_flaky(binding, self.config.flaky_runs)

        tasks = [
            asyncio.create_task(
                check(binding), name=f"testgate-flaky-{binding.category}"
            )
            for binding in candidates
        ]
        _, pending = await asyncio.wait(tasks, timeout=self._remaining(deadline))
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        verdicts: list[FlakinessVerdict] = []
        for binding, task in zip(candidates, tasks, strict=True):
            if task.cancelled():
                log.warning(
                    "Flakiness check for %s cancelled by the run timeout",
                    binding.category,
                )
            elif (error := task.exception()) is not None:
                log.error(
                    "Flakiness check for %s failed: %s",
                    binding.category,
                    error,
                    exc_info=error,
                )
            else:
                verdicts.append(task.result())
        return verdicts

    def _compare_baseline(
        self, report: AggregateReport
    ) -> tuple[RegressionReport | None, str | None]:
        """Compare with the configured baseline, if any."""
        path = self.config.baseline
        if path is None:
            return None, None

        try:
            baseline = load_baseline(path)
        except BaselineNotFoundError as e:
            if self.config.update_baseline:
                log.info("No baseline at %s yet, a new one will be written", path)
                return None, None
            log.warning("Regression check skipped: %s", e)
            return None, str(e)
        except BaselineError as e:
            log.warning("Regression check skipped: %s", e)
            return None, str(e)

        log.info("Comparing against baseline %s from %s", baseline.run_id, path)
        return self.comparator.compare(report, baseline), None

    @staticmethod
    def _remaining(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return max(deadline - asyncio.get_running_loop().time(), 0.0)
