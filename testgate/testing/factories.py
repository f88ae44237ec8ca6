"""Test factories for generating test data."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

from polyfactory import Use
from polyfactory.factories import DataclassFactory
from polyfactory.factories.pydantic_factory import ModelFactory

from testgate.models.binding import FrameworkBinding
from testgate.models.categories import CategoryStatus, ProjectType, TestCategory
from testgate.models.invocation import TestRunInvocation
from testgate.models.profile import ProjectProfile
from testgate.models.report import AggregateReport, ReportDocument, ScoreCard, Totals
from testgate.models.result import CategoryResult

RUN_START = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FrameworkBindingFactory(ModelFactory[FrameworkBinding]):
    """Factory for FrameworkBinding."""

    category = TestCategory.UNIT
    framework = "pytest"
    command = ("python", "-m", "pytest")
    args_template = ()
    working_dir = Path(".")
    env = Use(dict)


class TestRunInvocationFactory(DataclassFactory[TestRunInvocation]):
    """Factory for TestRunInvocation, a one second successful run by default."""

    __test__ = False

    category = TestCategory.UNIT
    command = ("python", "-m", "pytest")
    working_dir = Path(".")
    start_time = RUN_START
    end_time = RUN_START + timedelta(seconds=1)
    exit_code = 0
    stdout = ""
    stderr = ""
    timed_out = False
    spawn_error = None


class CategoryResultFactory(ModelFactory[CategoryResult]):
    """Factory for CategoryResult, ten passing unit tests by default."""

    category = TestCategory.UNIT
    status = CategoryStatus.PASSED
    framework = "pytest"
    total_tests = 10
    passed = 10
    failed = 0
    skipped = 0
    duration_seconds = 1.0
    coverage_percent = None
    parse_fallback = False
    timed_out = False
    infrastructure_error = False
    exit_code = 0
    skip_reason = None
    message = None


class ProjectProfileFactory(ModelFactory[ProjectProfile]):
    """Factory for ProjectProfile."""

    root_path = Path(".")
    detected_type = ProjectType.PYTHON
    confidence = 1.0
    evidence = ()
    warnings = ()


class AggregateReportFactory(ModelFactory[AggregateReport]):
    """Factory for an unscored AggregateReport without categories."""

    project_type = ProjectType.PYTHON
    started_at = RUN_START
    finished_at = RUN_START + timedelta(seconds=1)
    elapsed_seconds = 1.0
    category_results = Use(dict)
    totals = Use(Totals)
    overall_score = 0.0
    scores = Use(ScoreCard)
    quality_gate_passed = False
    gate_failures = ()


class ReportDocumentFactory(ModelFactory[ReportDocument]):
    """Factory for ReportDocument."""

    tool_version = "0.1.0"
    profile = Use(ProjectProfileFactory.build)
    report = Use(AggregateReportFactory.build)
    regression = None
    regression_error = None
    flakiness = ()
    warnings = ()
