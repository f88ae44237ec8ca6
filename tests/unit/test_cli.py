"""Tests for CLI module."""

import argparse
import logging
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from testgate.cli import (
    build_parser,
    build_publisher_config,
    build_run_config,
    execute,
    format_output,
    log_results_summary,
    main,
    run,
)
from testgate.models.categories import CategoryStatus, TestCategory, TestLevel
from testgate.models.config import (
    BindingOverride,
    ConfigFile,
    RunConfig,
    Thresholds,
)
from testgate.models.report import ReportDocument
from testgate.orchestrator import NothingToRunError
from testgate.publisher import PublishError
from testgate.testing.factories import (
    AggregateReportFactory,
    CategoryResultFactory,
    ReportDocumentFactory,
)


def _args(*argv: str) -> argparse.Namespace:
    return build_parser().parse_args(["run", *argv])


def _document(*, gate_passed: bool = True) -> ReportDocument:
    unit = CategoryResultFactory.build(total_tests=10, passed=9, skipped=1)
    smoke = CategoryResultFactory.build(
        category=TestCategory.SMOKE,
        status=CategoryStatus.SKIPPED,
        total_tests=0,
        passed=0,
        skip_reason="unsupported",
    )
    return ReportDocumentFactory.build(
        report=AggregateReportFactory.build(
            run_id="run-9",
            category_results={unit.category: unit, smoke.category: smoke},
            overall_score=90.0,
            quality_gate_passed=gate_passed,
        )
    )


def test_log_results_summary(caplog: pytest.LogCaptureFixture) -> None:
    """Logs every category with its status symbol and the gate result."""
    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), _document())

    assert "Test Results Summary" in caplog.text
    assert "✅ unit: passed (9 passed, 0 failed, 1 skipped, 1.00s)" in caplog.text
    assert "smoke: skipped (1.00s)" in caplog.text
    assert "Reason: unsupported" in caplog.text
    assert "Overall score: 90.0, quality gate passed" in caplog.text


def test_format_output() -> None:
    """Summarizes the run for stdout."""
    output = format_output(_document())

    assert output["run_id"] == "run-9"
    assert output["quality_gate_passed"] is True
    assert [c["category"] for c in output["categories"]] == ["unit", "smoke"]
    assert output["categories"][1]["status"] == "skipped"


class TestBuildRunConfig:
    """Tests for merging flags, config file and level defaults."""

    def test_level_defaults(self, tmp_path: Path) -> None:
        """The level selects categories and the minimum score."""
        args = _args("--project", str(tmp_path), "--level", "comprehensive")

        config = build_run_config(args, ConfigFile())

        assert config.level == TestLevel.COMPREHENSIVE
        assert TestCategory.E2E in config.categories
        assert config.thresholds.min_score == 80.0

    def test_flags_override_config_file(self, tmp_path: Path) -> None:
        """Command line values win over file values."""
        file_config = ConfigFile(
            level=TestLevel.BASIC,
            categories=(TestCategory.UNIT,),
            timeout=30.0,
            thresholds=Thresholds(min_score=50.0, max_failures_per_category=3),
        )
        args = _args(
            "--project",
            str(tmp_path),
            "--categories",
            "unit,smoke",
            "--min-score",
            "75",
        )

        config = build_run_config(args, file_config)

        assert config.categories == (TestCategory.UNIT, TestCategory.SMOKE)
        assert config.thresholds.min_score == 75.0
        assert config.thresholds.max_failures_per_category == 3
        assert config.timeout == 30.0
        assert config.level == TestLevel.BASIC

    def test_file_min_score_beats_level_default(self, tmp_path: Path) -> None:
        """An explicit min_score in the file is kept over the level's."""
        file_config = ConfigFile(thresholds=Thresholds(min_score=55.0))
        args = _args("--project", str(tmp_path), "--level", "enterprise")

        config = build_run_config(args, file_config)

        assert config.thresholds.min_score == 55.0

    def test_file_bindings_become_overrides(self, tmp_path: Path) -> None:
        """Bindings from the file are passed on as registry overrides."""
        file_config = ConfigFile(
            bindings={TestCategory.E2E: BindingOverride(command=("make", "e2e"))}
        )

        config = build_run_config(_args("--project", str(tmp_path)), file_config)

        binding = config.binding_overrides[TestCategory.E2E]
        assert binding.argv == ("make", "e2e")
        assert binding.framework == "custom"

    def test_invalid_category(self, tmp_path: Path) -> None:
        """Unknown categories are configuration errors."""
        with pytest.raises(ValueError, match="Unknown test category"):
            build_run_config(
                _args("--project", str(tmp_path), "--categories", "fuzz"),
                ConfigFile(),
            )


def test_publisher_config_reads_token_from_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """The publish token comes from the environment, never from flags."""
    monkeypatch.setenv("TESTGATE_PUBLISH_TOKEN", "tok")

    config = build_publisher_config(_args("--publish-url", "http://dash.test/runs"))

    assert config is not None
    assert config.token is not None
    assert config.token.get_secret_value() == "tok"
    assert build_publisher_config(_args()) is None


class TestRun:
    """Tests for run function."""

    @pytest.fixture
    def config(self, tmp_path: Path) -> RunConfig:
        """Create run configuration writing into tmp_path."""
        return RunConfig(project=tmp_path, out_dir=tmp_path / "out")

    async def test_writes_reports_and_returns_zero(
        self, config: RunConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """A passing run writes both reports and exits 0."""
        with patch("testgate.cli.TestOrchestrator") as mock_orchestrator_cls:
            mock_orchestrator_cls.from_config.return_value.run = AsyncMock(
                return_value=_document()
            )

            exit_code = await run(config)

        assert exit_code == 0
        assert (config.out_dir / "report.json").is_file()
        assert (config.out_dir / "report.html").is_file()
        assert '"run_id": "run-9"' in capsys.readouterr().out

    async def test_returns_one_when_gate_fails(self, config: RunConfig) -> None:
        """A failed gate exits 1."""
        with patch("testgate.cli.TestOrchestrator") as mock_orchestrator_cls:
            mock_orchestrator_cls.from_config.return_value.run = AsyncMock(
                return_value=_document(gate_passed=False)
            )

            assert await run(config) == 1

    async def test_returns_two_when_nothing_runs(self, config: RunConfig) -> None:
        """Nothing to run is an infrastructure error."""
        with patch("testgate.cli.TestOrchestrator") as mock_orchestrator_cls:
            mock_orchestrator_cls.from_config.return_value.run = AsyncMock(
                side_effect=NothingToRunError("nothing")
            )

            assert await run(config) == 2

    async def test_returns_two_when_reports_cannot_be_written(
        self, tmp_path: Path
    ) -> None:
        """An output path that is a file is an infrastructure error."""
        out_file = tmp_path / "out"
        out_file.write_text("")
        config = RunConfig(project=tmp_path, out_dir=out_file)

        with patch("testgate.cli.TestOrchestrator") as mock_orchestrator_cls:
            mock_orchestrator_cls.from_config.return_value.run = AsyncMock(
                return_value=_document()
            )

            assert await run(config) == 2

    async def test_publish_failure_keeps_exit_code(self, config: RunConfig) -> None:
        """Publishing problems are logged without changing the outcome."""
        publisher = Mock()
        publisher.publish = AsyncMock(side_effect=PublishError("503"))
        publisher_cm = AsyncMock()
        publisher_cm.__aenter__.return_value = publisher
        publisher_cm.__aexit__.return_value = None

        with (
            patch("testgate.cli.TestOrchestrator") as mock_orchestrator_cls,
            patch("testgate.cli.ResultPublisher") as mock_publisher_cls,
        ):
            mock_orchestrator_cls.from_config.return_value.run = AsyncMock(
                return_value=_document()
            )
            mock_publisher_cls.from_config.return_value = publisher_cm

            exit_code = await run(
                config, build_publisher_config(_args("--publish-url", "http://x"))
            )

        assert exit_code == 0
        publisher.publish.assert_awaited_once()


async def test_execute_rejects_invalid_config_file(tmp_path: Path) -> None:
    """A broken config file exits 2 before anything runs."""
    config_path = tmp_path / "testgate.yaml"
    config_path.write_text("flaky_runs: 1\n")

    with patch("testgate.cli.run", new_callable=AsyncMock) as mock_run:
        exit_code = await execute(
            _args("--project", str(tmp_path), "--config", str(config_path))
        )

    assert exit_code == 2
    mock_run.assert_not_called()


def test_main_exits_with_run_result(tmp_path: Path) -> None:
    """main parses arguments and exits with the code from the run."""
    with (
        patch("testgate.cli.execute", new_callable=AsyncMock, return_value=1),
        pytest.raises(SystemExit) as exc_info,
    ):
        main(["run", "--project", str(tmp_path)])

    assert exc_info.value.code == 1


def test_update_baseline_without_baseline_is_rejected(tmp_path: Path) -> None:
    """--update-baseline needs --baseline."""
    with pytest.raises(ValueError, match="requires a baseline path"):
        build_run_config(
            _args("--project", str(tmp_path), "--update-baseline"), ConfigFile()
        )
