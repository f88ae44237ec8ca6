"""CLI entry point for the testgate orchestrator."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiohttp

from testgate.config_loader import load_config_file
from testgate.models.categories import (
    LEVEL_CATEGORIES,
    LEVEL_MIN_SCORE,
    ProjectType,
    TestLevel,
    parse_categories,
)
from testgate.models.config import (
    ConfigFile,
    PublisherConfig,
    RunConfig,
    Thresholds,
)
from testgate.models.report import ReportDocument
from testgate.orchestrator import (
    NothingToRunError,
    ProjectNotFoundError,
    TestOrchestrator,
)
from testgate.publisher import PublishError, ResultPublisher
from testgate.report_writer import (
    EXIT_INFRASTRUCTURE_ERROR,
    ReportWriter,
    exit_code_for,
)

PUBLISH_TOKEN_ENV = "TESTGATE_PUBLISH_TOKEN"

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "error": "❗",
    "skipped": "⏭️",
}


def log_results_summary(log: logging.Logger, document: ReportDocument) -> None:
    """Log a formatted summary of category results and the quality gate."""
    report = document.report
    log.info("=" * 80)
    log.info("Test Results Summary (%s, run %s):", report.project_type, report.run_id)
    log.info("=" * 80)

    for result in report.category_results.values():
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        if result.has_counts:
            log.info(
                "%s %s: %s (%d passed, %d failed, %d skipped, %.2fs)",
                symbol,
                result.category,
                result.status,
                result.passed,
                result.failed,
                result.skipped,
                result.duration_seconds,
            )
        else:
            log.info(
                "%s %s: %s (%.2fs)",
                symbol,
                result.category,
                result.status,
                result.duration_seconds,
            )
        if result.skip_reason:
            log.info("  Reason: %s", result.skip_reason)
        if result.message:
            log.info("  Message: %s", result.message)

    log.info("-" * 80)
    log.info(
        "Overall score: %.1f, quality gate %s",
        report.overall_score,
        "passed" if report.quality_gate_passed else "FAILED",
    )
    for reason in report.gate_failures:
        log.info("  %s", reason)
    for warning in document.warnings:
        log.warning("  %s", warning)


def format_output(document: ReportDocument) -> dict[str, Any]:
    """Format the run outcome for JSON output on stdout."""
    report = document.report
    return {
        "run_id": report.run_id,
        "project_type": report.project_type,
        "total": report.totals.total_tests,
        "passed": report.totals.passed,
        "failed": report.totals.failed,
        "skipped": report.totals.skipped,
        "overall_score": report.overall_score,
        "quality_gate_passed": report.quality_gate_passed,
        "categories": [
            {
                "category": result.category,
                "status": result.status,
                "framework": result.framework,
                "duration": result.duration_seconds,
                "message": result.message,
            }
            for result in report.category_results.values()
        ],
    }


def build_run_config(args: argparse.Namespace, file_config: ConfigFile) -> RunConfig:
    """Merge command line flags over config file values over level defaults.

    Raises:
        ValueError: If the merged values do not form a valid configuration

    """
    level = args.level or file_config.level or TestLevel.STANDARD

    if args.categories is not None:
        categories = tuple(parse_categories(args.categories))
    elif file_config.categories is not None:
        categories = file_config.categories
    else:
        categories = tuple(LEVEL_CATEGORIES[level])

    file_thresholds = file_config.thresholds or Thresholds()
    if args.min_score is not None:
        min_score = args.min_score
    elif "min_score" in file_thresholds.model_fields_set:
        min_score = file_thresholds.min_score
    else:
        min_score = LEVEL_MIN_SCORE[level]
    thresholds = file_thresholds.model_copy(
        update={
            "min_score": min_score,
            "max_failures_per_category": _first(
                args.max_failures, file_thresholds.max_failures_per_category
            ),
            "min_coverage": _first(args.min_coverage, file_thresholds.min_coverage),
        }
    )

    values: dict[str, Any] = {
        "project": args.project,
        "level": level,
        "categories": categories,
        "timeout": _first(args.timeout, file_config.timeout),
        "run_timeout": _first(args.run_timeout, file_config.run_timeout),
        "project_type": _first(args.project_type, file_config.project_type),
        "flaky_runs": _first(args.flaky_runs, file_config.flaky_runs),
        "baseline": args.baseline,
        "update_baseline": args.update_baseline,
        "thresholds": thresholds,
        "binding_overrides": {
            category: override.to_binding(category)
            for category, override in file_config.bindings.items()
        },
        "report_format": args.format,
        "out_dir": args.out,
        "concurrency": _first(args.concurrency, file_config.concurrency),
    }
    return RunConfig.model_validate(
        {key: value for key, value in values.items() if value is not None}
    )


def _first(*values: Any) -> Any:
    return next((v for v in values if v is not None), None)


def build_publisher_config(args: argparse.Namespace) -> PublisherConfig | None:
    """Publisher settings, when a publish URL was given."""
    if not args.publish_url:
        return None
    return PublisherConfig(
        url=args.publish_url, token=os.environ.get(PUBLISH_TOKEN_ENV) or None
    )


async def load_run_config(args: argparse.Namespace) -> RunConfig:
    """Read the optional config file and merge it with the flags.

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the configuration is invalid

    """
    if args.config is None:
        return build_run_config(args, ConfigFile())
    return build_run_config(args, await load_config_file(args.config))


async def run(
    config: RunConfig, publisher_config: PublisherConfig | None = None
) -> int:
    """Run the test categories and return the process exit code."""
    log = logging.getLogger("testgate")

    orchestrator = TestOrchestrator.from_config(config)
    try:
        document = await orchestrator.run()
    except (ProjectNotFoundError, NothingToRunError) as e:
        log.error("%s", e)
        return EXIT_INFRASTRUCTURE_ERROR

    log_results_summary(log, document)

    try:
        ReportWriter().write(document, config.report_format, config.out_dir)
    except OSError as e:
        log.error("Failed to write reports to %s: %s", config.out_dir, e)
        return EXIT_INFRASTRUCTURE_ERROR

    output = format_output(document)
    print(json.dumps(output, indent=2))

    if publisher_config is not None:
        try:
            async with ResultPublisher.from_config(publisher_config) as publisher:
                await publisher.publish(document)
        except (PublishError, aiohttp.ClientError, TimeoutError) as e:
            log.error("Report publishing failed: %s", e)

    return exit_code_for(document)


async def execute(args: argparse.Namespace) -> int:
    """Load configuration from ``args`` and run."""
    log = logging.getLogger("testgate")
    try:
        config = await load_run_config(args)
    except (ValueError, FileNotFoundError) as e:
        log.error("Invalid configuration: %s", e)
        return EXIT_INFRASTRUCTURE_ERROR
    return await run(config, build_publisher_config(args))


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="testgate",
        description="Run a project's test suites and enforce a quality gate",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    run_parser = subparsers.add_parser("run", help="Run test categories")
    run_parser.add_argument(
        "--project",
        type=Path,
        default=Path("."),
        help="Path to the project under test (default: current directory)",
    )
    run_parser.add_argument(
        "--categories",
        help="Comma-separated test categories, or 'all' (default: from --level)",
    )
    run_parser.add_argument(
        "--level",
        type=TestLevel,
        choices=list(TestLevel),
        help="Test level selecting categories and minimum score (default: standard)",
    )
    run_parser.add_argument(
        "--concurrency",
        type=_positive_int,
        help="Categories run in parallel (default: CPU count)",
    )
    run_parser.add_argument(
        "--timeout", type=float, help="Per-category timeout in seconds (default: 600)"
    )
    run_parser.add_argument(
        "--run-timeout", type=float, help="Timeout for the whole run in seconds"
    )
    run_parser.add_argument(
        "--baseline", type=Path, help="Baseline JSON file to compare against"
    )
    run_parser.add_argument(
        "--update-baseline",
        action="store_true",
        help="Write this run's results to --baseline",
    )
    run_parser.add_argument(
        "--flaky-runs",
        type=int,
        help="Re-run each category this many times to detect flakiness (0 or >= 2)",
    )
    run_parser.add_argument(
        "--format",
        choices=["json", "html", "both"],
        default="both",
        help="Report formats to write (default: both)",
    )
    run_parser.add_argument(
        "--out",
        type=Path,
        default=Path("testgate-report"),
        help="Directory for report files (default: testgate-report)",
    )
    run_parser.add_argument("--min-score", type=float, help="Minimum overall score")
    run_parser.add_argument(
        "--max-failures", type=int, help="Maximum failures allowed per category"
    )
    run_parser.add_argument(
        "--min-coverage", type=float, help="Minimum coverage percentage"
    )
    run_parser.add_argument(
        "--project-type",
        type=ProjectType,
        choices=list(ProjectType),
        help="Skip detection and treat the project as this type",
    )
    run_parser.add_argument("--config", type=Path, help="YAML configuration file")
    run_parser.add_argument(
        "--publish-url",
        help=f"POST report.json to this URL (token from ${PUBLISH_TOKEN_ENV})",
    )
    run_parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(execute(args))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
