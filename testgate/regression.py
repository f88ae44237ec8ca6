"""Compare a run against a stored baseline and persist new baselines."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from testgate.models.baseline import BASELINE_SCHEMA_VERSION, Baseline
from testgate.models.report import AggregateReport, CategoryDelta, RegressionReport

log = logging.getLogger(__name__)


class BaselineError(Exception):
    """Base class for baseline problems. Only the regression step fails."""


class BaselineNotFoundError(BaselineError):
    """Raised when the baseline file does not exist."""


class BaselineSchemaMismatchError(BaselineError):
    """Raised when a baseline file has an unknown or invalid format."""


def load_baseline(path: Path) -> Baseline:
    """Load a baseline file.

    Raises:
        BaselineNotFoundError: If the file does not exist
        BaselineSchemaMismatchError: If the file is not a supported baseline

    """
    if not path.exists():
        raise BaselineNotFoundError(f"Baseline file not found: {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise BaselineSchemaMismatchError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise BaselineSchemaMismatchError(f"Baseline {path} is not a JSON object")

    version = data.get("schema_version")
    if version != BASELINE_SCHEMA_VERSION:
        raise BaselineSchemaMismatchError(
            f"Unsupported baseline schema_version {version!r} in {path} "
            f"(expected {BASELINE_SCHEMA_VERSION})"
        )

    try:
        return Baseline.model_validate(data)
    except ValidationError as e:
        raise BaselineSchemaMismatchError(f"Invalid baseline {path}: {e}") from e


def save_baseline(report: AggregateReport, path: Path) -> Baseline:
    """Write a baseline reduced from ``report``, replacing any existing file.

    The file is written to a temporary sibling and renamed so readers never
    see a partially written baseline.
    """
    baseline = Baseline.from_report(report)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(baseline.model_dump_json(indent=2))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.info("Baseline written to %s (run %s)", path, baseline.run_id)
    return baseline


@dataclass(frozen=True, kw_only=True)
class RegressionComparator:
    """Diffs per-category counts of a run against a baseline."""

    def compare(
        self, current: AggregateReport, baseline: Baseline
    ) -> RegressionReport:
        """Compare ``current`` with ``baseline``.

        Categories skipped in the current run are treated as absent, so a
        suite that silently stopped running shows up as removed coverage.
        """
        current_results = {
            category: result
            for category, result in current.category_results.items()
            if result.ran
        }

        deltas: list[CategoryDelta] = []
        new_failures = []
        fixed_failures = []
        for category, result in current_results.items():
            if (base := baseline.categories.get(category)) is None:
                continue
            if result.has_counts and base.has_counts:
                current_failed = result.effective_failures
                baseline_failed = base.effective_failures
                delta = CategoryDelta(
                    category=category,
                    passed_delta=result.passed - base.passed,
                    failed_delta=current_failed - baseline_failed,
                    regressed=current_failed > baseline_failed,
                )
                fixed = current_failed < baseline_failed
            else:
                # Counts are unknown on one side, only a status change counts.
                current_failing = result.effective_failures > 0
                baseline_failing = base.effective_failures > 0
                delta = CategoryDelta(
                    category=category,
                    regressed=current_failing and not baseline_failing,
                )
                fixed = baseline_failing and not current_failing
            deltas.append(delta)
            if delta.regressed:
                new_failures.append(category)
            elif fixed:
                fixed_failures.append(category)

        added = [c for c in current_results if c not in baseline.categories]
        removed = [c for c in baseline.categories if c not in current_results]

        for category in new_failures:
            log.warning("Regression in %s tests compared to baseline", category)
        for category in removed:
            log.warning("%s tests ran in the baseline but not in this run", category)

        return RegressionReport(
            baseline_run_id=baseline.run_id,
            deltas=tuple(deltas),
            new_failures=tuple(new_failures),
            fixed_failures=tuple(fixed_failures),
            added_categories=tuple(added),
            removed_categories=tuple(removed),
        )
