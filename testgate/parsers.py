"""Best-effort extraction of test counts from framework console output.

Each parser looks for the summary its framework prints at the end of a run
and returns ``None`` when that summary is absent. Parsers never guess: if no
parser recognizes the output the caller records a parse fallback.
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeAlias

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


@dataclass(frozen=True, kw_only=True)
class SummaryCounts:
    """Test counts recognized in a framework summary."""

    parser: str
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int | None = None

    @property
    def total_tests(self) -> int:
        """Reported total, never less than the sum of the counts."""
        counted = self.passed + self.failed + self.skipped
        if self.total is None:
            return counted
        return max(self.total, counted)


SummaryParser: TypeAlias = Callable[[str], SummaryCounts | None]


def _count(pattern: str, text: str) -> int:
    match = re.search(pattern, text)
    return int(match.group(1)) if match else 0


PYTEST_SUMMARY = re.compile(
    r"^=+ (?P<body>.*?\d+ \w+.*?) in [\d.]+s(?: \([^)]*\))? =+$", re.M
)
PYTEST_COUNT = re.compile(r"(\d+) (passed|failed|errors?|skipped|xfailed|xpassed)")


def parse_pytest(text: str) -> SummaryCounts | None:
    """``==== 2 failed, 10 passed, 1 skipped in 1.23s ====``."""
    matches = PYTEST_SUMMARY.findall(text)
    if not matches:
        return None
    counts = {"passed": 0, "failed": 0, "skipped": 0}
    for number, outcome in PYTEST_COUNT.findall(matches[-1]):
        if outcome in {"passed", "xpassed"}:
            counts["passed"] += int(number)
        elif outcome in {"failed", "error", "errors"}:
            counts["failed"] += int(number)
        else:
            counts["skipped"] += int(number)
    if not any(counts.values()):
        return None
    return SummaryCounts(parser="pytest", **counts)


UNITTEST_RAN = re.compile(r"^Ran (\d+) tests? in [\d.]+s$", re.M)
UNITTEST_RESULT = re.compile(r"^(OK|FAILED)(?: \((?P<details>[^)]*)\))?$", re.M)


def parse_unittest(text: str) -> SummaryCounts | None:
    """``Ran 5 tests in 0.01s`` followed by ``FAILED (failures=1, skipped=1)``."""
    ran = UNITTEST_RAN.findall(text)
    result = list(UNITTEST_RESULT.finditer(text))
    if not ran or not result:
        return None
    total = int(ran[-1])
    details = result[-1].group("details") or ""
    failed = _count(r"failures=(\d+)", details) + _count(r"errors=(\d+)", details)
    failed += _count(r"unexpected successes=(\d+)", details)
    skipped = _count(r"skipped=(\d+)", details) + _count(
        r"expected failures=(\d+)", details
    )
    passed = max(total - failed - skipped, 0)
    return SummaryCounts(
        parser="unittest", passed=passed, failed=failed, skipped=skipped, total=total
    )


JEST_TESTS = re.compile(r"^Tests:\s+(?P<body>.*\d+ total)\s*$", re.M)


def parse_jest(text: str) -> SummaryCounts | None:
    """``Tests:       1 failed, 2 skipped, 10 passed, 13 total``."""
    matches = JEST_TESTS.findall(text)
    if not matches:
        return None
    body = matches[-1]
    return SummaryCounts(
        parser="jest",
        passed=_count(r"(\d+) passed", body),
        failed=_count(r"(\d+) failed", body),
        skipped=_count(r"(\d+) skipped", body)
        + _count(r"(\d+) todo", body)
        + _count(r"(\d+) pending", body),
        total=_count(r"(\d+) total", body),
    )


VITEST_TESTS = re.compile(r"^\s*Tests\s+(?P<body>.*?\(\d+\))\s*$", re.M)


def parse_vitest(text: str) -> SummaryCounts | None:
    """``      Tests  2 failed | 10 passed (12)``."""
    matches = VITEST_TESTS.findall(text)
    if not matches:
        return None
    body = matches[-1]
    return SummaryCounts(
        parser="vitest",
        passed=_count(r"(\d+) passed", body),
        failed=_count(r"(\d+) failed", body),
        skipped=_count(r"(\d+) skipped", body) + _count(r"(\d+) todo", body),
        total=_count(r"\((\d+)\)", body),
    )


MOCHA_PASSING = re.compile(r"^\s*(\d+) passing \(", re.M)


def parse_mocha(text: str) -> SummaryCounts | None:
    """``  10 passing (2s)`` / ``  2 failing`` / ``  1 pending``."""
    passing = MOCHA_PASSING.findall(text)
    if not passing:
        return None
    return SummaryCounts(
        parser="mocha",
        passed=int(passing[-1]),
        failed=_count(r"(?m)^\s*(\d+) failing\s*$", text),
        skipped=_count(r"(?m)^\s*(\d+) pending\s*$", text),
    )


GO_TEST_RESULT = re.compile(r"^--- (PASS|FAIL|SKIP): ", re.M)


def parse_go_test(text: str) -> SummaryCounts | None:
    """Per-test ``--- PASS: TestX (0.00s)`` lines from ``go test -v``.

    Only top-level tests are counted. Subtest lines are indented and their
    outcome is already part of the parent's.
    """
    outcomes = GO_TEST_RESULT.findall(text)
    if not outcomes:
        return None
    return SummaryCounts(
        parser="go test",
        passed=outcomes.count("PASS"),
        failed=outcomes.count("FAIL"),
        skipped=outcomes.count("SKIP"),
    )


CARGO_RESULT = re.compile(
    r"^test result: \w+\. (\d+) passed; (\d+) failed; (\d+) ignored;", re.M
)


def parse_cargo(text: str) -> SummaryCounts | None:
    """One ``test result: ok. 3 passed; 0 failed; 1 ignored;`` line per target."""
    results = CARGO_RESULT.findall(text)
    if not results:
        return None
    return SummaryCounts(
        parser="cargo test",
        passed=sum(int(p) for p, _, _ in results),
        failed=sum(int(f) for _, f, _ in results),
        skipped=sum(int(i) for _, _, i in results),
    )


SUREFIRE_RESULT = re.compile(
    r"Tests run: (\d+), Failures: (\d+), Errors: (\d+), Skipped: (\d+)\b(?!, Time)"
)


def parse_surefire(text: str) -> SummaryCounts | None:
    """Maven's final ``Tests run: 10, Failures: 1, Errors: 0, Skipped: 2`` line.

    Per-class lines carry a trailing ``Time elapsed`` and are ignored in
    favour of the module totals, which are summed across modules.
    """
    results = SUREFIRE_RESULT.findall(text)
    if not results:
        return None
    total = sum(int(r[0]) for r in results)
    failed = sum(int(r[1]) + int(r[2]) for r in results)
    skipped = sum(int(r[3]) for r in results)
    return SummaryCounts(
        parser="maven surefire",
        passed=max(total - failed - skipped, 0),
        failed=failed,
        skipped=skipped,
        total=total,
    )


GRADLE_RESULT = re.compile(
    r"^(\d+) tests? completed(?:, (\d+) failed)?(?:, (\d+) skipped)?", re.M
)


def parse_gradle(text: str) -> SummaryCounts | None:
    """``12 tests completed, 2 failed, 1 skipped``."""
    results = GRADLE_RESULT.findall(text)
    if not results:
        return None
    total_s, failed_s, skipped_s = results[-1]
    total, failed, skipped = int(total_s), int(failed_s or 0), int(skipped_s or 0)
    return SummaryCounts(
        parser="gradle",
        passed=max(total - failed - skipped, 0),
        failed=failed,
        skipped=skipped,
        total=total,
    )


DOTNET_RESULT = re.compile(
    r"(?:Passed|Failed)!\s+-\s+Failed:\s+(\d+), Passed:\s+(\d+), "
    r"Skipped:\s+(\d+), Total:\s+(\d+)"
)


def parse_dotnet(text: str) -> SummaryCounts | None:
    """``Passed!  - Failed:     0, Passed:    10, Skipped:     0, Total:    10``."""
    results = DOTNET_RESULT.findall(text)
    if not results:
        return None
    return SummaryCounts(
        parser="dotnet test",
        failed=sum(int(r[0]) for r in results),
        passed=sum(int(r[1]) for r in results),
        skipped=sum(int(r[2]) for r in results),
        total=sum(int(r[3]) for r in results),
    )


RSPEC_RESULT = re.compile(
    r"^(\d+) examples?, (\d+) failures?(?:, (\d+) pending)?", re.M
)


def parse_rspec(text: str) -> SummaryCounts | None:
    """``10 examples, 2 failures, 1 pending``."""
    results = RSPEC_RESULT.findall(text)
    if not results:
        return None
    total_s, failed_s, pending_s = results[-1]
    total, failed, skipped = int(total_s), int(failed_s), int(pending_s or 0)
    return SummaryCounts(
        parser="rspec",
        passed=max(total - failed - skipped, 0),
        failed=failed,
        skipped=skipped,
        total=total,
    )


PHPUNIT_OK = re.compile(r"^OK \((\d+) tests?, \d+ assertions?\)", re.M)
PHPUNIT_SUMMARY = re.compile(r"^Tests: (\d+), Assertions: \d+(?P<rest>.*)$", re.M)


def parse_phpunit(text: str) -> SummaryCounts | None:
    """``OK (10 tests, 20 assertions)`` or ``Tests: 10, Assertions: 20, Failures: 2.``

    Errors count as failures; incomplete and risky tests count as skipped.
    """
    if ok := PHPUNIT_OK.findall(text):
        total = int(ok[-1])
        return SummaryCounts(parser="phpunit", passed=total, total=total)

    summaries = list(PHPUNIT_SUMMARY.finditer(text))
    if not summaries:
        return None
    last = summaries[-1]
    total = int(last.group(1))
    rest = last.group("rest")
    failed = _count(r"Failures: (\d+)", rest) + _count(r"Errors: (\d+)", rest)
    skipped = (
        _count(r"Skipped: (\d+)", rest)
        + _count(r"Incomplete: (\d+)", rest)
        + _count(r"Risky: (\d+)", rest)
    )
    return SummaryCounts(
        parser="phpunit",
        passed=max(total - failed - skipped, 0),
        failed=failed,
        skipped=skipped,
        total=total,
    )


SUMMARY_PARSERS: Sequence[SummaryParser] = (
    parse_pytest,
    parse_unittest,
    parse_jest,
    parse_vitest,
    parse_mocha,
    parse_go_test,
    parse_cargo,
    parse_surefire,
    parse_gradle,
    parse_dotnet,
    parse_rspec,
    parse_phpunit,
)


def parse_summary(
    text: str, parsers: Sequence[SummaryParser] = SUMMARY_PARSERS
) -> SummaryCounts | None:
    """Return counts from the first parser that recognizes ``text``."""
    clean = strip_ansi(text)
    for parser in parsers:
        if (counts := parser(clean)) is not None:
            return counts
    return None


COVERAGE_PATTERNS: Sequence[re.Pattern[str]] = (
    # coverage.py / pytest-cov
    re.compile(r"^TOTAL\s+\d+\s+\d+(?:\s+\d+\s+\d+)?\s+(\d+(?:\.\d+)?)%", re.M),
    # Istanbul text reporter (Jest, nyc, Vitest)
    re.compile(r"^All files\s*\|\s*(\d+(?:\.\d+)?)", re.M),
    # go test -cover
    re.compile(r"coverage: (\d+(?:\.\d+)?)% of statements"),
    # generic "Coverage: 81.5%" lines
    re.compile(r"(?i)\bcoverage:?\s+(\d+(?:\.\d+)?)\s*%"),
)


def parse_coverage(text: str) -> float | None:
    """Line coverage percentage, averaged when reported per package.

    Returns None when no known coverage report is present.
    """
    clean = strip_ansi(text)
    for pattern in COVERAGE_PATTERNS:
        values = [float(v) for v in pattern.findall(clean)]
        if values:
            return round(min(sum(values) / len(values), 100.0), 2)
    return None


def strip_ansi(text: str) -> str:
    """Remove terminal color codes."""
    return ANSI_ESCAPE.sub("", text)
