"""Enumerations shared across the orchestration pipeline."""

from collections.abc import Mapping, Sequence
from enum import StrEnum


class ProjectType(StrEnum):
    """Ecosystem a project under test belongs to."""

    NODEJS = "nodejs"
    PYTHON = "python"
    GO = "go"
    RUST = "rust"
    MAVEN = "maven"
    GRADLE = "gradle"
    DOTNET = "dotnet"
    RUBY = "ruby"
    PHP = "php"
    UNKNOWN = "unknown"


class TestCategory(StrEnum):
    """Kind of test suite a command exercises."""

    __test__ = False

    UNIT = "unit"
    INTEGRATION = "integration"
    E2E = "e2e"
    PERFORMANCE = "performance"
    SECURITY = "security"
    REGRESSION = "regression"
    SMOKE = "smoke"
    VISUAL = "visual"
    API = "api"


class TestLevel(StrEnum):
    """Breadth of a run, from a quick unit pass to every known category."""

    __test__ = False

    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"
    ENTERPRISE = "enterprise"


class CategoryStatus(StrEnum):
    """Outcome of a single category."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


LEVEL_CATEGORIES: Mapping[TestLevel, Sequence[TestCategory]] = {
    TestLevel.BASIC: (TestCategory.UNIT,),
    TestLevel.STANDARD: (
        TestCategory.UNIT,
        TestCategory.INTEGRATION,
        TestCategory.SMOKE,
    ),
    TestLevel.COMPREHENSIVE: (
        TestCategory.UNIT,
        TestCategory.INTEGRATION,
        TestCategory.SMOKE,
        TestCategory.E2E,
        TestCategory.API,
        TestCategory.REGRESSION,
        TestCategory.SECURITY,
    ),
    TestLevel.ENTERPRISE: tuple(TestCategory),
}

LEVEL_MIN_SCORE: Mapping[TestLevel, float] = {
    TestLevel.BASIC: 60.0,
    TestLevel.STANDARD: 70.0,
    TestLevel.COMPREHENSIVE: 80.0,
    TestLevel.ENTERPRISE: 90.0,
}


def parse_categories(value: str) -> Sequence[TestCategory]:
    """Parse a comma-separated category list, or ``all``.

    Raises:
        ValueError: If a name is not a known category

    """
    if value.strip().lower() == "all":
        return tuple(TestCategory)

    categories: list[TestCategory] = []
    for name in value.split(","):
        name = name.strip().lower()
        if not name:
            continue
        try:
            category = TestCategory(name)
        except ValueError:
            known = ", ".join(c.value for c in TestCategory)
            raise ValueError(
                f"Unknown test category '{name}'. Known categories: {known}"
            ) from None
        if category not in categories:
            categories.append(category)
    return tuple(categories)
