"""Lookup table from (project type, test category) to a framework command."""

from collections.abc import Mapping
from dataclasses import dataclass, field

from testgate.models.binding import FrameworkBinding
from testgate.models.categories import ProjectType, TestCategory


def _bindings(
    framework: str, commands: Mapping[TestCategory, tuple[str, ...]]
) -> Mapping[TestCategory, FrameworkBinding]:
    return {
        category: FrameworkBinding(
            category=category,
            framework=framework,
            command=argv[:1],
            args_template=argv[1:],
        )
        for category, argv in commands.items()
    }


def _pytest(*args: str) -> tuple[str, ...]:
    return ("python", "-m", "pytest", "-rA", *args)


DEFAULT_BINDINGS: Mapping[ProjectType, Mapping[TestCategory, FrameworkBinding]] = {
    ProjectType.PYTHON: {
        **_bindings(
            "pytest",
            {
                TestCategory.UNIT: _pytest("tests/unit"),
                TestCategory.INTEGRATION: _pytest("tests/integration"),
                TestCategory.E2E: _pytest("tests/e2e"),
                TestCategory.PERFORMANCE: _pytest("tests/performance"),
                TestCategory.REGRESSION: _pytest("tests/regression"),
                TestCategory.SMOKE: _pytest("-m", "smoke"),
                TestCategory.API: _pytest("tests/api"),
            },
        ),
        **_bindings(
            "bandit",
            {
                TestCategory.SECURITY: (
                    "bandit", "-r", "{project}", "-q", "-x", "tests"
                )
            },
        ),
    },
    ProjectType.NODEJS: {
        **_bindings(
            "npm",
            {
                TestCategory.UNIT: ("npm", "test", "--silent"),
                TestCategory.INTEGRATION: ("npm", "run", "test:integration"),
                TestCategory.E2E: ("npm", "run", "test:e2e"),
                TestCategory.PERFORMANCE: ("npm", "run", "test:performance"),
                TestCategory.REGRESSION: ("npm", "run", "test:regression"),
                TestCategory.SMOKE: ("npm", "run", "test:smoke"),
                TestCategory.VISUAL: ("npm", "run", "test:visual"),
                TestCategory.API: ("npm", "run", "test:api"),
            },
        ),
        **_bindings(
            "npm audit",
            {TestCategory.SECURITY: ("npm", "audit", "--audit-level=high")},
        ),
    },
    ProjectType.GO: {
        **_bindings(
            "go test",
            {
                TestCategory.UNIT: ("go", "test", "-v", "-cover", "./..."),
                TestCategory.INTEGRATION: (
                    "go", "test", "-v", "-tags", "integration", "./..."
                ),
                TestCategory.E2E: ("go", "test", "-v", "-tags", "e2e", "./..."),
                TestCategory.PERFORMANCE: (
                    "go", "test", "-run", "^$", "-bench", ".", "./..."
                ),
                TestCategory.SMOKE: ("go", "test", "-v", "-short", "./..."),
            },
        ),
        **_bindings(
            "govulncheck",
            {TestCategory.SECURITY: ("govulncheck", "./...")},
        ),
    },
    ProjectType.RUST: {
        **_bindings(
            "cargo test",
            {
                TestCategory.UNIT: ("cargo", "test", "--lib"),
                TestCategory.INTEGRATION: ("cargo", "test", "--test", "*"),
                TestCategory.PERFORMANCE: ("cargo", "bench"),
                TestCategory.SMOKE: ("cargo", "test", "--doc"),
            },
        ),
        **_bindings(
            "cargo audit",
            {TestCategory.SECURITY: ("cargo", "audit")},
        ),
    },
    ProjectType.MAVEN: _bindings(
        "maven surefire",
        {
            TestCategory.UNIT: ("mvn", "-B", "test"),
            TestCategory.INTEGRATION: ("mvn", "-B", "verify", "-DskipUnitTests"),
            TestCategory.SECURITY: (
                "mvn", "-B", "org.owasp:dependency-check-maven:check"
            ),
        },
    ),
    ProjectType.GRADLE: _bindings(
        "gradle",
        {
            TestCategory.UNIT: ("gradle", "test", "--console=plain"),
            TestCategory.INTEGRATION: ("gradle", "integrationTest", "--console=plain"),
        },
    ),
    ProjectType.DOTNET: _bindings(
        "dotnet test",
        {
            TestCategory.UNIT: ("dotnet", "test", "--filter", "Category=Unit"),
            TestCategory.INTEGRATION: (
                "dotnet", "test", "--filter", "Category=Integration"
            ),
            TestCategory.E2E: ("dotnet", "test", "--filter", "Category=E2E"),
            TestCategory.SMOKE: ("dotnet", "test", "--filter", "Category=Smoke"),
            TestCategory.API: ("dotnet", "test", "--filter", "Category=Api"),
        },
    ),
    ProjectType.RUBY: _bindings(
        "rspec",
        {
            TestCategory.UNIT: ("bundle", "exec", "rspec", "spec/unit"),
            TestCategory.INTEGRATION: ("bundle", "exec", "rspec", "spec/integration"),
            TestCategory.E2E: ("bundle", "exec", "rspec", "spec/features"),
            TestCategory.API: ("bundle", "exec", "rspec", "spec/requests"),
        },
    ),
    ProjectType.PHP: _bindings(
        "phpunit",
        {
            TestCategory.UNIT: ("vendor/bin/phpunit", "--testsuite", "unit"),
            TestCategory.INTEGRATION: (
                "vendor/bin/phpunit", "--testsuite", "integration"
            ),
            TestCategory.E2E: ("vendor/bin/phpunit", "--testsuite", "e2e"),
        },
    ),
    ProjectType.UNKNOWN: {},
}


@dataclass(frozen=True, kw_only=True)
class FrameworkRegistry:
    """Resolves the command to run for a category.

    Overrides (from the config file) apply to every project type and take
    precedence over the built-in table. Resolution has no side effects.
    """

    table: Mapping[ProjectType, Mapping[TestCategory, FrameworkBinding]] = field(
        default_factory=lambda: DEFAULT_BINDINGS
    )
    overrides: Mapping[TestCategory, FrameworkBinding] = field(default_factory=dict)

    def resolve(
        self, project_type: ProjectType, category: TestCategory
    ) -> FrameworkBinding | None:
        """Return the binding, or None if the category is unsupported."""
        if (binding := self.overrides.get(category)) is not None:
            return binding
        return self.table.get(project_type, {}).get(category)

    def supported_categories(self, project_type: ProjectType) -> list[TestCategory]:
        """Categories with a binding for ``project_type``, in enum order."""
        return [
            category
            for category in TestCategory
            if self.resolve(project_type, category) is not None
        ]
