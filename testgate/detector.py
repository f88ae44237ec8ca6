"""Detect the ecosystem of a project from the files in its tree."""

import logging
import os
from collections import Counter
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from testgate.models.categories import ProjectType
from testgate.models.profile import Evidence, ProjectProfile

log = logging.getLogger(__name__)

MANIFEST_WEIGHTS: Mapping[str, tuple[ProjectType, float]] = {
    "package.json": (ProjectType.NODEJS, 0.5),
    "package-lock.json": (ProjectType.NODEJS, 0.2),
    "yarn.lock": (ProjectType.NODEJS, 0.2),
    "pnpm-lock.yaml": (ProjectType.NODEJS, 0.2),
    "tsconfig.json": (ProjectType.NODEJS, 0.2),
    "jest.config.js": (ProjectType.NODEJS, 0.2),
    "pyproject.toml": (ProjectType.PYTHON, 0.5),
    "setup.py": (ProjectType.PYTHON, 0.4),
    "setup.cfg": (ProjectType.PYTHON, 0.3),
    "requirements.txt": (ProjectType.PYTHON, 0.3),
    "pytest.ini": (ProjectType.PYTHON, 0.2),
    "tox.ini": (ProjectType.PYTHON, 0.2),
    "go.mod": (ProjectType.GO, 0.5),
    "go.sum": (ProjectType.GO, 0.2),
    "Cargo.toml": (ProjectType.RUST, 0.5),
    "Cargo.lock": (ProjectType.RUST, 0.2),
    "pom.xml": (ProjectType.MAVEN, 0.5),
    "build.gradle": (ProjectType.GRADLE, 0.5),
    "build.gradle.kts": (ProjectType.GRADLE, 0.5),
    "settings.gradle": (ProjectType.GRADLE, 0.2),
    "settings.gradle.kts": (ProjectType.GRADLE, 0.2),
    "global.json": (ProjectType.DOTNET, 0.2),
    "Gemfile": (ProjectType.RUBY, 0.5),
    "Gemfile.lock": (ProjectType.RUBY, 0.2),
    ".rspec": (ProjectType.RUBY, 0.2),
    "composer.json": (ProjectType.PHP, 0.5),
    "composer.lock": (ProjectType.PHP, 0.2),
    "phpunit.xml": (ProjectType.PHP, 0.2),
    "phpunit.xml.dist": (ProjectType.PHP, 0.2),
}

MANIFEST_SUFFIX_WEIGHTS: Mapping[str, tuple[ProjectType, float]] = {
    ".csproj": (ProjectType.DOTNET, 0.5),
    ".fsproj": (ProjectType.DOTNET, 0.5),
    ".sln": (ProjectType.DOTNET, 0.3),
}

SOURCE_EXTENSIONS: Mapping[str, ProjectType] = {
    ".js": ProjectType.NODEJS,
    ".jsx": ProjectType.NODEJS,
    ".ts": ProjectType.NODEJS,
    ".tsx": ProjectType.NODEJS,
    ".mjs": ProjectType.NODEJS,
    ".py": ProjectType.PYTHON,
    ".go": ProjectType.GO,
    ".rs": ProjectType.RUST,
    ".cs": ProjectType.DOTNET,
    ".fs": ProjectType.DOTNET,
    ".rb": ProjectType.RUBY,
    ".php": ProjectType.PHP,
}

SOURCE_FILE_WEIGHT = 0.01
SOURCE_WEIGHT_CAP = 0.25

SKIPPED_DIRECTORIES = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".idea",
        ".vscode",
        ".venv",
        "venv",
        ".tox",
        ".nox",
        ".mypy_cache",
        ".pytest_cache",
        "__pycache__",
        "node_modules",
        "bower_components",
        "vendor",
        "target",
        "build",
        "dist",
        "bin",
        "obj",
        ".gradle",
    }
)


@dataclass(kw_only=True)
class _Tally:
    """Accumulated votes while walking a tree."""

    weights: Counter[ProjectType] = field(default_factory=Counter)
    evidence: list[Evidence] = field(default_factory=list)
    first_manifest: dict[ProjectType, int] = field(default_factory=dict)
    source_counts: Counter[ProjectType] = field(default_factory=Counter)
    manifests_seen: int = 0

    def add_manifest(
        self, marker: str, path: str, project_type: ProjectType, weight: float
    ) -> None:
        self.weights[project_type] += weight
        self.evidence.append(
            Evidence(marker=marker, path=path, project_type=project_type, weight=weight)
        )
        self.first_manifest.setdefault(project_type, self.manifests_seen)
        self.manifests_seen += 1


@dataclass(frozen=True, kw_only=True)
class ProjectTypeDetector:
    """Infers the primary ecosystem of a project from marker files.

    The tree is walked breadth first with entries in alphabetical order, so
    the result only depends on the contents of the tree.
    """

    max_depth: int = 3

    def detect(self, root_path: Path) -> ProjectProfile:
        """Detect the project type of the tree rooted at ``root_path``.

        Never raises for a readable directory. Without any evidence the
        profile has type ``unknown``, confidence 0 and a warning.
        """
        root_path = root_path.resolve()
        tally = _Tally()

        for relative, name in self._walk(root_path):
            self._score_file(tally, relative, name)

        for project_type, count in sorted(tally.source_counts.items()):
            weight = min(count * SOURCE_FILE_WEIGHT, SOURCE_WEIGHT_CAP)
            tally.weights[project_type] += weight
            tally.evidence.append(
                Evidence(
                    marker=f"{count} source file(s)",
                    path=".",
                    project_type=project_type,
                    weight=round(weight, 4),
                )
            )

        total = sum(tally.weights.values())
        if total <= 0:
            log.warning("Could not detect a project type under %s", root_path)
            return ProjectProfile(
                root_path=root_path,
                detected_type=ProjectType.UNKNOWN,
                confidence=0.0,
                warnings=(f"No project markers found under {root_path}",),
            )

        winner = min(tally.weights, key=lambda t: self._rank(tally, t))
        confidence = min(max(tally.weights[winner] / total, 0.0), 1.0)
        warnings: tuple[str, ...] = ()
        if winner not in tally.first_manifest:
            warnings = (
                f"No manifest found for {winner}; detection relies on "
                "source file extensions only",
            )

        log.info(
            "Detected project type %s (confidence %.2f) from %d marker(s)",
            winner,
            confidence,
            len(tally.evidence),
        )
        return ProjectProfile(
            root_path=root_path,
            detected_type=winner,
            confidence=round(confidence, 4),
            evidence=tuple(tally.evidence),
            warnings=warnings,
        )

    @staticmethod
    def _rank(tally: _Tally, project_type: ProjectType) -> tuple[float, int, str]:
        """Sort key: highest weight, then earliest manifest, then name."""
        first_seen = tally.first_manifest.get(project_type, tally.manifests_seen)
        return (-round(tally.weights[project_type], 6), first_seen, project_type.value)

    @staticmethod
    def _score_file(tally: _Tally, relative: str, name: str) -> None:
        if name in MANIFEST_WEIGHTS:
            project_type, weight = MANIFEST_WEIGHTS[name]
            tally.add_manifest(name, relative, project_type, weight)
            return

        suffix = os.path.splitext(name)[1].lower()
        if suffix in MANIFEST_SUFFIX_WEIGHTS:
            project_type, weight = MANIFEST_SUFFIX_WEIGHTS[suffix]
            tally.add_manifest(f"*{suffix}", relative, project_type, weight)
        elif suffix in SOURCE_EXTENSIONS:
            tally.source_counts[SOURCE_EXTENSIONS[suffix]] += 1

    def _walk(self, root_path: Path) -> Iterator[tuple[str, str]]:
        """Yield (relative path, file name) breadth first, sorted by name."""
        queue: list[tuple[Path, int]] = [(root_path, 0)]
        while queue:
            directory, depth = queue.pop(0)
            try:
                entries = sorted(os.scandir(directory), key=lambda e: e.name)
            except OSError as exc:
                log.debug("Skipping unreadable directory %s: %s", directory, exc)
                continue

            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    if depth < self.max_depth and entry.name not in SKIPPED_DIRECTORIES:
                        queue.append((Path(entry.path), depth + 1))
                elif entry.is_file():
                    relative = Path(entry.path).relative_to(root_path).as_posix()
                    yield relative, entry.name
