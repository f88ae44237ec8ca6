"""Models describing what the detector found in a project tree."""

from pathlib import Path

from pydantic import Field

from testgate.models.base import Model
from testgate.models.categories import ProjectType


class Evidence(Model):
    """A single marker that voted for a project type."""

    marker: str = Field(..., description="Marker name, e.g. 'package.json' or '*.py'")
    path: str = Field(..., description="Path relative to the project root")
    project_type: ProjectType
    weight: float = Field(..., ge=0.0)


class ProjectProfile(Model):
    """Detected ecosystem of a project, created once per run."""

    root_path: Path
    detected_type: ProjectType
    confidence: float = Field(..., ge=0.0, le=1.0)
    evidence: tuple[Evidence, ...] = Field(default_factory=tuple)
    warnings: tuple[str, ...] = Field(default_factory=tuple)
