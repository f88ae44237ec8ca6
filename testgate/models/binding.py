"""Command bindings mapping a test category to an executable."""

from collections.abc import Sequence
from pathlib import Path

from pydantic import Field

from testgate.models.base import Model
from testgate.models.categories import TestCategory

PROJECT_PLACEHOLDER = "{project}"


class FrameworkBinding(Model):
    """How to invoke the test framework for one category."""

    category: TestCategory
    framework: str = Field(..., description="Framework name used for display")
    command: tuple[str, ...] = Field(..., min_length=1)
    args_template: tuple[str, ...] = Field(default_factory=tuple)
    working_dir: Path = Field(default=Path("."))
    env: dict[str, str] = Field(default_factory=dict)

    @property
    def argv(self) -> Sequence[str]:
        """Full argument vector (command followed by arguments)."""
        return (*self.command, *self.args_template)

    def for_project(self, root: Path) -> "FrameworkBinding":
        """Bind the template to a concrete project root.

        Relative working directories are resolved against ``root`` and every
        ``{project}`` placeholder in the arguments is substituted.
        """
        root = root.resolve()
        working_dir = (
            self.working_dir
            if self.working_dir.is_absolute()
            else (root / self.working_dir).resolve()
        )
        args = tuple(
            arg.replace(PROJECT_PLACEHOLDER, str(root)) for arg in self.args_template
        )
        return self.model_copy(
            update={"working_dir": working_dir, "args_template": args}
        )
