"""Raw record of one external command execution."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from testgate.models.categories import TestCategory

TIMEOUT_EXIT_CODE = -1
SPAWN_FAILED_EXIT_CODE = -2


@dataclass(frozen=True, kw_only=True)
class TestRunInvocation:
    """Captured outcome of a process started by the runner.

    A non-zero exit code is ordinary data. ``timed_out`` and ``spawn_error``
    disambiguate the sentinel exit codes from real ones.
    """

    __test__ = False

    category: TestCategory
    command: Sequence[str]
    working_dir: Path
    start_time: datetime
    end_time: datetime
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    spawn_error: str | None = None

    @property
    def duration(self) -> float:
        """Wall-clock seconds between spawn and exit."""
        return max((self.end_time - self.start_time).total_seconds(), 0.0)

    @property
    def output(self) -> str:
        """Stdout followed by stderr, the text summary parsers look at."""
        if not self.stderr:
            return self.stdout
        if not self.stdout:
            return self.stderr
        return f"{self.stdout}\n{self.stderr}"
