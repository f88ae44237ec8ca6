"""Run external test commands with a timeout and capture their output."""

import asyncio
import logging
import os
import signal
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from testgate.models.binding import FrameworkBinding
from testgate.models.invocation import (
    SPAWN_FAILED_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    TestRunInvocation,
)

log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


async def _drain(stream: asyncio.StreamReader | None, chunks: list[bytes]) -> None:
    """Read a pipe until EOF so the child never blocks on a full buffer."""
    if stream is None:
        return
    while chunk := await stream.read(READ_CHUNK_SIZE):
        chunks.append(chunk)


def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill the process and every descendant sharing its process group."""
    if process.returncode is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass


@dataclass(frozen=True, kw_only=True)
class ProcessRunner:
    """Executes framework bindings as child processes.

    The child gets its own session so a timeout can take down the whole
    process tree. Failing commands are returned as data, never raised.
    """

    drain_timeout: float = 5.0

    async def run(
        self, binding: FrameworkBinding, timeout: float
    ) -> TestRunInvocation:
        """Run ``binding`` and wait at most ``timeout`` seconds.

        Args:
            binding: Concrete binding with an absolute working directory
            timeout: Seconds before the process tree is killed

        Returns:
            Invocation record. ``exit_code`` is ``TIMEOUT_EXIT_CODE`` when the
            process timed out and ``SPAWN_FAILED_EXIT_CODE`` when it could not
            be started.

        """
        argv = list(binding.argv)
        start_time = datetime.now(UTC)
        log.info(
            "Starting %s tests: %s (cwd=%s)",
            binding.category,
            " ".join(argv),
            binding.working_dir,
        )

        env = {**os.environ, **binding.env} if binding.env else None
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=binding.working_dir,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            log.error("Failed to start %s tests: %s", binding.category, exc)
            return TestRunInvocation(
                category=binding.category,
                command=argv,
                working_dir=binding.working_dir,
                start_time=start_time,
                end_time=datetime.now(UTC),
                exit_code=SPAWN_FAILED_EXIT_CODE,
                spawn_error=str(exc),
            )

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        readers = [
            asyncio.create_task(_drain(process.stdout, stdout_chunks)),
            asyncio.create_task(_drain(process.stderr, stderr_chunks)),
        ]

        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except TimeoutError:
            timed_out = True
            log.warning(
                "%s tests exceeded %.1fs timeout, killing pid %d",
                binding.category,
                timeout,
                process.pid,
            )
            _kill_process_tree(process)
            await process.wait()
        except asyncio.CancelledError:
            log.warning(
                "%s tests cancelled, killing pid %d", binding.category, process.pid
            )
            _kill_process_tree(process)
            await asyncio.shield(process.wait())
            await self._finish_readers(readers)
            raise

        await self._finish_readers(readers)
        end_time = datetime.now(UTC)

        exit_code = TIMEOUT_EXIT_CODE if timed_out else (process.returncode or 0)
        log.info(
            "Finished %s tests: exit_code=%s duration=%.1fs",
            binding.category,
            exit_code,
            (end_time - start_time).total_seconds(),
        )
        return TestRunInvocation(
            category=binding.category,
            command=argv,
            working_dir=binding.working_dir,
            start_time=start_time,
            end_time=end_time,
            exit_code=exit_code,
            stdout=_decode(stdout_chunks),
            stderr=_decode(stderr_chunks),
            timed_out=timed_out,
        )

    async def _finish_readers(self, readers: Sequence[asyncio.Task[None]]) -> None:
        """Wait for the pipe readers, abandoning pipes held open by orphans."""
        _, pending = await asyncio.wait(readers, timeout=self.drain_timeout)
        for task in pending:
            task.cancel()
        if pending:
            log.debug("Abandoned %d output stream(s) still held open", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)


def _decode(chunks: Sequence[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")
