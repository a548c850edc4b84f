"""Process runner for translated commands.

Runs a command string in the shell family fixed at construction, either
buffered (all output captured, then returned) or streamed (each chunk
forwarded to a callback as it arrives). Both modes share one timeout
policy. Failures are folded into ExecutionOutcome and never raised.
"""

import asyncio
import codecs
import os
import shlex
import signal
import sys
import time
from typing import Callable

from ddcli.logging import get_logger
from ddcli.shell.models import ExecutionOutcome, ShellFamily

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
PROBE_TIMEOUT_SECONDS = 5.0
TIMEOUT_EXIT_CODE = 124
SPAWN_FAILURE_EXIT_CODE = 1

POSIX_SHELL = "/bin/sh"
IS_WINDOWS = sys.platform == "win32"

_READ_CHUNK_BYTES = 4096

ChunkCallback = Callable[[str], None]


def default_powershell_interpreter() -> str:
    """Interpreter name for the PowerShell dialect on this platform."""
    return "powershell" if sys.platform == "win32" else "pwsh"


def powershell_command_line(command: str, interpreter: str | None = None) -> str:
    """Build the Windows PowerShell command line for a command string.

    The command is passed as a single double-quoted argument; embedded
    double quotes are doubled. Other platforms pass an argv list instead.
    """
    interpreter = interpreter or default_powershell_interpreter()
    escaped = command.replace('"', '""')
    return f'{interpreter} -NoProfile -Command "{escaped}"'


class ProcessRunner:
    """Executes commands in a fixed shell family.

    Example:
        runner = ProcessRunner(ShellFamily.POSIX, timeout_seconds=10)
        outcome = await runner.execute_buffered("ls -la")
    """

    def __init__(
        self,
        family: ShellFamily = ShellFamily.POSIX,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        powershell_interpreter: str | None = None,
    ):
        """Initialize the runner.

        Args:
            family: Shell family used for every call on this instance.
            timeout_seconds: Wall-clock limit per command. None or 0 disables it.
            powershell_interpreter: Override for the PowerShell executable.
        """
        self.family = family
        self.timeout_seconds = timeout_seconds or None
        self.powershell_interpreter = powershell_interpreter or default_powershell_interpreter()

    def _argv(self, command: str) -> list[str]:
        if self.family == ShellFamily.POWERSHELL:
            return [self.powershell_interpreter, "-NoProfile", "-Command", command]
        return [POSIX_SHELL, "-c", command]

    async def _spawn(self, command: str) -> asyncio.subprocess.Process:
        if IS_WINDOWS and self.family == ShellFamily.POWERSHELL:
            return await asyncio.create_subprocess_shell(
                powershell_command_line(command, self.powershell_interpreter),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        # Own process group so a timeout can kill everything the command forked
        return await asyncio.create_subprocess_exec(
            *self._argv(command),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=not IS_WINDOWS,
        )

    async def execute_buffered(
        self,
        command: str,
        timeout_seconds: float | None = None,
    ) -> ExecutionOutcome:
        """Run a command to completion and capture its output.

        Args:
            command: Command string to run.
            timeout_seconds: Per-call override of the instance timeout.

        Returns:
            ExecutionOutcome with trimmed stdout/stderr.
        """
        timeout = timeout_seconds or self.timeout_seconds
        start_time = time.monotonic()

        try:
            process = await self._spawn(command)
        except (OSError, ValueError) as e:
            logger.debug("spawn_failed", command=command, error=str(e))
            return _spawn_failure(command, e, start_time)

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.CancelledError:
            await _kill(process)
            raise
        except asyncio.TimeoutError:
            await _kill(process)
            logger.warning("command_timeout", command=command, timeout=timeout)
            return ExecutionOutcome(
                success=False,
                stdout="",
                stderr=f"Command timed out after {timeout:g} seconds",
                exit_code=TIMEOUT_EXIT_CODE,
                command=command,
                duration_ms=_elapsed_ms(start_time),
                timed_out=True,
            )

        exit_code = process.returncode if process.returncode is not None else 0
        return ExecutionOutcome(
            success=exit_code == 0,
            stdout=_decode(stdout_bytes).strip(),
            stderr=_decode(stderr_bytes).strip(),
            exit_code=exit_code,
            command=command,
            duration_ms=_elapsed_ms(start_time),
        )

    async def execute_streamed(
        self,
        command: str,
        on_stdout: ChunkCallback | None = None,
        on_stderr: ChunkCallback | None = None,
    ) -> ExecutionOutcome:
        """Run a command, forwarding output chunks as they arrive.

        Each decoded chunk is appended to the outcome and passed to the
        matching callback, in arrival order per stream. Nothing is
        guaranteed about ordering between stdout and stderr.

        Args:
            command: Command string to run.
            on_stdout: Called with each stdout chunk.
            on_stderr: Called with each stderr chunk.

        Returns:
            ExecutionOutcome once the process has exited.
        """
        start_time = time.monotonic()

        try:
            process = await self._spawn(command)
        except (OSError, ValueError) as e:
            logger.debug("spawn_failed", command=command, error=str(e))
            return _spawn_failure(command, e, start_time)

        # stdin is attached but unused
        if process.stdin is not None:
            process.stdin.close()

        stdout_parts: list[str] = []
        stderr_parts: list[str] = []

        async def pump() -> int | None:
            await asyncio.gather(
                _read_stream(process.stdout, stdout_parts, on_stdout),
                _read_stream(process.stderr, stderr_parts, on_stderr),
            )
            return await process.wait()

        timed_out = False
        try:
            returncode = await asyncio.wait_for(pump(), timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            await _kill(process)
            raise
        except asyncio.TimeoutError:
            await _kill(process)
            timed_out = True
            returncode = TIMEOUT_EXIT_CODE
            stderr_parts.append(
                f"\nCommand timed out after {self.timeout_seconds:g} seconds"
            )
            logger.warning("command_timeout", command=command, timeout=self.timeout_seconds)

        exit_code = returncode if returncode is not None else 0
        return ExecutionOutcome(
            success=exit_code == 0 and not timed_out,
            stdout="".join(stdout_parts).strip(),
            stderr="".join(stderr_parts).strip(),
            exit_code=exit_code,
            command=command,
            duration_ms=_elapsed_ms(start_time),
            timed_out=timed_out,
        )

    async def command_exists(self, name: str) -> bool:
        """Check whether a command is available in this shell family."""
        if self.family == ShellFamily.POWERSHELL:
            quoted = "'" + name.replace("'", "''") + "'"
            probe = f"Get-Command {quoted} -ErrorAction SilentlyContinue"
        else:
            probe = f"command -v {shlex.quote(name)}"

        outcome = await self.execute_buffered(probe, timeout_seconds=PROBE_TIMEOUT_SECONDS)
        return outcome.success and bool(outcome.stdout)

    def current_directory(self) -> str:
        return os.getcwd()

    def change_directory(self, path: str) -> bool:
        """Change the working directory. Returns False on any failure."""
        try:
            os.chdir(os.path.expanduser(path))
        except (OSError, TypeError, ValueError):
            return False
        return True


async def _read_stream(
    stream: asyncio.StreamReader | None,
    parts: list[str],
    callback: ChunkCallback | None,
) -> None:
    if stream is None:
        return

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(_READ_CHUNK_BYTES)
        text = decoder.decode(data, final=not data)
        if text:
            parts.append(text)
            if callback is not None:
                callback(text)
        if not data:
            break


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the process and, on POSIX, every process in its group.

    Children that outlive the shell would keep the pipes open and
    ``wait()`` would not return until they exit.
    """
    try:
        if IS_WINDOWS:
            process.kill()
        else:
            os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    await process.wait()


def _spawn_failure(command: str, error: Exception, start_time: float) -> ExecutionOutcome:
    return ExecutionOutcome(
        success=False,
        stdout="",
        stderr=str(error),
        exit_code=SPAWN_FAILURE_EXIT_CODE,
        command=command,
        duration_ms=_elapsed_ms(start_time),
    )


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)
