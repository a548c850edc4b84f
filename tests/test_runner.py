"""Tests for the process runner.

Only harmless commands (echo, printf, sleep, exit) are executed.
"""

import os
import stat
import sys
import time
from pathlib import Path

import pytest

from ddcli.shell import runner as runner_module
from ddcli.shell.models import ShellFamily
from ddcli.shell.runner import (
    SPAWN_FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    ProcessRunner,
    default_powershell_interpreter,
    powershell_command_line,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="requires /bin/sh")


@pytest.fixture
def runner() -> ProcessRunner:
    return ProcessRunner(ShellFamily.POSIX, timeout_seconds=10)


@posix_only
class TestBufferedExecution:
    """Tests for execute_buffered."""

    @pytest.mark.asyncio
    async def test_captures_trimmed_output(self, runner: ProcessRunner):
        """Test that stdout is captured and trimmed."""
        outcome = await runner.execute_buffered("echo hello")

        assert outcome.success
        assert outcome.stdout == "hello"
        assert outcome.stderr == ""
        assert outcome.exit_code == 0
        assert outcome.command == "echo hello"

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, runner: ProcessRunner):
        """Test that a failing command is reported, not raised."""
        outcome = await runner.execute_buffered("echo oops >&2; exit 3")

        assert not outcome.success
        assert outcome.exit_code == 3
        assert outcome.stderr == "oops"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        """Test that a slow command is killed and marked as timed out."""
        runner = ProcessRunner(ShellFamily.POSIX, timeout_seconds=0.2)

        outcome = await runner.execute_buffered("sleep 5")

        assert not outcome.success
        assert outcome.timed_out
        assert outcome.exit_code == TIMEOUT_EXIT_CODE
        assert "timed out" in outcome.stderr
        assert outcome.duration_ms < 5000

    @pytest.mark.asyncio
    async def test_timeout_kills_forked_children(self):
        """Test that the timeout holds when the shell has forked a child."""
        runner = ProcessRunner(ShellFamily.POSIX, timeout_seconds=0.5)
        start = time.monotonic()

        outcome = await runner.execute_buffered("sleep 5; echo done")

        assert time.monotonic() - start < 2
        assert outcome.timed_out
        assert outcome.exit_code == TIMEOUT_EXIT_CODE
        assert "done" not in outcome.stdout

    @pytest.mark.asyncio
    async def test_per_call_timeout_override(self, runner: ProcessRunner):
        """Test that a per-call timeout overrides the instance timeout."""
        outcome = await runner.execute_buffered("sleep 5", timeout_seconds=0.2)

        assert outcome.timed_out

    @pytest.mark.asyncio
    async def test_spawn_failure(self, runner: ProcessRunner, monkeypatch: pytest.MonkeyPatch):
        """Test that a missing interpreter yields a failed outcome."""
        monkeypatch.setattr(runner_module, "POSIX_SHELL", "/nonexistent/sh")

        outcome = await runner.execute_buffered("echo hi")

        assert not outcome.success
        assert outcome.stdout == ""
        assert outcome.stderr
        assert outcome.exit_code == SPAWN_FAILURE_EXIT_CODE


@posix_only
class TestStreamedExecution:
    """Tests for execute_streamed."""

    @pytest.mark.asyncio
    async def test_echo_streams_chunk(self, runner: ProcessRunner):
        """Test that output is delivered to the callback and accumulated."""
        chunks: list[str] = []

        outcome = await runner.execute_streamed("echo hi", on_stdout=chunks.append)

        assert "".join(chunks) == "hi\n"
        assert outcome.success
        assert outcome.stdout == "hi"
        assert outcome.exit_code == 0

    @pytest.mark.asyncio
    async def test_stderr_callback(self, runner: ProcessRunner):
        """Test that stderr goes to its own callback."""
        out: list[str] = []
        err: list[str] = []

        outcome = await runner.execute_streamed(
            "echo out; echo err >&2; exit 2", on_stdout=out.append, on_stderr=err.append
        )

        assert "".join(out) == "out\n"
        assert "".join(err) == "err\n"
        assert outcome.exit_code == 2
        assert not outcome.success
        assert outcome.stderr == "err"

    @pytest.mark.asyncio
    async def test_chunks_arrive_in_order(self, runner: ProcessRunner):
        """Test that chunks from one stream keep their order."""
        chunks: list[str] = []

        outcome = await runner.execute_streamed(
            "printf 'one\\n'; sleep 0.1; printf 'two\\n'; sleep 0.1; printf 'three\\n'",
            on_stdout=chunks.append,
        )

        assert "".join(chunks) == "one\ntwo\nthree\n"
        assert outcome.stdout == "one\ntwo\nthree"

    @pytest.mark.asyncio
    async def test_without_callbacks(self, runner: ProcessRunner):
        """Test that callbacks are optional."""
        outcome = await runner.execute_streamed("echo quiet")

        assert outcome.stdout == "quiet"

    @pytest.mark.asyncio
    async def test_stdin_is_closed(self, runner: ProcessRunner):
        """Test that a command reading stdin sees end of input."""
        outcome = await runner.execute_streamed("cat")

        assert outcome.success
        assert outcome.stdout == ""

    @pytest.mark.asyncio
    async def test_utf8_output(self, runner: ProcessRunner):
        """Test that multi-byte output is decoded."""
        outcome = await runner.execute_streamed("printf 'h\\303\\251llo\\n'")

        assert outcome.stdout == "héllo"

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test that the shared timeout policy applies to streaming."""
        runner = ProcessRunner(ShellFamily.POSIX, timeout_seconds=0.2)
        chunks: list[str] = []

        outcome = await runner.execute_streamed("echo started; sleep 5", on_stdout=chunks.append)

        assert outcome.timed_out
        assert outcome.exit_code == TIMEOUT_EXIT_CODE
        assert not outcome.success
        assert "timed out" in outcome.stderr
        assert "".join(chunks) == "started\n"

    @pytest.mark.asyncio
    async def test_timeout_is_wall_clock(self):
        """Test that streaming stops at the timeout, not when the child exits."""
        runner = ProcessRunner(ShellFamily.POSIX, timeout_seconds=0.5)
        chunks: list[str] = []
        start = time.monotonic()

        outcome = await runner.execute_streamed("echo started; sleep 5; echo done", on_stdout=chunks.append)

        assert time.monotonic() - start < 2
        assert outcome.timed_out
        assert "".join(chunks) == "started\n"

    @pytest.mark.asyncio
    async def test_spawn_failure_never_raises(self, runner: ProcessRunner, monkeypatch: pytest.MonkeyPatch):
        """Test that spawn errors are folded into the outcome."""
        monkeypatch.setattr(runner_module, "POSIX_SHELL", "/nonexistent/sh")

        outcome = await runner.execute_streamed("echo hi")

        assert not outcome.success
        assert outcome.stdout == ""
        assert outcome.stderr
        assert outcome.exit_code == SPAWN_FAILURE_EXIT_CODE


@posix_only
class TestHelpers:
    """Tests for command_exists and directory helpers."""

    @pytest.mark.asyncio
    async def test_command_exists(self, runner: ProcessRunner):
        assert await runner.command_exists("sh")
        assert not await runner.command_exists("definitely-not-a-real-command-xyz")

    @pytest.mark.asyncio
    async def test_command_exists_quotes_name(self, runner: ProcessRunner):
        """Test that the name is looked up literally, not run as shell code."""
        assert not await runner.command_exists("sh; true")
        assert not await runner.command_exists("$(echo sh)")

    def test_current_directory(self, runner: ProcessRunner):
        assert runner.current_directory() == os.getcwd()

    def test_change_directory(self, runner: ProcessRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        """Test changing into an existing and a missing directory."""
        monkeypatch.chdir(tmp_path)
        target = tmp_path / "sub"
        target.mkdir()

        assert runner.change_directory(str(target))
        assert Path(os.getcwd()).resolve() == target.resolve()
        assert not runner.change_directory(str(tmp_path / "missing"))


class TestPowerShellInvocation:
    """Tests for PowerShell command line construction."""

    def test_command_line(self):
        line = powershell_command_line("Get-ChildItem", interpreter="pwsh")

        assert line == 'pwsh -NoProfile -Command "Get-ChildItem"'

    def test_quotes_are_doubled(self):
        line = powershell_command_line('Write-Output "hi there"', interpreter="pwsh")

        assert line == 'pwsh -NoProfile -Command "Write-Output ""hi there"""'

    def test_default_interpreter(self):
        expected = "powershell" if sys.platform == "win32" else "pwsh"

        assert default_powershell_interpreter() == expected

    def test_zero_timeout_disables_limit(self):
        runner = ProcessRunner(ShellFamily.POWERSHELL, timeout_seconds=0, powershell_interpreter="pwsh")

        assert runner.timeout_seconds is None
        assert runner.powershell_interpreter == "pwsh"


@pytest.fixture
def fake_pwsh(tmp_path: Path) -> Path:
    """Interpreter stand-in that prints its argument count and its -Command argument."""
    script = tmp_path / "pwsh"
    script.write_text('#!/bin/sh\nprintf \'%s\\n%s\' "$#" "$3"\n')
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


@posix_only
class TestPowerShellExecution:
    """Tests for how PowerShell commands reach the interpreter."""

    COMMAND = 'Get-ChildItem | Where-Object { $_.Length -gt 1MB } | Write-Output "big"'

    @pytest.mark.asyncio
    async def test_command_passed_as_single_argument(self, fake_pwsh: Path):
        """Test that variables and quotes reach PowerShell untouched."""
        runner = ProcessRunner(ShellFamily.POWERSHELL, timeout_seconds=10, powershell_interpreter=str(fake_pwsh))

        outcome = await runner.execute_buffered(self.COMMAND)

        assert outcome.success
        assert outcome.stdout == f"3\n{self.COMMAND}"

    @pytest.mark.asyncio
    async def test_streamed_uses_same_invocation(self, fake_pwsh: Path):
        runner = ProcessRunner(ShellFamily.POWERSHELL, timeout_seconds=10, powershell_interpreter=str(fake_pwsh))

        outcome = await runner.execute_streamed(self.COMMAND)

        assert outcome.stdout == f"3\n{self.COMMAND}"
