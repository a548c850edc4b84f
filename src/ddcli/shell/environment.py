"""Shell environment detection.

Determines the shell family used for classification and invocation, plus
platform metadata passed to the translation model as context.
"""

import asyncio
import os
import platform
import sys
from typing import Mapping

from ddcli.logging import get_logger
from ddcli.shell.models import ShellContext, ShellFamily

logger = get_logger(__name__)

# Matched against $SHELL in priority order; the first entry is the default
POSIX_SHELLS: tuple[str, ...] = ("bash", "zsh", "fish")

POWERSHELL_INTERPRETERS: tuple[str, ...] = ("powershell", "pwsh")

PROBE_TIMEOUT_SECONDS = 5.0

VERSION_PROBE = "$PSVersionTable.PSVersion.Major"
POLICY_PROBE = "Get-ExecutionPolicy"


def shell_family_for(shell_name: str) -> ShellFamily:
    """Map a shell name (or config override) to its family."""
    if shell_name.lower() in ("powershell", "pwsh"):
        return ShellFamily.POWERSHELL
    return ShellFamily.POSIX


class ShellEnvironment:
    """Detects the active shell and platform.

    Args:
        platform_name: Platform identifier, defaults to ``sys.platform``.
        architecture: Machine architecture, defaults to ``platform.machine()``.
        environ: Environment mapping, defaults to ``os.environ``.
        shell_override: Configured shell ("auto" means detect).
    """

    def __init__(
        self,
        platform_name: str | None = None,
        architecture: str | None = None,
        environ: Mapping[str, str] | None = None,
        shell_override: str = "auto",
    ):
        self.platform_name = platform_name or sys.platform
        self.architecture = architecture or platform.machine() or "unknown"
        self.environ = environ if environ is not None else os.environ
        self.shell_override = shell_override

    @property
    def is_windows(self) -> bool:
        return self.platform_name.startswith("win")

    def detect_shell_name(self) -> str:
        """Detect the shell name without probing any process."""
        if self.shell_override and self.shell_override != "auto":
            return self.shell_override

        if self.is_windows:
            return "powershell"

        shell = self.environ.get("SHELL", "")
        for name in POSIX_SHELLS:
            if name in shell:
                return name
        return POSIX_SHELLS[0]

    async def detect(self) -> ShellContext:
        """Detect the shell context.

        On Windows the PowerShell major version and execution policy are
        probed as optional enrichment; missing values are None.
        """
        shell_name = self.detect_shell_name()
        family = shell_family_for(shell_name)

        dialect_version = None
        execution_policy = None
        if family == ShellFamily.POWERSHELL and self.is_windows:
            dialect_version = await self.probe_powershell(VERSION_PROBE)
            execution_policy = await self.probe_powershell(POLICY_PROBE)

        context = ShellContext(
            family=family,
            platform=self.platform_name,
            architecture=self.architecture,
            shell_name=shell_name,
            dialect_version=dialect_version,
            execution_policy=execution_policy,
        )
        logger.debug("shell_detected", **context.to_dict())
        return context

    async def probe_powershell(self, script: str) -> str | None:
        """Run a read-only PowerShell snippet, trying each interpreter in turn."""
        for interpreter in POWERSHELL_INTERPRETERS:
            output = await _probe([interpreter, "-NoProfile", "-Command", script])
            if output:
                return output
        return None


async def _probe(argv: list[str], timeout: float = PROBE_TIMEOUT_SECONDS) -> str | None:
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        return None

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return None

    if process.returncode != 0:
        return None
    return stdout.decode("utf-8", errors="replace").strip() or None
