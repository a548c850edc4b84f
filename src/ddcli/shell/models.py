"""Data models for the shell layer.

Provides the risk verdict produced by the classifier, the shell context
produced by environment detection, and the outcome of running a command.
All of them are frozen: each is produced once by one stage and handed to
the next by value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class RiskLevel(Enum):
    """Risk level assigned to a command."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    BLOCKED = "blocked"

    @property
    def rank(self) -> int:
        """Ordering used when comparing or escalating verdicts."""
        return _RISK_RANK[self]


_RISK_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.BLOCKED: 3,
}


class ShellFamily(Enum):
    """Command interpreter syntax family."""

    POSIX = "posix"
    POWERSHELL = "powershell"


@dataclass(frozen=True)
class RiskVerdict:
    """Result of classifying a command.

    Attributes:
        risk_level: Assessed risk level.
        safe: False only for blocked commands.
        requires_confirmation: Whether the user must confirm before execution.
        warning: Explanation naming the rule that matched, if any.
    """

    risk_level: RiskLevel
    safe: bool
    requires_confirmation: bool
    warning: str | None = None

    def __post_init__(self) -> None:
        if self.risk_level == RiskLevel.BLOCKED and (
            self.safe or self.requires_confirmation
        ):
            raise ValueError("blocked verdicts cannot be safe or confirmable")
        if self.risk_level == RiskLevel.LOW and self.requires_confirmation:
            raise ValueError("low risk verdicts never require confirmation")

    @property
    def is_blocked(self) -> bool:
        return self.risk_level == RiskLevel.BLOCKED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "risk_level": self.risk_level.value,
            "safe": self.safe,
            "requires_confirmation": self.requires_confirmation,
            "warning": self.warning,
        }


@dataclass(frozen=True)
class ShellContext:
    """Detected shell environment.

    Attributes:
        family: Syntax family used for classification and invocation.
        platform: Platform identifier (e.g. "linux", "darwin", "win32").
        architecture: Machine architecture (e.g. "x86_64", "arm64").
        shell_name: Concrete shell (bash, zsh, fish or powershell).
        dialect_version: PowerShell major version, when discovered.
        execution_policy: PowerShell execution policy, when discovered.
    """

    family: ShellFamily
    platform: str
    architecture: str
    shell_name: str = "bash"
    dialect_version: str | None = None
    execution_policy: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "family": self.family.value,
            "platform": self.platform,
            "architecture": self.architecture,
            "shell_name": self.shell_name,
            "dialect_version": self.dialect_version,
            "execution_policy": self.execution_policy,
        }


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of running a command.

    Attributes:
        success: Whether the command exited with code 0.
        stdout: Standard output, trimmed.
        stderr: Standard error, trimmed.
        exit_code: Process exit code (124 on timeout, 1 on spawn failure).
        command: The command that was run.
        duration_ms: Wall-clock duration in milliseconds.
        timed_out: Whether the process was killed by the timeout.
    """

    success: bool
    stdout: str
    stderr: str
    exit_code: int
    command: str
    duration_ms: int = 0
    timed_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "command": self.command,
            "duration": self.duration_ms / 1000,
            "timed_out": self.timed_out,
        }
