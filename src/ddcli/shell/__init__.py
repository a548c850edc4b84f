"""Shell layer: risk classification, environment detection and execution.

Usage:
    from ddcli.shell import RiskClassifier, ProcessRunner, ShellFamily

    verdict = RiskClassifier().classify("rm -rf /", ShellFamily.POSIX)
    # verdict.risk_level == RiskLevel.BLOCKED

    runner = ProcessRunner(ShellFamily.POSIX)
    outcome = await runner.execute_streamed("echo hi", on_stdout=print)
"""

from ddcli.shell.classifier import (
    BLOCKED_RULES,
    HIGH_RISK_RULES,
    MEDIUM_RISK_RULES,
    POWERSHELL_OVERLAY_RULES,
    RiskClassifier,
    Rule,
    describe_risk,
    security_report,
)
from ddcli.shell.environment import ShellEnvironment, shell_family_for
from ddcli.shell.models import (
    ExecutionOutcome,
    RiskLevel,
    RiskVerdict,
    ShellContext,
    ShellFamily,
)
from ddcli.shell.runner import ProcessRunner, powershell_command_line

__all__ = [
    # Classification
    "RiskClassifier",
    "Rule",
    "BLOCKED_RULES",
    "HIGH_RISK_RULES",
    "MEDIUM_RISK_RULES",
    "POWERSHELL_OVERLAY_RULES",
    "describe_risk",
    "security_report",
    # Environment
    "ShellEnvironment",
    "shell_family_for",
    # Execution
    "ProcessRunner",
    "powershell_command_line",
    # Data models
    "ExecutionOutcome",
    "RiskLevel",
    "RiskVerdict",
    "ShellContext",
    "ShellFamily",
]
