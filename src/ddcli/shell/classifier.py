"""Risk classifier for translated shell commands.

Matches a lower-cased copy of the command against ordered rule catalogues:
- BLOCKED_RULES: catastrophic operations that are never executed
- HIGH_RISK_RULES: dangerous but legitimate operations
- MEDIUM_RISK_RULES: everyday commands that mutate state

Matching is substring based, not a shell parser. The first matching rule
wins, so catalogue order is significant. Compound commands joined with
``|`` or ``&&`` are additionally split and each segment is classified.

A dialect overlay runs after the base scan for PowerShell. It never lowers
the risk level reached by the base scan.
"""

import re
from dataclasses import dataclass
from typing import Callable

from ddcli.shell.models import RiskLevel, RiskVerdict, ShellFamily


@dataclass(frozen=True)
class Rule:
    """A substring rule mapping a command fragment to a risk level."""

    pattern: str
    level: RiskLevel

    def matches(self, normalized: str) -> bool:
        return self.pattern.lower() in normalized

    def verdict(self) -> RiskVerdict:
        return _verdict(self.level, _WARNING_TEMPLATES[self.level].format(pattern=self.pattern))


_WARNING_TEMPLATES: dict[RiskLevel, str] = {
    RiskLevel.BLOCKED: "Command contains a blocked operation: {pattern}",
    RiskLevel.HIGH: "High-risk command that may cause irreversible damage: {pattern}",
    RiskLevel.MEDIUM: "Medium-risk command, review it carefully: {pattern}",
}


def _verdict(level: RiskLevel, warning: str | None = None) -> RiskVerdict:
    if level == RiskLevel.BLOCKED:
        return RiskVerdict(level, safe=False, requires_confirmation=False, warning=warning)
    if level == RiskLevel.LOW:
        return RiskVerdict(level, safe=True, requires_confirmation=False, warning=warning)
    return RiskVerdict(level, safe=True, requires_confirmation=True, warning=warning)


def _rules(level: RiskLevel, patterns: list[str]) -> tuple[Rule, ...]:
    return tuple(Rule(pattern, level) for pattern in patterns)


# Commands that are NEVER executed
BLOCKED_RULES = _rules(RiskLevel.BLOCKED, [
    "rm -rf /",
    "rm -rf /*",
    "rm -rf /\\*",
    "sudo rm -rf /",
    ":(){ :|:& };:",
    "fork bomb",
    "format c:",
    "mkfs",
    "dd if=/dev/zero of=/dev/sda",
    "chmod -R 777 /",
    "sudo chmod -R 777 /",
    "rm -rf /etc",
    "rm -rf /bin",
    "rm -rf /usr",
    "rm -rf /var",
    "rm -rf /boot",
    "shutdown -h now",
    "reboot",
    "halt",
    "poweroff",
    "init 0",
    "init 6",
    "Remove-Item -Recurse -Force C:\\",
    "Format-Volume -DriveLetter C",
    "Stop-Computer -Force",
    "Restart-Computer -Force",
])

HIGH_RISK_RULES = _rules(RiskLevel.HIGH, [
    "rm -rf",
    "sudo",
    "chmod 777",
    "chmod -R",
    "dd if=",
    "mkfs",
    "format",
    "Remove-Item -Recurse",
    "Remove-Item -Force",
    "Format-Volume",
    "Stop-Computer",
    "Restart-Computer",
    "Set-ExecutionPolicy",
    "Invoke-Expression",
    "Start-Process -Verb RunAs",
])

MEDIUM_RISK_RULES = _rules(RiskLevel.MEDIUM, [
    "rm",
    "mv",
    "chmod",
    "chown",
    "sudo chmod",
    "sudo chown",
    "Remove-Item",
    "Move-Item",
    "Set-Acl",
    "New-Service",
    "Remove-Service",
    "Stop-Service",
    "Start-Service",
])

RULE_CATALOGUE: tuple[Rule, ...] = BLOCKED_RULES + HIGH_RISK_RULES + MEDIUM_RISK_RULES

# Operators that separate compound command segments
_COMPOUND_SPLIT = re.compile(r"\||&&")

# Segments nested deeper than this are not split further
MAX_SPLIT_DEPTH = 8


@dataclass(frozen=True)
class OverlayRule:
    """A regex rule applied by a dialect overlay after the base scan."""

    pattern: re.Pattern[str]
    level: RiskLevel
    warning: str

    def matches(self, normalized: str) -> bool:
        return self.pattern.search(normalized) is not None

    def verdict(self) -> RiskVerdict:
        return _verdict(self.level, self.warning)


POWERSHELL_OVERLAY_RULES: tuple[OverlayRule, ...] = (
    OverlayRule(
        pattern=re.compile(r"executionpolicy.*\b(bypass|unrestricted)\b|\b(bypass|unrestricted)\b.*executionpolicy"),
        level=RiskLevel.HIGH,
        warning="Attempts to bypass the PowerShell execution policy, which may be a security risk",
    ),
    OverlayRule(
        pattern=re.compile(
            r"\breg(?:\.exe)?\s+(?:add|delete)\b"
            r"|\b(?:new|set|remove)-itemproperty\b"
            r"|\b(?:new-item|remove-item)\b[^|;]*\bhk(?:lm|cu|cr|u|cc):"
        ),
        level=RiskLevel.MEDIUM,
        warning="Registry modification may affect system stability",
    ),
)

# Dialect overlay strategies keyed by shell family
_OVERLAYS: dict[ShellFamily, tuple[OverlayRule, ...]] = {
    ShellFamily.POSIX: (),
    ShellFamily.POWERSHELL: POWERSHELL_OVERLAY_RULES,
}


class RiskClassifier:
    """Classifies commands into risk verdicts.

    Stateless: classifying the same command twice yields the same verdict.
    Never raises; every input, including an empty string, gets a verdict.
    """

    def __init__(self, rules: tuple[Rule, ...] = RULE_CATALOGUE):
        self.rules = rules

    def classify(
        self,
        command: str,
        shell_family: ShellFamily = ShellFamily.POSIX,
    ) -> RiskVerdict:
        """Classify a command for the given shell family.

        Args:
            command: The command text (not modified).
            shell_family: Dialect used to select the overlay rules.

        Returns:
            RiskVerdict for the command.
        """
        normalized = (command or "").strip().lower()
        verdict = self._scan(normalized, depth=0)
        return self._apply_overlay(normalized, verdict, shell_family)

    def _scan(self, normalized: str, depth: int) -> RiskVerdict:
        for rule in self.rules:
            if rule.matches(normalized):
                return rule.verdict()

        if depth < MAX_SPLIT_DEPTH and ("|" in normalized or "&&" in normalized):
            for segment in _COMPOUND_SPLIT.split(normalized):
                segment = segment.strip()
                if not segment or segment == normalized:
                    continue
                segment_verdict = self._scan(segment, depth + 1)
                if segment_verdict.is_blocked or (
                    segment_verdict.risk_level == RiskLevel.HIGH
                    and segment_verdict.requires_confirmation
                ):
                    return segment_verdict

        return _verdict(RiskLevel.LOW)

    def _apply_overlay(
        self,
        normalized: str,
        verdict: RiskVerdict,
        shell_family: ShellFamily,
    ) -> RiskVerdict:
        # Overlays never lower the level. At equal level the dialect warning wins.
        for rule in _OVERLAYS.get(shell_family, ()):
            if rule.level.rank >= verdict.risk_level.rank and rule.matches(normalized):
                verdict = rule.verdict()
        return verdict


_RISK_DESCRIPTIONS = {
    RiskLevel.LOW: "Low risk",
    RiskLevel.MEDIUM: "Medium risk",
    RiskLevel.HIGH: "High risk",
    RiskLevel.BLOCKED: "Blocked",
}


def describe_risk(level: RiskLevel) -> str:
    """Human-readable label for a risk level."""
    return _RISK_DESCRIPTIONS.get(level, "Unknown")


def security_report(
    command: str,
    shell_family: ShellFamily = ShellFamily.POSIX,
    classify: Callable[[str, ShellFamily], RiskVerdict] | None = None,
) -> str:
    """Build a multi-line security report for a command.

    Args:
        command: Command to report on.
        shell_family: Dialect for classification.
        classify: Optional classification function (defaults to RiskClassifier).

    Returns:
        Report text, one field per line.
    """
    classify = classify or RiskClassifier().classify
    verdict = classify(command, shell_family)

    lines = [
        f"Security check: {describe_risk(verdict.risk_level)}",
        f"Command: {command}",
    ]
    if verdict.warning:
        lines.append(f"Warning: {verdict.warning}")
    lines.append(f"Requires confirmation: {'yes' if verdict.requires_confirmation else 'no'}")
    return "\n".join(lines) + "\n"
