"""Query pipeline: detect, translate, classify, confirm, execute, report.

The pipeline is a small state machine. Every run walks the states in
order and ends in exactly one terminal state, Reported or Aborted:

    Detecting -> Translating -> Classifying -> AwaitingConfirmation
              -> Executing -> Reported

Translation errors, blocked commands and declined confirmations move the
run to Aborted. Blocked commands never reach the runner.
"""

import os
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

from ddcli.activity_log import ActivityLog
from ddcli.config import Settings
from ddcli.errors import CredentialsMissing, DdcliError
from ddcli.logging import bind_query_context, get_logger
from ddcli.shell.classifier import RiskClassifier, security_report
from ddcli.shell.environment import ShellEnvironment
from ddcli.shell.models import (
    ExecutionOutcome,
    RiskVerdict,
    ShellContext,
    ShellFamily,
)
from ddcli.shell.runner import ProcessRunner
from ddcli.translation.models import TranslatedCommand

logger = get_logger(__name__)


class PipelineState(str, Enum):
    DETECTING = "detecting"
    TRANSLATING = "translating"
    CLASSIFYING = "classifying"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    REPORTED = "reported"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({PipelineState.REPORTED, PipelineState.ABORTED})


class AbortReason(str, Enum):
    CREDENTIALS_MISSING = "credentials_missing"
    TRANSLATION_FAILED = "translation_failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class Translator(Protocol):
    async def convert(
        self,
        query: str,
        context: str | None = None,
        provider: str | None = None,
        shell_family: ShellFamily = ShellFamily.POSIX,
    ) -> TranslatedCommand: ...


class PipelineUI(Protocol):
    """What the pipeline needs from the console."""

    def status(self, message: str) -> AbstractContextManager: ...

    def add_message(self, text: str, style: str | None = None) -> None: ...

    def add_error(self, text: str) -> None: ...

    def add_warning(self, text: str) -> None: ...

    def add_success(self, text: str) -> None: ...

    def show_command(self, translated: TranslatedCommand, verdict: RiskVerdict, shell_name: str) -> None: ...

    async def yes_no_dialog(self, title: str, text: str) -> bool: ...

    async def confirm_dangerous(self, command: str, warning: str | None) -> bool: ...

    def write_stdout(self, chunk: str) -> None: ...

    def write_stderr(self, chunk: str) -> None: ...

    def show_outcome(self, outcome: ExecutionOutcome) -> None: ...


@dataclass
class PipelineOptions:
    provider: str | None = None
    auto_execute: bool = False
    debug: bool = False


@dataclass
class PipelineResult:
    """Terminal state of a run plus everything produced on the way."""

    state: PipelineState
    reason: AbortReason | None = None
    context: ShellContext | None = None
    translated: TranslatedCommand | None = None
    verdict: RiskVerdict | None = None
    outcome: ExecutionOutcome | None = None
    history: list[PipelineState] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """Process exit code: declining is not an error, aborting is."""
        if self.state == PipelineState.REPORTED or self.reason == AbortReason.CANCELLED:
            return 0
        return 1


def credentials_hint(provider: str, config_path: os.PathLike | str) -> str:
    """Remediation text for a provider without an API key."""
    return (
        f"Run 'ddcli config --setup' to configure the {provider} provider, "
        f"or set providers.{provider}.api_key in {config_path} "
        f"(or the {provider.upper()}_API_KEY environment variable)."
    )


def build_context_text(context: ShellContext, working_dir: str) -> str:
    """Describe the environment for the translation model."""
    parts = [
        f"Current directory: {working_dir}",
        f"Shell: {context.shell_name}",
    ]
    if context.dialect_version:
        parts.append(f"PowerShell version: {context.dialect_version}")
    parts.append(f"Platform: {context.platform} ({context.architecture})")
    return "\n".join(parts)


class Pipeline:
    """Runs one natural-language query end to end.

    Args:
        settings: Loaded settings (default provider, auto_execute, timeout).
        gateway: Translator turning the query into a command.
        environment: Shell detection.
        ui: Console collaborator for output and prompts.
        activity_log: Activity log receiving API calls, security events and
            command outcomes.
        classifier: Risk classifier (defaults to the built-in catalogue).
        runner_factory: Builds a runner for the detected shell family.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: Translator,
        environment: ShellEnvironment,
        ui: PipelineUI,
        activity_log: ActivityLog,
        classifier: RiskClassifier | None = None,
        runner_factory: Callable[[ShellFamily], ProcessRunner] | None = None,
    ):
        self.settings = settings
        self.gateway = gateway
        self.environment = environment
        self.ui = ui
        self.activity_log = activity_log
        self.classifier = classifier or RiskClassifier()
        self.runner_factory = runner_factory or self._default_runner
        self._history: list[PipelineState] = []

    def _default_runner(self, family: ShellFamily) -> ProcessRunner:
        return ProcessRunner(family, timeout_seconds=self.settings.execution_timeout)

    @property
    def state(self) -> PipelineState | None:
        return self._history[-1] if self._history else None

    def _enter(self, state: PipelineState) -> None:
        logger.debug("pipeline_state", state=state.value, previous=self.state.value if self.state else None)
        self._history.append(state)

    def _finish(self, state: PipelineState, **fields) -> PipelineResult:
        self._enter(state)
        return PipelineResult(state=state, history=list(self._history), **fields)

    async def run(self, query: str, options: PipelineOptions | None = None) -> PipelineResult:
        """Run the query through every stage.

        Returns:
            PipelineResult in Reported or Aborted state.
        """
        options = options or PipelineOptions()
        provider = options.provider or self.settings.default_provider
        self._history = []
        bind_query_context(self.activity_log.session_id, provider)

        self._enter(PipelineState.DETECTING)
        context = await self.environment.detect()
        bind_query_context(self.activity_log.session_id, provider, shell=context.shell_name)
        working_dir = os.getcwd()

        self._enter(PipelineState.TRANSLATING)
        logger.info("translating_query", query_length=len(query))
        try:
            with self.ui.status(f"Translating with {provider}..."):
                translated = await self.gateway.convert(
                    query,
                    build_context_text(context, working_dir),
                    provider=provider,
                    shell_family=context.family,
                )
        except CredentialsMissing as e:
            self.activity_log.log_api_call(provider, query, success=False, error=e.message)
            self.ui.add_error(e.message)
            self.ui.add_message(credentials_hint(e.provider, self.settings.config_path))
            return self._finish(PipelineState.ABORTED, reason=AbortReason.CREDENTIALS_MISSING, context=context)
        except DdcliError as e:
            logger.warning("translation_failed", error=e.message, error_code=e.error_code)
            self.activity_log.log_api_call(provider, query, success=False, error=e.message)
            self.ui.add_error(f"Translation failed: {e.message}")
            return self._finish(PipelineState.ABORTED, reason=AbortReason.TRANSLATION_FAILED, context=context)

        self.activity_log.log_api_call(provider, query, success=True, response=translated.command)
        if options.debug:
            self.ui.add_message(f"Provider response: {translated.to_dict()}", style="dim")

        self._enter(PipelineState.CLASSIFYING)
        verdict = self.classifier.classify(translated.command, context.family)
        logger.info("command_classified", risk_level=verdict.risk_level.value)
        if options.debug:
            report = security_report(translated.command, context.family, self.classifier.classify)
            self.ui.add_message(report, style="dim")

        if verdict.is_blocked:
            self.activity_log.log_security_event("blocked", translated.command, verdict.warning)
            self.ui.add_error(f"Command blocked by the security check: {verdict.warning}")
            return self._finish(
                PipelineState.ABORTED,
                reason=AbortReason.BLOCKED,
                context=context,
                translated=translated,
                verdict=verdict,
            )

        self.ui.show_command(translated, verdict, context.shell_name)

        self._enter(PipelineState.AWAITING_CONFIRMATION)
        if not await self._confirm(translated, verdict, options):
            self.activity_log.log_security_event("cancelled", translated.command, verdict.warning)
            self.ui.add_warning("Command cancelled")
            return self._finish(
                PipelineState.ABORTED,
                reason=AbortReason.CANCELLED,
                context=context,
                translated=translated,
                verdict=verdict,
            )
        if verdict.requires_confirmation:
            self.activity_log.log_security_event("confirmed", translated.command, verdict.warning)

        self._enter(PipelineState.EXECUTING)
        runner = self.runner_factory(context.family)
        outcome = await runner.execute_streamed(
            translated.command,
            on_stdout=self.ui.write_stdout,
            on_stderr=self.ui.write_stderr,
        )
        self.activity_log.log_command(outcome, verdict, working_dir=working_dir)
        logger.info("command_executed", exit_code=outcome.exit_code, duration_ms=outcome.duration_ms)

        self.ui.show_outcome(outcome)
        if options.debug:
            self.ui.add_message(f"Execution result: {outcome.to_dict()}", style="dim")

        return self._finish(
            PipelineState.REPORTED,
            context=context,
            translated=translated,
            verdict=verdict,
            outcome=outcome,
        )

    async def _confirm(
        self,
        translated: TranslatedCommand,
        verdict: RiskVerdict,
        options: PipelineOptions,
    ) -> bool:
        # Auto-execute never waives confirmation for risky commands
        if verdict.requires_confirmation:
            return await self.ui.confirm_dangerous(translated.command, verdict.warning)
        if options.auto_execute or self.settings.auto_execute:
            return True
        return await self.ui.yes_no_dialog("Confirm", "Execute this command?")
