"""Shared test fixtures for ddcli tests.

Provides:
- Isolation of DDCLI_HOME, DDCLI_* settings and provider API keys
- Fake UI, gateway and runner collaborators for the pipeline
- Settings and activity log fixtures
- A ConsoleUI wired to in-memory consoles and scripted prompt answers
"""

import os
from contextlib import nullcontext
from io import StringIO
from pathlib import Path
from typing import Generator

import pytest
import structlog
from rich.console import Console

from ddcli import config as config_module
from ddcli.activity_log import ActivityLog
from ddcli.cli.console import ConsoleUI
from ddcli.config import Settings
from ddcli.errors import DdcliError
from ddcli.shell.models import ExecutionOutcome, ShellFamily
from ddcli.translation.models import TranslatedCommand

API_KEY_ENV_VARS = ["OPENAI_API_KEY", "ANTHROPIC_API_KEY", "DEEPSEEK_API_KEY"]


@pytest.fixture(autouse=True)
def ddcli_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point DDCLI_HOME at a temporary directory for every test."""
    home = tmp_path / "ddcli-home"
    for var in list(os.environ):
        if var.startswith("DDCLI_"):
            monkeypatch.delenv(var, raising=False)
    for var in API_KEY_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DDCLI_HOME", str(home))
    monkeypatch.setattr(config_module, "_settings_instance", None)
    return home


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo configure_logging and bound context so tests never leak log state."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def settings() -> Settings:
    """Settings with an OpenAI key and nothing read from disk."""
    return Settings(providers={"openai": {"api_key": "sk-test"}})


@pytest.fixture
def activity_log(tmp_path: Path) -> Generator[ActivityLog, None, None]:
    with ActivityLog(tmp_path / "logs", session_id="test") as log:
        yield log


class FakeUI:
    """Records everything the pipeline shows and answers prompts from presets."""

    def __init__(self, confirm: bool = True, dangerous: bool = True):
        self.confirm_answer = confirm
        self.dangerous_answer = dangerous
        self.messages: list[tuple[str, str]] = []
        self.prompts: list[str] = []
        self.shown_commands: list[str] = []
        self.stdout_chunks: list[str] = []
        self.stderr_chunks: list[str] = []
        self.outcomes: list[ExecutionOutcome] = []

    def status(self, message: str):
        self.messages.append(("status", message))
        return nullcontext()

    def add_message(self, text: str, style: str | None = None) -> None:
        self.messages.append(("message", text))

    def add_error(self, text: str) -> None:
        self.messages.append(("error", text))

    def add_warning(self, text: str) -> None:
        self.messages.append(("warning", text))

    def add_success(self, text: str) -> None:
        self.messages.append(("success", text))

    def show_command(self, translated, verdict, shell_name: str) -> None:
        self.shown_commands.append(translated.command)

    async def yes_no_dialog(self, title: str, text: str, default: bool = False) -> bool:
        self.prompts.append("confirm")
        return self.confirm_answer

    async def confirm_dangerous(self, command: str, warning: str | None) -> bool:
        self.prompts.append("dangerous")
        return self.dangerous_answer

    def write_stdout(self, chunk: str) -> None:
        self.stdout_chunks.append(chunk)

    def write_stderr(self, chunk: str) -> None:
        self.stderr_chunks.append(chunk)

    def show_outcome(self, outcome: ExecutionOutcome) -> None:
        self.outcomes.append(outcome)

    def texts(self, kind: str) -> list[str]:
        return [text for k, text in self.messages if k == kind]


class FakeGateway:
    """Returns a fixed translation or raises a fixed error."""

    def __init__(self, command: str = "ls -la", explanation: str = "list files", error: DdcliError | None = None):
        self.result = TranslatedCommand(command=command, explanation=explanation)
        self.error = error
        self.calls: list[dict] = []

    async def convert(self, query, context=None, provider=None, shell_family=ShellFamily.POSIX):
        self.calls.append(
            {"query": query, "context": context, "provider": provider, "shell_family": shell_family}
        )
        if self.error is not None:
            raise self.error
        return self.result


class FakeRunner:
    """Records executed commands and replays output through the callbacks."""

    def __init__(self, stdout: str = "output\n", exit_code: int = 0):
        self.stdout = stdout
        self.exit_code = exit_code
        self.commands: list[str] = []
        self.families: list[ShellFamily] = []

    def __call__(self, family: ShellFamily) -> "FakeRunner":
        self.families.append(family)
        return self

    async def execute_streamed(self, command, on_stdout=None, on_stderr=None) -> ExecutionOutcome:
        self.commands.append(command)
        if on_stdout is not None and self.stdout:
            on_stdout(self.stdout)
        return ExecutionOutcome(
            success=self.exit_code == 0,
            stdout=self.stdout.strip(),
            stderr="",
            exit_code=self.exit_code,
            command=command,
        )


@pytest.fixture
def fake_ui() -> FakeUI:
    return FakeUI()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


class ScriptedPrompt:
    """Async stand-in for ``PromptSession.prompt_async`` that replays answers."""

    def __init__(self, answers: list[str]):
        self.answers = list(answers)
        self.calls: list[tuple[str, dict]] = []

    async def __call__(self, message: str, **kwargs) -> str:
        self.calls.append((message, kwargs))
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


def make_console_ui(answers: list[str] | None = None):
    """Build a ConsoleUI writing to in-memory consoles.

    Returns:
        Tuple of (ui, stdout buffer, stderr buffer, prompt)
    """
    out, err = StringIO(), StringIO()
    prompt = ScriptedPrompt(answers or [])
    ui = ConsoleUI(
        console=Console(file=out, width=120, color_system=None),
        err_console=Console(file=err, width=120, color_system=None),
        prompt=prompt,
    )
    return ui, out, err, prompt
