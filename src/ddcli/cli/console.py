"""Console UI: rich for output, prompt_toolkit for input."""

from contextlib import AbstractContextManager
from typing import Any, Awaitable, Callable

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from ddcli.shell.classifier import describe_risk
from ddcli.shell.models import ExecutionOutcome, RiskLevel, RiskVerdict
from ddcli.translation.models import TranslatedCommand

PromptFunc = Callable[..., Awaitable[str]]

RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "red",
    RiskLevel.BLOCKED: "bold red",
}

CONFIRM_WORD = "yes"


class ConsoleUI:
    """Terminal front end used by the pipeline and the config command.

    Args:
        console: Console for regular output (stdout).
        err_console: Console for errors and streamed stderr.
        prompt: Async prompt function with the signature of
            ``PromptSession.prompt_async``. Defaults to a shared session.
    """

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        prompt: PromptFunc | None = None,
    ):
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self._prompt = prompt
        self._session: PromptSession | None = None

    async def _ask(self, message: str, **kwargs: Any) -> str:
        if self._prompt is None:
            if self._session is None:
                self._session = PromptSession()
            self._prompt = self._session.prompt_async
        return await self._prompt(message, **kwargs)

    # === Output ===

    def status(self, message: str) -> AbstractContextManager:
        """Spinner shown while waiting; stops when the block exits."""
        return self.console.status(message, spinner="dots")

    def add_message(self, text: str, style: str | None = None) -> None:
        self.console.print(Text(text, style=style or ""))

    def add_rich(self, renderable: Any) -> None:
        self.console.print(renderable)

    def add_error(self, text: str) -> None:
        self.err_console.print(Text(f"Error: {text}", style="bold red"))

    def add_warning(self, text: str) -> None:
        self.console.print(Text(text, style="yellow"))

    def add_success(self, text: str) -> None:
        self.console.print(Text(text, style="green"))

    def show_yaml(self, text: str, title: str | None = None) -> None:
        syntax = Syntax(text, "yaml", theme="ansi_dark", background_color="default")
        self.console.print(Panel(syntax, title=title, border_style="cyan") if title else syntax)

    def show_command(self, translated: TranslatedCommand, verdict: RiskVerdict, shell_name: str) -> None:
        """Show the generated command, its explanation and any warning."""
        style = RISK_STYLES.get(verdict.risk_level, "white")
        body = Text()
        body.append(translated.command, style="bold yellow")
        if translated.explanation:
            body.append("\n\n")
            body.append(translated.explanation)
        if verdict.warning:
            body.append("\n\n")
            body.append(f"Warning: {verdict.warning}", style=style)

        title = f"[bold]Command[/bold] ({describe_risk(verdict.risk_level)})"
        self.console.print(Panel(body, title=title, border_style=style))
        self.console.print(Text(f"Shell: {shell_name}", style="dim"))

    def write_stdout(self, chunk: str) -> None:
        self.console.file.write(chunk)
        self.console.file.flush()

    def write_stderr(self, chunk: str) -> None:
        self.err_console.file.write(chunk)
        self.err_console.file.flush()

    def show_outcome(self, outcome: ExecutionOutcome) -> None:
        self.console.print()
        if outcome.success:
            self.add_success("Command completed successfully")
            return
        if outcome.timed_out:
            self.add_error(outcome.stderr.splitlines()[-1] if outcome.stderr else "Command timed out")
        else:
            self.add_error(f"Command failed with exit code {outcome.exit_code}")

    # === Input ===

    async def yes_no_dialog(self, title: str, text: str, default: bool = False) -> bool:
        """Ask a y/N question. An empty answer selects the default."""
        suffix = "[Y/n]" if default else "[y/N]"
        answer = (await self._ask(f"{text} {suffix} ")).strip().lower()
        if not answer:
            return default
        return answer in ("y", "yes")

    async def confirm_dangerous(self, command: str, warning: str | None) -> bool:
        """Confirm a risky command. Only typing "yes" approves it."""
        body = Text()
        if warning:
            body.append(warning, style="red")
            body.append("\n\n")
        body.append(command, style="bold yellow")
        self.console.print(Panel(body, title="[bold red]Dangerous command[/bold red]", border_style="red"))

        answer = await self._ask(f'Type "{CONFIRM_WORD}" to execute this command: ')
        return answer.strip().lower() == CONFIRM_WORD

    async def input_dialog(
        self,
        title: str,
        text: str,
        default: str = "",
        password: bool = False,
        required: bool = False,
    ) -> str:
        """Ask for free text. Required fields are asked again until non-empty."""
        while True:
            answer = (await self._ask(f"{text}: ", default=default, is_password=password)).strip()
            if answer or not required:
                return answer
            self.add_warning("This field is required")

    async def choice_dialog(self, title: str, text: str, options: list[str], default: str | None = None) -> str:
        """Pick one of several options by name or number."""
        default = default if default in options else options[0]
        for index, option in enumerate(options, start=1):
            marker = "*" if option == default else " "
            self.console.print(f" {marker} {index}. {option}")

        completer = WordCompleter(options)
        while True:
            answer = (await self._ask(f"{text} [{default}]: ", completer=completer)).strip()
            if not answer:
                return default
            if answer in options:
                return answer
            if answer.isdigit() and 1 <= int(answer) <= len(options):
                return options[int(answer) - 1]
            self.add_warning(f"Choose one of: {', '.join(options)}")
