"""Command-line entry point.

    ddcli <query> [-p PROVIDER] [-y] [-d]
    ddcli config [--show | --reset | --path | --setup | --test [PROVIDER] | --set KEY=VALUE ...]
"""

import argparse
import asyncio
import sys
from typing import Sequence

import yaml
from pydantic import ValidationError

from ddcli import __version__
from ddcli.activity_log import ActivityLog
from ddcli.cli.console import ConsoleUI
from ddcli.cli.setup_wizard import run_setup_wizard
from ddcli.config import Settings, log_dir_path, reload_settings
from ddcli.config_store import MASK, ConfigStore
from ddcli.constants import APP_NAME
from ddcli.errors import ConfigurationError
from ddcli.logging import clear_context, configure_logging, get_logger
from ddcli.pipeline import Pipeline, PipelineOptions, credentials_hint
from ddcli.shell.environment import ShellEnvironment
from ddcli.translation.gateway import TranslationGateway

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Translate natural language into shell commands and run them after a safety check.",
        epilog=f"Run '{APP_NAME} config --help' for configuration commands.",
    )
    parser.add_argument("query", nargs="+", help="What you want to do, in plain language")
    parser.add_argument("-p", "--provider", help="Translation provider (openai, anthropic, deepseek)")
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Run low-risk commands without asking (risky commands still ask)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Show debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=f"{APP_NAME} config", description="Manage the ddcli configuration.")
    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("-s", "--show", action="store_true", help="Show the configuration (default)")
    actions.add_argument("-r", "--reset", action="store_true", help="Reset the configuration to defaults")
    actions.add_argument("--path", action="store_true", help="Print the config file path")
    actions.add_argument("--setup", action="store_true", help="Configure a provider interactively")
    actions.add_argument(
        "--test",
        nargs="?",
        const="",
        metavar="PROVIDER",
        help="Test the connection to a provider (default provider if omitted)",
    )
    actions.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Set a value, e.g. providers.openai.model=gpt-4o (repeatable)",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask before resetting")
    return parser


def load_settings(ui: ConsoleUI) -> Settings | None:
    """Load settings, reporting a broken config file instead of raising."""
    try:
        return reload_settings()
    except (ValidationError, yaml.YAMLError) as e:
        ui.add_error(f"Invalid configuration: {e}")
        ui.add_message(f"Fix or reset it with '{APP_NAME} config --reset'.")
        return None


def run_query(args: argparse.Namespace, ui: ConsoleUI) -> int:
    settings = load_settings(ui)
    if settings is None:
        return EXIT_FAILURE
    configure_logging(settings, debug=args.debug)

    query = " ".join(args.query).strip()
    with ActivityLog(settings.log_dir, enabled=settings.log_activity) as activity:
        activity.cleanup_old_logs(settings.log_retention_days)
        pipeline = Pipeline(
            settings=settings,
            gateway=TranslationGateway(settings),
            environment=ShellEnvironment(shell_override=settings.shell),
            ui=ui,
            activity_log=activity,
        )
        options = PipelineOptions(provider=args.provider, auto_execute=args.yes, debug=args.debug)
        result = asyncio.run(pipeline.run(query, options))

    logger.debug("pipeline_finished", state=result.state.value, reason=result.reason)
    return result.exit_code


def run_config(argv: Sequence[str], ui: ConsoleUI) -> int:
    args = build_config_parser().parse_args(argv)
    store = ConfigStore()

    if args.path:
        ui.add_message(str(store.path))
        return EXIT_OK

    if args.reset:
        return _reset(store, ui, confirmed=args.yes)

    settings = load_settings(ui)
    if settings is None:
        return EXIT_FAILURE
    configure_logging(settings)

    with ActivityLog(settings.log_dir, enabled=settings.log_activity) as activity:
        try:
            if args.set:
                return _set_values(store, ui, activity, args.set)
            if args.setup:
                asyncio.run(run_setup_wizard(store, settings, ui))
                activity.log_config_change("setup", f"provider configured via wizard ({store.path})")
                return EXIT_OK
            if args.test is not None:
                return asyncio.run(_test_connection(settings, ui, args.test or settings.default_provider))
        except ConfigurationError as e:
            ui.add_error(e.message)
            return EXIT_FAILURE

    ui.show_yaml(store.show(settings), title=str(store.path))
    return EXIT_OK


def _reset(store: ConfigStore, ui: ConsoleUI, confirmed: bool) -> int:
    if not confirmed:
        ui.add_warning("Resetting removes every custom setting, including API keys.")
        confirmed = asyncio.run(ui.yes_no_dialog("Reset", "Reset the configuration?"))
    if not confirmed:
        ui.add_message("Reset cancelled")
        return EXIT_OK

    path = store.reset()
    with ActivityLog(log_dir_path()) as activity:
        activity.log_config_change("reset", f"configuration reset to defaults ({path})")
    ui.add_success(f"Configuration reset: {path}")
    return EXIT_OK


def _set_values(store: ConfigStore, ui: ConsoleUI, activity: ActivityLog, assignments: list[str]) -> int:
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        if not sep or not key.strip():
            ui.add_error(f"Expected KEY=VALUE, got '{assignment}'")
            return EXIT_FAILURE
        key = key.strip()
        store.set_value(key, value.strip())
        shown = MASK if key.endswith("api_key") else value.strip()
        activity.log_config_change("set", f"{key}={shown}")
        ui.add_success(f"{key} = {shown}")
    return EXIT_OK


async def _test_connection(settings: Settings, ui: ConsoleUI, provider: str) -> int:
    gateway = TranslationGateway(settings)
    if provider not in gateway.available_providers():
        ui.add_error(f"Unknown provider '{provider}'. Available: {', '.join(gateway.available_providers())}")
        return EXIT_FAILURE
    if not gateway.is_provider_configured(provider):
        ui.add_error(f"Provider '{provider}' has no API key")
        ui.add_message(credentials_hint(provider, settings.config_path))
        return EXIT_FAILURE

    with ui.status(f"Testing {provider}..."):
        ok = await gateway.test_connection(provider)
    if ok:
        ui.add_success(f"Connection to {provider} succeeded")
        return EXIT_OK
    ui.add_error(f"Connection to {provider} failed")
    return EXIT_FAILURE


def main(argv: Sequence[str] | None = None, ui: ConsoleUI | None = None) -> int:
    """Run ddcli and return the process exit code."""
    argv = list(sys.argv[1:] if argv is None else argv)
    ui = ui or ConsoleUI()

    try:
        if argv and argv[0] == "config":
            return run_config(argv[1:], ui)
        return run_query(build_parser().parse_args(argv), ui)
    except (KeyboardInterrupt, EOFError):
        ui.add_warning("\nInterrupted")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error("unexpected_error", error=str(e), exc_info=True)
        ui.add_error(str(e))
        return EXIT_FAILURE
    finally:
        clear_context()
