"""Command-line interface for ddcli."""

from ddcli.cli.app import build_config_parser, build_parser, main
from ddcli.cli.console import ConsoleUI
from ddcli.cli.setup_wizard import run_setup_wizard

__all__ = [
    "ConsoleUI",
    "build_config_parser",
    "build_parser",
    "main",
    "run_setup_wizard",
]
