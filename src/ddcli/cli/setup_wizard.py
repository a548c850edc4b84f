"""Interactive provider setup (`ddcli config --setup`)."""

from pathlib import Path
from typing import get_args

from ddcli.cli.console import ConsoleUI
from ddcli.config import Settings, ShellSetting
from ddcli.config_store import ConfigStore

MAX_PROVIDER_TIMEOUT = 300


async def run_setup_wizard(store: ConfigStore, settings: Settings, ui: ConsoleUI) -> Path:
    """Walk through provider, credentials and execution preferences.

    Leaving the API key empty keeps the stored one. Nothing is written until
    every question has been answered.

    Returns:
        Path to the saved config file
    """
    ui.add_message("ddcli setup", style="bold cyan")

    provider = await ui.choice_dialog(
        "Provider",
        "API provider",
        settings.provider_names(),
        default=settings.default_provider,
    )
    current = settings.providers[provider]

    key_prompt = f"{provider} API key"
    if current.api_key:
        key_prompt += " (leave empty to keep the current key)"
    api_key = await ui.input_dialog("API key", key_prompt, password=True, required=not current.api_key)

    base_url = await ui.input_dialog("Base URL", f"{provider} API URL", default=current.base_url, required=True)
    model = await ui.input_dialog("Model", f"{provider} model", default=current.model, required=True)
    timeout = await _ask_timeout(ui, current.timeout)

    auto_execute = await ui.yes_no_dialog(
        "Auto execute",
        "Run low-risk commands without asking for confirmation?",
        default=settings.auto_execute,
    )
    shell = await ui.choice_dialog("Shell", "Shell", list(get_args(ShellSetting)), default=settings.shell)

    provider_fields: dict[str, object] = {"base_url": base_url, "model": model, "timeout": timeout}
    if api_key:
        provider_fields["api_key"] = api_key

    path = store.save(
        {
            "default_provider": provider,
            "providers": {provider: provider_fields},
            "auto_execute": auto_execute,
            "shell": shell,
        }
    )
    ui.add_success(f"Configuration saved to {path}")
    return path


async def _ask_timeout(ui: ConsoleUI, current: float) -> float:
    while True:
        answer = await ui.input_dialog("Timeout", "API request timeout in seconds", default=f"{current:g}")
        try:
            value = float(answer) if answer else current
        except ValueError:
            ui.add_warning("Enter a number of seconds")
            continue
        if 0 < value <= MAX_PROVIDER_TIMEOUT:
            return value
        ui.add_warning(f"Timeout must be greater than 0 and at most {MAX_PROVIDER_TIMEOUT} seconds")
