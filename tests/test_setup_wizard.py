"""Tests for the interactive setup wizard."""

from pathlib import Path

import pytest
import yaml

from ddcli.cli.setup_wizard import run_setup_wizard
from ddcli.config import Settings
from ddcli.config_store import ConfigStore

from tests.conftest import make_console_ui


@pytest.fixture
def store(ddcli_home: Path) -> ConfigStore:
    return ConfigStore()


class TestSetupWizard:
    @pytest.mark.asyncio
    async def test_saves_answers(self, store: ConfigStore):
        ui, out, _, _ = make_console_ui(
            ["deepseek", "sk-ds", "https://api.deepseek.com/chat/completions", "deepseek-chat", "20", "y", "zsh"]
        )

        path = await run_setup_wizard(store, Settings(), ui)

        data = yaml.safe_load(path.read_text())
        assert data["default_provider"] == "deepseek"
        assert data["providers"]["deepseek"]["api_key"] == "sk-ds"
        assert data["providers"]["deepseek"]["model"] == "deepseek-chat"
        assert data["providers"]["deepseek"]["timeout"] == 20
        assert data["auto_execute"] is True
        assert data["shell"] == "zsh"
        assert f"Configuration saved to {path}" in out.getvalue()

    @pytest.mark.asyncio
    async def test_empty_key_keeps_existing(self, store: ConfigStore):
        """Test that an empty key answer keeps the stored key."""
        store.update_provider("openai", api_key="sk-old")
        settings = Settings()
        ui, _, _, prompt = make_console_ui(
            ["openai", "", "https://api.openai.com/v1/chat/completions", "gpt-4o", "", "n", ""]
        )

        await run_setup_wizard(store, settings, ui)

        data = yaml.safe_load(store.path.read_text())
        assert data["providers"]["openai"]["api_key"] == "sk-old"
        assert data["providers"]["openai"]["timeout"] == 10
        assert data["shell"] == "auto"
        assert "leave empty to keep the current key" in prompt.calls[1][0]

    @pytest.mark.asyncio
    async def test_invalid_timeout_asks_again(self, store: ConfigStore):
        ui, out, _, prompt = make_console_ui(
            ["openai", "sk-new", "https://api.openai.com/v1/chat/completions", "gpt-4o", "abc", "500", "15", "n", "bash"]
        )

        await run_setup_wizard(store, Settings(), ui)

        assert yaml.safe_load(store.path.read_text())["providers"]["openai"]["timeout"] == 15
        assert "Enter a number of seconds" in out.getvalue()
        assert "at most 300 seconds" in out.getvalue()

    @pytest.mark.asyncio
    async def test_nothing_saved_when_aborted(self, store: ConfigStore):
        """Test that running out of input leaves the config untouched."""
        ui, _, _, _ = make_console_ui(["openai", "sk-new"])

        with pytest.raises(EOFError):
            await run_setup_wizard(store, Settings(), ui)

        assert not store.exists()
