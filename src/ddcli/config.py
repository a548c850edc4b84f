"""Configuration for ddcli.

Settings Loading Priority (highest to lowest):
    1. Constructor arguments
    2. Environment variables (DDCLI_* prefix, ``__`` for nesting)
    3. User config file ($DDCLI_HOME/config.yaml, default ~/.ddcli/config.yaml)
    4. Default values

Provider API keys left empty fall back to the conventional environment
variables (OPENAI_API_KEY, ANTHROPIC_API_KEY, DEEPSEEK_API_KEY).
"""

import os
from pathlib import Path
from typing import Any, Literal, Tuple, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings as PydanticBaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

__all__ = [
    "DEFAULT_PROVIDERS",
    "ProviderSettings",
    "Settings",
    "config_file_path",
    "ddcli_home",
    "log_dir_path",
    "default_config",
    "get_settings",
    "reload_settings",
    "set_settings",
]

HOME_ENV_VAR = "DDCLI_HOME"
CONFIG_FILENAME = "config.yaml"
LOG_DIRNAME = "logs"

ShellSetting = Literal["auto", "bash", "zsh", "fish", "powershell"]

DEFAULT_PROVIDERS: dict[str, dict[str, Any]] = {
    "openai": {
        "model": "gpt-4o",
        "base_url": "https://api.openai.com/v1/chat/completions",
        "api_key": "",
        "timeout": 10,
    },
    "anthropic": {
        "model": "claude-3-5-sonnet-20241022",
        "base_url": "https://api.anthropic.com/v1/messages",
        "api_key": "",
        "timeout": 10,
    },
    "deepseek": {
        "model": "deepseek-reasoner",
        "base_url": "https://api.deepseek.com/v1/chat/completions",
        "api_key": "",
        "timeout": 10,
    },
}


def ddcli_home() -> Path:
    """Directory holding the config file and activity logs."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ddcli"


def config_file_path() -> Path:
    return ddcli_home() / CONFIG_FILENAME


def log_dir_path() -> Path:
    return ddcli_home() / LOG_DIRNAME


class ProviderSettings(BaseModel):
    """Connection settings for one translation provider."""

    model: str = ""
    base_url: str = ""
    api_key: str = ""
    timeout: float = Field(default=10, gt=0, description="Request timeout in seconds")

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)


def _merge_providers(value: Any) -> dict[str, Any]:
    merged: dict[str, Any] = {name: dict(defaults) for name, defaults in DEFAULT_PROVIDERS.items()}
    if not value:
        return merged
    for name, provider in dict(value).items():
        if isinstance(provider, ProviderSettings):
            provider = provider.model_dump()
        base = merged.get(name, {})
        merged[name] = {**base, **(provider or {})}
    return merged


class Settings(PydanticBaseSettings):
    """ddcli settings.

    Settings are loaded from (in order of precedence):
    1. Constructor arguments
    2. Environment variables (DDCLI_ prefix)
    3. $DDCLI_HOME/config.yaml
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="DDCLI_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    default_provider: str = Field(
        default="openai",
        title="Default Provider",
        description="Translation provider used when --provider is not given",
    )
    providers: dict[str, ProviderSettings] = Field(
        default_factory=lambda: {
            name: ProviderSettings(**values) for name, values in DEFAULT_PROVIDERS.items()
        },
        title="Providers",
        description="Per-provider model, endpoint, API key and timeout",
    )
    auto_execute: bool = Field(
        default=False,
        title="Auto Execute",
        description="Run low-risk commands without asking for confirmation",
    )
    shell: ShellSetting = Field(
        default="auto",
        title="Shell",
        description="Shell override (auto detects from the environment)",
    )
    execution_timeout: float = Field(
        default=30.0,
        ge=0,
        title="Execution Timeout",
        description="Seconds before a running command is killed (0 disables)",
    )

    # Logging configuration
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        title="Log Level",
        description="Logging verbosity level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        title="Log Format",
        description="Log output format (console for dev, json for production)",
    )
    log_activity: bool = Field(
        default=True,
        title="Log Activity",
        description="Record commands and API calls to the activity log",
    )
    log_retention_days: int = Field(
        default=7,
        ge=1,
        title="Log Retention",
        description="Days of activity logs to keep",
    )

    @field_validator("providers", mode="before")
    @classmethod
    def merge_provider_defaults(cls, v: Any) -> dict[str, Any]:
        """Fill partial provider blocks from the built-in defaults."""
        return _merge_providers(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[PydanticBaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Layer the YAML config file below environment variables.

        The YAML source is only included if the file exists.
        """
        sources: list[PydanticBaseSettingsSource] = [init_settings, env_settings]

        yaml_file = config_file_path()
        if yaml_file.exists():
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file))

        return tuple(sources)

    @property
    def config_path(self) -> Path:
        return config_file_path()

    @property
    def log_dir(self) -> Path:
        return log_dir_path()

    def provider_names(self) -> list[str]:
        return list(self.providers)

    def get_provider(self, name: str | None = None) -> ProviderSettings | None:
        """Get provider settings with the API key resolved.

        Args:
            name: Provider name (defaults to default_provider).

        Returns:
            ProviderSettings, or None if the provider is unknown.
        """
        name = name or self.default_provider
        provider = self.providers.get(name)
        if provider is None:
            return None
        if not provider.api_key:
            env_key = os.environ.get(f"{name.upper()}_API_KEY", "")
            if env_key:
                return provider.model_copy(update={"api_key": env_key})
        return provider


def default_config() -> dict[str, Any]:
    """Built-in defaults as a plain dictionary (what `config --reset` writes)."""
    return {
        "default_provider": "openai",
        "providers": {name: dict(values) for name, values in DEFAULT_PROVIDERS.items()},
        "auto_execute": False,
        "shell": "auto",
        "execution_timeout": 30.0,
        "log_level": "warning",
        "log_format": "console",
        "log_activity": True,
        "log_retention_days": 7,
    }


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, loading it on first access."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def set_settings(settings: Settings) -> None:
    """Set the global settings instance."""
    global _settings_instance
    _settings_instance = settings


def reload_settings() -> Settings:
    """Discard the cached settings and load them again."""
    global _settings_instance
    _settings_instance = None
    return get_settings()

