"""Configuration file persistence.

Reads and writes $DDCLI_HOME/config.yaml. Writes merge with the current
file contents so that untouched keys survive; provider blocks are merged
per provider.
"""

import copy
from pathlib import Path
from typing import Any, Literal, get_args, get_origin

import yaml
from pydantic import ValidationError

from ddcli.config import ProviderSettings, Settings, config_file_path, default_config
from ddcli.constants import MASK
from ddcli.errors import ConfigurationError

# Keys whose values are masked by `show`
SECRET_FIELDS = frozenset({"api_key"})


class ConfigStore:
    """Manages loading and saving the YAML configuration file.

    Example:
        store = ConfigStore()
        store.update_provider("openai", api_key="sk-...")
        store.set_auto_execute(True)
    """

    def __init__(self, path: Path | None = None):
        """Initialize the store.

        Args:
            path: Config file path (defaults to $DDCLI_HOME/config.yaml).
        """
        self.path = path or config_file_path()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, Any]:
        """Load the raw config file contents, or {} if the file is missing."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse {self.path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.path} must contain a mapping")
        return data

    def effective(self) -> dict[str, Any]:
        """Defaults merged with the file contents."""
        return _deep_merge(default_config(), self.load())

    def save(self, changes: dict[str, Any]) -> Path:
        """Merge changes into the config file.

        Args:
            changes: Partial configuration to merge.

        Returns:
            Path to the saved config file

        Raises:
            ConfigurationError: If the merged configuration is invalid.
        """
        merged = _deep_merge(self.effective(), changes)
        _validate(merged)
        self._write(merged)
        return self.path

    def reset(self) -> Path:
        """Overwrite the config file with the built-in defaults."""
        self._write(default_config())
        return self.path

    def show(self, settings: Settings | None = None) -> str:
        """Render the effective configuration as YAML with secrets masked."""
        if settings is not None:
            data = settings.model_dump(mode="json")
        else:
            data = self.effective()
        return yaml.safe_dump(mask_secrets(data), sort_keys=False, allow_unicode=True)

    def set_value(self, key: str, value: str) -> Path:
        """Set a dotted key (e.g. ``providers.openai.model``) from a string value.

        Values for text fields are stored verbatim. Anything else is parsed as
        a YAML scalar, so ``true`` becomes a boolean and ``45`` a number.
        """
        parts = [part for part in key.split(".") if part]
        if not parts:
            raise ConfigurationError("Empty configuration key")

        changes: dict[str, Any] = {}
        cursor = changes
        for part in parts[:-1]:
            cursor = cursor.setdefault(part, {})
        if not value or _is_text_field(parts):
            cursor[parts[-1]] = value
        else:
            cursor[parts[-1]] = yaml.safe_load(value)
        return self.save(changes)

    def update_provider(self, name: str, **fields: Any) -> Path:
        return self.save({"providers": {name: fields}})

    def set_default_provider(self, name: str) -> Path:
        if name not in self.effective().get("providers", {}):
            raise ConfigurationError(f"Unknown provider '{name}'")
        return self.save({"default_provider": name})

    def set_auto_execute(self, enabled: bool) -> Path:
        return self.save({"auto_execute": enabled})

    def set_shell(self, shell: str) -> Path:
        return self.save({"shell": shell})

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True, indent=2, width=120)


def _is_text_field(parts: list[str]) -> bool:
    if len(parts) == 1:
        field = Settings.model_fields.get(parts[0])
    elif len(parts) == 3 and parts[0] == "providers":
        field = ProviderSettings.model_fields.get(parts[2])
    else:
        return False
    if field is None:
        return False

    annotation = field.annotation
    if get_origin(annotation) is Literal:
        return all(isinstance(arg, str) for arg in get_args(annotation))
    return annotation is str


def mask_secrets(data: Any) -> Any:
    """Return a copy of data with non-empty secret values masked."""
    if isinstance(data, dict):
        return {
            key: (MASK if key in SECRET_FIELDS and value else mask_secrets(value))
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [mask_secrets(item) for item in data]
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _validate(data: dict[str, Any]) -> None:
    try:
        Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
