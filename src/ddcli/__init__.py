"""ddcli - natural language to shell commands.

Translates a plain-language request into a shell command with a remote
language model, checks the command against a rule-based risk classifier,
asks for confirmation when needed and runs it with live output.

Main pieces:

- RiskClassifier: rule catalogue plus PowerShell overlay
- ProcessRunner: buffered and streamed execution for POSIX and PowerShell
- ShellEnvironment: shell and platform detection
- TranslationGateway: provider adapters (OpenAI, DeepSeek, Anthropic)
- Pipeline: the detect, translate, classify, confirm, execute flow
"""

__version__ = "1.0.0"

from ddcli.activity_log import ActivityLog
from ddcli.config import (
    ProviderSettings,
    Settings,
    get_settings,
    reload_settings,
    set_settings,
)
from ddcli.config_store import ConfigStore
from ddcli.errors import (
    ConfigurationError,
    CredentialsMissing,
    DdcliError,
    ParseError,
    TransportError,
)
from ddcli.pipeline import Pipeline, PipelineOptions, PipelineResult, PipelineState
from ddcli.shell import (
    ExecutionOutcome,
    ProcessRunner,
    RiskClassifier,
    RiskLevel,
    RiskVerdict,
    ShellContext,
    ShellEnvironment,
    ShellFamily,
)
from ddcli.translation import TranslatedCommand, TranslationGateway

__all__ = [
    "__version__",
    # Pipeline
    "Pipeline",
    "PipelineOptions",
    "PipelineResult",
    "PipelineState",
    # Shell
    "ExecutionOutcome",
    "ProcessRunner",
    "RiskClassifier",
    "RiskLevel",
    "RiskVerdict",
    "ShellContext",
    "ShellEnvironment",
    "ShellFamily",
    # Translation
    "TranslatedCommand",
    "TranslationGateway",
    # Settings
    "ConfigStore",
    "ProviderSettings",
    "Settings",
    "get_settings",
    "reload_settings",
    "set_settings",
    # Logging
    "ActivityLog",
    # Errors
    "ConfigurationError",
    "CredentialsMissing",
    "DdcliError",
    "ParseError",
    "TransportError",
]
