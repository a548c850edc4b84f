"""Translation of natural-language queries into shell commands."""

from ddcli.translation.adapters import AnthropicAdapter, DeepSeekAdapter, OpenAIAdapter
from ddcli.translation.base import BaseAdapter, transport_error_for_status
from ddcli.translation.gateway import ADAPTER_TTL_SECONDS, TranslationGateway
from ddcli.translation.models import TranslatedCommand, parse_response

__all__ = [
    "ADAPTER_TTL_SECONDS",
    "AnthropicAdapter",
    "BaseAdapter",
    "DeepSeekAdapter",
    "OpenAIAdapter",
    "TranslatedCommand",
    "TranslationGateway",
    "parse_response",
    "transport_error_for_status",
]
