"""Translation gateway: picks a provider adapter and forwards queries to it.

Adapters are created lazily per provider and cached. A cached adapter that
has not been used for ADAPTER_TTL_SECONDS is rebuilt on its next use;
clear_expired_cache() drops such adapters eagerly.
"""

import time
from dataclasses import dataclass

import httpx

from ddcli.config import Settings
from ddcli.errors import ConfigurationError, DdcliError, ErrorCode
from ddcli.logging import get_logger
from ddcli.shell.models import ShellFamily
from ddcli.translation.adapters import AnthropicAdapter, DeepSeekAdapter, OpenAIAdapter
from ddcli.translation.base import BaseAdapter
from ddcli.translation.models import TranslatedCommand

logger = get_logger(__name__)

ADAPTER_TTL_SECONDS = 5 * 60
CONNECTION_TEST_QUERY = "list files in the current directory"

ADAPTER_CLASSES: dict[str, type[BaseAdapter]] = {
    "openai": OpenAIAdapter,
    "deepseek": DeepSeekAdapter,
    "anthropic": AnthropicAdapter,
}


@dataclass
class _CachedAdapter:
    adapter: BaseAdapter
    last_used: float


class TranslationGateway:
    """Turns a natural-language query into a TranslatedCommand.

    Example:
        gateway = TranslationGateway(settings)
        translated = await gateway.convert("show disk usage", context)
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock=time.monotonic,
    ):
        self.settings = settings
        self._transport = transport
        self._clock = clock
        self._adapter_classes: dict[str, type[BaseAdapter]] = dict(ADAPTER_CLASSES)
        self._cache: dict[str, _CachedAdapter] = {}

    def register_adapter(self, name: str, adapter_class: type[BaseAdapter]) -> None:
        """Register (or replace) the adapter class used for a provider."""
        self._adapter_classes[name] = adapter_class
        self._cache.pop(name, None)

    def available_providers(self) -> list[str]:
        """Providers that have both an adapter and a settings block."""
        return [name for name in self.settings.provider_names() if name in self._adapter_classes]

    def is_provider_configured(self, name: str) -> bool:
        provider = self.settings.get_provider(name)
        return bool(
            name in self._adapter_classes
            and provider is not None
            and provider.api_key
            and provider.base_url
            and provider.model
        )

    def get_adapter(self, name: str | None = None) -> BaseAdapter:
        """Return the cached adapter for a provider, creating it if needed.

        An adapter idle for longer than ADAPTER_TTL_SECONDS is replaced.

        Raises:
            ConfigurationError: If the provider is unknown.
        """
        name = name or self.settings.default_provider
        now = self._clock()

        cached = self._cache.get(name)
        if cached is not None and now - cached.last_used <= ADAPTER_TTL_SECONDS:
            cached.last_used = now
            return cached.adapter

        adapter_class = self._adapter_classes.get(name)
        provider = self.settings.get_provider(name)
        if adapter_class is None or provider is None:
            raise ConfigurationError(
                f"Unsupported provider: {name}. "
                f"Available providers: {', '.join(self.available_providers()) or 'none'}",
                error_code=ErrorCode.UNKNOWN_PROVIDER,
                details={"provider": name},
            )

        adapter = adapter_class(provider, transport=self._transport)
        self._cache[name] = _CachedAdapter(adapter=adapter, last_used=now)
        logger.debug("adapter_created", provider=name, model=provider.model)
        return adapter

    async def convert(
        self,
        query: str,
        context: str | None = None,
        provider: str | None = None,
        shell_family: ShellFamily = ShellFamily.POSIX,
    ) -> TranslatedCommand:
        """Translate a query using the given (or default) provider.

        Raises:
            ConfigurationError: Unknown provider or missing credentials.
            TransportError: Network or HTTP failure.
            ParseError: Malformed provider reply.
        """
        adapter = self.get_adapter(provider)
        return await adapter.convert(query, context, shell_family)

    async def test_connection(self, provider: str | None = None) -> bool:
        """Send a trivial query and report whether a command came back."""
        name = provider or self.settings.default_provider
        try:
            translated = await self.convert(CONNECTION_TEST_QUERY, provider=name)
        except DdcliError as e:
            logger.warning("connection_test_failed", provider=name, error=e.message)
            return False
        return bool(translated.command)

    def clear_cache(self) -> None:
        self._cache.clear()

    def clear_expired_cache(self) -> int:
        """Drop adapters idle for longer than ADAPTER_TTL_SECONDS.

        Returns:
            Number of adapters removed.
        """
        now = self._clock()
        expired = [
            name
            for name, cached in self._cache.items()
            if now - cached.last_used > ADAPTER_TTL_SECONDS
        ]
        for name in expired:
            del self._cache[name]
        return len(expired)

    @property
    def cached_providers(self) -> list[str]:
        return list(self._cache)
