"""Base adapter for translation providers.

Handles everything that does not depend on the provider's wire format:
configuration checks, prompt construction, the HTTP round trip with httpx,
error mapping and response parsing.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from ddcli.config import ProviderSettings
from ddcli.errors import (
    ConfigurationError,
    CredentialsMissing,
    ErrorCode,
    ParseError,
    TransportError,
)
from ddcli.logging import get_logger
from ddcli.shell.models import ShellFamily
from ddcli.translation.models import TranslatedCommand, parse_response

logger = get_logger(__name__)

TEMPERATURE = 0.3
MAX_TOKENS = 500

_SHELL_INSTRUCTIONS = {
    ShellFamily.POWERSHELL: (
        "Generate PowerShell commands. Use native PowerShell cmdlets "
        "(for example Get-ChildItem instead of ls)."
    ),
    ShellFamily.POSIX: "Generate Unix shell commands (bash/zsh).",
}

SYSTEM_PROMPT_TEMPLATE = """You are a command-line assistant that converts natural-language requests into accurate, safe shell commands.

{shell_instructions}

Requirements:
1. Return exactly one executable command, no extra prose
2. Keep the command safe and avoid destructive operations
3. Keep the command short and efficient
4. If several steps are needed, join them with &&
5. The response must be JSON: {{"command": "<command>", "explanation": "<short explanation>"}}

Examples:
Input: "list all files in the current directory sorted by size"
Output: {{"command": "ls -lS", "explanation": "list files sorted by size"}}

Input: "create a directory named logs"
Output: {{"command": "mkdir logs", "explanation": "create the logs directory"}}"""


def transport_error_for_status(status: int, data: Any = None) -> TransportError:
    """Map an HTTP error status to a user-facing TransportError."""
    if status == 401:
        return TransportError("API key is invalid or expired", ErrorCode.UNAUTHORIZED, status)
    if status == 403:
        return TransportError("API access denied, check your permissions", ErrorCode.FORBIDDEN, status)
    if status == 429:
        return TransportError("API rate limit reached, try again later", ErrorCode.RATE_LIMITED, status)
    if status >= 500:
        return TransportError("API server error", ErrorCode.SERVER_ERROR, status)

    detail = _error_detail(data) or "unknown error"
    return TransportError(f"API request failed ({status}): {detail}", ErrorCode.API_ERROR, status)


def _error_detail(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    if data.get("message"):
        return str(data["message"])
    return None


class BaseAdapter(ABC):
    """Translation provider adapter.

    Subclasses describe the provider's request and response shapes via
    build_request() and extract_content().
    """

    name: str = "base"

    def __init__(
        self,
        settings: ProviderSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize adapter.

        Args:
            settings: Provider model, endpoint, API key and timeout.
            transport: Optional httpx transport (used by tests).
        """
        self.settings = settings
        self._transport = transport

    @property
    def api_key(self) -> str:
        return self.settings.api_key

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    @property
    def model(self) -> str:
        return self.settings.model

    @property
    def timeout(self) -> float:
        return self.settings.timeout

    def validate_config(self) -> None:
        """Check that the provider can be called.

        Raises:
            CredentialsMissing: If no API key is configured.
            ConfigurationError: If the endpoint or model is missing.
        """
        if not self.api_key:
            raise CredentialsMissing(self.name)
        if not self.base_url:
            raise ConfigurationError(f"Base URL is not configured for provider '{self.name}'")
        if not self.model:
            raise ConfigurationError(f"Model is not configured for provider '{self.name}'")

    def build_system_prompt(self, shell_family: ShellFamily = ShellFamily.POSIX) -> str:
        return SYSTEM_PROMPT_TEMPLATE.format(shell_instructions=_SHELL_INSTRUCTIONS[shell_family])

    def build_user_prompt(self, query: str, context: str | None = None) -> str:
        prompt = f'Convert the following request into a shell command:\n\n"{query}"'
        if context:
            prompt += f"\n\nContext:\n{context}"
        prompt += '\n\nRespond with JSON only, for example: {"command": "...", "explanation": "..."}'
        return prompt

    @abstractmethod
    def build_request(self, system_prompt: str, user_prompt: str) -> tuple[dict[str, str], dict[str, Any]]:
        """Return (headers, JSON body) for the provider request."""

    @abstractmethod
    def extract_content(self, data: dict[str, Any]) -> str:
        """Return the model's text reply from the decoded response body.

        Raises:
            ParseError: If the body does not have the expected shape.
        """

    async def convert(
        self,
        query: str,
        context: str | None = None,
        shell_family: ShellFamily = ShellFamily.POSIX,
    ) -> TranslatedCommand:
        """Translate a natural-language query into a command.

        Args:
            query: The user's request.
            context: Advisory environment description for the model.
            shell_family: Dialect the command should be written in.

        Returns:
            TranslatedCommand parsed from the reply.

        Raises:
            ConfigurationError: Missing API key, endpoint or model.
            TransportError: Network or HTTP failure.
            ParseError: Malformed reply.
        """
        self.validate_config()
        headers, body = self.build_request(
            self.build_system_prompt(shell_family),
            self.build_user_prompt(query, context),
        )

        logger.debug("provider_request", provider=self.name, model=self.model, url=self.base_url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.base_url, json=body, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise transport_error_for_status(e.response.status_code, _safe_json(e.response)) from e
        except httpx.TimeoutException as e:
            raise TransportError("API request timed out", ErrorCode.TIMEOUT) from e
        except httpx.ConnectError as e:
            raise TransportError("Unable to connect to the API server", ErrorCode.UNREACHABLE) from e
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

        data = _safe_json(response)
        if not isinstance(data, dict):
            raise ParseError("API response format is incorrect")

        content = self.extract_content(data)
        return parse_response(content)


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
