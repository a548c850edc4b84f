"""Error types raised at the translation and configuration boundaries.

Execution failures are never raised; they are captured in ExecutionOutcome.
Blocked commands are a verdict value, not an exception.
"""

from typing import Any


class ErrorCode:
    """Standard error codes."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CREDENTIALS_MISSING = "CREDENTIALS_MISSING"
    UNKNOWN_PROVIDER = "UNKNOWN_PROVIDER"

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    TIMEOUT = "TIMEOUT"
    UNREACHABLE = "UNREACHABLE"
    API_ERROR = "API_ERROR"

    PARSE_ERROR = "PARSE_ERROR"


class DdcliError(Exception):
    """Base error with structured information for display and logging.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
    """

    default_code = "DDCLI_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigurationError(DdcliError):
    """Invalid or incomplete configuration."""

    default_code = ErrorCode.CONFIGURATION_ERROR


class CredentialsMissing(ConfigurationError):
    """No API key is configured for the selected provider."""

    default_code = ErrorCode.CREDENTIALS_MISSING

    def __init__(self, provider: str, message: str | None = None):
        super().__init__(
            message or f"API key is not configured for provider '{provider}'",
            details={"provider": provider},
        )
        self.provider = provider


class TransportError(DdcliError):
    """Network or HTTP failure while calling the translation provider."""

    default_code = ErrorCode.API_ERROR

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
        self.status_code = status_code


class ParseError(DdcliError):
    """Provider response is not a well-formed {command, explanation} object."""

    default_code = ErrorCode.PARSE_ERROR
