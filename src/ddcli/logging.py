"""Structured logging configuration for ddcli.

Diagnostics go to stderr through structlog, as console text or JSON lines.
Every event passes through a redaction step so that API keys and auth
headers never reach the terminal or a log collector. Persistent activity
records are written separately by ActivityLog.
"""

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

from ddcli.constants import MASK

if TYPE_CHECKING:
    from ddcli.config import Settings

# Event keys holding credentials, compared case-insensitively
SECRET_LOG_KEYS = frozenset({"api_key", "authorization", "x-api-key", "headers"})


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential values in a log event.

    Nested dicts (e.g. request headers) are masked per key.
    """
    for key, value in event_dict.items():
        event_dict[key] = _redact(key, value)
    return event_dict


def _redact(key: str, value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _redact(str(k), v) for k, v in value.items()}
    if key.lower() in SECRET_LOG_KEYS and value:
        return MASK
    return value


def configure_logging(settings: "Settings | None" = None, debug: bool = False) -> None:
    """Configure structured logging based on settings.

    Args:
        settings: Application settings. If None, uses defaults.
        debug: Force debug level regardless of settings (``--debug``).
    """
    log_level = logging.WARNING
    log_format = "console"

    if settings is not None:
        log_level = getattr(logging, settings.log_level.upper(), logging.WARNING)
        log_format = settings.log_format

    if debug:
        log_level = logging.DEBUG

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    # httpx and asyncio log through the standard library
    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    for name in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_query_context(
    session_id: str,
    provider: str,
    shell: str | None = None,
) -> None:
    """Tag every following event with the query being processed.

    Called once the provider is resolved and again with ``shell`` after
    environment detection, so translation, risk and execution events of
    one invocation can be correlated with its activity-log session.

    Example:
        bind_query_context(activity_log.session_id, "openai")
        logger.info("translating_query")  # includes session_id and provider
    """
    fields: dict[str, object] = {"session_id": session_id, "provider": provider}
    if shell is not None:
        fields["shell"] = shell
    structlog.contextvars.bind_contextvars(**fields)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
