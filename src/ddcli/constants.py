"""Shared constants for ddcli."""

APP_NAME = "ddcli"

# Content display truncation limits
CONTENT_PREVIEW_LENGTH = 200


def truncate(text: str, max_length: int = CONTENT_PREVIEW_LENGTH) -> str:
    """Truncate text with ellipsis if it exceeds max_length."""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text

# Replacement shown for credential values in output and logs
MASK = "********"
