"""Shared constants for agentic-exec."""

# Content display truncation limits
CONTENT_PREVIEW_LENGTH = 200
COMMAND_LOG_PREVIEW_LENGTH = 100

# Shell execution limits (milliseconds / characters)
DEFAULT_TIMEOUT_MS = 30_000
MAX_TIMEOUT_MS = 300_000
MAX_OUTPUT_CHARS = 50_000

# Approval category for shell commands in the settings store
SHELL_APPROVAL_CATEGORY = "shell"


def truncate(text: str, max_length: int = CONTENT_PREVIEW_LENGTH) -> str:
    """Truncate text with ellipsis if it exceeds max_length."""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text
