from __future__ import annotations

import logging
import re
from typing import Optional

from fastapi import HTTPException, status

logger = logging.getLogger("popui.errors")

# Patterns that might leak sensitive information
SENSITIVE_PATTERNS = [
    r"api[_-]?key[=:\s]+\S+",
    r"password[=:\s]+\S+",
    r"token[=:\s]+\S+",
    r"bearer\s+\S+",
    r"traceback",
]


class PopUIError(Exception):
    """Base class for failures raised by the bridge."""

    code = "popui_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PopUIError):
    """A required field is missing or malformed."""

    code = "validation_error"


class NotFoundError(PopUIError):
    """The operation targets a surface (or resource) that does not exist."""

    code = "not_found"


class InvalidModeError(PopUIError):
    code = "invalid_mode"

    def __init__(self, mode: object):
        super().__init__(f'Invalid mode "{mode}".')
        self.mode = mode


class NoActiveSessionError(PopUIError):
    """No streaming session is available to route a message to."""

    code = "no_active_session"


class InternalError(PopUIError):
    """The renderer or the backing store failed unexpectedly."""

    code = "internal_error"


# Failures reported to the host inside a tool result instead of as transport errors
TOOL_LEVEL_ERRORS = (ValidationError, NotFoundError, InvalidModeError)


def _sanitize_error_message(message: str) -> str:
    """Remove potentially sensitive information from error messages."""
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, "[REDACTED]", sanitized, flags=re.IGNORECASE)

    if len(sanitized) > 500:
        sanitized = sanitized[:500] + "... [truncated]"

    return sanitized


def api_error(
    message: str,
    *,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    code: str = "bad_request",
    internal_message: Optional[str] = None,
    sanitize: bool = True,
) -> HTTPException:
    """Create an API error with optional message sanitization.

    Args:
        message: The error message to show to users
        status_code: HTTP status code
        code: Error code for programmatic handling
        internal_message: Optional detailed message for logging only
        sanitize: Whether to sanitize the message (default True)

    Returns:
        HTTPException with sanitized error details
    """
    if internal_message:
        logger.error(f"[{code}] Internal: {internal_message}")

    user_message = _sanitize_error_message(message) if sanitize else message

    return HTTPException(
        status_code=status_code,
        detail={"error": {"message": user_message, "code": code}}
    )


def safe_api_error(
    user_message: str,
    internal_details: str,
    *,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    code: str = "internal_error",
) -> HTTPException:
    """Create an API error with separate user and internal messages.

    The user sees ``user_message``; ``internal_details`` only goes to the log.
    """
    logger.error(f"[{code}] {internal_details}")
    return HTTPException(
        status_code=status_code,
        detail={"error": {"message": user_message, "code": code}}
    )
