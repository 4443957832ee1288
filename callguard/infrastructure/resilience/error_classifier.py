"""Failure classification for the retry executor.

Errors raised by wrapped operations come in many shapes (OS socket errors,
OpenAI/Groq SDK errors, HTTP client errors carrying a response). They are
first normalized into a FailureSignal by ``to_failure_signal`` and then
classified from that signal alone, so the policy never depends on a specific
error type. Anything that cannot be read is treated as non-retryable.
"""

import asyncio
import errno
import logging
import socket
from typing import Any, Optional

import groq
import openai

from callguard.domain.models.resilience import FailureKind, FailureSignal

logger = logging.getLogger(__name__)

# Error codes of transient network conditions
TRANSIENT_ERROR_CODES = frozenset({"ECONNRESET", "ENOTFOUND", "ECONNREFUSED", "ETIMEDOUT"})

# Substrings in an error message that mark a transient network condition
TRANSIENT_MESSAGE_MARKERS = (
    "ECONNRESET",
    "ENOTFOUND",
    "ECONNREFUSED",
    "ETIMEDOUT",
    "socket hang up",
    "timeout",
    "Network Error",
)

RETRYABLE_STATUS_CODES = frozenset({408, 417, 429, 500, 502, 503, 504})

_TIMEOUT_TYPES = (TimeoutError, asyncio.TimeoutError, openai.APITimeoutError, groq.APITimeoutError)
_CONNECTION_TYPES = (openai.APIConnectionError, groq.APIConnectionError)


def _read(obj: Any, name: str) -> Any:
    """Reads an attribute or mapping key, returning None when absent."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _as_status(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _extract_status(error: Any) -> Optional[int]:
    response = _read(error, "response")
    candidates = (
        _read(error, "status_code"),
        _read(error, "status"),
        _read(response, "status"),
        _read(response, "status_code"),
    )
    for candidate in candidates:
        status = _as_status(candidate)
        if status is not None:
            return status
    return None


def _extract_code(error: Any) -> Optional[str]:
    # Order matters: gaierror and the timeout types are OSError subclasses
    # whose errno does not carry the symbolic name we classify on.
    if isinstance(error, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(error, _TIMEOUT_TYPES):
        return "ETIMEDOUT"
    if isinstance(error, ConnectionResetError):
        return "ECONNRESET"
    if isinstance(error, ConnectionRefusedError):
        return "ECONNREFUSED"
    if isinstance(error, OSError) and isinstance(error.errno, int):
        name = errno.errorcode.get(error.errno)
        if name:
            return name
    code = _read(error, "code")
    return code if isinstance(code, str) else None


def _extract_message(error: Any) -> Optional[str]:
    if isinstance(error, BaseException):
        message = str(error)
    else:
        message = _read(error, "message")
    if not isinstance(message, str):
        return None
    if isinstance(error, _CONNECTION_TYPES) and not isinstance(error, _TIMEOUT_TYPES):
        message = f"Network Error: {message}"
    return message


def to_failure_signal(error: Any) -> FailureSignal:
    """Normalizes an arbitrary error object into a FailureSignal.

    Args:
        error: A caught exception, a dict-shaped error, or a FailureSignal.

    Returns:
        The normalized signal. Unreadable inputs yield an empty signal.
    """
    if isinstance(error, FailureSignal):
        return error
    try:
        return FailureSignal(
            code=_extract_code(error),
            message=_extract_message(error),
            status=_extract_status(error),
        )
    except Exception as e:
        logger.debug(f"Could not inspect error of type {type(error).__name__}: {e}")
        return FailureSignal()


def classify_failure(error: Any) -> FailureKind:
    """Maps an error to its FailureKind."""
    signal = to_failure_signal(error)

    if signal.code in TRANSIENT_ERROR_CODES:
        return FailureKind.TRANSIENT_NETWORK
    if signal.message and any(marker in signal.message for marker in TRANSIENT_MESSAGE_MARKERS):
        return FailureKind.TRANSIENT_NETWORK

    if signal.status in RETRYABLE_STATUS_CODES:
        if signal.status == 417:
            logger.warning(
                "417 Expectation Failed - this may indicate header/configuration issues. "
                f"Message: {signal.message}"
            )
        return FailureKind.RETRYABLE_HTTP_STATUS

    return FailureKind.NON_RETRYABLE


def is_retryable_error(error: Any) -> bool:
    """Returns True when the error describes a transient condition worth retrying."""
    return classify_failure(error).retryable
