"""Map recognizer error codes to a recovery policy."""

from __future__ import annotations

from errors import (
    ABORTED,
    ASR_PROTOCOL,
    AUDIO_CAPTURE,
    ERROR_MESSAGES,
    LANGUAGE_NOT_SUPPORTED,
    NETWORK,
    NO_SPEECH,
    NOT_ALLOWED,
    SERVICE_NOT_ALLOWED,
)
from models import ErrorClassification, ErrorKind

# "silence-timeout" is an alias some providers use for no-speech.
_TRANSIENT_CODES = frozenset({NO_SPEECH, "silence-timeout"})
_RECOVERABLE_CODES = frozenset({NETWORK})
_FATAL_CODES = frozenset(
    {AUDIO_CAPTURE, NOT_ALLOWED, SERVICE_NOT_ALLOWED, LANGUAGE_NOT_SUPPORTED, ASR_PROTOCOL}
)


def classify(code: str, message: str = "") -> ErrorClassification:
    """Classify a provider error code.

    ``aborted`` is the echo of a host-requested stop: it is transient and
    suppressed, so it never restarts the session and is never shown.
    Unknown codes are fatal and keep the raw code in the message.
    """
    normalized = (code or "").strip().lower()

    if normalized == ABORTED:
        return ErrorClassification(
            kind=ErrorKind.TRANSIENT,
            message=message or ERROR_MESSAGES[ABORTED],
            code=normalized,
            suppressed=True,
        )
    if normalized in _TRANSIENT_CODES:
        return ErrorClassification(
            kind=ErrorKind.TRANSIENT,
            message=message or ERROR_MESSAGES[NO_SPEECH],
            code=normalized,
        )
    if normalized in _RECOVERABLE_CODES:
        return ErrorClassification(
            kind=ErrorKind.RECOVERABLE,
            message=message or ERROR_MESSAGES[normalized],
            code=normalized,
        )
    if normalized in _FATAL_CODES:
        return ErrorClassification(
            kind=ErrorKind.FATAL,
            message=message or ERROR_MESSAGES[normalized],
            code=normalized,
        )

    raw = code or "unknown"
    detail = f"Unrecognized recognizer error: {raw}"
    if message:
        detail = f"{detail} ({message})"
    return ErrorClassification(kind=ErrorKind.FATAL, message=detail, code=raw)
