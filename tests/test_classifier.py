from __future__ import annotations

import pytest

from classifier import classify
from errors import ERROR_MESSAGES, NETWORK
from models import ErrorKind


@pytest.mark.parametrize("code", ["no-speech", "silence-timeout", "NO-SPEECH"])
def test_silence_is_transient(code: str) -> None:
    result = classify(code)
    assert result.kind == ErrorKind.TRANSIENT
    assert result.suppressed is False
    assert result.restartable is True


def test_aborted_is_suppressed() -> None:
    result = classify("aborted")
    assert result.kind == ErrorKind.TRANSIENT
    assert result.suppressed is True
    assert result.restartable is False


def test_network_is_recoverable() -> None:
    result = classify("network", "connection reset")
    assert result.kind == ErrorKind.RECOVERABLE
    assert result.message == "connection reset"
    assert result.restartable is True


def test_default_message_comes_from_table() -> None:
    assert classify("network").message == ERROR_MESSAGES[NETWORK]


@pytest.mark.parametrize(
    "code",
    ["audio-capture", "not-allowed", "service-not-allowed", "language-not-supported", "asr-protocol"],
)
def test_device_and_permission_errors_are_fatal(code: str) -> None:
    result = classify(code)
    assert result.kind == ErrorKind.FATAL
    assert result.code == code
    assert result.restartable is False


def test_unrecognized_code_is_fatal_with_raw_code() -> None:
    result = classify("bad-grammar", "weird")
    assert result.kind == ErrorKind.FATAL
    assert result.code == "bad-grammar"
    assert "bad-grammar" in result.message
    assert "weird" in result.message


def test_empty_code_is_fatal() -> None:
    result = classify("")
    assert result.kind == ErrorKind.FATAL
    assert result.code == "unknown"
