"""Recognizer error codes, user-facing messages and controller errors."""

from __future__ import annotations

NO_SPEECH = "no-speech"
ABORTED = "aborted"
AUDIO_CAPTURE = "audio-capture"
NOT_ALLOWED = "not-allowed"
SERVICE_NOT_ALLOWED = "service-not-allowed"
LANGUAGE_NOT_SUPPORTED = "language-not-supported"
NETWORK = "network"
ASR_PROTOCOL = "asr-protocol"

# Produced by the controller itself, never by a recognizer.
RESTARTS_EXHAUSTED = "restarts-exhausted"

ERROR_MESSAGES = {
    NO_SPEECH: "No speech was detected.",
    ABORTED: "Recognition was stopped.",
    AUDIO_CAPTURE: "Microphone is busy or unavailable.",
    NOT_ALLOWED: "Microphone permission is required in system settings.",
    SERVICE_NOT_ALLOWED: "Speech service rejected the request, check the API key.",
    LANGUAGE_NOT_SUPPORTED: "Recognition language is not supported.",
    NETWORK: "Network failed, please retry.",
    ASR_PROTOCOL: "ASR response format is invalid.",
    RESTARTS_EXHAUSTED: "Dictation stopped after repeated failures.",
}


class AlreadyActiveError(RuntimeError):
    """Raised when a dictation session is started while another one is active."""
