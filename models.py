"""Core data models for dictation sessions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    STARTING = "STARTING"
    LISTENING = "LISTENING"
    ENDING = "ENDING"
    RECOVERING = "RECOVERING"


class EventKind(str, Enum):
    STARTED = "started"
    SEGMENT = "segment"
    ERROR = "error"
    ENDED = "ended"


class ErrorKind(str, Enum):
    TRANSIENT = "Transient"
    RECOVERABLE = "Recoverable"
    FATAL = "Fatal"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass(frozen=True)
class TranscriptSegment:
    text: str
    is_final: bool = False


@dataclass
class RecognitionEvent:
    """Event emitted by a recognizer, tagged with the session id it was issued under."""

    kind: str
    session_id: int
    segment: Optional[TranscriptSegment] = None
    code: str = ""
    message: str = ""

    @classmethod
    def started(cls, session_id: int) -> "RecognitionEvent":
        return cls(kind=EventKind.STARTED.value, session_id=session_id)

    @classmethod
    def interim(cls, session_id: int, text: str) -> "RecognitionEvent":
        return cls(
            kind=EventKind.SEGMENT.value,
            session_id=session_id,
            segment=TranscriptSegment(text=text, is_final=False),
        )

    @classmethod
    def final(cls, session_id: int, text: str) -> "RecognitionEvent":
        return cls(
            kind=EventKind.SEGMENT.value,
            session_id=session_id,
            segment=TranscriptSegment(text=text, is_final=True),
        )

    @classmethod
    def error(cls, session_id: int, code: str, message: str = "") -> "RecognitionEvent":
        return cls(kind=EventKind.ERROR.value, session_id=session_id, code=code, message=message)

    @classmethod
    def ended(cls, session_id: int) -> "RecognitionEvent":
        return cls(kind=EventKind.ENDED.value, session_id=session_id)


@dataclass(frozen=True)
class ErrorClassification:
    kind: ErrorKind
    message: str
    code: str = ""
    suppressed: bool = False

    @property
    def restartable(self) -> bool:
        return self.kind != ErrorKind.FATAL and not self.suppressed


@dataclass(frozen=True)
class SessionStatus:
    state: SessionState
    last_error: Optional[ErrorClassification] = None


@dataclass(frozen=True)
class PermissionResult:
    granted: bool
    code: str = ""
    message: str = ""


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool
