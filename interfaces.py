"""Protocol interfaces used by DictationSession and the host app."""

from __future__ import annotations

from queue import Queue
from typing import Callable, Protocol

from models import AudioFrame, PermissionResult, RecognitionEvent

EventCallback = Callable[[RecognitionEvent], None]
PermissionCallback = Callable[[PermissionResult], None]


class Recorder(Protocol):
    def start(self, audio_queue: Queue[AudioFrame | None]) -> None: ...

    def stop(self) -> None: ...


class RecognizerCapability(Protocol):
    """Streaming transcription provider.

    ``start`` eventually emits ``started`` or ``error``; ``stop`` eventually
    emits ``ended``. Every event carries the ``session_id`` passed to ``start``.
    """

    def start(self, session_id: int, on_event: EventCallback) -> None: ...

    def stop(self) -> None: ...


class PermissionGate(Protocol):
    def request(self, on_result: PermissionCallback) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...

