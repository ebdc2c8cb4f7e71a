"""Microphone capture and audio-input permission checks."""

from __future__ import annotations

import logging
import threading
import time
from queue import Full, Queue
from typing import Any, Callable

from errors import AUDIO_CAPTURE, NOT_ALLOWED
from models import AudioFrame, PermissionResult

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame | None] | None = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._audio_queue = audio_queue
            self.dropped_chunks = 0
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True

    def stop(self) -> None:
        """Close the stream and push the end-of-audio sentinel."""
        with self._lock:
            if not self._running:
                self._emit_sentinel_if_needed()
                return
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            if self.dropped_chunks:
                logger.warning("Dropped %d audio chunks (queue full)", self.dropped_chunks)
            self._emit_sentinel_if_needed()

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running or self._audio_queue is None or np is None:
            return
        if status:
            # Overflows are common on long dictations; the frame is still usable.
            logger.debug("Audio input status: %s", status)
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1

    def _emit_sentinel_if_needed(self) -> None:
        if self._audio_queue is None:
            return
        try:
            self._audio_queue.put_nowait(None)
        except Full:
            pass


class SoundDevicePermissionGate:
    """Checks that an input device can be opened before dictation starts.

    PortAudio reports a denied microphone permission as a failure to open
    the input stream, so both a missing device and a denial surface here.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self.sample_rate = sample_rate
        self.channels = channels

    def request(self, on_result: Callable[[PermissionResult], None]) -> None:
        on_result(self.check())

    def check(self) -> PermissionResult:
        if sd is None:
            return PermissionResult(
                granted=False, code=AUDIO_CAPTURE, message="sounddevice is not installed"
            )
        try:
            sd.check_input_settings(samplerate=self.sample_rate, channels=self.channels)
        except Exception as exc:
            message = str(exc)
            low = message.lower()
            code = NOT_ALLOWED if "permission" in low or "not allowed" in low else AUDIO_CAPTURE
            logger.warning("Audio input unavailable: %s", message)
            return PermissionResult(granted=False, code=code, message=message)
        return PermissionResult(granted=True)
