"""Streaming recognizer capability backed by DashScope qwen3-asr-flash.

qwen3-asr-flash transcribes complete audio clips, so continuous dictation is
built by cutting the microphone stream into utterances: frames accumulate
until the RMS energy stays below ``energy_threshold`` for
``utterance_silence_ms``, then the utterance is converted to WAV and sent
with ``stream=True``. Streamed chunks become interim segments and the last
text becomes the final segment.
"""

from __future__ import annotations

import base64
import io
import logging
import math
import os
import threading
import wave
from queue import Empty, Queue
from typing import Callable, Optional

from errors import ASR_PROTOCOL, AUDIO_CAPTURE, NETWORK, NO_SPEECH, SERVICE_NOT_ALLOWED
from interfaces import EventCallback, Recorder
from models import AudioFrame, RecognitionEvent

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

logger = logging.getLogger(__name__)


def _pcm_to_wav_base64(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> str:
    """Convert raw PCM bytes to a base64-encoded WAV string."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return base64.b64encode(buf.getvalue()).decode("ascii")


def _rms(pcm: bytes) -> float:
    if np is None or not pcm:
        return 0.0
    samples = np.frombuffer(pcm, dtype=np.int16).astype(np.float64)
    if samples.size == 0:
        return 0.0
    return math.sqrt(float(np.mean(samples * samples)))


def _frame_duration_ms(frame: AudioFrame) -> float:
    bytes_per_second = frame.sample_rate * frame.channels * 2
    if bytes_per_second <= 0:
        return 0.0
    return len(frame.pcm16_bytes) * 1000.0 / bytes_per_second


class _Utterance:
    def __init__(self) -> None:
        self.pcm = bytearray()
        self.voiced = False
        self.silence_ms = 0.0
        self.sample_rate = 16000
        self.channels = 1

    def reset(self) -> None:
        self.pcm.clear()
        self.voiced = False
        self.silence_ms = 0.0


class DashscopeRecognizer:
    def __init__(
        self,
        api_key: str,
        recorder: Recorder,
        model: str = "qwen3-asr-flash",
        language: str = "en-US",
        request_timeout_s: float = 10.0,
        no_speech_timeout_s: float = 8.0,
        utterance_silence_ms: int = 700,
        energy_threshold: float = 500.0,
        queue_maxsize: int = 200,
    ) -> None:
        self._api_key = api_key
        self._recorder = recorder
        self._model = model
        self._language = language
        self._request_timeout_s = request_timeout_s
        self._no_speech_timeout_ms = no_speech_timeout_s * 1000.0
        self._utterance_silence_ms = utterance_silence_ms
        self._energy_threshold = energy_threshold
        self._queue_maxsize = queue_maxsize
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._abort: Optional[threading.Event] = None

    @staticmethod
    def is_available() -> bool:
        return dashscope is not None

    def start(self, session_id: int, on_event: EventCallback) -> None:
        with self._lock:
            self._abort_worker()
            audio_queue: Queue[AudioFrame | None] = Queue(maxsize=self._queue_maxsize)
            try:
                self._recorder.start(audio_queue)
            except Exception as exc:
                logger.warning("Microphone failed to open: %s", exc)
                on_event(RecognitionEvent.error(session_id, AUDIO_CAPTURE, str(exc)))
                return
            abort = threading.Event()
            on_event(RecognitionEvent.started(session_id))
            self._abort = abort
            self._thread = threading.Thread(
                target=self._worker,
                args=(session_id, on_event, audio_queue, abort),
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Request a graceful stop; the pending utterance is flushed before ``ended``."""
        self._safe_stop_recorder()

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key

    def set_language(self, language: str) -> None:
        self._language = language

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _abort_worker(self) -> None:
        """Silence a superseded worker; it emits nothing after this."""
        if self._abort is not None:
            self._abort.set()
        if self._thread is not None and self._thread.is_alive():
            self._safe_stop_recorder()
        self._thread = None
        self._abort = None

    def _safe_stop_recorder(self) -> None:
        try:
            self._recorder.stop()
        except Exception:
            logger.warning("Recorder stop failed", exc_info=True)

    def _worker(
        self,
        session_id: int,
        on_event: EventCallback,
        audio_queue: Queue[AudioFrame | None],
        abort: threading.Event,
    ) -> None:
        def emit(event: RecognitionEvent) -> None:
            if not abort.is_set():
                on_event(event)

        utterance = _Utterance()
        heard = False
        idle_ms = 0.0

        while not abort.is_set():
            try:
                frame = audio_queue.get(timeout=0.2)
            except Empty:
                continue
            if frame is None:  # Sentinel
                break

            utterance.sample_rate = frame.sample_rate
            utterance.channels = frame.channels
            duration_ms = _frame_duration_ms(frame)

            if _rms(frame.pcm16_bytes) >= self._energy_threshold:
                utterance.voiced = True
                utterance.silence_ms = 0.0
                utterance.pcm.extend(frame.pcm16_bytes)
                heard = True
                continue

            if not utterance.voiced:
                if heard:
                    continue
                # no-speech only fires before anything was heard in this run
                idle_ms += duration_ms
                if idle_ms >= self._no_speech_timeout_ms:
                    emit(RecognitionEvent.error(session_id, NO_SPEECH))
                    self._end_after_error(session_id, emit, abort)
                    return
                continue

            utterance.pcm.extend(frame.pcm16_bytes)
            utterance.silence_ms += duration_ms
            if utterance.silence_ms >= self._utterance_silence_ms:
                if not self._recognize(session_id, utterance, emit, abort):
                    self._end_after_error(session_id, emit, abort)
                    return
                utterance.reset()

        if abort.is_set():
            return
        if utterance.voiced:
            self._recognize(session_id, utterance, emit, abort)
        emit(RecognitionEvent.ended(session_id))

    def _end_after_error(
        self,
        session_id: int,
        emit: Callable[[RecognitionEvent], None],
        abort: threading.Event,
    ) -> None:
        if not abort.is_set():
            self._safe_stop_recorder()
        emit(RecognitionEvent.ended(session_id))

    def _recognize(
        self,
        session_id: int,
        utterance: _Utterance,
        emit: Callable[[RecognitionEvent], None],
        abort: threading.Event,
    ) -> bool:
        """Send one utterance and stream its segments. Returns False on error."""
        if dashscope is None:
            emit(
                RecognitionEvent.error(
                    session_id, SERVICE_NOT_ALLOWED, "dashscope is not installed"
                )
            )
            return False

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            emit(RecognitionEvent.error(session_id, SERVICE_NOT_ALLOWED, "No API key configured"))
            return False

        wav_b64 = _pcm_to_wav_base64(bytes(utterance.pcm), utterance.sample_rate, utterance.channels)
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": wav_b64}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False, "language": self._language_code()},
                stream=True,
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            emit(self._to_error_event(session_id, exc))
            return False

        latest_text = ""
        try:
            for chunk in response:
                if abort.is_set():
                    return False
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
                    emit(RecognitionEvent.interim(session_id, text))
        except Exception as exc:
            emit(self._to_error_event(session_id, exc))
            return False

        if latest_text:
            emit(RecognitionEvent.final(session_id, latest_text))
        return True

    def _language_code(self) -> str:
        return self._language.split("-")[0].lower()

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if not isinstance(chunk, dict):
            return ""
        status = chunk.get("status_code")
        if status is not None and status != 200:
            raise RuntimeError(f"{status} {chunk.get('code', '')}: {chunk.get('message', '')}")
        output = chunk.get("output") or {}
        choices = output.get("choices", [])
        if not choices:
            return ""
        message = choices[0].get("message", {})
        content = message.get("content", [])
        if not content:
            return ""
        value = content[0]
        if isinstance(value, dict):
            return str(value.get("text", ""))
        return ""

    def _to_error_event(self, session_id: int, exc: Exception) -> RecognitionEvent:
        """Map an SDK/network exception to a provider error code."""
        message = str(exc)
        low = message.lower()
        if "401" in low or "403" in low or "auth" in low or "api key" in low:
            code = SERVICE_NOT_ALLOWED
        elif "timeout" in low or "network" in low or "connection" in low:
            code = NETWORK
        elif isinstance(exc, (ConnectionError, TimeoutError)):
            code = NETWORK
        else:
            code = ASR_PROTOCOL
        return RecognitionEvent.error(session_id, code, message)
