"""DictationSession driving a real DashscopeRecognizer end to end."""

from __future__ import annotations

import struct
import time
from queue import Queue
from unittest.mock import MagicMock, patch

from config import DictationSettings
from models import AudioFrame, PermissionResult, SessionState
from recognizer import DashscopeRecognizer
from session_controller import DictationSession, ThreadingScheduler


class LoudRecorder:
    """Pushes a few voiced frames, then the end-of-audio sentinel on stop."""

    def __init__(self, n_frames: int = 3) -> None:
        self.n_frames = n_frames
        self.queue: Queue[AudioFrame | None] | None = None

    def start(self, audio_queue: Queue[AudioFrame | None]) -> None:
        self.queue = audio_queue
        for _ in range(self.n_frames):
            audio_queue.put(
                AudioFrame(
                    pcm16_bytes=struct.pack("<h", 3000) * 1600,
                    sample_rate=16000,
                    channels=1,
                    timestamp_ms=0,
                )
            )

    def stop(self) -> None:
        if self.queue is not None:
            self.queue.put(None)


class GrantingGate:
    def request(self, on_result) -> None:  # noqa: ANN001
        on_result(PermissionResult(granted=True))


def _slow_upload(delay_s: float):  # noqa: ANN202
    def call(**_kwargs):  # noqa: ANN003, ANN202
        time.sleep(delay_s)
        yield {"output": {"choices": [{"message": {"content": [{"text": "last words"}]}}]}}

    return call


def _wait_for_idle(session: DictationSession, timeout: float = 5.0) -> None:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if session.state == SessionState.IDLE:
            return
        time.sleep(0.02)


@patch("recognizer.dashscope")
def test_slow_final_upload_is_committed_before_idle(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = _slow_upload(0.6)
    settings = DictationSettings(end_timeout_s=0.3, request_timeout_s=0.8)
    commits: list[str] = []
    recognizer = DashscopeRecognizer(
        api_key="test-key",
        recorder=LoudRecorder(),
        request_timeout_s=settings.request_timeout_s,
    )
    session = DictationSession(
        capability=recognizer,
        permission_gate=GrantingGate(),
        scheduler=ThreadingScheduler(),
        end_timeout_s=settings.ending_watchdog_s,
        on_commit=commits.append,
    )

    session.start()
    assert session.state == SessionState.LISTENING
    session.stop()
    assert session.state == SessionState.ENDING

    _wait_for_idle(session)

    assert session.state == SessionState.IDLE
    assert session.committed_text == "Last words."
    assert commits == ["Last words."]
    assert session.last_error is None
