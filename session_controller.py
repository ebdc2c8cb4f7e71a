"""State-machine based dictation session orchestration."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from classifier import classify
from errors import (
    AUDIO_CAPTURE,
    ERROR_MESSAGES,
    NOT_ALLOWED,
    RESTARTS_EXHAUSTED,
    AlreadyActiveError,
)
from interfaces import PermissionGate, RecognizerCapability, Scheduler, TimerHandle
from models import (
    ErrorClassification,
    ErrorKind,
    EventKind,
    PermissionResult,
    RecognitionEvent,
    SessionState,
    SessionStatus,
    TranscriptSegment,
)
from transcript import compose, normalize, trim_trailing_separator

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
TextCallback = Callable[[str], None]
ErrorCallback = Callable[[ErrorClassification], None]
CommitCallback = Callable[[str], None]

# Provider-initiated end while listening: restart like a silence timeout.
_PROVIDER_ENDED = ErrorClassification(
    kind=ErrorKind.TRANSIENT,
    message="Recognizer ended the stream.",
    code="ended",
)


class ThreadingScheduler:
    """Runs callbacks on ``threading.Timer`` daemon threads."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


class DictationSession:
    def __init__(
        self,
        capability: RecognizerCapability,
        permission_gate: PermissionGate,
        scheduler: Optional[Scheduler] = None,
        max_restart_attempts: int = 5,
        transient_backoff_s: float = 1.0,
        recoverable_backoff_s: float = 3.0,
        end_timeout_s: float = 15.0,
        on_state_change: Optional[StateCallback] = None,
        on_text: Optional[TextCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_commit: Optional[CommitCallback] = None,
    ) -> None:
        self._capability = capability
        self._permission_gate = permission_gate
        self._scheduler = scheduler or ThreadingScheduler()
        self._max_restart_attempts = max_restart_attempts
        self._transient_backoff_s = transient_backoff_s
        self._recoverable_backoff_s = recoverable_backoff_s
        self._end_timeout_s = end_timeout_s
        self._on_state_change = on_state_change
        self._on_text = on_text
        self._on_error = on_error
        self._on_commit = on_commit

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._session_id = 0
        self._attempt = 0
        self._committed_text = ""
        self._interim_text = ""
        self._restart_attempts = 0
        self._last_error: Optional[ErrorClassification] = None
        self._recovery_cause: Optional[ErrorClassification] = None
        self._timer: Optional[TimerHandle] = None
        self._live_run: Optional[int] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> int:
        return self._session_id

    @property
    def committed_text(self) -> str:
        return self._committed_text

    @property
    def interim_text(self) -> str:
        return self._interim_text

    @property
    def restart_attempts(self) -> int:
        return self._restart_attempts

    @property
    def last_error(self) -> Optional[ErrorClassification]:
        return self._last_error

    # ------------------------------------------------------------------
    # Host operations
    # ------------------------------------------------------------------

    def start(self, initial_text: str = "") -> None:
        """Begin a user-initiated session.

        ``initial_text`` seeds the committed text so folded segments follow
        the sentence context of the host's document.
        """
        with self._lock:
            if self._state != SessionState.IDLE:
                raise AlreadyActiveError(
                    f"dictation session {self._session_id} is {self._state.value}"
                )
            self._session_id += 1
            self._restart_attempts = 0
            self._last_error = None
            self._recovery_cause = None
            self._committed_text = initial_text
            self._interim_text = ""
            logger.info("Starting dictation session %d", self._session_id)
            self._enter_starting()

    def stop(self) -> None:
        with self._lock:
            if self._state in (SessionState.IDLE, SessionState.ENDING):
                return
            self._cancel_timer()
            self._interim_text = ""
            self._transition(SessionState.ENDING)
            self._emit_text()

            if self._live_run is None:
                # Nothing is streaming (recovering or awaiting permission).
                self._finish()
                return

            self._safe_stop_capability()
            session_id = self._session_id
            self._timer = self._scheduler.call_later(
                self._end_timeout_s, lambda: self._on_end_timeout(session_id)
            )

    def get_display_text(self) -> str:
        with self._lock:
            return compose(self._committed_text, self._interim_text)

    def get_status(self) -> SessionStatus:
        with self._lock:
            return SessionStatus(state=self._state, last_error=self._last_error)

    # ------------------------------------------------------------------
    # Recognizer events
    # ------------------------------------------------------------------

    def handle_event(self, event: RecognitionEvent) -> None:
        with self._lock:
            if event.session_id != self._session_id:
                logger.debug(
                    "Dropping %s event for stale session %d (current %d)",
                    event.kind,
                    event.session_id,
                    self._session_id,
                )
                return

            kind = event.kind
            if kind == EventKind.STARTED.value:
                self._handle_started()
            elif kind == EventKind.SEGMENT.value and event.segment is not None:
                self._handle_segment(event.segment)
            elif kind == EventKind.ERROR.value:
                self._handle_error(classify(event.code, event.message))
            elif kind == EventKind.ENDED.value:
                self._handle_ended()
            else:
                logger.debug("Ignoring unknown event kind %r", kind)

    def _handle_run_event(self, run: int, event: RecognitionEvent) -> None:
        # Restarts keep the session id, so a run that was already stopped may
        # still deliver its trailing events after the next run has started.
        with self._lock:
            if run != self._live_run:
                logger.debug("Dropping %s event from stopped run %d", event.kind, run)
                return
            self.handle_event(event)

    def _handle_started(self) -> None:
        if self._state != SessionState.STARTING:
            logger.debug("Ignoring started event in %s", self._state.value)
            return
        self._last_error = None
        self._transition(SessionState.LISTENING)

    def _handle_segment(self, segment: TranscriptSegment) -> None:
        if self._state == SessionState.LISTENING:
            if segment.is_final:
                self._committed_text = normalize(self._committed_text, segment.text)
                self._interim_text = ""
            else:
                self._interim_text = segment.text
            self._emit_text()
            return
        if self._state == SessionState.ENDING and segment.is_final:
            # A final result that crossed the stop request still belongs to the session.
            self._committed_text = normalize(self._committed_text, segment.text)
            self._emit_text()
            return
        logger.debug("Dropping segment in %s (final=%s)", self._state.value, segment.is_final)

    def _handle_error(self, classification: ErrorClassification) -> None:
        if self._state not in (SessionState.STARTING, SessionState.LISTENING):
            logger.debug("Ignoring %s error in %s", classification.code, self._state.value)
            return
        if classification.suppressed:
            logger.debug("Suppressed recognizer error %s", classification.code)
            return
        if not classification.restartable:
            self._fail(classification)
            return
        self._safe_stop_capability()
        self._enter_recovering(classification)

    def _handle_ended(self) -> None:
        self._live_run = None
        if self._state in (SessionState.STARTING, SessionState.LISTENING):
            self._enter_recovering(_PROVIDER_ENDED)
        elif self._state == SessionState.ENDING:
            self._finish()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _enter_starting(self) -> None:
        self._transition(SessionState.STARTING)
        self._attempt += 1
        session_id, attempt = self._session_id, self._attempt
        try:
            self._permission_gate.request(
                lambda result: self._on_permission(session_id, attempt, result)
            )
        except Exception as exc:
            self._on_permission(
                session_id, attempt, PermissionResult(granted=False, code=AUDIO_CAPTURE, message=str(exc))
            )

    def _on_permission(self, session_id: int, attempt: int, result: PermissionResult) -> None:
        with self._lock:
            if (
                session_id != self._session_id
                or attempt != self._attempt
                or self._state != SessionState.STARTING
            ):
                logger.debug("Dropping stale permission result for session %d", session_id)
                return
            if not result.granted:
                code = result.code or NOT_ALLOWED
                self._fail(
                    ErrorClassification(
                        kind=ErrorKind.FATAL,
                        message=result.message or ERROR_MESSAGES.get(code, code),
                        code=code,
                    )
                )
                return
            self._live_run = attempt
            try:
                self._capability.start(
                    session_id, lambda event: self._handle_run_event(attempt, event)
                )
            except Exception as exc:
                logger.exception("Recognizer failed to start")
                self._live_run = None
                self._handle_error(classify(AUDIO_CAPTURE, str(exc)))

    def _enter_recovering(self, cause: ErrorClassification) -> None:
        self._interim_text = ""
        self._recovery_cause = cause
        if cause.kind == ErrorKind.RECOVERABLE:
            self._last_error = cause
        self._transition(SessionState.RECOVERING)
        self._emit_text()

        if cause.kind == ErrorKind.RECOVERABLE:
            backoff_s = self._recoverable_backoff_s
        else:
            backoff_s = self._transient_backoff_s
        session_id = self._session_id
        self._timer = self._scheduler.call_later(
            backoff_s, lambda: self._on_backoff_elapsed(session_id)
        )

    def _on_backoff_elapsed(self, session_id: int) -> None:
        with self._lock:
            if session_id != self._session_id or self._state != SessionState.RECOVERING:
                return
            self._timer = None
            if self._restart_attempts >= self._max_restart_attempts:
                cause = self._recovery_cause
                message = ERROR_MESSAGES[RESTARTS_EXHAUSTED]
                if cause is not None:
                    message = f"{message} Last error: {cause.message}"
                self._fail(
                    ErrorClassification(kind=ErrorKind.FATAL, message=message, code=RESTARTS_EXHAUSTED)
                )
                return
            self._restart_attempts += 1
            logger.info(
                "Restarting session %d (attempt %d/%d)",
                session_id,
                self._restart_attempts,
                self._max_restart_attempts,
            )
            self._enter_starting()

    def _on_end_timeout(self, session_id: int) -> None:
        with self._lock:
            if session_id != self._session_id or self._state != SessionState.ENDING:
                return
            self._timer = None
            logger.warning(
                "Recognizer did not end within %.1fs, closing session %d",
                self._end_timeout_s,
                session_id,
            )
            self._live_run = None
            self._finish()

    def _finish(self) -> None:
        self._cancel_timer()
        self._interim_text = ""
        self._committed_text = trim_trailing_separator(self._committed_text)
        self._transition(SessionState.IDLE)
        self._emit_text()
        self._emit_commit()

    def _fail(self, classification: ErrorClassification) -> None:
        logger.warning(
            "Dictation session %d failed: %s (%s)",
            self._session_id,
            classification.message,
            classification.code,
        )
        self._last_error = classification
        self._cancel_timer()
        self._safe_stop_capability()
        self._interim_text = ""
        self._committed_text = trim_trailing_separator(self._committed_text)
        self._transition(SessionState.IDLE)
        self._emit_text()
        if self._on_error:
            self._on_error(classification)
        self._emit_commit()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _safe_stop_capability(self) -> None:
        if self._live_run is None:
            return
        try:
            self._capability.stop()
        except Exception:
            logger.warning("Recognizer stop failed", exc_info=True)
        if self._state != SessionState.ENDING:
            self._live_run = None

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()

    def _emit_text(self) -> None:
        if self._on_text:
            self._on_text(self.get_display_text())

    def _emit_commit(self) -> None:
        if self._on_commit:
            self._on_commit(self._committed_text)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        if from_state == SessionState.RECOVERING:
            self._cancel_timer()
        self._state = to_state
        logger.debug("Session %d: %s -> %s", self._session_id, from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
