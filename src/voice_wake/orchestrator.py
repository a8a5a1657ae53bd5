"""Wake word orchestrator: routes audio between VAD, recognizer and command session."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from .audio.types import AudioChunk, AudioSource
from .audio.vad import VADState, VoiceActivityDetector
from .command.base import CommandSession
from .core.emitter import EventEmitter, Subscription, cancel_all
from .core.events import (
    CommandResult,
    CommandResultEvent,
    ErrorEvent,
    OrchestratorState,
    StatusChanged,
    Topic,
    TranscriptEvent,
    TranscriptUpdate,
    WakeDetected,
)
from .core.timers import Scheduler, TimerTable
from .recognition.session import StreamingRecognitionSession
from .wake.matcher import WakeMatchResult, WakePhraseMatcher

logger = logging.getLogger("Orchestrator")

_GRACE = "listen_grace"
_WINDOW = "command_window"
_COMMAND_LIMIT = "command_limit"
_PROCESSING = "processing"

_INTERACTION_STATES = (
    OrchestratorState.WAKE_DETECTED,
    OrchestratorState.COMMAND_WINDOW,
    OrchestratorState.PROCESSING,
)


@dataclass(frozen=True)
class OrchestratorConfig:
    """Timing of the wake/command state machine, in seconds."""
    listen_grace_s: float = 1.5
    max_listen_s: float = 3.0
    command_window_s: float = 5.0
    command_timeout_s: float = 10.0
    processing_timeout_s: float = 6.0
    # Speech that was already running when the wake phrase matched and ends
    # within this time is the tail of the wake phrase, not a command.
    wake_tail_s: float = 0.5
    max_recognition_restarts: int = 3


class WakeWordOrchestrator:
    """
    State machine tying the pipeline together.

        IDLE -> LISTENING -> WAKE_DETECTED -> COMMAND_WINDOW <-> PROCESSING -> IDLE

    Every captured chunk goes through the VAD first. While LISTENING, VAD
    speech is streamed to the recognition session and each transcript is run
    through the wake matcher. Once the wake phrase is heard, the command
    session receives every chunk until the instruction ends, and its result
    (or failure) returns the machine to IDLE.

    All handlers run under one reentrant lock, whichever thread delivers the
    event (capture pump, recognizer thread, timer thread). Timers are scoped
    to the state that started them and cancelled on every transition.

    Topics: "status" (StatusChanged), "wake_detected" (WakeDetected),
    "transcript" (TranscriptUpdate), "command_result" (CommandResultEvent),
    "error" (ErrorEvent).
    """

    def __init__(
        self,
        source: AudioSource,
        vad: VoiceActivityDetector,
        recognition: StreamingRecognitionSession,
        matcher: WakePhraseMatcher,
        command_session: CommandSession,
        config: OrchestratorConfig = OrchestratorConfig(),
        scheduler: Optional[Scheduler] = None,
    ):
        self._source = source
        self._vad = vad
        self._recognition = recognition
        self._matcher = matcher
        self._command = command_session
        self._config = config

        self._lock = threading.RLock()
        self._events = EventEmitter(Topic.ALL)
        self._timers = TimerTable(scheduler, lock=self._lock, serialize=True, name="Orchestrator")
        self._clock = self._timers.scheduler

        self._state = OrchestratorState.IDLE
        self._running = False
        self._initialized = False
        self._closed = False

        # Per-interaction scratch state, cleared by _reset_to_idle().
        self._listen_started_at = 0.0
        self._recognition_restarts = 0
        self._last_final_text = ""
        self._residual = ""
        self._window_entered_at = 0.0
        self._speech_carried = False
        self._command_speech_seen = False

        self._wiring: List[Subscription] = [
            source.subscribe("data", self._on_audio),
            source.subscribe("error", self._on_capture_error),
            vad.subscribe("speech_start", self._on_speech_start),
            vad.subscribe("speech", self._on_speech),
            vad.subscribe("speech_end", self._on_speech_end),
            recognition.subscribe("transcript", self._on_transcript),
            recognition.subscribe("error", self._on_recognition_error),
            recognition.subscribe("end", self._on_recognition_end),
            command_session.subscribe("result", self._on_command_result),
            command_session.subscribe("error", self._on_command_error),
            command_session.subscribe("disconnected", self._on_command_disconnected),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        with self._lock:
            return self._state

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    @property
    def matcher(self) -> WakePhraseMatcher:
        return self._matcher

    def pending_timers(self) -> List[str]:
        return self._timers.pending()

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription:
        return self._events.subscribe(topic, callback)

    def initialize(self) -> None:
        """Initialise the recognition backend. Safe to call more than once."""
        with self._lock:
            if self._initialized:
                return
            logger.info("Initializing wake word pipeline...")
            self._recognition.initialize()
            self._initialized = True
            logger.info("Wake phrases: %s (threshold %.2f)", ", ".join(self._matcher.phrases), self._matcher.threshold)

    def start(self) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Orchestrator is closed")
            if self._running:
                logger.warning("Already running")
                return
            self.initialize()
            logger.info("Starting wake word detection")
            self._running = True
            self._clear_interaction()
            self._vad.reset()
            self._set_state(OrchestratorState.IDLE)
            try:
                self._source.start()
                return
            except Exception as e:
                logger.error("Failed to start audio capture: %s", e)
                self._fail(e)
                failure = e
        self._source.stop()
        raise failure

    def stop(self) -> None:
        """Stop capture and tear down every session and timer. Idempotent."""
        with self._lock:
            if self._running:
                logger.info("Stopping...")
            self._running = False
            self._timers.cancel_all()
            self._recognition.stop_stream()
            self._command.end()
            self._vad.reset()
            self._clear_interaction()
            self._set_state(OrchestratorState.IDLE)
        # Outside the lock: the capture pump may be waiting on it in _on_audio.
        self._source.stop()

    def close(self) -> None:
        """Stop and drop every subscription, both inbound and outbound."""
        with self._lock:
            self._closed = True
        self.stop()
        with self._lock:
            cancel_all(self._wiring)
            self._events.clear()

    # ------------------------------------------------------------------
    # Audio and VAD
    # ------------------------------------------------------------------

    def _on_audio(self, chunk: AudioChunk) -> None:
        with self._lock:
            if not self._running:
                return
            self._vad.process(chunk)
            if self._state is OrchestratorState.COMMAND_WINDOW:
                self._command.send_audio(chunk)

    def _on_speech_start(self) -> None:
        with self._lock:
            state = self._state
            if state is OrchestratorState.IDLE:
                self._enter_listening()
            elif state is OrchestratorState.LISTENING:
                if self._timers.cancel(_GRACE):
                    logger.debug("Speech resumed, grace period cancelled")
            elif state is OrchestratorState.COMMAND_WINDOW:
                self._command_speech_seen = True
                self._timers.cancel(_WINDOW)
            elif state is OrchestratorState.PROCESSING:
                self._continue_command()

    def _on_speech(self, chunk: AudioChunk) -> None:
        with self._lock:
            if self._state is not OrchestratorState.LISTENING:
                return
            elapsed = self._clock.now() - self._listen_started_at
            if elapsed > self._config.max_listen_s:
                logger.info("Max speech duration reached without wake word (%.1fs)", elapsed)
                self._reset_to_idle()
                return
            self._recognition.write(chunk)

    def _on_speech_end(self) -> None:
        with self._lock:
            state = self._state
            if state is OrchestratorState.LISTENING:
                logger.debug("Speech ended, waiting %.1fs for wake phrase", self._config.listen_grace_s)
                self._timers.start(
                    _GRACE, self._config.listen_grace_s, self._on_grace_expired, scope=OrchestratorState.LISTENING
                )
            elif state is OrchestratorState.COMMAND_WINDOW:
                if self._command_speech_seen or self._residual:
                    self._enter_processing()
                elif self._speech_carried:
                    self._speech_carried = False
                    spoken = self._clock.now() - self._window_entered_at
                    if spoken >= self._config.wake_tail_s:
                        self._enter_processing()
                    else:
                        logger.debug("Ignoring end of wake utterance (%.2fs into window)", spoken)

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    def _on_transcript(self, event: TranscriptEvent) -> None:
        with self._lock:
            if self._state is not OrchestratorState.LISTENING:
                return
            text = event.text.strip()
            if not text:
                return
            if not event.is_final and self._last_final_text.startswith(text):
                logger.debug("Ignoring late interim %r", text)
                return

            logger.info("Transcript: %r (final: %s)", text, event.is_final)
            if event.is_final:
                self._last_final_text = text
            self._events.publish(Topic.TRANSCRIPT, TranscriptUpdate(text=text, is_final=event.is_final))

            result = self._matcher.match(text)
            if result.matched:
                self._on_wake(text, result)

    def _on_recognition_error(self, error: Exception) -> None:
        with self._lock:
            self._recognition_failed(f"Recognition error: {error}")

    def _on_recognition_end(self) -> None:
        with self._lock:
            self._recognition_failed("Recognition stream ended")

    def _recognition_failed(self, message: str) -> None:
        state = self._state
        if state is OrchestratorState.LISTENING:
            self._recognition_restarts += 1
            if self._recognition_restarts > self._config.max_recognition_restarts:
                logger.error("%s, giving up after %d restarts", message, self._config.max_recognition_restarts)
                self._publish_error(message)
                self._reset_to_idle()
                return
            logger.warning("%s, restarting stream", message)
            self._recognition.start_stream()
        elif state in _INTERACTION_STATES:
            logger.error("%s during command interaction", message)
            self._publish_error(message)
            self._reset_to_idle()

    # ------------------------------------------------------------------
    # Wake and command
    # ------------------------------------------------------------------

    def _on_wake(self, transcript: str, result: WakeMatchResult) -> None:
        logger.info(
            "Wake phrase detected: %r ~ %r (confidence %.2f)",
            result.matched_phrase, result.matched_configured_phrase, result.confidence,
        )
        self._recognition.stop_stream()
        self._set_state(OrchestratorState.WAKE_DETECTED)
        self._events.publish(
            Topic.WAKE_DETECTED,
            WakeDetected(
                transcript=transcript,
                confidence=result.confidence,
                matched_phrase=result.matched_configured_phrase or "",
            ),
        )
        if self._state is not OrchestratorState.WAKE_DETECTED:
            return

        self._residual = result.residual_text
        try:
            self._command.start(self._residual)
        except Exception as e:
            logger.error("Failed to start command session: %s", e)
            self._publish_error(f"Failed to start command session: {e}")
            self._reset_to_idle()
            return
        if self._state is not OrchestratorState.WAKE_DETECTED:
            return

        self._speech_carried = self._vad.state is VADState.SPEECH
        self._command_speech_seen = False
        self._window_entered_at = self._clock.now()
        self._set_state(OrchestratorState.COMMAND_WINDOW)
        self._timers.start(
            _WINDOW, self._config.command_window_s, self._on_window_expired, scope=OrchestratorState.COMMAND_WINDOW
        )
        self._start_command_limit()

    def _start_command_limit(self) -> None:
        self._timers.start(
            _COMMAND_LIMIT,
            self._config.command_timeout_s,
            self._on_command_limit,
            scope=OrchestratorState.COMMAND_WINDOW,
        )

    def _enter_processing(self) -> None:
        logger.info("Command captured, processing")
        self._set_state(OrchestratorState.PROCESSING)
        self._timers.start(
            _PROCESSING,
            self._config.processing_timeout_s,
            self._on_processing_timeout,
            scope=OrchestratorState.PROCESSING,
        )
        self._command.finish()

    def _continue_command(self) -> None:
        logger.info("Speech resumed during processing, continuing command")
        self._set_state(OrchestratorState.COMMAND_WINDOW)
        self._command_speech_seen = True
        self._start_command_limit()

    def _on_command_result(self, result: CommandResult) -> None:
        with self._lock:
            if self._state not in _INTERACTION_STATES:
                logger.debug("Ignoring command result in state %s", self._state.value)
                return
            logger.info("Command result: %r (tool: %s)", result.text, result.tool_name)
            self._events.publish(
                Topic.COMMAND_RESULT,
                CommandResultEvent(text=result.text, tool_name=result.tool_name, args=dict(result.args)),
            )
            self._reset_to_idle()

    def _on_command_error(self, error: Exception) -> None:
        with self._lock:
            if self._state not in _INTERACTION_STATES:
                return
            logger.error("Command session error: %s", error)
            self._publish_error(f"Command failed: {error}")
            self._reset_to_idle()

    def _on_command_disconnected(self) -> None:
        with self._lock:
            if self._state not in _INTERACTION_STATES:
                return
            logger.warning("Command session disconnected")
            self._publish_error("Command session disconnected")
            self._reset_to_idle()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _on_grace_expired(self) -> None:
        if self._state is OrchestratorState.LISTENING:
            logger.info("No wake phrase detected, resetting")
            self._reset_to_idle()

    def _on_window_expired(self) -> None:
        if self._state is not OrchestratorState.COMMAND_WINDOW:
            return
        if self._residual:
            self._enter_processing()
        elif self._vad.state is VADState.SPEECH:
            logger.debug("Command window elapsed while speaking, waiting for end of speech")
        else:
            logger.info("No command heard")
            self._publish_error("No command heard")
            self._reset_to_idle()

    def _on_command_limit(self) -> None:
        if self._state is OrchestratorState.COMMAND_WINDOW:
            logger.info("Command time limit reached")
            self._enter_processing()

    def _on_processing_timeout(self) -> None:
        if self._state is OrchestratorState.PROCESSING:
            logger.error("Command processing timed out")
            self._publish_error("Command processing timed out")
            self._reset_to_idle()

    # ------------------------------------------------------------------
    # Capture failure
    # ------------------------------------------------------------------

    def _on_capture_error(self, error: Exception) -> None:
        with self._lock:
            logger.error("Audio capture error: %s", error)
            self._fail(error)
        self._source.stop()

    def _fail(self, error: Exception) -> None:
        """Move to ERROR. The caller stops the source once the lock is released."""
        self._publish_error(f"Audio capture failed: {error}")
        self._timers.cancel_all()
        self._recognition.stop_stream()
        self._command.end()
        self._running = False
        self._vad.reset()
        self._clear_interaction()
        self._set_state(OrchestratorState.ERROR)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enter_listening(self) -> None:
        logger.info("Speech started, checking for wake phrase")
        self._clear_interaction()
        self._listen_started_at = self._clock.now()
        self._set_state(OrchestratorState.LISTENING)
        if not self._recognition.streaming:
            self._recognition.start_stream()

    def _reset_to_idle(self) -> None:
        logger.debug("Resetting to idle")
        self._timers.cancel_all()
        self._recognition.stop_stream()
        self._command.end()
        self._clear_interaction()
        self._vad.reset()
        if self._running:
            self._set_state(OrchestratorState.IDLE)

    def _clear_interaction(self) -> None:
        self._recognition_restarts = 0
        self._last_final_text = ""
        self._residual = ""
        self._speech_carried = False
        self._command_speech_seen = False

    def _set_state(self, state: OrchestratorState) -> None:
        if state is self._state:
            return
        previous, self._state = self._state, state
        self._timers.retain(state)
        logger.info("Status: %s -> %s", previous.value, state.value)
        self._events.publish(Topic.STATUS, StatusChanged(state=state, previous=previous))

    def _publish_error(self, message: str) -> None:
        self._events.publish(Topic.ERROR, ErrorEvent(message=message, state=self._state))
