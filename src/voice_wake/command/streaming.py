"""Command session that recognizes the instruction while it is spoken."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from ..audio.types import AudioChunk
from ..core.emitter import EventEmitter, Subscription
from ..core.errors import CommandSessionError
from ..core.events import CommandResult, TranscriptEvent
from ..recognition.provider import RecognitionConfig, RecognitionProvider, RecognitionStream
from .base import COMMAND_SESSION_TOPICS
from .interpreter import InterpretRequest, InterpreterWorker, join_transcript

logger = logging.getLogger("StreamingCommand")


class StreamingCommandSession:
    """
    Streams command audio into its own recognition stream.

    `finish()` flushes the stream; once the stream reports its end, every final
    text heard during the interaction is interpreted. Audio arriving after
    `finish()` opens a fresh stream and supersedes the pending interpretation;
    the flushed stream still contributes its last final.
    """

    TOPICS = COMMAND_SESSION_TOPICS

    def __init__(
        self,
        provider: RecognitionProvider,
        interpreter: InterpreterWorker,
        config: RecognitionConfig = RecognitionConfig(),
    ):
        self._provider = provider
        self._interpreter = interpreter
        self._config = config
        self._events = EventEmitter(self.TOPICS)
        self._lock = threading.Lock()
        self._interaction = 0
        self._stream_seq = 0
        self._request_id = 0
        self._stream: Optional[RecognitionStream] = None
        self._active = False
        self._finished = False
        self._initial_text = ""
        self._finals: List[str] = []

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def transcript(self) -> str:
        with self._lock:
            return join_transcript(self._initial_text, *self._finals)

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription:
        return self._events.subscribe(topic, callback)

    def start(self, initial_text: str = "") -> None:
        """Open the command stream. Raises CommandSessionError if it cannot be opened."""
        with self._lock:
            self._close_stream_locked()
            self._interaction += 1
            self._request_id += 1
            self._active = True
            self._finished = False
            self._initial_text = initial_text.strip()
            self._finals = []
            try:
                self._open_stream_locked()
            except Exception as e:
                self._active = False
                raise CommandSessionError(f"Could not open command stream: {e}") from e
        logger.info("Command stream started (initial text: %r)", initial_text)

    def send_audio(self, chunk: AudioChunk) -> None:
        error: Optional[Exception] = None
        with self._lock:
            if not self._active or not chunk:
                return
            try:
                if self._finished:
                    logger.info("Continuation audio, reopening command stream")
                    self._request_id += 1
                    self._finished = False
                    # The flushed stream ends by itself; keep it running.
                    self._stream = None
                    self._open_stream_locked()
                assert self._stream is not None
                self._stream.write(chunk)
            except Exception as e:
                self._active = False
                self._close_stream_locked()
                error = CommandSessionError(f"Command stream failed: {e}")
        if error is not None:
            logger.error("%s", error)
            self._events.publish("error", error)

    def finish(self) -> None:
        with self._lock:
            if not self._active or self._finished or self._stream is None:
                return
            self._finished = True
            stream = self._stream
        logger.debug("Flushing command stream")
        stream.finalize()

    def end(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._interaction += 1
            self._request_id += 1
            self._close_stream_locked()
        logger.debug("Command capture ended")

    def close(self) -> None:
        self.end()
        self._interpreter.stop()

    # ------------------------------------------------------------------

    def _open_stream_locked(self) -> None:
        self._stream_seq += 1
        interaction, seq = self._interaction, self._stream_seq
        self._stream = self._provider.open(
            self._config,
            on_result=lambda event: self._on_stream_result(interaction, event),
            on_error=lambda error: self._on_stream_error(interaction, seq, error),
            on_end=lambda: self._on_stream_end(interaction, seq),
        )

    def _close_stream_locked(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.close()
        except Exception as e:
            logger.debug("Ignoring error while closing command stream: %s", e)

    def _on_stream_result(self, interaction: int, event: TranscriptEvent) -> None:
        with self._lock:
            if interaction != self._interaction or not self._active:
                return
            if event.is_final and event.text.strip():
                self._finals.append(event.text.strip())
                logger.debug("Command final: %r", event.text)

    def _on_stream_end(self, interaction: int, seq: int) -> None:
        with self._lock:
            if interaction != self._interaction or not self._active or seq != self._stream_seq:
                return
            self._stream = None
            if not self._finished:
                self._active = False
                disconnected = True
            else:
                disconnected = False
                request = InterpretRequest(
                    request_id=self._request_id,
                    on_done=self._on_done,
                    on_error=self._on_error,
                    text=join_transcript(self._initial_text, *self._finals),
                )
        if disconnected:
            logger.warning("Command stream ended unexpectedly")
            self._events.publish("disconnected")
            return
        logger.info("Interpreting command: %r", request.text)
        self._interpreter.submit(request)

    def _on_stream_error(self, interaction: int, seq: int, error: Exception) -> None:
        with self._lock:
            if interaction != self._interaction or not self._active or seq != self._stream_seq:
                return
            self._active = False
            self._close_stream_locked()
        logger.error("Command stream error: %s", error)
        self._events.publish("error", error)

    def _on_done(self, request_id: int, result: CommandResult) -> None:
        if self._claim(request_id):
            self._events.publish("result", result)

    def _on_error(self, request_id: int, error: Exception) -> None:
        if self._claim(request_id):
            self._events.publish("error", error)

    def _claim(self, request_id: int) -> bool:
        with self._lock:
            if not self._active or request_id != self._request_id:
                logger.debug("Dropping stale interpretation %d", request_id)
                return False
            self._active = False
            return True
