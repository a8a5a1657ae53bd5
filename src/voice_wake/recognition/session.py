"""Streaming recognition session: lifecycle, pre-open buffering and proactive reconnect."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from ..audio.types import AudioChunk
from ..core.emitter import EventEmitter, Subscription
from ..core.errors import RecognitionSessionError
from ..core.events import TranscriptEvent
from ..core.timers import Scheduler, TimerTable
from .provider import RecognitionConfig, RecognitionProvider, RecognitionStream

logger = logging.getLogger("RecognitionSession")

_RECONNECT_TIMER = "reconnect"
_WRITE_LOG_INTERVAL_S = 3.0

_Pending = List[Tuple[str, tuple]]


class StreamingRecognitionSession:
    """
    Wraps a provider stream so callers only see one logical, long-lived session.

    * At most one provider stream is open at a time.
    * Audio written while no stream is open is kept in a bounded FIFO (oldest
      dropped first) and replayed in order when the next stream opens.
    * The stream is reopened before the provider's session ceiling.
    * Callbacks from a stream that has been replaced or stopped are dropped.

    Topics: "transcript" (TranscriptEvent), "error" (Exception), "end", "stream_start".

    Events are always published after the internal lock is released.
    """

    TOPICS = ("transcript", "error", "end", "stream_start")

    def __init__(
        self,
        provider: RecognitionProvider,
        config: RecognitionConfig = RecognitionConfig(),
        max_stream_duration_s: float = 290.0,
        pending_audio_limit: int = 100,
        scheduler: Optional[Scheduler] = None,
    ):
        self._provider = provider
        self._config = config
        self._max_stream_duration_s = max_stream_duration_s
        self._events = EventEmitter(self.TOPICS)
        self._lock = threading.RLock()
        self._timers = TimerTable(scheduler, lock=self._lock, serialize=False, name="RecognitionSession")
        self._stream: Optional[RecognitionStream] = None
        self._generation = 0
        self._initialized = False
        self._pending_audio: Deque[AudioChunk] = deque(maxlen=pending_audio_limit)
        self._write_count = 0
        self._last_write_log = 0.0

    @property
    def streaming(self) -> bool:
        with self._lock:
            return self._stream is not None

    @property
    def pending_chunks(self) -> int:
        with self._lock:
            return len(self._pending_audio)

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription:
        return self._events.subscribe(topic, callback)

    def initialize(self) -> None:
        """Initialise the provider once. Raises RecognitionUnavailableError when unconfigured."""
        with self._lock:
            if self._initialized:
                return
            logger.info("Initializing recognition provider...")
            self._provider.initialize()
            self._initialized = True
            logger.info("Recognition provider initialized")

    def start_stream(self) -> None:
        """Open a new stream, replacing any stream that is already open."""
        with self._lock:
            if not self._initialized:
                raise RecognitionSessionError("Recognition session not initialized. Call initialize() first.")
            outbox = self._open_locked()
        self._flush(outbox)

    def write(self, chunk: AudioChunk) -> None:
        """Forward audio to the open stream, or buffer it until one opens."""
        with self._lock:
            if not chunk:
                logger.warning("Attempted to write empty audio chunk, skipping")
                return
            if self._stream is None:
                self._pending_audio.append(chunk)
                return
            try:
                self._write_locked(chunk)
                return
            except Exception as e:
                # The failed chunk is dropped; the stream is rebuilt from scratch.
                logger.error("Write error, restarting stream: %s", e)
                outbox = self._open_locked()
        self._flush(outbox)

    def stop_stream(self) -> None:
        """Close the stream if open and cancel the reconnect timer. Safe from any state."""
        with self._lock:
            self._timers.cancel_all()
            self._pending_audio.clear()
            self._generation += 1
            if self._stream is None:
                return
            self._close_stream_locked()
            logger.info("Stream stopped")

    def destroy(self) -> None:
        self.stop_stream()
        with self._lock:
            if self._initialized:
                self._provider.close()
                self._initialized = False

    # ------------------------------------------------------------------
    # Internals. `_open_locked` returns events to publish once unlocked.
    # ------------------------------------------------------------------

    def _open_locked(self) -> _Pending:
        if self._stream is not None:
            logger.info("Stopping existing stream before starting new one")
            self._close_stream_locked()
        self._timers.cancel(_RECONNECT_TIMER)

        self._generation += 1
        generation = self._generation
        logger.info("Starting new stream (generation %d)...", generation)
        try:
            stream = self._provider.open(
                self._config,
                on_result=lambda event: self._handle_result(generation, event),
                on_error=lambda error: self._handle_error(generation, error),
                on_end=lambda: self._handle_end(generation),
            )
        except Exception as e:
            logger.error("Failed to start stream: %s", e)
            return [("error", (e,))]

        self._stream = stream
        self._write_count = 0
        self._timers.start(
            _RECONNECT_TIMER,
            self._max_stream_duration_s,
            lambda: self._reconnect(generation),
        )
        outbox: _Pending = [("stream_start", ())]
        outbox.extend(self._flush_pending_locked())
        logger.info("Stream started")
        return outbox

    def _flush_pending_locked(self) -> _Pending:
        while self._pending_audio and self._stream is not None:
            chunk = self._pending_audio.popleft()
            if not chunk:
                continue
            try:
                self._write_locked(chunk)
            except Exception as e:
                logger.error("Failed to replay buffered audio: %s", e)
                self._close_stream_locked()
                self._generation += 1
                return [("error", (e,))]
        return []

    def _write_locked(self, chunk: AudioChunk) -> None:
        assert self._stream is not None
        if self._write_count == 0:
            logger.debug("Sending first audio chunk (%d bytes)", len(chunk))
        self._stream.write(chunk)
        self._write_count += 1
        now = time.monotonic()
        if now - self._last_write_log > _WRITE_LOG_INTERVAL_S:
            logger.debug("Sent %d audio chunks on current stream", self._write_count)
            self._last_write_log = now

    def _close_stream_locked(self) -> None:
        stream, self._stream = self._stream, None
        self._timers.cancel(_RECONNECT_TIMER)
        if stream is None:
            return
        try:
            stream.close()
        except Exception as e:
            logger.debug("Ignoring error while closing stream: %s", e)

    def _reconnect(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._stream is None:
                return
            logger.info("Reconnecting stream (session duration limit)")
            outbox = self._open_locked()
        self._flush(outbox)

    def _handle_result(self, generation: int, event: TranscriptEvent) -> None:
        with self._lock:
            if generation != self._generation or self._stream is None:
                return
        logger.debug("Transcript: %r (final: %s, confidence: %.2f)", event.text, event.is_final, event.confidence)
        self._events.publish("transcript", event)

    def _handle_error(self, generation: int, error: Exception) -> None:
        with self._lock:
            if generation != self._generation:
                return
            logger.error("Stream error: %s", error)
            self._close_stream_locked()
            self._generation += 1
        self._events.publish("error", error)

    def _handle_end(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            logger.info("Stream ended by provider")
            self._close_stream_locked()
            self._generation += 1
        self._events.publish("end")

    def _flush(self, outbox: _Pending) -> None:
        for topic, args in outbox:
            self._events.publish(topic, *args)
