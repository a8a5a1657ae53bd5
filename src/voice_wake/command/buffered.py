"""Command session that records the window and transcribes it in one pass."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..audio.types import AudioChunk
from ..core.emitter import EventEmitter, Subscription
from ..core.events import CommandResult
from .base import COMMAND_SESSION_TOPICS
from .interpreter import InterpretRequest, InterpreterWorker

logger = logging.getLogger("BufferedCommand")


class BufferedCommandSession:
    """
    Buffers command audio and hands it to the interpreter on `finish()`.

    Every interaction and every continuation gets a new request id; answers
    carrying an older id are dropped, so a continuation after `finish()`
    supersedes the pending interpretation and is transcribed together with
    the audio captured before it.
    """

    TOPICS = COMMAND_SESSION_TOPICS

    def __init__(self, interpreter: InterpreterWorker):
        self._interpreter = interpreter
        self._events = EventEmitter(self.TOPICS)
        self._lock = threading.Lock()
        self._request_id = 0
        self._active = False
        self._finished = False
        self._initial_text = ""
        self._buffer = bytearray()

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def buffered_bytes(self) -> int:
        with self._lock:
            return len(self._buffer)

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription:
        return self._events.subscribe(topic, callback)

    def start(self, initial_text: str = "") -> None:
        with self._lock:
            self._request_id += 1
            self._active = True
            self._finished = False
            self._initial_text = initial_text.strip()
            self._buffer.clear()
        logger.info("Command capture started (initial text: %r)", initial_text)

    def send_audio(self, chunk: AudioChunk) -> None:
        superseded = False
        with self._lock:
            if not self._active or not chunk:
                return
            if self._finished:
                self._request_id += 1
                self._finished = False
                superseded = True
            self._buffer.extend(chunk)
        if superseded:
            logger.info("Continuation audio, superseding pending interpretation")
            self._interpreter.cancel()

    def finish(self) -> None:
        with self._lock:
            if not self._active or self._finished:
                return
            self._finished = True
            request = InterpretRequest(
                request_id=self._request_id,
                on_done=self._on_done,
                on_error=self._on_error,
                text=self._initial_text,
                audio=bytes(self._buffer),
            )
        logger.info("Submitting %d bytes of command audio", len(request.audio))
        self._interpreter.submit(request)

    def end(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            self._request_id += 1
            self._buffer.clear()
        logger.debug("Command capture ended")

    def close(self) -> None:
        self.end()
        self._interpreter.stop()

    def _on_done(self, request_id: int, result: CommandResult) -> None:
        if not self._claim(request_id):
            return
        self._events.publish("result", result)

    def _on_error(self, request_id: int, error: Exception) -> None:
        if not self._claim(request_id):
            return
        self._events.publish("error", error)

    def _claim(self, request_id: int) -> bool:
        """Accept the terminal answer for the current request exactly once."""
        with self._lock:
            if not self._active or request_id != self._request_id:
                logger.debug("Dropping stale interpretation %d", request_id)
                return False
            self._active = False
            self._buffer.clear()
            return True
