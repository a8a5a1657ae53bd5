"""Push-based audio source for virtual/remote audio input."""

from __future__ import annotations

import logging
from typing import Callable

from ..core.emitter import EventEmitter, Subscription
from ..core.errors import AudioCaptureError
from .types import AUDIO_SOURCE_TOPICS, AudioChunk, AudioFormat

logger = logging.getLogger("PushAudioSource")


class PushAudioSource:
    """
    An AudioSource whose chunks are pushed by the caller.
    Useful for receiving audio from a remote client, replaying files, or tests.
    Chunks are delivered synchronously on the pushing thread.
    """

    def __init__(self, audio_format: AudioFormat = AudioFormat()):
        self._audio_format = audio_format
        self._events = EventEmitter(AUDIO_SOURCE_TOPICS)
        self._running = False

    @property
    def audio_format(self) -> AudioFormat:
        return self._audio_format

    @property
    def capturing(self) -> bool:
        return self._running

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription:
        return self._events.subscribe(topic, callback)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info("PushAudioSource started")
        self._events.publish("started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        logger.info("PushAudioSource stopped")
        self._events.publish("stopped")

    def push(self, chunk: AudioChunk) -> None:
        """External API to push audio into this source."""
        if not self._running:
            logger.debug("PushAudioSource: not started, dropping chunk")
            return
        self._events.publish("data", chunk)

    def fail(self, message: str) -> None:
        """Report a capture fault as a real device would."""
        self._events.publish("error", AudioCaptureError(message))
