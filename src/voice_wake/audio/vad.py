"""Energy-based voice activity detection with entry/exit hysteresis."""

from __future__ import annotations

import logging
import time
from enum import Enum, auto
from typing import Callable

import numpy as np

from ..core.emitter import EventEmitter, Subscription
from .types import SAMPLE_WIDTH_BYTES, AudioChunk, VADConfig, pcm16_to_float32

logger = logging.getLogger("VAD")

_ENERGY_LOG_INTERVAL_S = 3.0


class VADState(Enum):
    SILENCE = auto()
    SPEECH = auto()


class VoiceActivityDetector:
    """
    Classifies fixed-size PCM frames as speech or silence.

    Topics:
        "speech_start"  - entered SPEECH
        "speech" chunk  - every chunk processed while in SPEECH (once per chunk)
        "speech_end"    - left SPEECH

    Chunks of any length are accepted; bytes that do not fill a whole frame are
    carried into the next call. Entering speech needs `speech_start_frames`
    consecutive loud frames, leaving it needs `speech_end_frames` consecutive
    quiet ones. The counter always restarts from zero when a frame disagrees.
    """

    TOPICS = ("speech_start", "speech", "speech_end")

    def __init__(self, config: VADConfig = VADConfig()):
        self._config = config
        self._events = EventEmitter(self.TOPICS)
        self._bytes_per_frame = config.frame_size * SAMPLE_WIDTH_BYTES
        self._state = VADState.SILENCE
        self._buffer = bytearray()
        self._consecutive_frames = 0
        # Bumped by reset() so an in-flight process() call can tell it was cut short.
        self._generation = 0
        self._max_energy_seen = 0.0
        self._last_energy_log = 0.0

    @property
    def config(self) -> VADConfig:
        return self._config

    @property
    def state(self) -> VADState:
        return self._state

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription:
        return self._events.subscribe(topic, callback)

    def process(self, chunk: AudioChunk) -> None:
        """Consume one chunk of audio and publish any state changes.

        A subscriber may call `reset()` while this runs; the rest of the
        chunk is then dropped instead of being counted against fresh state.
        """
        self._buffer.extend(chunk)
        generation = self._generation
        chunk_published = False

        while len(self._buffer) >= self._bytes_per_frame:
            frame = bytes(self._buffer[:self._bytes_per_frame])
            del self._buffer[:self._bytes_per_frame]

            energy = self.frame_energy(frame)
            self._log_energy(energy)
            is_speech = energy > self._config.energy_threshold

            if self._state is VADState.SILENCE:
                if not is_speech:
                    self._consecutive_frames = 0
                    continue
                self._consecutive_frames += 1
                if self._consecutive_frames >= self._config.speech_start_frames:
                    self._state = VADState.SPEECH
                    self._consecutive_frames = 0
                    logger.info("Speech started")
                    self._events.publish("speech_start")
                    if generation != self._generation:
                        return
                    self._events.publish("speech", chunk)
                    if generation != self._generation:
                        return
                    chunk_published = True
            else:
                if not chunk_published:
                    self._events.publish("speech", chunk)
                    if generation != self._generation:
                        return
                    chunk_published = True
                if is_speech:
                    self._consecutive_frames = 0
                    continue
                self._consecutive_frames += 1
                if self._consecutive_frames >= self._config.speech_end_frames:
                    self._state = VADState.SILENCE
                    self._consecutive_frames = 0
                    # A new utterance starting later in this chunk gets the chunk again.
                    chunk_published = False
                    logger.info("Speech ended")
                    self._events.publish("speech_end")
                    if generation != self._generation:
                        return

    def reset(self) -> None:
        """Force SILENCE and drop the partial frame and both counters."""
        self._generation += 1
        self._state = VADState.SILENCE
        self._buffer.clear()
        self._consecutive_frames = 0

    @staticmethod
    def frame_energy(frame: AudioChunk) -> float:
        """RMS of the normalised samples in one frame."""
        samples = pcm16_to_float32(frame)
        if samples.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(samples * samples)))

    def _log_energy(self, energy: float) -> None:
        if energy > self._max_energy_seen:
            self._max_energy_seen = energy
        if not logger.isEnabledFor(logging.DEBUG):
            return
        now = time.monotonic()
        if now - self._last_energy_log > _ENERGY_LOG_INTERVAL_S:
            logger.debug(
                "Energy: %.4f (max seen: %.4f, threshold: %s)",
                energy, self._max_energy_seen, self._config.energy_threshold,
            )
            self._last_energy_log = now
