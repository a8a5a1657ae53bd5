"""Audio input data types and configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np

from ..core.emitter import Subscription

# Raw mono PCM, 16-bit signed little-endian.
AudioChunk = bytes

SAMPLE_WIDTH_BYTES = 2
INT16_SCALE = 32768.0


@dataclass(frozen=True)
class AudioFormat:
    """Audio format description, fixed for the lifetime of one capture."""
    sample_rate: int = 16000
    channels: int = 1
    dtype: str = "int16"  # sounddevice dtype name


@dataclass(frozen=True)
class FrameConfig:
    """Capture block configuration."""
    frame_ms: int = 20
    max_frames_queue: int = 400


@dataclass(frozen=True)
class VADConfig:
    """Energy VAD configuration."""
    energy_threshold: float = 0.02
    speech_start_frames: int = 3
    speech_end_frames: int = 15  # ~240ms at 16kHz with 256 sample frames
    frame_size: int = 256
    sample_rate: int = 16000


class AudioSource(Protocol):
    """
    Push source of AudioChunk.

    Topics: "data" (chunk), "error" (exception), "started", "stopped".
    """

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription: ...


AUDIO_SOURCE_TOPICS = ("data", "error", "started", "stopped")


def pcm16_to_float32(chunk: AudioChunk) -> np.ndarray:
    """Decode little-endian int16 bytes into float32 samples in [-1, 1)."""
    usable = len(chunk) - (len(chunk) % SAMPLE_WIDTH_BYTES)
    samples = np.frombuffer(chunk[:usable], dtype="<i2")
    return samples.astype(np.float32) / INT16_SCALE


def float32_to_pcm16(pcm: np.ndarray) -> AudioChunk:
    """Encode float32 samples in [-1, 1] as little-endian int16 bytes."""
    clipped = np.clip(pcm, -1.0, 32767.0 / INT16_SCALE)
    return (clipped * INT16_SCALE).astype("<i2").tobytes()
