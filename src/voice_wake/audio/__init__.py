"""Audio input: capture sources and voice activity detection."""

from .push_source import PushAudioSource
from .types import AudioChunk, AudioFormat, AudioSource, FrameConfig, VADConfig
from .vad import VADState, VoiceActivityDetector

__all__ = [
    "AudioChunk",
    "AudioFormat",
    "AudioSource",
    "FrameConfig",
    "VADConfig",
    "VADState",
    "VoiceActivityDetector",
    "PushAudioSource",
]
