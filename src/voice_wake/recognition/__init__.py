"""Streaming speech recognition: provider contract and session wrapper."""

from .provider import RecognitionConfig, RecognitionProvider, RecognitionStream
from .session import StreamingRecognitionSession

__all__ = [
    "RecognitionConfig",
    "RecognitionProvider",
    "RecognitionStream",
    "StreamingRecognitionSession",
]
