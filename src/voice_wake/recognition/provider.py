"""Contract between the recognition session and a streaming speech backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Tuple

from ..audio.types import AudioChunk
from ..core.events import TranscriptEvent

ResultCallback = Callable[[TranscriptEvent], None]
ErrorCallback = Callable[[Exception], None]
EndCallback = Callable[[], None]


@dataclass(frozen=True)
class RecognitionConfig:
    """Handshake sent once when a stream opens."""
    sample_rate: int = 16000
    language_code: str = "en-US"
    interim_results: bool = True
    enable_automatic_punctuation: bool = True
    phrase_hints: Tuple[str, ...] = ()
    hint_boost: float = 15.0


class RecognitionStream(Protocol):
    """One open, bidirectional recognition stream."""

    def write(self, chunk: AudioChunk) -> None:
        """Send audio. Raises if the stream can no longer accept audio."""

    def finalize(self) -> None:
        """Flush buffered audio, emit a final result for it, then end the stream."""

    def close(self) -> None:
        """Release the stream. No callbacks are required after this returns."""


class RecognitionProvider(Protocol):
    """Factory for recognition streams, initialised once."""

    def initialize(self) -> None:
        """Load models/credentials. Raises RecognitionUnavailableError when not configured."""

    def open(
        self,
        config: RecognitionConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
        on_end: EndCallback,
    ) -> RecognitionStream: ...

    def close(self) -> None: ...
