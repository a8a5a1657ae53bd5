"""Contract shared by command capture sessions."""

from __future__ import annotations

from typing import Callable, Protocol

from ..audio.types import AudioChunk
from ..core.emitter import Subscription

COMMAND_SESSION_TOPICS = ("result", "error", "disconnected")


class CommandSession(Protocol):
    """
    Captures one spoken instruction after the wake phrase and produces a
    CommandResult.

    Topics: "result" (CommandResult), "error" (Exception), "disconnected".
    A session publishes at most one terminal event per interaction.
    """

    def start(self, initial_text: str = "") -> None:
        """Begin an interaction. `initial_text` is speech already heard after the wake phrase."""

    def send_audio(self, chunk: AudioChunk) -> None:
        """Add captured audio. Audio after `finish()` supersedes the pending result."""

    def finish(self) -> None:
        """The user stopped talking: interpret what was captured."""

    def end(self) -> None:
        """Abandon the interaction. No further events are published for it."""

    def close(self) -> None:
        """Release threads and streams."""

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription: ...
