"""Background worker that turns captured commands into CommandResults."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from ..audio.types import pcm16_to_float32
from ..core.events import CommandResult
from ..core.worker import PipelineWorker
from .asr import Transcriber

if TYPE_CHECKING:
    from ..llm.llm import LLM

logger = logging.getLogger("Interpreter")


@dataclass(frozen=True)
class InterpretRequest:
    """
    One command to interpret.

    `text` is what was already heard (wake residual or streamed finals);
    `audio` is raw int16 PCM still to be transcribed, possibly empty.
    """
    request_id: int
    on_done: Callable[[int, CommandResult], None]
    on_error: Callable[[int, Exception], None]
    text: str = ""
    audio: bytes = b""


def join_transcript(*parts: str) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


class InterpreterWorker(PipelineWorker[InterpretRequest]):
    """
    Runs ASR (when audio is attached) and the LLM off the audio threads.

    Each request is answered through its own callbacks; callers drop answers
    for requests they have superseded.
    """

    def __init__(
        self,
        llm: "LLM",
        transcriber: Optional[Transcriber] = None,
        sample_rate: int = 16000,
    ):
        super().__init__(name="InterpreterThread", poll_interval_s=0.1)
        self._llm = llm
        self._transcriber = transcriber
        self._sample_rate = sample_rate

    def _setup_event_loop(self) -> asyncio.AbstractEventLoop:
        """Create event loop for async LLM calls."""
        return asyncio.new_event_loop()

    def handle(self, request: InterpretRequest) -> None:
        started_at = time.time()
        try:
            text = request.text
            if request.audio:
                if self._transcriber is None:
                    raise RuntimeError("Audio submitted but no transcriber is configured")
                heard, _, _ = self._transcriber.transcribe(
                    pcm16_to_float32(request.audio), self._sample_rate
                )
                text = join_transcript(text, heard)

            result = self._run_async(self._llm.interpret(text))
        except Exception as e:
            logger.error("Interpretation failed: %s", e)
            request.on_error(request.request_id, e)
            return

        if result is None:
            logger.debug("Interpretation %d cancelled", request.request_id)
            return
        logger.info("Interpretation finished in %.3fs", time.time() - started_at)
        request.on_done(request.request_id, result)
