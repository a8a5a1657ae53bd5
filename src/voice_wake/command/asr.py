"""Batch transcription of a captured command using faster-whisper."""

from __future__ import annotations

import logging
import re
import time
from typing import Optional, Protocol, Tuple

import numpy as np
from faster_whisper import WhisperModel

logger = logging.getLogger("ASR")

# Whisper hallucinates these on near-silent input.
_HALLUCINATION_PHRASES = (
    "thank you",
    "thanks for watching",
    "thanks for listening",
    "for watching",
)
_HALLUCINATION_LEAD_PATTERNS = tuple(
    re.compile(r"^\s*[.,!?]*\s*" + re.escape(p) + r"[.,!?\s]*", re.IGNORECASE)
    for p in _HALLUCINATION_PHRASES
)
_HALLUCINATION_TRAIL_PATTERNS = tuple(
    re.compile(r"[.,!?\s]*" + re.escape(p) + r"\s*[.,!?]*\s*$", re.IGNORECASE)
    for p in _HALLUCINATION_PHRASES
)

TranscriptionResult = Tuple[str, Optional[str], Optional[float]]


def strip_hallucination_phrases(text: str) -> str:
    t = text.strip()
    while True:
        changed = False
        for lead_re, trail_re in zip(_HALLUCINATION_LEAD_PATTERNS, _HALLUCINATION_TRAIL_PATTERNS):
            t_new = lead_re.sub("", t).strip()
            t_new = trail_re.sub("", t_new).strip()
            if t_new != t:
                t = t_new
                changed = True
                break
        if not changed:
            break
    return t


def language_from_code(language_code: Optional[str]) -> Optional[str]:
    """'en-US' -> 'en'. Whisper only takes the primary subtag."""
    if not language_code:
        return None
    return language_code.split("-")[0].lower() or None


class Transcriber(Protocol):
    def transcribe(self, pcm: np.ndarray, sample_rate: int) -> TranscriptionResult: ...


class WhisperTranscriber:
    """
    Transcribes a whole command recording with faster-whisper.

    The wake pipeline already segments speech with its own VAD, so whisper's
    built-in VAD and the hallucination thresholds are off by default.
    """

    def __init__(
        self,
        model_size: str = "base.en",
        device: str = "cpu",
        compute_type: str = "default",
        language_code: Optional[str] = "en-US",
        beam_size: int = 5,
        vad_filter: bool = False,
    ):
        logger.info("Loading ASR model: %s (device=%s)", model_size, device)
        self._model = WhisperModel(
            model_size,
            device=device,
            compute_type=compute_type,
        )
        self._model_size = model_size
        self._language = language_from_code(language_code)
        self._beam_size = beam_size
        self._vad_filter = vad_filter

    def transcribe(self, pcm: np.ndarray, sample_rate: int) -> TranscriptionResult:
        """
        Transcribe mono float32 audio.

        Returns (text, language, confidence). Empty audio returns ("", None, None).
        """
        if pcm.size == 0:
            return ("", None, None)
        if sample_rate != 16000:
            logger.warning("Whisper expects 16 kHz audio, got %d Hz", sample_rate)

        started_at = time.time()
        segments, info = self._model.transcribe(
            pcm,
            language=self._language,
            beam_size=self._beam_size,
            vad_filter=self._vad_filter,
            condition_on_previous_text=False,
        )
        text = " ".join(s.text.strip() for s in segments).strip()
        text = strip_hallucination_phrases(text)
        language = getattr(info, "language", None)
        confidence = getattr(info, "language_probability", None)

        logger.info("ASR finished in %.3fs: %r", time.time() - started_at, text)
        return (text, language, confidence)
