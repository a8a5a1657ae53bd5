"""Fuzzy wake phrase detection over recognizer transcripts."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .phonetics import levenshtein_similarity, phonetic_similarity, sounds_like

logger = logging.getLogger("WakeMatcher")

DEFAULT_WAKE_PHRASES: Tuple[str, ...] = (
    "hi dee",
    "hi d",
    "heidi",
    "hey dee",
    "hey d",
    "hedy",
    "hide e",
    "hydie",
    "heydee",
    "hi di",
    "hey di",
)

DEFAULT_THRESHOLD = 0.55

LEVENSHTEIN_WEIGHT = 0.3
PHONETIC_WEIGHT = 0.4
SOUNDS_LIKE_WEIGHT = 0.3

_LEADING_PUNCTUATION = re.compile(r"^[\s,.;:!?\-]+")
_EDGE_PUNCTUATION = re.compile(r"^[^\w']+|[^\w']+$")


@dataclass(frozen=True)
class WakeMatchResult:
    matched: bool
    matched_phrase: Optional[str] = None
    matched_configured_phrase: Optional[str] = None
    confidence: float = 0.0
    residual_text: str = ""

    @classmethod
    def no_match(cls, transcript: str) -> "WakeMatchResult":
        return cls(matched=False, residual_text=transcript)


def _strip_leading_punctuation(text: str) -> str:
    return _LEADING_PUNCTUATION.sub("", text).strip()


class WakePhraseMatcher:
    """
    Decides whether a transcript contains a configured wake phrase.

    Matching is two-stage:

    1. An exact, case-insensitive substring hit on any configured phrase wins
       with confidence 1.0 and leaves whatever follows it as residual text.
    2. Otherwise every single word, then every adjacent word pair, of the
       transcript is scored against each phrase in order, and the first score
       reaching the threshold is accepted.

    The fuzzy score blends edit-distance similarity, Soundex-style phonetic
    similarity and a bonus when both sides collapse to the same canonical
    mishearing. Matchers are immutable; `add_phrase` and `with_threshold`
    return new instances.
    """

    def __init__(self, phrases: Iterable[str] = DEFAULT_WAKE_PHRASES, threshold: float = DEFAULT_THRESHOLD):
        normalized: List[str] = []
        for phrase in phrases:
            phrase = phrase.lower().strip()
            if phrase and phrase not in normalized:
                normalized.append(phrase)
        if not normalized:
            raise ValueError("At least one wake phrase is required")
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Threshold must be between 0 and 1, got {threshold}")
        self._phrases: Tuple[str, ...] = tuple(normalized)
        self._threshold = threshold

    @property
    def phrases(self) -> Tuple[str, ...]:
        return self._phrases

    @property
    def threshold(self) -> float:
        return self._threshold

    def add_phrase(self, phrase: str) -> "WakePhraseMatcher":
        return WakePhraseMatcher(self._phrases + (phrase,), self._threshold)

    def with_threshold(self, threshold: float) -> "WakePhraseMatcher":
        return WakePhraseMatcher(self._phrases, threshold)

    def match(self, transcript: str) -> WakeMatchResult:
        text = transcript.lower().strip()
        if not text:
            return WakeMatchResult.no_match(transcript)

        for phrase in self._phrases:
            index = text.find(phrase)
            if index >= 0:
                residual = _strip_leading_punctuation(text[index + len(phrase):])
                logger.debug("Exact wake phrase %r in %r", phrase, transcript)
                return WakeMatchResult(
                    matched=True,
                    matched_phrase=phrase,
                    matched_configured_phrase=phrase,
                    confidence=1.0,
                    residual_text=residual,
                )

        hit = self._first_fuzzy(text.split())
        if hit is None:
            return WakeMatchResult.no_match(transcript)

        score, candidate, phrase, residual = hit
        logger.debug("Fuzzy wake match %r ~ %r (%.2f)", candidate, phrase, score)
        return WakeMatchResult(
            matched=True,
            matched_phrase=candidate,
            matched_configured_phrase=phrase,
            confidence=score,
            residual_text=residual,
        )

    def score(self, candidate: str, phrase: str) -> float:
        total = LEVENSHTEIN_WEIGHT * levenshtein_similarity(candidate, phrase)
        total += PHONETIC_WEIGHT * phonetic_similarity(candidate, phrase)
        if sounds_like(candidate, phrase):
            total += SOUNDS_LIKE_WEIGHT
        return total

    def _candidates(self, words: Sequence[str]):
        """Yield (candidate, residual): every single word first, then every adjacent pair."""
        cleaned = [_EDGE_PUNCTUATION.sub("", w) for w in words]
        for i, word in enumerate(cleaned):
            if word:
                yield word, _strip_leading_punctuation(" ".join(words[i + 1:]))
        for i in range(len(cleaned) - 1):
            if cleaned[i] and cleaned[i + 1]:
                yield f"{cleaned[i]} {cleaned[i + 1]}", _strip_leading_punctuation(" ".join(words[i + 2:]))

    def _first_fuzzy(self, words: Sequence[str]) -> Optional[Tuple[float, str, str, str]]:
        for candidate, residual in self._candidates(words):
            for phrase in self._phrases:
                score = self.score(candidate, phrase)
                if score >= self._threshold:
                    return score, candidate, phrase, residual
        logger.debug("No wake candidate reached threshold %.2f", self._threshold)
        return None
