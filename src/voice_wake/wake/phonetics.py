"""String and sound-alike similarity measures used by the wake phrase matcher."""

from __future__ import annotations

import re

# Soundex-style consonant classes. Vowels and h/w/y are absent and break runs.
_CONSONANT_CLASSES = {
    "b": "1", "f": "1", "p": "1", "v": "1",
    "c": "2", "g": "2", "j": "2", "k": "2", "q": "2", "s": "2", "x": "2", "z": "2",
    "d": "3", "t": "3",
    "l": "4",
    "m": "5", "n": "5",
    "r": "6",
}

PHONETIC_CODE_LENGTH = 4

_NON_LETTERS = re.compile(r"[^a-z]")
_WHITESPACE = re.compile(r"\s+")

CANONICAL_WAKE_FORM = "hidee"

# Whole-word spellings the recognizer produces for the two-syllable wake phrase.
_SINGLE_WORD_FORMS = re.compile(r"^(heidi|hedy|hydie|haidee|haydi|heedy|hide|hidey?)$")
_GREETING_PREFIX = re.compile(r"^(high|hey|hi|hy)\s*")
_FUSED_PREFIX = re.compile(r"^(hide|heyd|hayd)")
_NAME_SUFFIX = re.compile(r"\s*(dee|di|dy|d|de|the|thee|d\s+e)$")


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning `a` into `b`."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def phonetic_code(word: str) -> str:
    """
    Four character Soundex-like code.

    The first letter is kept literally, later consonants are mapped to their
    class with repeats collapsed, vowels reset the run, and the result is
    padded with zeros or truncated to four characters. Non-letters are ignored,
    so "hi dee" and "hidee" share a code.
    """
    letters = _NON_LETTERS.sub("", word.lower())
    if not letters:
        return ""

    code = letters[0].upper()
    last = _CONSONANT_CLASSES.get(letters[0], "")
    for ch in letters[1:]:
        digit = _CONSONANT_CLASSES.get(ch)
        if digit and digit != last:
            code += digit
            last = digit
        elif not digit:
            last = ""

    return code[:PHONETIC_CODE_LENGTH].ljust(PHONETIC_CODE_LENGTH, "0")


def phonetic_similarity(a: str, b: str) -> float:
    """Fraction of positions at which the two phonetic codes agree."""
    code_a = phonetic_code(a)
    code_b = phonetic_code(b)
    if code_a == code_b:
        return 1.0
    longest = max(len(code_a), len(code_b))
    if longest == 0:
        return 0.0
    matches = sum(1 for x, y in zip(code_a, code_b) if x == y)
    return matches / longest


def normalize_phonetics(text: str) -> str:
    """Collapse well-known mishearings of the wake phrase to one canonical form."""
    result = text.lower().strip()
    if _SINGLE_WORD_FORMS.match(result):
        return CANONICAL_WAKE_FORM

    result = _GREETING_PREFIX.sub("hi", result, count=1)
    result = _FUSED_PREFIX.sub("hid", result, count=1)
    result = _NAME_SUFFIX.sub("dee", result, count=1)
    return _WHITESPACE.sub("", result)


def sounds_like(a: str, b: str) -> bool:
    return normalize_phonetics(a) == normalize_phonetics(b)
