from .matcher import DEFAULT_THRESHOLD, DEFAULT_WAKE_PHRASES, WakeMatchResult, WakePhraseMatcher

__all__ = ["DEFAULT_THRESHOLD", "DEFAULT_WAKE_PHRASES", "WakeMatchResult", "WakePhraseMatcher"]
