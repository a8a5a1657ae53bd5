"""Exception hierarchy for the wake pipeline."""


class VoiceWakeError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(VoiceWakeError, ValueError):
    """Invalid or missing configuration."""


class AudioCaptureError(VoiceWakeError):
    """Microphone unavailable, permission denied or the capture stream died."""


class RecognitionSessionError(VoiceWakeError):
    """Streaming recognition session could not be opened or used."""


class RecognitionUnavailableError(RecognitionSessionError):
    """No recognition backend is configured (missing model or credentials)."""


class CommandSessionError(VoiceWakeError):
    """The command session failed or disconnected mid-interaction."""


class EmptyCommandError(CommandSessionError):
    """Nothing intelligible was captured in the command window."""
