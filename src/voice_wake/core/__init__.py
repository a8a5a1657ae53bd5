"""Core building blocks: events, emitter, timers, workers."""

from .emitter import EventEmitter, Subscription, cancel_all
from .errors import (
    AudioCaptureError,
    CommandSessionError,
    ConfigurationError,
    EmptyCommandError,
    RecognitionSessionError,
    RecognitionUnavailableError,
    VoiceWakeError,
)
from .events import (
    CommandResult,
    CommandResultEvent,
    ErrorEvent,
    OrchestratorState,
    StatusChanged,
    Topic,
    TranscriptEvent,
    TranscriptUpdate,
    WakeDetected,
)
from .shutdown import GracefulShutdown, StopSignal
from .timers import Scheduler, ThreadingScheduler, TimerTable
from .worker import PipelineWorker

__all__ = [
    "EventEmitter",
    "Subscription",
    "cancel_all",
    "VoiceWakeError",
    "ConfigurationError",
    "AudioCaptureError",
    "RecognitionSessionError",
    "RecognitionUnavailableError",
    "CommandSessionError",
    "EmptyCommandError",
    "CommandResult",
    "CommandResultEvent",
    "ErrorEvent",
    "OrchestratorState",
    "StatusChanged",
    "Topic",
    "TranscriptEvent",
    "TranscriptUpdate",
    "WakeDetected",
    "GracefulShutdown",
    "StopSignal",
    "Scheduler",
    "ThreadingScheduler",
    "TimerTable",
    "PipelineWorker",
]
