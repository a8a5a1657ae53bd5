from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import time


class OrchestratorState(Enum):
    IDLE = "idle"                      # Waiting for speech
    LISTENING = "listening"            # Speech detected, streaming to recognizer
    WAKE_DETECTED = "wake_detected"    # Wake phrase matched, opening command session
    COMMAND_WINDOW = "command_window"  # Capturing the spoken instruction
    PROCESSING = "processing"          # Waiting for the command result
    ERROR = "error"                    # Capture failed, start() required


@dataclass(frozen=True)
class TranscriptEvent:
    """One recognition result. Interims are superseded; finals end the utterance."""
    text: str
    confidence: float = 0.0
    is_final: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class CommandResult:
    """Terminal outcome of a command interaction."""
    text: str
    tool_name: Optional[str] = None
    args: Dict[str, Any] = field(default_factory=dict)
    transcript: str = ""


# Published lifecycle events. These are the whole surface the application sees.

class Topic:
    STATUS = "status"
    WAKE_DETECTED = "wake_detected"
    TRANSCRIPT = "transcript"
    COMMAND_RESULT = "command_result"
    ERROR = "error"

    ALL = (STATUS, WAKE_DETECTED, TRANSCRIPT, COMMAND_RESULT, ERROR)


@dataclass(frozen=True)
class StatusChanged:
    state: OrchestratorState
    previous: OrchestratorState


@dataclass(frozen=True)
class WakeDetected:
    transcript: str
    confidence: float
    matched_phrase: str = ""


@dataclass(frozen=True)
class TranscriptUpdate:
    text: str
    is_final: bool


@dataclass(frozen=True)
class CommandResultEvent:
    text: str
    tool_name: Optional[str] = None
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    state: Optional[OrchestratorState] = None
