"""Capture and interpretation of the instruction spoken after the wake phrase."""

from .base import COMMAND_SESSION_TOPICS, CommandSession
from .buffered import BufferedCommandSession
from .interpreter import InterpretRequest, InterpreterWorker
from .streaming import StreamingCommandSession
from .tools import COMMAND_TOOLS, TOOL_NAMES, default_acknowledgment

__all__ = [
    "COMMAND_SESSION_TOPICS",
    "CommandSession",
    "BufferedCommandSession",
    "StreamingCommandSession",
    "InterpretRequest",
    "InterpreterWorker",
    "COMMAND_TOOLS",
    "TOOL_NAMES",
    "default_acknowledgment",
]
