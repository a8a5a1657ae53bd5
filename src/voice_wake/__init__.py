"""Wake word front-end: VAD, streaming recognition, fuzzy wake matching and command capture."""

from .core.events import OrchestratorState, Topic
from .orchestrator import OrchestratorConfig, WakeWordOrchestrator
from .wake.matcher import WakeMatchResult, WakePhraseMatcher

__version__ = "0.1.0"

__all__ = [
    "OrchestratorConfig",
    "OrchestratorState",
    "Topic",
    "WakeMatchResult",
    "WakePhraseMatcher",
    "WakeWordOrchestrator",
]
