"""Stop flags for the capture, decoding and interpreter threads."""

import logging
import threading
from typing import Optional, Protocol

logger = logging.getLogger("Shutdown")


class StopSignal(Protocol):
    """What a pipeline thread checks, or sleeps on, to know when to exit."""

    def is_set(self) -> bool: ...

    def wait(self, timeout: Optional[float] = None) -> bool: ...


class GracefulShutdown:
    """
    One-shot stop flag owned by a single capture run, recognition stream,
    interpreter or service loop.

    Threads that only idle can block on `wait()` so a stop wakes them at once.
    """

    def __init__(self, owner: str = "pipeline"):
        self.owner = owner
        self._event = threading.Event()

    def stop(self, reason: str = "") -> None:
        if self._event.is_set():
            return
        if reason:
            logger.debug("%s: stop requested (%s)", self.owner, reason)
        else:
            logger.debug("%s: stop requested", self.owner)
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)
