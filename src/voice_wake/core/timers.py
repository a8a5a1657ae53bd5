"""Named, cancellable timers owned by a single component."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock plus deferred-call source. Swapped for a manual clock in tests."""

    def now(self) -> float: ...

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Scheduler backed by `threading.Timer` and the monotonic clock."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass
class _Entry:
    token: object
    handle: TimerHandle
    callback: Callable[[], None]
    scope: Optional[Hashable]


class TimerTable:
    """
    Table of named timers.

    A timer belongs to an optional scope (e.g. the state that started it).
    `retain(scope)` cancels every timer from another scope, which is what a
    state transition calls. A firing that lost a race with `cancel()` is
    discarded by token, so a cancelled timer never reaches its callback.

    When `serialize` is true the callback runs while holding `lock`; owners
    whose callbacks publish events to other lock holders pass False and
    re-validate inside the callback instead.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        lock: Optional[threading.RLock] = None,
        serialize: bool = True,
        name: str = "timers",
    ):
        self._scheduler = scheduler or ThreadingScheduler()
        self._lock = lock or threading.RLock()
        self._serialize = serialize
        self._name = name
        self._entries: Dict[str, _Entry] = {}

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def start(
        self,
        name: str,
        delay_s: float,
        callback: Callable[[], None],
        scope: Optional[Hashable] = None,
    ) -> None:
        """Start (or restart) the timer called `name`."""
        with self._lock:
            self._cancel_locked(name)
            token = object()
            handle = self._scheduler.call_later(delay_s, lambda: self._fire(name, token))
            self._entries[name] = _Entry(token=token, handle=handle, callback=callback, scope=scope)
        logger.debug("[%s] started timer %s (%.2fs, scope=%s)", self._name, name, delay_s, scope)

    def cancel(self, name: str) -> bool:
        with self._lock:
            return self._cancel_locked(name)

    def cancel_all(self) -> List[str]:
        with self._lock:
            names = list(self._entries)
            for name in names:
                self._cancel_locked(name)
        return names

    def retain(self, scope: Optional[Hashable]) -> List[str]:
        """Cancel every timer whose scope differs from `scope`."""
        with self._lock:
            stale = [name for name, entry in self._entries.items() if entry.scope != scope]
            for name in stale:
                self._cancel_locked(name)
        if stale:
            logger.debug("[%s] cancelled %s on entering %s", self._name, stale, scope)
        return stale

    def is_pending(self, name: str) -> bool:
        with self._lock:
            return name in self._entries

    def pending(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    def _cancel_locked(self, name: str) -> bool:
        entry = self._entries.pop(name, None)
        if entry is None:
            return False
        entry.handle.cancel()
        return True

    def _fire(self, name: str, token: object) -> None:
        with self._lock:
            entry = self._entries.get(name)
            if entry is None or entry.token is not token:
                return
            del self._entries[name]
            if self._serialize:
                self._invoke(name, entry.callback)
                return
        self._invoke(name, entry.callback)

    def _invoke(self, name: str, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as exc:
            logger.error("[%s] timer %s callback failed: %s", self._name, name, exc, exc_info=True)
