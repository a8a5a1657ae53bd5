"""Queue-fed threads behind the audio pump, recognition streams and interpreter."""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from typing import Any, Generic, Optional, TypeVar

from .shutdown import GracefulShutdown, StopSignal

T = TypeVar("T")

logger = logging.getLogger(__name__)


class PipelineWorker(threading.Thread, Generic[T]):
    """
    A daemon thread that takes items off a queue and passes each to `handle()`.

    The worker owns its queue and stop flag unless they are handed in, which
    is how the microphone pump shares both with its capture thread. A failing
    `handle()` is logged and the next item is taken. `cleanup()` runs once on
    the way out.

    Workers that call async code return a loop from `_setup_event_loop()` and
    run coroutines with `_run_async()`; `cancel()` aborts the one in flight
    from any thread.
    """

    def __init__(
        self,
        *,
        name: str,
        stop_signal: Optional[StopSignal] = None,
        input_queue: Optional["queue.Queue[T]"] = None,
        max_pending: int = 0,
        poll_interval_s: float = 0.1,
    ):
        super().__init__(name=name, daemon=True)
        self._owns_signal = stop_signal is None
        self._stop_signal: StopSignal = stop_signal if stop_signal is not None else GracefulShutdown(name)
        self._input_queue: "queue.Queue[T]" = input_queue if input_queue is not None else queue.Queue(maxsize=max_pending)
        self._poll_interval_s = poll_interval_s
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._current_task: Optional[asyncio.Task] = None

    @property
    def stopping(self) -> bool:
        return self._stop_signal.is_set()

    def submit(self, item: T) -> None:
        """Queue an item, waiting for room if the queue is bounded."""
        self._input_queue.put(item)

    def offer(self, item: T) -> bool:
        """Queue an item unless the queue is full. Returns False when it was not queued."""
        try:
            self._input_queue.put_nowait(item)
        except queue.Full:
            return False
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Cancel the running task and ask the thread to exit.

        With `timeout`, also wait for it, unless called from the worker itself.
        A shared stop flag belongs to its owner and is left alone.
        """
        self.cancel()
        if self._owns_signal:
            self._stop_signal.stop()
        if timeout is not None and self.is_alive() and threading.current_thread() is not self:
            self.join(timeout=timeout)
            if self.is_alive():
                logger.warning(f"{self.name}: still running after {timeout}s")

    def run(self) -> None:
        self._loop = self._setup_event_loop()
        if self._loop is not None:
            asyncio.set_event_loop(self._loop)
        try:
            while not self._stop_signal.is_set():
                try:
                    item = self._input_queue.get(timeout=self._poll_interval_s)
                except queue.Empty:
                    continue

                try:
                    self.handle(item)
                except Exception as e:
                    logger.error(f"{self.name}: failed to handle item: {e}", exc_info=True)
                finally:
                    self._input_queue.task_done()
        finally:
            self.cleanup()
            self._teardown_event_loop()

    def _setup_event_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return None

    def _teardown_event_loop(self) -> None:
        if self._loop is not None:
            self._loop.close()
            self._loop = None

    def _run_async(self, coro) -> Any:
        """Run a coroutine on this worker's loop. Returns None if it was cancelled."""
        assert self._loop is not None, "Event loop not initialized"
        self._current_task = self._loop.create_task(coro)
        try:
            return self._loop.run_until_complete(self._current_task)
        except asyncio.CancelledError:
            logger.debug(f"{self.name}: task cancelled")
            return None
        finally:
            self._current_task = None

    def cancel(self) -> None:
        task = self._current_task
        if task and self._loop and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(task.cancel)

    def handle(self, item: T) -> None:
        raise NotImplementedError

    def cleanup(self) -> None:
        pass
