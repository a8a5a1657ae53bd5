"""Microphone audio capture."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional

import sounddevice as sd

from ..core.emitter import EventEmitter, Subscription
from ..core.errors import AudioCaptureError
from ..core.shutdown import GracefulShutdown, StopSignal
from ..core.worker import PipelineWorker
from .types import AUDIO_SOURCE_TOPICS, AudioChunk, AudioFormat, FrameConfig

logger = logging.getLogger("Microphone")


class CaptureThread(threading.Thread):
    """
    Continuously captures microphone audio and pushes raw int16 chunks into frames_queue.

    Important: keep callback lightweight; no VAD/recognition here.
    """

    def __init__(
        self,
        stop_signal: StopSignal,
        audio_format: AudioFormat,
        frame_cfg: FrameConfig,
        frames_queue: "queue.Queue[AudioChunk]",
        events: EventEmitter,
        device: Optional[int] = None,
    ):
        super().__init__(name="MicThread", daemon=True)
        self._stop_signal = stop_signal
        self._audio_format = audio_format
        self._frame_cfg = frame_cfg
        self._frames_queue = frames_queue
        self._events = events
        self._device = device

    def run(self) -> None:
        """Open the input stream and idle until the stop signal is set."""
        blocksize = int(self._audio_format.sample_rate * self._frame_cfg.frame_ms / 1000)

        def audio_callback(indata, frames, time_info, status):
            """Callback function for sounddevice raw audio stream."""
            if status:
                logger.warning(f"Audio callback status: {status}")
            try:
                self._frames_queue.put_nowait(bytes(indata))
            except queue.Full:
                logger.warning("Frames queue is full, dropping audio chunk")

        try:
            with sd.RawInputStream(
                callback=audio_callback,
                samplerate=self._audio_format.sample_rate,
                channels=self._audio_format.channels,
                blocksize=blocksize,
                dtype=self._audio_format.dtype,
                device=self._device,
            ):
                logger.info(
                    "Capturing audio (sample rate %d, channels %d)",
                    self._audio_format.sample_rate, self._audio_format.channels,
                )
                self._events.publish("started")
                self._stop_signal.wait()
        except Exception as e:
            logger.error(f"Error in microphone capture: {e}", exc_info=True)
            self._events.publish("error", AudioCaptureError(f"Microphone capture failed: {e}"))
        finally:
            logger.info("Microphone capture stopped")


class AudioPump(PipelineWorker[AudioChunk]):
    """Moves captured chunks off the audio callback thread and publishes them."""

    def __init__(
        self,
        stop_signal: StopSignal,
        frames_queue: "queue.Queue[AudioChunk]",
        events: EventEmitter,
    ):
        super().__init__(
            name="AudioPumpThread",
            stop_signal=stop_signal,
            input_queue=frames_queue,
            poll_interval_s=0.05,
        )
        self._events = events

    def handle(self, item: AudioChunk) -> None:
        self._events.publish("data", item)


class Microphone:
    """
    AudioSource backed by the default (or configured) input device.

    Each `start()` spins up a fresh capture thread and pump; `stop()` is idempotent.
    """

    def __init__(
        self,
        audio_format: AudioFormat = AudioFormat(),
        frame_cfg: FrameConfig = FrameConfig(),
        device: Optional[int] = None,
    ):
        self._audio_format = audio_format
        self._frame_cfg = frame_cfg
        self._device = device
        self._events = EventEmitter(AUDIO_SOURCE_TOPICS)
        self._lock = threading.Lock()
        self._shutdown: Optional[GracefulShutdown] = None
        self._capture: Optional[CaptureThread] = None
        self._pump: Optional[AudioPump] = None

    @property
    def audio_format(self) -> AudioFormat:
        return self._audio_format

    @property
    def capturing(self) -> bool:
        with self._lock:
            return self._shutdown is not None

    def subscribe(self, topic: str, callback: Callable[..., None]) -> Subscription:
        return self._events.subscribe(topic, callback)

    def start(self) -> None:
        with self._lock:
            if self._shutdown is not None:
                logger.warning("Already capturing")
                return
            shutdown = GracefulShutdown("Microphone")
            frames_queue: "queue.Queue[AudioChunk]" = queue.Queue(maxsize=self._frame_cfg.max_frames_queue)
            self._capture = CaptureThread(
                stop_signal=shutdown,
                audio_format=self._audio_format,
                frame_cfg=self._frame_cfg,
                frames_queue=frames_queue,
                events=self._events,
                device=self._device,
            )
            self._pump = AudioPump(stop_signal=shutdown, frames_queue=frames_queue, events=self._events)
            self._shutdown = shutdown
            self._pump.start()
            self._capture.start()

    def stop(self) -> None:
        with self._lock:
            shutdown, capture, pump = self._shutdown, self._capture, self._pump
            self._shutdown = self._capture = self._pump = None
        if shutdown is None:
            return
        shutdown.stop("microphone stopped")
        if capture is not None and capture is not threading.current_thread() and capture.is_alive():
            capture.join(timeout=1.0)
        if pump is not None:
            pump.stop(timeout=1.0)
        self._events.publish("stopped")


def check_input_device(device: Optional[int] = None) -> str:
    """Describe the input device that would be used, for status checks."""
    try:
        info = sd.query_devices(device, kind="input")
    except Exception as e:
        return f"unavailable ({e})"
    return f"{info['name']} ({int(info['default_samplerate'])} Hz)"
