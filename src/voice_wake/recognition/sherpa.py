"""Streaming recognition using sherpa-onnx."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional, Union

import sherpa_onnx

from ..audio.types import AudioChunk, pcm16_to_float32
from ..core.errors import RecognitionSessionError, RecognitionUnavailableError
from ..core.events import TranscriptEvent
from ..core.worker import PipelineWorker
from .provider import EndCallback, ErrorCallback, RecognitionConfig, ResultCallback

logger = logging.getLogger("SherpaRecognition")

_FINALIZE = object()

_Item = Union[AudioChunk, object]


class SherpaRecognitionStream(PipelineWorker[_Item]):
    """
    One sherpa-onnx OnlineStream decoded on its own thread.

    Publishes an interim result whenever the hypothesis text changes and a
    final result on endpoint detection or `finalize()`. The stream only ends
    after a `finalize()` flush: the flushed final is followed by `on_end` and
    the decoding thread exits.
    """

    def __init__(
        self,
        recognizer: "sherpa_onnx.OnlineRecognizer",
        config: RecognitionConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
        on_end: EndCallback,
        max_pending: int = 400,
    ):
        super().__init__(
            name="SherpaStreamThread",
            max_pending=max_pending,
            poll_interval_s=0.01,  # Low poll interval for responsiveness
        )
        self._recognizer = recognizer
        self._stream = recognizer.create_stream()
        self._config = config
        self._on_result = on_result
        self._on_error = on_error
        self._on_end = on_end
        self._last_text = ""
        self._finished = False
        self._closed = threading.Event()

    def write(self, chunk: AudioChunk) -> None:
        if self._closed.is_set():
            raise RecognitionSessionError("Recognition stream is closed")
        if self._finished:
            raise RecognitionSessionError("Recognition stream was finalized")
        if not self.offer(chunk):
            raise RecognitionSessionError("Recognition stream is not keeping up")

    def finalize(self) -> None:
        if self._closed.is_set() or self._finished:
            return
        self._finished = True
        self.submit(_FINALIZE)

    def close(self) -> None:
        # No join: the decoding thread may be blocked delivering a result to the caller.
        self._closed.set()
        self.stop()

    def handle(self, item: _Item) -> None:
        if self._closed.is_set():
            return
        try:
            if item is _FINALIZE:
                self._finish()
            else:
                self._accept(item)
        except Exception as e:
            logger.error("Sherpa decoding failed: %s", e, exc_info=True)
            self.close()
            self._on_error(RecognitionSessionError(f"Sherpa decoding failed: {e}"))

    def _accept(self, chunk: AudioChunk) -> None:
        self._stream.accept_waveform(self._config.sample_rate, pcm16_to_float32(chunk))
        self._decode_ready()

        text = self._recognizer.get_result(self._stream).strip()
        is_endpoint = self._recognizer.is_endpoint(self._stream)

        if text and text != self._last_text and self._config.interim_results:
            self._last_text = text
            self._on_result(TranscriptEvent(text=text, is_final=False))

        if is_endpoint:
            if text:
                logger.info("Final transcription: %s", text)
                self._on_result(TranscriptEvent(text=text, confidence=1.0, is_final=True))
            self._recognizer.reset(self._stream)
            self._last_text = ""

    def _finish(self) -> None:
        self._stream.input_finished()
        self._decode_ready()
        text = self._recognizer.get_result(self._stream).strip()
        self._last_text = ""
        self._on_result(TranscriptEvent(text=text, confidence=1.0, is_final=True))
        self.close()
        self._on_end()

    def _decode_ready(self) -> None:
        while self._recognizer.is_ready(self._stream):
            self._recognizer.decode_stream(self._stream)


class SherpaRecognitionProvider:
    """
    RecognitionProvider running a sherpa-onnx streaming zipformer transducer.

    The model is loaded once in `initialize()`; each `open()` creates a cheap
    OnlineStream with its own decoding thread.
    """

    def __init__(
        self,
        model_dir: Optional[str],
        num_threads: int = 2,
        sample_rate: int = 16000,
        decoding_method: str = "greedy_search",
    ):
        self._model_dir = model_dir
        self._num_threads = num_threads
        self._sample_rate = sample_rate
        self._decoding_method = decoding_method
        self._recognizer: Optional["sherpa_onnx.OnlineRecognizer"] = None

    @property
    def initialized(self) -> bool:
        return self._recognizer is not None

    def initialize(self) -> None:
        if self._recognizer is not None:
            return
        if not self._model_dir:
            raise RecognitionUnavailableError("SHERPA_MODEL_DIR is not configured")
        model_path = Path(self._model_dir)
        if not model_path.exists():
            raise RecognitionUnavailableError(f"Sherpa-ONNX model directory not found: {self._model_dir}")

        self._recognizer = sherpa_onnx.OnlineRecognizer.from_transducer(
            tokens=str(model_path / "tokens.txt"),
            encoder=str(model_path / "encoder-epoch-99-avg-1.onnx"),
            decoder=str(model_path / "decoder-epoch-99-avg-1.onnx"),
            joiner=str(model_path / "joiner-epoch-99-avg-1.onnx"),
            num_threads=self._num_threads,
            sample_rate=self._sample_rate,
            feature_dim=80,
            enable_endpoint_detection=True,
            rule1_min_trailing_silence=2.4,
            rule2_min_trailing_silence=1.2,
            rule3_min_utterance_length=20.0,
            decoding_method=self._decoding_method,
        )
        logger.info("Sherpa recognizer initialized with model from %s", self._model_dir)

    def open(
        self,
        config: RecognitionConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
        on_end: EndCallback,
    ) -> SherpaRecognitionStream:
        if self._recognizer is None:
            raise RecognitionSessionError("SherpaRecognitionProvider not initialized. Call initialize() first.")
        if config.sample_rate != self._sample_rate:
            raise RecognitionSessionError(
                f"Stream sample rate {config.sample_rate} does not match model rate {self._sample_rate}"
            )
        if config.phrase_hints:
            logger.debug("Phrase hints are not used with %s decoding", self._decoding_method)

        stream = SherpaRecognitionStream(
            recognizer=self._recognizer,
            config=config,
            on_result=on_result,
            on_error=on_error,
            on_end=on_end,
        )
        stream.start()
        return stream

    def close(self) -> None:
        self._recognizer = None
