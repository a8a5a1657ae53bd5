"""Tests for the interpreter worker thread."""

import asyncio
import threading

import pytest
from unittest.mock import AsyncMock, MagicMock

from voice_wake.command.interpreter import InterpreterWorker, InterpretRequest, join_transcript
from voice_wake.core.errors import EmptyCommandError
from voice_wake.core.events import CommandResult
from tests.fakes import tone


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.interpret = AsyncMock(return_value=CommandResult(text="Taking a screenshot.", tool_name="take_screenshot"))
    return llm


@pytest.fixture
def transcriber():
    transcriber = MagicMock()
    transcriber.transcribe.return_value = ("take a screenshot", "en", 0.97)
    return transcriber


def run_handle(worker, request):
    """Run `handle` with the worker's loop set up, as the thread would."""
    worker._loop = worker._setup_event_loop()
    try:
        worker.handle(request)
    finally:
        worker._teardown_event_loop()


def make_request(callbacks, request_id=1, text="", audio=b""):
    return InterpretRequest(
        request_id=request_id,
        on_done=callbacks.on_done,
        on_error=callbacks.on_error,
        text=text,
        audio=audio,
    )


class TestInterpreterWorker:
    def test_text_only_request(self, llm):
        worker = InterpreterWorker(llm)
        callbacks = MagicMock()

        run_handle(worker, make_request(callbacks, text="stop recording"))

        llm.interpret.assert_awaited_once_with("stop recording")
        request_id, result = callbacks.on_done.call_args.args
        assert request_id == 1
        assert result.tool_name == "take_screenshot"
        callbacks.on_error.assert_not_called()

    def test_audio_is_transcribed_and_joined(self, llm, transcriber):
        worker = InterpreterWorker(llm, transcriber=transcriber)
        callbacks = MagicMock()

        run_handle(worker, make_request(callbacks, text="please", audio=tone(1600)))

        pcm, sample_rate = transcriber.transcribe.call_args.args
        assert pcm.dtype.name == "float32"
        assert pcm.size == 1600
        assert sample_rate == 16000
        llm.interpret.assert_awaited_once_with("please take a screenshot")

    def test_audio_without_transcriber_is_an_error(self, llm):
        worker = InterpreterWorker(llm)
        callbacks = MagicMock()

        run_handle(worker, make_request(callbacks, audio=tone(320)))

        request_id, error = callbacks.on_error.call_args.args
        assert request_id == 1
        assert isinstance(error, RuntimeError)
        llm.interpret.assert_not_called()

    def test_llm_errors_are_reported(self, llm):
        llm.interpret.side_effect = EmptyCommandError("No command was heard")
        worker = InterpreterWorker(llm)
        callbacks = MagicMock()

        run_handle(worker, make_request(callbacks, request_id=7))

        request_id, error = callbacks.on_error.call_args.args
        assert request_id == 7
        assert isinstance(error, EmptyCommandError)
        callbacks.on_done.assert_not_called()

    def test_cancelled_request_reports_nothing(self, llm):
        async def cancelled(_):
            raise asyncio.CancelledError()

        llm.interpret = cancelled
        worker = InterpreterWorker(llm)
        callbacks = MagicMock()

        run_handle(worker, make_request(callbacks, text="stop"))

        callbacks.on_done.assert_not_called()
        callbacks.on_error.assert_not_called()

    def test_worker_thread_processes_submitted_requests(self, llm):
        worker = InterpreterWorker(llm)
        done = threading.Event()
        results = []

        def on_done(request_id, result):
            results.append((request_id, result.text))
            done.set()

        worker.start()
        try:
            worker.submit(InterpretRequest(request_id=3, on_done=on_done, on_error=MagicMock(), text="screenshot"))
            assert done.wait(timeout=2.0)
        finally:
            worker.stop()
            worker.join(timeout=2.0)

        assert results == [(3, "Taking a screenshot.")]
        assert not worker.is_alive()


def test_join_transcript():
    assert join_transcript(" open ", "", "  ", "the chart ") == "open the chart"
    assert join_transcript() == ""
