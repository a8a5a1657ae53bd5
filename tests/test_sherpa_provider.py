"""Tests for the sherpa-onnx recognition provider with a mocked recognizer."""

import pytest
from unittest.mock import MagicMock, patch

from voice_wake.core.errors import RecognitionSessionError, RecognitionUnavailableError
from voice_wake.recognition.provider import RecognitionConfig
from voice_wake.recognition.sherpa import SherpaRecognitionProvider, SherpaRecognitionStream
from tests.fakes import tone


@pytest.fixture
def recognizer():
    recognizer = MagicMock()
    recognizer.is_ready.return_value = False
    recognizer.is_endpoint.return_value = False
    recognizer.get_result.return_value = ""
    return recognizer


@pytest.fixture
def callbacks():
    return MagicMock()


@pytest.fixture
def stream(recognizer, callbacks):
    return SherpaRecognitionStream(
        recognizer,
        RecognitionConfig(),
        on_result=callbacks.on_result,
        on_error=callbacks.on_error,
        on_end=callbacks.on_end,
    )


def results(callbacks):
    return [(c.args[0].text, c.args[0].is_final) for c in callbacks.on_result.call_args_list]


class TestSherpaRecognitionProvider:
    def test_missing_model_dir_is_unavailable(self):
        with pytest.raises(RecognitionUnavailableError):
            SherpaRecognitionProvider(model_dir=None).initialize()

    def test_nonexistent_model_dir_is_unavailable(self, tmp_path):
        provider = SherpaRecognitionProvider(model_dir=str(tmp_path / "missing"))
        with pytest.raises(RecognitionUnavailableError):
            provider.initialize()
        assert not provider.initialized

    def test_initialize_loads_transducer_once(self, tmp_path):
        with patch("voice_wake.recognition.sherpa.sherpa_onnx") as mock_sherpa:
            provider = SherpaRecognitionProvider(model_dir=str(tmp_path), num_threads=4)
            provider.initialize()
            provider.initialize()

        mock_sherpa.OnlineRecognizer.from_transducer.assert_called_once()
        kwargs = mock_sherpa.OnlineRecognizer.from_transducer.call_args.kwargs
        assert kwargs["tokens"] == str(tmp_path / "tokens.txt")
        assert kwargs["num_threads"] == 4
        assert kwargs["enable_endpoint_detection"] is True
        assert provider.initialized

    def test_open_before_initialize_raises(self):
        provider = SherpaRecognitionProvider(model_dir="/models")
        with pytest.raises(RecognitionSessionError):
            provider.open(RecognitionConfig(), MagicMock(), MagicMock(), MagicMock())

    def test_open_rejects_sample_rate_mismatch(self, tmp_path):
        with patch("voice_wake.recognition.sherpa.sherpa_onnx"):
            provider = SherpaRecognitionProvider(model_dir=str(tmp_path))
            provider.initialize()
            with pytest.raises(RecognitionSessionError):
                provider.open(RecognitionConfig(sample_rate=8000), MagicMock(), MagicMock(), MagicMock())

    def test_open_starts_stream_thread(self, tmp_path):
        with patch("voice_wake.recognition.sherpa.sherpa_onnx"):
            provider = SherpaRecognitionProvider(model_dir=str(tmp_path))
            provider.initialize()
            stream = provider.open(RecognitionConfig(), MagicMock(), MagicMock(), MagicMock())
        try:
            assert stream.is_alive()
        finally:
            stream.close()
            stream.join(timeout=1.0)
        assert not stream.is_alive()

    def test_close_forgets_recognizer(self, tmp_path):
        with patch("voice_wake.recognition.sherpa.sherpa_onnx"):
            provider = SherpaRecognitionProvider(model_dir=str(tmp_path))
            provider.initialize()
        provider.close()
        assert not provider.initialized


class TestSherpaRecognitionStream:
    def test_interim_published_when_text_changes(self, stream, recognizer, callbacks):
        recognizer.get_result.side_effect = ["hey", "hey", "hey d"]
        for _ in range(3):
            stream.handle(tone(320))

        assert results(callbacks) == [("hey", False), ("hey d", False)]

    def test_endpoint_publishes_final_and_resets(self, stream, recognizer, callbacks):
        recognizer.get_result.return_value = "hey d start recording"
        recognizer.is_endpoint.return_value = True

        stream.handle(tone(320))

        assert results(callbacks)[-1] == ("hey d start recording", True)
        recognizer.reset.assert_called_once()

    def test_interims_disabled(self, recognizer, callbacks):
        stream = SherpaRecognitionStream(
            recognizer,
            RecognitionConfig(interim_results=False),
            on_result=callbacks.on_result,
            on_error=callbacks.on_error,
            on_end=callbacks.on_end,
        )
        recognizer.get_result.return_value = "hey"
        stream.handle(tone(320))
        callbacks.on_result.assert_not_called()

    def test_decodes_while_ready(self, stream, recognizer):
        recognizer.is_ready.side_effect = [True, True, False]
        stream.handle(tone(320))
        assert recognizer.decode_stream.call_count == 2

    def test_finalize_flushes_final_then_ends(self, stream, recognizer, callbacks):
        recognizer.get_result.return_value = "take a screenshot"
        stream.finalize()
        stream.handle(stream._input_queue.get_nowait())

        assert results(callbacks) == [("take a screenshot", True)]
        callbacks.on_end.assert_called_once()
        names = [c[0] for c in callbacks.mock_calls]
        assert names.index("on_result") < names.index("on_end")
        with pytest.raises(RecognitionSessionError):
            stream.write(tone(320))

    def test_write_after_finalize_raises(self, stream):
        stream.finalize()
        with pytest.raises(RecognitionSessionError):
            stream.write(tone(320))

    def test_write_after_close_raises(self, stream):
        stream.close()
        with pytest.raises(RecognitionSessionError):
            stream.write(tone(320))

    def test_write_raises_when_queue_full(self, recognizer, callbacks):
        stream = SherpaRecognitionStream(
            recognizer,
            RecognitionConfig(),
            on_result=callbacks.on_result,
            on_error=callbacks.on_error,
            on_end=callbacks.on_end,
            max_pending=1,
        )
        stream.write(tone(320))
        with pytest.raises(RecognitionSessionError):
            stream.write(tone(320))

    def test_decoding_failure_reports_error(self, stream, recognizer, callbacks):
        recognizer.decode_stream.side_effect = RuntimeError("onnx")
        recognizer.is_ready.return_value = True

        stream.handle(tone(320))

        error = callbacks.on_error.call_args.args[0]
        assert isinstance(error, RecognitionSessionError)
        with pytest.raises(RecognitionSessionError):
            stream.write(tone(320))

    def test_items_after_close_are_ignored(self, stream, recognizer, callbacks):
        stream.close()
        stream.handle(tone(320))
        recognizer.create_stream.return_value.accept_waveform.assert_not_called()
        callbacks.on_result.assert_not_called()
