"""Tests for command transcription with faster-whisper."""

import numpy as np
import pytest
from unittest.mock import MagicMock, patch

from voice_wake.command.asr import WhisperTranscriber, language_from_code, strip_hallucination_phrases


def generate_pcm(sample_rate=16000, duration_s=0.5):
    """Generate short float32 mono PCM (deterministic)."""
    n = int(sample_rate * duration_s)
    t = np.linspace(0, duration_s, n, dtype=np.float32)
    return (0.3 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)


def whisper_returning(segments, language="en", probability=0.95):
    info = MagicMock(language=language, language_probability=probability)
    return patch(
        "voice_wake.command.asr.WhisperModel",
        return_value=MagicMock(transcribe=MagicMock(return_value=(iter(segments), info))),
    )


class TestWhisperTranscriber:
    """Unit tests for WhisperTranscriber with mocked faster-whisper."""

    def test_transcribe_returns_text_language_confidence(self):
        with whisper_returning([MagicMock(text=" start recording ")]):
            transcriber = WhisperTranscriber(model_size="tiny.en")
            text, language, confidence = transcriber.transcribe(generate_pcm(), 16000)
        assert text == "start recording"
        assert language == "en"
        assert confidence == 0.95

    def test_transcribe_passes_language_and_beam_size(self):
        with whisper_returning([MagicMock(text=" hello ")]) as mock_cls:
            transcriber = WhisperTranscriber(language_code="en-GB", beam_size=2)
            transcriber.transcribe(generate_pcm(), 16000)
        kwargs = mock_cls.return_value.transcribe.call_args.kwargs
        assert kwargs["language"] == "en"
        assert kwargs["beam_size"] == 2
        assert kwargs["vad_filter"] is False

    def test_transcribe_empty_pcm_returns_empty_result(self):
        with whisper_returning([]) as mock_cls:
            transcriber = WhisperTranscriber()
            result = transcriber.transcribe(np.array([], dtype=np.float32), 16000)
        assert result == ("", None, None)
        mock_cls.return_value.transcribe.assert_not_called()

    def test_transcribe_joins_segments(self):
        segments = [MagicMock(text=" take a "), MagicMock(text=" screenshot ")]
        with whisper_returning(segments):
            text, _, _ = WhisperTranscriber().transcribe(generate_pcm(), 16000)
        assert text == "take a screenshot"

    def test_transcribe_strips_hallucination_at_end(self):
        segments = [MagicMock(text=" open the chart "), MagicMock(text=" Thank you. ")]
        with whisper_returning(segments):
            text, _, _ = WhisperTranscriber().transcribe(generate_pcm(), 16000)
        assert text == "open the chart"

    def test_transcribe_hallucination_only_returns_empty(self):
        with whisper_returning([MagicMock(text=" Thanks for watching! ")]):
            text, _, _ = WhisperTranscriber().transcribe(generate_pcm(), 16000)
        assert text == ""


class TestHelpers:
    @pytest.mark.parametrize("text,expected", [
        ("Thank you. stop recording", "stop recording"),
        ("stop recording, thank you", "stop recording"),
        ("Thanks for listening. scroll down. Thank you.", "scroll down"),
        ("thank the nurse", "thank the nurse"),
    ])
    def test_strip_hallucination_phrases(self, text, expected):
        assert strip_hallucination_phrases(text) == expected

    @pytest.mark.parametrize("code,expected", [
        ("en-US", "en"),
        ("EN", "en"),
        ("", None),
        (None, None),
    ])
    def test_language_from_code(self, code, expected):
        assert language_from_code(code) == expected
