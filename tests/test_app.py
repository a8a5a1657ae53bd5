"""Tests for service assembly and the command line entry point."""

import sys
import threading

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from voice_wake.app import WakeWordService
from voice_wake.audio.push_source import PushAudioSource
from voice_wake.command.buffered import BufferedCommandSession
from voice_wake.command.streaming import StreamingCommandSession
from voice_wake.config.settings import WakeServiceConfig
from voice_wake.core.events import CommandResult, OrchestratorState, Topic
from voice_wake.main import main
from tests.fakes import FakeProvider, FakeScheduler, pause, speak


@pytest.fixture
def mock_llm():
    with patch("voice_wake.app.LLM") as mock_cls:
        llm = mock_cls.return_value
        llm.interpret = AsyncMock(
            return_value=CommandResult(text="Opening the chart.", tool_name="open_chart")
        )
        llm.check_connection = AsyncMock(return_value=True)
        yield llm


@pytest.fixture
def mock_whisper():
    with patch("voice_wake.app.WhisperTranscriber") as mock_cls:
        mock_cls.return_value.transcribe.return_value = ("please", "en", 0.9)
        yield mock_cls


def make_service(command_mode="buffered"):
    config = WakeServiceConfig(llm_api_key="test_key", command_mode=command_mode)
    return WakeWordService(
        config=config,
        source=PushAudioSource(),
        provider=FakeProvider(),
        scheduler=FakeScheduler(),
    )


def wait_for_idle(service):
    idle = threading.Event()
    service.orchestrator.subscribe(
        Topic.STATUS, lambda e: idle.set() if e.state is OrchestratorState.IDLE else None
    )
    return idle


class TestWakeWordService:
    def test_buffered_mode_assembly(self, mock_llm, mock_whisper):
        service = make_service("buffered")
        assert isinstance(service.command_session, BufferedCommandSession)
        mock_whisper.assert_called_once()
        assert service.matcher.phrases == service.config.wake_phrases

    def test_streaming_mode_skips_whisper(self, mock_llm, mock_whisper):
        service = make_service("streaming")
        assert isinstance(service.command_session, StreamingCommandSession)
        mock_whisper.assert_not_called()

    def test_buffered_interaction(self, mock_llm, mock_whisper):
        service = make_service("buffered")
        results = []
        service.orchestrator.subscribe(Topic.COMMAND_RESULT, results.append)
        idle = wait_for_idle(service)
        service.start()
        try:
            speak(service.source)
            service.provider.latest.emit("hi dee open the chart", is_final=True)
            pause(service.source)

            assert idle.wait(timeout=5.0)
        finally:
            service.close()

        mock_llm.interpret.assert_awaited_once_with("open the chart please")
        assert [r.tool_name for r in results] == ["open_chart"]

    def test_streaming_interaction(self, mock_llm, mock_whisper):
        service = make_service("streaming")
        results = []
        service.orchestrator.subscribe(Topic.COMMAND_RESULT, results.append)
        idle = wait_for_idle(service)
        service.start()
        try:
            speak(service.source)
            service.provider.latest.emit("heidi open", is_final=True)
            command_stream = service.provider.latest
            command_stream.emit("the chart", is_final=True)
            pause(service.source)
            assert command_stream.finalized
            command_stream.end()

            assert idle.wait(timeout=5.0)
        finally:
            service.close()

        mock_llm.interpret.assert_awaited_once_with("open the chart")
        assert [r.text for r in results] == ["Opening the chart."]

    def test_close_releases_everything(self, mock_llm, mock_whisper):
        service = make_service()
        service.start()
        service.close()

        assert not service.orchestrator.running
        assert service.provider.closed
        assert not service.source.capturing

    @pytest.mark.asyncio
    async def test_check_system_status(self, mock_llm, mock_whisper):
        service = make_service()
        with patch("voice_wake.audio.mic.sd.query_devices", return_value={"name": "Mic", "default_samplerate": 16000}):
            status = await service.check_system_status()

        assert status["audio_input"] == "Mic (16000 Hz)"
        assert status["recognizer"] == "ready"
        assert status["llm"] == "ready"
        assert status["command_mode"] == "buffered"

    @pytest.mark.asyncio
    async def test_run_forever_until_stopped(self, mock_llm, mock_whisper):
        service = make_service()
        service.stop()
        await service.run_forever(poll_interval_s=0.01)
        assert not service.orchestrator.running


class TestMain:
    @pytest.mark.asyncio
    async def test_create_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sys, "argv", ["voice-wake", "--create-config"])

        await main()

        assert (tmp_path / ".env.example").exists()
        assert "Example configuration file created" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_missing_api_key_reports_configuration_error(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("LLM_API_KEY", raising=False)
        monkeypatch.setattr(sys, "argv", ["voice-wake", "--config", str(tmp_path / "none.env")])

        await main()

        assert "Configuration error" in capsys.readouterr().out
