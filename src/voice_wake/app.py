import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .audio.types import AudioSource
from .audio.vad import VoiceActivityDetector
from .command.asr import WhisperTranscriber
from .command.base import CommandSession
from .command.buffered import BufferedCommandSession
from .command.interpreter import InterpreterWorker
from .command.streaming import StreamingCommandSession
from .config.settings import WakeServiceConfig, load_config, setup_logging
from .core.emitter import Subscription, cancel_all
from .core.events import CommandResultEvent, ErrorEvent, StatusChanged, Topic, TranscriptUpdate, WakeDetected
from .core.shutdown import GracefulShutdown
from .core.timers import Scheduler
from .llm.llm import LLM
from .orchestrator import WakeWordOrchestrator
from .recognition.provider import RecognitionProvider
from .recognition.session import StreamingRecognitionSession
from .recognition.sherpa import SherpaRecognitionProvider
from .wake.matcher import WakePhraseMatcher

logger = logging.getLogger(__name__)


class WakeWordService:
    """Builds the pipeline from configuration and runs it until shutdown."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[WakeServiceConfig] = None,
        source: Optional[AudioSource] = None,
        provider: Optional[RecognitionProvider] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config.log_level)

        self.shutdown_signal = GracefulShutdown("WakeWordService")
        self.source = source if source is not None else self._create_microphone()
        self.provider = provider if provider is not None else SherpaRecognitionProvider(
            model_dir=self.config.sherpa_model_dir,
            sample_rate=self.config.sample_rate,
        )
        self.vad = VoiceActivityDetector(self.config.vad_config())
        self.recognition = StreamingRecognitionSession(
            self.provider,
            self.config.recognition_config(),
            max_stream_duration_s=self.config.max_stream_duration_s,
            pending_audio_limit=self.config.pending_audio_limit,
            scheduler=scheduler,
        )
        self.matcher = WakePhraseMatcher(self.config.wake_phrases, self.config.wake_threshold)
        self.llm = LLM(
            api_key=self.config.llm_api_key,
            model=self.config.llm_model,
            base_url=self.config.llm_base_url,
        )
        self.interpreter = InterpreterWorker(
            self.llm,
            transcriber=self._create_transcriber(),
            sample_rate=self.config.sample_rate,
        )
        self.command_session = self._create_command_session()
        self.orchestrator = WakeWordOrchestrator(
            source=self.source,
            vad=self.vad,
            recognition=self.recognition,
            matcher=self.matcher,
            command_session=self.command_session,
            config=self.config.orchestrator_config(),
            scheduler=scheduler,
        )
        self._subscriptions: List[Subscription] = []

        logger.info("Wake word service initialized (command mode: %s)", self.config.command_mode)

    def _create_microphone(self) -> AudioSource:
        from .audio.mic import Microphone

        return Microphone(self.config.audio_format(), device=self.config.input_device)

    def _create_transcriber(self) -> Optional[WhisperTranscriber]:
        if self.config.command_mode != "buffered":
            return None
        return WhisperTranscriber(self.config.whisper_model_size, language_code=self.config.language_code)

    def _create_command_session(self) -> CommandSession:
        if self.config.command_mode == "streaming":
            return StreamingCommandSession(self.provider, self.interpreter, self.config.recognition_config())
        return BufferedCommandSession(self.interpreter)

    def start(self) -> None:
        self._subscriptions.extend([
            self.orchestrator.subscribe(Topic.STATUS, self._log_status),
            self.orchestrator.subscribe(Topic.WAKE_DETECTED, self._log_wake),
            self.orchestrator.subscribe(Topic.TRANSCRIPT, self._log_transcript),
            self.orchestrator.subscribe(Topic.COMMAND_RESULT, self._log_result),
            self.orchestrator.subscribe(Topic.ERROR, self._log_error),
        ])
        self.interpreter.start()
        self.orchestrator.start()

    def close(self) -> None:
        cancel_all(self._subscriptions)
        self.orchestrator.close()
        self.command_session.close()
        self.recognition.destroy()
        logger.info("Wake word service stopped")

    async def run_forever(self, poll_interval_s: float = 0.5) -> None:
        self.start()
        print("\n🎤 Listening for the wake phrase... (Press Ctrl+C to stop)")
        try:
            while not self.shutdown_signal.is_set():
                await asyncio.sleep(poll_interval_s)
        finally:
            self.close()

    def stop(self) -> None:
        self.shutdown_signal.stop("stop requested")
        logger.info("Wake word service stop requested")

    async def check_system_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "wake_phrases": len(self.matcher.phrases),
            "audio_input": "unknown",
            "recognizer": "unknown",
            "llm": "unknown",
            "command_mode": self.config.command_mode,
        }

        try:
            from .audio.mic import check_input_device

            status["audio_input"] = check_input_device(self.config.input_device)
        except Exception as e:
            status["audio_input"] = f"error: {e}"

        try:
            self.recognition.initialize()
            status["recognizer"] = "ready"
        except Exception as e:
            status["recognizer"] = f"error: {e}"

        try:
            if await self.llm.check_connection():
                status["llm"] = "ready"
            else:
                status["llm"] = "connection failed"
        except Exception as e:
            status["llm"] = f"error: {e}"

        return status

    def _log_status(self, event: StatusChanged) -> None:
        logger.debug("Status: %s", event.state.value)

    def _log_wake(self, event: WakeDetected) -> None:
        print(f"✨ Wake phrase heard: {event.transcript!r} ({event.confidence:.2f})")

    def _log_transcript(self, event: TranscriptUpdate) -> None:
        if event.is_final:
            print(f"📝 {event.text}")

    def _log_result(self, event: CommandResultEvent) -> None:
        tool = f" [{event.tool_name} {event.args}]" if event.tool_name else ""
        print(f"🤖 {event.text}{tool}")

    def _log_error(self, event: ErrorEvent) -> None:
        print(f"⚠️  {event.message}")
