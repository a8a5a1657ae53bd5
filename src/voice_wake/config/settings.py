import os
from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from dotenv import load_dotenv
import logging

from ..audio.types import AudioFormat, VADConfig
from ..core.errors import ConfigurationError
from ..orchestrator import OrchestratorConfig
from ..recognition.provider import RecognitionConfig
from ..wake.matcher import DEFAULT_THRESHOLD, DEFAULT_WAKE_PHRASES

logger = logging.getLogger(__name__)

# Words the recognizer should favour while listening for the wake phrase.
WAKE_PHRASE_HINTS = (
    "Hi Dee", "Hi D", "Heidi", "Hey Dee", "Hey D", "Hi Heidi", "Hey Heidi",
    "start recording", "stop recording", "EMR", "medical records", "patient",
)


class WakeServiceConfig(BaseModel):
    llm_api_key: str = Field(..., min_length=1, description="LLM API key for command interpretation")
    llm_model: str = Field(default="google/gemini-2.5-flash", description="LLM model to use")
    llm_base_url: str = Field(default="https://openrouter.ai/api/v1", description="LLM API base URL")

    wake_phrases: Tuple[str, ...] = Field(
        default=DEFAULT_WAKE_PHRASES, min_length=3, max_length=20, description="Accepted wake phrases"
    )
    wake_threshold: float = Field(default=DEFAULT_THRESHOLD, ge=0.0, le=1.0, description="Fuzzy match threshold")

    sample_rate: int = Field(default=16000, gt=0, description="Capture sample rate in Hz")
    language_code: str = Field(default="en-US", description="Recognition language")
    input_device: Optional[int] = Field(default=None, description="sounddevice input device index")

    vad_energy_threshold: float = Field(default=0.02, gt=0.0, description="RMS energy above which a frame is speech")
    vad_speech_start_frames: int = Field(default=3, ge=1, description="Loud frames needed to enter speech")
    vad_speech_end_frames: int = Field(default=15, ge=1, description="Quiet frames needed to leave speech")
    vad_frame_size: int = Field(default=256, ge=16, description="Samples per VAD frame")

    listen_grace_s: float = Field(default=1.5, gt=0.0, description="Wait after speech for a late wake transcript")
    max_listen_s: float = Field(default=3.0, gt=0.0, description="Longest utterance checked for the wake phrase")
    command_window_s: float = Field(default=5.0, gt=0.0, description="Time allowed to start the command")
    command_timeout_s: float = Field(default=10.0, gt=0.0, description="Longest command capture")
    processing_timeout_s: float = Field(default=6.0, gt=0.0, description="Longest wait for a command result")

    max_stream_duration_s: float = Field(default=290.0, gt=0.0, description="Recognition stream reconnect interval")
    pending_audio_limit: int = Field(default=100, ge=1, description="Chunks buffered while no stream is open")

    command_mode: Literal["buffered", "streaming"] = Field(default="buffered", description="Command capture mode")
    sherpa_model_dir: Optional[str] = Field(default=None, description="sherpa-onnx streaming model directory")
    whisper_model_size: str = Field(default="base.en", description="faster-whisper model for buffered commands")

    log_level: str = Field(default="INFO", description="Logging level")

    model_config = ConfigDict(frozen=True)

    @field_validator("wake_phrases")
    @classmethod
    def _clean_phrases(cls, phrases: Tuple[str, ...]) -> Tuple[str, ...]:
        cleaned = tuple(p.strip().lower() for p in phrases if p.strip())
        if len(cleaned) != len(phrases):
            raise ValueError("wake phrases must not be blank")
        return cleaned

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, level: str) -> str:
        level = level.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {level!r}")
        return level

    def audio_format(self) -> AudioFormat:
        return AudioFormat(sample_rate=self.sample_rate)

    def vad_config(self) -> VADConfig:
        return VADConfig(
            energy_threshold=self.vad_energy_threshold,
            speech_start_frames=self.vad_speech_start_frames,
            speech_end_frames=self.vad_speech_end_frames,
            frame_size=self.vad_frame_size,
            sample_rate=self.sample_rate,
        )

    def recognition_config(self) -> RecognitionConfig:
        return RecognitionConfig(
            sample_rate=self.sample_rate,
            language_code=self.language_code,
            phrase_hints=WAKE_PHRASE_HINTS,
        )

    def orchestrator_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(
            listen_grace_s=self.listen_grace_s,
            max_listen_s=self.max_listen_s,
            command_window_s=self.command_window_s,
            command_timeout_s=self.command_timeout_s,
            processing_timeout_s=self.processing_timeout_s,
        )


def _split_phrases(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return DEFAULT_WAKE_PHRASES
    return tuple(p.strip() for p in raw.split(","))


def _optional_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


def load_config(config_path: Optional[Path] = None) -> WakeServiceConfig:
    if config_path is None:
        config_path = Path(".env")

    if config_path.exists():
        load_dotenv(config_path)
        logger.info(f"Loaded environment variables from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found, using environment variables only")

    if not os.getenv("LLM_API_KEY"):
        raise ConfigurationError("LLM_API_KEY is required but not set")

    try:
        return WakeServiceConfig(
            llm_api_key=os.getenv("LLM_API_KEY", ""),
            llm_model=os.getenv("LLM_MODEL", "google/gemini-2.5-flash"),
            llm_base_url=os.getenv("LLM_BASE_URL", "https://openrouter.ai/api/v1"),
            wake_phrases=_split_phrases(os.getenv("WAKE_PHRASES")),
            wake_threshold=float(os.getenv("WAKE_THRESHOLD", str(DEFAULT_THRESHOLD))),
            sample_rate=int(os.getenv("SAMPLE_RATE", "16000")),
            language_code=os.getenv("LANGUAGE_CODE", "en-US"),
            input_device=_optional_int(os.getenv("INPUT_DEVICE")),
            vad_energy_threshold=float(os.getenv("VAD_ENERGY_THRESHOLD", "0.02")),
            vad_speech_start_frames=int(os.getenv("VAD_SPEECH_START_FRAMES", "3")),
            vad_speech_end_frames=int(os.getenv("VAD_SPEECH_END_FRAMES", "15")),
            vad_frame_size=int(os.getenv("VAD_FRAME_SIZE", "256")),
            listen_grace_s=float(os.getenv("LISTEN_GRACE_S", "1.5")),
            max_listen_s=float(os.getenv("MAX_LISTEN_S", "3.0")),
            command_window_s=float(os.getenv("COMMAND_WINDOW_S", "5.0")),
            command_timeout_s=float(os.getenv("COMMAND_TIMEOUT_S", "10.0")),
            processing_timeout_s=float(os.getenv("PROCESSING_TIMEOUT_S", "6.0")),
            max_stream_duration_s=float(os.getenv("MAX_STREAM_DURATION_S", "290.0")),
            pending_audio_limit=int(os.getenv("PENDING_AUDIO_LIMIT", "100")),
            command_mode=os.getenv("COMMAND_MODE", "buffered").lower(),
            sherpa_model_dir=os.getenv("SHERPA_MODEL_DIR") or None,
            whisper_model_size=os.getenv("WHISPER_MODEL_SIZE", "base.en"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
    except (ValueError, ValidationError) as e:
        logger.error(f"Failed to load configuration: {e}")
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def create_example_env_file(path: Path = Path(".env.example")):
    example_content = """# LLM API Key - Get from your LLM provider (e.g., OpenRouter, OpenAI, etc.)
LLM_API_KEY=your_api_key_here

# LLM Configuration
LLM_MODEL=google/gemini-2.5-flash
LLM_BASE_URL=https://openrouter.ai/api/v1

# Wake phrases (comma separated, 3-20 entries) and fuzzy match threshold (0-1)
WAKE_PHRASES=hi dee,hi d,heidi,hey dee,hey d,hedy,hide e,hydie,heydee,hi di,hey di
WAKE_THRESHOLD=0.55

# Audio
SAMPLE_RATE=16000
LANGUAGE_CODE=en-US
# INPUT_DEVICE=0

# Energy VAD
VAD_ENERGY_THRESHOLD=0.02
VAD_SPEECH_START_FRAMES=3
VAD_SPEECH_END_FRAMES=15
VAD_FRAME_SIZE=256

# Timing (seconds)
LISTEN_GRACE_S=1.5
MAX_LISTEN_S=3.0
COMMAND_WINDOW_S=5.0
COMMAND_TIMEOUT_S=10.0
PROCESSING_TIMEOUT_S=6.0
MAX_STREAM_DURATION_S=290.0
PENDING_AUDIO_LIMIT=100

# Command capture: buffered (faster-whisper) or streaming (sherpa-onnx)
COMMAND_MODE=buffered
SHERPA_MODEL_DIR=models/sherpa-onnx-streaming-zipformer-en-2023-06-26
WHISPER_MODEL_SIZE=base.en

# Logging level
LOG_LEVEL=INFO
"""

    with open(path, "w") as f:
        f.write(example_content)

    logger.info(f"Created example environment file at {path}")


def setup_logging(log_level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    # Reduce noise from third-party clients
    for name in ("faster_whisper", "httpx", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)
