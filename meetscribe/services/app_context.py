"""Application context wiring sessions and services together."""

import uuid
import logging
import subprocess
from typing import Any, Callable, Optional

from ..audio.audio_pub import RECORDING_EVENTS_TOPIC, RecordingEventPublisher
from ..audio.devices import DeviceEnumerator
from ..audio.recorder import RecordingSession
from ..config import MeetScribeConfig
from ..estimation.estimator import TranscriptionEstimator
from ..models.transcription import TranscriptionOptions
from ..storage.file_manager import RecordingLibrary
from ..transcription.base import AbstractTranscriptionBackend
from ..transcription.model_store import ModelStore
from ..transcription.openai_backend import OpenAITranscriptionBackend
from ..transcription.publisher import PROGRESS_TOPIC, ProgressPublisher
from ..transcription.session import TranscriptionSession
from ..transcription.whisper_local import WhisperCppBackend
from .recording_service import RecordingService
from .transcription_service import TranscriptionService

logger = logging.getLogger(__name__)

OPENAI_MODEL_PREFIX = "openai:"


class AppContext:
    """Owns one recording session and one transcription session.

    Construct explicitly and call dispose() (or use as a context manager)
    so that encoder processes and in-flight transcriptions are always torn
    down.
    """

    def __init__(
        self,
        config: MeetScribeConfig,
        platform: Optional[str] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    ):
        """Initialize application context.

        Args:
            config: Loaded settings
            platform: sys.platform value to target
            popen: Process factory for the capture encoder
        """
        self.config = config
        # pubsub topics are scoped to this context
        self.context_id = uuid.uuid4().hex[:12]
        self.recording_topic = f"{RECORDING_EVENTS_TOPIC}_{self.context_id}"
        self.progress_topic = f"{PROGRESS_TOPIC}_{self.context_id}"
        settings = config.settings

        self.enumerator = DeviceEnumerator(settings.ffmpeg_path, platform)
        self.recorder = RecordingSession(
            enumerator=self.enumerator,
            publisher=RecordingEventPublisher(self.recording_topic),
            platform=platform,
            popen=popen,
        )
        self.library = RecordingLibrary(config.get_recordings_path())
        self.model_store = ModelStore(config.get_models_path())
        self.estimator = TranscriptionEstimator(
            ffprobe_path=settings.ffprobe_path,
            wav_bytes_per_second=settings.sample_rate * settings.channels * settings.bit_depth // 8,
        )
        self.transcriber = TranscriptionSession(
            backend_factory=self.create_backend,
            publisher=ProgressPublisher(self.progress_topic),
            ffmpeg_path=settings.ffmpeg_path,
            default_model=settings.whisper_model,
        )

        self.recording_service = RecordingService(self)
        self.transcription_service = TranscriptionService(self)
        self._disposed = False
        logger.info(f"AppContext {self.context_id} ready")

    def provider(self) -> str:
        """Resolved transcription provider: 'openai' or 'local'."""
        choice = (self.config.get("transcription_provider") or "auto").lower()
        if choice in ("openai", "local"):
            return choice
        return "openai" if self.config.get_openai_api_key() else "local"

    def active_model_tag(self, model_tag: Optional[str] = None) -> str:
        """Model key for the session, prefixed for the cloud provider."""
        if self.provider() == "openai":
            return OPENAI_MODEL_PREFIX + self.config.get("openai_model", "whisper-1")
        return model_tag or self.config.get("whisper_model", "base")

    def create_backend(self, model_tag: str) -> AbstractTranscriptionBackend:
        settings = self.config.settings
        if model_tag.startswith(OPENAI_MODEL_PREFIX):
            return OpenAITranscriptionBackend(
                api_key=self.config.get_openai_api_key(),
                model=model_tag[len(OPENAI_MODEL_PREFIX):],
                timeout_seconds=settings.api_timeout_seconds,
            )
        return WhisperCppBackend(
            self.model_store,
            model_tag,
            n_threads=settings.n_threads,
            beam_size=settings.beam_size,
        )

    def transcription_options(self, **overrides: Any) -> TranscriptionOptions:
        """Inference parameters from settings with per-call overrides."""
        s = self.config.settings
        params = dict(
            language=s.language,
            n_threads=s.n_threads,
            beam_size=s.beam_size,
            best_of=s.best_of,
            temperature=s.temperature,
            entropy_thold=s.entropy_thold,
            logprob_thold=s.logprob_thold,
            no_speech_thold=s.no_speech_thold,
            initial_prompt=s.initial_prompt,
            max_segment_length=s.max_segment_length,
            split_on_word=s.split_on_word,
            suppress_blank=s.suppress_blank,
            detect_language=s.detect_language,
        )
        params.update({k: v for k, v in overrides.items() if v is not None})
        return TranscriptionOptions(**params)

    def dispose(self) -> None:
        """Stop everything this context owns."""
        if self._disposed:
            return
        self._disposed = True
        try:
            self.recorder.cleanup()
        finally:
            self.transcriber.dispose()
        logger.info("AppContext disposed")

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()
