"""Transcription session: model lifecycle, audio preparation and progress."""

import os
import wave
import logging
import tempfile
import subprocess
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from ..errors import EngineError, FileNotFound, InvalidState
from ..models.events import ProgressEvent
from ..models.transcription import TranscriptionOptions, TranscriptionResult
from .base import AbstractTranscriptionBackend
from .cancellation import CancellationToken
from .publisher import ProgressPublisher

logger = logging.getLogger(__name__)

BackendFactory = Callable[[str], AbstractTranscriptionBackend]

TRANSCODE_TIMEOUT_SECONDS = 600


def matches_format(path: str, sample_rate: int, channels: int) -> bool:
    """True if the file is a 16-bit PCM WAV with the given layout."""
    if Path(path).suffix.lower() != ".wav":
        return False
    try:
        with wave.open(path, "rb") as wf:
            return (wf.getframerate() == sample_rate
                    and wf.getnchannels() == channels
                    and wf.getsampwidth() == 2)
    except (wave.Error, EOFError, OSError):
        return False


class TranscriptionSession:
    """Runs one transcription at a time against a lazily loaded backend."""

    def __init__(
        self,
        backend_factory: BackendFactory,
        publisher: Optional[ProgressPublisher] = None,
        ffmpeg_path: str = "ffmpeg",
        default_model: str = "base",
    ):
        """Initialize transcription session.

        Args:
            backend_factory: Builds a backend for a model tag
            publisher: Progress publisher, one per session
            ffmpeg_path: ffmpeg executable used to transcode input audio
            default_model: Model tag used when transcribe() is not given one
        """
        self.backend_factory = backend_factory
        self.publisher = publisher or ProgressPublisher()
        self.ffmpeg_path = ffmpeg_path
        self.default_model = default_model

        self.backend: Optional[AbstractTranscriptionBackend] = None
        self.model_tag: Optional[str] = None
        self._token: Optional[CancellationToken] = None

    @property
    def is_busy(self) -> bool:
        return self._token is not None

    def initialize(self, model_tag: str) -> None:
        """Load a model. A no-op when it is already loaded.

        Raises:
            CorruptModel, DownloadFailure, EngineError
        """
        if self.backend is not None and self.model_tag == model_tag:
            return

        if self.backend is not None:
            logger.info(f"Switching model {self.model_tag} -> {model_tag}")
            self.backend.cleanup()
            self.backend = None
            self.model_tag = None

        backend = self.backend_factory(model_tag)
        if not backend.initialize():
            raise EngineError(f"Backend {backend.provider_name} failed to initialize")

        self.backend = backend
        self.model_tag = model_tag
        logger.info(f"✅ Transcription backend ready: {backend.provider_name} ({model_tag})")

    def subscribe_progress(self, listener: Callable[[ProgressEvent], None]) -> None:
        """Register a listener called as listener(event=ProgressEvent)."""
        self.publisher.subscribe(listener)

    def unsubscribe_progress(self, listener: Callable[[ProgressEvent], None]) -> None:
        self.publisher.unsubscribe(listener)

    def _progress(self, progress: int, status: str, source_path: str) -> None:
        try:
            self.publisher.publish_progress(ProgressEvent(progress, status, source_path))
        except Exception as e:
            logger.warning(f"Progress listener failed: {e}")

    def _transcode(self, source: str, destination: str, sample_rate: int, channels: int) -> None:
        command = [
            self.ffmpeg_path, "-hide_banner", "-y", "-i", source,
            "-ar", str(sample_rate), "-ac", str(channels), "-c:a", "pcm_s16le", destination,
        ]
        logger.debug(f"Transcoding for engine: {' '.join(command)}")
        try:
            completed = subprocess.run(
                command, capture_output=True, text=True, timeout=TRANSCODE_TIMEOUT_SECONDS
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise EngineError(f"Audio conversion failed: {e}")

        if completed.returncode != 0:
            details = "\n".join(completed.stderr.strip().splitlines()[-3:])
            raise EngineError(f"Audio conversion failed (code {completed.returncode}): {details}")

    @contextmanager
    def _prepared_audio(self, path: str, backend: AbstractTranscriptionBackend) -> Iterator[str]:
        """Yield a path in the backend's format, removing any temporary copy."""
        rate = backend.required_sample_rate
        channels = backend.required_channels or 1
        if rate is None or matches_format(path, rate, channels):
            yield path
            return

        fd, temp_path = tempfile.mkstemp(prefix="meetscribe-", suffix=".wav")
        os.close(fd)
        try:
            self._transcode(path, temp_path, rate, channels)
            yield temp_path
        finally:
            try:
                os.remove(temp_path)
            except FileNotFoundError:
                pass
            logger.debug(f"Removed temporary audio {temp_path}")

    def transcribe(
        self,
        path: str,
        options: Optional[TranscriptionOptions] = None,
        model_tag: Optional[str] = None,
    ) -> TranscriptionResult:
        """Transcribe an audio file.

        Args:
            path: Audio file to transcribe
            options: Inference parameters
            model_tag: Model to use (defaults to the loaded or default model)

        Returns:
            Normalized TranscriptionResult

        Raises:
            FileNotFound: If the input does not exist, before any engine work
            InvalidState: If another transcription is in flight
            TranscriptionCancelled: If cancel() was called
            CorruptModel, DownloadFailure, EngineError
        """
        if not Path(path).is_file():
            raise FileNotFound(f"Audio file not found: {path}")
        if self._token is not None:
            raise InvalidState("A transcription is already in progress")

        options = options or TranscriptionOptions()
        token = CancellationToken()
        self._token = token
        try:
            self._progress(0, "Starting transcription", path)
            self.initialize(model_tag or self.model_tag or self.default_model)
            token.raise_if_cancelled()

            self._progress(10, "Preparing audio", path)
            backend = self.backend
            with self._prepared_audio(path, backend) as audio_path:
                token.raise_if_cancelled()
                self._progress(30, "Transcribing", path)
                result = backend.transcribe_file(audio_path, options, token)

            token.raise_if_cancelled()
            self._progress(90, "Processing results", path)
            logger.info(f"Transcribed {Path(path).name}: {len(result.segments)} segments, "
                        f"{result.total_duration_seconds:.1f}s")
            self._progress(100, "Complete", path)
            return result
        finally:
            self._token = None

    def cancel(self) -> bool:
        """Cancel the in-flight transcription.

        Returns:
            False if nothing was in flight, True otherwise
        """
        token = self._token
        if token is None:
            logger.info("Cancel requested with no transcription in progress")
            return False
        token.cancel()
        logger.info("Transcription cancellation requested")
        return True

    def dispose(self) -> None:
        """Cancel any run and release the backend."""
        self.cancel()
        if self.backend is not None:
            self.backend.cleanup()
        self.backend = None
        self.model_tag = None
        logger.debug("TranscriptionSession disposed")
