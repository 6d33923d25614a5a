"""Abstract base classes for transcription backends."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional, Tuple
import logging

from ..models.transcription import TranscriptionOptions, TranscriptionResult, TranscriptionSegment
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

RawSegment = Tuple[float, float, str]


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for transcription backends."""

    provider_name = "base"

    # Audio layout the engine needs, or None if it decodes anything itself
    required_sample_rate: Optional[int] = None
    required_channels: Optional[int] = None

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful

        Raises:
            MeetScribeError: If the engine cannot be made ready
        """
        pass

    @abstractmethod
    def transcribe_file(
        self,
        audio_path: str,
        options: TranscriptionOptions,
        token: CancellationToken,
    ) -> TranscriptionResult:
        """Transcribe an audio file.

        Args:
            audio_path: File in the engine's required format
            options: Inference parameters
            token: Checked by the backend to honor cancellation

        Returns:
            Normalized TranscriptionResult
        """
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Clean up backend resources."""
        pass


def build_result(
    raw_segments: Iterable[RawSegment],
    text: Optional[str] = None,
    language: str = "auto",
    duration: Optional[float] = None,
    provider: Optional[str] = None,
    time_scale: float = 1.0,
) -> TranscriptionResult:
    """Normalize engine output into a TranscriptionResult.

    Args:
        raw_segments: (start, end, text) tuples in engine time units
        text: Flat transcript if the engine returns one
        language: Language tag reported or requested
        duration: Total duration in seconds if known
        provider: Backend name recorded with the result
        time_scale: Multiplier from engine time units to seconds

    Returns:
        Result with trimmed segments indexed from 0 and times in seconds
    """
    segments = []
    for start, end, segment_text in raw_segments:
        cleaned = (segment_text or "").strip()
        if not cleaned:
            continue
        start_seconds = round(float(start) * time_scale, 3)
        end_seconds = max(start_seconds, round(float(end) * time_scale, 3))
        segments.append(TranscriptionSegment(
            index=len(segments),
            start_seconds=start_seconds,
            end_seconds=end_seconds,
            text=cleaned,
        ))

    full_text = (text or "").strip()
    if not full_text:
        full_text = " ".join(segment.text for segment in segments)

    if duration is None:
        duration = segments[-1].end_seconds if segments else 0.0

    if not segments and full_text:
        segments.append(TranscriptionSegment(
            index=0,
            start_seconds=0.0,
            end_seconds=float(duration),
            text=full_text,
        ))

    return TranscriptionResult(
        full_text=full_text,
        segments=segments,
        language_tag=language or "auto",
        total_duration_seconds=float(duration),
        provider=provider,
    )
