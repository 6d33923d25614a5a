"""Heuristic transcription time estimation.

Speeds are a fixed lookup table of rough multiples of real time, not
measurements. Estimates are indicative only.
"""

import math
import os
import logging
import subprocess
from pathlib import Path
from typing import Optional, Dict

from ..models.estimation import EstimationReport

logger = logging.getLogger(__name__)

# Audio seconds processed per wall-clock second, by backend and model
SPEED_TABLE: Dict[str, Dict[str, float]] = {
    "cpu": {"tiny": 0.125, "base": 0.075, "small": 0.0375, "medium": 0.02, "large": 0.01},
    "cuda": {"tiny": 5.0, "base": 4.0, "small": 3.0, "medium": 2.0, "large": 1.5},
    "vulkan": {"tiny": 3.0, "base": 2.5, "small": 2.0, "medium": 1.5, "large": 1.0},
    "metal": {"tiny": 4.0, "base": 3.5, "small": 3.0, "medium": 2.5, "large": 2.0},
}

DEFAULT_BACKEND = "cpu"
DEFAULT_MODEL = "base"
DEFAULT_BEAM_SIZE = 3
MIN_BEAM_SIZE = 1
MAX_BEAM_SIZE = 10

MAX_OVERHEAD_SECONDS = 10
OVERHEAD_RATIO = 0.1
LOWER_BAND = 0.8
UPPER_BAND = 1.3

FALLBACK_DURATION_SECONDS = 60
WAV_HEADER_BYTES = 44
DEFAULT_WAV_BYTES_PER_SECOND = 176400  # 44.1 kHz, stereo, 16-bit

BYTES_PER_SECOND = {
    ".mp3": 16000,
    ".m4a": 16000,
    ".aac": 16000,
    ".ogg": 16000,
    ".webm": 16000,
    ".opus": 8000,
    ".flac": 100000,
}

FFPROBE_TIMEOUT_SECONDS = 30


def clamp_beam_size(beam_size: Optional[int]) -> int:
    if beam_size is None:
        return DEFAULT_BEAM_SIZE
    return max(MIN_BEAM_SIZE, min(MAX_BEAM_SIZE, int(beam_size)))


def quality_factor(beam_size: Optional[int]) -> float:
    """Penalty for search breadth, 1.0 at beam 1 rising 0.2 per step."""
    return round(1.0 + 0.2 * (clamp_beam_size(beam_size) - 1), 2)


def resolve_backend(use_gpu: bool, gpu_backend: Optional[str] = None) -> str:
    """Backend tag for the configured hardware."""
    if not use_gpu:
        return "cpu"
    return (gpu_backend or "cuda").lower()


def format_duration(seconds: float) -> str:
    """Render seconds as `45s`, `3m`, `3m 20s` or `1h 5m`."""
    seconds = int(math.ceil(seconds))
    if seconds < 60:
        return f"{seconds}s"
    if seconds >= 3600:
        hours, rest = divmod(seconds, 3600)
        minutes = rest // 60
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}m {rest}s" if rest else f"{minutes}m"


def _human_message(duration: int, estimated: int, min_seconds: int, max_seconds: int) -> str:
    if duration <= 0 or estimated <= 0:
        comparison = "about real time"
    elif estimated < duration:
        comparison = f"about {duration / estimated:.1f}x faster than real time"
    elif estimated > duration:
        comparison = f"about {estimated / duration:.1f}x slower than real time"
    else:
        comparison = "about real time"
    return (f"Estimated {format_duration(estimated)} for {format_duration(duration)} of audio, "
            f"{comparison} (range {format_duration(min_seconds)} to {format_duration(max_seconds)})")


class TranscriptionEstimator:
    """Projects audio duration and transcription time."""

    def __init__(self, ffprobe_path: str = "ffprobe", wav_bytes_per_second: Optional[int] = None):
        """Initialize estimator.

        Args:
            ffprobe_path: ffprobe executable for exact duration probing
            wav_bytes_per_second: Byte rate of uncompressed recordings
                                  (sample_rate * channels * bit_depth / 8)
        """
        self.ffprobe_path = ffprobe_path
        self.wav_bytes_per_second = wav_bytes_per_second or DEFAULT_WAV_BYTES_PER_SECOND

    def _read_duration(self, path: str) -> Optional[int]:
        try:
            completed = subprocess.run(
                [self.ffprobe_path, "-v", "error", "-show_entries", "format=duration",
                 "-of", "default=noprint_wrappers=1:nokey=1", path],
                capture_output=True,
                text=True,
                timeout=FFPROBE_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"ffprobe unavailable: {e}")
            return None

        if completed.returncode != 0:
            logger.debug(f"ffprobe failed for {path}: {completed.stderr.strip()}")
            return None
        try:
            seconds = float(completed.stdout.strip())
        except ValueError:
            logger.debug(f"ffprobe returned non-numeric duration: {completed.stdout!r}")
            return None
        if math.isnan(seconds) or seconds <= 0:
            return None
        return math.ceil(seconds)

    def _size_estimate(self, path: str) -> int:
        size = os.path.getsize(path)
        extension = Path(path).suffix.lower()
        if extension in BYTES_PER_SECOND:
            rate = BYTES_PER_SECOND[extension]
        else:
            rate = self.wav_bytes_per_second
            if extension == ".wav":
                size = max(0, size - WAV_HEADER_BYTES)
        return max(1, math.ceil(size / rate))

    def estimate_duration(self, path: str) -> int:
        """Audio duration in whole seconds. Never raises.

        Tries ffprobe, then a size-based estimate, then a fixed fallback.
        """
        try:
            measured = self._read_duration(path)
            if measured is not None:
                return measured

            estimate = self._size_estimate(path)
            logger.debug(f"Estimated duration of {path} from file size: {estimate}s")
            return estimate
        except Exception as e:
            logger.warning(f"Could not determine duration of {path}: {e}")
            return FALLBACK_DURATION_SECONDS

    def estimate_transcription_time(
        self,
        duration_seconds: float,
        model_tag: str = DEFAULT_MODEL,
        backend_tag: str = DEFAULT_BACKEND,
        beam_size: Optional[int] = DEFAULT_BEAM_SIZE,
    ) -> EstimationReport:
        """Project transcription wall-clock time from the speed table.

        Args:
            duration_seconds: Audio length
            model_tag: Model size (tiny, base, small, medium, large)
            backend_tag: cpu, cuda, vulkan or metal
            beam_size: Search breadth, clamped to 1..10

        Returns:
            EstimationReport with a -20%/+30% band
        """
        backend = (backend_tag or DEFAULT_BACKEND).lower()
        if backend not in SPEED_TABLE:
            logger.debug(f"Unknown backend '{backend_tag}', using {DEFAULT_BACKEND} speeds")
            backend = DEFAULT_BACKEND
        model = (model_tag or DEFAULT_MODEL).lower()
        speeds = SPEED_TABLE[backend]
        speed = speeds.get(model, speeds[DEFAULT_MODEL])

        quality = quality_factor(beam_size)
        duration = max(0.0, float(duration_seconds))

        if speed >= 1:
            processing = duration / (speed / quality)
        else:
            processing = duration / speed * quality
        overhead = min(MAX_OVERHEAD_SECONDS, OVERHEAD_RATIO * duration)

        # Strip float noise before ceil
        estimated = math.ceil(round(processing + overhead, 6))
        min_seconds = math.ceil(round(estimated * LOWER_BAND, 6))
        max_seconds = math.ceil(round(estimated * UPPER_BAND, 6))
        audio_seconds = math.ceil(duration)

        return EstimationReport(
            audio_duration_seconds=audio_seconds,
            estimated_seconds=estimated,
            min_seconds=min_seconds,
            max_seconds=max_seconds,
            backend_tag=backend,
            model_tag=model_tag,
            human_message=_human_message(audio_seconds, estimated, min_seconds, max_seconds),
            speed_factor=speed,
            quality_factor=quality,
            beam_size=clamp_beam_size(beam_size),
        )

    def estimate_for_file(
        self,
        path: str,
        model_tag: str = DEFAULT_MODEL,
        backend_tag: str = DEFAULT_BACKEND,
        beam_size: Optional[int] = DEFAULT_BEAM_SIZE,
    ) -> EstimationReport:
        """Duration lookup followed by a time estimate."""
        duration = self.estimate_duration(path)
        report = self.estimate_transcription_time(duration, model_tag, backend_tag, beam_size)
        logger.info(f"Estimate for {Path(path).name}: {report.human_message}")
        return report
