"""Audio duration and transcription time estimation."""

from .estimator import TranscriptionEstimator, format_duration, resolve_backend, quality_factor

__all__ = [
    "TranscriptionEstimator",
    "format_duration",
    "resolve_backend",
    "quality_factor",
]
