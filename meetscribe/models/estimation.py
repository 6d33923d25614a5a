"""Transcription time estimation models."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class EstimationReport:
    """Indicative projection of how long a transcription will take.

    Values come from a fixed speed table, not from measurement.
    """
    audio_duration_seconds: int
    estimated_seconds: int
    min_seconds: int
    max_seconds: int
    backend_tag: str
    model_tag: str
    human_message: str
    speed_factor: float = 0.0
    quality_factor: float = 1.0
    beam_size: int = 3

    def to_dict(self) -> Dict[str, Any]:
        # Imported lazily, estimator imports this module
        from ..estimation.estimator import format_duration

        return {
            "audio_duration_seconds": self.audio_duration_seconds,
            "estimated_seconds": self.estimated_seconds,
            "min_seconds": self.min_seconds,
            "max_seconds": self.max_seconds,
            "backend": self.backend_tag,
            "model": self.model_tag,
            "message": self.human_message,
            "speed_factor": self.speed_factor,
            "quality_factor": self.quality_factor,
            "beam_size": self.beam_size,
            "formatted": {
                "audio": format_duration(self.audio_duration_seconds),
                "estimated": format_duration(self.estimated_seconds),
                "min": format_duration(self.min_seconds),
                "max": format_duration(self.max_seconds),
            },
        }
