"""Transcription-related data models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TranscriptionSegment:
    """A time-bounded span of transcribed text."""
    index: int
    start_seconds: float
    end_seconds: float
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.index,
            "start": self.start_seconds,
            "end": self.end_seconds,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptionSegment":
        return cls(
            index=int(data["id"]),
            start_seconds=float(data["start"]),
            end_seconds=float(data["end"]),
            text=data.get("text", ""),
        )


@dataclass
class TranscriptionResult:
    """Normalized output of a transcription backend."""
    full_text: str
    segments: List[TranscriptionSegment] = field(default_factory=list)
    language_tag: str = "auto"
    total_duration_seconds: float = 0.0
    provider: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "text": self.full_text,
            "segments": [segment.to_dict() for segment in self.segments],
            "language": self.language_tag,
            "duration": self.total_duration_seconds,
        }
        if self.provider:
            data["provider"] = self.provider
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptionResult":
        return cls(
            full_text=data.get("text", ""),
            segments=[TranscriptionSegment.from_dict(s) for s in data.get("segments", [])],
            language_tag=data.get("language", "auto"),
            total_duration_seconds=float(data.get("duration", 0.0)),
            provider=data.get("provider"),
        )


@dataclass
class ModelInfo:
    """A downloadable local model and its on-disk state."""
    name: str
    file_name: str
    path: str
    downloaded: bool
    valid: bool
    size_bytes: int
    expected_size_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "file_name": self.file_name,
            "path": self.path,
            "downloaded": self.downloaded,
            "valid": self.valid,
            "size_bytes": self.size_bytes,
            "expected_size_bytes": self.expected_size_bytes,
        }


@dataclass
class TranscriptionOptions:
    """Per-run inference parameters."""
    language: str = "auto"
    n_threads: int = 8
    beam_size: int = 3
    best_of: int = 3
    temperature: float = 0.0
    entropy_thold: float = 2.4
    logprob_thold: float = -1.0
    no_speech_thold: float = 0.6
    initial_prompt: str = ""
    max_segment_length: int = 0
    split_on_word: bool = True
    suppress_blank: bool = True
    detect_language: bool = False

    @property
    def language_or_auto(self) -> str:
        if self.detect_language or not self.language:
            return "auto"
        return self.language
