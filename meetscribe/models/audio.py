"""Audio device and recording data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class DeviceRole(str, Enum):
    """What kind of signal an input device carries."""
    MICROPHONE = "microphone"
    SYSTEM_OUTPUT = "systemOutput"
    MIXED = "mixed"


class RecordingState(str, Enum):
    """Lifecycle states of a recording session."""
    IDLE = "Idle"
    RECORDING = "Recording"
    PAUSED = "Paused"
    STOPPING = "Stopping"
    STOPPED = "Stopped"
    FAILED = "Failed"


# States in which the encoder process is expected to be alive
ACTIVE_STATES = (RecordingState.RECORDING, RecordingState.PAUSED, RecordingState.STOPPING)

MIXED_DEVICE_ID = "mixed"


@dataclass
class AudioDevice:
    """An input device reported by the platform listing tool."""
    id: str
    display_name: str
    role: DeviceRole
    platform_tag: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "role": self.role.value,
            "platform_tag": self.platform_tag,
        }


@dataclass
class RecordingConfig:
    """Parameters for a single capture run."""
    recordings_dir: str
    sample_rate: int = 44100
    channels: int = 1
    bit_depth: int = 16
    bitrate_kbps: int = 128
    audio_format: str = "wav"
    device_id: Optional[str] = None          # None/"" means platform default
    system_device_id: Optional[str] = None   # Used by mixed mode only
    filter_highpass: bool = False
    highpass_frequency: int = 80
    filter_denoise: bool = False
    filter_normalize: bool = False
    filter_compressor: bool = False
    ffmpeg_path: str = "ffmpeg"
    stop_timeout_seconds: float = 10.0

    @property
    def is_mixed(self) -> bool:
        return self.device_id == MIXED_DEVICE_ID


@dataclass
class RecordingResult:
    """Outcome of a finished recording."""
    output_path: str
    duration_seconds: int
    size_bytes: int

    def to_dict(self) -> dict:
        return {
            "output_path": self.output_path,
            "duration_seconds": self.duration_seconds,
            "size_bytes": self.size_bytes,
        }


@dataclass
class RecordingStatus:
    """Snapshot of a recording session."""
    state: RecordingState
    elapsed_seconds: float = 0.0
    output_path: Optional[str] = None

    @property
    def is_recording(self) -> bool:
        return self.state in (RecordingState.RECORDING, RecordingState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.state == RecordingState.PAUSED

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "is_recording": self.is_recording,
            "is_paused": self.is_paused,
            "elapsed_seconds": self.elapsed_seconds,
            "output_path": self.output_path,
        }


@dataclass
class RecordingInfo:
    """A recording file found in the recordings directory."""
    path: str
    name: str
    size_bytes: int
    modified: datetime
    has_transcript: bool = False
    transcript_path: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "modified": self.modified.isoformat(),
            "has_transcript": self.has_transcript,
            "transcript_path": self.transcript_path,
        }
