"""Data models for the MeetScribe application."""

from .audio import (
    ACTIVE_STATES,
    MIXED_DEVICE_ID,
    AudioDevice,
    DeviceRole,
    RecordingConfig,
    RecordingInfo,
    RecordingResult,
    RecordingState,
    RecordingStatus,
)
from .transcription import TranscriptionSegment, TranscriptionResult, TranscriptionOptions, ModelInfo
from .estimation import EstimationReport
from .events import ProgressEvent, RecordingEvent

__all__ = [
    "ACTIVE_STATES",
    "MIXED_DEVICE_ID",
    "AudioDevice",
    "DeviceRole",
    "RecordingConfig",
    "RecordingInfo",
    "RecordingResult",
    "RecordingState",
    "RecordingStatus",
    "TranscriptionSegment",
    "TranscriptionResult",
    "TranscriptionOptions",
    "ModelInfo",
    "EstimationReport",
    "ProgressEvent",
    "RecordingEvent",
]
