"""Services layer for MeetScribe application logic."""

from .app_context import AppContext
from .recording_service import RecordingService
from .transcription_service import TranscriptionService

__all__ = [
    "AppContext",
    "RecordingService",
    "TranscriptionService"
]
