"""Audio capture and device discovery module."""

from .devices import DeviceEnumerator
from .recorder import RecordingSession
from .audio_pub import RecordingEventPublisher

__all__ = [
    'DeviceEnumerator',
    'RecordingSession',
    'RecordingEventPublisher'
]
