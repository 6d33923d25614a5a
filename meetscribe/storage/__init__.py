"""Recording storage module."""

from .file_manager import RecordingLibrary, build_recording_filename

__all__ = [
    'RecordingLibrary',
    'build_recording_filename'
]
