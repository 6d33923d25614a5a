"""Transcription module for MeetScribe."""

from .base import AbstractTranscriptionBackend, build_result
from .cancellation import CancellationToken
from .model_store import ModelStore
from .openai_backend import OpenAITranscriptionBackend
from .publisher import ProgressPublisher
from .session import TranscriptionSession
from .whisper_local import WhisperCppBackend

__all__ = [
    "AbstractTranscriptionBackend",
    "build_result",
    "CancellationToken",
    "ModelStore",
    "OpenAITranscriptionBackend",
    "ProgressPublisher",
    "TranscriptionSession",
    "WhisperCppBackend",
]
