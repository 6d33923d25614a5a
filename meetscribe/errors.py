"""Error types raised by the recording and transcription layers.

Internal layers raise these; the service layer converts them into
``{"success": False, "error": ..., "error_type": ...}`` result dicts.
"""


class MeetScribeError(Exception):
    """Base class for all MeetScribe errors."""

    code = "MeetScribeError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class AlreadyRecording(MeetScribeError):
    code = "AlreadyRecording"


class NotRecording(MeetScribeError):
    code = "NotRecording"


class InvalidState(MeetScribeError):
    """Raised on pause/resume misuse."""
    code = "InvalidState"


class EncoderError(MeetScribeError):
    """Capture process failed for a reason other than the expected interrupt."""
    code = "EncoderError"


class FileNotFound(MeetScribeError):
    code = "FileNotFound"


class CorruptModel(MeetScribeError):
    code = "CorruptModel"


class DownloadFailure(MeetScribeError):
    code = "DownloadFailure"


class EngineError(MeetScribeError):
    """Transcription backend failure."""
    code = "EngineError"


class RenameConflict(MeetScribeError):
    code = "RenameConflict"


class TranscriptionCancelled(MeetScribeError):
    code = "TranscriptionCancelled"


def error_result(error: Exception) -> dict:
    """Normalize an exception into a boundary result dict."""
    error_type = error.code if isinstance(error, MeetScribeError) else type(error).__name__
    return {
        "success": False,
        "error": str(error),
        "error_type": error_type,
    }
