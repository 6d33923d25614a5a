"""Transcription service exposing estimation, transcription and export as result dicts."""

import logging
from typing import Any, Callable, Dict, Optional, Union

from ..errors import error_result
from ..estimation.estimator import resolve_backend
from ..export.exporters import export_transcription
from ..models.events import ProgressEvent
from ..models.transcription import TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Boundary for transcription operations. Never raises, returns result dicts."""

    def __init__(self, context):
        """Initialize transcription service.

        Args:
            context: AppContext owning the transcription session
        """
        self.context = context
        self.config = context.config
        self.session = context.transcriber
        self.estimator = context.estimator
        self.model_store = context.model_store

    def initialize(self, model_tag: Optional[str] = None) -> Dict[str, Any]:
        """Load the model for the configured provider."""
        try:
            key = self.context.active_model_tag(model_tag)
            self.session.initialize(key)
            return {"success": True, "model": key, "provider": self.context.provider()}
        except Exception as e:
            logger.error(f"Error initializing transcription: {e}")
            return error_result(e)

    def transcribe(
        self,
        path: str,
        model_tag: Optional[str] = None,
        export_format: Optional[str] = None,
        **option_overrides: Any,
    ) -> Dict[str, Any]:
        """Transcribe a file and optionally export it next to the recording.

        Args:
            path: Audio file
            model_tag: Local model size (ignored by the cloud provider)
            export_format: txt, srt, vtt or json; no export when None
            **option_overrides: TranscriptionOptions fields to override

        Returns:
            Result dictionary with the structured result and any export path
        """
        try:
            options = self.context.transcription_options(**option_overrides)
            result = self.session.transcribe(path, options, self.context.active_model_tag(model_tag))

            response = {"success": True, "result": result.to_dict()}
            if export_format:
                transcript_path = self.context.library.transcript_path(path, export_format)
                response["transcript_path"] = export_transcription(result, transcript_path, export_format)
            return response
        except Exception as e:
            logger.error(f"Error transcribing {path}: {e}")
            return error_result(e)

    def cancel(self) -> Dict[str, Any]:
        """Cancel the in-flight transcription. Not an error when idle."""
        cancelled = self.session.cancel()
        message = "Cancellation requested" if cancelled else "Nothing to cancel"
        return {"success": True, "cancelled": cancelled, "message": message}

    def estimate_duration(self, path: str) -> Dict[str, Any]:
        return {"success": True, "duration_seconds": self.estimator.estimate_duration(path)}

    def estimate(
        self,
        path: str,
        model_tag: Optional[str] = None,
        backend_tag: Optional[str] = None,
        beam_size: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Estimate transcription time for a file using configured defaults."""
        try:
            settings = self.config.settings
            report = self.estimator.estimate_for_file(
                path,
                model_tag=model_tag or settings.whisper_model,
                backend_tag=backend_tag or resolve_backend(settings.use_gpu, settings.gpu_backend),
                beam_size=beam_size if beam_size is not None else settings.beam_size,
            )
            return {"success": True, **report.to_dict()}
        except Exception as e:
            logger.error(f"Error estimating transcription time: {e}")
            return error_result(e)

    def export(
        self,
        result: Union[TranscriptionResult, Dict[str, Any]],
        output_path: str,
        fmt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Write a result (object or structured dict) in the given format."""
        try:
            if isinstance(result, dict):
                result = TranscriptionResult.from_dict(result)
            path = export_transcription(result, output_path, fmt or self.config.get("export_format"))
            return {"success": True, "path": path}
        except Exception as e:
            logger.error(f"Error exporting transcription: {e}")
            return error_result(e)

    def save_transcription(
        self,
        result: Union[TranscriptionResult, Dict[str, Any]],
        output_path: str,
    ) -> Dict[str, Any]:
        """Save the structured JSON form of a result."""
        return self.export(result, output_path, "json")

    def list_models(self) -> Dict[str, Any]:
        try:
            return {"success": True, "models": [m.to_dict() for m in self.model_store.list_models()]}
        except Exception as e:
            logger.error(f"Error listing models: {e}")
            return error_result(e)

    def delete_model(self, model_tag: str) -> Dict[str, Any]:
        try:
            if self.session.model_tag == model_tag:
                self.session.dispose()
            deleted = self.model_store.delete_model(model_tag)
            return {"success": True, "deleted": deleted}
        except Exception as e:
            logger.error(f"Error deleting model {model_tag}: {e}")
            return error_result(e)

    def force_download_model(
        self,
        model_tag: str,
        progress: Optional[Callable[[int, Optional[int]], None]] = None,
    ) -> Dict[str, Any]:
        try:
            if self.session.model_tag == model_tag:
                self.session.dispose()
            path = self.model_store.force_download(model_tag, progress)
            return {"success": True, "path": path}
        except Exception as e:
            logger.error(f"Error downloading model {model_tag}: {e}")
            return error_result(e)

    def subscribe_progress(self, listener: Callable[[ProgressEvent], None]) -> None:
        self.session.subscribe_progress(listener)

    def unsubscribe_progress(self, listener: Callable[[ProgressEvent], None]) -> None:
        self.session.unsubscribe_progress(listener)
