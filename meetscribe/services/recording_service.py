"""Recording service exposing the recorder and library as result dicts."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Union

from ..errors import error_result
from ..models.audio import RecordingState

logger = logging.getLogger(__name__)


class RecordingService:
    """Boundary for recording operations. Never raises, returns result dicts."""

    def __init__(self, context):
        """Initialize recording service.

        Args:
            context: AppContext owning the recorder and library
        """
        self.context = context
        self.recorder = context.recorder
        self.library = context.library

    def list_devices(self) -> Dict[str, Any]:
        devices = self.context.enumerator.list_devices()
        return {"success": True, "devices": [device.to_dict() for device in devices]}

    def start_recording(self, **overrides: Any) -> Dict[str, Any]:
        """Start recording with settings plus per-call overrides.

        Returns:
            Result dictionary with success status and output path
        """
        try:
            if self.recorder.state in (RecordingState.FAILED, RecordingState.STOPPED):
                logger.info(f"Cleaning up {self.recorder.state.value} session before starting")
                self.recorder.cleanup()

            config = self.context.config.recording_config(**overrides)
            output_path = self.recorder.start(config)
            return {
                "success": True,
                "output_path": output_path,
                "started_at": datetime.now().isoformat(),
            }
        except Exception as e:
            logger.error(f"Error starting recording: {e}")
            return error_result(e)

    def stop_recording(self) -> Dict[str, Any]:
        """Stop recording and return path, duration and size."""
        try:
            result = self.recorder.stop()
            return {
                "success": True,
                "stopped_at": datetime.now().isoformat(),
                **result.to_dict(),
            }
        except Exception as e:
            logger.error(f"Error stopping recording: {e}")
            return error_result(e)

    def pause_recording(self) -> Dict[str, Any]:
        try:
            self.recorder.pause()
            return {"success": True, "state": self.recorder.state.value}
        except Exception as e:
            logger.error(f"Error pausing recording: {e}")
            return error_result(e)

    def resume_recording(self) -> Dict[str, Any]:
        try:
            self.recorder.resume()
            return {"success": True, "state": self.recorder.state.value}
        except Exception as e:
            logger.error(f"Error resuming recording: {e}")
            return error_result(e)

    def get_status(self) -> Dict[str, Any]:
        try:
            return {"success": True, **self.recorder.status().to_dict()}
        except Exception as e:
            logger.error(f"Error reading recording status: {e}")
            return error_result(e)

    def list_recordings(self) -> Dict[str, Any]:
        recordings = self.library.list_recordings()
        return {"success": True, "recordings": [r.to_dict() for r in recordings]}

    def rename_recording(self, path: str, new_name: str) -> Dict[str, Any]:
        try:
            new_path = self.library.rename(path, new_name)
            return {"success": True, "path": new_path}
        except Exception as e:
            logger.error(f"Error renaming recording: {e}")
            return error_result(e)

    def delete_recordings(self, paths: Union[str, List[str]]) -> Dict[str, Any]:
        """Delete one or more recordings and their transcripts."""
        try:
            outcome = self.library.delete(paths)
        except Exception as e:
            logger.error(f"Error deleting recordings: {e}")
            return error_result(e)

        if outcome["failed"]:
            errors = "; ".join(f"{f['path']}: {f['error']}" for f in outcome["failed"])
            return {
                "success": False,
                "error": f"Could not delete {len(outcome['failed'])} recording(s): {errors}",
                "error_type": outcome["failed"][0]["error_type"],
                **outcome,
            }
        return {"success": True, **outcome}

    def cleanup(self) -> None:
        """Clean up service resources."""
        try:
            self.recorder.cleanup()
            logger.info("RecordingService cleaned up")
        except Exception as e:
            logger.error(f"Error during RecordingService cleanup: {e}")
