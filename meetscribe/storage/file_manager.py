"""File management for the recordings directory."""

import os
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Union

from ..errors import FileNotFound, RenameConflict
from ..models.audio import RecordingInfo

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".wav", ".mp3", ".m4a", ".ogg", ".opus", ".flac", ".webm", ".aac")
TRANSCRIPT_EXTENSIONS = (".txt", ".srt", ".vtt", ".json")


def build_recording_filename(extension: str, now: Optional[datetime] = None) -> str:
    """Build `recording-<ISO8601>.<ext>` with ':' and '.' replaced by '-'.

    Args:
        extension: File extension without the dot
        now: Timestamp to use (defaults to current UTC time)

    Returns:
        File name such as recording-2024-05-01T12-30-45-123Z.wav
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")
    return f"recording-{stamp}.{extension.lstrip('.')}"


class RecordingLibrary:
    """Lists, renames and deletes recordings and their transcript sidecars."""

    def __init__(self, recordings_dir: str):
        """Initialize recording library.

        Args:
            recordings_dir: Directory scanned for recordings
        """
        self.recordings_dir = Path(recordings_dir)
        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"RecordingLibrary initialized with recordings_dir: {self.recordings_dir}")

    def transcript_path(self, audio_path: str, fmt: str) -> str:
        """Sidecar transcript path for a recording and export format."""
        return str(Path(audio_path).with_suffix(f".{fmt.lstrip('.')}"))

    def find_transcript(self, audio_path: str) -> Optional[str]:
        """Existing transcript sidecar for a recording, or None."""
        audio = Path(audio_path)
        for extension in TRANSCRIPT_EXTENSIONS:
            candidate = audio.with_suffix(extension)
            if candidate.is_file():
                return str(candidate)
        return None

    def list_recordings(self) -> List[RecordingInfo]:
        """List recordings, newest first.

        Returns:
            RecordingInfo for each file with a known audio extension
        """
        recordings = []
        try:
            entries = list(self.recordings_dir.iterdir())
        except OSError as e:
            logger.error(f"Error scanning recordings directory: {e}")
            return []

        for entry in entries:
            if not entry.is_file() or entry.suffix.lower() not in AUDIO_EXTENSIONS:
                continue
            try:
                stat = entry.stat()
            except OSError as e:
                logger.warning(f"Skipping unreadable recording {entry}: {e}")
                continue

            transcript = self.find_transcript(str(entry))
            recordings.append(RecordingInfo(
                path=str(entry),
                name=entry.name,
                size_bytes=stat.st_size,
                modified=datetime.fromtimestamp(stat.st_mtime),
                has_transcript=transcript is not None,
                transcript_path=transcript,
            ))

        recordings.sort(key=lambda r: r.modified, reverse=True)
        logger.debug(f"Found {len(recordings)} recordings")
        return recordings

    def rename(self, audio_path: str, new_name: str) -> str:
        """Rename a recording, keeping its extension.

        Transcript sidecars are renamed along with the recording.

        Args:
            audio_path: Existing recording path
            new_name: New file name, with or without extension

        Returns:
            New path of the recording

        Raises:
            FileNotFound: If the recording does not exist
            RenameConflict: If a file with the new name already exists
        """
        source = Path(audio_path)
        if not source.is_file():
            raise FileNotFound(f"Recording not found: {audio_path}")

        new_name = new_name.strip()
        if not new_name or os.sep in new_name or "/" in new_name:
            raise ValueError(f"Invalid recording name: {new_name!r}")
        if Path(new_name).suffix.lower() != source.suffix.lower():
            new_name += source.suffix

        target = source.with_name(new_name)
        if target == source:
            return str(source)
        if target.exists():
            raise RenameConflict(f"A file named {target.name} already exists")

        source.rename(target)
        logger.info(f"Renamed recording {source.name} -> {target.name}")

        for extension in TRANSCRIPT_EXTENSIONS:
            sidecar = source.with_suffix(extension)
            if not sidecar.is_file():
                continue
            sidecar_target = target.with_suffix(extension)
            if sidecar_target.exists():
                logger.warning(f"Not renaming transcript {sidecar.name}: {sidecar_target.name} exists")
                continue
            sidecar.rename(sidecar_target)

        return str(target)

    def delete(self, paths: Union[str, List[str]], include_transcripts: bool = True) -> Dict[str, Any]:
        """Delete one or more recordings.

        Args:
            paths: A recording path or list of paths
            include_transcripts: Also delete transcript sidecars

        Returns:
            Dictionary with `deleted` paths and `failed` entries
        """
        if isinstance(paths, (str, os.PathLike)):
            paths = [paths]

        deleted = []
        failed = []
        for path in paths:
            audio = Path(path)
            try:
                audio.unlink()
            except FileNotFoundError:
                failed.append({"path": str(audio), "error": "Recording not found", "error_type": "FileNotFound"})
                continue
            except OSError as e:
                logger.error(f"Error deleting recording {audio}: {e}")
                failed.append({"path": str(audio), "error": str(e), "error_type": type(e).__name__})
                continue

            deleted.append(str(audio))
            if include_transcripts:
                for extension in TRANSCRIPT_EXTENSIONS:
                    sidecar = audio.with_suffix(extension)
                    if sidecar.is_file():
                        sidecar.unlink()

        logger.info(f"Deleted {len(deleted)} recordings ({len(failed)} failed)")
        return {"deleted": deleted, "failed": failed}
