"""Transcript serialization to text, subtitle and JSON formats."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..models.transcription import TranscriptionResult, TranscriptionSegment

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("txt", "srt", "vtt", "json")


def _split_timestamp(seconds: float):
    total_ms = max(0, int(round(seconds * 1000)))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return hours, minutes, secs, millis


def format_srt_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm (65.5 -> 00:01:05,500)."""
    hours, minutes, secs, millis = _split_timestamp(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def format_vtt_time(seconds: float) -> str:
    hours, minutes, secs, millis = _split_timestamp(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"


def render_text(result: TranscriptionResult) -> str:
    return result.full_text.strip() + "\n"


def render_srt(result: TranscriptionResult) -> str:
    """One numbered block per segment, separated by blank lines."""
    blocks = []
    for number, segment in enumerate(result.segments, start=1):
        blocks.append(
            f"{number}\n"
            f"{format_srt_time(segment.start_seconds)} --> {format_srt_time(segment.end_seconds)}\n"
            f"{segment.text}\n\n"
        )
    return "".join(blocks)


def render_vtt(result: TranscriptionResult) -> str:
    cues = ["WEBVTT\n"]
    for segment in result.segments:
        cues.append(
            f"{format_vtt_time(segment.start_seconds)} --> {format_vtt_time(segment.end_seconds)}\n"
            f"{segment.text}\n"
        )
    return "\n".join(cues)


def render_structured(result: TranscriptionResult, timestamp: Optional[datetime] = None) -> str:
    data = result.to_dict()
    data["timestamp"] = (timestamp or datetime.now()).isoformat()
    return json.dumps(data, indent=2, ensure_ascii=False)


def _write(path: str, content: str) -> str:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        f.write(content)
    logger.info(f"Exported transcript to {output}")
    return str(output)


def export_text(result: TranscriptionResult, path: str) -> str:
    return _write(path, render_text(result))


def export_srt(result: TranscriptionResult, path: str) -> str:
    return _write(path, render_srt(result))


def export_vtt(result: TranscriptionResult, path: str) -> str:
    return _write(path, render_vtt(result))


def save_structured(result: TranscriptionResult, path: str) -> str:
    """Write the JSON document with text, segments, language, duration and timestamp."""
    return _write(path, render_structured(result))


def load_structured(path: str) -> TranscriptionResult:
    """Read a JSON document written by save_structured."""
    with open(path, "r", encoding="utf-8") as f:
        return TranscriptionResult.from_dict(json.load(f))


def export_transcription(result: TranscriptionResult, path: str, fmt: Optional[str] = None) -> str:
    """Export in the given format, inferred from the path suffix when omitted.

    Raises:
        ValueError: For unsupported formats
    """
    fmt = (fmt or Path(path).suffix.lstrip(".") or "txt").lower()
    writers = {
        "txt": export_text,
        "srt": export_srt,
        "vtt": export_vtt,
        "json": save_structured,
    }
    if fmt not in writers:
        raise ValueError(f"Unsupported export format: {fmt}")
    return writers[fmt](result, path)


def parse_srt_time(value: str) -> float:
    hours, minutes, rest = value.strip().split(":")
    secs, millis = rest.replace(".", ",").split(",")
    return int(hours) * 3600 + int(minutes) * 60 + int(secs) + int(millis) / 1000


def parse_srt(content: str) -> List[TranscriptionSegment]:
    """Parse SRT blocks back into segments indexed from 0.

    Raises:
        ValueError: If a block has no valid timing line
    """
    segments = []
    for block in content.replace("\r\n", "\n").strip().split("\n\n"):
        lines = [line for line in block.split("\n") if line.strip()]
        if not lines:
            continue
        if "-->" not in lines[0]:
            lines = lines[1:]
        if not lines or "-->" not in lines[0]:
            raise ValueError(f"Malformed subtitle block: {block!r}")
        start, end = lines[0].split("-->")
        segments.append(TranscriptionSegment(
            index=len(segments),
            start_seconds=parse_srt_time(start),
            end_seconds=parse_srt_time(end),
            text="\n".join(lines[1:]),
        ))
    return segments
