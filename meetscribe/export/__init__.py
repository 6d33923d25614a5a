"""Transcript export module."""

from .exporters import (
    EXPORT_FORMATS,
    export_srt,
    export_text,
    export_transcription,
    export_vtt,
    format_srt_time,
    format_vtt_time,
    load_structured,
    parse_srt,
    render_srt,
    render_structured,
    render_text,
    render_vtt,
    save_structured,
)

__all__ = [
    "EXPORT_FORMATS",
    "export_srt",
    "export_text",
    "export_transcription",
    "export_vtt",
    "format_srt_time",
    "format_vtt_time",
    "load_structured",
    "parse_srt",
    "render_srt",
    "render_structured",
    "render_text",
    "render_vtt",
    "save_structured",
]
