"""ffmpeg command construction for audio capture."""

import sys
import logging
from typing import List, Optional

from ..models.audio import RecordingConfig

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("wav", "flac", "mp3", "ogg", "opus", "m4a")

_PCM_CODECS = {16: "pcm_s16le", 24: "pcm_s24le", 32: "pcm_s32le"}
_LOSSY_CODECS = {"mp3": "libmp3lame", "ogg": "libvorbis", "opus": "libopus", "m4a": "aac"}
_OPUS_RATES = (48000, 24000, 16000, 12000, 8000)


def build_input_args(device_id: Optional[str], platform: Optional[str] = None) -> List[str]:
    """Capture input arguments for one device.

    Args:
        device_id: Platform device id, or None for the platform default
        platform: sys.platform value

    Returns:
        ffmpeg `-f <driver> -i <device>` argument list
    """
    platform = platform or sys.platform
    if platform == "win32":
        if not device_id:
            raise ValueError("DirectShow capture requires an explicit device name")
        return ["-f", "dshow", "-i", f"audio={device_id}"]

    if platform == "darwin":
        return ["-f", "avfoundation", "-i", f":{device_id or 0}"]

    if device_id and device_id.startswith("hw:"):
        return ["-f", "alsa", "-i", device_id]
    return ["-f", "pulse", "-i", device_id or "default"]


def build_filter_chain(config: RecordingConfig) -> List[str]:
    """Enhancement filters, always in high-pass, denoise, normalize, compress order."""
    filters = []
    if config.filter_highpass:
        filters.append(f"highpass=f={config.highpass_frequency}")
    if config.filter_denoise:
        filters.append("afftdn")
    if config.filter_normalize:
        filters.append("loudnorm")
    if config.filter_compressor:
        filters.append("acompressor")
    return filters


def build_codec_args(config: RecordingConfig) -> List[str]:
    """Codec and sample-format arguments for the output format."""
    fmt = config.audio_format.lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported audio format: {config.audio_format}")

    if fmt == "wav":
        return ["-c:a", _PCM_CODECS.get(config.bit_depth, "pcm_s16le")]
    if fmt == "flac":
        args = ["-c:a", "flac"]
        if config.bit_depth > 16:
            args += ["-sample_fmt", "s32"]
        return args
    return ["-c:a", _LOSSY_CODECS[fmt], "-b:a", f"{config.bitrate_kbps}k"]


def output_sample_rate(config: RecordingConfig) -> int:
    # libopus only accepts a fixed set of rates
    if config.audio_format.lower() == "opus" and config.sample_rate not in _OPUS_RATES:
        return 48000
    return config.sample_rate


def build_ffmpeg_command(
    config: RecordingConfig,
    output_path: str,
    device_id: Optional[str] = None,
    system_device_id: Optional[str] = None,
    platform: Optional[str] = None,
) -> List[str]:
    """Build the full encoder command line.

    When ``system_device_id`` is given both inputs are captured and mixed
    with ``amix`` before the enhancement chain is applied.
    """
    command = [config.ffmpeg_path, "-hide_banner", "-y"]
    command += build_input_args(device_id, platform)

    filters = build_filter_chain(config)
    if system_device_id:
        command += build_input_args(system_device_id, platform)
        graph = "[0:a][1:a]amix=inputs=2:duration=longest"
        if filters:
            graph += "," + ",".join(filters)
        command += ["-filter_complex", graph + "[out]", "-map", "[out]"]
    elif filters:
        command += ["-af", ",".join(filters)]

    command += ["-ar", str(output_sample_rate(config)), "-ac", str(config.channels)]
    command += build_codec_args(config)
    command.append(output_path)
    return command
