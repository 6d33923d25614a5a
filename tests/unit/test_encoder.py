"""Unit tests for ffmpeg command construction."""

import pytest

from meetscribe.audio.encoder import (
    build_codec_args,
    build_ffmpeg_command,
    build_filter_chain,
    build_input_args,
)
from meetscribe.models.audio import RecordingConfig


def make_config(**kwargs) -> RecordingConfig:
    return RecordingConfig(recordings_dir="/tmp/recordings", **kwargs)


@pytest.mark.unit
class TestEncoderCommand:
    """Test cases for encoder argument building."""

    def test_platform_inputs(self):
        assert build_input_args("Mic", "win32") == ["-f", "dshow", "-i", "audio=Mic"]
        assert build_input_args(None, "darwin") == ["-f", "avfoundation", "-i", ":0"]
        assert build_input_args("2", "darwin") == ["-f", "avfoundation", "-i", ":2"]
        assert build_input_args(None, "linux") == ["-f", "pulse", "-i", "default"]
        assert build_input_args("hw:1,0", "linux") == ["-f", "alsa", "-i", "hw:1,0"]

    def test_dshow_requires_device(self):
        with pytest.raises(ValueError):
            build_input_args(None, "win32")

    def test_filters_in_fixed_order(self):
        config = make_config(
            filter_compressor=True,
            filter_normalize=True,
            filter_denoise=True,
            filter_highpass=True,
            highpass_frequency=100,
        )
        assert build_filter_chain(config) == ["highpass=f=100", "afftdn", "loudnorm", "acompressor"]

    def test_filters_skip_disabled(self):
        config = make_config(filter_normalize=True)
        assert build_filter_chain(config) == ["loudnorm"]
        assert build_filter_chain(make_config()) == []

    @pytest.mark.parametrize("fmt,bit_depth,expected", [
        ("wav", 16, ["-c:a", "pcm_s16le"]),
        ("wav", 24, ["-c:a", "pcm_s24le"]),
        ("flac", 16, ["-c:a", "flac"]),
        ("mp3", 16, ["-c:a", "libmp3lame", "-b:a", "192k"]),
        ("m4a", 16, ["-c:a", "aac", "-b:a", "192k"]),
    ])
    def test_codecs(self, fmt, bit_depth, expected):
        config = make_config(audio_format=fmt, bit_depth=bit_depth, bitrate_kbps=192)
        assert build_codec_args(config) == expected

    def test_unsupported_format(self):
        with pytest.raises(ValueError):
            build_codec_args(make_config(audio_format="xyz"))

    def test_single_input_command(self):
        config = make_config(sample_rate=48000, channels=2, filter_denoise=True)
        command = build_ffmpeg_command(config, "/tmp/out.wav", "Mic", platform="win32")

        assert command[0] == "ffmpeg"
        assert command[-1] == "/tmp/out.wav"
        assert command.count("-i") == 1
        assert command[command.index("-af") + 1] == "afftdn"
        assert command[command.index("-ar") + 1] == "48000"
        assert command[command.index("-ac") + 1] == "2"

    def test_mixed_command_uses_amix(self):
        config = make_config(filter_highpass=True)
        command = build_ffmpeg_command(config, "/tmp/out.wav", "Mic", "Stereo Mix", platform="win32")

        assert command.count("-i") == 2
        assert "audio=Stereo Mix" in command
        graph = command[command.index("-filter_complex") + 1]
        assert graph == "[0:a][1:a]amix=inputs=2:duration=longest,highpass=f=80[out]"
        assert command[command.index("-map") + 1] == "[out]"
        assert "-af" not in command

    def test_opus_rate_adjusted(self):
        config = make_config(audio_format="opus", sample_rate=44100)
        command = build_ffmpeg_command(config, "/tmp/out.opus", None, platform="linux")
        assert command[command.index("-ar") + 1] == "48000"
