"""Real ffmpeg tests for capture and transcoding.

These tests need ffmpeg on PATH and, for capture, a working input device.
They check the encoder produces real files rather than mocking it.

Run with: pytest tests/hardware/ -v -s -m hardware
"""

import shutil
import time
import wave
import pytest
from pathlib import Path

from meetscribe.audio import DeviceEnumerator, RecordingSession
from meetscribe.models.audio import RecordingConfig
from meetscribe.transcription.session import TranscriptionSession, matches_format
from meetscribe.transcription.base import AbstractTranscriptionBackend, build_result


pytestmark = pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")


class PassThroughBackend(AbstractTranscriptionBackend):
    provider_name = "passthrough"
    required_sample_rate = 16000
    required_channels = 1

    def __init__(self):
        self.seen_formats = []

    def initialize(self):
        return True

    def transcribe_file(self, audio_path, options, token):
        with wave.open(audio_path, "rb") as wf:
            self.seen_formats.append((wf.getframerate(), wf.getnchannels()))
        return build_result([(0.0, 1.0, "ok")])

    def cleanup(self):
        pass


@pytest.mark.hardware
class TestRealFfmpeg:
    """Tests that run the real ffmpeg binary."""

    def test_list_devices(self):
        devices = DeviceEnumerator().list_devices()
        print(f"\nFound {len(devices)} devices:")
        for device in devices:
            print(f"  [{device.role.value}] {device.display_name} ({device.id})")
        assert devices[0].id == "mixed"

    def test_stereo_file_transcoded_for_engine(self, stereo_audio_file):
        backend = PassThroughBackend()
        session = TranscriptionSession(lambda tag: backend)

        result = session.transcribe(stereo_audio_file)

        assert result.full_text == "ok"
        assert backend.seen_formats == [(16000, 1)]
        assert not matches_format(stereo_audio_file, 16000, 1)

    def test_real_microphone_recording_3s(self, temp_data_dir):
        """Record three seconds from the default input and check the file."""
        session = RecordingSession()
        config = RecordingConfig(recordings_dir=temp_data_dir, sample_rate=16000)

        try:
            output_path = session.start(config)
        except Exception as e:
            pytest.skip(f"No usable capture device: {e}")

        time.sleep(3)
        result = session.stop()

        print(f"\nRecorded {result.duration_seconds}s, {result.size_bytes} bytes to {output_path}")
        assert Path(output_path).is_file()
        assert result.duration_seconds >= 2
        with wave.open(output_path, "rb") as wf:
            assert wf.getframerate() == 16000
            assert wf.getnframes() > 16000
