"""Pytest configuration and fixtures for MeetScribe tests."""

import io
import pytest
import tempfile
import logging
import subprocess
from pathlib import Path
import numpy as np
import wave

from meetscribe.config import MeetScribeConfig


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no external tools")
    config.addinivalue_line("markers", "integration: multi-component workflows")
    config.addinivalue_line("markers", "hardware: needs real ffmpeg and audio devices")
    config.addinivalue_line("markers", "slow: long running tests")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


def write_wav(path, seconds: float, sample_rate: int = 16000, channels: int = 1) -> str:
    """Write a 440 Hz sine wave WAV file."""
    samples = int(seconds * sample_rate)
    t = np.linspace(0, seconds, samples, False)
    mono = (np.sin(2 * np.pi * 440 * t) * 32767).astype(np.int16)
    frames = np.repeat(mono, channels) if channels > 1 else mono

    with wave.open(str(path), 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(frames.tobytes())
    return str(path)


@pytest.fixture
def sample_audio_file(temp_data_dir, sample_audio_chunk):
    """Create a 16 kHz mono WAV file (~6.4 seconds)."""
    file_path = Path(temp_data_dir) / "test_audio.wav"

    with wave.open(str(file_path), 'wb') as wf:
        wf.setnchannels(1)  # Mono
        wf.setsampwidth(2)  # 16-bit
        wf.setframerate(16000)  # 16kHz

        # Write multiple chunks to create a longer file
        for _ in range(100):
            wf.writeframes(sample_audio_chunk)

    return str(file_path)


@pytest.fixture
def stereo_audio_file(temp_data_dir):
    """Create a 44.1 kHz stereo WAV file (2 seconds) that needs transcoding."""
    return write_wav(Path(temp_data_dir) / "stereo.wav", 2.0, sample_rate=44100, channels=2)


@pytest.fixture
def test_config(temp_data_dir):
    """MeetScribeConfig backed by a settings file in a temp dir."""
    return MeetScribeConfig(str(Path(temp_data_dir) / "config.yaml"))


class FakeStdin(io.BytesIO):
    """stdin pipe that notifies the fake process when 'q' is written."""

    def __init__(self, process):
        super().__init__()
        self.process = process
        self.written = b""

    def write(self, data):
        self.written += data
        if b"q" in data:
            self.process.request_stop()
        return super().write(data)


class FakeEncoderProcess:
    """Stands in for a running ffmpeg capture process."""

    def __init__(self, args, stop_exit_code=255, startup_exit_code=None, hang_on_stop=False,
                 bytes_written=4096, stderr=b"Press [q] to stop\n"):
        self.args = args
        self.output_path = args[-1]
        self.stop_exit_code = stop_exit_code
        self.startup_exit_code = startup_exit_code
        self.hang_on_stop = hang_on_stop
        self.bytes_written = bytes_written
        self.returncode = startup_exit_code
        self.stdin = FakeStdin(self)
        self.stderr = io.BytesIO(stderr)
        self.signals = []
        self.killed = False
        self._stop_requested = False

    def request_stop(self):
        self._stop_requested = True

    def send_signal(self, sig):
        self.signals.append(sig)
        self.request_stop()

    def wait(self, timeout=None):
        if self.returncode is not None:
            return self.returncode
        if self._stop_requested and not self.hang_on_stop:
            if self.bytes_written:
                Path(self.output_path).write_bytes(b"\x00" * self.bytes_written)
            self.returncode = self.stop_exit_code
            return self.returncode
        raise subprocess.TimeoutExpired(self.args, timeout)

    def poll(self):
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9

    def crash(self, exit_code=1):
        self.returncode = exit_code


@pytest.fixture
def fake_popen():
    """Popen replacement recording every launched fake encoder.

    Set ``fake_popen.options`` to pass FakeEncoderProcess keyword arguments.
    """
    class Factory:
        def __init__(self):
            self.processes = []
            self.options = {}

        def __call__(self, args, **kwargs):
            process = FakeEncoderProcess(args, **self.options)
            process.popen_kwargs = kwargs
            self.processes.append(process)
            return process

        @property
        def last(self):
            return self.processes[-1]

    return Factory()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()
