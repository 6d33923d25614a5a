"""Recording session driving an ffmpeg capture process."""

import os
import sys
import time
import signal
import logging
import threading
import subprocess
from collections import deque
from pathlib import Path
from typing import Optional, List, Callable

from ..errors import AlreadyRecording, NotRecording, InvalidState, EncoderError
from ..models.audio import (
    ACTIVE_STATES,
    RecordingConfig,
    RecordingResult,
    RecordingState,
    RecordingStatus,
)
from ..models.events import RecordingEvent
from ..storage.file_manager import build_recording_filename
from .audio_pub import RecordingEventPublisher
from .devices import DeviceEnumerator, default_microphone, default_system_device, find_device
from .encoder import build_ffmpeg_command

logger = logging.getLogger(__name__)

# Exit codes ffmpeg reports after an interrupt-driven shutdown
INTERRUPT_EXIT_CODES = (0, 255, 130, -signal.SIGINT)

STARTUP_GRACE_SECONDS = 0.5
STDERR_TAIL_LINES = 50


class RecordingSession:
    """Owns a single encoder process and its lifecycle.

    Idle -> Recording <-> Paused -> Stopping -> Stopped -> Idle, with any
    state moving to Failed when the encoder dies. cleanup() always returns
    the session to Idle.
    """

    def __init__(
        self,
        enumerator: Optional[DeviceEnumerator] = None,
        publisher: Optional[RecordingEventPublisher] = None,
        platform: Optional[str] = None,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        clock: Callable[[], float] = time.monotonic,
        startup_grace_seconds: float = STARTUP_GRACE_SECONDS,
    ):
        """Initialize recording session.

        Args:
            enumerator: Device enumerator used to resolve default devices
            publisher: Publisher for lifecycle events
            platform: sys.platform value to target
            popen: Process factory
            clock: Monotonic clock used for elapsed time
            startup_grace_seconds: How long to watch for an immediate encoder exit
        """
        self.platform = platform or sys.platform
        self.enumerator = enumerator or DeviceEnumerator(platform=self.platform)
        self.publisher = publisher
        self._popen = popen
        self._clock = clock
        self.startup_grace_seconds = startup_grace_seconds

        self.state = RecordingState.IDLE
        self.output_path: Optional[str] = None
        self.started_at: Optional[float] = None
        self.config: Optional[RecordingConfig] = None
        self.process: Optional[subprocess.Popen] = None
        self.stderr_tail = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_thread: Optional[threading.Thread] = None

    def _publish(self, event_type: str, **metadata) -> None:
        if not self.publisher:
            return
        try:
            self.publisher.publish_recording_event(RecordingEvent(
                event_type=event_type,
                state=self.state.value,
                output_path=self.output_path,
                metadata=metadata,
            ))
        except Exception as e:
            logger.warning(f"Recording event listener failed: {e}")

    def _resolve_inputs(self, config: RecordingConfig) -> List[Optional[str]]:
        """Pick the capture device ids (microphone, optional system device)."""
        if config.is_mixed:
            devices = self.enumerator.list_devices()
            microphone = default_microphone(devices)
            if config.system_device_id:
                system = find_device(devices, config.system_device_id)
            else:
                system = default_system_device(devices)

            if microphone and system:
                logger.info(f"Mixed capture: {microphone.display_name} + {system.display_name}")
                return [microphone.id, system.id]

            logger.warning("Mixed mode needs a microphone and a system device, recording microphone only")
            if microphone:
                return [microphone.id, None]
            return self._default_input()

        if config.device_id:
            return [config.device_id, None]
        return self._default_input()

    def _default_input(self) -> List[Optional[str]]:
        # DirectShow has no implicit default device
        if self.platform != "win32":
            return [None, None]

        microphone = default_microphone(self.enumerator.list_devices())
        if not microphone:
            raise EncoderError("No audio input device found")
        logger.info(f"Using default microphone: {microphone.display_name}")
        return [microphone.id, None]

    def _drain_stderr(self, stream) -> None:
        try:
            for raw in stream:
                line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
                self.stderr_tail.append(line.rstrip())
        except (ValueError, OSError):
            pass

    def _stderr_text(self) -> str:
        return "\n".join(list(self.stderr_tail)[-5:])

    def start(self, config: RecordingConfig) -> str:
        """Start capturing to a new timestamped file.

        Args:
            config: Capture parameters

        Returns:
            Path of the file being recorded

        Raises:
            AlreadyRecording: If the session is not Idle
            EncoderError: If the encoder cannot be launched or exits at once
        """
        if self.state != RecordingState.IDLE:
            raise AlreadyRecording(f"Already recording ({self.state.value}): {self.output_path}")

        recordings_dir = Path(config.recordings_dir)
        recordings_dir.mkdir(parents=True, exist_ok=True)
        output_path = str(recordings_dir / build_recording_filename(config.audio_format))

        device_id, system_device_id = self._resolve_inputs(config)
        try:
            command = build_ffmpeg_command(config, output_path, device_id, system_device_id, self.platform)
        except ValueError as e:
            raise EncoderError(str(e))
        logger.info(f"Starting encoder: {' '.join(command)}")

        try:
            process = self._popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise EncoderError(f"Failed to launch encoder '{config.ffmpeg_path}': {e}")

        self.process = process
        self.config = config
        self.output_path = output_path
        self.stderr_tail.clear()
        if process.stderr is not None:
            self._stderr_thread = threading.Thread(
                target=self._drain_stderr, args=(process.stderr,), daemon=True
            )
            self._stderr_thread.start()

        try:
            exit_code = process.wait(timeout=self.startup_grace_seconds)
        except subprocess.TimeoutExpired:
            exit_code = None

        if exit_code is not None:
            details = self._stderr_text()
            self.cleanup()
            raise EncoderError(f"Encoder exited during startup (code {exit_code}): {details}")

        self.state = RecordingState.RECORDING
        self.started_at = self._clock()
        logger.info(f"✅ Recording started: {output_path}")
        self._publish("started", device_id=device_id, system_device_id=system_device_id)
        return output_path

    def _signal_stop(self) -> None:
        """Ask the encoder to finalize the file and exit."""
        try:
            if self.platform == "win32":
                self.process.stdin.write(b"q")
                self.process.stdin.flush()
            else:
                self.process.send_signal(signal.SIGINT)
        except (OSError, ValueError) as e:
            logger.debug(f"Encoder already gone when signalling stop: {e}")

    def stop(self) -> RecordingResult:
        """Stop capturing and finalize the file.

        Returns:
            RecordingResult with path, whole elapsed seconds and size

        Raises:
            NotRecording: If the session is not Recording or Paused
            EncoderError: If the encoder fails or does not exit in time
        """
        if self.state not in (RecordingState.RECORDING, RecordingState.PAUSED):
            raise NotRecording("Not recording")

        elapsed = self._clock() - self.started_at
        self.state = RecordingState.STOPPING
        self._signal_stop()

        timeout = self.config.stop_timeout_seconds if self.config else None
        try:
            exit_code = self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"Encoder did not exit within {timeout}s, killing it")
            self._fail(reason="stop timeout")
            raise EncoderError(f"Encoder did not stop within {timeout} seconds")

        if exit_code not in INTERRUPT_EXIT_CODES:
            details = self._stderr_text()
            logger.error(f"Encoder exited with code {exit_code}: {details}")
            self._fail(reason=f"exit code {exit_code}")
            raise EncoderError(f"Encoder exited with code {exit_code}: {details}")

        output_path = self.output_path
        try:
            size_bytes = os.path.getsize(output_path)
        except OSError as e:
            logger.warning(f"Could not read recording size: {e}")
            size_bytes = 0

        result = RecordingResult(
            output_path=output_path,
            duration_seconds=int(elapsed),
            size_bytes=size_bytes,
        )
        self.process = None
        self.state = RecordingState.STOPPED
        logger.info(f"Recording stopped: {output_path} ({result.duration_seconds}s, {size_bytes} bytes)")
        self._publish("stopped", duration_seconds=result.duration_seconds, size_bytes=size_bytes)
        self.cleanup()
        return result

    def pause(self) -> None:
        """Mark the session paused. The encoder keeps capturing."""
        if self.state != RecordingState.RECORDING:
            raise InvalidState(f"Cannot pause while {self.state.value}")
        self.state = RecordingState.PAUSED
        logger.info("Recording paused (display only, capture continues)")
        self._publish("paused")

    def resume(self) -> None:
        if self.state != RecordingState.PAUSED:
            raise InvalidState(f"Cannot resume while {self.state.value}")
        self.state = RecordingState.RECORDING
        logger.info("Recording resumed")
        self._publish("resumed")

    def status(self) -> RecordingStatus:
        """Current state, elapsed seconds and output path."""
        if self.state in (RecordingState.RECORDING, RecordingState.PAUSED):
            exit_code = self.process.poll()
            if exit_code is not None:
                logger.error(f"Encoder exited unexpectedly with code {exit_code}: {self._stderr_text()}")
                self._fail(reason=f"exit code {exit_code}", kill=False)

        elapsed = 0.0
        if self.started_at is not None:
            elapsed = self._clock() - self.started_at
        return RecordingStatus(state=self.state, elapsed_seconds=elapsed, output_path=self.output_path)

    def _fail(self, reason: str, kill: bool = True) -> None:
        """Move to Failed, dropping the encoder handle."""
        if kill:
            self._terminate_process()
        self.process = None
        self.state = RecordingState.FAILED
        self._publish("failed", reason=reason)

    def _terminate_process(self) -> None:
        process = self.process
        if process is None:
            return
        if process.poll() is None:
            logger.warning("Killing encoder process")
            process.kill()
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                logger.error("Encoder process did not exit after kill")
        if process.stdin is not None:
            try:
                process.stdin.close()
            except (OSError, ValueError):
                pass

    def cleanup(self) -> None:
        """Kill any live encoder and reset every field to Idle."""
        if self.state in ACTIVE_STATES and self.process is not None:
            logger.warning(f"Cleaning up while {self.state.value}, terminating encoder")
        self._terminate_process()

        self.state = RecordingState.IDLE
        self.process = None
        self.output_path = None
        self.started_at = None
        self.config = None
        self._publish("cleaned_up")
        logger.debug("RecordingSession cleaned up")
