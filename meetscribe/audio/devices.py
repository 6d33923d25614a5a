"""Audio input device discovery through platform listing tools."""

import re
import sys
import logging
import subprocess
from typing import List, Optional

from ..models.audio import AudioDevice, DeviceRole, MIXED_DEVICE_ID

logger = logging.getLogger(__name__)

# Case-insensitive substrings that identify loopback/mix devices
SYSTEM_OUTPUT_MARKERS = (
    "stereo mix",
    "mezcla estéreo",
    "what u hear",
    "wave out",
    "loopback",
    "monitor",
    "blackhole",
    "soundflower",
    "cable output",
    "virtual-audio-capturer",
)

LISTING_TIMEOUT_SECONDS = 10

_QUOTED_NAME = re.compile(r'"([^"]+)"')
_INDEXED_NAME = re.compile(r'\[(\d+)\]\s+(.+?)\s*$')
_ARECORD_CARD = re.compile(
    r'^card\s+(\d+):\s*[^\[]*\[([^\]]*)\],\s*device\s+(\d+):\s*[^\[]*\[([^\]]*)\]'
)


def current_platform_tag(platform: Optional[str] = None) -> str:
    """Capture driver model for the running OS."""
    platform = platform or sys.platform
    if platform == "win32":
        return "dshow"
    if platform == "darwin":
        return "avfoundation"
    return "pulse"


def classify_device(name: str) -> DeviceRole:
    lowered = name.lower()
    if any(marker in lowered for marker in SYSTEM_OUTPUT_MARKERS):
        return DeviceRole.SYSTEM_OUTPUT
    return DeviceRole.MICROPHONE


def _device(device_id: str, name: str, platform_tag: str) -> AudioDevice:
    return AudioDevice(
        id=device_id,
        display_name=name,
        role=classify_device(name),
        platform_tag=platform_tag,
    )


def parse_dshow_output(output: str) -> List[AudioDevice]:
    """Parse `ffmpeg -list_devices true -f dshow` output.

    Handles both the `"Name" (audio)` layout of newer builds and the older
    layout with separate "DirectShow audio devices" sections.
    """
    devices = []
    section = None
    for line in output.splitlines():
        if "DirectShow audio devices" in line:
            section = "audio"
            continue
        if "DirectShow video devices" in line:
            section = "video"
            continue
        if "Alternative name" in line:
            continue

        match = _QUOTED_NAME.search(line)
        if not match:
            continue

        name = match.group(1)
        if "(audio)" in line or ("(video)" not in line and section == "audio"):
            if name not in [d.id for d in devices]:
                devices.append(_device(name, name, "dshow"))
    return devices


def parse_avfoundation_output(output: str) -> List[AudioDevice]:
    """Parse `ffmpeg -f avfoundation -list_devices true` output."""
    devices = []
    in_audio = False
    for line in output.splitlines():
        if "AVFoundation audio devices" in line:
            in_audio = True
            continue
        if "AVFoundation video devices" in line:
            in_audio = False
            continue
        if not in_audio:
            continue

        match = _INDEXED_NAME.search(line)
        if match:
            devices.append(_device(match.group(1), match.group(2), "avfoundation"))
    return devices


def parse_pactl_output(output: str) -> List[AudioDevice]:
    """Parse `pactl list short sources` output."""
    devices = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[1].strip():
            continue
        name = parts[1].strip()
        devices.append(_device(name, name, "pulse"))
    return devices


def parse_arecord_output(output: str) -> List[AudioDevice]:
    """Parse `arecord -l` output into hw:CARD,DEVICE ids."""
    devices = []
    for line in output.splitlines():
        match = _ARECORD_CARD.match(line.strip())
        if not match:
            continue
        card, card_name, device, device_name = match.groups()
        devices.append(_device(f"hw:{card},{device}", f"{card_name}: {device_name}", "alsa"))
    return devices


class DeviceEnumerator:
    """Lists audio input devices for the current platform."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", platform: Optional[str] = None):
        """Initialize device enumerator.

        Args:
            ffmpeg_path: ffmpeg executable used for dshow/avfoundation listing
            platform: sys.platform value to target (defaults to the running OS)
        """
        self.ffmpeg_path = ffmpeg_path
        self.platform = platform or sys.platform
        self.platform_tag = current_platform_tag(self.platform)

    def _run(self, args: List[str], check: bool = False) -> str:
        """Run a listing command and return stdout and stderr combined.

        Raises:
            subprocess.CalledProcessError: If check is set and the command exits nonzero
        """
        completed = subprocess.run(
            args,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=LISTING_TIMEOUT_SECONDS,
        )
        if check and completed.returncode != 0:
            raise subprocess.CalledProcessError(
                completed.returncode, args, output=completed.stdout, stderr=completed.stderr
            )
        return (completed.stdout or "") + "\n" + (completed.stderr or "")

    def _list_linux_devices(self) -> List[AudioDevice]:
        try:
            devices = parse_pactl_output(self._run(["pactl", "list", "short", "sources"], check=True))
        except (FileNotFoundError, subprocess.CalledProcessError) as e:
            logger.debug(f"pactl unusable: {e}")
            devices = []
        if devices:
            return devices

        logger.debug("No PulseAudio sources listed, trying arecord")
        return parse_arecord_output(self._run(["arecord", "-l"]))

    def _list_platform_devices(self) -> List[AudioDevice]:
        if self.platform == "win32":
            output = self._run([self.ffmpeg_path, "-hide_banner", "-list_devices", "true",
                                "-f", "dshow", "-i", "dummy"])
            return parse_dshow_output(output)

        if self.platform == "darwin":
            output = self._run([self.ffmpeg_path, "-hide_banner", "-f", "avfoundation",
                                "-list_devices", "true", "-i", ""])
            return parse_avfoundation_output(output)

        return self._list_linux_devices()

    def list_devices(self) -> List[AudioDevice]:
        """List audio devices, never raising.

        Returns:
            Devices found, always preceded by the synthetic mixed device
        """
        try:
            devices = self._list_platform_devices()
            logger.info(f"Found {len(devices)} audio devices via {self.platform_tag}")
        except Exception as e:
            logger.error(f"Device enumeration failed: {e}")
            devices = []

        mixed = AudioDevice(
            id=MIXED_DEVICE_ID,
            display_name="Microphone + System Audio (mixed)",
            role=DeviceRole.MIXED,
            platform_tag=self.platform_tag,
        )
        return [mixed] + devices


def default_microphone(devices: List[AudioDevice]) -> Optional[AudioDevice]:
    return next((d for d in devices if d.role == DeviceRole.MICROPHONE), None)


def default_system_device(devices: List[AudioDevice]) -> Optional[AudioDevice]:
    return next((d for d in devices if d.role == DeviceRole.SYSTEM_OUTPUT), None)


def find_device(devices: List[AudioDevice], device_id: str) -> Optional[AudioDevice]:
    return next((d for d in devices if d.id == device_id), None)
