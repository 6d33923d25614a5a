"""YAML-backed settings for MeetScribe."""

import os
import sys
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from ..models.audio import RecordingConfig

logger = logging.getLogger(__name__)

APP_NAME = "MeetScribe"
CONFIG_ENV_VAR = "MEETSCRIBE_CONFIG"
CONFIG_FILE_NAME = "config.yaml"


class Settings(BaseModel):
    """Flat key/value settings document.

    Unknown keys are kept as extras so that newer or third-party settings
    survive a load/save cycle.
    """
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    # Storage
    recordings_path: str = ""
    models_path: str = ""

    # Transcription
    whisper_model: str = "base"
    language: str = "auto"
    export_format: str = "txt"  # txt, srt, vtt, json
    transcription_provider: str = "auto"  # auto, local, openai
    openai_api_key: str = ""
    openai_model: str = "whisper-1"

    # Capture
    audio_source: str = ""  # "" = platform default, device id, or "mixed"
    system_audio_source: str = ""
    sample_rate: int = 44100
    channels: int = 1
    bit_depth: int = 16
    bitrate_kbps: int = 128
    audio_format: str = "wav"

    # Enhancement filters
    filter_highpass: bool = False
    highpass_frequency: int = 80
    filter_denoise: bool = False
    filter_normalize: bool = False
    filter_compressor: bool = False

    # Inference tuning
    use_gpu: bool = True
    gpu_backend: str = "cuda"
    n_threads: int = 8
    beam_size: int = 3
    best_of: int = 3
    temperature: float = 0.0
    entropy_thold: float = 2.4
    logprob_thold: float = -1.0
    no_speech_thold: float = 0.6
    initial_prompt: str = ""
    max_segment_length: int = 0
    split_on_word: bool = True
    suppress_blank: bool = True
    detect_language: bool = False

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    stop_timeout_seconds: float = 10.0
    api_timeout_seconds: float = 600.0

    # Logging
    log_level: str = "INFO"
    log_file_path: str = ""
    console_output: bool = True


def user_data_dir() -> Path:
    """Per-user directory holding settings, recordings and models."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
        return Path(base) / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_NAME.lower()


def default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return user_data_dir() / CONFIG_FILE_NAME


class MeetScribeConfig:
    """MeetScribe configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to the YAML settings file. If None, uses
                         $MEETSCRIBE_CONFIG or the per-user default location.
                         A missing file is created with defaults.
        """
        self.config_file = Path(config_path) if config_path else default_config_path()
        self.base_dir = self.config_file.parent

        logger.info(f"Loading configuration from: {self.config_file}")
        self.settings = self._load_config()

    def _load_config(self) -> Settings:
        """Load the settings file, backfilling defaults for missing keys."""
        if not self.config_file.exists():
            logger.info("No configuration file found, writing defaults")
            settings = Settings()
            self._write(settings)
            return settings

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not isinstance(raw, dict):
            raise ValueError("Configuration file must contain a mapping")

        settings = self._validate(raw)
        logger.info("Configuration loaded successfully")
        return settings

    def _validate(self, raw: Dict[str, Any]) -> Settings:
        """Build Settings, replacing invalid values with their defaults."""
        data = dict(raw)
        while True:
            try:
                return Settings(**data)
            except ValidationError as e:
                bad_keys = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
                if not bad_keys or not bad_keys & set(data):
                    raise ValueError(f"Invalid configuration: {e}")
                for key in bad_keys:
                    logger.warning(f"Invalid value for '{key}': {data.get(key)!r}, using default")
                    data.pop(key, None)

    def _write(self, settings: Settings) -> None:
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(settings.model_dump(), f, default_flow_style=False, sort_keys=False)

    def save(self) -> None:
        """Persist current settings to disk."""
        self._write(self.settings)
        logger.debug(f"Configuration saved to {self.config_file}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value.

        Args:
            key: Setting name (e.g., 'whisper_model')
            default: Value returned when the key is not set

        Returns:
            Configuration value or default
        """
        return self.settings.model_dump().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a setting and persist it.

        Raises:
            ValueError: If the value is not valid for the key
        """
        self.update({key: value})

    def update(self, values: Dict[str, Any]) -> None:
        """Set several settings at once and persist them."""
        data = self.settings.model_dump()
        data.update(values)
        try:
            self.settings = Settings(**data)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration value: {e}")
        self.save()
        logger.debug(f"Configuration keys updated: {sorted(values)}")

    def reset(self) -> None:
        """Restore every setting to its default and persist."""
        self.settings = Settings()
        self.save()
        logger.info("Configuration reset to defaults")

    def as_dict(self) -> Dict[str, Any]:
        return self.settings.model_dump()

    def _resolve_dir(self, value: str, fallback: str) -> Path:
        path = Path(value) if value else self.base_dir / fallback
        if not path.is_absolute():
            path = self.base_dir / path
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_recordings_path(self) -> str:
        """Get recordings directory, creating it when needed."""
        return str(self._resolve_dir(self.settings.recordings_path, "recordings"))

    def get_models_path(self) -> str:
        """Get local model directory, creating it when needed."""
        return str(self._resolve_dir(self.settings.models_path, "models"))

    def get_log_file_path(self) -> str:
        if self.settings.log_file_path:
            path = Path(self.settings.log_file_path)
            return str(path if path.is_absolute() else self.base_dir / path)
        return str(self.base_dir / "logs" / "meetscribe.log")

    def get_openai_api_key(self) -> str:
        """API key from settings, falling back to $OPENAI_API_KEY."""
        return self.settings.openai_api_key or os.environ.get("OPENAI_API_KEY", "")

    def recording_config(self, **overrides: Any) -> RecordingConfig:
        """Build a RecordingConfig from settings with per-call overrides."""
        s = self.settings
        params = dict(
            recordings_dir=self.get_recordings_path(),
            sample_rate=s.sample_rate,
            channels=s.channels,
            bit_depth=s.bit_depth,
            bitrate_kbps=s.bitrate_kbps,
            audio_format=s.audio_format,
            device_id=s.audio_source or None,
            system_device_id=s.system_audio_source or None,
            filter_highpass=s.filter_highpass,
            highpass_frequency=s.highpass_frequency,
            filter_denoise=s.filter_denoise,
            filter_normalize=s.filter_normalize,
            filter_compressor=s.filter_compressor,
            ffmpeg_path=s.ffmpeg_path,
            stop_timeout_seconds=s.stop_timeout_seconds,
        )
        params.update({k: v for k, v in overrides.items() if v is not None})
        return RecordingConfig(**params)
