"""Unit tests for MeetScribeConfig."""

import pytest
import yaml
from pathlib import Path

from meetscribe.config import MeetScribeConfig, Settings, default_config_path


@pytest.mark.unit
class TestMeetScribeConfig:
    """Test cases for settings loading and persistence."""

    def test_missing_file_created_with_defaults(self, temp_data_dir):
        """A missing settings file is written with defaults."""
        config_path = Path(temp_data_dir) / "nested" / "config.yaml"
        config = MeetScribeConfig(str(config_path))

        assert config_path.exists()
        assert config.get("whisper_model") == "base"
        assert config.get("sample_rate") == 44100
        assert config.get("export_format") == "txt"
        assert config.get("beam_size") == 3

    def test_missing_keys_backfilled_unknown_keys_preserved(self, temp_data_dir):
        """Loading keeps unknown keys and fills in missing ones."""
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text(yaml.safe_dump({"whisper_model": "small", "theme": "dark"}))

        config = MeetScribeConfig(str(config_path))
        assert config.get("whisper_model") == "small"
        assert config.get("theme") == "dark"
        assert config.get("n_threads") == 8

        config.set("language", "en")
        saved = yaml.safe_load(config_path.read_text())
        assert saved["theme"] == "dark"
        assert saved["language"] == "en"
        assert saved["n_threads"] == 8

    def test_invalid_value_falls_back_to_default(self, temp_data_dir):
        """A value of the wrong type is replaced by the default."""
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text(yaml.safe_dump({"sample_rate": "fast", "channels": 2}))

        config = MeetScribeConfig(str(config_path))
        assert config.get("sample_rate") == 44100
        assert config.get("channels") == 2

    def test_invalid_yaml_raises(self, temp_data_dir):
        config_path = Path(temp_data_dir) / "config.yaml"
        config_path.write_text("whisper_model: [unclosed")

        with pytest.raises(ValueError, match="Invalid YAML"):
            MeetScribeConfig(str(config_path))

    def test_set_coerces_string_values(self, test_config):
        """CLI strings are coerced to the setting's type."""
        test_config.set("beam_size", "5")
        test_config.set("use_gpu", "false")

        assert test_config.get("beam_size") == 5
        assert test_config.get("use_gpu") is False

    def test_set_rejects_invalid_value(self, test_config):
        with pytest.raises(ValueError):
            test_config.set("n_threads", "many")
        assert test_config.get("n_threads") == 8

    def test_update_and_reset(self, test_config):
        test_config.update({"whisper_model": "tiny", "filter_denoise": True})
        assert test_config.get("whisper_model") == "tiny"
        assert test_config.get("filter_denoise") is True

        test_config.reset()
        assert test_config.as_dict() == Settings().model_dump()

        reloaded = MeetScribeConfig(str(test_config.config_file))
        assert reloaded.get("whisper_model") == "base"

    def test_default_directories_under_config_dir(self, test_config, temp_data_dir):
        recordings = Path(test_config.get_recordings_path())
        models = Path(test_config.get_models_path())

        assert recordings == Path(temp_data_dir) / "recordings"
        assert models == Path(temp_data_dir) / "models"
        assert recordings.is_dir()
        assert models.is_dir()

    def test_relative_recordings_path_resolved(self, test_config, temp_data_dir):
        test_config.set("recordings_path", "audio/meetings")
        assert Path(test_config.get_recordings_path()) == Path(temp_data_dir) / "audio" / "meetings"

    def test_recording_config_overrides(self, test_config):
        test_config.update({"audio_source": "Microphone (USB)", "filter_highpass": True})

        config = test_config.recording_config(audio_format="mp3", device_id=None)
        assert config.audio_format == "mp3"
        assert config.device_id == "Microphone (USB)"
        assert config.filter_highpass is True
        assert config.recordings_dir == test_config.get_recordings_path()

    def test_openai_key_from_environment(self, test_config, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert test_config.get_openai_api_key() == "sk-env"

        test_config.set("openai_api_key", "sk-settings")
        assert test_config.get_openai_api_key() == "sk-settings"

    def test_config_path_from_environment(self, temp_data_dir, monkeypatch):
        env_path = str(Path(temp_data_dir) / "custom.yaml")
        monkeypatch.setenv("MEETSCRIBE_CONFIG", env_path)
        assert default_config_path() == Path(env_path)
