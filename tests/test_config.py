import pytest
from pydantic import ValidationError

from manifest_sync.exceptions import ConfigurationError
from manifest_sync.models.config import DEFAULT_OUTPUT_ROOT, SyncConfig
from manifest_sync.storage.config_manager import ConfigManager


class TestSyncConfig:
    def test_defaults(self):
        config = SyncConfig()
        assert config.manifest_url == ""
        assert config.output_root == DEFAULT_OUTPUT_ROOT
        assert 1 <= config.max_workers <= 64
        assert config.max_attempts == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"manifest_url": "ftp://example.com/index.json"},
            {"output_root": "   "},
            {"max_workers": 0},
            {"max_workers": 65},
            {"max_attempts": 11},
            {"request_timeout": 0},
            {"user_agent": ""},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            SyncConfig(**overrides)

    def test_validates_on_assignment(self):
        config = SyncConfig()
        with pytest.raises(ValidationError):
            config.max_workers = -1

    def test_ini_keys_exclude_internal_fields(self):
        keys = SyncConfig.get_ini_keys()
        assert "config_path" not in keys
        assert {"manifest_url", "output_root", "max_workers"} <= keys


class TestConfigManager:
    def test_missing_file_uses_defaults(self, tmp_path):
        config = ConfigManager(tmp_path / "config.ini").load_config()
        assert config.output_root == DEFAULT_OUTPUT_ROOT
        assert config.config_path == str(tmp_path)

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "config.ini"
        manager = ConfigManager(path)
        manager.save_new_config(
            {"manifest_url": "https://example.com/index.json", "max_workers": 3}
        )

        config = ConfigManager(path).load_config()

        assert config.manifest_url == "https://example.com/index.json"
        assert config.max_workers == 3

    def test_cli_options_override_file(self, tmp_path):
        path = tmp_path / "config.ini"
        ConfigManager(path).save_new_config({"output_root": "from-file"})

        config = ConfigManager(path).load_config({"output_root": "from-cli"})

        assert config.output_root == "from-cli"

    def test_missing_keys_are_migrated(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\nmax_workers = 2\n", encoding="utf-8")

        config = ConfigManager(path).load_config()

        assert config.max_workers == 2
        assert "user_agent" in path.read_text(encoding="utf-8")

    def test_blank_values_fall_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\noutput_root =\n", encoding="utf-8")

        assert ConfigManager(path).load_config().output_root == DEFAULT_OUTPUT_ROOT

    def test_invalid_number(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\nmax_workers = many\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_config()

    def test_invalid_value_is_configuration_error(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[DEFAULT]\nmax_workers = 500\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigManager(path).load_config()

    def test_save_rejects_invalid_settings(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path / "config.ini").save_new_config(
                {"manifest_url": "not a url"}
            )
