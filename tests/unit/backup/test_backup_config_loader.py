"""Unit tests for backup.config_loader module."""

import os
import pytest

from src.backup.config_loader import ConfigLoader
from src.backup.errors import ConfigError, FilesystemError
from src.backup.models import BackupConfig


class TestConfigLoaderLoad:
    """Test cases for ConfigLoader.load() method."""

    def test_missing_file_returns_defaults(self, tmp_path):
        config = ConfigLoader.load(str(tmp_path / "absent.yaml"))
        assert config == BackupConfig()

    def test_missing_required_file_raises(self, tmp_path):
        path = tmp_path / "absent.yaml"

        with pytest.raises(FilesystemError) as exc_info:
            ConfigLoader.load(str(path), required=True)

        assert exc_info.value.operation == "read"
        assert "not found" in str(exc_info.value)

    def test_empty_file_returns_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert ConfigLoader.load(str(path)) == BackupConfig()

    def test_partial_config_overrides_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "backup_dir: ./vault\n"
            "max_attempts: 3\n"
            "base_delay: 1\n"
            "export_delay: 0\n"
        )

        config = ConfigLoader.load(str(path))

        assert config.backup_dir == "./vault"
        assert config.max_attempts == 3
        assert config.base_delay == 1.0
        assert isinstance(config.base_delay, float)
        assert config.export_delay == 0.0
        assert config.attachments_dir == "Attachments"

    def test_invalid_yaml_raises_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("backup_dir: [unclosed\n")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(path))
        assert "Invalid YAML syntax" in str(exc_info.value)

    def test_non_mapping_raises_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(path))
        assert "got list" in str(exc_info.value)

    def test_unknown_field_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("max_attempt: 3\n")

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(path))
        assert "max_attempt" in str(exc_info.value)

    @pytest.mark.parametrize("content,field_name", [
        ("max_attempts: 0\n", "max_attempts"),
        ("max_attempts: 2.5\n", "max_attempts"),
        ("max_attempts: true\n", "max_attempts"),
        ("base_delay: -1\n", "base_delay"),
        ("request_timeout: soon\n", "request_timeout"),
        ("backup_dir: ''\n", "backup_dir"),
        ("backup_dir: 42\n", "backup_dir"),
        ("page_size: null\n", "page_size"),
    ])
    def test_invalid_values_name_the_field(self, tmp_path, content, field_name):
        path = tmp_path / "config.yaml"
        path.write_text(content)

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader.load(str(path))
        assert exc_info.value.config_field == field_name

    def test_unreadable_file_raises_filesystem_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("max_attempts: 3\n")
        os.chmod(path, 0o000)

        try:
            if os.access(path, os.R_OK):
                pytest.skip("running with privileges that ignore file modes")
            with pytest.raises(FilesystemError) as exc_info:
                ConfigLoader.load(str(path))
            assert "Permission denied" in str(exc_info.value)
        finally:
            os.chmod(path, 0o644)
