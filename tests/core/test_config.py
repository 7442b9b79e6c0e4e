"""Tests for configuration loading and validation."""

import json
from pathlib import Path
from typing import Any

import pytest

from smartftp.core.config import (
    CONFIG_FILENAME,
    DEFAULT_CONFIG,
    Configuration,
    Protocol,
    WatcherConfig,
    get_config_file,
    load_config,
    write_default_config,
)
from smartftp.core.errors import ConfigError


def valid_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": "Production",
        "host": "ftp.example.com",
        "protocol": "sftp",
        "port": 22,
        "username": "deploy",
        "password": "secret",
        "remotePath": "/var/www",
    }
    data.update(overrides)
    return data


class TestConfigurationFromDict:
    """Tests for parsing the configuration file content."""

    def test_minimal(self) -> None:
        """Should apply defaults for optional fields."""
        config = Configuration.from_dict(valid_data())

        assert config.protocol is Protocol.SFTP
        assert config.remote_path == "/var/www"
        assert config.upload_on_save is True
        assert config.use_temp_file is False
        assert config.watcher == WatcherConfig()
        assert config.ignore == ()
        assert config.display_name == "Production"

    def test_watcher_section(self) -> None:
        """Should read camelCase watcher options."""
        config = Configuration.from_dict(
            valid_data(
                watcher={
                    "files": "**/*.php",
                    "autoUpload": False,
                    "autoDelete": True,
                    "ignoreCreate": True,
                    "ignoreUpdate": True,
                    "ignoreDelete": False,
                },
                ignore=["dist/", "*.map"],
            )
        )

        assert config.watcher == WatcherConfig(
            files="**/*.php",
            auto_upload=False,
            auto_delete=True,
            ignore_create=True,
            ignore_update=True,
            ignore_delete=False,
        )
        assert config.ignore == ("dist/", "*.map")

    def test_empty_password_allowed(self) -> None:
        """Should accept an explicitly empty password."""
        assert Configuration.from_dict(valid_data(password="")).password == ""

    @pytest.mark.parametrize("field", ["host", "protocol", "port", "username", "password", "remotePath"])
    def test_missing_required_field(self, field: str) -> None:
        """Should reject a configuration lacking a required field."""
        data = valid_data()
        del data[field]

        with pytest.raises(ConfigError, match=field):
            Configuration.from_dict(data)

    def test_unknown_protocol(self) -> None:
        """Should only accept ftp and sftp."""
        with pytest.raises(ConfigError, match="Protocol"):
            Configuration.from_dict(valid_data(protocol="ftps"))

    @pytest.mark.parametrize("port", [0, 65536, "21", True])
    def test_invalid_port(self, port: Any) -> None:
        """Should require an integer port in range."""
        with pytest.raises(ConfigError, match="Port"):
            Configuration.from_dict(valid_data(port=port))

    def test_timeout(self) -> None:
        """Should read a numeric timeout."""
        assert Configuration.from_dict(valid_data(timeout=5)).timeout == 5.0

    @pytest.mark.parametrize("timeout", ["slow", None, 0, -1, True])
    def test_invalid_timeout(self, timeout: Any) -> None:
        """Should reject a timeout that is not a positive number."""
        with pytest.raises(ConfigError, match="timeout"):
            Configuration.from_dict(valid_data(timeout=timeout))

    def test_flags_must_be_booleans(self) -> None:
        """Should not read a string as a true flag."""
        with pytest.raises(ConfigError, match="uploadOnSave"):
            Configuration.from_dict(valid_data(uploadOnSave="false"))
        with pytest.raises(ConfigError, match="autoDelete"):
            Configuration.from_dict(valid_data(watcher={"autoDelete": "false"}))

    def test_ignore_must_be_strings(self) -> None:
        """Should reject non-string ignore patterns."""
        with pytest.raises(ConfigError):
            Configuration.from_dict(valid_data(ignore=["ok", 3]))

    def test_not_an_object(self) -> None:
        """Should reject JSON that is not an object."""
        with pytest.raises(ConfigError):
            Configuration.from_dict([])  # type: ignore[arg-type]

    def test_display_name_falls_back_to_host(self) -> None:
        """Should use the host when no name is set."""
        assert Configuration.from_dict(valid_data(name="")).display_name == "ftp.example.com"

    def test_round_trip(self) -> None:
        """Should write back the keys it reads."""
        config = Configuration.from_dict(valid_data(ignore=["*.map"]))
        assert Configuration.from_dict(config.to_dict()) == config


class TestConfigFile:
    """Tests for reading and writing smartftp.json."""

    def test_load(self, tmp_path: Path) -> None:
        """Should load a valid file."""
        path = get_config_file(tmp_path)
        path.write_text(json.dumps(valid_data()))

        assert load_config(path).host == "ftp.example.com"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should raise ConfigError for a missing file."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / CONFIG_FILENAME)

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Should raise ConfigError for malformed JSON."""
        path = get_config_file(tmp_path)
        path.write_text("{")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(path)

    def test_write_default(self, tmp_path: Path) -> None:
        """Should write a loadable template."""
        path = write_default_config(tmp_path)

        assert path == tmp_path / CONFIG_FILENAME
        assert load_config(path) == DEFAULT_CONFIG

    def test_write_default_refuses_overwrite(self, tmp_path: Path) -> None:
        """Should keep an existing file unless asked to overwrite it."""
        path = get_config_file(tmp_path)
        path.write_text("custom")

        with pytest.raises(ConfigError, match="already exists"):
            write_default_config(tmp_path)
        assert path.read_text() == "custom"

        write_default_config(tmp_path, overwrite=True)
        assert load_config(path) == DEFAULT_CONFIG
