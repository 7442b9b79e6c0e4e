"""Configuration classes for smartftp.

This module provides:
- Protocol: Closed set of supported transfer protocols
- WatcherConfig: File watcher settings
- Configuration: Immutable server and sync settings
- load_config / write_default_config: smartftp.json file handling

The configuration file lives at the workspace root and uses the camelCase
keys of the original format::

    {
      "name": "My Server",
      "host": "example.com",
      "protocol": "ftp",
      "port": 21,
      "username": "deploy",
      "password": "secret",
      "remotePath": "/var/www",
      "uploadOnSave": true,
      "useTempFile": false,
      "watcher": {"files": "**/*", "autoUpload": true, ...},
      "ignore": ["dist/", "*.map"]
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from smartftp.core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "smartftp.json"

REQUIRED_FIELDS = ("host", "protocol", "port", "username", "password", "remotePath")


def _get_bool(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false")
    return value


def _get_timeout(data: dict[str, Any], default: float = 30.0) -> float:
    value = data.get("timeout", default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError("timeout must be a positive number of seconds")
    return float(value)


class Protocol(str, Enum):
    """Transfer protocol used to reach the remote server."""

    FTP = "ftp"
    SFTP = "sftp"

    @property
    def default_port(self) -> int:
        """Get the well-known port for this protocol."""
        return 22 if self is Protocol.SFTP else 21


@dataclass(frozen=True)
class WatcherConfig:
    """File watcher settings.

    Attributes:
        files: Glob (relative to the workspace root) of watched files.
        auto_upload: Upload created/changed files after a debounce delay.
        auto_delete: Propagate local deletions to the remote.
        ignore_create: Do not react to file creation.
        ignore_update: Do not react to file modification.
        ignore_delete: Do not react to deletion.
    """

    files: str = "**/*"
    auto_upload: bool = True
    auto_delete: bool = False
    ignore_create: bool = False
    ignore_update: bool = False
    ignore_delete: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WatcherConfig:
        """Create from the ``watcher`` section of the configuration file."""
        defaults = cls()
        return cls(
            files=str(data.get("files") or defaults.files),
            auto_upload=_get_bool(data, "autoUpload", defaults.auto_upload),
            auto_delete=_get_bool(data, "autoDelete", defaults.auto_delete),
            ignore_create=_get_bool(data, "ignoreCreate", defaults.ignore_create),
            ignore_update=_get_bool(data, "ignoreUpdate", defaults.ignore_update),
            ignore_delete=_get_bool(data, "ignoreDelete", defaults.ignore_delete),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the configuration file representation."""
        return {
            "files": self.files,
            "autoUpload": self.auto_upload,
            "autoDelete": self.auto_delete,
            "ignoreCreate": self.ignore_create,
            "ignoreUpdate": self.ignore_update,
            "ignoreDelete": self.ignore_delete,
        }


@dataclass(frozen=True)
class Configuration:
    """Server and sync settings.

    Instances are immutable. A changed configuration file produces a new
    instance which is pushed to every component.

    Attributes:
        host: Server host name or address.
        protocol: FTP or SFTP.
        port: Server port (1-65535).
        username: Login name.
        password: Login password (may be empty).
        remote_path: Remote directory mapped to the workspace root.
        name: Display name of the server profile.
        upload_on_save: Upload a file immediately when it is saved.
        use_temp_file: Reserved, currently has no effect.
        watcher: File watcher settings.
        ignore: Additional ignore patterns.
        timeout: Connection timeout in seconds.
    """

    host: str
    protocol: Protocol
    port: int
    username: str
    password: str
    remote_path: str = "/"
    name: str = ""
    upload_on_save: bool = True
    use_temp_file: bool = False
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    ignore: tuple[str, ...] = ()
    timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate field values."""
        if not self.host:
            raise ConfigError("host must not be empty")
        if not isinstance(self.port, int) or isinstance(self.port, bool):
            raise ConfigError("Port must be an integer between 1 and 65535")
        if not 1 <= self.port <= 65535:
            raise ConfigError("Port must be an integer between 1 and 65535")
        if not self.remote_path:
            raise ConfigError("remotePath must not be empty")

    @property
    def display_name(self) -> str:
        """Get the profile name, falling back to the host."""
        return self.name or self.host

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Configuration:
        """Create from a parsed configuration file.

        Args:
            data: Decoded JSON object.

        Returns:
            A validated Configuration.

        Raises:
            ConfigError: If a required field is missing or a value is invalid.
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")

        for key in REQUIRED_FIELDS:
            value = data.get(key)
            if value is None or value == "":
                # An explicitly empty password is allowed
                if key == "password" and value == "":
                    continue
                raise ConfigError(f"Missing or empty required field: {key}")

        try:
            protocol = Protocol(data["protocol"])
        except ValueError:
            raise ConfigError('Protocol must be either "ftp" or "sftp"') from None

        watcher = data.get("watcher") or {}
        if not isinstance(watcher, dict):
            raise ConfigError("watcher must be an object")

        ignore = data.get("ignore") or []
        if not isinstance(ignore, list) or not all(isinstance(p, str) for p in ignore):
            raise ConfigError("ignore must be a list of strings")

        return cls(
            host=str(data["host"]),
            protocol=protocol,
            port=data["port"],
            username=str(data["username"]),
            password=str(data["password"]),
            remote_path=str(data["remotePath"]),
            name=str(data.get("name") or ""),
            upload_on_save=_get_bool(data, "uploadOnSave", True),
            use_temp_file=_get_bool(data, "useTempFile", False),
            watcher=WatcherConfig.from_dict(watcher),
            ignore=tuple(ignore),
            timeout=_get_timeout(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the configuration file representation."""
        return {
            "name": self.name,
            "host": self.host,
            "protocol": self.protocol.value,
            "port": self.port,
            "username": self.username,
            "password": self.password,
            "remotePath": self.remote_path,
            "uploadOnSave": self.upload_on_save,
            "useTempFile": self.use_temp_file,
            "watcher": self.watcher.to_dict(),
            "ignore": list(self.ignore),
        }


DEFAULT_CONFIG = Configuration(
    name="My Server",
    host="localhost",
    protocol=Protocol.FTP,
    port=21,
    username="username",
    password="password",
    remote_path="/",
)


def get_config_file(workspace_root: Path) -> Path:
    """Get the configuration file path for a workspace."""
    return Path(workspace_root) / CONFIG_FILENAME


def load_config(path: Path) -> Configuration:
    """Load and validate a configuration file.

    Args:
        path: Path to smartftp.json.

    Returns:
        The validated configuration.

    Raises:
        ConfigError: If the file is missing, is not valid JSON, or fails
            validation.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}") from None
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    config = Configuration.from_dict(data)
    logger.debug("Loaded configuration %s from %s", config.display_name, path)
    return config


def write_default_config(workspace_root: Path, overwrite: bool = False) -> Path:
    """Write a configuration template to the workspace root.

    Args:
        workspace_root: Directory to write smartftp.json into.
        overwrite: Replace an existing file.

    Returns:
        Path of the written file.

    Raises:
        ConfigError: If the file exists and overwrite is False.
    """
    path = get_config_file(workspace_root)
    if path.exists() and not overwrite:
        raise ConfigError(f"{CONFIG_FILENAME} already exists: {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(DEFAULT_CONFIG.to_dict(), indent=2) + "\n", encoding="utf-8")
    logger.info("Created configuration file %s", path)
    return path
