"""Core module - Configuration, shared types and errors."""

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
from smartftp.core.errors import (
    ConfigError,
    LocalFileVanishedError,
    NotConnectedError,
    RemoteNotFoundError,
    SessionBusyError,
    SmartFTPError,
    SyncError,
    TransportError,
)
from smartftp.core.types import ConnectionState, ConnectionStatus, OperationKind

__all__ = [
    # Config
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG",
    "Configuration",
    "Protocol",
    "WatcherConfig",
    "get_config_file",
    "load_config",
    "write_default_config",
    # Errors
    "ConfigError",
    "LocalFileVanishedError",
    "NotConnectedError",
    "RemoteNotFoundError",
    "SessionBusyError",
    "SmartFTPError",
    "SyncError",
    "TransportError",
    # Types
    "ConnectionState",
    "ConnectionStatus",
    "OperationKind",
]
