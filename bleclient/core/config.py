"""
Core configuration settings for bleclient.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from bleclient.bt_ref.constants import (
    BLUEZ_SERVICE_NAME,
    BLUEZ_PATH,
    ROOT_PATH,
    UUID_DEVICE,
    UUID_CHARACTERISTIC_RD,
    UUID_CHARACTERISTIC_WR,
    METHOD_CALL_TIMEOUT,
    NOTIFY_BUFFER_SIZE,
)

# Base paths
DATA_DIR = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local/share")) / "bleclient"
CONFIG_DIR = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / "bleclient"

# Ensure directories exist
for directory in [DATA_DIR, CONFIG_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Logging configuration
LOG_DIR = DATA_DIR / "logs"
LOG_DIR.mkdir(exist_ok=True)

# Log types
LOG__GENERAL = "GENERAL"
LOG__DEBUG = "DEBUG"
LOG__SESSION = "SESSION"

# Default configuration file
DEFAULT_CONFIG_FILE = CONFIG_DIR / "bleclient.yaml"

# Environment overrides for the target identity
_ENV_OVERRIDES = {
    "BLECLIENT_DEVICE_UUID": "device_uuid",
    "BLECLIENT_READ_UUID": "read_uuid",
    "BLECLIENT_WRITE_UUID": "write_uuid",
}


@dataclass
class ClientConfig:
    """Identity of the target peripheral and bus addressing for one session."""

    service: str = BLUEZ_SERVICE_NAME
    base_path: str = BLUEZ_PATH
    root_path: str = ROOT_PATH
    device_uuid: str = UUID_DEVICE
    read_uuid: str = UUID_CHARACTERISTIC_RD
    write_uuid: str = UUID_CHARACTERISTIC_WR
    method_call_timeout: float = METHOD_CALL_TIMEOUT
    notify_buffer_size: int = NOTIFY_BUFFER_SIZE
    discovery_filter: bool = True


def load_config(path: Optional[Union[str, Path]] = None) -> ClientConfig:
    """Build a :class:`ClientConfig` from YAML and the environment.

    *path* defaults to ``$XDG_CONFIG_HOME/bleclient/bleclient.yaml``.  A missing
    default file simply yields the defaults; a missing explicit file is an
    error.  Keys must match ``ClientConfig`` field names.
    """
    # Import here to avoid circular imports
    from bleclient.core.errors import InvalidArgumentError

    values = {}
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_FILE
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise InvalidArgumentError(str(config_path), "top level must be a mapping")
        values.update(loaded)
    elif path is not None:
        raise InvalidArgumentError(str(config_path), "configuration file not found")

    for env_name, field_name in _ENV_OVERRIDES.items():
        if os.getenv(env_name):
            values[field_name] = os.environ[env_name]

    known = {f.name for f in fields(ClientConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise InvalidArgumentError(", ".join(unknown), "unknown configuration key")

    return ClientConfig(**values)
