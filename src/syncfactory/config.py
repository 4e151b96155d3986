"""
Configuration on disk -- ``<home>/config.yaml`` plus the SSH key file.

    ~/.syncfactory/
    ├── config.yaml    # SessionConfig as YAML
    └── key            # SSH private key pasted during setup
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import SYNCFACTORY_HOME
from .errors import ConfigError
from .models import SessionConfig, StoreType

logger = logging.getLogger("syncfactory.config")

CONFIG_FILE = "config.yaml"
KEY_FILE = "key"


def home_dir(home: Optional[Path] = None) -> Path:
    """Resolve the SyncFactory home directory."""
    return Path(home or SYNCFACTORY_HOME).expanduser()


def config_path(home: Optional[Path] = None) -> Path:
    return home_dir(home) / CONFIG_FILE


def key_path(home: Optional[Path] = None) -> Path:
    return home_dir(home) / KEY_FILE


def load_config(home: Optional[Path] = None) -> Optional[SessionConfig]:
    """Load the session configuration.

    Args:
        home: SyncFactory home directory. Defaults to SYNCFACTORY_HOME.

    Returns:
        The parsed SessionConfig, or None if no config file exists yet.

    Raises:
        ConfigError: If the file exists but cannot be parsed or validated.
    """
    path = config_path(home)
    if not path.exists():
        return None

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")

    if data.get("store", StoreType.SFTP.value) == StoreType.SFTP.value:
        data.setdefault("key_path", str(key_path(home)))

    try:
        config = SessionConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc

    logger.debug("Loaded config for '%s' from %s", config.save_name, path)
    return config


def save_config(config: SessionConfig, home: Optional[Path] = None) -> Path:
    """Write the configuration to ``config.yaml`` and return its path."""
    path = config_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    path.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    logger.info("Saved config to %s", path)
    return path


def write_key(key_text: str, home: Optional[Path] = None) -> Path:
    """Store the pasted SSH private key with owner-only permissions."""
    path = key_path(home)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not key_text.endswith("\n"):
        key_text += "\n"
    path.write_text(key_text, encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except OSError as exc:
        logger.warning("Could not restrict permissions on %s: %s", path, exc)
    return path
