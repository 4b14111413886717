"""
Configuration loader for face-dedup.

Loads config.json from the data home (see paths.py), fills in defaults
for missing values and applies environment variable overrides.
"""

import copy
import json
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError
from .paths import get_config_path, get_default_database_path, get_default_lock_path

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("sqlite", "memory")


def get_default_config() -> Dict[str, Dict[str, Any]]:
    """
    Return default configuration.
    """
    return {
        "matching": {
            "threshold": 0.6,
            "descriptor_length": 128
        },
        "storage": {
            "backend": "sqlite",
            "database_path": str(get_default_database_path()),
            "collection_id": "default"
        },
        "locking": {
            "timeout": 30.0,
            "poll_interval": 0.05,
            "interprocess": False,
            "lock_path": str(get_default_lock_path())
        },
        "server": {
            "host": "0.0.0.0",
            "port": 3000,
            "debug": False,
            "max_content_length": 10 * 1024 * 1024
        }
    }


def load_config(config_path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load configuration from config.json, falling back to defaults
    if the file doesn't exist.
    """
    config_path = Path(config_path) if config_path else get_config_path()

    if config_path.exists():
        with open(config_path, 'r', encoding='utf-8') as f:
            try:
                config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
        logger.info(f"Loaded config from: {config_path}")
        return _process_config(config)

    logger.info(f"No config file at {config_path}, using defaults")
    return get_default_config()


def _process_config(config: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Process config, applying defaults and expanding paths.
    """
    if not isinstance(config, dict):
        raise ConfigError("Config root must be a JSON object")

    defaults = get_default_config()

    for section, values in defaults.items():
        if section not in config:
            config[section] = values
        elif isinstance(values, dict):
            for key, default_value in values.items():
                if key not in config[section]:
                    config[section][key] = default_value

    for section, key in (("storage", "database_path"), ("locking", "lock_path")):
        path = config[section].get(key)
        if path and isinstance(path, str):
            config[section][key] = os.path.expanduser(os.path.expandvars(path))

    return config


def _parse_bool(value: str) -> bool:
    return value.lower() in ('1', 'true', 'yes')


ENV_MAP = {
    'FACE_DEDUP_THRESHOLD': ('matching', 'threshold', float),
    'FACE_DEDUP_DESCRIPTOR_LENGTH': ('matching', 'descriptor_length', int),
    'FACE_DEDUP_STORE': ('storage', 'backend', str),
    'FACE_DEDUP_DATABASE': ('storage', 'database_path', os.path.expanduser),
    'FACE_DEDUP_LOCK_TIMEOUT': ('locking', 'timeout', float),
    'FACE_DEDUP_INTERPROCESS_LOCK': ('locking', 'interprocess', _parse_bool),
    'FACE_DEDUP_HOST': ('server', 'host', str),
    'FACE_DEDUP_PORT': ('server', 'port', int),
    'FACE_DEDUP_DEBUG': ('server', 'debug', _parse_bool),
}


def get_env_overrides() -> Dict[str, Dict[str, Any]]:
    """
    Get configuration overrides from environment variables.
    """
    overrides: Dict[str, Dict[str, Any]] = {}

    for env_var, (section, key, convert) in ENV_MAP.items():
        value = os.getenv(env_var)
        if value is None:
            continue

        try:
            converted = convert(value)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {env_var}: {value!r}") from e

        overrides.setdefault(section, {})[key] = converted
        logger.debug(f"Environment override: {env_var} -> {section}.{key} = {converted}")

    return overrides


def validate_config(config: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Check configuration values, raising ConfigError on the first bad one.
    """
    threshold = config["matching"]["threshold"]
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) \
            or not math.isfinite(threshold) or threshold <= 0:
        raise ConfigError(f"matching.threshold must be a positive number, got {threshold!r}")

    length = config["matching"]["descriptor_length"]
    if isinstance(length, bool) or not isinstance(length, int) or length < 1:
        raise ConfigError(f"matching.descriptor_length must be a positive integer, got {length!r}")

    backend = config["storage"]["backend"]
    if backend not in STORE_BACKENDS:
        raise ConfigError(
            f"storage.backend must be one of {', '.join(STORE_BACKENDS)}, got {backend!r}"
        )

    for key in ("timeout", "poll_interval"):
        value = config["locking"][key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) \
                or not math.isfinite(value) or value <= 0:
            raise ConfigError(f"locking.{key} must be a positive number, got {value!r}")

    return config


def get_config(config_path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load config, apply environment overrides and validate.
    """
    config = copy.deepcopy(load_config(config_path))

    for section, values in get_env_overrides().items():
        config.setdefault(section, {}).update(values)

    return validate_config(config)
