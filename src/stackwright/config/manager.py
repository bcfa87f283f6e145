"""Layered configuration manager (defaults, user, project, explicit file)."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union
from .paths import DEFAULTS_PATH, get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load the full config tree.

    Layers, later wins: packaged defaults, user config, project config,
    then config_path when given.

    Args:
        config_path: Optional explicit config file (must exist)

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigError: If the defaults or the explicit file cannot be loaded
    """
    try:
        config = _read_yaml(DEFAULTS_PATH)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot load default config {DEFAULTS_PATH}: {e}")

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        try:
            _deep_merge(config, _read_yaml(user_config_path))
            logger.debug(f"Loaded user config from {user_config_path}")
        except (OSError, yaml.YAMLError, ConfigError) as e:
            logger.warning(f"Could not load user config from {user_config_path}: {e}")

    project_config_path = get_project_config_path()
    if project_config_path:
        try:
            _deep_merge(config, _read_yaml(project_config_path))
            logger.info(f"Loaded project config from {project_config_path}")
        except (OSError, yaml.YAMLError, ConfigError) as e:
            logger.warning(f"Could not load project config from {project_config_path}: {e}")

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            _deep_merge(config, _read_yaml(path))
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Error reading config file {path}: {e}")
        logger.info(f"Loaded config from {path}")

    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
