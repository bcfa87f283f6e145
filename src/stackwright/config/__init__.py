"""Configuration module: layered YAML config validated into EngineConfig."""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from pydantic import ValidationError as SchemaValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .environment import apply_environment_overrides
from .manager import load_config
from .models import EngineConfig
from .paths import get_user_config_path, get_project_config_path

logger = get_logger("config")


def load_engine_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> EngineConfig:
    """
    Load and validate the engine configuration.

    Args:
        config_path: Optional explicit config file
        overrides: Nested values applied last (CLI flags); None values are ignored
        environ: Environment mapping (default: os.environ)

    Returns:
        EngineConfig

    Raises:
        ConfigError: If any layer is invalid
    """
    config = load_config(config_path)
    apply_environment_overrides(config, environ)
    if overrides:
        _apply_overrides(config, overrides)

    try:
        engine_config = EngineConfig.model_validate(config)
    except SchemaValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")
    logger.debug(f"Engine config: {engine_config.model_dump()}")
    return engine_config


def _apply_overrides(config: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    for key, value in overrides.items():
        if isinstance(value, dict):
            if not isinstance(config.get(key), dict):
                config[key] = {}
            _apply_overrides(config[key], value)
        elif value is not None:
            config[key] = value


__all__ = [
    "EngineConfig",
    "load_engine_config",
    "load_config",
    "apply_environment_overrides",
    "get_user_config_path",
    "get_project_config_path",
]
