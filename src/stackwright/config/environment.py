"""Environment variable overrides for configuration."""

import os
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.environment")

# Variable name -> (config path, converter)
ENVIRONMENT_OVERRIDES: Dict[str, Tuple[Tuple[str, ...], Callable[[str], Any]]] = {
    "STACKWRIGHT_STATE_PATH": (("state", "path"), str),
    "STACKWRIGHT_PARALLELISM": (("executor", "parallelism"), int),
    "STACKWRIGHT_PROVIDER": (("provider", "type"), lambda v: v.strip().lower()),
    "STACKWRIGHT_PROVIDER_URL": (("provider", "http", "base_url"), str),
    "STACKWRIGHT_PROVIDER_TOKEN": (("provider", "http", "token"), str),
    "STACKWRIGHT_LOG_LEVEL": (("logging", "level"), lambda v: v.strip().upper()),
}


def apply_environment_overrides(
    config: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Apply STACKWRIGHT_* environment variables onto a config tree (mutates config).

    Args:
        config: Merged config dictionary
        environ: Environment mapping (default: os.environ)

    Returns:
        The same config dictionary

    Raises:
        ConfigError: If a variable cannot be converted
    """
    environ = os.environ if environ is None else environ
    for name, (path, convert) in ENVIRONMENT_OVERRIDES.items():
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError:
            raise ConfigError(f"Invalid value for {name}: {raw!r}")

        section = config
        for key in path[:-1]:
            if not isinstance(section.get(key), dict):
                section[key] = {}
            section = section[key]
        section[path[-1]] = value
        logger.debug(f"Config {'.'.join(path)} set from {name}")
    return config
