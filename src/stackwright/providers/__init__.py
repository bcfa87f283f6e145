"""Resource providers and provider factory."""

from typing import Any, Dict, Optional
from .base import Provider
from .http import HttpProvider
from .local import LocalProvider
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("providers")

SUPPORTED_PROVIDERS = {
    "local": LocalProvider,
    "http": HttpProvider,
}


def create_provider(config: Optional[Dict[str, Any]] = None) -> Provider:
    """
    Create a provider from the 'provider' config section.

    Args:
        config: Dict with 'type' and an optional options mapping keyed by that type,
            e.g. {"type": "http", "http": {"base_url": "...", "timeout": 10}}

    Raises:
        ConfigError: If the provider type is unsupported or its options are invalid
    """
    config = config or {}
    provider_type = config.get("type", "local")
    provider_cls = SUPPORTED_PROVIDERS.get(provider_type)
    if provider_cls is None:
        raise ConfigError(
            f"Unsupported provider: {provider_type}. "
            f"Supported providers: {', '.join(sorted(SUPPORTED_PROVIDERS))}"
        )
    options = {k: v for k, v in (config.get(provider_type) or {}).items() if v is not None}
    try:
        provider = provider_cls(**options)
    except TypeError as e:
        raise ConfigError(f"Invalid options for provider '{provider_type}': {e}")
    logger.debug(f"Created {provider_type} provider")
    return provider


__all__ = ["Provider", "LocalProvider", "HttpProvider", "SUPPORTED_PROVIDERS", "create_provider"]
