"""CLI utilities package."""

import functools
import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import click
from ...config import EngineConfig, load_engine_config
from ...config.models import StateBackend
from ...providers import create_provider
from ...providers.base import Provider
from ...state.store import InMemoryStateStore, JsonFileStateStore, StateStore
from ...utils.errors import ConfigError, PlanCycleError, StackwrightError, ValidationError
from ...utils.logging import get_logger, setup_logging
from .file_resolver import resolve_file_path, resolve_spec_paths

logger = get_logger("cli.utils")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_VALIDATION = 2

# Suggestions shown with errors, most specific class first
SUGGESTIONS = (
    (PlanCycleError, "Change a replace_strategy so that replacement ordering can be satisfied."),
    (ValidationError, "Fix the desired-state document; nothing was applied."),
    (ConfigError, "Check .stackwright/config.yaml and STACKWRIGHT_* environment variables."),
)


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def exit_code_for(error: StackwrightError) -> int:
    """Validation-class errors (nothing applied) exit 2, everything else 1."""
    if isinstance(error, (ValidationError, PlanCycleError, ConfigError)):
        return EXIT_VALIDATION
    return EXIT_FAILURE


def report_error(error: StackwrightError) -> int:
    """Print a library error to stderr and return its exit code."""
    suggestion = next((text for cls, text in SUGGESTIONS if isinstance(error, cls)), None)
    click.echo(format_error(str(error), suggestion), err=True)
    return exit_code_for(error)


def engine_options(func: Callable) -> Callable:
    """Options shared by commands that load configuration."""
    @click.option('--config', 'config_path', type=click.Path(), help='Config file layered over user/project config')
    @click.option('--state', 'state_path', type=click.Path(), help='State file path (overrides config)')
    @click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)
    return wrapper


def load_cli_config(
    config_path: Optional[str],
    state_path: Optional[str] = None,
    parallelism: Optional[int] = None,
    verbose: bool = False
) -> EngineConfig:
    """Load layered config with CLI flags applied last, then configure logging."""
    overrides: Dict[str, Any] = {
        "state": {"path": state_path},
        "executor": {"parallelism": parallelism},
        "logging": {"level": "DEBUG" if verbose else None},
    }
    config = load_engine_config(config_path, overrides=overrides)
    setup_logging(config.logging.level)
    return config


def create_state_store(config: EngineConfig) -> StateStore:
    """Create the state store selected by config."""
    if config.state.backend == StateBackend.MEMORY:
        return InMemoryStateStore()
    return JsonFileStateStore(Path(config.state.path))


def create_configured_provider(config: EngineConfig) -> Provider:
    """Create the provider selected by config."""
    return create_provider(config.provider.model_dump())


def write_json(data: Any, output: Optional[str] = None) -> None:
    """Echo JSON, or write it to output when given."""
    text = json.dumps(data, indent=2, sort_keys=False)
    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
    else:
        click.echo(text)


def echo_text(text: str) -> None:
    """Echo text, falling back to ASCII when the terminal encoding cannot show it."""
    try:
        click.echo(text)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'))


__all__ = [
    "EXIT_OK",
    "EXIT_FAILURE",
    "EXIT_VALIDATION",
    "format_error",
    "exit_code_for",
    "report_error",
    "engine_options",
    "load_cli_config",
    "create_state_store",
    "create_configured_provider",
    "write_json",
    "echo_text",
    "resolve_file_path",
    "resolve_spec_paths",
]
