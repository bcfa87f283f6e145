"""Destroy command - delete every resource recorded in state."""

import signal
import sys
import threading
import click
from ...engine import destroy_stack
from ...kinds.registry import load_kinds
from ...presentation.formatter import format_apply_result, format_plan, result_to_dict
from ...utils.errors import StackwrightError
from ...utils.logging import get_logger
from ..utils import (
    EXIT_FAILURE,
    EXIT_OK,
    create_configured_provider,
    create_state_store,
    echo_text,
    engine_options,
    format_error,
    load_cli_config,
    report_error,
    write_json,
)
from .apply import install_cancel_handler

logger = get_logger("cli.destroy")


@click.command()
@engine_options
@click.option('--kinds', 'kinds_path', type=click.Path(), help='Extra kinds YAML merged over the built-in kinds')
@click.option('--parallelism', '-p', type=click.IntRange(1, 10), help='Worker count for independent steps')
@click.option('--json', 'as_json', is_flag=True, help='Output the result as JSON')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def destroy(config_path, state_path, verbose, kinds_path, parallelism, as_json, quiet):
    """
    Delete all resources in state, dependents first.

    Resources declared with deletion_policy 'retain' are only removed from
    state. Exit codes match apply.
    """
    try:
        config = load_cli_config(config_path, state_path, parallelism, verbose)
        registry = load_kinds(kinds_path or config.kinds.path)
        store = create_state_store(config)
        provider = create_configured_provider(config)
    except StackwrightError as e:
        sys.exit(report_error(e))

    def show_plan(execution_plan):
        if not quiet and not as_json:
            echo_text(format_plan(execution_plan))
            click.echo("")

    cancel_event = threading.Event()
    previous_handler = install_cancel_handler(cancel_event)
    try:
        result = destroy_stack(
            store,
            provider,
            parallelism=config.executor.parallelism,
            retry=config.retry,
            cancel_event=cancel_event,
            on_plan=show_plan,
            registry=registry,
        )
    except StackwrightError as e:
        sys.exit(report_error(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Destroy failed: {e}"), err=True)
        sys.exit(EXIT_FAILURE)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        provider.close()

    if as_json:
        write_json(result_to_dict(result))
    elif not quiet or not result.succeeded:
        echo_text(format_apply_result(result))
    sys.exit(EXIT_OK if result.succeeded else EXIT_FAILURE)
