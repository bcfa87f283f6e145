"""Apply command - reconcile infrastructure with the desired state."""

import signal
import sys
import threading
import click
from ...engine import apply_stack, load_stack
from ...presentation.formatter import format_apply_result, format_plan, result_to_dict
from ...utils.errors import StackwrightError
from ...utils.logging import get_logger
from ..utils import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_VALIDATION,
    create_configured_provider,
    create_state_store,
    echo_text,
    engine_options,
    format_error,
    load_cli_config,
    report_error,
    resolve_spec_paths,
    write_json,
)

logger = get_logger("cli.apply")


def install_cancel_handler(cancel_event: threading.Event):
    """
    Route SIGINT to cancel_event; a second SIGINT interrupts immediately.

    Returns:
        The previous handler, for restoring
    """
    def _on_sigint(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        click.echo("Cancellation requested; finishing in-flight steps...", err=True)
        cancel_event.set()

    return signal.signal(signal.SIGINT, _on_sigint)


@click.command()
@click.argument('spec_files', nargs=-1, type=click.Path())
@engine_options
@click.option('--kinds', 'kinds_path', type=click.Path(), help='Extra kinds YAML merged over the built-in kinds')
@click.option('--replace', 'replace', multiple=True, metavar='ID', help='Force replacement of this resource (repeatable)')
@click.option('--parallelism', '-p', type=click.IntRange(1, 10), help='Worker count for independent steps')
@click.option('--json', 'as_json', is_flag=True, help='Output the result as JSON')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def apply(spec_files, config_path, state_path, verbose, kinds_path, replace, parallelism, as_json, quiet):
    """
    Apply the desired state.

    Exit code 0 when every step succeeded, 1 on partial failure or
    cancellation, 2 when the documents or configuration are invalid (nothing
    is applied).
    """
    try:
        config = load_cli_config(config_path, state_path, parallelism, verbose)
        stack = load_stack(resolve_spec_paths(spec_files), kinds_path or config.kinds.path)
        store = create_state_store(config)
        provider = create_configured_provider(config)
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_VALIDATION)
    except StackwrightError as e:
        sys.exit(report_error(e))

    def show_plan(execution_plan):
        if not quiet and not as_json:
            echo_text(format_plan(execution_plan))
            click.echo("")

    cancel_event = threading.Event()
    previous_handler = install_cancel_handler(cancel_event)
    try:
        result = apply_stack(
            stack,
            store,
            provider,
            force_replace=replace,
            parallelism=config.executor.parallelism,
            retry=config.retry,
            cancel_event=cancel_event,
            on_plan=show_plan,
        )
    except StackwrightError as e:
        sys.exit(report_error(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(EXIT_FAILURE)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        provider.close()

    if as_json:
        write_json(result_to_dict(result))
    elif not quiet or not result.succeeded:
        echo_text(format_apply_result(result))

    if not result.succeeded:
        if not as_json:
            click.echo(format_error(
                "Apply did not complete; applied resources were kept.",
                "Fix the failure and run apply again to resume.",
            ), err=True)
        sys.exit(EXIT_FAILURE)
    sys.exit(EXIT_OK)
