"""Plan command - show the changes an apply would make."""

import sys
import click
from ...engine import load_stack, plan_stack
from ...presentation.formatter import format_plan, plan_to_dict
from ...utils.errors import StackwrightError
from ...utils.logging import get_logger
from ..utils import (
    EXIT_FAILURE,
    EXIT_OK,
    EXIT_VALIDATION,
    create_state_store,
    echo_text,
    engine_options,
    format_error,
    load_cli_config,
    report_error,
    resolve_spec_paths,
    write_json,
)

logger = get_logger("cli.plan")


@click.command()
@click.argument('spec_files', nargs=-1, type=click.Path())
@engine_options
@click.option('--kinds', 'kinds_path', type=click.Path(), help='Extra kinds YAML merged over the built-in kinds')
@click.option('--replace', 'replace', multiple=True, metavar='ID', help='Plan a replacement of this resource (repeatable)')
@click.option('--json', 'as_json', is_flag=True, help='Output the plan as JSON')
@click.option('--out', '-o', 'out', type=click.Path(), help='Write the plan as JSON to a file')
@click.option('--quiet', is_flag=True, help='Suppress the human-readable plan')
def plan(spec_files, config_path, state_path, verbose, kinds_path, replace, as_json, out, quiet):
    """
    Show the ordered changes needed to reach the desired state.

    SPEC_FILES are desired-state documents (YAML or JSON); several files are
    merged into one stack. Defaults to stackwright.yaml. Exit code 0 on
    success, 2 when the documents or configuration are invalid.
    """
    try:
        config = load_cli_config(config_path, state_path, verbose=verbose)
        stack = load_stack(resolve_spec_paths(spec_files), kinds_path or config.kinds.path)
        snapshot = create_state_store(config).load()
        execution_plan = plan_stack(stack, snapshot, replace)
    except FileNotFoundError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_VALIDATION)
    except StackwrightError as e:
        sys.exit(report_error(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Plan failed: {e}"), err=True)
        sys.exit(EXIT_FAILURE)

    if out:
        write_json(plan_to_dict(execution_plan), out)
        if not quiet:
            click.echo(f"Plan saved to: {out}", err=True)

    if as_json:
        write_json(plan_to_dict(execution_plan))
    elif not quiet:
        echo_text(format_plan(execution_plan))
    sys.exit(EXIT_OK)
