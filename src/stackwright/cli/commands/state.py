"""State commands - inspect the applied state."""

import sys
import click
from ...presentation.formatter import format_resource, format_state_list
from ...utils.errors import StackwrightError
from ..utils import (
    EXIT_FAILURE,
    create_state_store,
    echo_text,
    engine_options,
    format_error,
    load_cli_config,
    report_error,
    write_json,
)


def _load_snapshot(config_path, state_path, verbose):
    try:
        config = load_cli_config(config_path, state_path, verbose=verbose)
        return create_state_store(config).load()
    except StackwrightError as e:
        sys.exit(report_error(e))


@click.group()
def state():
    """Inspect the applied state."""
    pass


@state.command('list')
@engine_options
@click.option('--json', 'as_json', is_flag=True, help='Output as JSON')
def list_resources(config_path, state_path, verbose, as_json):
    """List resources recorded in state."""
    snapshot = _load_snapshot(config_path, state_path, verbose)
    if as_json:
        write_json({
            logical_id: {"kind": node.kind, "physical_id": node.physical_id}
            for logical_id, node in sorted(snapshot.resources.items())
        })
    else:
        echo_text(format_state_list(snapshot))


@state.command('show')
@click.argument('resource_id')
@engine_options
@click.option('--json', 'as_json', is_flag=True, help='Output as JSON')
def show(resource_id, config_path, state_path, verbose, as_json):
    """Show one resource from state."""
    snapshot = _load_snapshot(config_path, state_path, verbose)
    node = snapshot.get(resource_id)
    if node is None:
        available = ", ".join(sorted(snapshot.resources)) or "none"
        click.echo(format_error(f"Resource '{resource_id}' not found in state.", f"Resources in state: {available}"), err=True)
        sys.exit(EXIT_FAILURE)
    if as_json:
        write_json(node.model_dump(mode="json"))
    else:
        echo_text(format_resource(node))
