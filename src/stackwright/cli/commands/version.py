"""Version command - show Stackwright version."""

import click
from ... import __version__


@click.command()
def version():
    """Show Stackwright version."""
    click.echo(f"stackwright version {__version__}")
