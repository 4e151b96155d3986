"""
SyncFactory CLI -- sync a Satisfactory save around every play session.

The main Click group is defined here and all subcommands are
registered via register functions from their own modules.

Entry point: syncfactory.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="syncfactory")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr.")
@click.option("--log-file", default=None, type=click.Path(), help="Also log to this file.")
def main(verbose: bool, log_file: str):
    """SyncFactory -- keep one save in sync across machines.

    Pull before you play. Push when you quit. Never lose a save.
    """
    setup_logging(verbose=verbose, log_file=log_file)


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .setup import register_setup_commands
from .sync_cmd import register_sync_commands

register_setup_commands(main)
register_sync_commands(main)
