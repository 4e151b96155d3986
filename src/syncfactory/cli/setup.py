"""Setup commands: setup, config show."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.panel import Panel

from ._common import SYNCFACTORY_HOME, console, require_config
from ..errors import ClockRangeError, ConfigError, ConnectivityError, TransferError


def register_setup_commands(main: click.Group) -> None:
    """Register the setup command and the config group."""

    @main.command()
    @click.option("--home", default=SYNCFACTORY_HOME, type=click.Path(), help="SyncFactory home directory.")
    @click.option("--saves-root", default=None, type=click.Path(), help="Override the SaveGames folder.")
    @click.option(
        "--store-path", default=None, type=click.Path(),
        help="Use a local or mounted folder as the store instead of SFTP.",
    )
    def setup(home: str, saves_root: str, store_path: str):
        """Set up syncing for one save.

        Connects to the store, then either downloads a world that is
        already there or uploads one of your local saves.

        Examples:

            syncfactory setup

            syncfactory setup --store-path /mnt/nas/saves
        """
        from ..onboard import run_setup

        try:
            config = run_setup(
                home=Path(home),
                saves_root=Path(saves_root) if saves_root else None,
                store_path=Path(store_path) if store_path else None,
            )
        except ConfigError as exc:
            console.print(f"\n[bold red]Error:[/] {exc}")
            sys.exit(1)
        except (ConnectivityError, TransferError, ClockRangeError) as exc:
            console.print(f"[red]Failed[/]\n  {exc}")
            sys.exit(1)

        if config is None:
            sys.exit(1)

    @main.group()
    def config():
        """Inspect the saved configuration."""

    @config.command("show")
    @click.option("--home", default=SYNCFACTORY_HOME, type=click.Path(), help="SyncFactory home directory.")
    def config_show(home: str):
        """Show the current configuration."""
        cfg = require_config(home)
        console.print()
        console.print(
            Panel(
                f"Save: [cyan]{cfg.save_name}[/]\n"
                f"Store: [cyan]{cfg.store.value}[/] ({cfg.target})\n"
                f"Key: {cfg.key_path or '[dim]none[/]'}\n"
                f"Saves folder: {cfg.saves_root}\n"
                f"Backup suffix: {cfg.backup_suffix}\n"
                f"Backup before fetch: {'yes' if cfg.backup_on_fetch else 'no'}\n"
                f"Steam app: {cfg.app_id} ({cfg.process_name})",
                title="SyncFactory Config",
                border_style="bright_blue",
            )
        )
        console.print()
