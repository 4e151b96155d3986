"""Sync commands: run, pull, push, status, snapshots."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NoReturn, Optional

import click
from rich.panel import Panel
from rich.table import Table

from ._common import (
    SYNCFACTORY_HOME,
    console,
    locator_for,
    logger,
    print_result,
    require_config,
)
from .. import clock
from ..config import load_config
from ..engine import ReconciliationEngine
from ..errors import ArtifactNotFoundError, ClockRangeError, ConfigError, ConnectivityError, TransferError
from ..models import Artifact, Outcome, PassResult, SessionConfig
from ..remote import RemoteStore, create_store
from ..session import PASS_ERRORS, SessionDriver


def _artifact_or_exit(config: SessionConfig) -> Artifact:
    try:
        return locator_for(config).artifact(config.save_name)
    except ArtifactNotFoundError as exc:
        console.print(f"[bold red]{exc}[/]")
        console.print("  Run [cyan]syncfactory setup[/] to pick or download a save.")
        sys.exit(1)


def _fail(message: str) -> NoReturn:
    print_result(PassResult(outcome=Outcome.FAILED, message=message))
    sys.exit(1)


def _worlds_table(store: RemoteStore, current: str) -> Table:
    table = Table(title="Worlds")
    table.add_column("Name", style="cyan")
    table.add_column("Snapshots", justify="right")
    for world in store.list_groups():
        marker = " *" if world == current else ""
        table.add_row(world + marker, str(len(store.list_snapshots(world))))
    return table


def _snapshots_table(store: RemoteStore, name: str) -> Table:
    table = Table(title=f"Snapshots of {name}")
    table.add_column("Snapshot", style="cyan")
    table.add_column("Saved", style="green")
    table.add_column("Size", justify="right")
    for snap in reversed(store.list_snapshots(name)):
        instant = clock.instant_of(snap.name)
        if instant is None:
            logger.debug("Skipping non-snapshot %s", snap.name)
            continue
        table.add_row(snap.name, clock.describe(instant), f"{snap.size / 1024:.0f} KB")
    return table


@contextmanager
def _connected(config: SessionConfig) -> Iterator[RemoteStore]:
    """Open the store, printing a FAILED line and exiting if unreachable."""
    console.print(f"  Connecting to [cyan]{config.target}[/]...", end=" ")
    try:
        store = create_store(config)
    except (ConnectivityError, ConfigError) as exc:
        console.print("[red]Failed[/]")
        _fail(str(exc))
    console.print("[green]Connected![/]")
    with store:
        yield store


def register_sync_commands(main: click.Group) -> None:
    """Register run, pull, push, status, and snapshots."""

    @main.command()
    @click.option("--home", default=SYNCFACTORY_HOME, type=click.Path(), help="SyncFactory home directory.")
    @click.option("--no-launch", is_flag=True, help="Don't start the game; wait for Enter instead.")
    @click.option(
        "--start-timeout", default=None, type=float,
        help="Give up if the game process hasn't appeared after this many seconds.",
    )
    def run(home: str, no_launch: bool, start_timeout: Optional[float]):
        """Pull, play, push.

        Fetches a newer save if one is on the server, starts the game,
        waits for it to exit, then uploads the save if it changed.
        Runs setup first if this machine isn't configured yet.
        """
        from ..launcher import run_game, wait_for_enter

        try:
            config = load_config(Path(home))
        except ConfigError as exc:
            console.print(f"[bold red]Config error:[/] {exc}")
            sys.exit(1)

        if config is None or not config.save_name:
            from ..onboard import run_setup

            try:
                config = run_setup(home=Path(home))
            except (ConfigError, ConnectivityError, TransferError, ClockRangeError) as exc:
                console.print(f"\n[bold red]Error:[/] {exc}")
                sys.exit(1)
            if config is None:
                sys.exit(1)

        locator = locator_for(config)
        _artifact_or_exit(config)

        if no_launch:
            use_step = wait_for_enter
        else:
            def use_step() -> None:
                console.print("\n  Starting Satisfactory...")
                run_game(config, start_timeout=start_timeout)

        def report(phase: str, result: PassResult) -> None:
            print_result(result)

        console.print(f"\n  Syncing [cyan]{config.save_name}[/] with [cyan]{config.target}[/]")
        driver = SessionDriver(config, locator, use_step, reporter=report)
        try:
            session = driver.run()
        except ArtifactNotFoundError as exc:
            console.print(f"[bold red]{exc}[/]")
            sys.exit(1)
        except ConfigError as exc:
            console.print(f"[bold red]Config error:[/] {exc}")
            sys.exit(1)

        if not session.launched:
            console.print("  [yellow]The game did not start cleanly. Check the log for details.[/]")
        if session.post.outcome == Outcome.CONFLICT:
            sys.exit(2)
        console.print()

    @main.command()
    @click.option("--home", default=SYNCFACTORY_HOME, type=click.Path(), help="SyncFactory home directory.")
    def pull(home: str):
        """Download the newest snapshot if it is newer than your save."""
        config = require_config(home)
        artifact = _artifact_or_exit(config)
        with _connected(config) as store:
            engine = ReconciliationEngine(store, locator_for(config), config)
            try:
                result = engine.pre_use(artifact)
            except PASS_ERRORS as exc:
                result = PassResult(outcome=Outcome.FAILED, message=f"Download failed: {exc}")
        print_result(result)
        if result.outcome == Outcome.FAILED:
            sys.exit(1)

    @main.command()
    @click.option("--home", default=SYNCFACTORY_HOME, type=click.Path(), help="SyncFactory home directory.")
    def push(home: str):
        """Upload your save now, unless the server already has a newer one."""
        config = require_config(home)
        artifact = _artifact_or_exit(config)
        with _connected(config) as store:
            engine = ReconciliationEngine(store, locator_for(config), config)
            try:
                result = engine.publish(artifact)
            except PASS_ERRORS as exc:
                result = PassResult(outcome=Outcome.FAILED, message=f"Upload failed: {exc}")
        print_result(result)
        if result.outcome == Outcome.FAILED:
            sys.exit(1)
        if result.outcome == Outcome.CONFLICT:
            sys.exit(2)

    @main.command()
    @click.option("--home", default=SYNCFACTORY_HOME, type=click.Path(), help="SyncFactory home directory.")
    def status(home: str):
        """Compare your save with the newest snapshot. Changes nothing."""
        config = require_config(home)
        with _connected(config) as store:
            try:
                report = ReconciliationEngine(store, locator_for(config), config).status(config.save_name)
            except PASS_ERRORS as exc:
                _fail(f"Status check failed: {exc}")

        def when(instant) -> str:
            return clock.describe(instant) if instant else "[dim]none[/]"

        console.print()
        console.print(
            Panel(
                f"Save: [cyan]{report.save_name}[/]\n"
                f"Local file: {report.local_path or '[yellow]missing[/]'}\n"
                f"Local time: {when(report.local_time)}\n"
                f"Latest snapshot: {report.latest_snapshot or '[dim]none[/]'}\n"
                f"Remote time: {when(report.remote_time)}\n"
                f"Snapshots: [bold]{report.snapshot_count}[/]\n"
                f"Verdict: [bold]{report.verdict}[/]",
                title="SyncFactory Status",
                border_style="magenta",
            )
        )
        console.print()

    @main.command()
    @click.argument("name", required=False)
    @click.option("--home", default=SYNCFACTORY_HOME, type=click.Path(), help="SyncFactory home directory.")
    def snapshots(name: Optional[str], home: str):
        """List snapshots of a world, or all worlds if NAME is omitted."""
        config = require_config(home)
        with _connected(config) as store:
            try:
                if name is None:
                    table = _worlds_table(store, config.save_name)
                else:
                    table = _snapshots_table(store, name)
            except PASS_ERRORS as exc:
                _fail(f"Listing failed: {exc}")
        console.print(table)
