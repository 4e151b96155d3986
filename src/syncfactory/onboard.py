"""
First-run setup wizard.

Asks where snapshots live, then whether to start from a world that is
already on the server (download) or from one of your local saves
(upload). Either way the result is a SessionConfig written to
config.yaml; the initial transfer goes through the same engine the
regular sync uses.

Steps:
    1. Store   -- SFTP host, username, and private key (or a local folder)
    2. Choice  -- download an existing world or upload your own
    3. Pick    -- which world
    4. Save    -- write config.yaml
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt

from . import __version__
from .config import home_dir, key_path, save_config, write_key
from .engine import ReconciliationEngine
from .errors import ConfigError
from .locator import SaveGameLocator
from .models import SessionConfig, StoreType, default_saves_root
from .remote import RemoteStore, create_store

console = Console()


def _read_key(username: str, host: str) -> str:
    """Read a pasted private key, terminated by an empty line."""
    console.print(f"  Paste SSH private key for [cyan]{username}@{host}[/] (finish with an empty line):\n")
    lines = []
    while True:
        line = console.input()
        if line == "":
            break
        lines.append(line)
    return "\n".join(lines)


def _pick(items: list[str], title: str, prompt: str) -> str:
    console.print(f"\n  [bold]{title}[/]")
    console.print("  " + "-" * 20)
    for i, item in enumerate(items, start=1):
        console.print(f"   {i}. {item}")
    console.print("  " + "-" * 20)
    index = IntPrompt.ask(
        f"  {prompt}",
        choices=[str(i) for i in range(1, len(items) + 1)],
        show_choices=False,
    )
    return items[index - 1]


def _download(
    store: RemoteStore,
    locator: SaveGameLocator,
    config: SessionConfig,
) -> Optional[SessionConfig]:
    worlds = store.list_groups()
    if not worlds:
        raise ConfigError(f"No worlds found on {config.target}. Choose 'upload' instead.")

    name = _pick(worlds, "SAVES:", "Enter save number to download")
    config = config.model_copy(update={"save_name": name})
    engine = ReconciliationEngine(store, locator, config)

    latest = engine.latest_snapshot(name)
    if latest is None:
        raise ConfigError(f"World '{name}' has no snapshots on {config.target}")
    snapshot, remote_time = latest

    existing = locator.candidates(name)
    if existing:
        if not Confirm.ask(
            "\n  A save file with that name already exists. Overwrite it?",
            default=False,
        ):
            console.print("  [yellow]Aborting download.[/]")
            return None
        for path in existing:
            backup = locator.copy(path, engine.backup_path(path))
            path.unlink()
            console.print(f"  [dim]Backed up {path.name} to {backup.name}[/]")

    dest = locator.default_path(name)
    console.print(f"\n  Downloading [cyan]{name}[/] to {dest}...", end=" ")
    engine.fetch(snapshot, dest, remote_time)
    console.print("[green]Done![/]")
    return config


def _upload(
    store: RemoteStore,
    locator: SaveGameLocator,
    config: SessionConfig,
) -> SessionConfig:
    names = locator.list_logical_names()
    if not names:
        raise ConfigError("No local save files found.")

    name = _pick(names, "Local saves:", "Enter the number of the save you want to upload")
    config = config.model_copy(update={"save_name": name})
    engine = ReconciliationEngine(store, locator, config)

    console.print(f"\n  Uploading [cyan]{name}[/]...", end=" ")
    result = engine.publish(locator.artifact(name))
    console.print(f"[green]{result.outcome.value}[/]")
    console.print(f"  {result.message}")
    return config


def run_setup(
    home: Optional[Path] = None,
    saves_root: Optional[Path] = None,
    store_path: Optional[Path] = None,
) -> Optional[SessionConfig]:
    """Run the interactive setup wizard.

    Args:
        home: SyncFactory home directory.
        saves_root: Override the SaveGames folder.
        store_path: Use this directory as a local store instead of SFTP.

    Returns:
        The saved configuration, or None if the user aborted.

    Raises:
        ConfigError: If there is no SaveGames folder or nothing to sync.
        ConnectivityError: If the store cannot be reached.
        TransferError: If the first download or upload fails.
    """
    home = home_dir(home)
    locator = SaveGameLocator(saves_root or default_saves_root())
    if locator.save_dir() is None:
        raise ConfigError(
            f"No save game folder found in {locator.saves_root}. "
            "Make sure Satisfactory is installed."
        )

    console.print()
    console.print(
        Panel(
            "[bold cyan]Welcome to SyncFactory![/]\n\n"
            "This will set up your Satisfactory save for syncing.\n"
            "Every time you play, the newest save is pulled first\n"
            "and your progress is pushed when you quit.\n\n"
            f"[dim]SyncFactory v{__version__} | Home: {home}[/]",
            title="Setup",
            border_style="bright_blue",
        )
    )

    if store_path is not None:
        config = SessionConfig(
            save_name="",
            store=StoreType.LOCAL,
            local_store_path=Path(store_path).expanduser(),
            saves_root=locator.saves_root,
        )
        config.local_store_path.mkdir(parents=True, exist_ok=True)
    else:
        host = Prompt.ask("  SFTP host")
        username = Prompt.ask("  SFTP username")
        write_key(_read_key(username, host), home)
        config = SessionConfig(
            save_name="",
            host=host,
            username=username,
            key_path=key_path(home),
            saves_root=locator.saves_root,
        )

    console.print(f"\n  Connecting to [cyan]{config.target}[/]...", end=" ")
    with create_store(config) as store:
        console.print("[green]Connected![/]")
        choice = Prompt.ask(
            "\n  Download an existing world or upload your own?",
            choices=["download", "upload"],
        )
        if choice == "download":
            final = _download(store, locator, config)
        else:
            final = _upload(store, locator, config)

    if final is None:
        return None

    path = save_config(final, home)
    console.print(f"\n  [green]Setup complete.[/] Config written to [dim]{path}[/]\n")
    return final
