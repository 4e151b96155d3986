"""Shared utilities for all CLI command modules.

Provides the Rich console instance, outcome formatting, logging setup,
and the config/locator/store helpers every command needs.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from .. import SYNCFACTORY_HOME
from ..config import load_config
from ..errors import ConfigError
from ..locator import SaveGameLocator
from ..models import Outcome, PassResult, SessionConfig

console = Console()
logger = logging.getLogger("syncfactory.cli")


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure console and optional file logging for one invocation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    if log_file:
        handler = logging.FileHandler(log_file)
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s")
        )
        handler.setLevel(logging.INFO)
        root = logging.getLogger()
        root.addHandler(handler)
        if not verbose:
            root.setLevel(logging.INFO)


def outcome_icon(outcome: Outcome) -> str:
    """Map a pass outcome to a Rich-formatted tag.

    Args:
        outcome: Result of a reconciliation pass.

    Returns:
        str: Rich markup string for the outcome.
    """
    return {
        Outcome.FETCHED: "[bold green]FETCHED[/]",
        Outcome.CURRENT: "[bold green]CURRENT[/]",
        Outcome.NO_REMOTE: "[bold yellow]NO REMOTE[/]",
        Outcome.PUBLISHED: "[bold green]PUBLISHED[/]",
        Outcome.CONFLICT: "[bold red]CONFLICT[/]",
        Outcome.UNCHANGED: "[dim]UNCHANGED[/]",
        Outcome.FAILED: "[bold red]FAILED[/]",
    }.get(outcome, "[dim]UNKNOWN[/]")


def print_result(result: PassResult) -> None:
    """Print the single status line for a pass."""
    console.print(f"  {outcome_icon(result.outcome)} {result.message}")


def require_config(home: str) -> SessionConfig:
    """Load config or exit with a hint to run setup."""
    try:
        config = load_config(Path(home))
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/] {exc}")
        sys.exit(1)
    if config is None or not config.save_name:
        console.print("[bold red]Not set up yet.[/] Run [cyan]syncfactory setup[/] first.")
        sys.exit(1)
    return config


def locator_for(config: SessionConfig) -> SaveGameLocator:
    return SaveGameLocator(config.saves_root)
