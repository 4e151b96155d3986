"""
Game launcher -- the opaque "use" step between the two sync passes.

Starts Satisfactory through its Steam URL, waits for the game process to
appear, then blocks until it exits. There is no timeout: the player
decides when the session ends.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from typing import Callable, Optional

import psutil

from .errors import LaunchError
from .models import SessionConfig

logger = logging.getLogger("syncfactory.launcher")

POLL_INTERVAL = 1.0


def steam_url(app_id: str) -> str:
    return f"steam://rungameid/{app_id}"


def _matches(proc: psutil.Process, process_name: str) -> bool:
    try:
        name = proc.info.get("name") or ""
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False
    stem = name.rsplit(".", 1)[0] if name.lower().endswith(".exe") else name
    return stem.lower().startswith(process_name.lower())


def find_game_process(process_name: str) -> Optional[psutil.Process]:
    """First running process whose name starts with ``process_name``."""
    for proc in psutil.process_iter(["name"]):
        if _matches(proc, process_name):
            return proc
    return None


def wait_for_process(
    process_name: str,
    start_timeout: Optional[float] = None,
    poll_interval: float = POLL_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> psutil.Process:
    """Poll until the game process shows up.

    Raises:
        LaunchError: If ``start_timeout`` elapses first.
    """
    waited = 0.0
    while True:
        proc = find_game_process(process_name)
        if proc is not None:
            return proc
        if start_timeout is not None and waited >= start_timeout:
            raise LaunchError(f"{process_name} did not start within {start_timeout:.0f}s")
        sleep(poll_interval)
        waited += poll_interval


def run_game(config: SessionConfig, start_timeout: Optional[float] = None) -> None:
    """Launch the game and block until it exits.

    Raises:
        LaunchError: If Steam cannot be asked to start the game.
    """
    url = steam_url(config.app_id)
    logger.info("Launching %s", url)
    if not webbrowser.open(url):
        raise LaunchError(f"No handler registered for {url}. Is Steam installed?")

    proc = wait_for_process(config.process_name, start_timeout=start_timeout)
    logger.info("Game running as pid %s", proc.pid)
    try:
        proc.wait()
    except psutil.NoSuchProcess:
        pass
    logger.info("Game exited")


def wait_for_enter(prompt: str = "Press Enter when you are done playing...") -> None:
    """Manual use step for setups where the game is started by hand."""
    input(prompt)
