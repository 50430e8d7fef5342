"""Sandbox detection and host command dispatch."""

from pathlib import Path

FLATPAK_INFO = Path("/.flatpak-info")

# Host filesystem as mounted inside the sandbox
HOST_ROOT = Path("/run/host")

HOST_SPAWN_PREFIX = "flatpak-spawn"


def running_under_sandbox() -> bool:
    return FLATPAK_INFO.exists()


def prefix_command_line_for_host(command_line: str) -> str:
    """Return a command line that, run inside the sandbox, executes
    `command_line` on the host instead."""
    return f"{HOST_SPAWN_PREFIX} --host {command_line}"
