"""
Configuration for the application registry.

The directory list is environment policy: user-local directories are always
scanned (the sandbox mounts home transparently), system-wide and export
directories are reached through the host mount when sandboxed.
"""

import json
import logging
import os
from pathlib import Path

from junction.sandbox import HOST_ROOT

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config/junction/config.json"

DESKTOP_SUFFIX = ".desktop"

EXCLUDED_APPS = frozenset(
    {
        # Exclude self
        "re.sonny.Junction.desktop",
        # Braus is similar to Junction
        "com.properlypurple.braus.desktop",
        # SpaceFM claims url handling
        "spacefm.desktop",
    }
)

# Home-relative, scanned in both modes
USER_APP_DIRS = [
    ".local/share/applications",
    ".local/share/flatpak/exports/share/applications",
]

# Absolute on the host, prefixed with HOST_ROOT when sandboxed
SYSTEM_APP_DIRS = [
    "/usr/share/applications",
    "/usr/local/share/applications",
    "/var/lib/flatpak/exports/share/applications",
    "/var/lib/snapd/desktop/applications",
]


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled via environment variable."""
    return os.environ.get("JUNCTION_DEBUG", "").lower() in ("1", "true", "yes")


def load_config() -> dict:
    """Load user configuration from file."""
    if not CONFIG_PATH.exists():
        return {}
    try:
        with open(CONFIG_PATH) as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable config {CONFIG_PATH}: {e}")
        return {}
    if not isinstance(config, dict):
        logger.warning(f"Ignoring config {CONFIG_PATH}: expected an object")
        return {}
    return config


def application_dirs(sandboxed: bool, home: Path | None = None) -> list[Path]:
    """Return the ordered list of directories to scan for desktop entries."""
    home = home or Path.home()
    dirs = [home / path for path in USER_APP_DIRS]
    for path in SYSTEM_APP_DIRS:
        if sandboxed:
            dirs.append(HOST_ROOT / path.lstrip("/"))
        else:
            dirs.append(Path(path))
    return dirs


def excluded_apps(config: dict) -> frozenset[str]:
    extra = config.get("excludedApps", [])
    return EXCLUDED_APPS | {str(app_id) for app_id in extra}


def extra_dirs(config: dict) -> list[Path]:
    return [Path(path).expanduser() for path in config.get("extraDirs", [])]
