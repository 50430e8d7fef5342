"""
Desktop entry registry - find the applications able to open a content type.

Scans the XDG application directories for .desktop files, keeps the entries
that can be shown and declare MIME types, and answers lookups by MIME type.

When running inside a sandbox the launch command of every entry is rewritten
to run on the host, since the applications live there.

See https://specifications.freedesktop.org/desktop-entry-spec/latest/
"""

import asyncio
import configparser
import logging
import os
import shlex
import shutil
from configparser import ConfigParser, SectionProxy
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from junction import config
from junction.sandbox import (
    HOST_SPAWN_PREFIX,
    prefix_command_line_for_host,
    running_under_sandbox,
)

logger = logging.getLogger(__name__)

DESKTOP_GROUP = "Desktop Entry"
DEFAULT_ICON = "application-x-executable"

# Logged on build to help diagnose which directories the host exposes
ENV_KEYS = (
    "XDG_DATA_HOME",
    "XDG_DATA_DIRS",
    "HOST_XDG_DATA_HOME",
    "HOST_XDG_DATA_DIRS",
)


@dataclass(frozen=True)
class ApplicationRecord:
    """One usable application, as declared by a desktop entry."""

    id: str
    display_name: str
    mime_types: frozenset[str]
    exec_command: str
    source_path: str
    no_display: bool = False
    icon: str = DEFAULT_ICON
    comment: str = ""

    def handles(self, mime_type: str) -> bool:
        return mime_type in self.mime_types

    def command_line(self, uris: list[str] | None = None) -> str:
        """Expand the Exec field codes into a runnable command line."""
        uris = uris or []
        argv = []
        for arg in shlex.split(self.exec_command):
            if arg in ("%f", "%u"):
                argv.extend(uris[:1])
            elif arg in ("%F", "%U"):
                argv.extend(uris)
            elif arg == "%i":
                argv.extend(["--icon", self.icon])
            elif arg == "%c":
                argv.append(self.display_name)
            elif arg == "%k":
                argv.append(self.source_path)
            elif len(arg) == 2 and arg[0] == "%" and arg != "%%":
                # Deprecated codes expand to nothing
                continue
            else:
                argv.append(arg.replace("%%", "%"))
        return shlex.join(argv)


def load_desktop_entry(contents: str, source: str = "<string>") -> ConfigParser:
    """Parse the text of a desktop entry.

    Raises configparser.Error when the text is not a valid key file.
    """
    entry = ConfigParser(
        interpolation=None,
        delimiters=("=",),
        comment_prefixes=("#",),
        strict=False,
    )
    # Desktop entry keys are case sensitive
    entry.optionxform = str
    # Indented lines are plain keys, not value continuations
    contents = "\n".join(line.lstrip() for line in contents.splitlines())
    entry.read_string(contents, source=source)
    return entry


def get_bool(section: SectionProxy, key: str) -> bool:
    return section.get(key, "").strip().lower() == "true"


def get_list(section: SectionProxy, key: str) -> list[str]:
    value = section.get(key, "")
    return [item.strip() for item in value.split(";") if item.strip()]


def try_exec_found(try_exec: str) -> bool:
    if os.path.isabs(try_exec):
        return os.path.isfile(try_exec) and os.access(try_exec, os.X_OK)
    return shutil.which(try_exec) is not None


def parse_and_filter(
    entry: ConfigParser,
    source_path: Path | str,
    *,
    sandboxed: bool,
    excluded: frozenset[str] = config.EXCLUDED_APPS,
) -> ApplicationRecord | None:
    """Turn a parsed desktop entry into an ApplicationRecord.

    Returns None when the entry is malformed or should not be offered.
    When sandboxed, `entry` is modified in place: Exec is prefixed for host
    execution and TryExec is removed.
    """
    source_path = Path(source_path)

    if not entry.has_section(DESKTOP_GROUP):
        logger.debug(f"{source_path}: no [{DESKTOP_GROUP}] group")
        return None
    section = entry[DESKTOP_GROUP]

    if section.get("Type", "").strip() != "Application":
        logger.debug(f"{source_path}: not an application")
        return None
    if get_bool(section, "Hidden"):
        logger.debug(f"{source_path}: hidden")
        return None

    exec_command = section.get("Exec", "").strip()
    if not exec_command:
        logger.warning(f"Could not load application from {source_path}: no Exec")
        return None
    try:
        argv = shlex.split(exec_command)
    except ValueError as e:
        logger.warning(f"Could not load application from {source_path}: {e}")
        return None

    if sandboxed:
        if not exec_command.startswith(HOST_SPAWN_PREFIX):
            exec_command = prefix_command_line_for_host(exec_command)
            section["Exec"] = exec_command
        # TryExec would be looked up inside the sandbox
        if "TryExec" in section:
            entry.remove_option(DESKTOP_GROUP, "TryExec")
    else:
        try_exec = section.get("TryExec", "").strip()
        if try_exec and not try_exec_found(try_exec):
            logger.debug(f"{source_path}: TryExec {try_exec} not found")
            return None
        if not argv or not try_exec_found(argv[0]):
            logger.debug(f"{source_path}: {argv[:1]} not found")
            return None

    if get_bool(section, "NoDisplay"):
        logger.debug(f"{source_path}: NoDisplay")
        return None

    app_id = source_path.name
    display_name = section.get("Name", "").strip() or source_path.stem
    if app_id in excluded or display_name in excluded:
        logger.debug(f"{source_path}: excluded")
        return None

    mime_types = get_list(section, "MimeType")
    if not mime_types:
        return None

    return ApplicationRecord(
        id=app_id,
        display_name=display_name,
        mime_types=frozenset(mime_types),
        exec_command=exec_command,
        source_path=str(source_path.absolute()),
        no_display=False,
        icon=section.get("Icon", "").strip() or DEFAULT_ICON,
        comment=(
            section.get("Comment", "").strip()
            or section.get("GenericName", "").strip()
        ),
    )


def list_desktop_files(path: Path) -> list[Path]:
    """List the visible regular .desktop files directly inside `path`."""
    files = []
    with os.scandir(path) as it:
        for dir_entry in it:
            name = dir_entry.name
            if name.startswith("."):
                continue
            if not name.endswith(config.DESKTOP_SUFFIX):
                continue
            # Follows symlinks
            if not dir_entry.is_file():
                continue
            files.append(Path(dir_entry.path))
    return files


class Registry:
    """
    Applications found in a set of directories, queried by MIME type.

    The registry is built once; later calls to build() are no-ops while it
    holds applications, so changes on disk are not picked up.
    """

    def __init__(
        self,
        paths: list[Path] | None = None,
        excluded: frozenset[str] | None = None,
        sandboxed: bool | None = None,
    ):
        self.sandboxed = running_under_sandbox() if sandboxed is None else sandboxed
        if paths is None:
            paths = config.application_dirs(self.sandboxed)
        self.paths = [Path(path) for path in paths]
        self.excluded = config.EXCLUDED_APPS if excluded is None else frozenset(excluded)
        self._applications: list[ApplicationRecord] = []

    @classmethod
    def from_config(cls, user_config: dict | None = None) -> "Registry":
        """Create a registry for this environment and the user configuration."""
        if user_config is None:
            user_config = config.load_config()
        sandboxed = running_under_sandbox()
        paths = config.application_dirs(sandboxed) + config.extra_dirs(user_config)
        return cls(paths, config.excluded_apps(user_config), sandboxed)

    def __len__(self) -> int:
        return len(self._applications)

    def __iter__(self) -> Iterator[ApplicationRecord]:
        return iter(self._applications)

    async def scan_directory(self, path: Path) -> list[ApplicationRecord]:
        """Load the applications declared in one directory.

        A missing directory yields no applications.
        """
        try:
            files = await asyncio.to_thread(list_desktop_files, Path(path))
        except (FileNotFoundError, NotADirectoryError):
            return []

        apps = []
        for file_path in files:
            try:
                contents = await asyncio.to_thread(
                    file_path.read_text, encoding="utf-8"
                )
                entry = load_desktop_entry(contents, str(file_path))
            except (OSError, UnicodeDecodeError, configparser.Error) as e:
                logger.warning(f"Could not load desktop entry from {file_path}: {e}")
                continue

            app = parse_and_filter(
                entry, file_path, sandboxed=self.sandboxed, excluded=self.excluded
            )
            if app is not None:
                apps.append(app)

        return apps

    async def build(self) -> None:
        """Scan all directories concurrently and store the applications found.

        Does nothing if applications were already loaded. If a directory scan
        fails, the applications from the other directories are still stored
        and the first error is raised afterwards.
        """
        if self._applications:
            return

        env = {key: os.environ.get(key) for key in ENV_KEYS}
        logger.debug(f"Loading applications, environment: {env}")

        paths = list(self.paths)
        results = await asyncio.gather(
            *(self.scan_directory(path) for path in paths),
            return_exceptions=True,
        )

        applications = []
        seen = set()
        first_error = None
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                logger.warning(f"Could not scan {path}: {result}")
                if first_error is None:
                    first_error = result
                continue
            for app in result:
                # Earlier directories take precedence
                if app.id in seen:
                    logger.debug(f"{app.source_path}: shadowed by another {app.id}")
                    continue
                seen.add(app.id)
                applications.append(app)

        self._applications = applications
        logger.debug(
            f"Loaded {len(applications)} applications from {len(paths)} directories"
        )

        if first_error is not None:
            raise first_error

    def lookup(self, mime_type: str) -> list[ApplicationRecord]:
        """Applications declaring `mime_type`, in registry order."""
        if not mime_type:
            return []
        return [app for app in self._applications if app.handles(mime_type)]


async def init(registry: Registry) -> None:
    """Populate `registry` once. Errors are logged, never raised."""
    try:
        await registry.build()
    except Exception:
        logger.exception("Failed to load applications")


def get_applications(registry: Registry, content_type: str) -> list[ApplicationRecord]:
    return registry.lookup(content_type)
