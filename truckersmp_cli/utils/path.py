"""
Utilities for handling manifest paths and application directories.
"""

import os
import re
from pathlib import Path

_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def normalize_manifest_path(raw_path: str) -> str:
    """
    Turns a manifest path into a safe, '/'-separated relative path.

    Leading separators are stripped so absolute-style manifest paths land
    inside the content root. Empty and '.' segments are dropped.

    Raises:
        ValueError: If the path is empty, contains a '..' segment, or starts
        with a drive designator.
    """
    path = raw_path.strip().replace("\\", "/")
    if _DRIVE_PATTERN.match(path):
        raise ValueError(f"Path must not carry a drive designator: {raw_path!r}")

    segments = [s for s in path.split("/") if s not in ("", ".")]
    if ".." in segments:
        raise ValueError(f"Path must not contain '..' segments: {raw_path!r}")
    if not segments:
        raise ValueError(f"Path must not be empty: {raw_path!r}")
    return "/".join(segments)


def resolve_under(root: Path, relative_path: str) -> Path:
    """
    Joins a relative path onto a root directory, refusing any escape from it.
    """
    destination = root.joinpath(*relative_path.split("/"))
    resolved_root = root.resolve()
    if not destination.resolve().is_relative_to(resolved_root):
        raise ValueError(f"Path escapes the content root: {relative_path!r}")
    return destination


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "truckersmp-cli"


def get_data_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_DATA_HOME", "~/.local/share"))
    return base_dir.expanduser() / "truckersmp-cli"


def is_protected_dir(path: Path) -> bool:
    """True for directories a clean run must never remove wholesale."""
    resolved = path.expanduser().resolve()
    return resolved == Path(resolved.anchor) or resolved == Path.home().resolve()
