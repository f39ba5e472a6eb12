"""I/O helpers for configuration files and exported artefacts.

YAML is read through PyYAML's safe loader; JSON is written with
sorted keys so exported projections diff cleanly between runs.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import yaml

__all__ = [
    "ensure_dir",
    "safe_path_segment",
    "read_yaml",
    "write_json",
]

# Characters rejected by at least one common filesystem.
INVALID_FS_CHARS = r'[<>:"/\\|?*\x00-\x1F]'


def ensure_dir(path: Path | str) -> Path:
    """Create ``path`` (and parents) if needed and return it as a :class:`Path`."""

    path_obj = Path(path)
    path_obj.mkdir(parents=True, exist_ok=True)
    return path_obj


def safe_path_segment(name: str) -> str:
    """Return ``name`` with filesystem-hostile characters replaced by ``-``."""

    safe = re.sub(INVALID_FS_CHARS, "-", str(name))
    return safe.rstrip(" .")


def read_yaml(path: Path | str) -> object:
    """Load a YAML document and return the corresponding Python object."""

    with Path(path).open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def write_json(data: object, path: Path | str, *, indent: int = 2) -> Path:
    """Serialise ``data`` as JSON with a trailing newline."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=indent, sort_keys=True)
        handle.write("\n")
    return target
