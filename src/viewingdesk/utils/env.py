"""Environment helper utilities."""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import Optional, Sequence


_FALSE_VALUES = {"0", "false", "no", "off"}


def _read(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def get_bool_env(name: str, *, default: bool = False) -> bool:
    """Return True/False for an environment flag; blank counts as unset."""
    value = _read(name)
    if value is None:
        return default
    return value.lower() not in _FALSE_VALUES


def get_list_env(name: str, *, default: Sequence[str] | None = None) -> list[str]:
    """
    Read a whitespace-delimited list from the environment.

    Values can be quoted, e.g. `https://app.example "https://admin.example"`.
    """
    value = _read(name)
    if value is None:
        return list(default or [])
    try:
        parsed = shlex.split(value)
    except ValueError:
        parsed = value.split()
    return [item for item in parsed if item]


def get_path_env(name: str, *, default: Optional[Path] = None) -> Optional[Path]:
    value = _read(name)
    if value is None:
        return default
    return Path(value).expanduser()
