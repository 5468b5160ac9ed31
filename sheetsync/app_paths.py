"""Centralised helpers for the sheetsync application directories.

Directories are resolved on every call so that a ``SHEETSYNC_HOME`` loaded
from ``.env`` after import is still honoured.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Mapping, Optional

_APP_ENV_VARS: Iterable[str] = ("SHEETSYNC_HOME",)


def app_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return the base directory, honouring ``SHEETSYNC_HOME``."""

    source = os.environ if environ is None else environ
    for env_var in _APP_ENV_VARS:
        value = source.get(env_var)
        if value:
            return Path(value).expanduser().resolve()
    return Path.home().resolve() / ".sheetsync"


def ensure_directory(path: Path) -> Path:
    """Ensure that ``path`` exists, returning the :class:`~pathlib.Path`."""

    path.mkdir(parents=True, exist_ok=True)
    return path


def credentials_path(*parts: str, environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return a path inside the credentials directory without creating it."""

    return app_dir(environ).joinpath("credentials", *parts)


def logs_path(*parts: str, environ: Optional[Mapping[str, str]] = None) -> Path:
    """Return a path inside the logs directory, creating its parent."""

    target = app_dir(environ).joinpath("logs", *parts)
    ensure_directory(target.parent)
    return target


__all__ = [
    "app_dir",
    "credentials_path",
    "ensure_directory",
    "logs_path",
]
