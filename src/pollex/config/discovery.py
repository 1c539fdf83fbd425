"""Locate the ``pollex.toml`` in effect and the project root it implies.

Resolution order:
  1. ``--config PATH`` given on the command line (must exist)
  2. ``POLLEX_CONFIG`` environment variable (ignored if the file is missing)
  3. The nearest ``pollex.toml`` in the start directory or any parent
"""

from __future__ import annotations

import os
from pathlib import Path

import click

CONFIG_FILENAME = "pollex.toml"
CONFIG_ENV_VAR = "POLLEX_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the ``POLLEX_CONFIG`` file, else the nearest ``pollex.toml``.

    A ``POLLEX_CONFIG`` pointing at a missing file disables the walk-up.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        env_file = Path(override)
        return env_file if env_file.is_file() else None

    here = (start or Path.cwd()).resolve()
    candidates = (directory / CONFIG_FILENAME for directory in (here, *here.parents))
    return next((c for c in candidates if c.is_file()), None)


def locate_config(explicit: str | Path | None = None, start: Path | None = None) -> Path | None:
    """Resolve the config file for one CLI invocation.

    Raises:
        click.ClickException: *explicit* was given but is not a file.
    """
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            msg = f"Config file not found: {path}"
            raise click.ClickException(msg)
        return path
    return find_config(start)


def project_root(config_path: Path | None, start: Path | None = None) -> Path:
    """Directory holding *config_path*; *start* or CWD when there is none."""
    if config_path is not None:
        return config_path.resolve().parent
    return start or Path.cwd()
