"""Subcommand modules for pollex.

Provides register_commands() which uses deferred imports to keep
``pollex --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from pollex.commands.list_cmd import list_commands
    from pollex.commands.serve import serve

    cli.add_command(list_commands)
    cli.add_command(serve)
