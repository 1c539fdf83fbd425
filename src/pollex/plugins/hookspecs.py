"""Pluggy hook specifications for pollex.

Plugins populate the command tree: each returns named command managers
that are mounted as submanagers of the root MainManager.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from pollex.engine.registry import CommandManager

hookspec = pluggy.HookspecMarker("pollex")


class PollexHookSpec:
    """Hook specifications for the pollex plugin system."""

    @hookspec
    def register_submanagers(self) -> dict[str, CommandManager] | None:
        """Return name -> CommandManager mappings to mount on the root manager."""
