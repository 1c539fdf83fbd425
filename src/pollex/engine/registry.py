"""Command registry — a tree of named handlers addressed by dotted paths.

Each :class:`CommandManager` owns its own command table and a mapping of
named child managers ("submanagers"). ``"a.b.cmd"`` is routed to submanager
``a``, then ``b``, then command ``cmd``.

Commands are registered explicitly in ``__init__``::

    class Files(CommandManager):
        def __init__(self) -> None:
            super().__init__()
            self.register("read", self.read)
            self.register("watch", self.watch, CommandKind.MONITOR)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pollex.engine.errors import CommandNotFound, ManagerNotFound

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class CommandKind(StrEnum):
    """Introspection tag for a command. Not enforced at dispatch."""

    COMMAND = "command"
    MONITOR = "monitor"


class CommandDescriptor(BaseModel):
    """A registered command. Serializes to ``{"name": ..., "type": ...}``."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: CommandKind = CommandKind.COMMAND
    handler: Handler = Field(exclude=True, repr=False)


class CommandManager:
    """A node of the command tree.

    Built-in commands (present on every manager):
        getSubmanagers: immediate children as ``{name: {"class": ClassName}}``.
        removeSubmanager: detach a child by ``{"name": ...}``.
        getCommands: every command of this subtree under its dotted name.
    """

    def __init__(self) -> None:
        self.commands: dict[str, CommandDescriptor] = {}
        self.submanagers: dict[str, CommandManager] = {}
        self.register("getSubmanagers", self.get_submanagers)
        self.register("removeSubmanager", self.remove_submanager)
        self.register("getCommands", self.get_commands)

    def register(
        self,
        name: str,
        handler: Handler,
        kind: CommandKind | str = CommandKind.COMMAND,
    ) -> CommandDescriptor:
        """Record *handler* under *name*. Re-registering a name replaces it."""
        if not name or "." in name:
            msg = f"Invalid command name: {name!r}"
            raise ValueError(msg)
        descriptor = CommandDescriptor(name=name, type=CommandKind(kind), handler=handler)
        self.commands[name] = descriptor
        return descriptor

    def add_submanager(self, name: str, manager: CommandManager) -> None:
        if not name or "." in name:
            msg = f"Invalid submanager name: {name!r}"
            raise ValueError(msg)
        self.submanagers[name] = manager
        logger.debug("Mounted submanager %s (%s)", name, type(manager).__name__)

    # ------------------------------------------------------------------
    # Built-in commands
    # ------------------------------------------------------------------

    def get_submanagers(self, params: Any = None) -> dict[str, dict[str, str]]:
        return {
            name: {"class": type(manager).__name__}
            for name, manager in self.submanagers.items()
        }

    def remove_submanager(self, params: Any = None) -> None:
        """Detach a submanager. Accepts ``{"name": ...}`` or a bare name."""
        name = params.get("name") if isinstance(params, dict) else params
        if self.submanagers.pop(name, None) is not None:
            logger.debug("Removed submanager %s", name)

    def get_commands(self, params: Any = None) -> dict[str, dict[str, str]]:
        """Flatten this subtree into ``{dotted name: {"type": kind}}``."""
        commands = {
            name: {"type": descriptor.type.value}
            for name, descriptor in self.commands.items()
        }
        for sm_name, manager in self.submanagers.items():
            for name, info in manager.get_commands().items():
                commands[f"{sm_name}.{name}"] = info
        return commands

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def execute_command(self, command: str, params: Any) -> Any:
        """Resolve *command* and invoke its handler with *params*.

        Raises:
            ManagerNotFound: The first dotted segment is not a submanager.
            CommandNotFound: An undotted name is not registered here.
        """
        if "." in command:
            manager_name, _, remainder = command.partition(".")
            manager = self.submanagers.get(manager_name)
            if manager is None:
                raise ManagerNotFound(manager_name)
            return await manager.execute_command(remainder, params)

        descriptor = self.commands.get(command)
        if descriptor is None:
            raise CommandNotFound(command)

        result = descriptor.handler(params)
        if inspect.isawaitable(result):
            result = await result
        return result
