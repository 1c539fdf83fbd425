"""Built-in ``sys`` commands for smoke-testing a running engine.

Mounted under ``sys`` unless ``--no-plugins`` is given::

    {"exId": "1", "command": "sys.echo", "params": {"hello": "world"}}
    {"exId": "2", "command": "sys.ticker"}
    {"exId": "3", "command": "sys.tick", "params": {"value": 42}}
    {"exId": "4", "command": "sys.count", "params": {"stop": 3}}
"""

from __future__ import annotations

import asyncio
from typing import Any

import pluggy

from pollex.engine.events import EventEmitter
from pollex.engine.registry import CommandKind, CommandManager
from pollex.engine.streams import Iterator, Monitor

hookimpl = pluggy.HookimplMarker("pollex")

TICK_EVENT = "tick"


class TickMonitor(Monitor):
    def map_event_result(self, *args: Any) -> Any:
        return {"value": args[0] if args else None}


class SystemManager(CommandManager):
    """Echo, delayed echo, a tick monitor, and a counting iterator."""

    def __init__(self, events: EventEmitter | None = None) -> None:
        super().__init__()
        self.events = events or EventEmitter()
        self.register("echo", self.echo)
        self.register("delay", self.delay)
        self.register("tick", self.tick)
        self.register("ticker", self.ticker, CommandKind.MONITOR)
        self.register("count", self.count)

    def echo(self, params: Any) -> Any:
        return params

    async def delay(self, params: dict[str, Any]) -> Any:
        """Return ``params["value"]`` after ``params["seconds"]``."""
        await asyncio.sleep(float(params.get("seconds", 0)))
        return params.get("value")

    def tick(self, params: dict[str, Any]) -> int:
        """Fire a tick event. Returns how many tickers received it."""
        return self.events.emit(TICK_EVENT, params.get("value"))

    def ticker(self, params: Any) -> TickMonitor:
        return TickMonitor(self.events, TICK_EVENT)

    def count(self, params: dict[str, Any]) -> Iterator:
        """Stream ``start`` .. ``stop - 1`` as iterator items."""
        start = int(params.get("start", 0))
        stop = int(params.get("stop", 0))

        def produce(push: Any) -> None:
            for value in range(start, stop):
                push(value)

        return Iterator(produce)


class SystemPlugin:
    """Mounts :class:`SystemManager` as ``sys``."""

    def __init__(self, events: EventEmitter | None = None) -> None:
        self._events = events

    @hookimpl
    def register_submanagers(self) -> dict[str, CommandManager]:
        return {"sys": SystemManager(self._events)}
