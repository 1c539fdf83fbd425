"""Streaming results — event-driven monitors and producer-driven iterators.

A command handler may return a :class:`Monitor` or an :class:`Iterator`
instead of a plain value. The execution driver then calls ``drive(emit)``,
which pushes PARTIAL payloads through *emit* and finally returns a
:class:`StreamEnded` outcome. Stream completion is a returned value, not a
raised exception; the driver decides how to surface it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from pollex.engine.errors import STOP_ITERATOR, STOP_MONITOR

logger = logging.getLogger(__name__)

Emit = Callable[[Any], None]


class EventSource(Protocol):
    """Anything a monitor can listen on."""

    def subscribe(self, event: str, handler: Callable[..., Any]) -> None: ...

    def unsubscribe(self, event: str, handler: Callable[..., Any]) -> None: ...


@dataclass(frozen=True)
class StreamEnded:
    """Outcome of a stream that has finished producing values."""

    name: str
    message: str = ""
    params: dict[str, Any] = field(default_factory=dict)

    def as_params(self) -> dict[str, Any]:
        return {"name": self.name, "message": self.message, "params": dict(self.params)}


class MonitorState(StrEnum):
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    TERMINATED = "terminated"


class Monitor:
    """Event-driven stream bound to one event of one source.

    Nothing is subscribed until :meth:`drive` runs. Each fired event is
    mapped through :meth:`map_event_result`; falsy payloads are dropped.
    The stream runs until :meth:`cancel` is called.

    Usage::

        class PriceMonitor(Monitor):
            def map_event_result(self, symbol, price):
                return {"symbol": symbol, "price": price}

        return PriceMonitor(feed, "price")
    """

    def __init__(self, source: EventSource, event: str) -> None:
        self.source = source
        self.event = event
        self._state = MonitorState.IDLE
        self._stopped = asyncio.Event()

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def map_event_result(self, *args: Any) -> Any:
        """Turn an event's arguments into a PARTIAL payload."""
        return {"args": list(args)}

    async def drive(self, emit: Emit) -> StreamEnded:
        """Forward mapped events to *emit* until cancelled."""

        def handler(*args: Any) -> None:
            # Events racing the cancellation are dropped.
            if self._stopped.is_set():
                return
            payload = self.map_event_result(*args)
            if payload:
                emit(payload)

        self.source.subscribe(self.event, handler)
        self._state = MonitorState.SUBSCRIBED
        logger.debug("Monitor subscribed to %r", self.event)
        try:
            await self._stopped.wait()
        finally:
            self.source.unsubscribe(self.event, handler)
            self._state = MonitorState.TERMINATED
            logger.debug("Monitor unsubscribed from %r", self.event)
        return StreamEnded(STOP_MONITOR, "Monitor stopped")

    def cancel(self) -> None:
        """Release the pending :meth:`drive` so it can unsubscribe and finish."""
        self._stopped.set()


class Iterator:
    """Producer-driven stream.

    *producer* is called once with a ``push(item)`` callback and may be a
    plain function or return an awaitable. Every push becomes a PARTIAL
    payload ``{"item": item}``; the stream ends when the producer returns.
    """

    def __init__(self, producer: Callable[[Callable[[Any], None]], Any]) -> None:
        self.producer = producer

    async def drive(self, emit: Emit) -> StreamEnded:
        outcome = self.producer(lambda item: emit({"item": item}))
        if inspect.isawaitable(outcome):
            await outcome
        return StreamEnded(STOP_ITERATOR, "Iterator exhausted")


class MonitorManager:
    """Active monitors keyed by correlation id.

    INVARIANT: At most one live monitor per correlation id.
    """

    def __init__(self) -> None:
        self.monitors: dict[Any, Monitor] = {}

    def __contains__(self, ex_id: object) -> bool:
        return ex_id in self.monitors

    def __len__(self) -> int:
        return len(self.monitors)

    def add_monitor(self, ex_id: Any, monitor: Monitor) -> None:
        """Track *monitor* under *ex_id*, cancelling any monitor it replaces."""
        previous = self.monitors.get(ex_id)
        if previous is not None and previous is not monitor:
            logger.debug("Replacing active monitor for %r", ex_id)
            previous.cancel()
        self.monitors[ex_id] = monitor

    def remove_monitor(self, ex_id: Any) -> bool:
        """Cancel and evict the monitor for *ex_id*. False if none is active."""
        monitor = self.monitors.pop(ex_id, None)
        if monitor is None:
            return False
        monitor.cancel()
        return True

    def discard(self, ex_id: Any, monitor: Monitor) -> None:
        """Evict *monitor* without cancelling it, if it is still the tracked one."""
        if self.monitors.get(ex_id) is monitor:
            del self.monitors[ex_id]

    def stop_all(self) -> int:
        """Cancel every active monitor. Returns how many were stopped."""
        monitors = list(self.monitors.values())
        self.monitors.clear()
        for monitor in monitors:
            monitor.cancel()
        return len(monitors)

    def active_ids(self) -> list[Any]:
        return list(self.monitors)
