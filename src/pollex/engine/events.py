"""In-process event source for monitors.

Any object with ``subscribe(event, handler)`` / ``unsubscribe(event, handler)``
can back a :class:`~pollex.engine.streams.Monitor`; :class:`EventEmitter` is
the stock implementation.

INVARIANT: A failing handler is logged, never propagated to ``emit``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


class EventEmitter:
    """Named events with positional-argument handlers, called in subscribe order."""

    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        """Remove one registration of *handler*; unknown handlers are ignored."""
        handlers = self._handlers.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            del self._handlers[event]

    def emit(self, event: str, *args: Any) -> int:
        """Call every handler of *event* with *args*. Returns the number called."""
        handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                handler(*args)
            except Exception:
                logger.warning("Handler for event %r failed", event, exc_info=True)
        return len(handlers)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))
