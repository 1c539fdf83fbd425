"""Engine layer — command registry, execution driver, and result buffer.

This layer depends only on stdlib, pydantic, and structlog.
It must never import from plugins, commands, or config.
"""

from pollex.engine.errors import CommandNotFound, ManagerNotFound, PollexError
from pollex.engine.events import EventEmitter
from pollex.engine.main import MainManager, PollResponse
from pollex.engine.registry import CommandDescriptor, CommandKind, CommandManager
from pollex.engine.results import ResultEnvelope, ResultManager, ResultType, ValidationError
from pollex.engine.streams import Iterator, Monitor, MonitorManager, StreamEnded

__all__ = [
    "CommandDescriptor",
    "CommandKind",
    "CommandManager",
    "CommandNotFound",
    "EventEmitter",
    "Iterator",
    "MainManager",
    "ManagerNotFound",
    "Monitor",
    "MonitorManager",
    "PollResponse",
    "PollexError",
    "ResultEnvelope",
    "ResultManager",
    "ResultType",
    "StreamEnded",
    "ValidationError",
]
