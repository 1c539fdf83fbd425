"""Error taxonomy for command routing and execution.

Errors raised anywhere below ``MainManager.execute`` are caught per
submission and reported as ERROR envelopes built from ``name``,
``message`` and ``params``.
"""

from __future__ import annotations

from typing import Any

# Validation error names, reported synchronously by ``poll`` and never buffered.
REQUIRED_EXECUTION_ID = "RequiredExecutionId"
REQUIRED_COMMAND_NAME = "RequiredCommandName"
INVALID_EXECUTION = "InvalidExecution"

# Stream-end marker names carried by the terminal envelope of a stream.
STOP_MONITOR = "StopMonitor"
STOP_ITERATOR = "StopIterator"


class PollexError(Exception):
    """Base for errors that carry a structured payload.

    Attributes:
        name: Stable identifier surfaced to clients (defaults to the class name).
        message: Human-readable description.
        params: Extra structured detail for the ERROR envelope.
    """

    def __init__(self, message: str = "", params: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.params: dict[str, Any] = params or {}

    @property
    def name(self) -> str:
        return type(self).__name__


class CommandNotFound(PollexError):
    """No command with the given name is registered on the manager."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Command not found: {name}", {"name": name})


class ManagerNotFound(PollexError):
    """A dotted path named a submanager that is not mounted."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Manager not found: {name}", {"name": name})
