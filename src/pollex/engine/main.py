"""MainManager — the root of the command tree and the poll entry point.

``poll()`` validates a batch of submissions, launches one asyncio task per
valid submission without waiting for it, and returns whatever the result
buffer held at that moment. Task outcomes land in the buffer and are
picked up by a later ``poll()``.

INVARIANT: A failing submission never affects its siblings. Every failure
below ``execute`` becomes an ERROR envelope for its correlation id.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from pollex.engine.errors import (
    INVALID_EXECUTION,
    REQUIRED_COMMAND_NAME,
    REQUIRED_EXECUTION_ID,
    PollexError,
)
from pollex.engine.registry import CommandManager
from pollex.engine.results import (
    ExId,
    ResultEnvelope,
    ResultManager,
    ResultType,
    ValidationError,
)
from pollex.engine.streams import Emit, Iterator, Monitor, MonitorManager, StreamEnded

logger = logging.getLogger(__name__)


class PollResponse(BaseModel):
    """Drained results plus the validation errors of one ``poll`` call."""

    model_config = ConfigDict(frozen=True)

    results: list[ResultEnvelope] = Field(default_factory=list)
    errors: list[ValidationError] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        """Plain dict with client-facing keys (``exId``, ``executionsObj``)."""
        return self.model_dump(by_alias=True)


def error_params(failure: object) -> dict[str, Any]:
    """Build the ERROR envelope payload for a caught failure.

    Every exception becomes ``{name, message, params}``; ``params`` is taken
    from a ``params`` dict on the exception when present. A non-exception
    value is passed through opaquely as ``{"err": value}``.
    """
    if isinstance(failure, PollexError):
        return {"name": failure.name, "message": failure.message, "params": failure.params}
    if isinstance(failure, BaseException):
        params = getattr(failure, "params", None)
        return {
            "name": type(failure).__name__,
            "message": str(failure),
            "params": params if isinstance(params, dict) else {},
        }
    return {"err": failure}


def _monitor_key(monitor_id: object) -> str:
    return str(monitor_id)


class MainManager(CommandManager):
    """Execution driver: validates, dispatches, and buffers results.

    Parameters:
        stream_end: Envelope type that terminates a monitor or iterator
            stream. ``ERROR`` (default) reports ``StopMonitor`` /
            ``StopIterator`` through the error channel; ``STREAM_END``
            gives the terminal envelope its own type.

    Extra command:
        stopMonitor: cancel the monitor running under ``{"monitorId": ...}``.
    """

    def __init__(self, *, stream_end: ResultType | str = ResultType.ERROR) -> None:
        super().__init__()
        self.stream_end = ResultType(stream_end)
        if self.stream_end not in (ResultType.ERROR, ResultType.STREAM_END):
            msg = f"stream_end must be ERROR or STREAM_END, got {self.stream_end}"
            raise ValueError(msg)
        self.result_manager = ResultManager()
        self.monitor_manager = MonitorManager()
        self._tasks: set[asyncio.Task[None]] = set()
        self._closing = False
        self.register("stopMonitor", self.stop_monitor)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def poll(self, executions: Iterable[Any] | None = None) -> PollResponse:
        """Accept a batch of submissions and drain the result buffer.

        Must be called from code running inside the event loop whenever the
        batch contains a valid submission.
        """
        errors: list[ValidationError] = []
        for execution in executions or ():
            error = self._validate(execution)
            if error is not None:
                errors.append(error)
                continue
            self._spawn(execution["exId"], execution["command"], execution.get("params") or {})

        return PollResponse(results=self.result_manager.get_results(), errors=errors)

    async def execute(self, ex_id: ExId, command: str, params: Any) -> None:
        """Run one submission to completion, buffering every result it yields."""
        with structlog.contextvars.bound_contextvars(ex_id=ex_id, command=command):
            try:
                result = await self.execute_command(command, params)
                if isinstance(result, Monitor):
                    outcome = await self._drive_monitor(ex_id, result)
                elif isinstance(result, Iterator):
                    outcome = await result.drive(self._partial_emitter(ex_id))
                else:
                    self.result_manager.set_final_result(ex_id, result)
                    logger.debug("Execution %r of %s finished", ex_id, command)
                    return
            except Exception as exc:
                logger.debug("Execution %r of %s failed: %s", ex_id, command, exc)
                self.result_manager.set_error_result(ex_id, error_params(exc))
                return

            self._end_stream(ex_id, outcome)

    def stop_monitor(self, params: Any = None) -> bool:
        """Cancel the monitor under ``{"monitorId": ...}``. False if none is active.

        Ids are compared as strings, so ``7`` and ``"7"`` name the same monitor.
        """
        monitor_id = params.get("monitorId") if isinstance(params, Mapping) else params
        return self.monitor_manager.remove_monitor(_monitor_key(monitor_id))

    @property
    def pending(self) -> int:
        """Number of submissions still executing."""
        return len(self._tasks)

    async def join(self) -> None:
        """Wait until every in-flight execution has finished.

        Never returns while a monitor is active or an iterator's producer
        keeps running.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop every monitor, refuse new ones, and wait for in-flight work."""
        self._closing = True
        stopped = self.monitor_manager.stop_all()
        logger.debug("Shutdown stopped %d monitor(s); %d task(s) pending", stopped, self.pending)
        await self.join()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(execution: Any) -> ValidationError | None:
        if not isinstance(execution, Mapping):
            return ValidationError(
                name=INVALID_EXECUTION,
                message="Execution must be an object",
                executions_obj=execution,
            )
        if not execution.get("exId"):
            return ValidationError(
                name=REQUIRED_EXECUTION_ID,
                message="Execution ID is required",
                executions_obj=execution,
            )
        if not execution.get("command"):
            return ValidationError(
                name=REQUIRED_COMMAND_NAME,
                message="Command name is required",
                executions_obj=execution,
            )
        ex_id = execution["exId"]
        if isinstance(ex_id, bool) or not isinstance(ex_id, (str, int)):
            return ValidationError(
                name=INVALID_EXECUTION,
                message="Execution ID must be a string or an integer",
                executions_obj=execution,
            )
        return None

    def _spawn(self, ex_id: ExId, command: str, params: Any) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.execute(ex_id, command, params), name=f"execute-{ex_id}")
        self._tasks.add(task)
        logger.debug("Dispatched %s as %r", command, ex_id)

        def _finalise(completed: asyncio.Task[None]) -> None:
            self._tasks.discard(completed)
            if completed.cancelled():
                logger.debug("Execution %r cancelled", ex_id)
                return
            exc = completed.exception()
            if exc is not None:
                logger.error("Execution %r crashed", ex_id, exc_info=exc)

        task.add_done_callback(_finalise)

    async def _drive_monitor(self, ex_id: ExId, monitor: Monitor) -> StreamEnded:
        key = _monitor_key(ex_id)
        self.monitor_manager.add_monitor(key, monitor)
        if self._closing:
            self.monitor_manager.remove_monitor(key)
        try:
            return await monitor.drive(self._partial_emitter(ex_id))
        finally:
            self.monitor_manager.discard(key, monitor)

    def _partial_emitter(self, ex_id: ExId) -> Emit:
        def emit(payload: Any) -> None:
            self.result_manager.set_partial_result(ex_id, payload)

        return emit

    def _end_stream(self, ex_id: ExId, outcome: StreamEnded) -> None:
        logger.debug("Stream %r ended (%s)", ex_id, outcome.name)
        self.result_manager.set_result(ex_id, self.stream_end, outcome.as_params())
