"""Result envelopes and the drain-on-read buffer that holds them.

INVARIANT: The buffer never loses an envelope except by a drain.
Mutation happens only between awaits on the event-loop thread, so no
lock is taken.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Correlation ids are opaque to the engine; JSON clients send strings or numbers.
ExId = str | int


class ResultType(StrEnum):
    """Envelope kinds delivered to the polling client."""

    FINAL = "FINAL"
    PARTIAL = "PARTIAL"
    ERROR = "ERROR"
    STREAM_END = "STREAM_END"


class ResultEnvelope(BaseModel):
    """One buffered result for a correlation id."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ex_id: ExId = Field(alias="exId")
    type: ResultType
    params: Any = Field(default_factory=dict)


class ValidationError(BaseModel):
    """A malformed submission, reported by the same ``poll`` call."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    message: str
    executions_obj: Any = Field(default=None, alias="executionsObj")


class ResultManager:
    """Append-only queue of result envelopes, emptied by ``get_results``."""

    def __init__(self) -> None:
        self._results: list[ResultEnvelope] = []

    def __len__(self) -> int:
        return len(self._results)

    def set_result(self, ex_id: ExId, type: ResultType, params: Any = None) -> None:
        if params is None:
            params = {}
        self._results.append(ResultEnvelope(ex_id=ex_id, type=type, params=params))

    def set_final_result(self, ex_id: ExId, params: Any = None) -> None:
        self.set_result(ex_id, ResultType.FINAL, params)

    def set_partial_result(self, ex_id: ExId, params: Any = None) -> None:
        self.set_result(ex_id, ResultType.PARTIAL, params)

    def set_error_result(self, ex_id: ExId, params: Any = None) -> None:
        self.set_result(ex_id, ResultType.ERROR, params)

    def set_stream_end_result(self, ex_id: ExId, params: Any = None) -> None:
        self.set_result(ex_id, ResultType.STREAM_END, params)

    def get_results(self) -> list[ResultEnvelope]:
        """Return every pending envelope in append order and empty the buffer."""
        results, self._results = self._results, []
        return results
