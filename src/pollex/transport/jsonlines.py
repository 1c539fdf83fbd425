"""JSON-lines poll loop over a pair of text streams.

Each input line is one batch: a JSON array of submissions, or an object
with an ``executions`` array. Each batch is answered with exactly one
output line holding the ``poll`` response. In push mode, results that
arrive while the client is idle are written as extra response lines.

When input ends, every monitor is stopped, in-flight work is awaited,
and one last response carries whatever remains in the buffer.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import IO, Any

from pollex.engine.main import MainManager, PollResponse
from pollex.engine.results import ValidationError

logger = logging.getLogger(__name__)

INVALID_BATCH = "InvalidBatch"

WriteLine = Callable[[str], None]


def encode_response(response: PollResponse) -> str:
    """One JSON line; values JSON cannot express are stringified."""
    return json.dumps(response.to_wire(), default=str, separators=(",", ":"))


def answer_line(engine: MainManager, line: str) -> PollResponse:
    """Parse one batch line and poll *engine* with it.

    Malformed lines are answered with an ``InvalidBatch`` error and do not
    drain the buffer.
    """
    try:
        payload: Any = json.loads(line)
    except json.JSONDecodeError as exc:
        return _invalid_batch(f"Batch is not valid JSON: {exc.msg}", line)

    if isinstance(payload, dict):
        payload = payload.get("executions")
    if payload is not None and not isinstance(payload, list):
        return _invalid_batch("Batch must be a JSON array of executions", line)

    return engine.poll(payload)


async def serve_stream(
    engine: MainManager,
    infile: IO[str],
    write_line: WriteLine,
    *,
    poll_interval: float = 0.05,
    push: bool = False,
) -> int:
    """Answer batches from *infile* until EOF. Returns the number of batches."""
    loop = asyncio.get_running_loop()
    batches = 0

    while True:
        read = loop.run_in_executor(None, infile.readline)
        while True:
            done, _pending = await asyncio.wait({read}, timeout=poll_interval)
            if done:
                break
            if push:
                _flush(engine, write_line)

        line = read.result()
        if not line:
            break
        line = line.strip()
        if not line:
            continue

        batches += 1
        write_line(encode_response(answer_line(engine, line)))

    logger.debug("Input closed after %d batch(es); shutting down", batches)
    await engine.shutdown()
    write_line(encode_response(engine.poll()))
    return batches


def _flush(engine: MainManager, write_line: WriteLine) -> None:
    response = engine.poll()
    if response.results:
        write_line(encode_response(response))


def _invalid_batch(message: str, line: str) -> PollResponse:
    return PollResponse(
        errors=[ValidationError(name=INVALID_BATCH, message=message, executions_obj=line)]
    )
