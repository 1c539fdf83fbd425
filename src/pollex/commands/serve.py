"""serve — answer JSON-lines batches from stdin on stdout."""

from __future__ import annotations

import asyncio
import sys

import click

from pollex.commands._base import PollexCommand
from pollex.commands._context import AppContext


@click.command(
    cls=PollexCommand,
    examples="""\
  # One batch per line; one poll response per batch
  echo '[{"exId": "1", "command": "sys.echo", "params": {"a": 1}}]' | pollex serve

  # Also write results that arrive between batches
  pollex serve --push --poll-interval 0.2""",
)
@click.option(
    "--push",
    is_flag=True,
    help="Write new results while waiting for input, not only on each batch.",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between idle polls (default from [serve] poll_interval).",
)
@click.pass_obj
def serve(app: AppContext, push: bool, poll_interval: float | None) -> None:
    """Run the poll loop over stdin/stdout."""
    from pollex.transport.jsonlines import serve_stream

    engine = app.build_engine()
    interval = poll_interval or app.settings.serve.poll_interval
    asyncio.run(
        serve_stream(
            engine,
            sys.stdin,
            click.echo,
            poll_interval=interval,
            push=push,
        )
    )
