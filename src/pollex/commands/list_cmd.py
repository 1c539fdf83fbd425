"""commands — print the command tree of a freshly built engine."""

from __future__ import annotations

import click

from pollex.commands._base import PollexCommand
from pollex.commands._context import AppContext
from pollex.output.formatters import format_commands, format_submanagers


@click.command(
    "commands",
    cls=PollexCommand,
    examples="""\
  # Every command under its dotted name
  pollex commands

  # Machine-readable
  pollex --json commands

  # Only the submanagers mounted on the root
  pollex commands --managers""",
)
@click.option("--managers", is_flag=True, help="List root submanagers instead of commands.")
@click.pass_obj
def list_commands(app: AppContext, managers: bool) -> None:
    """List the commands exposed by the engine."""
    engine = app.build_engine()
    json_output = app.settings.json_output
    if managers:
        click.echo(format_submanagers(engine.get_submanagers(), json_output=json_output))
    else:
        click.echo(format_commands(engine.get_commands(), json_output=json_output))
