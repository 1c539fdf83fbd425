"""Root CLI group for pollex with global flags and command registration."""

from __future__ import annotations

import click

from pollex import __version__
from pollex.commands import register_commands
from pollex.commands._context import AppContext
from pollex.config.settings import PollexSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pollex")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging to stderr.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("--no-plugins", is_flag=True, help="Skip built-in and discovered plugins.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    verbose: bool,
    log_json: bool,
    no_plugins: bool,
    config_path: str | None,
) -> None:
    """pollex — asynchronous command execution behind a poll loop."""
    ctx.ensure_object(dict)
    settings = PollexSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        verbose=verbose,
        log_json=log_json,
        no_plugins=no_plugins,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
