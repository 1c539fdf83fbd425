"""Human and JSON renderings of command-tree introspection."""

from __future__ import annotations

import json as _json
from typing import Any

from rich.table import Table

from pollex.output.console import create_console, get_output, style_for_kind


def format_commands(
    commands: dict[str, dict[str, Any]],
    *,
    json_output: bool = False,
) -> str:
    """Render the flattened ``{dotted name: {"type": kind}}`` command table.

    Commands are listed in name order; JSON output keeps the same order.
    """
    ordered = dict(sorted(commands.items()))
    if json_output:
        return _json.dumps(ordered, indent=2)

    table = Table(show_header=True, header_style="pollex.key", box=None)
    table.add_column("Command", style="pollex.name")
    table.add_column("Type")
    for name, info in ordered.items():
        kind = str(info.get("type", ""))
        style = style_for_kind(kind)
        table.add_row(name, f"[{style}]{kind}[/]" if style else kind)

    console = create_console()
    console.print(table)
    return get_output(console).rstrip("\n")


def format_submanagers(
    submanagers: dict[str, dict[str, str]],
    *,
    json_output: bool = False,
) -> str:
    """Render the immediate children of a manager as ``name  Class`` lines."""
    if json_output:
        return _json.dumps(submanagers, indent=2)
    if not submanagers:
        return "No submanagers mounted."
    width = max(len(name) for name in submanagers)
    return "\n".join(
        f"{name.ljust(width)}  {info.get('class', '')}" for name, info in sorted(submanagers.items())
    )
