"""Rich Console factory and theme for pollex output.

Creates Console instances that render to a StringIO buffer, so renderers
return plain strings.  In non-TTY environments (tests, pipes) Rich
automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

POLLEX_THEME = Theme(
    {
        "pollex.name": "bold",
        "pollex.key": "dim",
        "pollex.kind.command": "green",
        "pollex.kind.monitor": "cyan",
        "pollex.manager": "bold blue",
    }
)

_KIND_STYLES: dict[str, str] = {
    "command": "pollex.kind.command",
    "monitor": "pollex.kind.monitor",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=POLLEX_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_kind(kind: str) -> str:
    return _KIND_STYLES.get(kind, "")
