"""
Hermes CLI Package.

- collection.py: validate, inspect, tokens and fmt commands
- utils.py: Shared utilities
"""

import logging
import sys

import typer

from hermes.cli.collection import (
    fmt_command,
    inspect_command,
    tokens_command,
    validate_command,
)
from hermes.cli.utils import version_callback

app = typer.Typer(
    help="""Hermes – API collections as plain text

Commands:
  • validate, inspect: load a collection (directory or collection.hermes)
  • tokens, fmt: work on a single .hermes file
""",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log loader activity to stderr"),
) -> None:
    """Hermes CLI main callback for global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


app.command(name="validate")(validate_command)
app.command(name="inspect")(inspect_command)
app.command(name="tokens")(tokens_command)
app.command(name="fmt")(fmt_command)


def main() -> None:
    app(standalone_mode=True)


__all__ = ["app", "main"]
