"""
Hermes CLI Utilities.

Shared utility functions used across CLI modules.
"""

import platform
from pathlib import Path

import typer

from hermes._version import get_version
from hermes.core import ir


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"Hermes version {get_version()}")
        typer.echo("")
        typer.echo("Environment:")
        typer.echo(
            f"  Python:        {platform.python_implementation()} {platform.python_version()}"
        )
        typer.echo(f"  Platform:      {platform.system()} {platform.release()}")
        raise typer.Exit()


def relative_to(path: Path | None, root: Path) -> str:
    if path is None:
        return "<collection>"
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def print_human_diagnostics(diagnostics: list[ir.Diagnostic], root: Path) -> None:
    """Print diagnostics in human-readable format."""
    errors = [d for d in diagnostics if d.is_error]
    warnings = [d for d in diagnostics if not d.is_error]

    if errors:
        typer.echo("Validation failed:\n", err=True)
        for diagnostic in errors:
            location = f"{relative_to(diagnostic.file, root)}:{diagnostic.line}"
            typer.echo(
                f"ERROR: {location}: [{diagnostic.kind.value}] {diagnostic.message}",
                err=True,
            )
            if diagnostic.snippet:
                typer.echo(diagnostic.snippet + "\n", err=True)

    if warnings:
        typer.echo("Validation warnings:\n")
        for diagnostic in warnings:
            location = f"{relative_to(diagnostic.file, root)}:{diagnostic.line}"
            typer.echo(f"WARNING: {location}: [{diagnostic.kind.value}] {diagnostic.message}")

    if not errors and not warnings:
        typer.echo("OK: collection is valid.")


def print_vscode_diagnostics(diagnostics: list[ir.Diagnostic], root: Path) -> None:
    """
    Print diagnostics in VS Code format: file:line:col: severity: message

    Diagnostics without a location are reported against line 1, column 1.
    """
    for diagnostic in diagnostics:
        file = relative_to(diagnostic.file, root)
        line = diagnostic.line or 1
        column = diagnostic.column or 1
        typer.echo(
            f"{file}:{line}:{column}: {diagnostic.severity.value}: {diagnostic.message}",
            err=True,
        )

    if not diagnostics:
        typer.echo("::notice: Validation successful")
