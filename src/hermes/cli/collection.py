"""
Collection commands for the Hermes CLI.

validate, inspect, tokens and fmt all operate on a collection directory,
its collection.hermes, or a single .hermes file.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from hermes.core import ir
from hermes.core.lexer import tokenize
from hermes.core.parser import parse_file
from hermes.core.project import load_collection
from hermes.core.serializer import dump_blocks

from .utils import print_human_diagnostics, print_vscode_diagnostics, relative_to

console = Console()


def validate_command(
    path: Path = typer.Argument(Path("."), help="Collection directory or collection.hermes"),  # noqa: B008
    format: str = typer.Option(
        "human", "--format", "-f", help="Output format: 'human' or 'vscode'"
    ),
) -> None:
    """
    Load a collection and report every diagnostic.

    Exits with status 1 when any error (not warning) was found.
    """
    model, diagnostics = load_collection(path)
    root = model.root.parent

    if format == "vscode":
        print_vscode_diagnostics(diagnostics, root)
    else:
        print_human_diagnostics(diagnostics, root)

    if any(d.is_error for d in diagnostics):
        raise typer.Exit(code=1)


def _request_tree(request: ir.ResolvedRequest, tree: Tree) -> None:
    label = f"[bold]{request.method.value}[/bold] {escape(request.name)}"
    if request.url:
        label += f" [cyan]{escape(request.url)}[/cyan]"
    node = tree.add(label)
    for key, value in request.headers.items():
        node.add(f"header {escape(key)}: {escape(value)}")
    for key, value in request.queries.items():
        node.add(f"query {escape(key)}={escape(value)}")
    if request.body is not None:
        node.add(f"body ({request.body.kind.value})")


def _print_tree(model: ir.CollectionModel) -> None:
    tree = Tree(f"[bold bright_cyan]{escape(model.name)}[/bold bright_cyan]")
    for folder, requests in model.folders().items():
        branch = tree.add(escape(folder or "."))
        for request in requests:
            _request_tree(request, branch)
    console.print(tree)

    if model.environments:
        table = Table(title="Environments")
        table.add_column("Name")
        table.add_column("Active")
        table.add_column("Entries", justify="right")
        for environment in model.environments:
            table.add_row(
                escape(environment.name),
                "yes" if environment.active else "",
                str(len(environment.entries)),
            )
        console.print(table)

    errors = sum(1 for d in model.diagnostics if d.is_error)
    warnings = len(model.diagnostics) - errors
    console.print(f"{len(model.requests)} requests, {errors} errors, {warnings} warnings")


def inspect_command(
    path: Path = typer.Argument(Path("."), help="Collection directory or collection.hermes"),  # noqa: B008
    request: str | None = typer.Option(
        None, "--request", "-r", help="Inspect a specific request by identifier"
    ),
    format: str = typer.Option("tree", "--format", "-f", help="Output format: 'tree' or 'json'"),
) -> None:
    """
    Show the resolved collection: requests, environments and diagnostics.
    """
    model, _ = load_collection(path)

    if request:
        found = model.get_request(request)
        if found is None:
            typer.echo(f"Request not found: {request}", err=True)
            raise typer.Exit(code=1)
        if format == "json":
            typer.echo(found.model_dump_json(indent=2))
        else:
            tree = Tree(escape(model.name))
            _request_tree(found, tree)
            console.print(tree)
        return

    if format == "json":
        typer.echo(model.model_dump_json(indent=2))
    else:
        _print_tree(model)


def tokens_command(
    file: Path = typer.Argument(..., help="A .hermes file"),  # noqa: B008
) -> None:
    """
    Print the token stream of one file.
    """
    try:
        text = file.read_text(encoding="utf-8")
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    tokens, errors = tokenize(text, file)
    for token in tokens:
        typer.echo(f"{token.line}:{token.column}\t{token.type.name}\t{token.value!r}")

    for error in errors:
        typer.echo(f"{relative_to(file, Path.cwd())}: error: {error.message}", err=True)
    if errors:
        raise typer.Exit(code=1)


def fmt_command(
    file: Path = typer.Argument(..., help="A .hermes file"),  # noqa: B008
    check: bool = typer.Option(
        False, "--check", help="Exit with status 1 if the file is not canonically formatted"
    ),
) -> None:
    """
    Print the canonical formatting of one file.
    """
    parsed = parse_file(file.resolve())
    if parsed.failed:
        for diagnostic in parsed.diagnostics:
            typer.echo(str(diagnostic), err=True)
        raise typer.Exit(code=1)

    formatted = dump_blocks(parsed.blocks)
    if not check:
        typer.echo(formatted, nl=False)
        return

    if file.read_text(encoding="utf-8") != formatted:
        typer.echo(f"would reformat {file}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{file} is formatted")
