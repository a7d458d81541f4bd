"""
File-level parsing for Hermes collections.

Runs the lexer and parser over single files and reads the dotenv files
named by ``environment.file`` blocks, so that no I/O is left for the
resolver. Lexing and parsing errors fail the file they occur in and
nothing else.
"""

import logging
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from dotenv import dotenv_values

from . import ir
from .errors import ParseError, extract_snippet
from .lexer import tokenize
from .parser_impl import parse_tokens

logger = logging.getLogger(__name__)

ENV_FILE_PATH_FIELD = "path"


def iter_blocks(blocks: list[ir.Block]) -> Iterator[ir.Block]:
    """Yield every block, including inline blocks nested in field values."""
    for block in blocks:
        yield block
        for block_field in block.fields:
            if isinstance(block_field.value, ir.InlineBlock):
                yield from iter_blocks([block_field.value.block])


def env_file_path(block: ir.Block) -> Path | None:
    """Path named by an environment.file block, resolved against its source file."""
    path_field = block.get_field(ENV_FILE_PATH_FIELD)
    if path_field is None or not isinstance(path_field.value, ir.LiteralValue):
        return None
    return (block.source_file.parent / path_field.value.text).resolve()


def read_env_files(
    blocks: list[ir.Block], file: Path
) -> tuple[dict[Path, dict[str, str]], list[ir.Diagnostic]]:
    """
    Read the dotenv files referenced by environment.file blocks.

    Returns:
        Tuple of (entries keyed by resolved path, diagnostics)
    """
    env_files: dict[Path, dict[str, str]] = {}
    diagnostics: list[ir.Diagnostic] = []

    for block in iter_blocks(blocks):
        if block.block_type != ir.BlockType.ENVIRONMENT or block.sub_type != ir.SubType.FILE:
            continue
        path = env_file_path(block)
        if path is None or path in env_files:
            continue
        if not path.is_file():
            diagnostics.append(
                ir.Diagnostic.create(
                    ir.DiagnosticKind.IO_ERROR,
                    f"Environment file not found: {path}",
                    file=file,
                    line=block.span.line,
                    column=block.span.column,
                )
            )
            continue
        try:
            values = dotenv_values(path, interpolate=False, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            diagnostics.append(
                ir.Diagnostic.create(
                    ir.DiagnosticKind.IO_ERROR,
                    f"Cannot read environment file {path}: {e}",
                    file=file,
                    line=block.span.line,
                    column=block.span.column,
                )
            )
            continue
        env_files[path] = {key: value or "" for key, value in values.items()}
        logger.debug("Read %d entries from environment file %s", len(env_files[path]), path)

    return env_files, diagnostics


def parse_text(text: str, file: Path) -> ir.ParsedFile:
    """
    Lex and parse the text of one file.

    Args:
        text: Source text
        file: Source file path

    Returns:
        ParsedFile in state PARSED, or FAILED with its diagnostics
    """
    tokens, lex_errors = tokenize(text, file)
    if lex_errors:
        logger.debug("Lexing failed for %s (%d errors)", file, len(lex_errors))
        return ir.ParsedFile(
            path=file,
            state=ir.FileState.FAILED,
            diagnostics=[
                ir.Diagnostic.from_error(ir.DiagnosticKind.LEX_ERROR, e) for e in lex_errors
            ],
        )

    try:
        blocks = parse_tokens(tokens, file)
    except ParseError as e:
        logger.debug("Parsing failed for %s: %s", file, e.message)
        if e.context is not None and e.context.snippet is None:
            e.context.snippet = extract_snippet(text, e.context.line)
        kind = (
            ir.DiagnosticKind.ILLEGAL_SUB_TYPE
            if e.illegal_sub_type
            else ir.DiagnosticKind.PARSE_ERROR
        )
        return ir.ParsedFile(
            path=file,
            state=ir.FileState.FAILED,
            diagnostics=[ir.Diagnostic.from_error(kind, e)],
        )

    env_files, diagnostics = read_env_files(blocks, file)
    return ir.ParsedFile(
        path=file,
        state=ir.FileState.PARSED,
        blocks=blocks,
        env_files=env_files,
        diagnostics=diagnostics,
    )


def parse_file(path: Path) -> ir.ParsedFile:
    """
    Read, lex, and parse one .hermes file.

    Unreadable files come back FAILED with an IOError diagnostic.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return ir.ParsedFile(
            path=path,
            state=ir.FileState.FAILED,
            diagnostics=[
                ir.Diagnostic.create(
                    ir.DiagnosticKind.IO_ERROR, f"Cannot read file: {e}", file=path
                )
            ],
        )
    return parse_text(text, path)


def parse_files(files: list[Path], max_workers: int = 4) -> list[ir.ParsedFile]:
    """
    Parse files concurrently, one task per file.

    Returns once every file has finished, successfully or not; results keep
    the order of ``files``.

    Args:
        files: Paths to parse
        max_workers: Thread pool size

    Returns:
        ParsedFile per input path, in input order
    """
    if not files:
        return []

    results: dict[Path, ir.ParsedFile] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(parse_file, path): path for path in files}
        for future in as_completed(futures):
            parsed = future.result()
            results[futures[future]] = parsed

    return [results[path] for path in files]
