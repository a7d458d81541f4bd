"""
File discovery for Hermes collections.

Starting from the collection root, follows the ``include`` fields of the
collection block and parses every file that belongs to the collection. The
whole file set is parsed before anything is resolved, so references may
point forward across files.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import ir
from .manifest import HermesConfig
from .parser import parse_file, parse_files

logger = logging.getLogger(__name__)

INCLUDE_FIELD = "include"
RESERVED_PREFIX = "self"


@dataclass
class Discovery:
    """
    Result of the discovery phase.

    Attributes:
        root: Path of the collection root file
        files: Parsed files in discovery order (root first)
        diagnostics: Problems with include targets
    """

    root: Path
    files: list[ir.ParsedFile] = field(default_factory=list)
    diagnostics: list[ir.Diagnostic] = field(default_factory=list)


def find_collection_block(parsed: ir.ParsedFile) -> ir.Block | None:
    """Get the collection block heading a file, if it starts with one."""
    if parsed.blocks and parsed.blocks[0].block_type == ir.BlockType.COLLECTION:
        return parsed.blocks[0]
    return None


def _located(
    kind: ir.DiagnosticKind, message: str, block_field: ir.BlockField, file: Path
) -> ir.Diagnostic:
    return ir.Diagnostic.create(
        kind, message, file=file, line=block_field.line, column=block_field.column
    )


def list_directory(directory: Path, config: HermesConfig) -> list[Path]:
    """Collection files directly inside ``directory`` (non-recursive), sorted by name."""
    return sorted(
        p.resolve()
        for p in directory.iterdir()
        if p.is_file() and p.suffix == config.extension
    )


def candidate_files(root: Path, config: HermesConfig) -> list[Path]:
    """
    Every collection file under the root directory.

    Subdirectories holding their own root file are separate collections and
    are skipped entirely.
    """
    base = root.parent
    nested_roots = {
        p.parent.resolve()
        for p in base.rglob(config.root_file)
        if p.resolve() != root
    }
    candidates = []
    for p in sorted(base.rglob(f"*{config.extension}")):
        resolved = p.resolve()
        if resolved == root or not resolved.is_file():
            continue
        if any(parent in nested_roots for parent in resolved.parents):
            continue
        candidates.append(resolved)
    return candidates


def _defines(parsed: ir.ParsedFile, identifier: str) -> bool:
    return any(block.identifier == identifier for block in parsed.blocks)


class _Discoverer:
    """Accumulates the file set of one collection."""

    def __init__(self, root: Path, config: HermesConfig):
        self.root = root
        self.config = config
        self.result = Discovery(root=root)
        self.ordered: list[Path] = []

    def add_path(self, path: Path, block_field: ir.BlockField) -> None:
        if path == self.root or path in self.ordered:
            return
        if path.name == self.config.root_file:
            self.result.diagnostics.append(
                _located(
                    ir.DiagnosticKind.NESTED_COLLECTION_IGNORED,
                    f"Ignoring nested collection root {path}; collections cannot nest",
                    block_field,
                    self.root,
                )
            )
            return
        self.ordered.append(path)

    def include_path(self, text: str, block_field: ir.BlockField) -> None:
        target = (self.root.parent / text).resolve()
        if target.is_dir():
            for path in list_directory(target, self.config):
                self.add_path(path, block_field)
        elif target.is_file():
            self.add_path(target, block_field)
        else:
            self.result.diagnostics.append(
                _located(
                    ir.DiagnosticKind.IO_ERROR,
                    f"Include target not found: {target}",
                    block_field,
                    self.root,
                )
            )

    def run(self) -> Discovery:
        root_parsed = parse_file(self.root)
        self.result.files.append(root_parsed)
        if root_parsed.failed:
            return self.result

        collection = find_collection_block(root_parsed)
        if collection is None:
            return self.result

        identifier_includes: list[tuple[ir.BlockField, str]] = []
        for block_field in collection.fields_named(INCLUDE_FIELD):
            if not block_field.enabled:
                continue
            value = block_field.value
            if isinstance(value, ir.LiteralValue):
                self.include_path(value.text, block_field)
            elif isinstance(value, ir.Reference):
                if value.identifier.startswith(RESERVED_PREFIX):
                    self.result.diagnostics.append(
                        _located(
                            ir.DiagnosticKind.INVALID_VALUE,
                            f"Cannot include the virtual aggregate '{value.identifier}'",
                            block_field,
                            self.root,
                        )
                    )
                else:
                    identifier_includes.append((block_field, value.identifier))
            else:
                self.result.diagnostics.append(
                    _located(
                        ir.DiagnosticKind.INVALID_VALUE,
                        "include expects a path or a block identifier, not an inline block",
                        block_field,
                        self.root,
                    )
                )

        self.result.files.extend(parse_files(self.ordered, self.config.max_workers))

        if identifier_includes:
            self.include_identifiers(identifier_includes)

        for parsed in self.result.files:
            logger.debug("Discovered %s (%s)", parsed.path, parsed.state.value)
        return self.result

    def include_identifiers(self, includes: list[tuple[ir.BlockField, str]]) -> None:
        """Pull in the files defining the identifiers named by ``include`` fields."""
        pending = []
        for block_field, identifier in includes:
            if not any(_defines(parsed, identifier) for parsed in self.result.files):
                pending.append((block_field, identifier))
        if not pending:
            return

        known = {parsed.path for parsed in self.result.files}
        candidates = [p for p in candidate_files(self.root, self.config) if p not in known]
        parsed_candidates = parse_files(candidates, self.config.max_workers)

        for block_field, identifier in pending:
            match = next((p for p in parsed_candidates if _defines(p, identifier)), None)
            if match is None:
                self.result.diagnostics.append(
                    _located(
                        ir.DiagnosticKind.UNRESOLVED_REFERENCE,
                        f"Cannot include '{identifier}': no file in the collection "
                        "defines it",
                        block_field,
                        self.root,
                    )
                )
            elif match.path not in known:
                known.add(match.path)
                self.result.files.append(match)


def locate_root(root_path: Path, config: HermesConfig) -> Path:
    """Accept either the collection directory or the root file itself."""
    root_path = root_path.resolve()
    if root_path.is_dir():
        return root_path / config.root_file
    return root_path


def discover_collection(root: Path, config: HermesConfig) -> Discovery:
    """
    Discover and parse every file of a collection.

    Args:
        root: Path of the collection root file
        config: Loader configuration

    Returns:
        Discovery with parsed files in discovery order
    """
    return _Discoverer(root, config).run()
