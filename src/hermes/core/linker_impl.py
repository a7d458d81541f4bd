"""
Collection linker implementation for Hermes.

Handles symbol table building, collection root validation, environment
layering, reference resolution, and placeholder substitution.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from . import ir
from .fileset import RESERVED_PREFIX
from .manifest import PlaceholderPolicy
from .parser import env_file_path, iter_blocks
from .parser_impl import CONTENT_FIELD

logger = logging.getLogger(__name__)

SELF_REQUESTS = "self-requests"
SELF_ENVIRONMENTS = "self-environments"

DEFAULT_REQUEST_NAME = "Untitled Request"
INLINE_ENVIRONMENT_NAME = "<inline>"

COLLECTION_FIELDS = frozenset({"name", "include", "environment", "description"})
REQUEST_FIELDS = frozenset({"name", "method", "url", "headers", "queries", "body"})

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")

MULTIPART_PREFIXES = {
    "text-": ir.PartKind.TEXT,
    "file-": ir.PartKind.FILE,
}


def _at(
    kind: ir.DiagnosticKind, message: str, file: Path, line: int, column: int = 0
) -> ir.Diagnostic:
    return ir.Diagnostic.create(kind, message, file=file, line=line, column=column)


def _at_field(
    kind: ir.DiagnosticKind, message: str, block: ir.Block, block_field: ir.BlockField
) -> ir.Diagnostic:
    return _at(kind, message, block.source_file, block_field.line, block_field.column)


def _at_block(kind: ir.DiagnosticKind, message: str, block: ir.Block) -> ir.Diagnostic:
    return _at(kind, message, block.source_file, block.span.line, block.span.column)


def is_reserved(block: ir.Block) -> bool:
    return block.identifier is not None and block.identifier.startswith(RESERVED_PREFIX)


def reserved_misuse(block: ir.Block) -> ir.Diagnostic:
    return _at_block(
        ir.DiagnosticKind.RESERVED_IDENTIFIER_MISUSE,
        f"Identifier '{block.identifier}' uses the reserved '{RESERVED_PREFIX}' "
        "prefix; the block cannot be referenced",
        block,
    )


@dataclass
class SymbolTable:
    """
    Symbol table for every named block across the files of a collection.

    Also tracks the request and environment blocks in discovery order, which
    back the virtual ``self-requests`` and ``self-environments`` aggregates.
    """

    blocks: dict[str, ir.Block] = field(default_factory=dict)
    requests: list[ir.Block] = field(default_factory=list)
    environments: list[ir.Block] = field(default_factory=list)

    # Track which file each symbol came from (for error reporting)
    symbol_sources: dict[str, Path] = field(default_factory=dict)

    def add_block(self, block: ir.Block, diagnostics: list[ir.Diagnostic]) -> None:
        """Add a top-level block, reporting reserved and duplicate identifiers."""
        if block.block_type == ir.BlockType.REQUEST:
            self.requests.append(block)
        elif block.block_type == ir.BlockType.ENVIRONMENT:
            self.environments.append(block)

        if block.is_anonymous:
            return
        identifier = block.identifier

        if is_reserved(block):
            diagnostics.append(reserved_misuse(block))
            return

        if identifier in self.blocks:
            existing = self.symbol_sources[identifier]
            first = self.blocks[identifier]
            diagnostics.append(
                _at_block(
                    ir.DiagnosticKind.DUPLICATE_IDENTIFIER,
                    f"Duplicate identifier '{identifier}': first defined in "
                    f"{existing}:{first.span.line}",
                    block,
                )
            )
            return

        self.blocks[identifier] = block
        self.symbol_sources[identifier] = block.source_file

    def resolve(self, identifier: str) -> list[ir.Block] | None:
        """
        Look up an identifier.

        Returns:
            The blocks it denotes (several for the self aggregates), or None
            when nothing is registered under it
        """
        if identifier == SELF_REQUESTS:
            return list(self.requests)
        if identifier == SELF_ENVIRONMENTS:
            return list(self.environments)
        block = self.blocks.get(identifier)
        if block is None:
            return None
        return [block]


def build_symbol_table(
    files: list[ir.ParsedFile],
) -> tuple[SymbolTable, list[ir.Diagnostic]]:
    """
    Build the symbol table from all successfully parsed files.

    Files are visited in discovery order so the earliest definition of an
    identifier wins. Inline blocks are never registered, but a reserved
    identifier on one is still reported.

    Returns:
        Tuple of (symbol table, diagnostics)
    """
    symbols = SymbolTable()
    diagnostics: list[ir.Diagnostic] = []
    for parsed in files:
        if parsed.failed:
            continue
        for block in parsed.blocks:
            symbols.add_block(block, diagnostics)
            for inline in iter_blocks([block]):
                if inline is not block and is_reserved(inline):
                    diagnostics.append(reserved_misuse(inline))
    return symbols, diagnostics


def find_collection_root(
    files: list[ir.ParsedFile], root: Path
) -> tuple[ir.Block | None, list[ir.Diagnostic]]:
    """
    Find the collection block and check where collection blocks appear.

    The root file must start with the collection block; any other
    collection block, in the root file or elsewhere, is ignored.

    Returns:
        Tuple of (collection block or None, diagnostics)
    """
    diagnostics: list[ir.Diagnostic] = []
    collection = None

    for parsed in files:
        if parsed.failed:
            continue
        is_root = parsed.path == root

        if is_root:
            if not parsed.blocks:
                diagnostics.append(
                    _at(
                        ir.DiagnosticKind.COLLECTION_ROOT_VIOLATION,
                        "Collection root file contains no collection block",
                        parsed.path,
                        1,
                        1,
                    )
                )
            elif parsed.blocks[0].block_type != ir.BlockType.COLLECTION:
                diagnostics.append(
                    _at_block(
                        ir.DiagnosticKind.COLLECTION_ROOT_VIOLATION,
                        "The first block of the collection root must be a collection "
                        f"block, found {parsed.blocks[0].display_type}",
                        parsed.blocks[0],
                    )
                )
            else:
                collection = parsed.blocks[0]

        for block in parsed.blocks:
            if block.block_type != ir.BlockType.COLLECTION or block is collection:
                continue
            where = "once, at the top of" if is_root else "only in"
            diagnostics.append(
                _at_block(
                    ir.DiagnosticKind.COLLECTION_ROOT_VIOLATION,
                    f"Ignoring collection block: it may appear {where} {root.name}",
                    block,
                )
            )

    return collection, diagnostics


class Resolver:
    """
    Resolves requests and environments against a built symbol table.

    A Resolver is created per load and discarded afterwards; its only state
    is the read-only inputs and the diagnostics it accumulates.
    """

    def __init__(
        self,
        symbols: SymbolTable,
        env_files: dict[Path, dict[str, str]],
        policy: PlaceholderPolicy,
    ):
        self.symbols = symbols
        self.env_files = env_files
        self.policy = policy
        self.active: dict[str, str] = {}
        self.diagnostics: list[ir.Diagnostic] = []

    def report(self, diagnostic: ir.Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    # ------------------------------------------------------------------
    # References

    def lookup(
        self,
        owner: ir.Block,
        block_field: ir.BlockField,
        expected: ir.BlockType,
    ) -> list[ir.Block]:
        """
        Resolve a field value to blocks of the expected type.

        Unresolved references, literals, and blocks of another type are
        reported and contribute nothing.
        """
        value = block_field.value

        if isinstance(value, ir.InlineBlock):
            candidates = [value.block]
            shown = f"inline {value.block.display_type} block"
        elif isinstance(value, ir.Reference):
            resolved = self.symbols.resolve(value.identifier)
            if resolved is None:
                self.report(
                    _at_field(
                        ir.DiagnosticKind.UNRESOLVED_REFERENCE,
                        f"Unresolved reference '{value.identifier}' in field "
                        f"'{block_field.name}'",
                        owner,
                        block_field,
                    )
                )
                return []
            candidates = resolved
            shown = f"'{value.identifier}'"
        else:
            self.report(
                _at_field(
                    ir.DiagnosticKind.INVALID_VALUE,
                    f"Field '{block_field.name}' expects a {expected.value} block "
                    "identifier or an inline block, not a string",
                    owner,
                    block_field,
                )
            )
            return []

        matching = []
        for block in candidates:
            if block.block_type != expected:
                self.report(
                    _at_field(
                        ir.DiagnosticKind.TYPE_MISMATCH,
                        f"Field '{block_field.name}' expects a {expected.value} block, "
                        f"but {shown} is a {block.display_type} block",
                        owner,
                        block_field,
                    )
                )
                continue
            if not ir.is_legal_sub_type(block.block_type, block.sub_type):
                self.report(
                    _at_block(
                        ir.DiagnosticKind.ILLEGAL_SUB_TYPE,
                        f"Illegal sub-type '{block.sub_type}' for {block.block_type.value} "
                        "block",
                        block,
                    )
                )
                continue
            matching.append(block)
        return matching

    # ------------------------------------------------------------------
    # Placeholders

    def substitute(self, text: str, file: Path, line: int, column: int = 0) -> str:
        """Replace ``{{KEY}}`` placeholders from the active environment."""
        missing: list[str] = []

        def replace(match: re.Match) -> str:
            key = match.group(1)
            if key in self.active:
                return self.active[key]
            if key not in missing:
                missing.append(key)
            return match.group(0)

        result = PLACEHOLDER_PATTERN.sub(replace, text)

        for key in missing:
            if self.policy == PlaceholderPolicy.REPORT:
                self.report(
                    _at(
                        ir.DiagnosticKind.UNRESOLVED_PLACEHOLDER,
                        f"Placeholder '{{{{{key}}}}}' has no value in the active "
                        "environment",
                        file,
                        line,
                        column,
                    )
                )
            else:
                logger.debug("Leaving unresolved placeholder %s at %s:%d", key, file, line)
        return result

    def literal(self, owner: ir.Block, block_field: ir.BlockField, what: str) -> str | None:
        """Text of a literal field, or None (reported) for any other value."""
        value = block_field.value
        if isinstance(value, ir.LiteralValue):
            return value.text
        self.report(
            _at_field(
                ir.DiagnosticKind.INVALID_VALUE,
                f"Field '{block_field.name}' expects {what}",
                owner,
                block_field,
            )
        )
        return None

    # ------------------------------------------------------------------
    # Environments

    def environment_entries(self, block: ir.Block) -> dict[str, tuple[str, bool]]:
        """Key -> (value, enabled) entries declared by one environment block."""
        if block.sub_type == ir.SubType.FILE:
            path = env_file_path(block)
            if path is None:
                self.report(
                    _at_block(
                        ir.DiagnosticKind.INVALID_VALUE,
                        "environment.file block needs a 'path' string field",
                        block,
                    )
                )
                return {}
            # Missing files were reported when the block was parsed
            return {key: (value, True) for key, value in self.env_files.get(path, {}).items()}

        entries: dict[str, tuple[str, bool]] = {}
        for block_field in block.fields:
            text = self.literal(block, block_field, "a string value")
            if text is not None:
                entries[block_field.name] = (text, block_field.enabled)
        return entries

    def layer_environments(
        self, collection: ir.Block | None
    ) -> list[ir.EnvironmentInfo]:
        """
        Merge the collection's environment fields into the active mapping.

        Later environments overwrite earlier ones key by key; keys whose
        final entry is disabled are left out.

        Returns:
            All declared environments with the layered ones flagged active
        """
        merged: dict[str, tuple[str, bool]] = {}
        layered: list[ir.Block] = []
        entries_by_block: dict[int, dict[str, tuple[str, bool]]] = {}

        def entries_of(block: ir.Block) -> dict[str, tuple[str, bool]]:
            if id(block) not in entries_by_block:
                entries_by_block[id(block)] = self.environment_entries(block)
            return entries_by_block[id(block)]

        if collection is not None:
            for block_field in collection.fields_named("environment"):
                if not block_field.enabled:
                    continue
                for block in self.lookup(collection, block_field, ir.BlockType.ENVIRONMENT):
                    merged.update(entries_of(block))
                    layered.append(block)

        self.active = {key: value for key, (value, enabled) in merged.items() if enabled}

        layered_ids = {id(block) for block in layered}
        declared = list(self.symbols.environments)
        declared_ids = {id(block) for block in declared}
        declared.extend(b for b in layered if id(b) not in declared_ids)

        return [
            ir.EnvironmentInfo(
                name=block.identifier or INLINE_ENVIRONMENT_NAME,
                entries={
                    key: value
                    for key, (value, enabled) in entries_of(block).items()
                    if enabled
                },
                active=id(block) in layered_ids,
                from_file=block.sub_type == ir.SubType.FILE,
                source_file=block.source_file,
            )
            for block in declared
        ]

    # ------------------------------------------------------------------
    # Requests

    def mapping(
        self, owner: ir.Block, block_field: ir.BlockField, expected: ir.BlockType
    ) -> dict[str, str]:
        """Enabled, substituted entries of the headers/queries blocks a field names."""
        result: dict[str, str] = {}
        for block in self.lookup(owner, block_field, expected):
            for entry in block.fields:
                if not entry.enabled:
                    continue
                text = self.literal(block, entry, "a string value")
                if text is None:
                    continue
                result[entry.name] = self.substitute(
                    text, block.source_file, entry.line, entry.column
                )
        return result

    def body(self, owner: ir.Block, block_field: ir.BlockField) -> ir.ResolvedBody | None:
        """Resolve the body block a request field names."""
        blocks = self.lookup(owner, block_field, ir.BlockType.BODY)
        if not blocks:
            return None
        block = blocks[-1]
        kind = ir.BodyKind.from_sub_type(block.sub_type)

        if kind in (ir.BodyKind.JSON, ir.BodyKind.TEXT):
            content = ""
            for entry in block.fields:
                if entry.name != CONTENT_FIELD:
                    self.report(
                        _at_field(
                            ir.DiagnosticKind.UNKNOWN_FIELD,
                            f"Unknown field '{entry.name}' in {block.display_type} block",
                            block,
                            entry,
                        )
                    )
                    continue
                if not entry.enabled:
                    continue
                text = self.literal(block, entry, "a string value")
                if text is not None:
                    content = self.substitute(
                        text, block.source_file, entry.line, entry.column
                    )
            return ir.ResolvedBody(kind=kind, content=content)

        if kind == ir.BodyKind.FORM_URLENCODED:
            form: dict[str, str] = {}
            for entry in block.fields:
                if not entry.enabled:
                    continue
                text = self.literal(block, entry, "a string value")
                if text is not None:
                    form[entry.name] = self.substitute(
                        text, block.source_file, entry.line, entry.column
                    )
            return ir.ResolvedBody(kind=kind, form=form)

        parts: list[ir.MultipartPart] = []
        for entry in block.fields:
            if not entry.enabled:
                continue
            prefix = next((p for p in MULTIPART_PREFIXES if entry.name.startswith(p)), None)
            if prefix is None or len(entry.name) == len(prefix):
                self.report(
                    _at_field(
                        ir.DiagnosticKind.INVALID_VALUE,
                        f"Multipart entry '{entry.name}' must be named text-NAME or "
                        "file-NAME",
                        block,
                        entry,
                    )
                )
                continue
            text = self.literal(block, entry, "a string value")
            if text is None:
                continue
            parts.append(
                ir.MultipartPart(
                    name=entry.name[len(prefix) :],
                    kind=MULTIPART_PREFIXES[prefix],
                    value=self.substitute(text, block.source_file, entry.line, entry.column),
                )
            )
        return ir.ResolvedBody(kind=kind, parts=parts)

    def method(self, owner: ir.Block, block_field: ir.BlockField) -> ir.HttpMethod | None:
        value = block_field.value
        if isinstance(value, ir.LiteralValue):
            text = value.text
        elif isinstance(value, ir.Reference):
            text = value.identifier
        else:
            text = ""
        try:
            return ir.HttpMethod(text.strip().upper())
        except ValueError:
            self.report(
                _at_field(
                    ir.DiagnosticKind.INVALID_VALUE,
                    f"Unknown HTTP method '{text}'. Valid methods: "
                    f"{', '.join(m.value for m in ir.HttpMethod)}",
                    owner,
                    block_field,
                )
            )
            return None

    def request(self, block: ir.Block, collection_dir: Path) -> ir.ResolvedRequest:
        """Resolve one request block."""
        name = block.identifier or DEFAULT_REQUEST_NAME
        method = ir.HttpMethod.GET
        url = ""
        headers: dict[str, str] = {}
        queries: dict[str, str] = {}
        body_field: ir.BlockField | None = None

        for block_field in block.fields:
            if block_field.name not in REQUEST_FIELDS:
                self.report(
                    _at_field(
                        ir.DiagnosticKind.UNKNOWN_FIELD,
                        f"Unknown request field '{block_field.name}'",
                        block,
                        block_field,
                    )
                )
                continue
            if not block_field.enabled:
                continue

            if block_field.name == "name":
                text = self.literal(block, block_field, "a string")
                if text is not None:
                    name = text
            elif block_field.name == "method":
                resolved_method = self.method(block, block_field)
                if resolved_method is not None:
                    method = resolved_method
            elif block_field.name == "url":
                text = self.literal(block, block_field, "a string")
                if text is not None:
                    url = self.substitute(
                        text, block.source_file, block_field.line, block_field.column
                    )
            elif block_field.name == "headers":
                headers.update(self.mapping(block, block_field, ir.BlockType.HEADERS))
            elif block_field.name == "queries":
                queries.update(self.mapping(block, block_field, ir.BlockType.QUERIES))
            else:
                body_field = block_field

        return ir.ResolvedRequest(
            name=name,
            identifier=block.identifier,
            method=method,
            url=url,
            headers=headers,
            queries=queries,
            body=self.body(block, body_field) if body_field is not None else None,
            source_file=block.source_file,
            folder=folder_of(block.source_file, collection_dir),
            line=block.span.line,
        )


def folder_of(path: Path, collection_dir: Path) -> str:
    """Directory of ``path`` relative to the collection directory ("" at the top)."""
    try:
        relative = path.parent.relative_to(collection_dir)
    except ValueError:
        return str(path.parent)
    folder = relative.as_posix()
    return "" if folder == "." else folder


def collection_metadata(
    collection: ir.Block | None,
) -> tuple[str | None, str | None, list[ir.Diagnostic]]:
    """
    Read the name and description of the collection block.

    Returns:
        Tuple of (name, description, diagnostics); None when unset
    """
    name = None
    description = None
    diagnostics: list[ir.Diagnostic] = []
    if collection is None:
        return name, description, diagnostics

    for block_field in collection.fields:
        if block_field.name not in COLLECTION_FIELDS:
            diagnostics.append(
                _at_field(
                    ir.DiagnosticKind.UNKNOWN_FIELD,
                    f"Unknown collection field '{block_field.name}'",
                    collection,
                    block_field,
                )
            )
            continue
        if not block_field.enabled or block_field.name not in ("name", "description"):
            continue
        if not isinstance(block_field.value, ir.LiteralValue):
            diagnostics.append(
                _at_field(
                    ir.DiagnosticKind.INVALID_VALUE,
                    f"Collection field '{block_field.name}' expects a string",
                    collection,
                    block_field,
                )
            )
        elif block_field.name == "name":
            name = block_field.value.text
        else:
            description = block_field.value.text

    return name, description, diagnostics


def merge_env_files(files: list[ir.ParsedFile]) -> dict[Path, dict[str, str]]:
    """Combine the dotenv contents read by every parsed file."""
    env_files: dict[Path, dict[str, str]] = {}
    for parsed in files:
        env_files.update(parsed.env_files)
    return env_files


def unique_diagnostics(diagnostics: list[ir.Diagnostic]) -> list[ir.Diagnostic]:
    """Drop repeated diagnostics (a block referenced twice reports once), keeping order."""
    seen = set()
    result = []
    for diagnostic in diagnostics:
        key = (
            diagnostic.file,
            diagnostic.line,
            diagnostic.column,
            diagnostic.kind,
            diagnostic.message,
        )
        if key in seen:
            continue
        seen.add(key)
        result.append(diagnostic)
    return result
