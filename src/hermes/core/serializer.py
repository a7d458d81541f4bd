"""
Canonical text serialization for Hermes block trees.

Produces .hermes source that parses back to the same blocks: every field
carries an explicit 1/0 state, raw values stay raw where possible, and
inline blocks are nested with indentation.
"""

from . import ir
from .lexer import is_identifier_char, is_identifier_start

INDENT = "    "

_QUOTED_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
}


def is_plain_name(name: str) -> bool:
    """Check whether a field name can be written without quotes."""
    return bool(name) and is_identifier_start(name[0]) and all(map(is_identifier_char, name))


def quote(text: str) -> str:
    return '"' + "".join(_QUOTED_ESCAPES.get(ch, ch) for ch in text) + '"'


def format_literal(value: ir.LiteralValue) -> str:
    # Raw strings cannot contain their own terminator
    if value.raw and '"#' not in value.text:
        return f'r#"{value.text}"#'
    return quote(value.text)


def format_header(block: ir.Block) -> str:
    header = block.display_type
    if block.identifier:
        header += f"::{block.identifier}"
    return header


def format_block(block: ir.Block, depth: int = 0) -> list[str]:
    """Render a block as lines, the first one unindented."""
    if not block.fields:
        return [f"{format_header(block)} {{}}"]

    indent = INDENT * (depth + 1)
    lines = [f"{format_header(block)} {{"]
    for block_field in block.fields:
        name = block_field.name if is_plain_name(block_field.name) else quote(block_field.name)
        state = "1" if block_field.enabled else "0"
        prefix = f"{indent}{name} {state} "

        value = block_field.value
        if isinstance(value, ir.LiteralValue):
            lines.append(prefix + format_literal(value))
        elif isinstance(value, ir.Reference):
            lines.append(prefix + value.identifier)
        else:
            nested = format_block(value.block, depth + 1)
            lines.append(prefix + nested[0])
            lines.extend(nested[1:])
    lines.append(INDENT * depth + "}")
    return lines


def dump_blocks(blocks: list[ir.Block]) -> str:
    """
    Serialize top-level blocks to canonical .hermes text.

    Args:
        blocks: Blocks in source order

    Returns:
        Source text, blocks separated by blank lines
    """
    return "\n\n".join("\n".join(format_block(block)) for block in blocks) + "\n"
