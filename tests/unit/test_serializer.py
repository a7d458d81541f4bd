"""Tests for canonical serialization of block trees."""

from pathlib import Path
from typing import Any

import pytest

from hermes.core import ir
from hermes.core.parser import parse_text
from hermes.core.serializer import dump_blocks, is_plain_name, quote

FILE = Path("test.hermes")

SOURCES = [
    'request::r1 { url "https://{{HOST}}/x" headers h1 method post }',
    'headers::h1 { Authorization 1 "Bearer t" "X Custom" 0 "a\\"b" }',
    'collection { name "Demo" include "." environment 1 env1 environment { K 1 "v" } }',
    'body.json::payload {\n    {"a": [1, 2], "b": "}"}\n}',
    'request { body body.json { value 1 r#"{"a":1}"# } queries { q 0 "1" } }',
    'body.multipart-form { text-title 1 "t" file-doc 1 "./doc.pdf" }',
    'environment.file::dev { path "dev.env" }',
    'body.text { value 0 r#"line 1\nline 2"# }',
    "request { }",
]


def parse(text: str) -> list[ir.Block]:
    parsed = parse_text(text, FILE)
    assert not parsed.failed, parsed.diagnostics
    return parsed.blocks


def shape(blocks: list[ir.Block]) -> list[Any]:
    """Block structure without source locations."""

    def value_shape(value: ir.Value) -> Any:
        if isinstance(value, ir.InlineBlock):
            return block_shape(value.block)
        return value.model_dump()

    def block_shape(block: ir.Block) -> Any:
        return (
            block.block_type,
            block.sub_type,
            block.identifier,
            [(f.name, f.enabled, value_shape(f.value)) for f in block.fields],
        )

    return [block_shape(b) for b in blocks]


class TestRoundTrip:
    """Parse, dump, parse again."""

    @pytest.mark.parametrize("source", SOURCES)
    def test_structure_survives(self, source: str):
        """Re-parsing the dumped text yields the same structure."""
        blocks = parse(source)
        assert shape(parse(dump_blocks(blocks))) == shape(blocks)

    @pytest.mark.parametrize("source", SOURCES)
    def test_dump_is_stable(self, source: str):
        """Dumping canonical text again changes nothing."""
        once = dump_blocks(parse(source))
        assert dump_blocks(parse(once)) == once


class TestFormatting:
    """Canonical layout."""

    def test_layout(self):
        """Fields are indented with explicit states, blocks separated by a blank line."""
        text = dump_blocks(parse('request::r { url "x" headers { A 1 "b" } }\nheaders::h { }'))
        assert text == (
            "request::r {\n"
            '    url 1 "x"\n'
            "    headers 1 headers {\n"
            '        A 1 "b"\n'
            "    }\n"
            "}\n"
            "\n"
            "headers::h {}\n"
        )

    def test_quoting(self):
        """Quoted strings escape backslashes, quotes and control characters."""
        assert quote('a"b\\c\nd\te') == '"a\\"b\\\\c\\nd\\te"'

    @pytest.mark.parametrize(
        ("name", "plain"),
        [("Accept", True), ("x-api-key2", True), ("2fa", False), ("X Custom", False), ("", False)],
    )
    def test_plain_names(self, name: str, plain: bool):
        """Only identifier-shaped field names are written bare."""
        assert is_plain_name(name) is plain

    def test_raw_with_terminator_falls_back_to_quoted(self):
        """Raw text containing its own terminator is written quoted."""
        block = ir.Block(
            block_type=ir.BlockType.BODY,
            sub_type=ir.SubType.TEXT,
            fields=[
                ir.BlockField(name="value", value=ir.LiteralValue(text='say "# now', raw=True))
            ],
            source_file=FILE,
            span=ir.SourceSpan(file=FILE, line=1, column=1, end_line=1, end_column=1),
        )
        text = dump_blocks([block])
        assert '"say \\"# now"' in text
        assert parse(text)[0].fields[0].value.text == 'say "# now'
