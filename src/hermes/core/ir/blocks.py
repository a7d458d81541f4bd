"""
Block tree types for Hermes IR.

This module contains the syntactic tree produced by the parser for a single
.hermes file: blocks, their fields, and the tagged field values.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from .location import SourceSpan


class BlockType(str, Enum):
    """Enumeration of block types in the Hermes language."""

    COLLECTION = "collection"
    REQUEST = "request"
    HEADERS = "headers"
    QUERIES = "queries"
    ENVIRONMENT = "environment"
    BODY = "body"


class SubType(str, Enum):
    """Block sub-types, written after a dot (``body.json``)."""

    JSON = "json"
    TEXT = "text"
    FORM_URLENCODED = "form-urlencoded"
    MULTIPART_FORM = "multipart-form"
    FILE = "file"


# Single source of truth for sub-type legality; blocks absent here take none
LEGAL_SUB_TYPES: dict[BlockType, frozenset[SubType]] = {
    BlockType.BODY: frozenset(
        {SubType.JSON, SubType.TEXT, SubType.FORM_URLENCODED, SubType.MULTIPART_FORM}
    ),
    BlockType.ENVIRONMENT: frozenset({SubType.FILE}),
}

# Sub-types whose block content is a single verbatim value
CONTENT_SUB_TYPES = frozenset({SubType.JSON, SubType.TEXT})

BLOCK_KEYWORDS = frozenset(bt.value for bt in BlockType)


def lookup_sub_type(block_type: BlockType, name: str) -> SubType | None:
    """
    Look up a sub-type by name for the given block type.

    Returns:
        The SubType if ``name`` is legal for ``block_type``, otherwise None
    """
    legal = LEGAL_SUB_TYPES.get(block_type, frozenset())
    for sub_type in legal:
        if sub_type.value == name:
            return sub_type
    return None


def is_legal_sub_type(block_type: BlockType, sub_type: SubType | None) -> bool:
    """Check a (block type, sub-type) pair against the legality table."""
    if sub_type is None:
        return True
    return sub_type in LEGAL_SUB_TYPES.get(block_type, frozenset())


class LiteralValue(BaseModel):
    """
    A string value written in the source.

    Attributes:
        text: The decoded string
        raw: True when written as r#"..."# or as verbatim body content
    """

    kind: Literal["literal"] = "literal"
    text: str
    raw: bool = False

    model_config = ConfigDict(frozen=True)


class Reference(BaseModel):
    """A bare identifier pointing at another block."""

    kind: Literal["reference"] = "reference"
    identifier: str

    model_config = ConfigDict(frozen=True)


class InlineBlock(BaseModel):
    """An anonymous (or named) block written directly as a field value."""

    kind: Literal["block"] = "block"
    block: Block

    model_config = ConfigDict(frozen=True)


Value = Annotated[LiteralValue | Reference | InlineBlock, Field(discriminator="kind")]


class BlockField(BaseModel):
    """
    A name / enabled-state / value triple inside a block.

    Attributes:
        name: Field name
        enabled: False when the field carries an explicit 0 state
        value: Literal, reference, or inline block
        line: 1-indexed line of the field name
        column: 1-indexed column of the field name
    """

    name: str
    enabled: bool = True
    value: Value
    line: int = 0
    column: int = 0

    model_config = ConfigDict(frozen=True)


class Block(BaseModel):
    """
    A block: ``type(.sub_type)?(::identifier)? { fields }``.

    Attributes:
        block_type: The block keyword
        sub_type: Optional sub-type (body and environment only)
        identifier: Name used to reference the block; None when anonymous
        fields: Fields in source order
        source_file: File the block was parsed from
        span: Line/column range of the block
    """

    block_type: BlockType
    sub_type: SubType | None = None
    identifier: str | None = None
    fields: list[BlockField] = Field(default_factory=list)
    source_file: Path
    span: SourceSpan

    model_config = ConfigDict(frozen=True)

    @property
    def is_anonymous(self) -> bool:
        return self.identifier is None

    @property
    def display_type(self) -> str:
        """Block type as written, including sub-type (``body.json``)."""
        if self.sub_type:
            return f"{self.block_type.value}.{self.sub_type.value}"
        return self.block_type.value

    def get_field(self, name: str) -> BlockField | None:
        """Get the last field with the given name."""
        found = None
        for block_field in self.fields:
            if block_field.name == name:
                found = block_field
        return found

    def fields_named(self, name: str) -> list[BlockField]:
        """Get all fields with the given name in source order."""
        return [f for f in self.fields if f.name == name]


InlineBlock.model_rebuild()
BlockField.model_rebuild()
Block.model_rebuild()
