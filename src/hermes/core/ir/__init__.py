"""
Hermes Intermediate Representation (IR) types.

Block tree types produced by the parser and the resolved collection types
produced by the linker. All types are re-exported from this package.
"""

from .blocks import (
    BLOCK_KEYWORDS,
    CONTENT_SUB_TYPES,
    LEGAL_SUB_TYPES,
    Block,
    BlockField,
    BlockType,
    InlineBlock,
    LiteralValue,
    Reference,
    SubType,
    Value,
    is_legal_sub_type,
    lookup_sub_type,
)
from .collection import (
    DEFAULT_COLLECTION_NAME,
    BodyKind,
    CollectionModel,
    EnvironmentInfo,
    FileState,
    HttpMethod,
    MultipartPart,
    PartKind,
    ResolvedBody,
    ResolvedRequest,
    SourceFileInfo,
)
from .diagnostics import Diagnostic, DiagnosticKind, Severity
from .location import SourceSpan
from .module import ParsedFile

__all__ = [
    # Blocks
    "BLOCK_KEYWORDS",
    "CONTENT_SUB_TYPES",
    "LEGAL_SUB_TYPES",
    "Block",
    "BlockField",
    "BlockType",
    "InlineBlock",
    "LiteralValue",
    "Reference",
    "SubType",
    "Value",
    "is_legal_sub_type",
    "lookup_sub_type",
    # Collection
    "DEFAULT_COLLECTION_NAME",
    "BodyKind",
    "CollectionModel",
    "EnvironmentInfo",
    "FileState",
    "HttpMethod",
    "MultipartPart",
    "PartKind",
    "ResolvedBody",
    "ResolvedRequest",
    "SourceFileInfo",
    # Diagnostics
    "Diagnostic",
    "DiagnosticKind",
    "Severity",
    # Files
    "ParsedFile",
    # Location
    "SourceSpan",
]
