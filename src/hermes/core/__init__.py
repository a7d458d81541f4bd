"""Core Hermes functionality: IR, lexer, parser, discovery, linker, serializer."""

from . import ir
from .errors import ErrorContext, HermesError, LexError, LinkError, ParseError
from .fileset import discover_collection
from .linker import build_collection
from .manifest import HermesConfig, PlaceholderPolicy, resolve_config
from .parser import parse_file, parse_text
from .project import load_collection
from .serializer import dump_blocks

__all__ = [
    "ir",
    "HermesError",
    "LexError",
    "ParseError",
    "LinkError",
    "ErrorContext",
    "HermesConfig",
    "PlaceholderPolicy",
    "resolve_config",
    "parse_text",
    "parse_file",
    "discover_collection",
    "build_collection",
    "load_collection",
    "dump_blocks",
]
