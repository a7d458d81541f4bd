"""
Diagnostic types reported by the Hermes loader.

Every problem found while lexing, parsing, or resolving a collection is
reported as a Diagnostic rather than raised, so that callers always receive
a (possibly partial) collection model.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from ..errors import HermesError


class DiagnosticKind(str, Enum):
    """Categories of problems found while loading a collection."""

    LEX_ERROR = "LexError"
    PARSE_ERROR = "ParseError"
    DUPLICATE_IDENTIFIER = "DuplicateIdentifier"
    UNRESOLVED_REFERENCE = "UnresolvedReference"
    UNRESOLVED_PLACEHOLDER = "UnresolvedPlaceholder"
    RESERVED_IDENTIFIER_MISUSE = "ReservedIdentifierMisuse"
    TYPE_MISMATCH = "TypeMismatch"
    ILLEGAL_SUB_TYPE = "IllegalSubType"
    NESTED_COLLECTION_IGNORED = "NestedCollectionIgnored"
    COLLECTION_ROOT_VIOLATION = "CollectionRootViolation"
    INVALID_VALUE = "InvalidValue"
    UNKNOWN_FIELD = "UnknownField"
    IO_ERROR = "IOError"


class Severity(str, Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


# Kinds that never block use of the collection
WARNING_KINDS = frozenset(
    {
        DiagnosticKind.NESTED_COLLECTION_IGNORED,
        DiagnosticKind.UNKNOWN_FIELD,
    }
)


class Diagnostic(BaseModel):
    """
    A single located problem.

    Attributes:
        file: Source file the problem was found in (None when unknown)
        line: 1-indexed line (0 when unknown)
        column: 1-indexed column (0 when unknown)
        kind: Problem category
        message: Human-readable description
        severity: error or warning
        snippet: Source lines around the problem, with a marker (lex and parse
            errors only)
    """

    file: Path | None = None
    line: int = 0
    column: int = 0
    kind: DiagnosticKind
    message: str
    severity: Severity = Severity.ERROR
    snippet: str | None = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def create(
        cls,
        kind: DiagnosticKind,
        message: str,
        file: Path | None = None,
        line: int = 0,
        column: int = 0,
        snippet: str | None = None,
    ) -> Diagnostic:
        """Build a diagnostic, deriving severity from its kind."""
        severity = Severity.WARNING if kind in WARNING_KINDS else Severity.ERROR
        return cls(
            file=file,
            line=line,
            column=column,
            kind=kind,
            message=message,
            severity=severity,
            snippet=snippet,
        )

    @classmethod
    def from_error(cls, kind: DiagnosticKind, error: HermesError) -> Diagnostic:
        """Convert a raised Hermes error into a diagnostic."""
        if error.context:
            return cls.create(
                kind,
                error.message,
                file=error.context.file,
                line=error.context.line,
                column=error.context.column,
                snippet=error.context.format_snippet() or None,
            )
        return cls.create(kind, error.message)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        location = f"{self.file}:{self.line}:{self.column}" if self.file else "<collection>"
        return f"{location}: {self.severity.value}: [{self.kind.value}] {self.message}"
