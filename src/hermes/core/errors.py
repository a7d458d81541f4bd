"""
Error types for Hermes lexing, parsing, and linking.

The loader never lets these escape to the caller: they are raised at the
point of failure and converted into diagnostics at the file boundary.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class HermesError(Exception):
    """Base exception for all Hermes errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class LexError(HermesError):
    """
    Raised when source text cannot be tokenized.

    Examples:
    - Illegal characters
    - Unterminated quoted or raw strings
    """

    pass


class ParseError(HermesError):
    """
    Raised when a token sequence does not match the block grammar.

    Examples:
    - Missing braces
    - Field without a value
    - Illegal sub-type for a block
    """

    def __init__(
        self,
        message: str,
        context: Optional["ErrorContext"] = None,
        illegal_sub_type: bool = False,
    ):
        self.illegal_sub_type = illegal_sub_type
        super().__init__(message, context)


class LinkError(HermesError):
    """
    Raised when files of a collection cannot be linked together.

    Examples:
    - Collection root file missing
    - Collection root does not start with a collection block
    """

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error, including source location.

    Attributes:
        file: Path to the source file where error occurred
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional code snippet showing the error location
    """

    file: Path
    line: int
    column: int
    snippet: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "requests.hermes:10:5"
        """
        location = f"{self.file}:{self.line}:{self.column}"
        if self.snippet:
            return f"{location}\n{self.format_snippet()}"
        return location

    def format_snippet(self) -> str:
        """Format code snippet with line numbers and error marker."""
        if not self.snippet:
            return ""

        lines = self.snippet.split("\n")
        formatted = []

        # Snippet starts two lines before the error
        start_line = max(1, self.line - 2)

        for i, line in enumerate(lines):
            line_num = start_line + i
            prefix = f"{line_num:4d} | "
            formatted.append(prefix + line)

            if line_num == self.line:
                marker_pos = len(prefix) + self.column - 1
                formatted.append(" " * marker_pos + "^^^")

        return "\n".join(formatted)


def extract_snippet(text: str, line: int, context: int = 2) -> str:
    """Return the source lines surrounding ``line`` for error display."""
    lines = text.split("\n")
    start = max(0, line - 1 - context)
    end = min(len(lines), line + context)
    return "\n".join(lines[start:end])


def make_lex_error(
    message: str,
    file: Path,
    line: int,
    column: int,
    snippet: str | None = None,
) -> LexError:
    """
    Helper to create a LexError with context.

    Args:
        message: Error description
        file: Source file path
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional code snippet

    Returns:
        LexError with context attached
    """
    context = ErrorContext(file=file, line=line, column=column, snippet=snippet)
    return LexError(message, context)


def make_parse_error(
    message: str,
    file: Path,
    line: int,
    column: int,
    snippet: str | None = None,
    illegal_sub_type: bool = False,
) -> ParseError:
    """
    Helper to create a ParseError with context.

    Args:
        message: Error description
        file: Source file path
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: Optional code snippet
        illegal_sub_type: True when the failure is an unrecognized sub-type

    Returns:
        ParseError with context attached
    """
    context = ErrorContext(file=file, line=line, column=column, snippet=snippet)
    return ParseError(message, context, illegal_sub_type=illegal_sub_type)


def make_link_error(
    message: str,
    file: Path | None = None,
    line: int | None = None,
    column: int | None = None,
) -> LinkError:
    """
    Helper to create a LinkError with optional context.

    Args:
        message: Error description
        file: Optional source file path
        line: Optional line number
        column: Optional column number

    Returns:
        LinkError with context if location provided
    """
    if file and line and column:
        return LinkError(message, ErrorContext(file=file, line=line, column=column))
    return LinkError(message)
