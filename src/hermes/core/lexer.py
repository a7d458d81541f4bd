"""
Lexer/Tokenizer for the Hermes language.

Converts raw .hermes text into a flat stream of tokens with source location
tracking. Whitespace and ``#`` comments are discarded. Characters that match
no rule become UNKNOWN tokens and are recorded as lexical errors; the lexer
itself never stops early.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import LexError, extract_snippet, make_lex_error
from .ir.blocks import BLOCK_KEYWORDS, CONTENT_SUB_TYPES, BlockType, SubType


class TokenType(Enum):
    """Token types in the Hermes language."""

    BLOCK_TYPE = "block type"
    SUB_BLOCK_TYPE = "sub-type"
    IDENTIFIER = "identifier"
    DIGIT = "state digit"
    STRING = "string"
    RAW_STRING = "raw string"

    # Delimiters
    LBRACE = "{"
    RBRACE = "}"
    DOT = "."
    DOUBLE_COLON = "::"

    UNKNOWN = "unknown character"
    EOF = "end of input"


STRING_TYPES = frozenset({TokenType.STRING, TokenType.RAW_STRING})
WORD_TYPES = frozenset({TokenType.IDENTIFIER, TokenType.BLOCK_TYPE})

_CONTENT_SUB_TYPE_NAMES = frozenset(s.value for s in CONTENT_SUB_TYPES)


def is_identifier_start(ch: str | None) -> bool:
    """Identifiers start with an ASCII letter or a dash."""
    return ch is not None and (("a" <= ch <= "z") or ("A" <= ch <= "Z") or ch == "-")


def is_identifier_char(ch: str | None) -> bool:
    return ch is not None and (is_identifier_start(ch) or ("0" <= ch <= "9"))


def is_sub_type_char(ch: str | None) -> bool:
    return is_identifier_start(ch)


@dataclass(frozen=True)
class Token:
    """
    A single token of a .hermes file.

    Attributes:
        type: Type of token
        value: String value of the token (decoded for strings)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    def describe(self) -> str:
        """Describe the token for 'expected X, found Y' messages."""
        if self.type == TokenType.EOF:
            return "end of input"
        if self.type in STRING_TYPES:
            return self.type.value
        return f"{self.type.value} {self.value!r}"


class Lexer:
    """
    Lexer for the Hermes language.

    Tracks just enough context to recognise sub-types (a ``.`` directly after
    a block type) and the verbatim content of ``body.json``/``body.text``
    blocks.
    """

    def __init__(self, text: str, file: Path):
        """
        Initialize lexer.

        Args:
            text: Source text to tokenize
            file: Source file path (for error reporting)
        """
        self.text = text
        self.file = file
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: list[Token] = []
        self.errors: list[LexError] = []
        # Offset just past the most recent token, to detect adjacency
        self._last_token_end = -1

    def current_char(self) -> str | None:
        """Get current character or None if at end."""
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    def peek_char(self, offset: int = 1) -> str | None:
        """Peek ahead at character."""
        pos = self.pos + offset
        if pos >= len(self.text):
            return None
        return self.text[pos]

    def advance(self) -> None:
        """Move to next character, updating line/column."""
        if self.pos < len(self.text):
            if self.text[self.pos] == "\n":
                self.line += 1
                self.column = 1
            else:
                self.column += 1
            self.pos += 1

    def skip_comment(self) -> None:
        """Skip comment (from # to end of line)."""
        while self.current_char() is not None and self.current_char() != "\n":
            self.advance()

    def emit(self, token_type: TokenType, value: str, line: int, column: int) -> None:
        self.tokens.append(Token(token_type, value, line, column))
        self._last_token_end = self.pos

    def error(self, message: str, line: int, column: int) -> None:
        snippet = extract_snippet(self.text, line)
        self.errors.append(make_lex_error(message, self.file, line, column, snippet))

    def unknown(self, value: str, message: str, line: int, column: int) -> None:
        """Emit an UNKNOWN token and record the lexical error."""
        self.emit(TokenType.UNKNOWN, value, line, column)
        self.error(message, line, column)

    def read_word(self) -> str:
        """Read a run of identifier characters."""
        chars = []
        while is_identifier_char(self.current_char()):
            chars.append(self.current_char())
            self.advance()
        return "".join(chars)

    def read_string(self, start_line: int, start_col: int) -> str | None:
        """
        Read a quoted string.

        Returns:
            The decoded string, or None if unterminated
        """
        self.advance()  # skip opening quote

        chars = []
        while True:
            current = self.current_char()
            if current is None or current == "\n" or current == '"':
                break

            if current == "\\":
                self.advance()
                escape_char = self.current_char()
                if escape_char == "n":
                    chars.append("\n")
                elif escape_char == "t":
                    chars.append("\t")
                elif escape_char == "\\":
                    chars.append("\\")
                elif escape_char == '"':
                    chars.append('"')
                elif escape_char is None or escape_char == "\n":
                    break
                else:
                    chars.append("\\" + escape_char)
                self.advance()
            else:
                chars.append(current)
                self.advance()

        if self.current_char() != '"':
            self.error("Unterminated string literal", start_line, start_col)
            return None

        self.advance()  # skip closing quote
        return "".join(chars)

    def read_raw_string(self, start_line: int, start_col: int) -> str | None:
        """
        Read a raw string ``r#"..."#``; contents are taken verbatim.

        Returns:
            The string contents, or None if unterminated
        """
        for _ in range(3):  # r#"
            self.advance()

        end = self.text.find('"#', self.pos)
        if end == -1:
            self.error('Unterminated raw string (missing closing "#)', start_line, start_col)
            while self.current_char() is not None:
                self.advance()
            return None

        value = self.text[self.pos : end]
        while self.pos < end + 2:
            self.advance()
        return value

    def read_sub_type(self) -> None:
        """Read the sub-type run that follows a ``.`` after a block type."""
        line, col = self.line, self.column
        ch = self.current_char()
        if not is_sub_type_char(ch):
            shown = ch if ch is not None else ""
            self.unknown(shown, f"Expected sub-type after '.', found {shown!r}", line, col)
            if ch is not None and not ch.isspace():
                self.advance()
            return

        chars = []
        while is_sub_type_char(self.current_char()):
            chars.append(self.current_char())
            self.advance()
        self.emit(TokenType.SUB_BLOCK_TYPE, "".join(chars), line, col)

    def content_sub_type(self) -> str | None:
        """Sub-type of the body.json/body.text block the ``{`` just emitted opens, if any."""
        tail = self.tokens[-6:-1]
        # Optional ::identifier between the sub-type and the brace
        if (
            len(tail) >= 2
            and tail[-1].type in WORD_TYPES
            and tail[-2].type == TokenType.DOUBLE_COLON
        ):
            tail = tail[:-2]
        if len(tail) < 3:
            return None
        block, dot, sub_type = tail[-3], tail[-2], tail[-1]
        if (
            block.type == TokenType.BLOCK_TYPE
            and block.value == BlockType.BODY.value
            and dot.type == TokenType.DOT
            and sub_type.type == TokenType.SUB_BLOCK_TYPE
            and sub_type.value in _CONTENT_SUB_TYPE_NAMES
        ):
            return sub_type.value
        return None

    def _skip_blank(self, pos: int, comments: bool = True) -> int:
        text = self.text
        while pos < len(text):
            if text[pos].isspace():
                pos += 1
            elif comments and text[pos] == "#":
                while pos < len(text) and text[pos] != "\n":
                    pos += 1
            else:
                break
        return pos

    def content_is_field_form(self) -> bool:
        """
        Look past whitespace and comments for a ``value`` field.

        Content blocks may be written either as ``value 1 r#"..."#`` or as the
        bare content itself. Only ``value`` followed by a state digit or a
        string counts as a field; ``value of the day`` is content.
        """
        text = self.text
        pos = self._skip_blank(self.pos)
        word = "value"
        if not text.startswith(word, pos):
            return False
        pos += len(word)
        if pos >= len(text) or not text[pos].isspace():
            return False

        pos = self._skip_blank(pos, comments=False)
        if pos < len(text) and text[pos] in "01":
            if pos + 1 < len(text) and is_identifier_char(text[pos + 1]):
                return False
            pos = self._skip_blank(pos + 1, comments=False)
        return text.startswith('"', pos) or text.startswith('r#"', pos)

    def read_block_content(self, quote_aware: bool) -> None:
        """
        Read verbatim content up to the matching ``}``.

        With ``quote_aware`` (JSON content), braces inside double-quoted
        strings do not count towards nesting. Text content counts every brace.
        """
        line, col = self.line, self.column
        start = self.pos
        depth = 1
        in_string = False

        while self.current_char() is not None:
            ch = self.current_char()
            if not quote_aware:
                if ch == "{":
                    depth += 1
                elif ch == "}":
                    depth -= 1
                    if depth == 0:
                        break
            elif in_string:
                if ch == "\\":
                    self.advance()
                elif ch == '"' or ch == "\n":
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    break
            self.advance()

        if self.current_char() is None:
            self.error("Unterminated body block (missing closing '}')", line, col)
            return

        self.emit(TokenType.RAW_STRING, self.text[start : self.pos], line, col)

    def tokenize(self) -> list[Token]:
        """
        Tokenize the entire source text.

        Returns:
            List of tokens terminated by EOF. Lexical errors are collected in
            ``self.errors``.
        """
        while self.pos < len(self.text):
            ch = self.current_char()
            if ch is None:
                break

            token_line = self.line
            token_col = self.column

            if ch.isspace():
                self.advance()

            elif ch == "#":
                self.skip_comment()

            # Raw strings
            elif ch == "r" and self.peek_char() == "#" and self.peek_char(2) == '"':
                raw = self.read_raw_string(token_line, token_col)
                if raw is not None:
                    self.emit(TokenType.RAW_STRING, raw, token_line, token_col)

            # Quoted strings
            elif ch == '"':
                value = self.read_string(token_line, token_col)
                if value is not None:
                    self.emit(TokenType.STRING, value, token_line, token_col)

            elif ch == "{":
                self.advance()
                self.emit(TokenType.LBRACE, "{", token_line, token_col)
                sub_type = self.content_sub_type()
                if sub_type is not None and not self.content_is_field_form():
                    self.read_block_content(quote_aware=sub_type == SubType.JSON.value)

            elif ch == "}":
                self.advance()
                self.emit(TokenType.RBRACE, "}", token_line, token_col)

            elif ch == ".":
                previous = self.tokens[-1] if self.tokens else None
                adjacent = self._last_token_end == self.pos
                self.advance()
                if previous is not None and previous.type == TokenType.BLOCK_TYPE and adjacent:
                    self.emit(TokenType.DOT, ".", token_line, token_col)
                    self.read_sub_type()
                else:
                    self.unknown(
                        ".", "'.' must directly follow a block type", token_line, token_col
                    )

            elif ch == ":":
                if self.peek_char() == ":":
                    self.advance()
                    self.advance()
                    self.emit(TokenType.DOUBLE_COLON, "::", token_line, token_col)
                else:
                    self.advance()
                    self.unknown(":", "Expected '::'", token_line, token_col)

            # State digits; identifiers never start with a digit
            elif "0" <= ch <= "9":
                if ch in "01" and not is_identifier_char(self.peek_char()):
                    self.advance()
                    self.emit(TokenType.DIGIT, ch, token_line, token_col)
                else:
                    word = self.read_word()
                    self.unknown(
                        word,
                        f"Unexpected {word!r}: identifiers cannot start with a digit "
                        "and states must be 0 or 1",
                        token_line,
                        token_col,
                    )

            elif is_identifier_start(ch):
                word = self.read_word()
                token_type = (
                    TokenType.BLOCK_TYPE if word in BLOCK_KEYWORDS else TokenType.IDENTIFIER
                )
                self.emit(token_type, word, token_line, token_col)

            else:
                self.advance()
                self.unknown(ch, f"Unexpected character: {ch!r}", token_line, token_col)

        self.tokens.append(Token(TokenType.EOF, "", self.line, self.column))

        return self.tokens


def tokenize(text: str, file: Path) -> tuple[list[Token], list[LexError]]:
    """
    Convenience function to tokenize Hermes text.

    Args:
        text: Source text
        file: Source file path

    Returns:
        Tuple of (tokens, lexical errors)
    """
    lexer = Lexer(text, file)
    tokens = lexer.tokenize()
    return tokens, lexer.errors
