"""
Recursive descent parser for the Hermes language.

Turns one file's token stream into its top-level blocks. The parser is
purely syntactic: references are kept as bare identifiers and never looked
up here.

Grammar:
    file   := block*
    block  := BlockType ('.' SubBlockType)? ('::' Identifier)? '{' field* '}'
    field  := FieldName Digit? value
    value  := StringValue | Identifier | block
            | ('.' SubBlockType)? ('::' Identifier)? '{' field* '}'

The last alternative is the inline shorthand: a field named after a block
type (``environment { ... }``, ``body.json { ... }``) declares an inline
block of that type.
"""

from pathlib import Path

from . import ir
from .errors import ParseError, make_parse_error
from .lexer import STRING_TYPES, WORD_TYPES, Token, TokenType

# Tokens that may follow a block type to open a block
_BLOCK_OPENERS = frozenset({TokenType.LBRACE, TokenType.DOT, TokenType.DOUBLE_COLON})

CONTENT_FIELD = "value"


class BaseParser:
    """
    Base parser class with token manipulation utilities.

    Provides token navigation, matching, and error generation for the
    recursive descent methods of ``Parser``.
    """

    def __init__(self, tokens: list[Token], file: Path):
        """
        Initialize parser.

        Args:
            tokens: List of tokens from lexer (terminated by EOF)
            file: Source file path (for error reporting)
        """
        self.tokens = tokens
        self.file = file
        self.pos = 0

    def current_token(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[self.pos]

    def peek_token(self, offset: int = 1) -> Token:
        """Peek ahead at token."""
        pos = self.pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]  # EOF
        return self.tokens[pos]

    def advance(self) -> Token:
        """Consume and return current token."""
        token = self.current_token()
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def match(self, *token_types: TokenType) -> bool:
        """Check if current token is one of the given types."""
        return self.current_token().type in token_types

    def expect(self, token_type: TokenType, what: str | None = None) -> Token:
        """
        Expect a specific token type and consume it.

        Raises:
            ParseError: If token doesn't match
        """
        token = self.current_token()
        if token.type != token_type:
            raise self.error(f"Expected {what or repr(token_type.value)}", token)
        return self.advance()

    def error(self, expected: str, token: Token) -> ParseError:
        """Build an expected-vs-found ParseError located at ``token``."""
        return make_parse_error(
            f"{expected}, found {token.describe()}",
            self.file,
            token.line,
            token.column,
        )


class Parser(BaseParser):
    """Complete Hermes parser."""

    def parse(self) -> list[ir.Block]:
        """
        Parse the entire file.

        Returns:
            Top-level blocks in source order

        Raises:
            ParseError: On the first grammar violation
        """
        blocks: list[ir.Block] = []
        while not self.match(TokenType.EOF):
            blocks.append(self.parse_block())
        return blocks

    def parse_block(self) -> ir.Block:
        """Parse ``BlockType ... { fields }``."""
        token = self.current_token()
        if token.type != TokenType.BLOCK_TYPE:
            raise self.error("Expected block type", token)
        self.advance()
        return self.parse_block_body(ir.BlockType(token.value), token)

    def parse_block_body(self, block_type: ir.BlockType, start: Token) -> ir.Block:
        """Parse everything after the block type keyword."""
        sub_type = self.parse_sub_type(block_type)

        identifier = None
        if self.match(TokenType.DOUBLE_COLON):
            self.advance()
            token = self.current_token()
            if token.type not in WORD_TYPES:
                raise self.error("Expected block identifier after '::'", token)
            identifier = self.advance().value

        open_brace = self.expect(TokenType.LBRACE)

        fields: list[ir.BlockField] = []
        if (
            block_type == ir.BlockType.BODY
            and sub_type in ir.CONTENT_SUB_TYPES
            and self.match(TokenType.RAW_STRING)
        ):
            content = self.advance()
            fields.append(
                ir.BlockField(
                    name=CONTENT_FIELD,
                    value=ir.LiteralValue(text=content.value, raw=True),
                    line=content.line,
                    column=content.column,
                )
            )

        while not self.match(TokenType.RBRACE):
            if self.match(TokenType.EOF):
                raise self.error(
                    f"Expected '}}' to close {block_type.value} block opened at "
                    f"{open_brace.line}:{open_brace.column}",
                    self.current_token(),
                )
            fields.append(self.parse_field())

        close_brace = self.advance()

        return ir.Block(
            block_type=block_type,
            sub_type=sub_type,
            identifier=identifier,
            fields=fields,
            source_file=self.file,
            span=ir.SourceSpan(
                file=self.file,
                line=start.line,
                column=start.column,
                end_line=close_brace.line,
                end_column=close_brace.column,
            ),
        )

    def parse_sub_type(self, block_type: ir.BlockType) -> ir.SubType | None:
        """Parse an optional ``.sub-type`` and check it against the legality table."""
        if not self.match(TokenType.DOT):
            return None
        self.advance()
        token = self.expect(TokenType.SUB_BLOCK_TYPE, "sub-type after '.'")

        sub_type = ir.lookup_sub_type(block_type, token.value)
        if sub_type is None:
            legal = sorted(s.value for s in ir.LEGAL_SUB_TYPES.get(block_type, frozenset()))
            hint = f" (legal: {', '.join(legal)})" if legal else " (it takes no sub-type)"
            raise make_parse_error(
                f"Illegal sub-type '{token.value}' for {block_type.value} block{hint}",
                self.file,
                token.line,
                token.column,
                illegal_sub_type=True,
            )
        return sub_type

    def parse_field(self) -> ir.BlockField:
        """Parse ``FieldName Digit? value``."""
        name = self.current_token()
        if name.type not in WORD_TYPES and name.type != TokenType.STRING:
            raise self.error("Expected field name or '}'", name)
        self.advance()

        enabled = True
        if self.match(TokenType.DIGIT):
            enabled = self.advance().value == "1"

        return ir.BlockField(
            name=name.value,
            enabled=enabled,
            value=self.parse_value(name),
            line=name.line,
            column=name.column,
        )

    def parse_value(self, name: Token) -> ir.Value:
        """Parse a literal, a reference, or an inline block."""
        token = self.current_token()

        if token.type in STRING_TYPES:
            self.advance()
            return ir.LiteralValue(text=token.value, raw=token.type == TokenType.RAW_STRING)

        if token.type == TokenType.BLOCK_TYPE and self.peek_token().type in _BLOCK_OPENERS:
            self.advance()
            block = self.parse_block_body(ir.BlockType(token.value), token)
            return ir.InlineBlock(block=block)

        if token.type in WORD_TYPES:
            self.advance()
            return ir.Reference(identifier=token.value)

        if token.type in _BLOCK_OPENERS:
            if name.type != TokenType.BLOCK_TYPE:
                raise self.error(
                    f"Expected value for field '{name.value}' (inline blocks need a "
                    "block type)",
                    token,
                )
            block = self.parse_block_body(ir.BlockType(name.value), name)
            return ir.InlineBlock(block=block)

        raise self.error(f"Expected value for field '{name.value}'", token)


def parse_tokens(tokens: list[Token], file: Path) -> list[ir.Block]:
    """
    Convenience function to parse a token stream.

    Args:
        tokens: Tokens of one file
        file: Source file path

    Returns:
        Top-level blocks

    Raises:
        ParseError: If the tokens do not match the grammar
    """
    return Parser(tokens, file).parse()
