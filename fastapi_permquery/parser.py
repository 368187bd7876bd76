"""Parser for textual permission queries.

Grammar (AND binds tighter than OR)::

    expression := and_expr (OR and_expr)*
    and_expr   := primary (AND primary)*
    primary    := PERMISSION | "(" expression ")"

Operators are case-insensitive whole words. Permission identifiers may contain
ASCII letters, digits and ``. _ - * : /``. A ``*`` is a literal character
here, not a pattern.
"""

import logging
from enum import Enum
from typing import NamedTuple

from fastapi_permquery.errors import SchemaError, SchemaErrorCode
from fastapi_permquery.query import MAX_QUERY_DEPTH, And, Leaf, Or, Query

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 1000

_PERMISSION_PUNCTUATION = frozenset("._-*:/")
_WHITESPACE = frozenset(" \t\n\r")


class TokenType(Enum):
    PERMISSION = "permission"
    AND = "and"
    OR = "or"
    LPAREN = "("
    RPAREN = ")"
    EOF = "eof"


class Token(NamedTuple):
    type: TokenType
    value: str
    pos: int


def _is_permission_char(ch: str) -> bool:
    return (ch.isascii() and ch.isalnum()) or ch in _PERMISSION_PUNCTUATION


def _syntax_error(message: str, text: str, pos: int) -> SchemaError:
    return SchemaError(SchemaErrorCode.SYNTAX_ERROR, message, text, position=pos)


def tokenize(text: str) -> list[Token]:
    """Split a textual query into tokens, ending with an EOF token."""
    tokens: list[Token] = []
    pos = 0
    length = len(text)

    while pos < length:
        ch = text[pos]
        if ch in _WHITESPACE:
            pos += 1
        elif ch == "(":
            tokens.append(Token(TokenType.LPAREN, ch, pos))
            pos += 1
        elif ch == ")":
            tokens.append(Token(TokenType.RPAREN, ch, pos))
            pos += 1
        elif _is_permission_char(ch):
            start = pos
            while pos < length and _is_permission_char(text[pos]):
                pos += 1
            word = text[start:pos]
            upper = word.upper()
            if upper == "AND":
                tokens.append(Token(TokenType.AND, word, start))
            elif upper == "OR":
                tokens.append(Token(TokenType.OR, word, start))
            else:
                tokens.append(Token(TokenType.PERMISSION, word, start))
        else:
            raise _syntax_error(
                f"Invalid character '{ch}' found in query at position {pos}. Only letters, numbers, "
                "dots, underscores, hyphens, slashes, colons, asterisks, and parentheses are allowed.",
                text,
                pos,
            )

    tokens.append(Token(TokenType.EOF, "", length))
    return tokens


class _Parser:
    def __init__(self, text: str, max_depth: int) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0
        self.depth = 0
        self.max_depth = max_depth

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> None:
        if self.current.type is not TokenType.EOF:
            self.index += 1

    def parse(self) -> Query:
        if self.current.type is TokenType.EOF:
            raise _syntax_error("Unexpected end of input. Please provide a valid permission query.", self.text, 0)

        expr = self.parse_expression()
        if self.current.type is not TokenType.EOF:
            token = self.current
            raise _syntax_error(
                f"Unexpected token '{token.value}' at position {token.pos}. "
                "The query appears to have extra content after a valid expression.",
                self.text,
                token.pos,
            )
        return expr

    def parse_expression(self) -> Query:
        operands = [self.parse_and_expression()]
        while self.current.type is TokenType.OR:
            self.advance()
            operands.append(self.parse_and_expression())
        return operands[0] if len(operands) == 1 else Or(operands)

    def parse_and_expression(self) -> Query:
        operands = [self.parse_primary()]
        while self.current.type is TokenType.AND:
            self.advance()
            operands.append(self.parse_primary())
        return operands[0] if len(operands) == 1 else And(operands)

    def parse_primary(self) -> Query:
        token = self.current

        if token.type is TokenType.PERMISSION:
            self.advance()
            return Leaf(token.value)

        if token.type is TokenType.LPAREN:
            self.depth += 1
            if self.depth > self.max_depth:
                raise SchemaError(
                    SchemaErrorCode.TOO_DEEP,
                    f"Parentheses are nested deeper than {self.max_depth} levels at position {token.pos}",
                    self.text,
                    position=token.pos,
                )
            self.advance()
            if self.current.type is TokenType.RPAREN:
                raise _syntax_error(
                    f"Empty parentheses found at position {self.current.pos}. "
                    "Parentheses must contain at least one permission or expression.",
                    self.text,
                    self.current.pos,
                )
            expr = self.parse_expression()
            if self.current.type is not TokenType.RPAREN:
                raise _syntax_error(
                    f"Missing closing parenthesis ')' at position {self.current.pos}. "
                    "Every opening parenthesis must have a matching closing parenthesis.",
                    self.text,
                    self.current.pos,
                )
            self.advance()
            self.depth -= 1
            return expr

        if token.type is TokenType.EOF:
            raise _syntax_error(
                "Unexpected end of query. Expected a permission identifier or opening parenthesis.",
                self.text,
                token.pos,
            )

        raise _syntax_error(
            f"Unexpected token '{token.value}' at position {token.pos}. "
            "Expected a permission identifier or opening parenthesis.",
            self.text,
            token.pos,
        )


def parse_query(
    text: str,
    *,
    max_length: int = MAX_QUERY_LENGTH,
    max_depth: int = MAX_QUERY_DEPTH,
) -> Query:
    """Parse a query such as ``api.*.read_key AND (api.*.update_key OR admin)``.

    Raises:
        SchemaError: With code ``too_long``, ``too_deep`` or ``syntax_error``.
    """
    if not isinstance(text, str):
        raise SchemaError(
            SchemaErrorCode.WRONG_TYPE,
            f"Expected a query string, got {type(text).__name__}",
            text,
        )
    if len(text) > max_length:
        raise SchemaError(
            SchemaErrorCode.TOO_LONG,
            f"Query is {len(text)} characters long, the maximum is {max_length}",
            text,
        )

    query = _Parser(text, max_depth).parse()
    logger.debug("Parsed permission query %r into %r", text, query)
    return query
