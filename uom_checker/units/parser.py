"""Tokenizer and parser for unit formula surface syntax.

Grammar, grouped left to right::

    formula  := term (("*" | "/") term)*
    term     := factor factor*
    factor   := primary ("^" exponent)?
    primary  := NAME | "1" | "(" formula ")"
    exponent := SIGN? INT | "(" SIGN? INT ")"

Adjacent factors multiply. The term following "/" is divided through, so
"m /s s * kg" reads as kg m s^-2, while "kg/(m s^2)" groups the whole denominator.
"""

import logging
import re
import sys
from collections.abc import Container
from typing import NamedTuple

from .errors import ParseError, UnknownUnitError
from .formula import DIMENSIONLESS, UnitFormula

logger = logging.getLogger(__name__)


class Token(NamedTuple):
    """A lexical token of a unit formula."""

    kind: str
    value: str
    start: int
    end: int


_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<lpar>\()
    |(?P<rpar>\))
    |(?P<op>[*/])
    |(?P<pow>\^)
    |(?P<sign>[+-])
    |(?P<num>\d+(?:\.\d*)?)
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)


def tokenize(text: str) -> list[Token]:
    """Split a formula into tokens, dropping whitespace.

    Raises:
        ParseError: The text contains a character that cannot start a token.
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise ParseError(
                f"Unexpected character '{text[pos]}' in unit formula", text, pos
            )
        if match.lastgroup != "space":
            tokens.append(
                Token(match.lastgroup or "", match.group(0), match.start(), match.end())
            )
        pos = match.end()
    return tokens


class _TokenStream:
    def __init__(self, tokens: list[Token], text: str) -> None:
        self.tokens = tokens
        self.text = text
        self.index = 0

    def peek(self) -> Token | None:
        if self.index >= len(self.tokens):
            return None
        return self.tokens[self.index]

    def pop(self) -> Token:
        token = self.peek()
        if token is None:
            raise self.error("Unexpected end of unit formula")
        self.index += 1
        return token

    def error(self, message: str, token: Token | None = None) -> ParseError:
        position = token.start if token else len(self.text)
        return ParseError(message, self.text, position)


def parse(text: str, table: Container[str] | None = None) -> UnitFormula:
    """Parse a unit formula into its canonical UnitFormula.

    Args:
        text: Surface syntax such as 'kg m/s^2'.
        table: Declared units. When given every name must be declared in it.

    Raises:
        ParseError: The formula is malformed.
        UnknownUnitError: A name is not declared in ``table``.
    """
    if not text.strip():
        raise ParseError("Unit formula is empty", text, 0)
    return parse_tokens(tokenize(text), table, text)


def parse_tokens(
    tokens: list[Token], table: Container[str] | None = None, text: str = ""
) -> UnitFormula:
    """Parse an already tokenized formula.

    Args:
        tokens: Tokens as produced by ``tokenize``.
        table: Declared units. When given every name must be declared in it.
        text: Source text the tokens came from, used in error messages. Without
            it the text is laid out again from the token offsets.
    """
    if not text:
        text = _layout(tokens)
    stream = _TokenStream(tokens, text)
    if stream.peek() is None:
        raise stream.error("Unit formula is empty")
    formula = _parse_formula(stream, table)
    if (token := stream.peek()) is not None:
        raise stream.error(f"Unexpected '{token.value}' in unit formula", token)
    logger.debug("Parsed %r as %s", text, formula)
    return formula


def _layout(tokens: list[Token]) -> str:
    text = ""
    for token in tokens:
        text += " " * (token.start - len(text)) + token.value
    return text


def _parse_formula(stream: _TokenStream, table: Container[str] | None) -> UnitFormula:
    token = stream.peek()
    if token is not None and token.kind == "op":
        raise stream.error(f"'{token.value}' has no left-hand operand", token)
    formula = _parse_term(stream, table)
    while (token := stream.peek()) is not None and token.kind == "op":
        stream.pop()
        following = stream.peek()
        if following is None or following.kind not in ("name", "num", "lpar"):
            raise stream.error(f"'{token.value}' has no right-hand operand", following)
        term = _parse_term(stream, table)
        formula = formula / term if token.value == "/" else formula * term
    return formula


def _parse_term(stream: _TokenStream, table: Container[str] | None) -> UnitFormula:
    formula = _parse_factor(stream, table)
    while (token := stream.peek()) is not None and token.kind in (
        "name",
        "num",
        "lpar",
    ):
        formula = formula * _parse_factor(stream, table)
    return formula


def _parse_factor(stream: _TokenStream, table: Container[str] | None) -> UnitFormula:
    formula = _parse_primary(stream, table)
    token = stream.peek()
    if token is not None and token.kind == "pow":
        stream.pop()
        formula = formula ** _parse_exponent(stream)
    return formula


def _parse_primary(stream: _TokenStream, table: Container[str] | None) -> UnitFormula:
    token = stream.pop()
    match token.kind:
        case "name":
            if table is not None and token.value not in table:
                raise UnknownUnitError(token.value, stream.text, token.start)
            return UnitFormula({sys.intern(token.value): 1})
        case "num":
            if token.value != "1":
                raise stream.error(
                    f"Only 1 may be used as a numeric unit, found '{token.value}'",
                    token,
                )
            return DIMENSIONLESS
        case "lpar":
            formula = _parse_formula(stream, table)
            closing = stream.peek()
            if closing is None or closing.kind != "rpar":
                raise stream.error("Expected ')'", closing)
            stream.pop()
            return formula
        case _:
            raise stream.error(f"Expected a unit, found '{token.value}'", token)


def _parse_exponent(stream: _TokenStream) -> int:
    parenthesised = False
    token = stream.peek()
    if token is not None and token.kind == "lpar":
        stream.pop()
        parenthesised = True
    sign = ""
    token = stream.peek()
    if token is not None and token.kind == "sign":
        sign = stream.pop().value
    token = stream.peek()
    if token is None or token.kind != "num":
        raise stream.error("Exponent must be an integer", token)
    stream.pop()
    if not token.value.isdigit():
        raise stream.error(
            f"Exponent must be an integer, found '{token.value}'", token
        )
    if parenthesised:
        closing = stream.peek()
        if closing is None or closing.kind != "rpar":
            raise stream.error("Exponent must be an integer", closing)
        stream.pop()
    return int(sign + token.value)
