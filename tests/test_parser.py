import pytest

from uom_checker.units import (
    DIMENSIONLESS,
    ParseError,
    Token,
    UnitFormula,
    UnknownUnitError,
    parse,
    parse_tokens,
    si_table,
    tokenize,
)


@pytest.fixture
def table():
    return si_table().freeze()


def test_tokenize():
    tokens = tokenize("kg m/s^-2")
    assert [(t.kind, t.value) for t in tokens] == [
        ("name", "kg"),
        ("name", "m"),
        ("op", "/"),
        ("name", "s"),
        ("pow", "^"),
        ("sign", "-"),
        ("num", "2"),
    ]
    assert tokens[2] == Token("op", "/", 4, 5)


def test_tokenize_unexpected_character():
    with pytest.raises(ParseError) as exc_info:
        tokenize("kg·m")
    assert exc_info.value.position == 2
    assert str(exc_info.value) == (
        "Unexpected character '·' in unit formula\nkg·m\n  ^"
    )


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("kg m/s^2", {"kg": 1, "m": 1, "s": -2}),
        ("kg m s^-2", {"kg": 1, "m": 1, "s": -2}),
        ("m /s s * kg", {"kg": 1, "m": 1, "s": -2}),
        ("kg*m/s/s", {"kg": 1, "m": 1, "s": -2}),
        ("kg/(m s^2)", {"kg": 1, "m": -1, "s": -2}),
        ("kg/m s^2", {"kg": 1, "m": -1, "s": -2}),
        ("m/s * s", {"m": 1}),
        ("(m/s)^2", {"m": 2, "s": -2}),
        ("m^(-2)", {"m": -2}),
        ("m^+2", {"m": 2}),
        ("m m m", {"m": 3}),
        ("cm^3", {"cm": 3}),
        ("1/s", {"s": -1}),
        ("1 m", {"m": 1}),
        ("m*1", {"m": 1}),
        ("((m))", {"m": 1}),
        ("  m  ", {"m": 1}),
    ],
)
def test_parse(text: str, expected: dict[str, int], table):
    assert parse(text, table).unit_map == expected


def test_parse_dimensionless(table):
    assert parse("1", table) == DIMENSIONLESS
    assert parse("m/m", table) == DIMENSIONLESS
    assert parse("(1)", table) == DIMENSIONLESS


def test_parse_without_table_accepts_any_name():
    assert parse("furlong/fortnight").unit_map == {"fortnight": -1, "furlong": 1}


def test_parse_unknown_unit(table):
    with pytest.raises(UnknownUnitError) as exc_info:
        parse("kg furlong", table)
    error = exc_info.value
    assert isinstance(error, ParseError)
    assert error.name == "furlong"
    assert error.position == 3
    assert error.reason == "Unknown unit 'furlong'"


@pytest.mark.parametrize(
    ("text", "reason", "position"),
    [
        ("", "Unit formula is empty", 0),
        ("   ", "Unit formula is empty", 0),
        ("/s", "'/' has no left-hand operand", 0),
        ("* m", "'*' has no left-hand operand", 0),
        ("m/", "'/' has no right-hand operand", 2),
        ("m / * s", "'/' has no right-hand operand", 4),
        ("m^", "Exponent must be an integer", 2),
        ("m^x", "Exponent must be an integer", 2),
        ("m^1.5", "Exponent must be an integer, found '1.5'", 2),
        ("m^(1/2)", "Exponent must be an integer", 4),
        ("m^(2", "Exponent must be an integer", 4),
        ("(m s", "Expected ')'", 4),
        ("m s)", "Unexpected ')' in unit formula", 3),
        ("2 m", "Only 1 may be used as a numeric unit, found '2'", 0),
        ("()", "Expected a unit, found ')'", 1),
        ("^2", "Expected a unit, found '^'", 0),
        ("m-2", "Unexpected '-' in unit formula", 1),
    ],
)
def test_parse_errors(text: str, reason: str, position: int, table):
    with pytest.raises(ParseError) as exc_info:
        parse(text, table)
    assert exc_info.value.reason == reason
    assert exc_info.value.position == position
    assert exc_info.value.text == text


def test_parse_tokens(table):
    tokens = tokenize("kg m/s^2")
    assert parse_tokens(tokens, table) == UnitFormula({"kg": 1, "m": 1, "s": -2})


def test_parse_tokens_error_uses_token_text():
    tokens = [Token("op", "/", 0, 1), Token("name", "s", 1, 2)]
    with pytest.raises(ParseError) as exc_info:
        parse_tokens(tokens)
    assert exc_info.value.text == "/s"


def test_parse_tokens_error_caret_follows_token_offsets():
    tokens = tokenize("kg   m / ")
    with pytest.raises(ParseError) as exc_info:
        parse_tokens(tokens)
    error = exc_info.value
    assert error.text == "kg   m /"
    assert error.position == 8
    assert str(error) == "'/' has no right-hand operand\nkg   m /\n        ^"

    with pytest.raises(ParseError) as exc_info:
        parse_tokens(tokenize("kg  2"))
    assert exc_info.value.position == 4
    assert str(exc_info.value).endswith("\nkg  2\n    ^")


def test_parse_tokens_empty():
    with pytest.raises(ParseError, match="Unit formula is empty"):
        parse_tokens([])


def test_table_parse_matches_parser(table):
    assert table.parse("N") == UnitFormula({"N": 1})
    assert table.parse("N", expand=True) == parse("kg m/s^2")
