"""Units module."""

from .errors import (
    ConfigError,
    DeclarationError,
    DefinitionCycleError,
    ParseError,
    UnitError,
    UnitMismatchError,
    UnknownUnitError,
)
from .formula import (
    DIMENSIONLESS,
    UnitFormula,
    canonicalize,
    divide,
    equals,
    multiply,
    negate,
    power,
    render,
    require_same,
)
from .parser import Token, parse, parse_tokens, tokenize
from .table import UnitTable, si_table

__all__ = [
    "DIMENSIONLESS",
    "ConfigError",
    "DeclarationError",
    "DefinitionCycleError",
    "ParseError",
    "Token",
    "UnitError",
    "UnitFormula",
    "UnitMismatchError",
    "UnitTable",
    "UnknownUnitError",
    "canonicalize",
    "divide",
    "equals",
    "multiply",
    "negate",
    "parse",
    "parse_tokens",
    "power",
    "render",
    "require_same",
    "si_table",
    "tokenize",
]
