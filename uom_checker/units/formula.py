"""Unit formulas: immutable mappings of unit names to integer exponents.

This module provides:
- The UnitFormula class, a canonical product of powers of named units that supports
  multiplication, division, integer powers and equality.
- Plain function forms of the algebra (multiply, divide, negate, power, equals,
  render, canonicalize) for inference engines that prefer not to use operators.

Example:
    from uom_checker.units import UnitFormula

    force = UnitFormula({"kg": 1, "m": 1, "s": -2})
    str(force)  # 'kg m/s^2'
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Self

from .errors import UnitMismatchError

if TYPE_CHECKING:
    from .table import UnitTable


class UnitFormula:
    """Represents a unit formula as a mapping of unit symbols to exponents."""

    __slots__ = ("_unit_map", "_hash")

    def __init__(self, unit_map: Mapping[str, int] | None = None):
        """Initialise unit formula instance.

        Args:
            unit_map: Mapping of unit symbols (like 'm', 's', 'kg') to their exponents.
                Exponents can be positive, negative, or zero.
                Zero exponents will be removed from the final unit representation.
        """
        unit_map = unit_map or {}
        for symbol, exp in unit_map.items():
            if not isinstance(exp, int) or isinstance(exp, bool):
                raise TypeError(f"Exponent of {symbol!r} must be an int, got {exp!r}")
        self._unit_map = MappingProxyType(
            {k: v for k, v in sorted(unit_map.items()) if v != 0}
        )
        self._hash = hash(frozenset(self._unit_map.items()))

    @property
    def unit_map(self) -> Mapping[str, int]:
        """Read-only mapping of unit symbols to non-zero exponents."""
        return self._unit_map

    @property
    def numerator(self) -> dict[str, int]:
        """Units with positive exponents, sorted by name."""
        return {k: v for k, v in self._unit_map.items() if v > 0}

    @property
    def denominator(self) -> dict[str, int]:
        """Units with negative exponents, as positive powers sorted by name."""
        return {k: -v for k, v in self._unit_map.items() if v < 0}

    def is_dimensionless(self) -> bool:
        """Return True if the formula has no units left after cancellation."""
        return not self._unit_map

    def items(self) -> Iterator[tuple[str, int]]:
        """Iterate over (symbol, exponent) pairs in canonical order."""
        return iter(self._unit_map.items())

    def __iter__(self) -> Iterator[str]:
        """Iterate over unit symbols in canonical order."""
        return iter(self._unit_map)

    def __len__(self) -> int:
        """Return the number of distinct units in the formula."""
        return len(self._unit_map)

    def __bool__(self) -> bool:
        """A formula is always truthy, including the dimensionless one."""
        return True

    def __mul__(self, other: "UnitFormula") -> "UnitFormula":
        """Multiply two formulas."""
        if not isinstance(other, UnitFormula):
            return NotImplemented
        symbols = set(self._unit_map) | set(other._unit_map)
        return UnitFormula(
            {
                symbol: self._unit_map.get(symbol, 0) + other._unit_map.get(symbol, 0)
                for symbol in symbols
            }
        )

    def __truediv__(self, other: "UnitFormula") -> "UnitFormula":
        """Divide two formulas."""
        if not isinstance(other, UnitFormula):
            return NotImplemented
        return self * -other

    def __neg__(self) -> "UnitFormula":
        """Return the reciprocal formula, every exponent negated."""
        return UnitFormula({symbol: -exp for symbol, exp in self._unit_map.items()})

    def __pow__(self, power: int) -> "UnitFormula":
        """Raise the formula to an integer power."""
        if not isinstance(power, int) or isinstance(power, bool):
            raise TypeError(f"Unit exponent must be an int, got {power!r}")
        return UnitFormula(
            {symbol: exp * power for symbol, exp in self._unit_map.items()}
        )

    def __eq__(self, other: object) -> bool:
        """Check equality of two UnitFormula instances."""
        if not isinstance(other, UnitFormula):
            return False
        return self._unit_map == other._unit_map

    def __hash__(self) -> int:
        """Hash consistent with equality."""
        return self._hash

    def __str__(self) -> str:
        """Return the canonical string form, e.g. 'kg m/s^2'."""
        num_str = _render_side(self.numerator) or "1"
        den_str = _render_side(self.denominator)
        return f"{num_str}/{den_str}" if den_str else num_str

    def __repr__(self) -> str:
        """Return a detailed string representation of the formula."""
        return f"UnitFormula({dict(self._unit_map)})"

    @classmethod
    def from_string(cls, unit_str: str, table: "UnitTable | None" = None) -> Self:
        """Parse a string like 'kg m/s^2' into a UnitFormula instance.

        - Multiplication: adjacency or '*'
        - Division: '/' applies to the following run of units, up to the next '*'
        - Powers: '^' followed by an integer
        - Grouping: parentheses

        Args:
            unit_str: Representation of the unit, e.g. 'kg m/s^2'.
            table: Declared units to check names against. Any name is accepted
                when omitted.
        """
        from .parser import parse

        return cls(parse(unit_str, table).unit_map)


def _render_side(side: Mapping[str, int]) -> str:
    return " ".join(
        symbol if exp == 1 else f"{symbol}^{exp}"
        for symbol, exp in sorted(side.items())
    )


DIMENSIONLESS = UnitFormula()


def multiply(a: UnitFormula, b: UnitFormula) -> UnitFormula:
    """Per-unit exponent addition."""
    return a * b


def divide(a: UnitFormula, b: UnitFormula) -> UnitFormula:
    """Multiply ``a`` by the reciprocal of ``b``."""
    return a / b


def negate(a: UnitFormula) -> UnitFormula:
    """Flip the sign of every exponent."""
    return -a


def power(a: UnitFormula, n: int) -> UnitFormula:
    """Multiply every exponent by ``n``; ``n == 0`` gives the dimensionless formula."""
    return a**n


def equals(a: UnitFormula, b: UnitFormula) -> bool:
    """True iff both formulas have the same canonical unit-exponent mapping."""
    return a == b


def render(a: UnitFormula) -> str:
    """Canonical string form of a formula."""
    return str(a)


def require_same(expected: UnitFormula, actual: UnitFormula) -> UnitFormula:
    """Return ``expected`` if both formulas are equal.

    Raises:
        UnitMismatchError: The formulas differ.
    """
    if expected != actual:
        raise UnitMismatchError(expected, actual)
    return expected


def canonicalize(
    formula: "UnitFormula | str",
    table: "UnitTable | None" = None,
    *,
    expand: bool = False,
) -> UnitFormula:
    """Return the canonical formula for a formula or its surface syntax.

    Args:
        formula: A UnitFormula or a string such as 'm /s s * kg'.
        table: Declared units used to check names and expand derived units.
        expand: Replace derived units by their base-unit definition. Requires a
            table.
    """
    if isinstance(formula, str):
        from .parser import parse

        formula = parse(formula, table)
    else:
        formula = UnitFormula(formula.unit_map)
    if expand:
        if table is None:
            raise ValueError("Expanding derived units requires a unit table")
        formula = table.expand(formula)
    return formula
