"""Exceptions raised while parsing, declaring and comparing unit formulas."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .formula import UnitFormula


class UnitError(Exception):
    """Base class for all unit errors."""


class ParseError(UnitError, ValueError):
    """A unit formula could not be parsed."""

    def __init__(self, message: str, text: str, position: int | None = None):
        """Initialise a parse error.

        Args:
            message: Description of the problem.
            text: The formula being parsed.
            position: Offset into ``text`` where parsing failed, if known.
        """
        pointer = ""
        if position is not None and 0 <= position <= len(text):
            pointer = f"\n{text}\n{' ' * position}^"
        super().__init__(f"{message}{pointer}")
        self.reason = message
        self.text = text
        self.position = position


class UnknownUnitError(ParseError):
    """A formula referenced a unit that is not declared in the table."""

    def __init__(self, name: str, text: str, position: int | None = None):
        """Initialise an unknown unit error for ``name``."""
        super().__init__(f"Unknown unit '{name}'", text, position)
        self.name = name


class DeclarationError(UnitError):
    """A unit could not be declared."""


class DefinitionCycleError(DeclarationError):
    """A derived unit is defined, directly or transitively, in terms of itself."""

    def __init__(self, cycle: list[str]):
        """Initialise a cycle error from the names forming the cycle."""
        super().__init__("Cyclic unit definition: " + " -> ".join(cycle))
        self.cycle = cycle


class UnitMismatchError(UnitError):
    """Two formulas required to be equal are not."""

    def __init__(self, expected: "UnitFormula", actual: "UnitFormula"):
        """Initialise a mismatch error."""
        super().__init__(f"Unit mismatch: expected {expected}, received {actual}")
        self.expected = expected
        self.actual = actual


class ConfigError(UnitError):
    """A unit configuration file is invalid."""
