"""Diagnostics reported for dimensionally inconsistent code.

Every diagnostic code has a single message template. Checks create records
with :meth:`UnitCheckerError.create`, passing the template's fields by name::

    UnitCheckerError.create("U001", 12, left=metre, right=second)
"""

from dataclasses import dataclass

MESSAGES = {
    "U001": "Cannot add operands with different units: {left} and {right}",
    "U002": "Operands must both have units",
    "U003": (
        "Argument {index} to function '{function}' has unit {actual}, "
        "expected {expected}"
    ),
    "U004": (
        "Unit of return value does not match function signature: "
        "returned {actual}, expected {expected}"
    ),
    "U005": "Cannot compare operands with different units: {left} and {right}",
    "U006": "Cannot compare a unitful operand with a unitless operand",
    "U007": "Conditional branches have different units: {left} and {right}",
    "U008": "Both branches of conditional must have a unit.",
    "U009": "Exponent must be an explicit integer value.",
    "U010": (
        "Incompatible unit in assignment to {target}: "
        "expected {expected}, received {actual}"
    ),
    "U011": "Variable already has a unit",
    "U012": "Cannot use {op}= operator on expressions with units.",
    "U013": "Invalid unit annotation '{formula}': {reason}",
}


@dataclass
class UnitCheckerError:
    """A unit checking diagnostic at a source line.

    ``path`` is filled in once the module the line belongs to has been checked.
    """

    code: str
    lineno: int
    message: str
    path: str | None = None

    @classmethod
    def create(cls, code: str, lineno: int, **fields: object) -> "UnitCheckerError":
        """Build the diagnostic for ``code`` from its message template."""
        return cls(code, lineno, MESSAGES[code].format(**fields))

    def __str__(self) -> str:
        return f"{self.path or '<unknown>'}:{self.lineno}: {self.code} {self.message}"
