"""Symbol table of declared units for a checking session.

A table is filled once (single writer), then frozen and shared by any number of
readers. Derived units are stored with their defining formula and resolved to base
units on demand.
"""

import logging
import re
import sys
from collections.abc import Iterable, Iterator, Mapping

from .errors import DeclarationError, DefinitionCycleError, UnknownUnitError
from .formula import DIMENSIONLESS, UnitFormula
from .parser import parse

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

Definition = str | UnitFormula | None


class UnitTable:
    """Declared unit names and the optional formula each derived unit stands for."""

    def __init__(self) -> None:
        """Initialise an empty, unfrozen table."""
        self._definitions: dict[str, UnitFormula | None] = {}
        self._resolved: dict[str, UnitFormula] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        """True once ``freeze`` has been called."""
        return self._frozen

    def freeze(self) -> "UnitTable":
        """Disallow further declarations. Returns the table for chaining."""
        self._frozen = True
        return self

    def copy(self) -> "UnitTable":
        """Return an unfrozen copy holding the same declarations."""
        table = UnitTable()
        table._definitions = dict(self._definitions)
        return table

    def declare(self, name: str, definition: Definition = None) -> None:
        """Declare a base unit, or a derived unit when ``definition`` is given.

        Raises:
            DeclarationError: The name is invalid, already declared, or the table is
                frozen.
            UnknownUnitError: The definition uses an undeclared unit.
            DefinitionCycleError: The definition refers back to ``name``.
        """
        self.declare_many({name: definition})

    def declare_many(self, declarations: Mapping[str, Definition]) -> None:
        """Declare several units at once.

        Definitions may refer to other units of the same batch, in any order. The
        whole batch is rejected, leaving the table unchanged, if any declaration
        fails.
        """
        if self._frozen:
            raise DeclarationError("Cannot declare units in a frozen table")
        for name in declarations:
            if not _NAME_RE.fullmatch(name):
                raise DeclarationError(f"Invalid unit name {name!r}")
            if name in self._definitions:
                raise DeclarationError(f"Unit {name!r} is already declared")

        known = self._definitions.keys() | declarations.keys()
        parsed: dict[str, UnitFormula | None] = {}
        for name, definition in declarations.items():
            if definition is None:
                parsed[sys.intern(name)] = None
                continue
            if isinstance(definition, UnitFormula):
                text = str(definition)
                for symbol in definition:
                    if symbol not in known:
                        raise UnknownUnitError(symbol, text)
            else:
                definition = parse(definition, known)
            parsed[sys.intern(name)] = definition

        self._check_cycles({**self._definitions, **parsed}, parsed)
        self._definitions.update(parsed)
        for name, definition in parsed.items():
            logger.debug(
                "Declared %s unit %s%s",
                "base" if definition is None else "derived",
                name,
                "" if definition is None else f" = {definition}",
            )

    @staticmethod
    def _check_cycles(
        definitions: Mapping[str, UnitFormula | None], roots: Iterable[str]
    ) -> None:
        """Depth-first search from each new unit for a path back to itself.

        The walk keeps its own stack, so long chains of definitions are fine.
        """
        visited: set[str] = set()
        for root in roots:
            if root in visited:
                continue
            path = [root]
            on_path = {root}
            pending = [iter(definitions.get(root) or ())]
            while pending:
                symbol = next(pending[-1], None)
                if symbol is None:
                    pending.pop()
                    done = path.pop()
                    on_path.discard(done)
                    visited.add(done)
                elif symbol in on_path:
                    raise DefinitionCycleError(path[path.index(symbol) :] + [symbol])
                elif symbol not in visited:
                    path.append(symbol)
                    on_path.add(symbol)
                    pending.append(iter(definitions.get(symbol) or ()))

    def resolve(self, name: str) -> UnitFormula:
        """Return the canonical formula of a declared unit in base units.

        Units a definition depends on are resolved first and memoized.

        Raises:
            UnknownUnitError: ``name`` is not declared.
        """
        if name in self._resolved:
            return self._resolved[name]
        if name not in self._definitions:
            raise UnknownUnitError(name, name, 0)
        todo = [name]
        while todo:
            current = todo[-1]
            if current in self._resolved:
                todo.pop()
                continue
            definition = self._definitions[current]
            if definition is None:
                self._resolved[current] = UnitFormula({current: 1})
                todo.pop()
                continue
            unresolved = [
                symbol for symbol in definition if symbol not in self._resolved
            ]
            if unresolved:
                todo.extend(unresolved)
                continue
            self._resolved[current] = self._substitute(definition)
            todo.pop()
        return self._resolved[name]

    def _substitute(self, formula: UnitFormula) -> UnitFormula:
        result = DIMENSIONLESS
        for symbol, exp in formula.items():
            result = result * self._resolved[symbol] ** exp
        return result

    def expand(self, formula: UnitFormula) -> UnitFormula:
        """Substitute every derived unit in ``formula`` by its base-unit formula."""
        for symbol in formula:
            self.resolve(symbol)
        return self._substitute(formula)

    def parse(self, text: str, expand: bool = False) -> UnitFormula:
        """Parse ``text`` against this table, optionally expanding to base units."""
        formula = parse(text, self)
        return self.expand(formula) if expand else formula

    def definition(self, name: str) -> UnitFormula | None:
        """Return the defining formula of ``name``, or None for a base unit."""
        if name not in self._definitions:
            raise UnknownUnitError(name, name, 0)
        return self._definitions[name]

    def is_base(self, name: str) -> bool:
        """True if ``name`` is declared without a definition."""
        return self.definition(name) is None

    def __contains__(self, name: object) -> bool:
        """Check whether a unit name is declared."""
        return name in self._definitions

    def __iter__(self) -> Iterator[str]:
        """Iterate over declared unit names in declaration order."""
        return iter(self._definitions)

    def __len__(self) -> int:
        """Return the number of declared units."""
        return len(self._definitions)

    def __repr__(self) -> str:
        """Return a summary of the table."""
        state = "frozen" if self._frozen else "open"
        return f"UnitTable({len(self)} units, {state})"


SI_BASE_UNITS = (
    # SI base units
    "m",
    "kg",
    "s",
    "A",
    "K",
    "mol",
    "cd",
    # scaled units, kept as independent atoms
    "g",
    "cm",
    "mm",
    "km",
    "h",
    "min",
)

SI_DERIVED_UNITS = {
    "N": "kg m/s^2",
    "J": "N m",
    "W": "J/s",
    "Pa": "N/m^2",
    "Hz": "1/s",
    "C": "A s",
    "V": "W/A",
    "ml": "cm^3",
}


def si_table() -> UnitTable:
    """Return an unfrozen table of SI base units and common derived units."""
    table = UnitTable()
    table.declare_many(dict.fromkeys(SI_BASE_UNITS))
    table.declare_many(SI_DERIVED_UNITS)
    return table
