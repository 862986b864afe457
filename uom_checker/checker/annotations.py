"""Reading unit formulas from type annotations.

A unit is attached to a type with ``typing.Annotated`` and a string carrying the
``unit:`` prefix. The formula may also be given once in a type alias and reused::

    Force: TypeAlias = Annotated[T, "unit:N"]
    thrust: Force[float] = 1.0
"""

from collections.abc import Callable

from mypy.nodes import (
    AssignmentStmt,
    IndexExpr,
    MypyFile,
    NameExpr,
    RefExpr,
    StrExpr,
    SymbolNode,
    SymbolTable,
    TupleExpr,
    TypeAlias,
    Var,
)
from mypy.types import RawExpressionType, Type, UnboundType

from ..units import UnitError, UnitFormula, UnitTable
from .diagnostics import UnitCheckerError

UNIT_PREFIX = "unit:"
ANNOTATED = frozenset({"typing.Annotated", "typing_extensions.Annotated"})


def lookup(names: SymbolTable, dotted: str) -> SymbolNode | None:
    """Resolve a possibly dotted name, following module attributes."""
    head, *attributes = dotted.split(".")
    symbol = names.get(head)
    node = symbol.node if symbol else None
    for attribute in attributes:
        if not isinstance(node, MypyFile):
            return None
        symbol = node.names.get(attribute)
        node = symbol.node if symbol else None
    return node


def _unit_text(value: object) -> str | None:
    if isinstance(value, str) and value.startswith(UNIT_PREFIX):
        return value.removeprefix(UNIT_PREFIX)
    return None


class UnitAnnotations:
    """Unit formulas declared by annotations, parsed against a unit table.

    Formulas are expanded to base units. An annotation that does not parse is
    reported through ``report`` as U013 and treated as carrying no unit.
    """

    def __init__(
        self, table: UnitTable, report: Callable[[UnitCheckerError], None]
    ) -> None:
        self.table = table
        self.aliases: dict[TypeAlias, UnitFormula] = {}
        self._report = report

    def parse(self, formula: str, lineno: int) -> UnitFormula | None:
        try:
            return self.table.parse(formula, expand=True)
        except UnitError as exc:
            reason = getattr(exc, "reason", None) or str(exc)
            self._report(
                UnitCheckerError.create(
                    "U013", lineno, formula=formula, reason=reason
                )
            )
            return None

    def unit_of(
        self, annotation: Type | None, names: SymbolTable, lineno: int
    ) -> UnitFormula | None:
        """Unit carried by an unanalysed annotation, if any."""
        if not isinstance(annotation, UnboundType):
            return None
        match lookup(names, annotation.name):
            case TypeAlias() as alias:
                return self.aliases.get(alias)
            case Var(fullname=fullname) if fullname in ANNOTATED:
                for argument in annotation.args[1:]:
                    if not isinstance(argument, RawExpressionType):
                        continue
                    if (text := _unit_text(argument.literal_value)) is not None:
                        return self.parse(text, lineno)
        return None

    def declare_alias(self, stmt: AssignmentStmt, names: SymbolTable) -> None:
        """Record the unit of an ``X = Annotated[T, "unit:..."]`` alias."""
        target = stmt.lvalues[0]
        if not isinstance(target, NameExpr):
            return
        alias = lookup(names, target.name)
        value = stmt.rvalue
        if not (
            isinstance(alias, TypeAlias)
            and isinstance(value, IndexExpr)
            and isinstance(value.base, RefExpr)
            and value.base.fullname in ANNOTATED
            and isinstance(value.index, TupleExpr)
        ):
            return
        for item in value.index.items[1:]:
            if not isinstance(item, StrExpr):
                continue
            if (text := _unit_text(item.value)) is not None:
                if (unit := self.parse(text, stmt.line)) is not None:
                    self.aliases[alias] = unit
                return
