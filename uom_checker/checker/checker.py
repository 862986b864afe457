"""Static dimensional analysis of Python modules.

``UnitChecker`` walks the trees mypy builds for a set of modules and infers a unit
for every expression it can. Units come from annotations of the form
``Annotated[float, "unit:kg m/s^2"]``, parsed against a frozen ``UnitTable`` and
expanded to base units, so ``"unit:N"`` and ``"unit:kg m/s^2"`` agree.

Plain numbers have no unit. They may scale a value with ``*`` and ``/``, where
they count as dimensionless, but not be added to or compared with one.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from mypy.nodes import (
    ARG_NAMED,
    ARG_POS,
    AssignmentStmt,
    Block,
    CallExpr,
    ClassDef,
    ComparisonExpr,
    ConditionalExpr,
    Decorator,
    Expression,
    ExpressionStmt,
    ForStmt,
    FuncDef,
    IfStmt,
    IndexExpr,
    IntExpr,
    ListExpr,
    MemberExpr,
    MypyFile,
    NameExpr,
    OperatorAssignmentStmt,
    OpExpr,
    ReturnStmt,
    SetExpr,
    Statement,
    SymbolNode,
    SymbolTable,
    TryStmt,
    TupleExpr,
    TypeAlias,
    TypeInfo,
    UnaryExpr,
    Var,
    WhileStmt,
    WithStmt,
)
from mypy.types import CallableType, Instance, get_proper_type

from ..units import (
    DIMENSIONLESS,
    UnitFormula,
    UnitMismatchError,
    UnitTable,
    divide,
    multiply,
    negate,
    power,
    require_same,
    si_table,
)
from .annotations import UnitAnnotations
from .diagnostics import UnitCheckerError
from .sources import build_modules, check_order, discover

logger = logging.getLogger(__name__)

# operators whose operands must share a unit, which the result keeps
SAME_UNIT_OPERATORS = frozenset({"+", "-", "%"})
# augmented operators that may scale a value by a plain number
SCALING_OPERATORS = frozenset({"*", "/", "//"})
IDENTITY_COMPARISONS = frozenset({"is", "is not", "in", "not in"})


@dataclass(frozen=True)
class Inferred:
    """The unit of an expression and the symbol or type it evaluates to.

    ``node`` lets attribute access and calls on the result be followed.
    """

    unit: UnitFormula | None
    node: SymbolNode | Instance | None = None


NO_UNIT = Inferred(None)


def _returned_instance(func: FuncDef) -> Instance | None:
    if isinstance(func.type, CallableType):
        returned = get_proper_type(func.type.ret_type)
        if isinstance(returned, Instance):
            return returned
    return None


def _integer_literal(expr: Expression) -> int | None:
    match expr:
        case IntExpr(value=value):
            return value
        case UnaryExpr(op="-", expr=IntExpr(value=value)):
            return -value
        case UnaryExpr(op="+", expr=IntExpr(value=value)):
            return value
    return None


class UnitChecker:
    """Infers and checks units of measure across a set of modules.

    After :meth:`check`, ``units`` maps every variable, parameter and function
    with a known unit to it (for functions, the unit they return), ``aliases``
    maps unit type aliases to their unit and ``errors`` lists the diagnostics in
    the order they were found.
    """

    def __init__(self, table: UnitTable | None = None) -> None:
        """Create a checker for annotations using ``table``.

        The SI table is used when none is given. The table is frozen, so it
        cannot change while modules are checked.
        """
        self.table = (table if table is not None else si_table()).freeze()
        self.units: dict[SymbolNode, UnitFormula] = {}
        self.errors: list[UnitCheckerError] = []
        self.annotations = UnitAnnotations(self.table, self.errors.append)
        self._names: SymbolTable = SymbolTable()
        self._expected_returns: list[UnitFormula | None] = []

    @property
    def aliases(self) -> dict[TypeAlias, UnitFormula]:
        return self.annotations.aliases

    def check(self, paths: Sequence[Path]) -> None:
        """Check the Python files in ``paths``, searching directories recursively.

        Modules imported from the same top-level packages are checked as well,
        each before the modules importing it.
        """
        sources = discover(paths)
        if not sources:
            return
        result = build_modules(sources)
        packages = {name.partition(".")[0] for _, name in sources}
        for name in check_order(result.graph, packages):
            tree = result.files[name]
            logger.debug("Checking module %s", name)
            found = len(self.errors)
            self.check_module(tree)
            for error in self.errors[found:]:
                error.path = tree.path
                logger.debug("%s", error)

    def check_module(self, tree: MypyFile) -> None:
        self._names = tree.names
        for stmt in tree.defs:
            self._statement(stmt)

    def _report(self, code: str, lineno: int, **fields: object) -> None:
        self.errors.append(UnitCheckerError.create(code, lineno, **fields))

    # statements

    def _block(self, block: Block | None) -> None:
        if block is None or block.is_unreachable:
            return
        for stmt in block.body:
            self._statement(stmt)

    def _statement(self, stmt: Statement) -> None:
        match stmt:
            case AssignmentStmt(is_alias_def=True):
                self.annotations.declare_alias(stmt, self._names)
            case AssignmentStmt():
                self._assignment(stmt)
            case OperatorAssignmentStmt():
                self._augmented_assignment(stmt)
            case FuncDef():
                self._function(stmt)
            case Decorator():
                self._function(stmt.func)
            case ClassDef():
                self._block(stmt.defs)
            case ReturnStmt():
                self._return(stmt)
            case ExpressionStmt():
                self.infer(stmt.expr)
            case IfStmt():
                for condition, body in zip(stmt.expr, stmt.body):
                    self.infer(condition)
                    self._block(body)
                self._block(stmt.else_body)
            case WhileStmt():
                self.infer(stmt.expr)
                self._block(stmt.body)
                self._block(stmt.else_body)
            case ForStmt():
                # the loop variable takes the unit of what it iterates over
                self._bind(stmt.index, None, self.infer(stmt.expr).unit, stmt.line)
                self._block(stmt.body)
                self._block(stmt.else_body)
            case WithStmt():
                for context in stmt.expr:
                    self.infer(context)
                self._block(stmt.body)
            case TryStmt():
                self._block(stmt.body)
                for handler in stmt.handlers:
                    self._block(handler)
                self._block(stmt.else_body)
                self._block(stmt.finally_body)
            case Block():
                self._block(stmt)

    def _assignment(self, stmt: AssignmentStmt) -> None:
        declared = self.annotations.unit_of(
            stmt.unanalyzed_type, self._names, stmt.line
        )
        value = self.infer(stmt.rvalue).unit
        for target in stmt.lvalues:
            self._bind(target, declared, value, stmt.line)

    def _bind(
        self,
        target: Expression,
        declared: UnitFormula | None,
        value: UnitFormula | None,
        lineno: int,
    ) -> None:
        current = self.infer(target)
        var = current.node if isinstance(current.node, Var) else None
        if var is None:
            # subscripts and other targets keep the unit of their container
            if current.unit is not None and value is not None and current.unit != value:
                self._report(
                    "U010",
                    lineno,
                    target="expression",
                    expected=current.unit,
                    actual=value,
                )
            return

        if declared is not None:
            if var in self.units and self.units[var] != declared:
                self._report("U011", lineno)
            else:
                self.units[var] = declared
        expected = self.units.get(var)
        if value is None:
            return
        if expected is None:
            self.units[var] = value
        elif value != expected:
            self._report(
                "U010", lineno, target=var.fullname, expected=expected, actual=value
            )

    def _augmented_assignment(self, stmt: OperatorAssignmentStmt) -> None:
        target = self.infer(stmt.lvalue).unit
        value = self.infer(stmt.rvalue).unit
        if target is None and value is None:
            return
        if stmt.op in SAME_UNIT_OPERATORS:
            self._same_unit(target, value, stmt.line)
        elif stmt.op in SCALING_OPERATORS and (
            value is None or value.is_dimensionless()
        ):
            # scaling by a plain number keeps the target's unit
            return
        else:
            self._report("U012", stmt.line, op=stmt.op)

    def _function(self, func: FuncDef) -> None:
        for argument in func.arguments:
            unit = self.annotations.unit_of(
                argument.type_annotation, self._names, argument.line
            )
            if unit is not None:
                self.units[argument.variable] = unit

        returns = None
        if isinstance(func.unanalyzed_type, CallableType):
            returns = self.annotations.unit_of(
                func.unanalyzed_type.ret_type, self._names, func.line
            )
        if returns is not None:
            self.units[func] = returns

        self._expected_returns.append(returns)
        try:
            self._block(func.body)
        finally:
            self._expected_returns.pop()

    def _return(self, stmt: ReturnStmt) -> None:
        actual = self.infer(stmt.expr).unit if stmt.expr is not None else None
        expected = self._expected_returns[-1] if self._expected_returns else None
        if expected is not None and actual != expected:
            self._report("U004", stmt.line, actual=actual, expected=expected)

    # expressions

    def infer(self, expr: Expression) -> Inferred:
        """Infer the unit of ``expr``, reporting any inconsistency inside it."""
        match expr:
            case NameExpr():
                return self._name(expr)
            case MemberExpr():
                return self._attribute(expr)
            case OpExpr():
                return self._binary(expr)
            case UnaryExpr(op="-" | "+"):
                return self.infer(expr.expr)
            case UnaryExpr():
                self.infer(expr.expr)
            case ComparisonExpr():
                self._comparison(expr)
            case ConditionalExpr():
                return self._conditional(expr)
            case CallExpr():
                return self._call(expr)
            case IndexExpr():
                return self._subscript(expr)
            case TupleExpr() | ListExpr() | SetExpr():
                for item in expr.items:
                    self.infer(item)
        return NO_UNIT

    def _symbol(self, node: SymbolNode | None) -> Inferred:
        match node:
            case Var():
                return Inferred(self.units.get(node), node)
            case Decorator(var=Var(is_property=True)):
                func = node.func
                return Inferred(self.units.get(func), _returned_instance(func))
            case Decorator():
                return Inferred(None, node.func)
            case FuncDef() | TypeInfo() | MypyFile():
                return Inferred(None, node)
        return NO_UNIT

    def _name(self, expr: NameExpr) -> Inferred:
        node = expr.node
        if node is None and (symbol := self._names.get(expr.name)):
            node = symbol.node
        return self._symbol(node)

    def _attribute(self, expr: MemberExpr) -> Inferred:
        if isinstance(expr.node, Var | TypeInfo):
            return self._symbol(expr.node)

        owner = self.infer(expr.expr).node
        if isinstance(owner, Var) and owner.type is not None:
            owner = get_proper_type(owner.type)
        match owner:
            case Instance():
                info = owner.type
            case TypeInfo():
                info = owner
            case MypyFile():
                symbol = owner.names.get(expr.name)
                return self._symbol(symbol.node if symbol else None)
            case _:
                return NO_UNIT

        symbol = info.get(expr.name)
        node = symbol.node if symbol else None
        if isinstance(node, Var) and isinstance(node.type, CallableType):
            if node.type.is_type_obj():
                # a class bound to a class attribute
                return Inferred(None, node.type.type_object())
        return self._symbol(node)

    def _binary(self, expr: OpExpr) -> Inferred:
        left = self.infer(expr.left)
        right = self.infer(expr.right)
        if expr.op == "**":
            return self._power(expr, left.unit)
        if left.unit is None and right.unit is None:
            return Inferred(None, left.node)
        if expr.op == "*":
            return Inferred(
                multiply(left.unit or DIMENSIONLESS, right.unit or DIMENSIONLESS)
            )
        if expr.op in ("/", "//"):
            if left.unit is None:
                return Inferred(negate(right.unit or DIMENSIONLESS))
            return Inferred(divide(left.unit, right.unit or DIMENSIONLESS))
        if expr.op in SAME_UNIT_OPERATORS:
            if self._same_unit(left.unit, right.unit, expr.line):
                return Inferred(left.unit, left.node)
        return NO_UNIT

    def _same_unit(
        self, left: UnitFormula | None, right: UnitFormula | None, lineno: int
    ) -> bool:
        """Check operands of an additive operator, reporting U002 or U001."""
        if left is None or right is None:
            self._report("U002", lineno)
            return False
        try:
            require_same(left, right)
        except UnitMismatchError as exc:
            self._report("U001", lineno, left=exc.expected, right=exc.actual)
            return False
        return True

    def _power(self, expr: OpExpr, base: UnitFormula | None) -> Inferred:
        if base is None:
            return NO_UNIT
        exponent = _integer_literal(expr.right)
        if exponent is not None:
            return Inferred(power(base, exponent))
        if base.is_dimensionless():
            return Inferred(base)
        self._report("U009", expr.line)
        return NO_UNIT

    def _comparison(self, expr: ComparisonExpr) -> None:
        units = [self.infer(operand).unit for operand in expr.operands]
        for operator, left, right in zip(expr.operators, units, units[1:]):
            if operator in IDENTITY_COMPARISONS or (left is None and right is None):
                continue
            if left is None or right is None:
                self._report("U006", expr.line)
            elif left != right:
                self._report("U005", expr.line, left=left, right=right)

    def _conditional(self, expr: ConditionalExpr) -> Inferred:
        self.infer(expr.cond)
        chosen = self.infer(expr.if_expr)
        other = self.infer(expr.else_expr)
        if chosen.unit is None and other.unit is None:
            return chosen
        if chosen.unit is None or other.unit is None:
            self._report("U008", expr.line)
        elif chosen.unit != other.unit:
            self._report("U007", expr.line, left=chosen.unit, right=other.unit)
        else:
            return chosen
        return Inferred(None, chosen.node)

    def _call(self, expr: CallExpr) -> Inferred:
        callee = self.infer(expr.callee).node
        arguments = [self.infer(argument).unit for argument in expr.args]

        if isinstance(callee, Var) and callee.type is not None:
            callee = get_proper_type(callee.type)
        if isinstance(callee, TypeInfo):
            # constructing an instance checks the arguments of __init__
            init = callee.names.get("__init__")
            if init is not None and isinstance(init.node, FuncDef):
                self._check_arguments(init.node, expr, arguments)
            return Inferred(None, Instance(callee, []))
        if isinstance(callee, Instance):
            method = callee.type.get("__call__")
            callee = method.node if method else None
        if isinstance(callee, Decorator):
            callee = callee.func
        if not isinstance(callee, FuncDef):
            return NO_UNIT

        self._check_arguments(callee, expr, arguments)
        return Inferred(self.units.get(callee), _returned_instance(callee))

    def _check_arguments(
        self,
        func: FuncDef,
        call: CallExpr,
        arguments: list[UnitFormula | None],
    ) -> None:
        parameters = func.arguments
        if func.info and not func.is_static:
            # bound methods receive self or cls implicitly
            parameters = parameters[1:]
        positions = {
            parameter.variable.name: index
            for index, parameter in enumerate(parameters)
        }
        for position, (actual, kind, keyword) in enumerate(
            zip(arguments, call.arg_kinds, call.arg_names)
        ):
            if kind == ARG_POS:
                index = position
            elif kind == ARG_NAMED and keyword in positions:
                index = positions[keyword]
            else:
                continue
            if index >= len(parameters):
                continue
            expected = self.units.get(parameters[index].variable)
            if expected is not None and actual != expected:
                self._report(
                    "U003",
                    call.line,
                    index=index + 1,
                    function=func.fullname,
                    actual=actual,
                    expected=expected,
                )

    def _subscript(self, expr: IndexExpr) -> Inferred:
        container = self.infer(expr.base)
        self.infer(expr.index)
        if not isinstance(expr.method_type, CallableType):
            return Inferred(container.unit)
        item = get_proper_type(expr.method_type.ret_type)
        if isinstance(item, CallableType) and isinstance(item.definition, FuncDef):
            if (unit := self.units.get(item.definition)) is not None:
                return Inferred(unit, item.definition)
        # items of a container carry the container's unit
        return Inferred(container.unit, item if isinstance(item, Instance) else None)
