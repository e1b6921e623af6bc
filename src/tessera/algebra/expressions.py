"""
Expression nodes for the lazy algebra.

Expressions describe a per-column computation without running it. They are represented
as an immutable AST: Column references, Literal values, BinaryOp subclasses for
comparison, arithmetic and boolean logic, UnaryOp for negation and null tests, and
dedicated nodes for string functions, casts, user functions, aliases and null filling.

Expressions hold no state and may be shared by any number of plan nodes. Python
operators build new nodes, so ``col("foo") < 3`` is a ``Compare`` node, not a bool.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set, Tuple

from ..core.ordering import FillNullStrategy, parse_option
from ..datatypes import DataType, Value, decode_value, encode_value
from ..exceptions import PlanValidationError


def _wrap(other: Any) -> "Expression":
    """Promote a plain Python value to a Literal when needed."""
    if isinstance(other, Expression):
        return other
    return Literal(value=other)


@dataclass(frozen=True, eq=False)
class Expression:
    """Base class for all expression types.

    Supports Python operators so you can write ``col("age") > 30`` and get back a
    ``Compare`` AST node.
    """

    # Arithmetic
    def __add__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="+", left=self, right=_wrap(other))

    def __radd__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="+", left=_wrap(other), right=self)

    def __sub__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="-", left=self, right=_wrap(other))

    def __rsub__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="-", left=_wrap(other), right=self)

    def __mul__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="*", left=self, right=_wrap(other))

    def __rmul__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="*", left=_wrap(other), right=self)

    def __truediv__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="/", left=self, right=_wrap(other))

    def __rtruediv__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="/", left=_wrap(other), right=self)

    def __mod__(self, other: Any) -> "Arithmetic":
        return Arithmetic(op="%", left=self, right=_wrap(other))

    def __neg__(self) -> "UnaryOp":
        return UnaryOp(op="neg", operand=self)

    # Comparison: returns Compare nodes, NOT Python bools
    def __gt__(self, other: Any) -> "Compare":
        return Compare(op=">", left=self, right=_wrap(other))

    def __ge__(self, other: Any) -> "Compare":
        return Compare(op=">=", left=self, right=_wrap(other))

    def __lt__(self, other: Any) -> "Compare":
        return Compare(op="<", left=self, right=_wrap(other))

    def __le__(self, other: Any) -> "Compare":
        return Compare(op="<=", left=self, right=_wrap(other))

    def __eq__(self, other: Any) -> "Compare":  # type: ignore[override]
        return Compare(op="==", left=self, right=_wrap(other))

    def __ne__(self, other: Any) -> "Compare":  # type: ignore[override]
        return Compare(op="!=", left=self, right=_wrap(other))

    __hash__ = object.__hash__

    def eq(self, other: Any) -> "Compare":
        return self.__eq__(other)

    def neq(self, other: Any) -> "Compare":
        return self.__ne__(other)

    def lt(self, other: Any) -> "Compare":
        return self.__lt__(other)

    def lt_eq(self, other: Any) -> "Compare":
        return self.__le__(other)

    def gt(self, other: Any) -> "Compare":
        return self.__gt__(other)

    def gt_eq(self, other: Any) -> "Compare":
        return self.__ge__(other)

    # Logical (bitwise operators used as logical)
    def __and__(self, other: Any) -> "BooleanCombine":
        return BooleanCombine(op="and", left=self, right=_wrap(other))

    def __or__(self, other: Any) -> "BooleanCombine":
        return BooleanCombine(op="or", left=self, right=_wrap(other))

    def __xor__(self, other: Any) -> "BooleanCombine":
        return BooleanCombine(op="xor", left=self, right=_wrap(other))

    def __invert__(self) -> "UnaryOp":
        return UnaryOp(op="not", operand=self)

    def not_(self) -> "UnaryOp":
        return self.__invert__()

    # Null handling and conversion
    def is_null(self) -> "UnaryOp":
        return UnaryOp(op="is_null", operand=self)

    def is_not_null(self) -> "UnaryOp":
        return UnaryOp(op="is_not_null", operand=self)

    def fill_null(self, strategy: str) -> "FillNull":
        """Replace nulls with ``min``, ``max``, ``mean``, ``zero`` or ``one``.

        Raises:
            UnsupportedOption: If ``strategy`` is not a known token
        """
        return FillNull(target=self, strategy=parse_option(FillNullStrategy, strategy, "Fill strategy"))

    def alias(self, name: str) -> "Alias":
        return Alias(target=self, name=name)

    def cast(self, dtype: DataType, strict: bool = True) -> "Cast":
        return Cast(target=self, dtype=dtype, strict=strict)

    def map(self, function: Callable[..., Any], output_type: DataType, name: Optional[str] = None) -> "MapFn":
        """Apply ``function`` to the evaluated column.

        ``function`` receives the Series and must return a Series of ``output_type``
        and the same length.
        """
        return MapFn(
            name=name or output_name(self),
            inputs=(self,),
            output_type=output_type,
            function=function,
        )

    @property
    def str(self) -> "ExprStringNamespace":
        return ExprStringNamespace(self)

    # Serialization
    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError(f"to_dict not implemented for {self.__class__.__name__}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expression":
        type_name = data.get("type")
        type_map: Dict[str, type] = {
            "column": Column,
            "literal": Literal,
            "compare": Compare,
            "arithmetic": Arithmetic,
            "boolean": BooleanCombine,
            "unary_op": UnaryOp,
            "string_function": StringFunction,
            "cast": Cast,
            "alias": Alias,
            "fill_null": FillNull,
            "map": MapFn,
        }
        target = type_map.get(type_name)
        if target is None:
            raise PlanValidationError(f"Unknown expression type: {type_name!r}")
        return target._from_dict(data)  # type: ignore[attr-defined]


@dataclass(frozen=True, eq=False)
class Column(Expression):
    """Reference to a named column."""

    name: str

    def __str__(self) -> str:
        return f'col("{self.name}")'

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "column", "name": self.name}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(name=data["name"])


@dataclass(frozen=True, eq=False)
class Literal(Expression):
    """A constant value. ``dtype`` pins the type; otherwise it is inferred."""

    value: Value = None
    dtype: Optional[DataType] = None

    def __str__(self) -> str:
        if self.value is None:
            return "null"
        return repr(self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "literal",
            "value": encode_value(self.value),
            "dtype": None if self.dtype is None else str(self.dtype),
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Literal":
        dtype = DataType.from_name(data["dtype"]) if data.get("dtype") else None
        return cls(value=decode_value(dtype, data["value"]), dtype=dtype)


@dataclass(frozen=True, eq=False)
class BinaryOp(Expression):
    """Binary operation; see Compare, Arithmetic and BooleanCombine."""

    op: str
    left: Expression
    right: Expression

    _type_name = "binary_op"
    _ops = ()

    def __post_init__(self):
        if self._ops and self.op not in self._ops:
            raise PlanValidationError(
                f"{self.__class__.__name__} operator must be one of {self._ops}, got: {self.op!r}"
            )

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self._type_name,
            "op": self.op,
            "left": self.left.to_dict(),
            "right": self.right.to_dict(),
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "BinaryOp":
        return cls(
            op=data["op"],
            left=Expression.from_dict(data["left"]),
            right=Expression.from_dict(data["right"]),
        )


@dataclass(frozen=True, eq=False)
class Compare(BinaryOp):
    _type_name = "compare"
    _ops = ("==", "!=", "<", "<=", ">", ">=")


@dataclass(frozen=True, eq=False)
class Arithmetic(BinaryOp):
    _type_name = "arithmetic"
    _ops = ("+", "-", "*", "/", "%")


@dataclass(frozen=True, eq=False)
class BooleanCombine(BinaryOp):
    _type_name = "boolean"
    _ops = ("and", "or", "xor")


@dataclass(frozen=True, eq=False)
class UnaryOp(Expression):
    """Unary operation (negation, logical NOT, null tests)."""

    op: str
    operand: Expression

    def __post_init__(self):
        if self.op not in ("neg", "not", "is_null", "is_not_null"):
            raise PlanValidationError(f"Unknown unary operator: {self.op!r}")

    def __str__(self) -> str:
        if self.op in ("is_null", "is_not_null"):
            return f"{self.operand}.{self.op}()"
        return f"({self.op} {self.operand})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "unary_op",
            "op": self.op,
            "operand": self.operand.to_dict(),
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "UnaryOp":
        return cls(
            op=data["op"],
            operand=Expression.from_dict(data["operand"]),
        )


STRING_FUNCTIONS = (
    "contains", "contains_literal", "starts_with", "ends_with", "extract", "extract_all", "lengths",
)


@dataclass(frozen=True, eq=False)
class StringFunction(Expression):
    """A string predicate or extraction applied to a String column."""

    kind: str
    target: Expression
    pattern: Optional[str] = None
    group_index: int = 1

    def __post_init__(self):
        if self.kind not in STRING_FUNCTIONS:
            raise PlanValidationError(f"Unknown string function: {self.kind!r}")
        if self.kind != "lengths" and self.pattern is None:
            raise PlanValidationError(f"String function '{self.kind}' needs a pattern")

    def __str__(self) -> str:
        if self.kind == "lengths":
            return f"{self.target}.str.lengths()"
        return f"{self.target}.str.{self.kind}({self.pattern!r})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "string_function",
            "kind": self.kind,
            "target": self.target.to_dict(),
            "pattern": self.pattern,
            "group_index": self.group_index,
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "StringFunction":
        return cls(
            kind=data["kind"],
            target=Expression.from_dict(data["target"]),
            pattern=data.get("pattern"),
            group_index=data.get("group_index", 1),
        )


@dataclass(frozen=True, eq=False)
class Cast(Expression):
    target: Expression
    dtype: DataType
    strict: bool = True

    def __str__(self) -> str:
        return f"{self.target}.cast({self.dtype})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "cast",
            "target": self.target.to_dict(),
            "dtype": str(self.dtype),
            "strict": self.strict,
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Cast":
        return cls(
            target=Expression.from_dict(data["target"]),
            dtype=DataType.from_name(data["dtype"]),
            strict=data.get("strict", True),
        )


@dataclass(frozen=True, eq=False)
class MapFn(Expression):
    """A user function over evaluated input columns with a declared output type.

    The function itself cannot be serialized: ``to_dict`` records only the name and
    output type, and rebuilding a MapFn from a dict fails.
    """

    name: str
    inputs: Tuple[Expression, ...]
    output_type: DataType
    function: Callable[..., Any]

    def __str__(self) -> str:
        args = ", ".join(str(e) for e in self.inputs)
        return f"{self.name}({args}) -> {self.output_type}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "map",
            "name": self.name,
            "inputs": [e.to_dict() for e in self.inputs],
            "output_type": str(self.output_type),
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "MapFn":
        raise PlanValidationError(
            f"Cannot rebuild user function '{data.get('name')}' from its serialized form"
        )


@dataclass(frozen=True, eq=False)
class Alias(Expression):
    target: Expression
    name: str

    def __str__(self) -> str:
        return f'{self.target}.alias("{self.name}")'

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "alias", "target": self.target.to_dict(), "name": self.name}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Alias":
        return cls(target=Expression.from_dict(data["target"]), name=data["name"])


@dataclass(frozen=True, eq=False)
class FillNull(Expression):
    target: Expression
    strategy: FillNullStrategy

    def __str__(self) -> str:
        return f"{self.target}.fill_null('{self.strategy.value}')"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "fill_null", "target": self.target.to_dict(), "strategy": self.strategy.value}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "FillNull":
        return cls(
            target=Expression.from_dict(data["target"]),
            strategy=parse_option(FillNullStrategy, data["strategy"], "Fill strategy"),
        )


class ExprStringNamespace:
    """Builders for StringFunction nodes, reached through ``expr.str``."""

    def __init__(self, target: Expression):
        self._target = target

    def contains(self, pattern: str, literal: bool = False) -> StringFunction:
        kind = "contains_literal" if literal else "contains"
        return StringFunction(kind=kind, target=self._target, pattern=pattern)

    def contains_literal(self, literal: str) -> StringFunction:
        return StringFunction(kind="contains_literal", target=self._target, pattern=literal)

    def starts_with(self, prefix: str) -> StringFunction:
        return StringFunction(kind="starts_with", target=self._target, pattern=prefix)

    def ends_with(self, suffix: str) -> StringFunction:
        return StringFunction(kind="ends_with", target=self._target, pattern=suffix)

    def extract(self, pattern: str, group_index: int = 1) -> StringFunction:
        return StringFunction(kind="extract", target=self._target, pattern=pattern, group_index=group_index)

    def extract_all(self, pattern: str) -> StringFunction:
        return StringFunction(kind="extract_all", target=self._target, pattern=pattern)

    def lengths(self) -> StringFunction:
        return StringFunction(kind="lengths", target=self._target)


def col(name: str) -> Column:
    """Create a Column reference expression.

    Example:
        >>> c = col("age")
        >>> pred = c > 30           # Compare(op='>', left=Column('age'), right=Literal(30))
    """
    return Column(name=name)


def lit(value: Value, dtype: Optional[DataType] = None) -> Literal:
    """Create a Literal expression; ``None`` is a null literal."""
    return Literal(value=value, dtype=dtype)


def output_name(expr: Expression) -> str:
    """Name of the column an expression produces.

    Aliases win; otherwise the name comes from the leftmost input column, and a bare
    literal is named ``"literal"``.
    """
    match expr:
        case Column(name=name) | Alias(name=name) | MapFn(name=name):
            return name
        case Literal():
            return "literal"
        case BinaryOp(left=left):
            return output_name(left)
        case UnaryOp(operand=operand):
            return output_name(operand)
        case StringFunction(target=target) | Cast(target=target) | FillNull(target=target):
            return output_name(target)
        case _:
            raise PlanValidationError(f"Unknown expression type: {type(expr).__name__}")


def referenced_columns(expr: Expression) -> Set[str]:
    """Names of every column an expression reads."""
    match expr:
        case Column(name=name):
            return {name}
        case Literal():
            return set()
        case BinaryOp(left=left, right=right):
            return referenced_columns(left) | referenced_columns(right)
        case UnaryOp(operand=operand):
            return referenced_columns(operand)
        case MapFn(inputs=inputs):
            return set().union(*(referenced_columns(e) for e in inputs))
        case StringFunction(target=target) | Cast(target=target) | FillNull(target=target) | Alias(target=target):
            return referenced_columns(target)
        case _:
            raise PlanValidationError(f"Unknown expression type: {type(expr).__name__}")


def contains_map(expr: Expression) -> bool:
    """True if a user function appears anywhere in the expression."""
    match expr:
        case MapFn():
            return True
        case Column() | Literal():
            return False
        case BinaryOp(left=left, right=right):
            return contains_map(left) or contains_map(right)
        case UnaryOp(operand=operand):
            return contains_map(operand)
        case StringFunction(target=target) | Cast(target=target) | FillNull(target=target) | Alias(target=target):
            return contains_map(target)
        case _:
            raise PlanValidationError(f"Unknown expression type: {type(expr).__name__}")


def is_fallible(expr: Expression) -> bool:
    """True if evaluating the expression can raise or observe which rows it is given.

    Division and remainder fail on an integer zero divisor, a strict cast fails on an
    unrepresentable value, and a user function may do anything with its input.
    """
    match expr:
        case MapFn():
            return True
        case Cast(target=target, strict=strict):
            return strict or is_fallible(target)
        case Arithmetic(op=op, left=left, right=right):
            return op in ("/", "%") or is_fallible(left) or is_fallible(right)
        case Column() | Literal():
            return False
        case BinaryOp(left=left, right=right):
            return is_fallible(left) or is_fallible(right)
        case UnaryOp(operand=operand):
            return is_fallible(operand)
        case StringFunction(target=target) | FillNull(target=target) | Alias(target=target):
            return is_fallible(target)
        case _:
            raise PlanValidationError(f"Unknown expression type: {type(expr).__name__}")
