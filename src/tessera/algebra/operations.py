"""
Operation nodes for the lazy algebra.

Each operation is a node in the logical plan. Operations are immutable dataclasses
that capture the intent of a transformation without executing it; every builder
step creates a new node pointing at its input, so a node can feed any number of
successors and the plan forms a DAG.

Constructor shortcuts
---------------------
Unary operations accept ``input=<op>`` as shorthand for ``inputs=(<op>,)``.
Join accepts ``left=`` / ``right=`` as shorthand for ``inputs=(left, right)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from ..core.join import JoinType
from ..core.ordering import parse_option
from ..datatypes import DataType, decode_value, encode_value
from ..exceptions import PlanValidationError
from .expressions import Expression

if TYPE_CHECKING:
    from ..core.dataframe import DataFrame


def _resolve_inputs(
    inputs: Tuple["Operation", ...],
    *,
    input: Optional["Operation"] = None,
    left: Optional["Operation"] = None,
    right: Optional["Operation"] = None,
) -> Tuple["Operation", ...]:
    """Build the inputs tuple from explicit inputs or convenience aliases."""
    if inputs:
        return tuple(inputs)
    if left is not None or right is not None:
        return tuple(op for op in (left, right) if op is not None)
    if input is not None:
        return (input,)
    return ()


def _set(op: "Operation", **values: Any) -> None:
    for name, value in values.items():
        object.__setattr__(op, name, value)


def _unary(op: "Operation") -> None:
    _set(op, inputs=_resolve_inputs(op.inputs, input=op.input), input=None)
    if len(op.inputs) != 1:
        raise PlanValidationError(f"{op.__class__.__name__} operation must have exactly one input")


def _exprs(data: Dict[str, Any], key: str) -> Tuple[Expression, ...]:
    return tuple(Expression.from_dict(e) for e in data.get(key, []))


@dataclass(frozen=True, eq=False)
class Operation:
    """Base class for all operations."""

    inputs: Tuple["Operation", ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError(
            f"to_dict not implemented for {self.__class__.__name__}"
        )

    def _inputs_dict(self) -> Dict[str, Any]:
        if len(self.inputs) == 1:
            return {"input": self.inputs[0].to_dict()}
        return {"inputs": [inp.to_dict() for inp in self.inputs]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        op_type = data.get("type")
        if not op_type:
            raise PlanValidationError("Operation dict must have 'type' field")

        type_map = {
            "source": Source,
            "select": Select,
            "filter": Filter,
            "with_columns": WithColumns,
            "sort": Sort,
            "join": Join,
            "drop_nulls": DropNulls,
            "cache": Cache,
            "drop": Drop,
            "explode": Explode,
            "slice": Slice,
        }

        op_class = type_map.get(op_type)
        if not op_class:
            raise PlanValidationError(f"Unknown operation type: {op_type}")

        inputs_data = data.get("inputs", [])
        if not inputs_data and data.get("input") is not None:
            inputs_data = [data["input"]]
        inputs = tuple(Operation.from_dict(inp) for inp in inputs_data)
        return op_class._from_dict(data, inputs)


@dataclass(frozen=True, eq=False)
class Source(Operation):
    """A captured eager table; always a leaf node.

    ``projection`` lists the only columns the executor needs to materialize; it is
    set by projection pushdown.
    """

    df: Optional["DataFrame"] = field(default=None, repr=False)
    name: str = "df"
    projection: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if self.inputs:
            raise PlanValidationError("Source operation cannot have inputs")
        if self.df is None:
            raise PlanValidationError("Source operation must wrap a DataFrame")
        if self.projection is not None:
            _set(self, projection=tuple(self.projection))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "source",
            "name": self.name,
            "columns": [
                {"name": s.name, "dtype": str(s.dtype), "values": [encode_value(v) for v in s.to_list()]}
                for s in self.df.get_columns()
            ],
            "projection": None if self.projection is None else list(self.projection),
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Source":
        from ..core.dataframe import DataFrame
        from ..core.series import Series

        columns = []
        for record in data.get("columns", []):
            dtype = DataType.from_name(record["dtype"])
            values = [decode_value(dtype, v) for v in record["values"]]
            columns.append(Series(record["name"], values, dtype=dtype))
        return cls(
            inputs=inputs,
            df=DataFrame(columns),
            name=data.get("name", "df"),
            projection=data.get("projection"),
        )


@dataclass(frozen=True, eq=False)
class Select(Operation):
    """Projection to a list of expressions.

    Aliases: ``input`` → ``inputs[0]``.
    """

    exprs: Tuple[Expression, ...] = ()
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        _set(self, exprs=tuple(self.exprs))
        if not self.exprs:
            raise PlanValidationError("Select operation must specify at least one expression")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "select", "exprs": [e.to_dict() for e in self.exprs], **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Select":
        return cls(inputs=inputs, exprs=_exprs(data, "exprs"))


@dataclass(frozen=True, eq=False)
class Filter(Operation):
    """Row filtering by a Boolean predicate.

    Aliases: ``input`` → ``inputs[0]``.
    """

    predicate: Optional[Expression] = None
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        if not isinstance(self.predicate, Expression):
            raise PlanValidationError("Filter operation must specify a predicate expression")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "filter", "predicate": self.predicate.to_dict(), **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Filter":
        return cls(inputs=inputs, predicate=Expression.from_dict(data["predicate"]))


@dataclass(frozen=True, eq=False)
class WithColumns(Operation):
    """Add or replace columns; every expression sees the input table.

    Aliases: ``input`` → ``inputs[0]``.
    """

    exprs: Tuple[Expression, ...] = ()
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        _set(self, exprs=tuple(self.exprs))
        if not self.exprs:
            raise PlanValidationError("WithColumns operation must specify at least one expression")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "with_columns", "exprs": [e.to_dict() for e in self.exprs], **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "WithColumns":
        return cls(inputs=inputs, exprs=_exprs(data, "exprs"))


@dataclass(frozen=True, eq=False)
class Sort(Operation):
    """Row reordering by one or more key expressions.

    Aliases: ``input`` → ``inputs[0]``.
    """

    by: Tuple[Expression, ...] = ()
    descending: Tuple[bool, ...] = ()
    nulls_last: bool = False
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        descending = self.descending
        if isinstance(descending, bool):
            descending = (descending,) * len(self.by)
        _set(self, by=tuple(self.by), descending=tuple(descending) or (False,) * len(self.by))
        if not self.by:
            raise PlanValidationError("Sort operation must specify at least one sort key")
        if len(self.descending) != len(self.by):
            raise PlanValidationError(
                f"Sort got {len(self.descending)} descending flags for {len(self.by)} keys"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "sort",
            "by": [e.to_dict() for e in self.by],
            "descending": list(self.descending),
            "nulls_last": self.nulls_last,
            **self._inputs_dict(),
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Sort":
        return cls(
            inputs=inputs,
            by=_exprs(data, "by"),
            descending=tuple(data.get("descending", ())),
            nulls_last=data.get("nulls_last", False),
        )


@dataclass(frozen=True, eq=False)
class Join(Operation):
    """Equi-join or cross join of two plans.

    Aliases: ``left`` / ``right`` → ``inputs[0]`` / ``inputs[1]``.
    """

    left_on: Tuple[Expression, ...] = ()
    right_on: Tuple[Expression, ...] = ()
    how: JoinType = JoinType.INNER
    suffix: str = "_right"
    allow_parallel: bool = True
    force_parallel: bool = False
    left: Optional[Operation] = field(default=None, repr=False)
    right: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _set(
            self,
            inputs=_resolve_inputs(self.inputs, left=self.left, right=self.right),
            left=None,
            right=None,
            left_on=tuple(self.left_on),
            right_on=tuple(self.right_on),
            how=parse_option(JoinType, self.how, "Join type"),
        )
        if len(self.inputs) != 2:
            raise PlanValidationError("Join operation must have exactly two inputs")
        if len(self.left_on) != len(self.right_on):
            raise PlanValidationError(
                f"Join key arity mismatch: {len(self.left_on)} left keys and {len(self.right_on)} right keys"
            )
        if self.how is not JoinType.CROSS and not self.left_on:
            raise PlanValidationError(f"A '{self.how.value}' join must specify join keys")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "join",
            "left_on": [e.to_dict() for e in self.left_on],
            "right_on": [e.to_dict() for e in self.right_on],
            "how": self.how.value,
            "suffix": self.suffix,
            "allow_parallel": self.allow_parallel,
            "force_parallel": self.force_parallel,
            "inputs": [inp.to_dict() for inp in self.inputs],
        }

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Join":
        return cls(
            inputs=inputs,
            left_on=_exprs(data, "left_on"),
            right_on=_exprs(data, "right_on"),
            how=data.get("how", "inner"),
            suffix=data.get("suffix", "_right"),
            allow_parallel=data.get("allow_parallel", True),
            force_parallel=data.get("force_parallel", False),
        )


@dataclass(frozen=True, eq=False)
class DropNulls(Operation):
    """Drop rows holding a null in ``subset`` (every column when None).

    Aliases: ``input`` → ``inputs[0]``.
    """

    subset: Optional[Tuple[str, ...]] = None
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        if self.subset is not None:
            _set(self, subset=tuple(self.subset))

    def to_dict(self) -> Dict[str, Any]:
        subset = None if self.subset is None else list(self.subset)
        return {"type": "drop_nulls", "subset": subset, **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "DropNulls":
        return cls(inputs=inputs, subset=data.get("subset"))


@dataclass(frozen=True, eq=False)
class Cache(Operation):
    """Marks a sub-plan whose result is computed once per collect.

    Aliases: ``input`` → ``inputs[0]``.
    """

    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "cache", **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Cache":
        return cls(inputs=inputs)


@dataclass(frozen=True, eq=False)
class Drop(Operation):
    """Remove named columns.

    Aliases: ``input`` → ``inputs[0]``.
    """

    columns: Tuple[str, ...] = ()
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        _set(self, columns=tuple(self.columns))
        if not self.columns:
            raise PlanValidationError("Drop operation must specify at least one column")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "drop", "columns": list(self.columns), **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Drop":
        return cls(inputs=inputs, columns=tuple(data.get("columns", ())))


@dataclass(frozen=True, eq=False)
class Explode(Operation):
    """Flatten List columns into one row per element.

    Aliases: ``input`` → ``inputs[0]``.
    """

    columns: Tuple[str, ...] = ()
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        _set(self, columns=tuple(self.columns))
        if not self.columns:
            raise PlanValidationError("Explode operation must specify at least one column")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "explode", "columns": list(self.columns), **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Explode":
        return cls(inputs=inputs, columns=tuple(data.get("columns", ())))


@dataclass(frozen=True, eq=False)
class Slice(Operation):
    """Row range; a negative offset counts from the end.

    Aliases: ``input`` → ``inputs[0]``.
    """

    offset: int = 0
    length: Optional[int] = None
    input: Optional[Operation] = field(default=None, repr=False)

    def __post_init__(self):
        _unary(self)
        if self.length is not None and self.length < 0:
            raise PlanValidationError("Slice length must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "slice", "offset": self.offset, "length": self.length, **self._inputs_dict()}

    @classmethod
    def _from_dict(cls, data: Dict[str, Any], inputs: Tuple[Operation, ...]) -> "Slice":
        return cls(inputs=inputs, offset=data.get("offset", 0), length=data.get("length"))

