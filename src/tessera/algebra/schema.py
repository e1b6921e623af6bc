"""
Static schema resolution.

Computes the output column names and dtypes of expressions and plan nodes without
executing anything, so ``LazyFrame.schema`` and ``describe_plan`` never touch data.
"""

from __future__ import annotations

from typing import Dict

from ..core.join import JoinType
from ..core.series import arithmetic_dtype
from ..datatypes import Boolean, DataType, Float64, List, String, UInt32, infer_dtype, supertype
from ..exceptions import DtypeError, DuplicateNameError, NotFoundError
from .expressions import (
    Alias,
    Arithmetic,
    BinaryOp,
    Cast,
    Column,
    Expression,
    FillNull,
    Literal,
    MapFn,
    StringFunction,
    UnaryOp,
    output_name,
)
from .operations import (
    Cache,
    Drop,
    DropNulls,
    Explode,
    Filter,
    Join,
    Operation,
    Select,
    Slice,
    Sort,
    Source,
    WithColumns,
)

Schema = Dict[str, DataType]

_STRING_RESULTS = {
    "contains": Boolean,
    "contains_literal": Boolean,
    "starts_with": Boolean,
    "ends_with": Boolean,
    "extract": String,
    "extract_all": List(String),
    "lengths": UInt32,
}


def expression_dtype(expr: Expression, schema: Schema) -> DataType:
    """Data type ``expr`` produces when evaluated against a table of ``schema``.

    Raises:
        NotFoundError: If a referenced column is not in ``schema``
        DtypeError: If the operand types are incompatible
    """
    match expr:
        case Column(name=name):
            if name not in schema:
                raise NotFoundError(f"Column '{name}' not found; available columns: {list(schema)}")
            return schema[name]
        case Literal(value=value, dtype=dtype):
            return dtype or infer_dtype(value) or Float64
        case Arithmetic(left=left, right=right):
            ldtype = expression_dtype(left, schema)
            rdtype = expression_dtype(right, schema)
            if ldtype == String and rdtype == String:
                return String
            scalar = right.value if isinstance(right, Literal) and right.dtype is None else None
            return arithmetic_dtype(ldtype, rdtype, scalar)
        case BinaryOp(left=left, right=right):
            expression_dtype(left, schema)
            expression_dtype(right, schema)
            return Boolean
        case UnaryOp(op="neg", operand=operand):
            return expression_dtype(operand, schema)
        case UnaryOp(operand=operand):
            expression_dtype(operand, schema)
            return Boolean
        case StringFunction(kind=kind, target=target):
            if expression_dtype(target, schema) != String:
                raise DtypeError(f"String function '{kind}' requires a String column")
            return _STRING_RESULTS[kind]
        case Cast(dtype=dtype, target=target):
            expression_dtype(target, schema)
            return dtype
        case MapFn(inputs=inputs, output_type=output_type):
            for e in inputs:
                expression_dtype(e, schema)
            return output_type
        case Alias(target=target) | FillNull(target=target):
            return expression_dtype(target, schema)
        case _:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")


def plan_schema(op: Operation) -> Schema:
    """Output schema of a plan node, in column order."""
    match op:
        case Source(df=df, projection=projection):
            schema = df.schema
            if projection is None:
                return schema
            return {name: schema[name] for name in projection}

        case Select(exprs=exprs, inputs=[child]):
            below = plan_schema(child)
            out: Schema = {}
            for e in exprs:
                name = output_name(e)
                if name in out:
                    raise DuplicateNameError(f"Selection produces column '{name}' more than once")
                out[name] = expression_dtype(e, below)
            return out

        case WithColumns(exprs=exprs, inputs=[child]):
            below = plan_schema(child)
            out = dict(below)
            for e in exprs:
                out[output_name(e)] = expression_dtype(e, below)
            return out

        case Sort(by=by, inputs=[child]):
            below = plan_schema(child)
            for e in by:
                expression_dtype(e, below)
            return below

        case Filter(predicate=predicate, inputs=[child]):
            below = plan_schema(child)
            expression_dtype(predicate, below)
            return below

        case Cache(inputs=[child]) | Slice(inputs=[child]):
            return plan_schema(child)

        case DropNulls(subset=subset, inputs=[child]):
            below = plan_schema(child)
            for name in subset or ():
                if name not in below:
                    raise NotFoundError(f"Column '{name}' not found; available columns: {list(below)}")
            return below

        case Drop(columns=columns, inputs=[child]):
            below = plan_schema(child)
            for name in columns:
                if name not in below:
                    raise NotFoundError(f"Column '{name}' not found; available columns: {list(below)}")
            return {name: dtype for name, dtype in below.items() if name not in columns}

        case Explode(columns=columns, inputs=[child]):
            out = dict(plan_schema(child))
            for name in columns:
                if name not in out:
                    raise NotFoundError(f"Column '{name}' not found; available columns: {list(out)}")
                if not out[name].is_nested:
                    raise DtypeError(f"explode requires a List column, got {out[name]}")
                out[name] = out[name].inner
            return out

        case Join(inputs=[left, right]):
            return join_schema(op, plan_schema(left), plan_schema(right))

        case _:
            raise TypeError(f"Unknown operation type: {type(op).__name__}")


def join_schema(op: Join, left: Schema, right: Schema) -> Schema:
    out = dict(left)
    if op.how is JoinType.CROSS:
        dropped = set()
    else:
        dropped = {e.name for e in op.right_on if isinstance(e, Column)}
        if op.how in (JoinType.RIGHT, JoinType.FULL):
            for lk, rk in zip(op.left_on, op.right_on):
                if isinstance(lk, Column) and lk.name in out:
                    out[lk.name] = supertype(out[lk.name], expression_dtype(rk, right))
    for name, dtype in right.items():
        if name in dropped:
            continue
        if name in out:
            name = f"{name}{op.suffix}"
            if name in out:
                raise DuplicateNameError(
                    f"Right column collides with '{name}' even after appending suffix '{op.suffix}'"
                )
        out[name] = dtype
    return out
