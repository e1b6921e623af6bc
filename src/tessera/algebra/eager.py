"""Plan executor: evaluates an operation tree bottom-up into DataFrames.

Every node is executed against concrete, materialized columns. ``Cache`` nodes are
memoized in a per-collect dictionary so a sub-plan referenced from several places
runs once; nothing is memoized across collects.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from ..core.dataframe import DataFrame
from ..core.join import join_columns
from ..core.ordering import argsort_columns
from ..core.series import Series
from ..datatypes import infer_dtype
from ..exceptions import DtypeError, ShapeError
from .expressions import (
    Alias,
    Arithmetic,
    BooleanCombine,
    Cast,
    Column,
    Compare,
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

logger = logging.getLogger(__name__)

_COMPARE_OPS: Dict[str, Callable[[Series, Any], Series]] = {
    ">": Series.gt,
    "<": Series.lt,
    ">=": Series.gte,
    "<=": Series.lte,
    "==": Series.eq,
    "!=": Series.neq,
}

_ARITH_OPS: Dict[str, Callable[[Series, Any], Series]] = {
    "+": Series.add,
    "-": Series.sub,
    "*": Series.mul,
    "/": Series.div,
    "%": Series.rem,
}

_BOOLEAN_OPS: Dict[str, Callable[[Series, Any], Series]] = {
    "and": Series.bitand,
    "or": Series.bitor,
    "xor": Series.bitxor,
}


def _literal_series(value: Any, dtype, name: str = "literal") -> Series:
    return Series.full(name, value, 1, dtype or infer_dtype(value))


def broadcast(series: Series, height: int) -> Series:
    """Repeat a length-1 result to ``height`` rows; other lengths must already match."""
    if len(series) == height:
        return series
    if len(series) == 1:
        return series._take_positions(np.zeros(height, dtype=np.int64))
    raise ShapeError(f"Expression result '{series.name}' has length {len(series)}, expected {height}")


def evaluate_expression(expr: Expression, df: DataFrame) -> Series:
    """Evaluate an Expression AST against a DataFrame, producing a Series.

    Literals evaluate to a single row; binary operations broadcast a single-row
    operand against the other side.
    """
    match expr:
        case Column(name=name):
            return df.column(name)

        case Literal(value=value, dtype=dtype):
            return _literal_series(value, dtype)

        case Compare(op=op, left=left, right=right) | Arithmetic(op=op, left=left, right=right) \
                | BooleanCombine(op=op, left=left, right=right):
            table = {**_COMPARE_OPS, **_ARITH_OPS, **_BOOLEAN_OPS}
            lval = evaluate_expression(left, df)
            if isinstance(right, Literal) and right.dtype is None and not isinstance(expr, BooleanCombine):
                # bare scalars keep the column's dtype where they fit
                return table[op](lval, right.value)
            rval = evaluate_expression(right, df)
            if len(lval) == 1 and len(rval) != 1:
                lval = broadcast(lval, len(rval))
            elif len(rval) == 1 and len(lval) != 1:
                rval = broadcast(rval, len(lval))
            return table[op](lval, rval)

        case UnaryOp(op="neg", operand=operand):
            return -evaluate_expression(operand, df)

        case UnaryOp(op="not", operand=operand):
            return evaluate_expression(operand, df).not_()

        case UnaryOp(op="is_null", operand=operand):
            return evaluate_expression(operand, df).is_null()

        case UnaryOp(op="is_not_null", operand=operand):
            return evaluate_expression(operand, df).is_not_null()

        case StringFunction(kind=kind, target=target, pattern=pattern, group_index=group_index):
            strings = evaluate_expression(target, df).str
            if kind == "lengths":
                return strings.lengths()
            if kind == "extract":
                return strings.extract(pattern, group_index)
            return getattr(strings, kind)(pattern)

        case Cast(target=target, dtype=dtype, strict=strict):
            return evaluate_expression(target, df).cast(dtype, strict=strict)

        case FillNull(target=target, strategy=strategy):
            return evaluate_expression(target, df).fill_null(strategy)

        case Alias(target=target, name=name):
            return evaluate_expression(target, df).alias(name)

        case MapFn(name=name, inputs=inputs, output_type=output_type, function=function):
            args = [evaluate_expression(e, df) for e in inputs]
            result = function(*args)
            if not isinstance(result, Series):
                raise DtypeError(f"Function '{name}' must return a Series, got {type(result).__name__}")
            if result.dtype != output_type:
                result = result.cast(output_type)
            return result

        case _:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")


def evaluate_named(expr: Expression, df: DataFrame) -> Series:
    """Evaluate ``expr`` and name the result after its output name."""
    return evaluate_expression(expr, df).alias(output_name(expr))


def _join_key(expr: Expression, df: DataFrame) -> Union[str, Series]:
    if isinstance(expr, Column):
        return expr.name
    return broadcast(evaluate_named(expr, df), df.height)


def execute(op: Operation, cache: Optional[Dict[int, DataFrame]] = None) -> DataFrame:
    """Recursively execute an operation tree, returning a DataFrame."""
    if cache is None:
        cache = {}
    logger.debug("Executing %s", type(op).__name__)
    match op:
        case Source(df=df, projection=projection):
            if projection is None:
                return df.clone()
            return df.select(list(projection))

        case Select(exprs=exprs, inputs=[child]):
            df = execute(child, cache)
            results = [evaluate_named(e, df) for e in exprs]
            lengths = [len(s) for s in results if len(s) != 1]
            height = lengths[0] if lengths else 1
            return DataFrame([broadcast(s, height) for s in results])

        case Filter(predicate=predicate, inputs=[child]):
            df = execute(child, cache)
            mask = broadcast(evaluate_expression(predicate, df), df.height)
            return df.filter(mask)

        case WithColumns(exprs=exprs, inputs=[child]):
            df = execute(child, cache)
            results = [evaluate_named(e, df) for e in exprs]
            for series in results:
                if df.width:
                    series = broadcast(series, df.height)
                df = df.with_column(series)
            return df

        case Sort(by=by, descending=descending, nulls_last=nulls_last, inputs=[child]):
            df = execute(child, cache)
            keys = [broadcast(evaluate_expression(e, df), df.height) for e in by]
            return df.take(argsort_columns(keys, list(descending), nulls_last))

        case Join(
            left_on=left_on, right_on=right_on, how=how, suffix=suffix,
            allow_parallel=allow_parallel, force_parallel=force_parallel,
            inputs=[left, right],
        ):
            ldf = execute(left, cache)
            rdf = execute(right, cache)
            left_keys = [_join_key(e, ldf) for e in left_on]
            right_keys = [_join_key(e, rdf) for e in right_on]
            return DataFrame(join_columns(
                ldf.get_columns(), rdf.get_columns(), left_keys, right_keys,
                how, suffix, allow_parallel, force_parallel,
            ))

        case DropNulls(subset=subset, inputs=[child]):
            df = execute(child, cache)
            return df.drop_nulls(None if subset is None else list(subset))

        case Cache(inputs=[child]):
            key = id(op)
            if key in cache:
                logger.debug("Cache hit for node %#x", key)
                return cache[key].clone()
            result = execute(child, cache)
            cache[key] = result
            return result.clone()

        case Drop(columns=columns, inputs=[child]):
            df = execute(child, cache)
            for name in columns:
                df = df.drop(name)
            return df

        case Explode(columns=columns, inputs=[child]):
            df = execute(child, cache)
            return df.explode(list(columns))

        case Slice(offset=offset, length=length, inputs=[child]):
            df = execute(child, cache)
            return df.slice(offset, length)

        case _:
            raise TypeError(f"Unknown operation type: {type(op).__name__}")

