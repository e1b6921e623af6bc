"""
LazyFrame: a composable, unexecuted query over eager tables.

Every builder method wraps the current plan root in a new operation node and returns
a new LazyFrame; the receiver is left untouched, so one LazyFrame can seed any number
of branches. Nothing runs until ``collect``.

Example:
    >>> df = DataFrame({"foo": [1, 2, 3], "bar": [6, 7, 8]})
    >>> out = df.lazy().filter(col("foo") < 3).select(["foo"]).collect()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Union

from .. import config
from ..algebra.eager import execute
from ..algebra.expressions import Expression, col
from ..algebra.logical_plan import LogicalPlan
from ..algebra.operations import (
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
from ..algebra.optimizer import Optimizer
from ..algebra.schema import plan_schema
from ..datatypes import DataType
from ..exceptions import DtypeError
from .join import JoinType

if TYPE_CHECKING:
    from .dataframe import DataFrame

logger = logging.getLogger(__name__)

IntoExpr = Union[str, Expression]


def _to_expr(value: IntoExpr) -> Expression:
    if isinstance(value, Expression):
        return value
    if isinstance(value, str):
        return col(value)
    raise DtypeError(f"Expected a column name or Expression, got {type(value).__name__}")


def _to_exprs(values: Union[IntoExpr, Sequence[IntoExpr]]) -> List[Expression]:
    if isinstance(values, (str, Expression)):
        return [_to_expr(values)]
    return [_to_expr(v) for v in values]


def _to_names(columns: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(columns, str):
        return [columns]
    return list(columns)


class LazyFrame:
    """An immutable handle on a logical plan."""

    def __init__(self, root: Operation):
        self._root = root

    @classmethod
    def from_frame(cls, df: "DataFrame", name: str = "df") -> "LazyFrame":
        """Start a plan from an eager table; the table is captured by a cheap clone."""
        return cls(Source(df=df.clone(), name=name))

    @property
    def plan(self) -> LogicalPlan:
        return LogicalPlan(self._root)

    def _then(self, op: Operation) -> "LazyFrame":
        return LazyFrame(op)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def select(self, exprs: Union[IntoExpr, Sequence[IntoExpr]]) -> "LazyFrame":
        return self._then(Select(exprs=_to_exprs(exprs), input=self._root))

    def filter(self, predicate: Expression) -> "LazyFrame":
        if not isinstance(predicate, Expression):
            raise DtypeError(f"filter expects a Boolean Expression, got {type(predicate).__name__}")
        return self._then(Filter(predicate=predicate, input=self._root))

    def with_column(self, expr: Expression) -> "LazyFrame":
        return self.with_columns([expr])

    def with_columns(self, exprs: Sequence[Expression]) -> "LazyFrame":
        """Add or replace columns; each expression sees the input table, not its siblings."""
        return self._then(WithColumns(exprs=_to_exprs(exprs), input=self._root))

    def sort(
        self,
        by: Union[IntoExpr, Sequence[IntoExpr]],
        descending: Union[bool, Sequence[bool]] = False,
        nulls_last: bool = False,
    ) -> "LazyFrame":
        return self.sort_by_exprs(by, descending, nulls_last)

    def sort_by_exprs(
        self,
        exprs: Union[IntoExpr, Sequence[IntoExpr]],
        descending: Union[bool, Sequence[bool]] = False,
        nulls_last: bool = False,
    ) -> "LazyFrame":
        """Stable sort by one or more key expressions.

        Args:
            exprs: Keys, most significant first
            descending: One flag for every key, or a flag per key
            nulls_last: Place nulls after every non-null value

        Raises:
            PlanValidationError: If the number of flags does not match the number of keys
        """
        flags = descending if isinstance(descending, bool) else tuple(descending)
        return self._then(Sort(by=_to_exprs(exprs), descending=flags, nulls_last=nulls_last, input=self._root))

    def join(
        self,
        other: Union["LazyFrame", "DataFrame"],
        left_on: Union[IntoExpr, Sequence[IntoExpr], None] = None,
        right_on: Union[IntoExpr, Sequence[IntoExpr], None] = None,
        how: Union[str, JoinType] = JoinType.INNER,
        suffix: str = "_right",
        on: Union[IntoExpr, Sequence[IntoExpr], None] = None,
        allow_parallel: bool = True,
        force_parallel: bool = False,
    ) -> "LazyFrame":
        """Join with another plan.

        Keys given as column names (or bare ``col`` references) are matched by name;
        other expressions are evaluated on their side and used as the key.

        Raises:
            UnsupportedOption: If ``how`` is not a known join type
            PlanValidationError: If the key lists differ in length
        """
        if not isinstance(other, LazyFrame):
            other = other.lazy()
        if on is not None:
            left_on = right_on = on
        left_keys = [] if left_on is None else _to_exprs(left_on)
        right_keys = [] if right_on is None else _to_exprs(right_on)
        return self._then(Join(
            left_on=left_keys,
            right_on=right_keys,
            how=how,
            suffix=suffix,
            allow_parallel=allow_parallel,
            force_parallel=force_parallel,
            left=self._root,
            right=other._root,
        ))

    def drop_nulls(self, subset: Union[str, Sequence[str], None] = None) -> "LazyFrame":
        names = None if subset is None else _to_names(subset)
        return self._then(DropNulls(subset=names, input=self._root))

    def drop(self, columns: Union[str, Sequence[str]]) -> "LazyFrame":
        return self._then(Drop(columns=_to_names(columns), input=self._root))

    def explode(self, columns: Union[str, Sequence[str]]) -> "LazyFrame":
        return self._then(Explode(columns=_to_names(columns), input=self._root))

    def cache(self) -> "LazyFrame":
        """Mark this plan so repeated references run it once per collect."""
        return self._then(Cache(input=self._root))

    def slice(self, offset: int, length: Optional[int] = None) -> "LazyFrame":
        return self._then(Slice(offset=offset, length=length, input=self._root))

    def head(self, length: Optional[int] = None) -> "LazyFrame":
        if length is None:
            length = config.DEFAULT_HEAD_LENGTH
        return self.slice(0, length)

    def tail(self, length: Optional[int] = None) -> "LazyFrame":
        if length is None:
            length = config.DEFAULT_HEAD_LENGTH
        if length == 0:
            return self.slice(0, 0)
        return self.slice(-length, length)

    def limit(self, length: int) -> "LazyFrame":
        return self.head(length)

    def clone(self) -> "LazyFrame":
        """Another handle on the same plan; nodes are immutable and shared."""
        return LazyFrame(self._root)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def schema(self) -> Dict[str, DataType]:
        """Output column names and types, resolved without executing the plan."""
        return plan_schema(self._root)

    @property
    def columns(self) -> List[str]:
        return list(self.schema)

    def describe_plan(self) -> str:
        return self.plan.explain()

    def describe_optimized_plan(self) -> str:
        return Optimizer().optimize(self.plan).explain()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def collect(self, optimize: bool = True) -> "DataFrame":
        """Execute the plan and return the resulting table.

        Args:
            optimize: Run filter fusion, predicate pushdown and projection pushdown first

        Raises:
            NotFoundError: If an expression references a missing column
        """
        plan = self.plan
        if optimize:
            plan = Optimizer().optimize(plan)
        logger.debug("Collecting plan rooted at %s", type(plan.root).__name__)
        return execute(plan.root)

    def __repr__(self) -> str:
        return f"<LazyFrame>\n{self.describe_plan()}"
