"""
Optimization passes for logical plans.

These optimizations operate purely on the plan structure without inspecting data:
- Filter fusion: merge stacked filters into one conjunction
- Predicate pushdown: move filters closer to sources
- Projection pushdown: record on each Source the only columns the plan reads

None of the passes changes a plan's result. Filters never move below Cache, Slice
or Explode, and predicates that call user functions are left in place. A predicate
that can fail (division, remainder, strict cast, user function) is never fused with
the filter below it and never moved below a node that drops rows, so it only sees the
rows it would see unoptimized. Filters also stay above sorts and computed columns
whose expressions can fail.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Set

from ..core.join import JoinType
from .expressions import Column, Expression, contains_map, is_fallible, output_name, referenced_columns
from .logical_plan import LogicalPlan
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
from .schema import plan_schema

logger = logging.getLogger(__name__)


class Optimizer:
    """Optimizes logical plans through structural transformations."""

    def optimize(self, plan: LogicalPlan) -> LogicalPlan:
        """Apply all optimization passes to a plan.

        Args:
            plan: LogicalPlan to optimize

        Returns:
            Optimized LogicalPlan
        """
        self._memo: Dict[int, Operation] = {}
        optimized_root = self._fuse_filters(plan.root)
        self._memo = {}
        optimized_root = self._predicate_pushdown(optimized_root)
        self._memo = {}
        optimized_root = self._projection_pushdown(optimized_root, None)
        return LogicalPlan(optimized_root)

    def _rewrite_inputs(self, op: Operation, rewrite) -> Operation:
        """Apply ``rewrite`` to each input once, keeping shared sub-plans shared."""
        new_inputs = []
        for inp in op.inputs:
            if id(inp) not in self._memo:
                self._memo[id(inp)] = rewrite(inp)
            new_inputs.append(self._memo[id(inp)])
        if any(a is not b for a, b in zip(new_inputs, op.inputs)):
            return self._clone_with_inputs(op, new_inputs)
        return op

    def _fuse_filters(self, op: Operation) -> Operation:
        """Filter(Filter(x, p), q) -> Filter(x, p & q)."""
        op = self._rewrite_inputs(op, self._fuse_filters)
        if isinstance(op, Filter) and isinstance(op.inputs[0], Filter):
            child = op.inputs[0]
            if is_fallible(op.predicate) or is_fallible(child.predicate):
                return op
            logger.debug("Fusing filters %s and %s", child.predicate, op.predicate)
            return Filter(predicate=child.predicate & op.predicate, inputs=child.inputs)
        return op

    def _predicate_pushdown(self, op: Operation) -> Operation:
        """Push filter predicates down toward sources.

        This reduces the amount of data flowing through the plan by filtering early.
        """
        op = self._rewrite_inputs(op, self._predicate_pushdown)
        if not isinstance(op, Filter) or contains_map(op.predicate):
            return op
        return self._push_filter(op.predicate, op.inputs[0], op)

    def _push_filter(self, predicate: Expression, child: Operation, original: Filter) -> Operation:
        """Place ``Filter(predicate)`` as deep below ``child`` as is safe."""
        needed = referenced_columns(predicate)
        fallible = is_fallible(predicate)

        if isinstance(child, (Sort, DropNulls)) or (
            isinstance(child, Drop) and not needed & set(child.columns)
        ):
            if isinstance(child, Sort) and any(is_fallible(e) for e in child.by):
                return self._keep(predicate, child, original)
            if isinstance(child, DropNulls) and fallible:
                return self._keep(predicate, child, original)
            logger.debug("Pushing filter %s below %s", predicate, type(child).__name__)
            pushed = self._push_filter(predicate, child.inputs[0], None)
            return self._clone_with_inputs(child, [pushed])

        if isinstance(child, WithColumns):
            produced = {output_name(e) for e in child.exprs}
            if not needed & produced and not any(is_fallible(e) for e in child.exprs):
                logger.debug("Pushing filter %s below WithColumns", predicate)
                pushed = self._push_filter(predicate, child.inputs[0], None)
                return self._clone_with_inputs(child, [pushed])

        if isinstance(child, Select) and all(isinstance(e, Column) for e in child.exprs):
            if needed <= {e.name for e in child.exprs}:
                logger.debug("Pushing filter %s below Select", predicate)
                pushed = self._push_filter(predicate, child.inputs[0], None)
                return self._clone_with_inputs(child, [pushed])

        if isinstance(child, Join) and not fallible:
            side = self._join_side(child, needed)
            if side is not None:
                logger.debug("Pushing filter %s into %s join input %d", predicate, child.how.value, side)
                inputs = list(child.inputs)
                inputs[side] = self._push_filter(predicate, inputs[side], None)
                return self._clone_with_inputs(child, inputs)

        return self._keep(predicate, child, original)

    @staticmethod
    def _keep(predicate: Expression, child: Operation, original: Optional[Filter]) -> Operation:
        if original is not None and original.inputs[0] is child:
            return original
        return Filter(predicate=predicate, inputs=(child,))

    def _join_side(self, join: Join, needed: Set[str]) -> Optional[int]:
        """Input index a predicate can move into, or None."""
        if join.how is JoinType.CROSS or not needed:
            return None
        left_names = set(plan_schema(join.inputs[0]))
        right_names = set(plan_schema(join.inputs[1]))
        if join.how in (JoinType.INNER, JoinType.LEFT) and needed <= left_names:
            return 0
        if join.how in (JoinType.INNER, JoinType.RIGHT):
            dropped = {e.name for e in join.right_on if isinstance(e, Column)}
            coalesced = (
                {e.name for e in join.left_on if isinstance(e, Column)}
                if join.how is JoinType.RIGHT else set()
            )
            # right columns that reach the output under their own name
            unchanged = (right_names - dropped) - (left_names - coalesced)
            if needed <= unchanged:
                return 1
        return None

    def _projection_pushdown(self, op: Operation, required: Optional[Set[str]]) -> Operation:
        """Record the columns each Source must produce.

        ``required`` is the set of columns read above ``op``; None means every column.
        Shared sub-plans and Join/Cache inputs are treated as needing every column.
        """
        match op:
            case Source():
                if required is None:
                    return op
                available = list(op.df.columns)
                projection = [name for name in available if name in required]
                if not projection and available:
                    # keep one column so the row count survives
                    projection = available[:1]
                if len(projection) == len(available):
                    return op
                logger.debug("Projecting source %s to %s", op.name, projection)
                return replace(op, projection=tuple(projection))
            case Select(exprs=exprs):
                below = set().union(*(referenced_columns(e) for e in exprs))
            case Filter(predicate=predicate):
                below = None if required is None else required | referenced_columns(predicate)
            case WithColumns(exprs=exprs):
                if required is None:
                    below = None
                else:
                    produced = {output_name(e) for e in exprs}
                    below = (required - produced).union(*(referenced_columns(e) for e in exprs))
            case Sort(by=by):
                below = None if required is None else required.union(*(referenced_columns(e) for e in by))
            case DropNulls(subset=subset):
                below = None if required is None or subset is None else required | set(subset)
            case Drop(columns=columns) | Explode(columns=columns):
                below = None if required is None else required | set(columns)
            case Slice():
                below = required
            case _:
                # Join, Cache: every input column may be needed
                if id(op) not in self._memo:
                    self._memo[id(op)] = self._rewrite_inputs(
                        op, lambda inp: self._projection_pushdown(inp, None)
                    )
                return self._memo[id(op)]

        child = op.inputs[0]
        new_child = self._projection_pushdown(child, below)
        if new_child is child:
            return op
        return self._clone_with_inputs(op, [new_child])

    def _clone_with_inputs(self, op: Operation, new_inputs: List[Operation]) -> Operation:
        """Clone an operation with new inputs.

        Args:
            op: Operation to clone
            new_inputs: New input operations

        Returns:
            New operation instance with same parameters but different inputs
        """
        return replace(op, inputs=tuple(new_inputs))


def optimize_plan(plan: LogicalPlan) -> LogicalPlan:
    """Convenience function to optimize a plan.

    Args:
        plan: LogicalPlan to optimize

    Returns:
        Optimized LogicalPlan
    """
    optimizer = Optimizer()
    return optimizer.optimize(plan)
