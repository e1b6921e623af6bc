"""
Plan visualization utilities.

Provides text-based tree rendering for logical plans. The visualization shows
the operation tree structure with indentation and connectors, making it easy
to understand the dataflow from sources to final result.
"""

from typing import Set

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


def visualize(plan: LogicalPlan) -> str:
    """Generate a text-based tree visualization of the plan.

    Each operation is shown with its key parameters; a node reached a second time
    through a shared sub-plan is printed as ``[already shown]``.

    Args:
        plan: The logical plan to visualize

    Returns:
        A string containing the tree-shaped visualization

    Example:
        >>> plan = LogicalPlan(Filter(predicate=col("a") > 10, input=Source(df=df)))
        >>> print(visualize(plan))
        FILTER (col("a") > 10)
        └── DF ["a", "b"]; PROJECT * (2/2 COLUMNS)
    """
    if not isinstance(plan, LogicalPlan):
        raise TypeError(f"Expected LogicalPlan, got {type(plan)}")

    lines = []
    visited: Set[int] = set()
    _visualize_operation(plan.root, lines, prefix=None, is_last=True, visited=visited)
    return "\n".join(lines)


def _visualize_operation(
    op: Operation,
    lines: list,
    prefix,
    is_last: bool,
    visited: Set[int],
) -> None:
    """Recursively visualize an operation and its inputs.

    Args:
        op: Operation to visualize
        lines: List to append visualization lines to
        prefix: Current prefix string for indentation; None for the root
        is_last: Whether this is the last child of its parent
        visited: Set of operation IDs already visited
    """
    connector = "└── " if is_last else "├── "
    if id(op) in visited:
        lines.append((prefix or "") + connector + "[already shown]")
        return
    visited.add(id(op))

    op_desc = _format_operation(op)
    if prefix is None:
        lines.append(op_desc)
        child_prefix = ""
    else:
        lines.append(prefix + connector + op_desc)
        child_prefix = prefix + ("    " if is_last else "│   ")

    for i, input_op in enumerate(op.inputs):
        _visualize_operation(input_op, lines, child_prefix, i == len(op.inputs) - 1, visited)


def _format_operation(op: Operation) -> str:
    """Format an operation as a one-line description with its key parameters."""
    if isinstance(op, Source):
        names = ", ".join(f'"{name}"' for name in op.df.columns[:4])
        if op.df.width > 4:
            names += ", ..."
        projected = op.df.width if op.projection is None else len(op.projection)
        projection = "*" if op.projection is None else ", ".join(op.projection)
        return f"DF [{names}]; PROJECT {projection} ({projected}/{op.df.width} COLUMNS)"

    elif isinstance(op, Select):
        return f"SELECT [{', '.join(str(e) for e in op.exprs)}]"

    elif isinstance(op, Filter):
        return f"FILTER {op.predicate}"

    elif isinstance(op, WithColumns):
        return f"WITH_COLUMNS [{', '.join(str(e) for e in op.exprs)}]"

    elif isinstance(op, Sort):
        keys = ", ".join(
            f"{e}{' DESC' if desc else ''}" for e, desc in zip(op.by, op.descending)
        )
        nulls = "; NULLS LAST" if op.nulls_last else ""
        return f"SORT BY [{keys}]{nulls}"

    elif isinstance(op, Join):
        if not op.left_on:
            return f"{op.how.value.upper()} JOIN"
        left = ", ".join(str(e) for e in op.left_on)
        right = ", ".join(str(e) for e in op.right_on)
        return f"{op.how.value.upper()} JOIN ON [{left}] == [{right}]"

    elif isinstance(op, DropNulls):
        if op.subset is None:
            return "DROP_NULLS *"
        return f"DROP_NULLS [{', '.join(op.subset)}]"

    elif isinstance(op, Cache):
        return "CACHE"

    elif isinstance(op, Drop):
        return f"DROP [{', '.join(op.columns)}]"

    elif isinstance(op, Explode):
        return f"EXPLODE [{', '.join(op.columns)}]"

    elif isinstance(op, Slice):
        length = "*" if op.length is None else op.length
        return f"SLICE offset={op.offset}, length={length}"

    else:
        return f"{op.__class__.__name__}()"
