"""
Lazy query algebra.

This module defines the intermediate representation behind ``LazyFrame``: an
immutable, serializable tree of operations over expression ASTs that can be
inspected, optimized, and executed against eager DataFrames.

Key components:
- LogicalPlan: Container for the operation tree
- Operation classes: Source, Select, Filter, WithColumns, Sort, Join, DropNulls,
                     Cache, Drop, Explode, Slice
- Expression AST: Column, Literal, Compare, Arithmetic, BooleanCombine, UnaryOp,
                  StringFunction, Cast, MapFn, Alias, FillNull
- Optimizer: filter fusion, predicate pushdown, projection pushdown
"""

from .logical_plan import LogicalPlan
from .operations import (
    Operation,
    Source,
    Select,
    Filter,
    WithColumns,
    Sort,
    Join,
    DropNulls,
    Cache,
    Drop,
    Explode,
    Slice,
)
from .expressions import (
    Expression,
    Column,
    Literal,
    BinaryOp,
    Compare,
    Arithmetic,
    BooleanCombine,
    UnaryOp,
    StringFunction,
    Cast,
    MapFn,
    Alias,
    FillNull,
    col,
    lit,
)
from .eager import evaluate_expression, execute
from .optimizer import Optimizer, optimize_plan
from .schema import expression_dtype, plan_schema

__all__ = [
    "LogicalPlan",
    "Operation",
    "Source",
    "Select",
    "Filter",
    "WithColumns",
    "Sort",
    "Join",
    "DropNulls",
    "Cache",
    "Drop",
    "Explode",
    "Slice",
    "Expression",
    "Column",
    "Literal",
    "BinaryOp",
    "Compare",
    "Arithmetic",
    "BooleanCombine",
    "UnaryOp",
    "StringFunction",
    "Cast",
    "MapFn",
    "Alias",
    "FillNull",
    "col",
    "lit",
    "evaluate_expression",
    "execute",
    "Optimizer",
    "optimize_plan",
    "expression_dtype",
    "plan_schema",
]
