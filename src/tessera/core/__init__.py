"""
Core module for tessera.

This module provides the eager Series and DataFrame types, the join engine, and the
LazyFrame builder that records operations in a logical plan.
"""

from .series import Series
from .dataframe import DataFrame
from .lazyframe import LazyFrame
from .join import JoinType
from .ordering import FillNullStrategy, UniqueKeep

__all__ = ["Series", "DataFrame", "LazyFrame", "JoinType", "FillNullStrategy", "UniqueKeep"]
