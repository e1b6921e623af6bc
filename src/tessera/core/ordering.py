"""Ordering, grouping and null-policy primitives shared by Series and DataFrame.

Every ordering in the engine goes through integer *sort keys*: each non-null value is
replaced by its dense rank under the dtype's natural order (numbers by value, strings by
code point, ``False < True``), nulls get a rank below or above every value depending on
``nulls_last``. Multi-column sorts stack the keys and use a stable lexicographic sort, so
ties always keep input order and the result never depends on how work was split.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Sequence, Tuple, Type, TypeVar, Union

import numpy as np

from ..exceptions import DtypeError, ShapeError, UnsupportedOption

if TYPE_CHECKING:
    from .series import Series

_E = TypeVar("_E", bound=Enum)


def parse_option(enum_cls: Type[_E], token: Union[str, _E], what: str) -> _E:
    """Resolve an enumerated option token, raising UnsupportedOption when unknown."""
    if isinstance(token, enum_cls):
        return token
    try:
        return enum_cls(token)
    except ValueError:
        valid = ", ".join(repr(member.value) for member in enum_cls)
        raise UnsupportedOption(f"{what} {token!r} is not supported; expected one of {valid}") from None


class FillNullStrategy(str, Enum):
    MIN = "min"
    MAX = "max"
    MEAN = "mean"
    ZERO = "zero"
    ONE = "one"


class UniqueKeep(str, Enum):
    FIRST = "first"
    LAST = "last"


def dense_ranks(values: np.ndarray) -> Tuple[np.ndarray, int]:
    """Rank each element among the distinct values of ``values`` (0-based)."""
    if len(values) == 0:
        return np.empty(0, dtype=np.int64), 0
    try:
        uniques, inverse = np.unique(values, return_inverse=True)
    except TypeError:
        raise DtypeError(f"Values of type {values.dtype} have no natural order") from None
    return inverse.reshape(-1).astype(np.int64, copy=False), len(uniques)


def sort_key(series: "Series", descending: bool = False, nulls_last: bool = False) -> np.ndarray:
    """Integer key whose ascending order is the requested order of ``series``."""
    if series.dtype.is_nested:
        raise DtypeError(f"Cannot sort a column of type {series.dtype}")
    values, validity = series._contiguous()
    keys = np.empty(len(values), dtype=np.int64)
    if validity is None:
        ranks, n_distinct = dense_ranks(values)
        keys[:] = ranks
    else:
        ranks, n_distinct = dense_ranks(values[validity])
        keys[validity] = ranks
    if descending:
        if validity is None:
            keys = (n_distinct - 1) - keys
        else:
            keys[validity] = (n_distinct - 1) - keys[validity]
    if validity is not None:
        keys[~validity] = n_distinct if nulls_last else -1
    return keys


def argsort_keys(keys: Sequence[np.ndarray]) -> np.ndarray:
    """Stable lexicographic argsort; ``keys[0]`` is the primary key."""
    if len(keys) == 1:
        return np.argsort(keys[0], kind="stable")
    return np.lexsort(tuple(reversed(keys)))


def argsort_columns(
    columns: Sequence["Series"],
    descending: Union[bool, Sequence[bool]] = False,
    nulls_last: bool = False,
) -> np.ndarray:
    """Row order sorting ``columns`` lexicographically."""
    if isinstance(descending, bool):
        descending = [descending] * len(columns)
    if len(descending) != len(columns):
        raise ShapeError(
            f"Got {len(descending)} descending flags for {len(columns)} sort keys"
        )
    keys = [sort_key(c, d, nulls_last) for c, d in zip(columns, descending)]
    return argsort_keys(keys)


def _codes(series: "Series") -> np.ndarray:
    """Per-row code where equal values (and all nulls) share a code."""
    values, validity = series._contiguous()
    if series.dtype.is_nested:
        seen: dict = {}
        codes = np.empty(len(values), dtype=np.int64)
        for i, cell in enumerate(values):
            key = None if (validity is not None and not validity[i]) else _hashable(cell)
            codes[i] = seen.setdefault(key, len(seen))
        return codes
    return sort_key(series, nulls_last=True)


def _hashable(cell: "Series") -> tuple:
    return tuple(_hashable(v) if hasattr(v, "to_list") else v for v in cell.to_list())


def group_ids(columns: Sequence["Series"]) -> Tuple[np.ndarray, int]:
    """Assign each row a group id; rows with equal key tuples share an id.

    Nulls compare equal to each other for grouping. Ids are dense, ``0..n_groups-1``,
    and deterministic for a given input.
    """
    if not columns:
        raise ShapeError("Grouping needs at least one column")
    height = len(columns[0])
    if height == 0:
        return np.empty(0, dtype=np.int64), 0
    codes = [_codes(c) for c in columns]
    if len(codes) == 1:
        return dense_ranks(codes[0])
    stacked = np.stack(codes, axis=1)
    uniques, inverse = np.unique(stacked, axis=0, return_inverse=True)
    return inverse.reshape(-1).astype(np.int64, copy=False), len(uniques)


def first_occurrences(ids: np.ndarray, n_groups: int) -> np.ndarray:
    """Index of the first row of each group, in group-id order."""
    if n_groups == 0:
        return np.empty(0, dtype=np.int64)
    _, first = np.unique(ids, return_index=True)
    return first.astype(np.int64)


def last_occurrences(ids: np.ndarray, n_groups: int) -> np.ndarray:
    """Index of the last row of each group, in group-id order."""
    if n_groups == 0:
        return np.empty(0, dtype=np.int64)
    _, first_from_end = np.unique(ids[::-1], return_index=True)
    return (len(ids) - 1 - first_from_end).astype(np.int64)


def keep_indices(ids: np.ndarray, n_groups: int, keep: UniqueKeep, maintain_order: bool) -> np.ndarray:
    """Surviving row positions of a dedup over ``ids``."""
    if keep is UniqueKeep.FIRST:
        picked = first_occurrences(ids, n_groups)
    else:
        picked = last_occurrences(ids, n_groups)
    if maintain_order:
        return np.sort(picked)
    return picked


def group_sizes(ids: np.ndarray, n_groups: int) -> np.ndarray:
    return np.bincount(ids, minlength=n_groups)

