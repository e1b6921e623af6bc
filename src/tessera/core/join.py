"""
Join engine shared by DataFrame.join and the lazy executor.

Equi-joins build a hash index on the smaller side's key codes and probe it with the
other side. Key tuples are first mapped onto dense integer codes over both sides at
once (after casting each key pair to its supertype), so multi-column keys hash as a
single integer. Null keys never match.

Output order is deterministic:
- inner / left / full: ordered by left row, then right row; unmatched right rows of a
  full join follow in right order
- right: ordered by right row, then left row
- cross: left-major Cartesian product
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Sequence, Set, Tuple, Union

import numpy as np

from .. import config
from ..datatypes import supertype
from ..exceptions import DuplicateNameError, DtypeError, NotFoundError, ShapeError
from .ordering import group_ids

if TYPE_CHECKING:
    from .series import Series

logger = logging.getLogger(__name__)

KeySpec = Union[str, "Series"]


class JoinType(str, Enum):
    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    FULL = "full"
    CROSS = "cross"


def join_columns(
    left: Sequence["Series"],
    right: Sequence["Series"],
    left_on: Sequence[KeySpec],
    right_on: Sequence[KeySpec],
    how: JoinType,
    suffix: str = "_right",
    allow_parallel: bool = True,
    force_parallel: bool = False,
) -> List["Series"]:
    """Join two column lists and return the output columns.

    Keys given as names refer to columns of their side; a right key given by name is
    dropped from the output, and for right/full joins the matching left key column is
    coalesced with the right key values. Keys given as Series are used as computed
    key columns and are not added to the output.

    Args:
        left: Columns of the left table
        right: Columns of the right table
        left_on: Left key names or key Series
        right_on: Right key names or key Series, same arity as ``left_on``
        how: Join type
        suffix: Appended to right column names that collide with left names
        allow_parallel: Probe large inputs on a thread pool
        force_parallel: Probe on a thread pool regardless of input size

    Returns:
        The joined columns, left columns first

    Raises:
        ShapeError: If the key lists differ in arity or are empty for an equi-join
        NotFoundError: If a key name is not a column of its side
        DtypeError: If a key pair has no common type
        DuplicateNameError: If a suffixed right column still collides
    """
    left_height = len(left[0]) if left else 0
    right_height = len(right[0]) if right else 0

    if how is JoinType.CROSS:
        left_idx = np.repeat(np.arange(left_height, dtype=np.int64), right_height)
        right_idx = np.tile(np.arange(right_height, dtype=np.int64), left_height)
        return _assemble(left, right, left_idx, right_idx, [], [], suffix)

    if len(left_on) != len(right_on):
        raise ShapeError(
            f"Join key arity mismatch: {len(left_on)} left keys and {len(right_on)} right keys"
        )
    if not left_on:
        raise ShapeError(f"A '{how.value}' join needs at least one key column")

    left_keys = [_resolve_key(left, key, "left") for key in left_on]
    right_keys = [_resolve_key(right, key, "right") for key in right_on]
    for key, height, side in ((left_keys, left_height, "left"), (right_keys, right_height, "right")):
        for series in key:
            if len(series) != height:
                raise ShapeError(f"Key column '{series.name}' does not match the {side} table height")

    casted = _cast_keys(left_keys, right_keys)
    left_codes, right_codes = _key_codes(casted, left_height)

    build_right = len(right_codes) <= len(left_codes)
    build, probe = (right_codes, left_codes) if build_right else (left_codes, right_codes)
    index = _build_index(build)
    probe_pos, build_pos = _probe_all(index, probe, allow_parallel, force_parallel)
    logger.debug(
        "%s join: built index on %s side (%d keys), %d matched pairs",
        how.value, "right" if build_right else "left", len(index), len(probe_pos),
    )
    if build_right:
        left_idx, right_idx = probe_pos, build_pos
    else:
        left_idx, right_idx = build_pos, probe_pos

    left_idx, right_idx = _arrange(left_idx, right_idx, left_height, right_height, how)

    right_key_names = [k for k in right_on if isinstance(k, str)]
    coalesce = [
        (lk, casted[i][0], casted[i][1])
        for i, (lk, rk) in enumerate(zip(left_on, right_on))
        if isinstance(lk, str)
    ]
    if how not in (JoinType.RIGHT, JoinType.FULL):
        coalesce = []
    return _assemble(left, right, left_idx, right_idx, right_key_names, coalesce, suffix)


def _resolve_key(columns: Sequence["Series"], key: KeySpec, side: str) -> "Series":
    if not isinstance(key, str):
        return key
    for series in columns:
        if series.name == key:
            return series
    raise NotFoundError(f"Join key '{key}' not found in {side} table")


def _cast_keys(
    left_keys: Sequence["Series"], right_keys: Sequence["Series"]
) -> List[Tuple["Series", "Series"]]:
    pairs = []
    for lk, rk in zip(left_keys, right_keys):
        try:
            target = supertype(lk.dtype, rk.dtype)
        except DtypeError:
            raise DtypeError(
                f"Cannot join key '{lk.name}' of type {lk.dtype} with '{rk.name}' of type {rk.dtype}"
            ) from None
        pairs.append((lk.cast(target), rk.cast(target)))
    return pairs


def _key_codes(
    casted: Sequence[Tuple["Series", "Series"]], left_height: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Integer code per row on each side; equal key tuples share a code, nulls are -1."""
    combined = []
    valid = None
    for lk, rk in casted:
        both = lk.alias(lk.name)
        both.append(rk)
        combined.append(both)
        mask = both.is_not_null().to_numpy()
        valid = mask if valid is None else valid & mask
    ids, _ = group_ids(combined)
    codes = np.where(valid, ids, -1)
    return codes[:left_height], codes[left_height:]


def _build_index(codes: np.ndarray) -> Dict[int, np.ndarray]:
    """Map each non-null key code to the ascending row positions holding it."""
    order = np.argsort(codes, kind="stable")
    sorted_codes = codes[order]
    uniques, starts = np.unique(sorted_codes, return_index=True)
    bounds = np.append(starts, len(sorted_codes))
    return {
        int(code): order[bounds[i]:bounds[i + 1]]
        for i, code in enumerate(uniques)
        if code >= 0
    }


def _probe(index: Dict[int, np.ndarray], codes: np.ndarray, offset: int) -> Tuple[np.ndarray, np.ndarray]:
    probe_parts = []
    build_parts = []
    for i, code in enumerate(codes.tolist()):
        hits = index.get(code)
        if hits is None:
            continue
        probe_parts.append(np.full(len(hits), offset + i, dtype=np.int64))
        build_parts.append(hits)
    if not probe_parts:
        return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.int64)
    return np.concatenate(probe_parts), np.concatenate(build_parts).astype(np.int64)


def _probe_all(
    index: Dict[int, np.ndarray],
    codes: np.ndarray,
    allow_parallel: bool,
    force_parallel: bool,
) -> Tuple[np.ndarray, np.ndarray]:
    threads = config.max_threads()
    parallel = force_parallel or (allow_parallel and len(codes) >= config.PARALLEL_MIN_ROWS)
    if not parallel or threads < 2 or len(codes) < 2:
        return _probe(index, codes, 0)

    n_parts = min(threads, len(codes))
    bounds = np.linspace(0, len(codes), n_parts + 1).astype(np.int64)
    logger.debug("Probing %d rows in %d partitions", len(codes), n_parts)
    with ThreadPoolExecutor(max_workers=n_parts) as pool:
        futures = [
            pool.submit(_probe, index, codes[bounds[i]:bounds[i + 1]], int(bounds[i]))
            for i in range(n_parts)
        ]
        results = [f.result() for f in futures]
    return (
        np.concatenate([r[0] for r in results]),
        np.concatenate([r[1] for r in results]),
    )


def _arrange(
    left_idx: np.ndarray,
    right_idx: np.ndarray,
    left_height: int,
    right_height: int,
    how: JoinType,
) -> Tuple[np.ndarray, np.ndarray]:
    """Add unmatched rows for outer joins and put the pairs in output order."""
    if how in (JoinType.LEFT, JoinType.FULL):
        unmatched = np.setdiff1d(np.arange(left_height, dtype=np.int64), left_idx)
        left_idx = np.concatenate([left_idx, unmatched])
        right_idx = np.concatenate([right_idx, np.full(len(unmatched), -1, dtype=np.int64)])

    if how is JoinType.RIGHT:
        unmatched = np.setdiff1d(np.arange(right_height, dtype=np.int64), right_idx)
        left_idx = np.concatenate([left_idx, np.full(len(unmatched), -1, dtype=np.int64)])
        right_idx = np.concatenate([right_idx, unmatched])
        order = np.lexsort((left_idx, right_idx))
        return left_idx[order], right_idx[order]

    order = np.lexsort((right_idx, left_idx))
    left_idx, right_idx = left_idx[order], right_idx[order]

    if how is JoinType.FULL:
        unmatched = np.setdiff1d(np.arange(right_height, dtype=np.int64), right_idx)
        left_idx = np.concatenate([left_idx, np.full(len(unmatched), -1, dtype=np.int64)])
        right_idx = np.concatenate([right_idx, unmatched])
    return left_idx, right_idx


def _gather(series: "Series", positions: np.ndarray) -> "Series":
    missing = positions < 0
    return series._take_positions(positions, missing if missing.any() else None)


def _assemble(
    left: Sequence["Series"],
    right: Sequence["Series"],
    left_idx: np.ndarray,
    right_idx: np.ndarray,
    right_key_names: Sequence[str],
    coalesce: Sequence[Tuple[str, "Series", "Series"]],
    suffix: str,
) -> List["Series"]:
    coalesced = {name: (lk, rk) for name, lk, rk in coalesce}
    out: List["Series"] = []
    for series in left:
        if series.name in coalesced:
            lk, rk = coalesced[series.name]
            from_left = _gather(lk, left_idx)
            from_right = _gather(rk, right_idx)
            out.append(from_left.zip_with(from_left.is_not_null(), from_right).alias(series.name))
        else:
            out.append(_gather(series, left_idx))

    taken: Set[str] = {s.name for s in out}
    dropped = set(right_key_names)
    for series in right:
        if series.name in dropped:
            continue
        name = series.name
        if name in taken:
            name = f"{name}{suffix}"
            if name in taken:
                raise DuplicateNameError(
                    f"Column '{series.name}' from the right table collides with '{name}' even after "
                    f"appending suffix '{suffix}'"
                )
        taken.add(name)
        out.append(_gather(series, right_idx).alias(name))
    return out
