"""
Series: a named, typed, chunked column with a validity mask.

A Series is a tuple of chunks. Each chunk pairs a read-only numpy buffer with an
optional read-only boolean validity mask (``None`` means no nulls). Buffers are never
written after construction, so cloning a Series only copies the chunk tuple, and
mutating methods (``rename``, ``append``, ``extend``, ``rechunk(in_place=True)``)
replace this handle's tuple without being visible through earlier clones.

Null slots hold a placeholder in the buffer (``0``, ``False``, ``""`` or ``None``) and
are masked out by the validity array. Every element-wise operation propagates nulls:
a position that is null in any operand is null in the result.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterator, List as PyList, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .. import config
from ..datatypes import (
    Boolean,
    DataType,
    Float64,
    Int64,
    List,
    String,
    UInt8,
    UInt32,
    Value,
    infer_dtype,
    integer_bounds,
    supertype,
    to_value,
)
from ..exceptions import ComputeError, DtypeError, OutOfBoundsError, ShapeError
from .ordering import (
    FillNullStrategy,
    argsort_columns,
    first_occurrences,
    group_ids,
    parse_option,
    sort_key,
)


class _Chunk(NamedTuple):
    values: np.ndarray
    validity: Optional[np.ndarray]


def _freeze(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


def _object_array(items: Sequence[Any]) -> np.ndarray:
    out = np.empty(len(items), dtype=object)
    for i, item in enumerate(items):
        out[i] = item
    return out


def _and_validity(left: Optional[np.ndarray], right: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if left is None:
        return right
    if right is None:
        return left
    return left & right


class Series:
    """A named column of values of one DataType.

    Example:
        >>> s = Series("x", [1, None, 3])
        >>> s.dtype
        Int64
        >>> s.fill_null("zero").to_list()
        [1, 0, 3]
    """

    def __init__(
        self,
        name: str = "",
        values: Any = None,
        dtype: Optional[DataType] = None,
        strict: bool = True,
    ):
        """Build a Series.

        Args:
            name: Column name
            values: A sequence of Values (``None`` for null), a numpy array, a sequence
                of Series (one List cell per Series), or another Series
            dtype: Declared type; inferred from the values when omitted
            strict: When False, values that cannot be coerced become null instead of
                raising

        Raises:
            DtypeError: If a value cannot be coerced into ``dtype``
        """
        self._name = name
        if isinstance(values, Series):
            self._dtype = values._dtype
            self._chunks = values._chunks
            if dtype is not None and dtype != values._dtype:
                casted = values.cast(dtype, strict=strict)
                self._dtype, self._chunks = casted._dtype, casted._chunks
            return
        if isinstance(values, np.ndarray):
            self._dtype, chunk = _chunk_from_buffer(values)
            self._chunks = (chunk,)
            if dtype is not None and dtype != self._dtype:
                casted = self.cast(dtype, strict=strict)
                self._dtype, self._chunks = casted._dtype, casted._chunks
            return
        items = [] if values is None else list(values)
        if dtype is None:
            dtype = _infer_sequence_dtype(items)
        self._dtype = dtype
        self._chunks = (_chunk_from_sequence(items, dtype, strict),)

    # ------------------------------------------------------------------
    # Internal constructors and accessors
    # ------------------------------------------------------------------

    @classmethod
    def _from_chunks(cls, name: str, dtype: DataType, chunks: Tuple[_Chunk, ...]) -> "Series":
        out = cls.__new__(cls)
        out._name = name
        out._dtype = dtype
        out._chunks = chunks
        return out

    @classmethod
    def _from_arrays(
        cls,
        name: str,
        dtype: DataType,
        values: np.ndarray,
        validity: Optional[np.ndarray] = None,
    ) -> "Series":
        if validity is not None:
            validity = np.asarray(validity, dtype=bool)
            if validity.all():
                validity = None
            else:
                validity = _freeze(validity)
        return cls._from_chunks(name, dtype, (_Chunk(_freeze(values), validity),))

    def _contiguous(self) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Values and validity of the whole column as single arrays."""
        if len(self._chunks) == 1:
            return self._chunks[0]
        if not self._chunks:
            return np.empty(0, dtype=self._dtype.numpy_dtype), None
        values = np.concatenate([c.values for c in self._chunks])
        if all(c.validity is None for c in self._chunks):
            return values, None
        validity = np.concatenate([
            c.validity if c.validity is not None else np.ones(len(c.values), dtype=bool)
            for c in self._chunks
        ])
        return values, validity

    def _validity_mask(self) -> np.ndarray:
        values, validity = self._contiguous()
        if validity is None:
            return np.ones(len(values), dtype=bool)
        return validity

    def _with_arrays(self, values: np.ndarray, validity: Optional[np.ndarray], dtype: Optional[DataType] = None) -> "Series":
        return Series._from_arrays(self._name, dtype or self._dtype, values, validity)

    def _take_positions(self, positions: np.ndarray, null_mask: Optional[np.ndarray] = None) -> "Series":
        """Gather rows by position; rows flagged in ``null_mask`` become null."""
        values, validity = self._contiguous()
        positions = np.asarray(positions, dtype=np.int64)
        if null_mask is not None and null_mask.any():
            if len(values) == 0:
                out_values = np.full(len(positions), self._dtype.placeholder, dtype=self._dtype.numpy_dtype)
                out_validity = np.zeros(len(positions), dtype=bool)
                return self._with_arrays(out_values, out_validity)
            safe = np.where(null_mask, 0, positions)
            out_values = values[safe]
            out_values[null_mask] = self._dtype.placeholder
            base = validity[safe] if validity is not None else np.ones(len(safe), dtype=bool)
            return self._with_arrays(out_values, base & ~null_mask)
        out_values = values[positions]
        out_validity = validity[positions] if validity is not None else None
        return self._with_arrays(out_values, out_validity)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def full(cls, name: str, value: Value, length: int, dtype: Optional[DataType] = None) -> "Series":
        """Series of ``length`` copies of ``value`` (all null when ``value`` is None)."""
        dtype = dtype or infer_dtype(value) or Float64
        if value is None:
            values = np.full(length, dtype.placeholder, dtype=dtype.numpy_dtype)
            return cls._from_arrays(name, dtype, values, np.zeros(length, dtype=bool))
        coerced = _coerce(value, dtype)
        if coerced is None:
            raise DtypeError(f"Cannot store {value!r} in a column of type {dtype}")
        if dtype.numpy_dtype == np.dtype(object):
            return cls._from_arrays(name, dtype, _object_array([coerced] * length))
        return cls._from_arrays(name, dtype, np.full(length, coerced, dtype=dtype.numpy_dtype))

    @classmethod
    def from_pandas(cls, series: pd.Series, name: Optional[str] = None) -> "Series":
        """Convert a pandas Series; pandas missing values (NaN, None, NA) become null."""
        name = str(series.name) if name is None and series.name is not None else (name or "")
        missing = pd.isna(series).to_numpy(dtype=bool)
        np_dtype = getattr(series.dtype, "numpy_dtype", series.dtype)
        if isinstance(np_dtype, np.dtype) and np_dtype.kind in "biuf":
            values = series.to_numpy(dtype=np_dtype, na_value=0) if missing.any() else series.to_numpy(dtype=np_dtype)
            return cls._from_arrays(name, DataType.from_numpy(np_dtype), np.array(values, copy=True), ~missing)
        items = [None if gone else v for v, gone in zip(series.tolist(), missing)]
        return cls(name, items)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def dtype(self) -> DataType:
        return self._dtype

    @property
    def inner_dtype(self) -> Optional[DataType]:
        return self._dtype.inner

    def __len__(self) -> int:
        return sum(len(c.values) for c in self._chunks)

    def len(self) -> int:
        return len(self)

    def chunk_lengths(self) -> PyList[int]:
        return [len(c.values) for c in self._chunks]

    def n_chunks(self) -> int:
        return len(self._chunks)

    def null_count(self) -> int:
        return int(sum(
            len(c.validity) - int(c.validity.sum()) for c in self._chunks if c.validity is not None
        ))

    def estimated_size(self) -> int:
        """Approximate number of bytes held by the column's buffers."""
        total = 0
        for chunk in self._chunks:
            if self._dtype == String:
                total += sum(len(v.encode("utf-8")) for v in chunk.values) + 8 * len(chunk.values)
            elif self._dtype.is_nested:
                total += sum(v.estimated_size() for v in chunk.values if v is not None) + 8 * len(chunk.values)
            else:
                total += chunk.values.nbytes
            if chunk.validity is not None:
                total += chunk.validity.nbytes
        return total

    def __repr__(self) -> str:
        shown = self.head(config.repr_rows()).to_list()
        body = "\n".join(f"\t{'null' if v is None else v!r}" for v in shown)
        more = "\n\t…" if len(self) > len(shown) else ""
        return f"shape: ({len(self)},)\nSeries: '{self._name}' [{self._dtype}]\n[\n{body}{more}\n]"

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def get(self, index: int) -> Value:
        """Value at ``index``.

        Raises:
            OutOfBoundsError: If ``index`` is negative or not below the length
        """
        if index < 0 or index >= len(self):
            raise OutOfBoundsError(f"Index {index} is out of bounds for Series of length {len(self)}")
        for chunk in self._chunks:
            if index < len(chunk.values):
                if chunk.validity is not None and not chunk.validity[index]:
                    return None
                return to_value(self._dtype, chunk.values[index])
            index -= len(chunk.values)
        raise AssertionError("unreachable: index within length but not in any chunk")

    def __getitem__(self, key: Union[int, slice]) -> Union[Value, "Series"]:
        if isinstance(key, slice):
            start, stop, step = key.indices(len(self))
            if step == 1:
                return self.slice(start, max(stop - start, 0))
            return self._take_positions(np.arange(start, stop, step))
        if key < 0:
            key += len(self)
        return self.get(key)

    def __iter__(self) -> Iterator[Value]:
        return iter(self.to_list())

    def to_list(self) -> PyList[Value]:
        values, validity = self._contiguous()
        if self._dtype.numpy_dtype == np.dtype(object):
            out = list(values)
        else:
            out = values.tolist()
        if validity is not None:
            for i in np.flatnonzero(~validity):
                out[i] = None
        return out

    def to_numpy(self) -> np.ndarray:
        """Copy of the values; nulls become NaN for floats and None otherwise."""
        values, validity = self._contiguous()
        if validity is None:
            return values.copy()
        if self._dtype.is_float:
            out = values.copy()
            out[~validity] = np.nan
            return out
        out = values.astype(object)
        out[~validity] = None
        return out

    def to_pandas(self) -> pd.Series:
        """Convert to pandas, using nullable extension arrays for masked numeric data."""
        values, validity = self._contiguous()
        mask = np.zeros(len(values), dtype=bool) if validity is None else ~validity
        if self._dtype == Boolean:
            data = pd.arrays.BooleanArray(values.copy(), mask)
        elif self._dtype.is_integer:
            data = pd.arrays.IntegerArray(values.copy(), mask)
        elif self._dtype.is_float:
            data = pd.arrays.FloatingArray(values.copy(), mask)
        elif self._dtype.is_nested:
            data = _object_array([None if v is None else v.to_list() for v in self.to_list()])
        else:
            data = _object_array(self.to_list())
        return pd.Series(data, name=self._name)

    # ------------------------------------------------------------------
    # Structural operations
    # ------------------------------------------------------------------

    def clone(self) -> "Series":
        """Cheap copy sharing this column's buffers."""
        return Series._from_chunks(self._name, self._dtype, self._chunks)

    def rename(self, name: str) -> None:
        """Rename this handle in place."""
        self._name = name

    def alias(self, name: str) -> "Series":
        return Series._from_chunks(name, self._dtype, self._chunks)

    def rechunk(self, in_place: bool = False) -> Optional["Series"]:
        """Consolidate all chunks into one contiguous buffer."""
        values, validity = self._contiguous()
        if validity is not None:
            validity = _freeze(validity)
        chunk = _Chunk(_freeze(values), validity)
        if in_place:
            self._chunks = (chunk,)
            return None
        return Series._from_chunks(self._name, self._dtype, (chunk,))

    def shrink_to_fit(self) -> None:
        self.rechunk(in_place=True)

    def _check_same_dtype(self, other: "Series", action: str) -> None:
        if not isinstance(other, Series):
            raise DtypeError(f"Cannot {action} a {type(other).__name__} to a Series")
        if other._dtype != self._dtype:
            raise DtypeError(f"Cannot {action} Series of type {other._dtype} to Series of type {self._dtype}")

    def append(self, other: "Series") -> None:
        """Append ``other``'s chunks to this column in place without copying data.

        Raises:
            DtypeError: If the dtypes differ
        """
        self._check_same_dtype(other, "append")
        self._chunks = self._chunks + other._chunks

    def extend(self, other: "Series") -> None:
        """Append ``other`` in place, reconciling both into one contiguous buffer.

        Raises:
            DtypeError: If the dtypes differ
        """
        self._check_same_dtype(other, "extend")
        merged = Series._from_chunks(self._name, self._dtype, self._chunks + other._chunks)
        self._chunks = merged.rechunk()._chunks

    def slice(self, offset: int, length: Optional[int] = None) -> "Series":
        """Zero-copy view of ``length`` rows starting at ``offset``.

        A negative offset counts from the end. Offset and length are clamped to the
        available rows instead of failing.
        """
        total = len(self)
        if offset < 0:
            offset = max(total + offset, 0)
        offset = min(offset, total)
        if length is None:
            length = total - offset
        length = max(min(length, total - offset), 0)
        chunks = []
        start = 0
        for chunk in self._chunks:
            n = len(chunk.values)
            lo = max(offset - start, 0)
            hi = min(offset + length - start, n)
            if lo < hi:
                validity = chunk.validity[lo:hi] if chunk.validity is not None else None
                chunks.append(_Chunk(chunk.values[lo:hi], validity))
            start += n
        if not chunks:
            chunks.append(_Chunk(_freeze(np.empty(0, dtype=self._dtype.numpy_dtype)), None))
        return Series._from_chunks(self._name, self._dtype, tuple(chunks))

    def head(self, length: Optional[int] = None) -> "Series":
        return self.slice(0, config.DEFAULT_HEAD_LENGTH if length is None else length)

    def tail(self, length: Optional[int] = None) -> "Series":
        length = config.DEFAULT_HEAD_LENGTH if length is None else length
        return self.slice(max(len(self) - length, 0), length)

    def limit(self, length: int) -> "Series":
        return self.head(length)

    def filter(self, mask: "Series") -> "Series":
        """Keep positions where ``mask`` is true; null mask entries drop the row.

        Raises:
            DtypeError: If ``mask`` is not a Boolean Series
            ShapeError: If ``mask`` length differs
        """
        if not isinstance(mask, Series) or mask.dtype != Boolean:
            raise DtypeError("Expected a boolean mask")
        if len(mask) != len(self):
            raise ShapeError(f"Filter mask of length {len(mask)} does not match Series of length {len(self)}")
        keep = _mask_true(mask)
        values, validity = self._contiguous()
        return self._with_arrays(values[keep], validity[keep] if validity is not None else None)

    def take(self, indices: Union[Sequence[int], np.ndarray, "Series"]) -> "Series":
        """Gather values by 0-based position.

        Raises:
            OutOfBoundsError: If any index is negative or not below the length
        """
        if isinstance(indices, Series):
            return self.take_with_series(indices)
        positions = np.asarray(indices, dtype=np.int64).reshape(-1)
        _check_bounds(positions, len(self))
        return self._take_positions(positions)

    def take_with_series(self, indices: "Series") -> "Series":
        """Gather by an integer index Series; null indices produce null values.

        Raises:
            DtypeError: If ``indices`` is not an integer Series
            OutOfBoundsError: If any index is out of range
        """
        if not indices.dtype.is_integer:
            raise DtypeError(f"Index Series must be of integer type, got {indices.dtype}")
        values, validity = indices._contiguous()
        positions = values.astype(np.int64)
        null_mask = None if validity is None else ~validity
        checked = positions if null_mask is None else positions[~null_mask]
        _check_bounds(checked, len(self))
        return self._take_positions(positions, null_mask)

    def shift(self, periods: int) -> "Series":
        """Shift values by ``periods``; vacated slots become null and length is kept."""
        n = len(self)
        positions = np.arange(n, dtype=np.int64) - periods
        null_mask = (positions < 0) | (positions >= n)
        return self._take_positions(positions, null_mask)

    def drop_nulls(self) -> "Series":
        values, validity = self._contiguous()
        if validity is None:
            return self.clone()
        return self._with_arrays(values[validity], None)

    def explode(self) -> "Series":
        """Flatten a List column; an empty or null list becomes one null row.

        Raises:
            DtypeError: If the column is not a List
        """
        if not self._dtype.is_nested:
            raise DtypeError(f"explode requires a List column, got {self._dtype}")
        items: PyList[Value] = []
        for cell in self.to_list():
            if cell is None or len(cell) == 0:
                items.append(None)
            else:
                items.extend(cell.to_list())
        return Series(self._name, items, dtype=self._dtype.inner)

    def _explode_counts(self) -> np.ndarray:
        """Rows each List cell expands to under ``explode``."""
        return np.array([1 if cell is None else max(len(cell), 1) for cell in self.to_list()], dtype=np.int64)

    def lengths(self) -> "Series":
        """Number of elements in each List cell (null stays null)."""
        if not self._dtype.is_nested:
            raise DtypeError(f"lengths requires a List column, got {self._dtype}")
        values, validity = self._contiguous()
        counts = np.array([0 if v is None else len(v) for v in values], dtype=np.uint32)
        return self._with_arrays(counts, validity, UInt32)

    def sample(
        self,
        n: Optional[int] = None,
        frac: Optional[float] = None,
        with_replacement: bool = False,
        shuffle: bool = False,
        seed: Optional[int] = None,
    ) -> "Series":
        """Random sample of ``n`` rows (or ``frac`` of the rows)."""
        if n is None:
            n = int(round((1.0 if frac is None else frac) * len(self)))
        if n > len(self) and not with_replacement:
            raise ShapeError(f"Cannot take a sample of {n} from {len(self)} rows without replacement")
        rng = np.random.default_rng(seed)
        positions = rng.choice(len(self), size=n, replace=with_replacement)
        if not shuffle:
            positions = np.sort(positions)
        return self._take_positions(positions)

    # ------------------------------------------------------------------
    # Casting
    # ------------------------------------------------------------------

    def cast(self, dtype: DataType, strict: bool = True) -> "Series":
        """Convert to ``dtype``.

        Allowed: numeric/Boolean to numeric (range and integrality checked), 0/1 numbers
        to Boolean, anything flat to String, String parsed into numbers or Boolean, and
        List to List element-wise.

        Raises:
            DtypeError: If no conversion exists, or a value is not representable and
                ``strict`` is True
        """
        if dtype == self._dtype:
            return self.clone()
        values, validity = self._contiguous()
        valid = np.ones(len(values), dtype=bool) if validity is None else validity.copy()
        src = self._dtype

        if (src.is_numeric or src == Boolean) and dtype.is_numeric:
            out = _cast_numeric(values, valid, src, dtype, strict)
        elif src.is_numeric and dtype == Boolean:
            bad = valid & ~np.isin(values, (0, 1))
            _reject(bad, values, src, dtype, strict)
            valid &= ~bad
            out = np.where(valid, values, 0).astype(bool)
        elif dtype == String and not src.is_nested:
            out = _object_array([_format_value(src, v) if ok else "" for v, ok in zip(values, valid)])
        elif src == String and (dtype.is_numeric or dtype == Boolean):
            parsed = [_parse_string(v, dtype) if ok else None for v, ok in zip(values, valid)]
            bad = np.array([ok and p is None for p, ok in zip(parsed, valid)], dtype=bool)
            _reject(bad, values, src, dtype, strict)
            valid &= ~bad
            out = np.array([dtype.placeholder if p is None else p for p in parsed], dtype=dtype.numpy_dtype)
        elif src.is_nested and dtype.is_nested:
            out = _object_array([v.cast(dtype.inner, strict) if v is not None else None for v in values])
        else:
            raise DtypeError(f"Cannot cast {src} to {dtype}")
        return Series._from_arrays(self._name, dtype, out, valid)

    def to_physical(self) -> "Series":
        if self._dtype == Boolean:
            return self.cast(UInt8)
        return self.clone()

    # ------------------------------------------------------------------
    # Arithmetic, comparison and boolean logic
    # ------------------------------------------------------------------

    def _operand(self, other: Any, action: str) -> Tuple[Any, Optional[np.ndarray], DataType, bool]:
        """Right operand as (values, validity, dtype, is_scalar)."""
        if isinstance(other, Series):
            if len(other) != len(self):
                raise ShapeError(
                    f"Cannot {action} Series of length {len(self)} and {len(other)}"
                )
            values, validity = other._contiguous()
            return values, validity, other._dtype, False
        if other is None:
            return None, np.zeros(len(self), dtype=bool), self._dtype, True
        return other, None, infer_dtype(other), True

    def _arithmetic(self, other: Any, op: str) -> "Series":
        rvalues, rvalid, rdtype, scalar = self._operand(other, op)
        lvalues, lvalid = self._contiguous()
        validity = _and_validity(lvalid, rvalid)
        if op == "add" and self._dtype == String and rdtype == String:
            if rvalues is None:
                rvalues = ""
            return self._with_arrays(lvalues + rvalues, validity, String)
        for dt in (self._dtype, rdtype):
            if not dt.is_numeric:
                raise DtypeError(f"Arithmetic '{op}' is not defined for {self._dtype} and {rdtype}")
        target = arithmetic_dtype(self._dtype, rdtype, other if scalar else None)
        np_type = target.numpy_dtype
        left = lvalues.astype(np_type, copy=False)
        try:
            right = np.asarray(0 if rvalues is None else rvalues).astype(np_type, copy=False)
        except OverflowError as e:
            raise DtypeError(f"Scalar {other!r} does not fit in {target}") from e
        if scalar:
            right = np.broadcast_to(right, left.shape)

        with np.errstate(all="ignore"):
            if op == "add":
                out = np.add(left, right)
            elif op == "sub":
                out = np.subtract(left, right)
            elif op == "mul":
                out = np.multiply(left, right)
            elif target.is_float:
                out = np.true_divide(left, right) if op == "div" else np.fmod(left, right)
            else:
                out = _integer_division(left, right, validity, op)
        return self._with_arrays(np.asarray(out, dtype=np_type), validity, target)

    def add(self, other: Any) -> "Series":
        return self._arithmetic(other, "add")

    def sub(self, other: Any) -> "Series":
        return self._arithmetic(other, "sub")

    def mul(self, other: Any) -> "Series":
        return self._arithmetic(other, "mul")

    def div(self, other: Any) -> "Series":
        """Element-wise division.

        Floats follow IEEE rules. Integers truncate toward zero.

        Raises:
            ComputeError: On integer division by zero at a non-null position
        """
        return self._arithmetic(other, "div")

    def rem(self, other: Any) -> "Series":
        return self._arithmetic(other, "rem")

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __truediv__ = div
    __mod__ = rem

    def __neg__(self) -> "Series":
        if not self._dtype.is_numeric:
            raise DtypeError(f"Negation is not defined for {self._dtype}")
        values, validity = self._contiguous()
        return self._with_arrays(np.negative(values), validity)

    def _compare(self, other: Any, op: Callable[[Any, Any], Any], symbol: str) -> "Series":
        rvalues, rvalid, rdtype, scalar = self._operand(other, f"compare ({symbol})")
        lvalues, lvalid = self._contiguous()
        validity = _and_validity(lvalid, rvalid)
        comparable = (
            (self._dtype.is_numeric and rdtype.is_numeric)
            or (self._dtype == rdtype and not self._dtype.is_nested)
        )
        if not comparable:
            raise DtypeError(f"Cannot compare {self._dtype} with {rdtype}")
        if rvalues is None:
            out = np.zeros(len(lvalues), dtype=bool)
        else:
            out = np.asarray(op(lvalues, rvalues), dtype=bool)
        if validity is not None:
            out = np.where(validity, out, False)
        return self._with_arrays(out, validity, Boolean)

    def eq(self, other: Any) -> "Series":
        return self._compare(other, np.equal, "==")

    def neq(self, other: Any) -> "Series":
        return self._compare(other, np.not_equal, "!=")

    def lt(self, other: Any) -> "Series":
        return self._compare(other, np.less, "<")

    def lte(self, other: Any) -> "Series":
        return self._compare(other, np.less_equal, "<=")

    def gt(self, other: Any) -> "Series":
        return self._compare(other, np.greater, ">")

    def gte(self, other: Any) -> "Series":
        return self._compare(other, np.greater_equal, ">=")

    def _logical(self, other: Any, op: Callable[[Any, Any], Any], name: str) -> "Series":
        rvalues, rvalid, rdtype, _ = self._operand(other, name)
        if self._dtype != Boolean or rdtype != Boolean:
            raise DtypeError(f"Bitwise '{name}' is only defined for Boolean columns, got {self._dtype} and {rdtype}")
        lvalues, lvalid = self._contiguous()
        validity = _and_validity(lvalid, rvalid)
        out = np.zeros(len(lvalues), dtype=bool) if rvalues is None else op(lvalues, rvalues)
        if validity is not None:
            out = np.where(validity, out, False)
        return self._with_arrays(np.asarray(out, dtype=bool), validity, Boolean)

    def bitand(self, other: Any) -> "Series":
        return self._logical(other, np.logical_and, "and")

    def bitor(self, other: Any) -> "Series":
        return self._logical(other, np.logical_or, "or")

    def bitxor(self, other: Any) -> "Series":
        return self._logical(other, np.logical_xor, "xor")

    __and__ = bitand
    __or__ = bitor
    __xor__ = bitxor

    def not_(self) -> "Series":
        if self._dtype != Boolean:
            raise DtypeError(f"Logical not is only defined for Boolean columns, got {self._dtype}")
        values, validity = self._contiguous()
        out = ~values
        if validity is not None:
            out = np.where(validity, out, False)
        return self._with_arrays(out, validity)

    __invert__ = not_

    # ------------------------------------------------------------------
    # Null handling
    # ------------------------------------------------------------------

    def is_null(self) -> "Series":
        return Series._from_arrays(self._name, Boolean, ~self._validity_mask())

    def is_not_null(self) -> "Series":
        return Series._from_arrays(self._name, Boolean, self._validity_mask().copy())

    def _float_check(self, check: Callable[[np.ndarray], np.ndarray], default: bool) -> "Series":
        values, validity = self._contiguous()
        if self._dtype.is_float:
            out = check(values)
        elif self._dtype.is_numeric:
            out = np.full(len(values), default, dtype=bool)
        else:
            raise DtypeError(f"Float checks are not defined for {self._dtype}")
        if validity is not None:
            out = np.where(validity, out, False)
        return self._with_arrays(out, validity, Boolean)

    def is_nan(self) -> "Series":
        return self._float_check(np.isnan, False)

    def is_not_nan(self) -> "Series":
        return self._float_check(lambda v: ~np.isnan(v), True)

    def is_finite(self) -> "Series":
        return self._float_check(np.isfinite, True)

    def is_infinite(self) -> "Series":
        return self._float_check(np.isinf, False)

    def fill_null(self, strategy: Union[str, FillNullStrategy]) -> "Series":
        """Replace nulls using ``strategy`` (min, max, mean, zero, one).

        ``mean`` on an integer column truncates the mean to the column's type.

        Raises:
            UnsupportedOption: If ``strategy`` is not a known token
            DtypeError: If ``min``/``max``/``mean`` is used on a non-numeric column,
                or ``zero``/``one`` on a column that is neither numeric nor Boolean
        """
        strategy = parse_option(FillNullStrategy, strategy, "Fill strategy")
        if strategy in (FillNullStrategy.MIN, FillNullStrategy.MAX, FillNullStrategy.MEAN):
            if not self._dtype.is_numeric:
                raise DtypeError(f"Fill strategy '{strategy.value}' requires a numeric column, got {self._dtype}")
        elif not (self._dtype.is_numeric or self._dtype == Boolean):
            raise DtypeError(f"Fill strategy '{strategy.value}' is not defined for {self._dtype}")

        values, validity = self._contiguous()
        if validity is None:
            return self.clone()
        if strategy is FillNullStrategy.MIN:
            fill = self.min()
        elif strategy is FillNullStrategy.MAX:
            fill = self.max()
        elif strategy is FillNullStrategy.MEAN:
            fill = self.mean()
            if fill is not None and self._dtype.is_integer:
                fill = int(fill)
        else:
            fill = 0 if strategy is FillNullStrategy.ZERO else 1
        if fill is None:
            return self.clone()
        out = np.where(validity, values, np.asarray(fill).astype(self._dtype.numpy_dtype))
        return self._with_arrays(out.astype(self._dtype.numpy_dtype, copy=False), None)

    def zip_with(self, mask: "Series", other: "Series") -> "Series":
        """Take from this column where ``mask`` is true, otherwise from ``other``."""
        if mask.dtype != Boolean:
            raise DtypeError("Expected a boolean mask")
        if len(mask) != len(self) or len(other) != len(self):
            raise ShapeError("zip_with requires the mask and both columns to have equal length")
        target = supertype(self._dtype, other._dtype)
        left = self.cast(target)
        right = other.cast(target)
        lvalues, _ = left._contiguous()
        rvalues, _ = right._contiguous()
        pick = _mask_true(mask)
        out = np.where(pick, lvalues, rvalues)
        validity = np.where(pick, left._validity_mask(), right._validity_mask())
        return Series._from_arrays(self._name, target, out.astype(target.numpy_dtype, copy=False), validity)

    # ------------------------------------------------------------------
    # Sorting and uniqueness
    # ------------------------------------------------------------------

    def argsort(self, descending: bool = False, nulls_last: bool = False, maintain_order: bool = False) -> "Series":
        """Positions that would sort the column.

        Ties always keep their input order, so ``maintain_order`` never changes the
        result.
        """
        order = argsort_columns([self], descending, nulls_last)
        return Series._from_arrays(self._name, UInt32, order.astype(np.uint32))

    def sort(self, descending: bool = False, nulls_last: bool = False) -> "Series":
        return self._take_positions(argsort_columns([self], descending, nulls_last))

    def unique(self) -> "Series":
        """Distinct values in sorted order, nulls last."""
        ids, n_groups = group_ids([self])
        return self._take_positions(first_occurrences(ids, n_groups))

    def unique_stable(self) -> "Series":
        """Distinct values in order of first occurrence."""
        return self._take_positions(self._arg_unique())

    def _arg_unique(self) -> np.ndarray:
        ids, n_groups = group_ids([self])
        return np.sort(first_occurrences(ids, n_groups))

    def arg_unique(self) -> "Series":
        return Series._from_arrays(self._name, UInt32, self._arg_unique().astype(np.uint32))

    def n_unique(self) -> int:
        return group_ids([self])[1]

    def is_first(self) -> "Series":
        """True at the first occurrence of each distinct value."""
        out = np.zeros(len(self), dtype=bool)
        out[self._arg_unique()] = True
        return Series._from_arrays(self._name, Boolean, out)

    def arg_min(self) -> Optional[int]:
        """Position of the smallest non-null value, or None on an all-null column."""
        if len(self) == self.null_count():
            return None
        return int(np.argmin(sort_key(self, descending=False, nulls_last=True)))

    def arg_max(self) -> Optional[int]:
        """Position of the largest non-null value, or None on an all-null column."""
        if len(self) == self.null_count():
            return None
        return int(np.argmin(sort_key(self, descending=True, nulls_last=True)))

    # ------------------------------------------------------------------
    # Aggregations
    # ------------------------------------------------------------------

    def _valid_numbers(self) -> np.ndarray:
        source = self.cast(UInt8) if self._dtype == Boolean else self
        if not source._dtype.is_numeric:
            raise DtypeError(f"Numeric aggregation is not defined for {self._dtype}")
        values, validity = source._contiguous()
        return values if validity is None else values[validity]

    def sum(self) -> Union[int, float]:
        values = self._valid_numbers()
        if self._dtype.is_float:
            return float(values.sum())
        return int(values.sum())

    def mean(self) -> Optional[float]:
        values = self._valid_numbers()
        return float(values.mean()) if len(values) else None

    def median(self) -> Optional[float]:
        values = self._valid_numbers()
        return float(np.median(values)) if len(values) else None

    def min(self) -> Value:
        position = self.arg_min()
        return None if position is None else self.get(position)

    def max(self) -> Value:
        position = self.arg_max()
        return None if position is None else self.get(position)

    def dot(self, other: "Series") -> Optional[float]:
        """Sum of element-wise products over positions where both sides are non-null."""
        if not (self._dtype.is_numeric and other.dtype.is_numeric):
            raise DtypeError(f"dot is only defined for numeric columns, got {self._dtype} and {other.dtype}")
        if len(other) != len(self):
            raise ShapeError(f"Cannot compute dot of Series of length {len(self)} and {len(other)}")
        both = self._validity_mask() & other._validity_mask()
        if not both.any():
            return None
        left, _ = self._contiguous()
        right, _ = other._contiguous()
        return float(np.dot(left[both].astype(np.float64), right[both].astype(np.float64)))

    def series_equal(self, other: "Series", null_equal: bool = False) -> bool:
        """Structural equality of values and dtype (names are ignored).

        With ``null_equal`` two nulls (or two NaNs) at the same position are equal;
        otherwise any null makes the columns unequal.
        """
        if not isinstance(other, Series) or other._dtype != self._dtype or len(other) != len(self):
            return False
        lmask = self._validity_mask()
        rmask = other._validity_mask()
        if not null_equal and not (lmask.all() and rmask.all()):
            return False
        if not np.array_equal(lmask, rmask):
            return False
        lvalues, _ = self._contiguous()
        rvalues, _ = other._contiguous()
        if self._dtype.is_nested:
            return all(
                a.series_equal(b, null_equal)
                for a, b, ok in zip(lvalues, rvalues, lmask) if ok
            )
        equal = np.asarray(lvalues == rvalues, dtype=bool)
        if self._dtype.is_float and null_equal:
            equal |= np.isnan(lvalues) & np.isnan(rvalues)
        return bool(np.all(equal[lmask]))

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    @property
    def str(self) -> "StringMethods":
        return StringMethods(self)


class StringMethods:
    """String functions over a String Series. Null input yields null output."""

    def __init__(self, series: Series):
        if series.dtype != String:
            raise DtypeError(f"String functions require a String column, got {series.dtype}")
        self._series = series

    def _map(self, function: Callable[[str], Any], dtype: DataType) -> Series:
        values, validity = self._series._contiguous()
        valid = np.ones(len(values), dtype=bool) if validity is None else validity
        results = [function(v) if ok else None for v, ok in zip(values, valid)]
        valid = valid & np.array([r is not None for r in results], dtype=bool)
        if dtype.numpy_dtype == np.dtype(object):
            out = _object_array([dtype.placeholder if r is None else r for r in results])
        else:
            out = np.array([dtype.placeholder if r is None else r for r in results], dtype=dtype.numpy_dtype)
        return Series._from_arrays(self._series.name, dtype, out, valid)

    def contains(self, pattern: str, literal: bool = False) -> Series:
        """True where ``pattern`` (a regular expression unless ``literal``) occurs."""
        if literal:
            return self.contains_literal(pattern)
        regex = _compile(pattern)
        return self._map(lambda v: regex.search(v) is not None, Boolean)

    def contains_literal(self, literal: str) -> Series:
        return self._map(lambda v: literal in v, Boolean)

    def starts_with(self, prefix: str) -> Series:
        return self._map(lambda v: v.startswith(prefix), Boolean)

    def ends_with(self, suffix: str) -> Series:
        return self._map(lambda v: v.endswith(suffix), Boolean)

    def extract(self, pattern: str, group_index: int = 1) -> Series:
        """Capture group ``group_index`` of the first match; null when nothing matches."""
        regex = _compile(pattern)
        if group_index > regex.groups:
            raise ShapeError(f"Pattern {pattern!r} has no capture group {group_index}")

        def first(value: str) -> Optional[str]:
            match = regex.search(value)
            return None if match is None else match.group(group_index)

        return self._map(first, String)

    def extract_all(self, pattern: str) -> Series:
        """Every non-overlapping match of ``pattern`` as a List of strings."""
        regex = _compile(pattern)
        return self._map(
            lambda v: Series("", [m.group(0) for m in regex.finditer(v)], dtype=String),
            List(String),
        )

    def lengths(self) -> Series:
        """Number of characters in each string."""
        return self._map(len, UInt32)


def _compile(pattern: str) -> "re.Pattern[str]":
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ComputeError(f"Invalid regular expression {pattern!r}: {e}") from e


# ----------------------------------------------------------------------
# Module helpers
# ----------------------------------------------------------------------


def _mask_true(mask: Series) -> np.ndarray:
    values, validity = mask._contiguous()
    return values if validity is None else values & validity


def _check_bounds(positions: np.ndarray, length: int) -> None:
    if len(positions) and (positions.min() < 0 or positions.max() >= length):
        bad = positions[(positions < 0) | (positions >= length)][0]
        raise OutOfBoundsError(f"Index {int(bad)} is out of bounds for length {length}")


def _infer_sequence_dtype(items: Sequence[Any]) -> DataType:
    dtype: Optional[DataType] = None
    empty_list = False
    for item in items:
        if isinstance(item, (list, tuple)) and not item:
            # element type unknown
            empty_list = True
            continue
        item_dtype = infer_dtype(item)
        if item_dtype is None:
            continue
        if dtype is None:
            dtype = item_dtype
        elif item_dtype != dtype:
            if (item_dtype == Boolean) != (dtype == Boolean):
                raise DtypeError(f"Cannot mix {dtype} and {item_dtype} values in one column")
            dtype = supertype(dtype, item_dtype)
    if dtype is None:
        return List(Float64) if empty_list else Float64
    return dtype


def _coerce(value: Any, dtype: DataType) -> Any:
    """Physical form of ``value`` for ``dtype``, or None when it does not fit."""
    if dtype == Boolean:
        return bool(value) if isinstance(value, (bool, np.bool_)) else None
    if dtype.is_integer:
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
            return None
        low, high = integer_bounds(dtype)
        return int(value) if low <= int(value) <= high else None
    if dtype.is_float:
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, float, np.integer, np.floating)):
            return None
        return float(value)
    if dtype == String:
        return value if isinstance(value, str) else None
    if dtype.is_nested:
        if isinstance(value, Series):
            return value if value.dtype == dtype.inner else value.cast(dtype.inner)
        if isinstance(value, (list, tuple)):
            return Series("", list(value), dtype=dtype.inner)
        return None
    return None


def _chunk_from_sequence(items: Sequence[Any], dtype: DataType, strict: bool) -> _Chunk:
    physical = []
    validity = np.ones(len(items), dtype=bool)
    for i, item in enumerate(items):
        if item is None:
            physical.append(dtype.placeholder)
            validity[i] = False
            continue
        coerced = _coerce(item, dtype)
        if coerced is None:
            if strict:
                raise DtypeError(f"Value {item!r} cannot be stored in a column of type {dtype}")
            physical.append(dtype.placeholder)
            validity[i] = False
        else:
            physical.append(coerced)
    if dtype.numpy_dtype == np.dtype(object):
        values = _object_array(physical)
    else:
        values = np.array(physical, dtype=dtype.numpy_dtype)
    return _Chunk(_freeze(values), None if validity.all() else _freeze(validity))


def _chunk_from_buffer(array: np.ndarray) -> Tuple[DataType, _Chunk]:
    if array.ndim != 1:
        raise ShapeError(f"Series buffers must be one-dimensional, got {array.ndim} dimensions")
    mask = np.ma.getmaskarray(array) if isinstance(array, np.ma.MaskedArray) else None
    data = np.ma.getdata(array) if mask is not None else array
    dtype = DataType.from_numpy(data.dtype)
    if dtype == String:
        values = _object_array([str(v) for v in data])
    else:
        values = np.array(data, dtype=dtype.numpy_dtype, copy=True)
    validity = None
    if mask is not None and mask.any():
        validity = _freeze(~mask)
    return dtype, _Chunk(_freeze(values), validity)


def arithmetic_dtype(left: DataType, right: DataType, scalar: Any) -> DataType:
    if scalar is None:
        return supertype(left, right)
    if isinstance(scalar, (int, np.integer)) and not isinstance(scalar, (bool, np.bool_)):
        if left.is_float:
            return left
        low, high = integer_bounds(left)
        return left if low <= int(scalar) <= high else supertype(left, Int64)
    if isinstance(scalar, (float, np.floating)):
        return left if left.is_float else Float64
    return supertype(left, right)


def _integer_division(left: np.ndarray, right: np.ndarray, validity: Optional[np.ndarray], op: str) -> np.ndarray:
    zero = right == 0
    if validity is not None:
        zero = zero & validity
    if zero.any():
        raise ComputeError("Integer division by zero")
    right = np.where(right == 0, 1, right).astype(left.dtype, copy=False)
    if op == "rem":
        return np.fmod(left, right)
    quotient = np.floor_divide(left, right)
    remainder = np.remainder(left, right)
    # floor division rounds toward -inf; truncate toward zero instead
    adjust = (remainder != 0) & ((left < 0) != (right < 0))
    return quotient + adjust.astype(left.dtype)


def _reject(bad: np.ndarray, values: np.ndarray, src: DataType, dst: DataType, strict: bool) -> None:
    if strict and bad.any():
        sample = values[np.flatnonzero(bad)[0]]
        raise DtypeError(f"Cannot cast {src} to {dst}: value {sample!r} is not representable")


def _cast_numeric(values: np.ndarray, valid: np.ndarray, src: DataType, dst: DataType, strict: bool) -> np.ndarray:
    if dst.is_integer:
        low, high = integer_bounds(dst)
        if src.is_float:
            with np.errstate(invalid="ignore"):
                bad = valid & ~(np.isfinite(values) & (values == np.trunc(values)))
                bad |= valid & ~bad & ((values < low) | (values > high))
        elif src == Boolean:
            bad = np.zeros(len(values), dtype=bool)
        else:
            as_objects = values.astype(object)
            bad = valid & np.array([not (low <= v <= high) for v in as_objects], dtype=bool)
        _reject(bad, values, src, dst, strict)
        valid &= ~bad
        safe = np.where(valid, values, 0)
        return safe.astype(dst.numpy_dtype)
    return values.astype(dst.numpy_dtype)


def _format_value(dtype: DataType, raw: Any) -> str:
    value = to_value(dtype, raw)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_string(text: str, dtype: DataType) -> Any:
    text = text.strip()
    if dtype == Boolean:
        lowered = text.lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        return None
    try:
        if dtype.is_integer:
            return _coerce(int(text), dtype)
        return float(text)
    except ValueError:
        return None
