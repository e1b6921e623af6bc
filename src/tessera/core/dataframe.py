"""
DataFrame: an ordered collection of equally long, uniquely named Series.

Pure methods return a new DataFrame and leave the receiver untouched. In-place
methods (``hstack_mut``, ``vstack_mut``, ``extend``, ``sort_in_place``,
``drop_in_place``, ``replace``, ``replace_at_idx``, ``insert_at_idx``, ``rename``)
edit this handle's column list and return None (``drop_in_place`` returns the removed
column). Columns are shared between frames; a Series is never mutated through a
DataFrame, only replaced.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .. import config
from ..datatypes import Boolean, DataType, UInt32, Value
from ..exceptions import (
    DtypeError,
    DuplicateNameError,
    NotFoundError,
    OutOfBoundsError,
    SchemaMismatchError,
    ShapeError,
)
from .join import JoinType, join_columns
from .ordering import UniqueKeep, argsort_columns, group_ids, group_sizes, keep_indices, parse_option
from .series import Series

if TYPE_CHECKING:
    from .lazyframe import LazyFrame

ColumnNames = Union[str, Sequence[str]]


def _as_names(names: ColumnNames) -> List[str]:
    return [names] if isinstance(names, str) else list(names)


class DataFrame:
    """A table of named, typed columns of equal length.

    Series going in or coming out are cheap clones sharing buffers, so renaming or
    appending to a Series handle never changes a table.

    Example:
        >>> df = DataFrame({"foo": [1, 2, 3], "bar": [6, 7, 8], "ham": ["a", "b", "c"]})
        >>> df.shape
        (3, 3)
        >>> df.filter(df.column("foo").lt(3)).height
        2
    """

    def __init__(self, data: Union[None, Sequence[Series], Mapping[str, Any]] = None):
        """Build a DataFrame from a list of Series or a mapping of name to values.

        Raises:
            ShapeError: If the columns differ in length
            DuplicateNameError: If two columns share a name
        """
        if data is None:
            columns: List[Series] = []
        elif isinstance(data, Mapping):
            columns = [
                values.alias(name) if isinstance(values, Series) else Series(name, values)
                for name, values in data.items()
            ]
        else:
            columns = list(data)
            for series in columns:
                if not isinstance(series, Series):
                    raise DtypeError(f"DataFrame columns must be Series, got {type(series).__name__}")
            columns = [series.clone() for series in columns]
        _validate_columns(columns)
        self._columns = columns

    @classmethod
    def _from_columns(cls, columns: List[Series]) -> "DataFrame":
        out = cls.__new__(cls)
        out._columns = columns
        return out

    @classmethod
    def from_pandas(cls, frame: pd.DataFrame) -> "DataFrame":
        """Convert a pandas DataFrame; pandas missing values become nulls."""
        return cls([Series.from_pandas(frame[name], name=str(name)) for name in frame.columns])

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def height(self) -> int:
        return len(self._columns[0]) if self._columns else 0

    @property
    def width(self) -> int:
        return len(self._columns)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    @property
    def columns(self) -> List[str]:
        return [s.name for s in self._columns]

    @property
    def dtypes(self) -> List[DataType]:
        return [s.dtype for s in self._columns]

    @property
    def schema(self) -> Dict[str, DataType]:
        return {s.name: s.dtype for s in self._columns}

    def __len__(self) -> int:
        return self.height

    def get_columns(self) -> List[Series]:
        return [s.clone() for s in self._columns]

    def find_idx_by_name(self, name: str) -> Optional[int]:
        for i, series in enumerate(self._columns):
            if series.name == name:
                return i
        return None

    def _index_of(self, name: str) -> int:
        idx = self.find_idx_by_name(name)
        if idx is None:
            raise NotFoundError(f"Column '{name}' not found; available columns: {self.columns}")
        return idx

    def column(self, name: str) -> Series:
        """Column by name.

        Raises:
            NotFoundError: If no column has that name
        """
        return self._columns[self._index_of(name)].clone()

    def __getitem__(self, name: str) -> Series:
        return self.column(name)

    def select_at_idx(self, index: int) -> Optional[Series]:
        if 0 <= index < len(self._columns):
            return self._columns[index].clone()
        return None

    def n_chunks(self) -> int:
        """Largest chunk count among the columns."""
        return max((s.n_chunks() for s in self._columns), default=0)

    def estimated_size(self) -> int:
        return sum(s.estimated_size() for s in self._columns)

    def null_count(self) -> "DataFrame":
        """One-row table holding the null count of every column."""
        return DataFrame._from_columns([
            Series(s.name, [s.null_count()], dtype=UInt32) for s in self._columns
        ])

    def __repr__(self) -> str:
        rows = config.repr_rows()
        shown = self.head(rows).to_pandas() if self._columns else pd.DataFrame()
        with pd.option_context("display.max_columns", None, "display.width", 120):
            body = shown.to_string(index=False)
        more = "\n…" if self.height > rows else ""
        header = " | ".join(f"{s.name}: {s.dtype}" for s in self._columns)
        return f"shape: {self.shape}\n{header}\n{body}{more}"

    # ------------------------------------------------------------------
    # Column edits
    # ------------------------------------------------------------------

    def clone(self) -> "DataFrame":
        return DataFrame._from_columns([s.clone() for s in self._columns])

    def _check_height(self, series: Series) -> None:
        if self._columns and len(series) != self.height:
            raise ShapeError(
                f"Column '{series.name}' has length {len(series)}, expected table height {self.height}"
            )

    def with_column(self, series: Series) -> "DataFrame":
        """Add ``series``, replacing a column of the same name in its position.

        Raises:
            ShapeError: If the length differs from the table height (a table without
                columns accepts any length)
        """
        columns = list(self._columns)
        idx = self.find_idx_by_name(series.name)
        self._check_height(series)
        if idx is None:
            columns.append(series.clone())
        else:
            columns[idx] = series.clone()
        return DataFrame._from_columns(columns)

    def hstack(self, columns: Sequence[Series]) -> "DataFrame":
        """New table with ``columns`` appended on the right.

        Raises:
            DuplicateNameError: If an incoming name collides with an existing one
            ShapeError: If an incoming column's length differs from the table height
        """
        out = DataFrame._from_columns(list(self._columns))
        out.hstack_mut(columns)
        return out

    def hstack_mut(self, columns: Sequence[Series]) -> None:
        candidate = self._columns + [s.clone() for s in columns]
        _validate_columns(candidate)
        self._columns = candidate

    def _check_schema(self, other: "DataFrame") -> None:
        if self.columns != other.columns or self.dtypes != other.dtypes:
            raise SchemaMismatchError(
                f"Cannot stack tables with different schemas: {self.schema} and {other.schema}"
            )

    def vstack(self, other: "DataFrame") -> "DataFrame":
        """New table with ``other``'s rows below this table's rows.

        Raises:
            SchemaMismatchError: If names, order or dtypes differ
        """
        out = self.clone()
        out.vstack_mut(other)
        return out

    def vstack_mut(self, other: "DataFrame") -> None:
        """Append ``other``'s rows as new chunks, without copying data."""
        self._check_schema(other)
        stacked = []
        for mine, theirs in zip(self._columns, other._columns):
            series = mine.clone()
            series.append(theirs)
            stacked.append(series)
        self._columns = stacked

    def extend(self, other: "DataFrame") -> None:
        """Append ``other``'s rows, consolidating every column into one buffer."""
        self._check_schema(other)
        extended = []
        for mine, theirs in zip(self._columns, other._columns):
            series = mine.clone()
            series.extend(theirs)
            extended.append(series)
        self._columns = extended

    def drop(self, name: str) -> "DataFrame":
        idx = self._index_of(name)
        return DataFrame._from_columns(self._columns[:idx] + self._columns[idx + 1:])

    def drop_in_place(self, name: str) -> Series:
        """Remove column ``name`` from this table and return it."""
        idx = self._index_of(name)
        columns = list(self._columns)
        removed = columns.pop(idx)
        self._columns = columns
        return removed.clone()

    def select(self, names: ColumnNames) -> "DataFrame":
        """Project columns in the requested order.

        Raises:
            NotFoundError: If a name is missing
            DuplicateNameError: If a name is requested twice
        """
        names = _as_names(names)
        if len(set(names)) != len(names):
            raise DuplicateNameError(f"Column selection repeats a name: {names}")
        return DataFrame._from_columns([self.column(name) for name in names])

    def replace(self, name: str, series: Series) -> None:
        """Replace column ``name`` in place; the column keeps its name and position."""
        idx = self._index_of(name)
        if len(series) != self.height:
            raise ShapeError(f"Replacement has length {len(series)}, expected {self.height}")
        columns = list(self._columns)
        columns[idx] = series.alias(name)
        self._columns = columns

    def replace_at_idx(self, index: int, series: Series) -> None:
        """Replace the column at ``index`` in place with ``series``."""
        if not 0 <= index < self.width:
            raise OutOfBoundsError(f"Column index {index} is out of bounds for width {self.width}")
        if len(series) != self.height:
            raise ShapeError(f"Replacement has length {len(series)}, expected {self.height}")
        columns = list(self._columns)
        columns[index] = series.clone()
        _validate_columns(columns)
        self._columns = columns

    def insert_at_idx(self, index: int, series: Series) -> None:
        if not 0 <= index <= self.width:
            raise OutOfBoundsError(f"Column index {index} is out of bounds for width {self.width}")
        columns = list(self._columns)
        columns.insert(index, series.clone())
        _validate_columns(columns)
        self._columns = columns

    def rename(self, old: str, new: str) -> None:
        """Rename column ``old`` to ``new`` in place."""
        idx = self._index_of(old)
        if new != old and new in self.columns:
            raise DuplicateNameError(f"Cannot rename '{old}' to '{new}': column already exists")
        columns = list(self._columns)
        columns[idx] = columns[idx].alias(new)
        self._columns = columns

    # ------------------------------------------------------------------
    # Row operations
    # ------------------------------------------------------------------

    def _map_columns(self, function) -> "DataFrame":
        return DataFrame._from_columns([function(s) for s in self._columns])

    def filter(self, mask: Series) -> "DataFrame":
        """Keep rows where ``mask`` is true (null counts as false).

        Raises:
            DtypeError: If ``mask`` is not Boolean
            ShapeError: If ``mask`` length differs from the height
        """
        if not isinstance(mask, Series) or mask.dtype != Boolean:
            raise DtypeError("Expected a boolean mask")
        if len(mask) != self.height:
            raise ShapeError(f"Filter mask of length {len(mask)} does not match table height {self.height}")
        return self._map_columns(lambda s: s.filter(mask))

    def take(self, indices: Union[Sequence[int], np.ndarray, Series]) -> "DataFrame":
        """Gather rows by position.

        Raises:
            OutOfBoundsError: If an index is outside the table
        """
        if isinstance(indices, Series):
            return self.take_with_series(indices)
        positions = np.asarray(indices, dtype=np.int64).reshape(-1)
        if len(positions) and (positions.min() < 0 or positions.max() >= self.height):
            raise OutOfBoundsError(f"Row index out of bounds for table height {self.height}")
        return self._map_columns(lambda s: s._take_positions(positions))

    def take_with_series(self, indices: Series) -> "DataFrame":
        if not self._columns:
            raise OutOfBoundsError("Cannot take rows from a table without columns")
        return self._map_columns(lambda s: s.take_with_series(indices))

    def _sort_order(self, by: ColumnNames, descending: Union[bool, Sequence[bool]], nulls_last: bool) -> np.ndarray:
        keys = [self.column(name) for name in _as_names(by)]
        return argsort_columns(keys, descending, nulls_last)

    def sort(
        self,
        by: ColumnNames,
        descending: Union[bool, Sequence[bool]] = False,
        nulls_last: bool = False,
    ) -> "DataFrame":
        """Rows ordered by the columns in ``by``; ties keep their input order."""
        order = self._sort_order(by, descending, nulls_last)
        return self._map_columns(lambda s: s._take_positions(order))

    def sort_in_place(
        self,
        by: ColumnNames,
        descending: Union[bool, Sequence[bool]] = False,
        nulls_last: bool = False,
    ) -> None:
        self._columns = self.sort(by, descending, nulls_last)._columns

    def slice(self, offset: int, length: Optional[int] = None) -> "DataFrame":
        return self._map_columns(lambda s: s.slice(offset, length))

    def head(self, length: Optional[int] = None) -> "DataFrame":
        return self._map_columns(lambda s: s.head(length))

    def tail(self, length: Optional[int] = None) -> "DataFrame":
        return self._map_columns(lambda s: s.tail(length))

    def limit(self, length: int) -> "DataFrame":
        return self.head(length)

    def shift(self, periods: int) -> "DataFrame":
        return self._map_columns(lambda s: s.shift(periods))

    def rechunk(self) -> "DataFrame":
        return self._map_columns(lambda s: s.rechunk())

    def drop_nulls(self, subset: Optional[ColumnNames] = None) -> "DataFrame":
        """Drop rows with a null in any column of ``subset`` (all columns by default)."""
        names = self.columns if subset is None else _as_names(subset)
        if not self._columns:
            return self.clone()
        keep = np.ones(self.height, dtype=bool)
        for name in names:
            keep &= self.column(name)._validity_mask()
        return self.filter(Series("", keep))

    def explode(self, columns: ColumnNames) -> "DataFrame":
        """Flatten List columns, repeating the other columns' values per element.

        Every exploded column must have the same number of elements in each row.
        """
        names = _as_names(columns)
        if not names:
            return self.clone()
        targets = [self.column(name) for name in names]
        counts = targets[0]._explode_counts()
        for series in targets[1:]:
            if not np.array_equal(series._explode_counts(), counts):
                raise ShapeError(f"Exploded columns {names} have different list lengths")
        repeat = np.repeat(np.arange(self.height, dtype=np.int64), counts)
        exploded = {series.name: series.explode() for series in targets}
        return self._map_columns(
            lambda s: exploded[s.name] if s.name in exploded else s._take_positions(repeat)
        )

    # ------------------------------------------------------------------
    # Dedup and equality
    # ------------------------------------------------------------------

    def _group_ids(self, subset: Optional[ColumnNames]) -> Tuple[np.ndarray, int]:
        names = self.columns if subset is None else _as_names(subset)
        if not self._columns:
            return np.empty(0, dtype=np.int64), 0
        return group_ids([self.column(name) for name in names])

    def unique(
        self,
        maintain_order: bool = True,
        subset: Optional[ColumnNames] = None,
        keep: Union[str, UniqueKeep] = UniqueKeep.FIRST,
    ) -> "DataFrame":
        """Drop duplicate rows.

        Args:
            maintain_order: Keep surviving rows in input order; otherwise rows come out
                ordered by their key values
            subset: Columns that define a duplicate (all columns by default)
            keep: Which duplicate survives, ``"first"`` or ``"last"``

        Raises:
            UnsupportedOption: If ``keep`` is not first/last
        """
        keep = parse_option(UniqueKeep, keep, "Unique keep strategy")
        ids, n_groups = self._group_ids(subset)
        positions = keep_indices(ids, n_groups, keep, maintain_order)
        return self._map_columns(lambda s: s._take_positions(positions))

    def is_unique(self) -> Series:
        """Boolean mask: true where the row occurs exactly once."""
        ids, n_groups = self._group_ids(None)
        sizes = group_sizes(ids, n_groups)
        return Series("is_unique", sizes[ids] == 1)

    def is_duplicated(self) -> Series:
        mask = self.is_unique().not_()
        return mask.alias("is_duplicated")

    def frame_equal(self, other: "DataFrame", null_equal: bool = False) -> bool:
        """True when both tables have the same names, dtypes and values in order."""
        if not isinstance(other, DataFrame) or self.shape != other.shape:
            return False
        if self.columns != other.columns:
            return False
        return all(
            a.series_equal(b, null_equal=null_equal)
            for a, b in zip(self._columns, other._columns)
        )

    # ------------------------------------------------------------------
    # Join and lazy promotion
    # ------------------------------------------------------------------

    def join(
        self,
        other: "DataFrame",
        left_on: Optional[ColumnNames] = None,
        right_on: Optional[ColumnNames] = None,
        how: Union[str, JoinType] = JoinType.INNER,
        suffix: str = "_right",
        on: Optional[ColumnNames] = None,
    ) -> "DataFrame":
        """Join with ``other`` on key columns.

        Args:
            other: Right table
            left_on: Key columns of this table
            right_on: Key columns of ``other``, same arity as ``left_on``
            how: ``inner``, ``left``, ``right``, ``full`` or ``cross``
            suffix: Appended to colliding right column names
            on: Shorthand for the same ``left_on`` and ``right_on``

        Raises:
            UnsupportedOption: If ``how`` is not recognized
            ShapeError: If the key lists differ in arity
            NotFoundError: If a key column is missing
        """
        how = parse_option(JoinType, how, "Join type")
        if on is not None:
            left_on = right_on = on
        left_keys = [] if left_on is None else _as_names(left_on)
        right_keys = [] if right_on is None else _as_names(right_on)
        return DataFrame._from_columns(join_columns(
            self._columns, other._columns, left_keys, right_keys, how, suffix,
        ))

    def lazy(self) -> "LazyFrame":
        from .lazyframe import LazyFrame

        return LazyFrame.from_frame(self)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def row(self, index: int) -> Tuple[Value, ...]:
        if not 0 <= index < self.height:
            raise OutOfBoundsError(f"Row {index} is out of bounds for table height {self.height}")
        return tuple(s.get(index) for s in self._columns)

    def iter_records(self) -> Iterator[Dict[str, Value]]:
        names = self.columns
        for values in zip(*(s.to_list() for s in self._columns)):
            yield dict(zip(names, values))

    def to_records(self) -> List[Dict[str, Value]]:
        """Rows as dicts of column name to Value."""
        return list(self.iter_records())

    def to_dict(self) -> Dict[str, List[Value]]:
        return {s.name: s.to_list() for s in self._columns}

    def to_pandas(self) -> pd.DataFrame:
        return pd.DataFrame({s.name: s.to_pandas() for s in self._columns})


def _validate_columns(columns: Sequence[Series]) -> None:
    seen = set()
    for series in columns:
        if series.name in seen:
            raise DuplicateNameError(f"Duplicate column name '{series.name}'")
        seen.add(series.name)
    if columns:
        height = len(columns[0])
        for series in columns[1:]:
            if len(series) != height:
                raise ShapeError(
                    f"Column '{series.name}' has length {len(series)}, expected {height}"
                )
