"""
Unit tests for DataFrame.

These tests verify:
1. Construction, schema introspection and column validation
2. Column edits (with_column, hstack, vstack, drop, replace, rename)
3. Row operations (filter, take, sort, slice, shift, drop_nulls, explode)
4. Deduplication and equality
5. Conversion to records, dicts and pandas
"""

import pandas as pd
import pytest

from tessera import (
    DataFrame,
    DuplicateNameError,
    DtypeError,
    Float64,
    Int64,
    NotFoundError,
    OutOfBoundsError,
    SchemaMismatchError,
    Series,
    ShapeError,
    String,
    UInt32,
    UnsupportedOption,
)


# ======================================================================
# 1. Construction and schema
# ======================================================================


class TestConstruction:
    """Building tables and reading their schema."""

    def test_from_mapping(self, foo_bar_ham):
        """A mapping of names to values builds typed columns in order."""
        assert foo_bar_ham.shape == (3, 3)
        assert foo_bar_ham.columns == ["foo", "bar", "ham"]
        assert foo_bar_ham.dtypes == [Int64, Int64, String]
        assert foo_bar_ham.schema == {"foo": Int64, "bar": Int64, "ham": String}
        assert len(foo_bar_ham) == 3

    def test_from_series_list(self):
        """A list of Series keeps each Series' dtype."""
        df = DataFrame([Series("a", [1.0]), Series("b", ["x"])])
        assert df.schema == {"a": Float64, "b": String}

    def test_mapping_renames_series_values(self):
        """A Series given under a mapping key takes the key as its name."""
        df = DataFrame({"renamed": Series("orig", [1, 2])})
        assert df.columns == ["renamed"]

    def test_empty(self):
        """A table without columns has shape (0, 0)."""
        df = DataFrame()
        assert df.shape == (0, 0)
        assert df.columns == []

    def test_unequal_lengths(self):
        """Columns of different lengths are rejected."""
        with pytest.raises(ShapeError, match="has length 1, expected 2"):
            DataFrame({"a": [1, 2], "b": [1]})

    def test_duplicate_names(self):
        """Two columns cannot share a name."""
        with pytest.raises(DuplicateNameError, match="Duplicate column name 'a'"):
            DataFrame([Series("a", [1]), Series("a", [2])])

    def test_non_series_columns(self):
        """A sequence of non-Series values is rejected."""
        with pytest.raises(DtypeError, match="must be Series"):
            DataFrame([[1, 2]])

    def test_column_lookup(self, foo_bar_ham):
        """Columns can be fetched by name or position."""
        assert foo_bar_ham.column("bar").to_list() == [6, 7, 8]
        assert foo_bar_ham["ham"].to_list() == ["a", "b", "c"]
        assert foo_bar_ham.find_idx_by_name("ham") == 2
        assert foo_bar_ham.find_idx_by_name("nope") is None
        assert foo_bar_ham.select_at_idx(0).name == "foo"
        assert foo_bar_ham.select_at_idx(9) is None

    def test_missing_column(self, foo_bar_ham):
        """NotFoundError names the missing column without KeyError quoting."""
        with pytest.raises(NotFoundError) as excinfo:
            foo_bar_ham.column("spam")
        assert str(excinfo.value).startswith("Column 'spam' not found")

    def test_missing_column_is_a_key_error(self, foo_bar_ham):
        """NotFoundError can be caught as KeyError."""
        with pytest.raises(KeyError):
            foo_bar_ham["spam"]

    def test_null_count(self, with_nulls):
        """null_count gives a one-row UInt32 table."""
        counts = with_nulls.null_count()
        assert counts.shape == (1, 3)
        assert counts.dtypes == [UInt32, UInt32, UInt32]
        assert counts.row(0) == (2, 2, 1)

    def test_repr(self, foo_bar_ham):
        """repr starts with the shape and schema."""
        text = repr(foo_bar_ham)
        assert text.startswith("shape: (3, 3)")
        assert "foo: i64 | bar: i64 | ham: str" in text

    def test_estimated_size(self, foo_bar_ham):
        """The size estimate covers every column buffer."""
        assert foo_bar_ham.estimated_size() > 48


# ======================================================================
# 2. Column edits
# ======================================================================


class TestColumnEdits:
    """Adding, replacing, stacking and renaming columns."""

    def test_with_column_appends(self, foo_bar_ham):
        """with_column returns a new table with the column on the right."""
        out = foo_bar_ham.with_column(Series("new", [0, 0, 0]))
        assert out.columns == ["foo", "bar", "ham", "new"]
        assert foo_bar_ham.width == 3

    def test_with_column_replaces_in_position(self, foo_bar_ham):
        """A column with an existing name replaces it in place."""
        out = foo_bar_ham.with_column(Series("bar", ["x", "y", "z"]))
        assert out.columns == ["foo", "bar", "ham"]
        assert out["bar"].dtype == String

    def test_with_column_length_mismatch(self, foo_bar_ham):
        """The new column must match the table height."""
        with pytest.raises(ShapeError):
            foo_bar_ham.with_column(Series("new", [1]))

    def test_hstack(self, foo_bar_ham):
        """hstack returns a wider copy and leaves the original alone."""
        out = foo_bar_ham.hstack([Series("x", [1, 2, 3])])
        assert out.columns == ["foo", "bar", "ham", "x"]
        assert foo_bar_ham.columns == ["foo", "bar", "ham"]

    def test_hstack_collision(self, foo_bar_ham):
        """hstack refuses a name that already exists."""
        with pytest.raises(DuplicateNameError):
            foo_bar_ham.hstack([Series("foo", [1, 2, 3])])

    def test_hstack_mut(self, foo_bar_ham):
        """hstack_mut widens the table in place."""
        foo_bar_ham.hstack_mut([Series("x", [1, 2, 3])])
        assert foo_bar_ham.width == 4

    def test_vstack_shares_chunks(self, foo_bar_ham):
        """vstack appends the other table's chunks without copying."""
        out = foo_bar_ham.vstack(foo_bar_ham)
        assert out.height == 6
        assert out.n_chunks() == 2
        assert foo_bar_ham.height == 3
        assert out["foo"].to_list() == [1, 2, 3, 1, 2, 3]

    def test_vstack_schema_mismatch(self, foo_bar_ham):
        """Column order is part of the schema for stacking."""
        other = foo_bar_ham.select(["bar", "foo", "ham"])
        with pytest.raises(SchemaMismatchError, match="different schemas"):
            foo_bar_ham.vstack(other)

    def test_vstack_dtype_mismatch(self):
        """Stacking needs matching dtypes."""
        a = DataFrame({"x": [1]})
        b = DataFrame({"x": [1.0]})
        with pytest.raises(SchemaMismatchError):
            a.vstack(b)

    def test_extend_consolidates(self, foo_bar_ham):
        """extend leaves one chunk per column."""
        other = foo_bar_ham.clone()
        foo_bar_ham.extend(other)
        assert foo_bar_ham.height == 6
        assert foo_bar_ham.n_chunks() == 1

    def test_rechunk(self, foo_bar_ham):
        """rechunk consolidates stacked chunks."""
        stacked = foo_bar_ham.vstack(foo_bar_ham)
        assert stacked.rechunk().n_chunks() == 1

    def test_drop(self, foo_bar_ham):
        """drop returns a narrower table and rejects unknown names."""
        assert foo_bar_ham.drop("bar").columns == ["foo", "ham"]
        with pytest.raises(NotFoundError):
            foo_bar_ham.drop("nope")

    def test_drop_in_place(self, foo_bar_ham):
        """drop_in_place removes and returns the column."""
        removed = foo_bar_ham.drop_in_place("ham")
        assert removed.to_list() == ["a", "b", "c"]
        assert foo_bar_ham.columns == ["foo", "bar"]

    def test_select_orders_columns(self, foo_bar_ham):
        """select returns columns in the requested order."""
        assert foo_bar_ham.select(["ham", "foo"]).columns == ["ham", "foo"]
        assert foo_bar_ham.select("bar").columns == ["bar"]

    def test_select_repeated_name(self, foo_bar_ham):
        """Selecting a name twice is rejected."""
        with pytest.raises(DuplicateNameError, match="repeats a name"):
            foo_bar_ham.select(["foo", "foo"])

    def test_replace_keeps_name(self, foo_bar_ham):
        """replace keeps the replaced column's name."""
        foo_bar_ham.replace("foo", Series("other", [0, 0, 0]))
        assert foo_bar_ham.columns == ["foo", "bar", "ham"]
        assert foo_bar_ham["foo"].to_list() == [0, 0, 0]

    def test_replace_length_mismatch(self, foo_bar_ham):
        """A replacement must have the table height."""
        with pytest.raises(ShapeError):
            foo_bar_ham.replace("foo", Series("foo", [0]))

    def test_replace_at_idx(self, foo_bar_ham):
        """replace_at_idx swaps the column and its name at a position."""
        foo_bar_ham.replace_at_idx(1, Series("z", [0, 0, 0]))
        assert foo_bar_ham.columns == ["foo", "z", "ham"]
        with pytest.raises(OutOfBoundsError):
            foo_bar_ham.replace_at_idx(5, Series("q", [0, 0, 0]))

    def test_insert_at_idx(self, foo_bar_ham):
        """insert_at_idx places the column and checks the position."""
        foo_bar_ham.insert_at_idx(0, Series("first", [0, 0, 0]))
        assert foo_bar_ham.columns == ["first", "foo", "bar", "ham"]
        with pytest.raises(OutOfBoundsError):
            foo_bar_ham.insert_at_idx(10, Series("late", [0, 0, 0]))

    def test_insert_duplicate(self, foo_bar_ham):
        """An inserted column cannot duplicate a name."""
        with pytest.raises(DuplicateNameError):
            foo_bar_ham.insert_at_idx(0, Series("foo", [0, 0, 0]))

    def test_rename(self, foo_bar_ham):
        """rename changes a column name in place."""
        foo_bar_ham.rename("foo", "FOO")
        assert foo_bar_ham.columns == ["FOO", "bar", "ham"]

    def test_rename_collision(self, foo_bar_ham):
        """Renaming onto an existing name is rejected."""
        with pytest.raises(DuplicateNameError, match="already exists"):
            foo_bar_ham.rename("foo", "bar")

    def test_clone_is_independent(self, foo_bar_ham):
        """Editing a table does not affect its clone."""
        snapshot = foo_bar_ham.clone()
        foo_bar_ham.drop_in_place("foo")
        assert snapshot.columns == ["foo", "bar", "ham"]


class TestColumnOwnership:
    """In-place Series edits never reach a table through a shared handle."""

    def test_append_to_input_series(self):
        """Appending to a Series after building the table leaves the table height alone."""
        a = Series("a", [1, 2])
        df = DataFrame([a, Series("b", [3, 4])])
        a.append(Series("a", [5]))
        assert df.shape == (2, 2)
        assert df["a"].to_list() == [1, 2]
        assert len(a) == 3

    def test_rename_fetched_series(self):
        """Renaming a fetched column cannot create a duplicate name in the table."""
        df = DataFrame({"a": [1], "b": [2]})
        df["a"].rename("b")
        df.column("a").rename("b")
        assert df.columns == ["a", "b"]

    def test_mutate_get_columns(self, foo_bar_ham):
        """Columns from get_columns and select_at_idx are independent handles."""
        for series in foo_bar_ham.get_columns():
            series.append(series)
        foo_bar_ham.select_at_idx(0).rename("other")
        assert foo_bar_ham.shape == (3, 3)
        assert foo_bar_ham.columns == ["foo", "bar", "ham"]

    @pytest.mark.parametrize("edit", [
        lambda df, s: df.hstack_mut([s]),
        lambda df, s: df.insert_at_idx(0, s),
        lambda df, s: df.replace_at_idx(1, s),
    ], ids=["hstack_mut", "insert_at_idx", "replace_at_idx"])
    def test_mutate_after_edit(self, foo_bar_ham, edit):
        """A Series handed to an in-place edit stays the caller's own handle."""
        extra = Series("extra", [0, 0, 0])
        edit(foo_bar_ham, extra)
        extra.append(Series("extra", [9]))
        extra.rename("foo")
        assert foo_bar_ham.height == 3
        assert "extra" in foo_bar_ham.columns
        assert len(set(foo_bar_ham.columns)) == foo_bar_ham.width

    def test_mutate_after_with_column(self, foo_bar_ham):
        """with_column keeps its own handle on the added column."""
        extra = Series("extra", [1, 2, 3])
        out = foo_bar_ham.with_column(extra)
        extra.rechunk(in_place=True)
        extra.append(Series("extra", [4]))
        assert out["extra"].to_list() == [1, 2, 3]

    def test_dropped_series_is_independent(self, foo_bar_ham):
        """A column removed by drop_in_place does not alias a column of a derived table."""
        kept = foo_bar_ham.select(["foo", "bar"])
        removed = foo_bar_ham.drop_in_place("foo")
        removed.append(Series("foo", [4]))
        assert kept.height == 3
        assert kept["foo"].to_list() == [1, 2, 3]

    def test_fetch_shares_buffers(self, foo_bar_ham):
        """Fetched columns are clones over the same buffers, not copies."""
        fetched = foo_bar_ham["foo"]
        assert fetched is not foo_bar_ham["foo"]
        assert fetched._chunks[0].values is foo_bar_ham["foo"]._chunks[0].values


# ======================================================================
# 3. Row operations
# ======================================================================


class TestRowOperations:
    """Row filtering, ordering and reshaping."""

    def test_filter(self, foo_bar_ham):
        """A null mask value drops the row."""
        out = foo_bar_ham.filter(Series("m", [True, None, True]))
        assert out["foo"].to_list() == [1, 3]
        assert out["ham"].to_list() == ["a", "c"]

    def test_filter_needs_boolean_mask(self, foo_bar_ham):
        """Filtering with a non-Boolean mask fails."""
        with pytest.raises(DtypeError):
            foo_bar_ham.filter(Series("m", [1, 0, 1]))

    def test_filter_mask_length(self, foo_bar_ham):
        """The mask must match the table height."""
        with pytest.raises(ShapeError):
            foo_bar_ham.filter(Series("m", [True]))

    def test_take(self, foo_bar_ham):
        """take gathers rows and rejects positions past the end."""
        assert foo_bar_ham.take([2, 0])["ham"].to_list() == ["c", "a"]
        with pytest.raises(OutOfBoundsError):
            foo_bar_ham.take([3])

    def test_take_with_series(self, foo_bar_ham):
        """A null index gives a row of nulls."""
        out = foo_bar_ham.take_with_series(Series("i", [1, None]))
        assert out["foo"].to_list() == [2, None]

    def test_sort_multiple_keys(self, employees):
        """Per-key descending flags with a stable tie order."""
        out = employees.sort(["dept", "age"], descending=[False, True])
        assert out["name"].to_list() == [
            "Bob", "Heidi", "Diana", "Alice", "Eve", "Grace", "Frank", "Charlie",
        ]

    def test_sort_nulls(self, with_nulls):
        """Nulls sort first unless nulls_last is set, and rows move together."""
        assert with_nulls.sort("a")["a"].to_list() == [None, None, 1, 3]
        assert with_nulls.sort("a", nulls_last=True)["a"].to_list() == [1, 3, None, None]
        assert with_nulls.sort("a")["b"].to_list() == ["y", None, "x", None]

    def test_sort_flag_count(self, employees):
        """A descending flag list must match the key count."""
        with pytest.raises(ShapeError, match="descending flags"):
            employees.sort(["dept", "age"], descending=[True])

    def test_sort_in_place(self, foo_bar_ham):
        """sort_in_place reorders the table itself."""
        foo_bar_ham.sort_in_place("foo", descending=True)
        assert foo_bar_ham["foo"].to_list() == [3, 2, 1]

    def test_slice_head_tail(self, employees):
        """slice, head, tail and limit select contiguous rows."""
        assert employees.slice(2, 2)["name"].to_list() == ["Charlie", "Diana"]
        assert employees.head(2).height == 2
        assert employees.tail(1)["name"].to_list() == ["Heidi"]
        assert employees.limit(3).height == 3

    def test_shift(self, foo_bar_ham):
        """shift moves every column and fills with nulls."""
        out = foo_bar_ham.shift(1)
        assert out["foo"].to_list() == [None, 1, 2]
        assert out["ham"].to_list() == [None, "a", "b"]

    def test_drop_nulls(self, with_nulls):
        """Rows with a null in any column are dropped."""
        out = with_nulls.drop_nulls()
        assert out.to_dict() == {"a": [1], "b": ["x"], "c": [1.5]}

    def test_drop_nulls_subset(self, with_nulls):
        """A subset limits which columns are checked for nulls."""
        assert with_nulls.drop_nulls("a")["a"].to_list() == [1, 3]
        assert with_nulls.drop_nulls(["b"])["b"].to_list() == ["x", "y"]

    def test_explode(self, nested):
        """explode repeats the other columns for each list element."""
        out = nested.explode("tags")
        assert out["id"].to_list() == [1, 1, 2, 3]
        assert out["tags"].to_list() == ["a", "b", None, None]
        assert out["label"].to_list() == ["one", "one", "two", "three"]
        assert out.columns == ["id", "tags", "label"]

    def test_explode_length_mismatch(self):
        """Exploded columns must have equal list lengths per row."""
        df = DataFrame([Series("x", [[1, 2]]), Series("y", [[1]])])
        with pytest.raises(ShapeError, match="different list lengths"):
            df.explode(["x", "y"])


# ======================================================================
# 4. Deduplication and equality
# ======================================================================


class TestUnique:
    """Deduplication."""

    def test_unique_keeps_first_in_order(self):
        """By default the first row of each key survives in input order."""
        df = DataFrame({"k": [2, 1, 2, 1], "v": [1, 2, 3, 4]})
        assert df.unique(subset="k")["v"].to_list() == [1, 2]

    def test_unique_keep_last(self):
        """keep="last" keeps the last row of each key."""
        df = DataFrame({"k": [1, 1, 2], "v": ["a", "b", "c"]})
        assert df.unique(subset="k", keep="last")["v"].to_list() == ["b", "c"]

    def test_unique_by_key_order(self):
        """Without maintain_order, rows come out ordered by key."""
        df = DataFrame({"k": [2, 1, 2, 1], "v": [1, 2, 3, 4]})
        out = df.unique(maintain_order=False, subset="k")
        assert out["k"].to_list() == [1, 2]
        assert out["v"].to_list() == [2, 1]

    def test_unique_all_columns(self):
        """Without a subset, whole rows are compared and null counts as a value."""
        df = DataFrame({"a": [1, 1, 1], "b": ["x", "x", None]})
        assert df.unique().height == 2

    def test_unique_bad_keep(self):
        """An unknown keep strategy is rejected."""
        with pytest.raises(UnsupportedOption, match="keep strategy 'middle'"):
            DataFrame({"k": [1]}).unique(keep="middle")

    def test_is_unique_and_duplicated(self):
        """is_unique and is_duplicated are complementary masks."""
        df = DataFrame({"k": [1, 1, 2]})
        unique = df.is_unique()
        assert unique.name == "is_unique"
        assert unique.to_list() == [False, False, True]
        assert df.is_duplicated().to_list() == [True, True, False]


class TestFrameEqual:
    """Structural table equality."""

    def test_equal(self, foo_bar_ham):
        """A table equals its clone."""
        assert foo_bar_ham.frame_equal(foo_bar_ham.clone())

    def test_null_equality(self, with_nulls):
        """Nulls only match when null_equal is set."""
        assert not with_nulls.frame_equal(with_nulls.clone())
        assert with_nulls.frame_equal(with_nulls.clone(), null_equal=True)

    def test_different_names(self, foo_bar_ham):
        """Column names take part in equality."""
        other = foo_bar_ham.clone()
        other.rename("foo", "oof")
        assert not foo_bar_ham.frame_equal(other)

    def test_different_values(self, foo_bar_ham):
        """Row order takes part in equality."""
        assert not foo_bar_ham.frame_equal(foo_bar_ham.sort("foo", descending=True))


# ======================================================================
# 5. Conversion
# ======================================================================


class TestConversion:
    """Row records and pandas interop."""

    def test_row(self, foo_bar_ham):
        """row returns a tuple and checks the index."""
        assert foo_bar_ham.row(1) == (2, 7, "b")
        with pytest.raises(OutOfBoundsError):
            foo_bar_ham.row(3)

    def test_records(self, foo_bar_ham):
        """Records are dicts keyed by column name."""
        assert foo_bar_ham.to_records()[0] == {"foo": 1, "bar": 6, "ham": "a"}
        assert len(list(foo_bar_ham.iter_records())) == 3

    def test_to_dict(self, with_nulls):
        """to_dict maps names to value lists."""
        assert with_nulls.to_dict()["a"] == [1, None, 3, None]

    def test_to_pandas(self, with_nulls):
        """Integer columns with nulls become pandas Int64."""
        frame = with_nulls.to_pandas()
        assert list(frame.columns) == ["a", "b", "c"]
        assert str(frame["a"].dtype) == "Int64"
        assert frame["a"].isna().tolist() == [False, True, False, True]

    def test_from_pandas(self):
        """pandas object columns with None become String columns with nulls."""
        df = DataFrame.from_pandas(pd.DataFrame({"x": [1, 2], "y": ["a", None]}))
        assert df.schema == {"x": Int64, "y": String}
        assert df["y"].to_list() == ["a", None]

    def test_to_pandas_frame(self, foo_bar_ham):
        """The pandas frame matches one built directly with nullable dtypes."""
        expected = pd.DataFrame({
            "foo": pd.array([1, 2, 3], dtype="Int64"),
            "bar": pd.array([6, 7, 8], dtype="Int64"),
            "ham": pd.Series(["a", "b", "c"], dtype=object),
        })
        pd.testing.assert_frame_equal(foo_bar_ham.to_pandas(), expected)
