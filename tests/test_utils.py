"""
Unit tests for the utils module.

These tests verify:
Visualization:
1. visualize(plan) renders one line per node with tree connectors
2. Every operation type has a readable one-line description
3. Shared sub-plans are printed once and referenced as "[already shown]"
4. The output is deterministic

Serialization:
1. serialize(plan) returns a JSON-serializable dict with a version key
2. deserialize(serialize(plan)) rebuilds a plan that collects to the same table
3. Source tables, including List columns and nulls, are embedded by value
4. Malformed input raises PlanValidationError with a clear message
"""

import json

import pytest

from tessera import DataFrame, Float64, Int64, List, PlanValidationError, Series, String, col, lit
from tessera.algebra import (
    Cache,
    Drop,
    DropNulls,
    Explode,
    Filter,
    Join,
    LogicalPlan,
    Select,
    Slice,
    Sort,
    Source,
    WithColumns,
    execute,
)
from tessera.utils import (
    SERIALIZATION_VERSION,
    deserialize,
    from_json,
    serialize,
    to_json,
    visualize,
)


@pytest.fixture
def source(foo_bar_ham) -> Source:
    return Source(df=foo_bar_ham)


# ======================================================================
# Visualization
# ======================================================================


class TestVisualization:
    """Plan trees rendered as text."""

    def test_single_node(self, source):
        """A lone source renders on one line with its projection."""
        assert visualize(LogicalPlan(source)) == 'DF ["foo", "bar", "ham"]; PROJECT * (3/3 COLUMNS)'

    def test_chain(self, source):
        """Each input is drawn beneath its parent."""
        plan = LogicalPlan(Select(
            exprs=[col("foo")],
            input=Filter(predicate=col("foo") > 1, input=source),
        ))
        assert visualize(plan).split("\n") == [
            'SELECT [col("foo")]',
            '└── FILTER (col("foo") > 1)',
            '    └── DF ["foo", "bar", "ham"]; PROJECT * (3/3 COLUMNS)',
        ]

    def test_join_shows_both_inputs(self, employees, departments):
        """A join draws both inputs as children."""
        plan = LogicalPlan(Join(
            left_on=[col("dept")],
            right_on=[col("dept")],
            how="left",
            left=Source(df=employees, name="employees"),
            right=Source(df=departments, name="departments"),
        ))
        assert visualize(plan).split("\n") == [
            'LEFT JOIN ON [col("dept")] == [col("dept")]',
            '├── DF ["name", "age", "dept", "salary"]; PROJECT * (4/4 COLUMNS)',
            '└── DF ["dept", "budget"]; PROJECT * (2/2 COLUMNS)',
        ]

    def test_nested_join_connectors(self, source):
        """Nested joins use branch connectors."""
        inner = Join(left_on=[col("foo")], right_on=[col("foo")], left=source, right=Source(df=source.df))
        outer = Join(how="cross", left=inner, right=Source(df=DataFrame({"z": [1]})))
        lines = visualize(LogicalPlan(outer)).split("\n")
        assert lines[0] == "CROSS JOIN"
        assert lines[1].startswith("├── INNER JOIN")
        assert lines[2].startswith("│   ├── DF")
        assert lines[3].startswith("│   └── DF")
        assert lines[4] == '└── DF ["z"]; PROJECT * (1/1 COLUMNS)'

    def test_shared_subplan_printed_once(self, source):
        """A sub-plan reached twice is printed once."""
        cached = Cache(input=Filter(predicate=col("foo") > 1, input=source))
        plan = LogicalPlan(Join(left_on=[col("ham")], right_on=[col("ham")], left=cached, right=cached))
        lines = visualize(plan).split("\n")
        assert lines.count("├── CACHE") == 1
        assert lines[-1] == "└── [already shown]"

    def test_wide_source_is_abbreviated(self):
        """Sources with many columns list only the first few."""
        df = DataFrame({name: [1] for name in "abcdef"})
        text = visualize(LogicalPlan(Source(df=df)))
        assert text == 'DF ["a", "b", "c", "d", ...]; PROJECT * (6/6 COLUMNS)'

    def test_projected_source(self, foo_bar_ham):
        """A projected source shows the kept columns."""
        text = visualize(LogicalPlan(Source(df=foo_bar_ham, projection=("foo", "ham"))))
        assert text.endswith("PROJECT foo, ham (2/3 COLUMNS)")

    @pytest.mark.parametrize("build, text", [
        (lambda s: WithColumns(exprs=[(col("foo") + 1).alias("x")], input=s),
         'WITH_COLUMNS [(col("foo") + 1).alias("x")]'),
        (lambda s: Sort(by=[col("foo"), col("bar")], descending=(True, False), input=s),
         'SORT BY [col("foo") DESC, col("bar")]'),
        (lambda s: Sort(by=[col("foo")], nulls_last=True, input=s),
         'SORT BY [col("foo")]; NULLS LAST'),
        (lambda s: DropNulls(input=s), "DROP_NULLS *"),
        (lambda s: DropNulls(subset=["foo", "bar"], input=s), "DROP_NULLS [foo, bar]"),
        (lambda s: Drop(columns=["ham"], input=s), "DROP [ham]"),
        (lambda s: Explode(columns=["ham"], input=s), "EXPLODE [ham]"),
        (lambda s: Slice(offset=2, input=s), "SLICE offset=2, length=*"),
        (lambda s: Slice(offset=-3, length=2, input=s), "SLICE offset=-3, length=2"),
        (lambda s: Cache(input=s), "CACHE"),
    ])
    def test_operation_descriptions(self, source, build, text):
        """Each operation has a one-line description."""
        assert visualize(LogicalPlan(build(source))).split("\n")[0] == text

    def test_output_is_deterministic(self, source):
        """Rendering is stable and matches explain."""
        plan = LogicalPlan(Filter(predicate=col("foo") > 1, input=source))
        assert visualize(plan) == visualize(plan)
        assert str(plan) == plan.explain() == visualize(plan)

    def test_invalid_input(self):
        """Only plans can be rendered."""
        with pytest.raises(TypeError, match="Expected LogicalPlan"):
            visualize("not a plan")


class TestLogicalPlan:
    """The plan wrapper."""

    def test_root_must_be_operation(self):
        """The root must be an operation."""
        with pytest.raises(PlanValidationError, match="must be an Operation"):
            LogicalPlan(col("a"))

    def test_repr(self, source):
        """repr names the root node type."""
        assert repr(LogicalPlan(Cache(input=source))) == "LogicalPlan(root=Cache)"

    def test_copy_shares_root(self, source):
        """copy shares the immutable root."""
        plan = LogicalPlan(source)
        assert plan.copy().root is plan.root

    def test_dict_forms(self, source):
        """A plan rebuilds from a node dict or a wrapped one."""
        plan = LogicalPlan(Filter(predicate=col("foo") > 1, input=source))
        data = plan.to_dict()
        assert data["type"] == "filter"
        assert isinstance(LogicalPlan.from_dict(data).root, Filter)
        assert isinstance(LogicalPlan.from_dict({"root": data}).root, Filter)
        with pytest.raises(PlanValidationError, match="'root' or 'type'"):
            LogicalPlan.from_dict({"nodes": []})


# ======================================================================
# Serialization
# ======================================================================


class TestSerialization:
    """Versioned JSON plans."""

    def test_serialize_is_json_compatible(self, foo_bar_ham):
        """Serialized plans are versioned and JSON compatible."""
        data = serialize(foo_bar_ham.lazy().filter(col("foo") > 1).plan)
        assert data["version"] == SERIALIZATION_VERSION == "1.0"
        assert data["root"]["type"] == "filter"
        json.dumps(data)

    def test_source_embeds_columns(self, with_nulls):
        """Sources embed their columns as name, dtype and values."""
        data = serialize(with_nulls.lazy().plan)
        assert data["root"]["columns"][0] == {"name": "a", "dtype": "i64", "values": [1, None, 3, None]}
        assert data["root"]["projection"] is None

    def test_round_trip_collects_identically(self, employees, departments):
        """A rebuilt plan collects the same table."""
        lf = (
            employees.lazy()
            .join(departments.lazy(), on="dept", how="full", suffix="_d")
            .with_columns([(col("salary") * 2).alias("double"), lit(1.5, dtype=Float64).alias("k")])
            .filter((col("age") > 30) | col("age").is_null())
            .sort(["dept", "name"], descending=[False, True], nulls_last=True)
            .drop_nulls(["budget"])
            .drop("k")
            .slice(1, 4)
        )
        rebuilt = deserialize(serialize(lf.plan))
        assert rebuilt.explain() == lf.plan.explain()
        assert execute(rebuilt.root).frame_equal(lf.collect(optimize=False), null_equal=True)

    def test_round_trip_list_columns(self, nested):
        """List columns survive serialization."""
        plan = nested.lazy().explode("tags").plan
        rebuilt = from_json(to_json(plan))
        source = rebuilt.root.inputs[0]
        assert source.df.schema == {"id": Int64, "tags": List(String), "label": String}
        assert source.df["tags"].get(0).to_list() == ["a", "b"]
        assert source.df["tags"].get(1).to_list() == []
        assert source.df["tags"].get(2) is None

    def test_round_trip_keeps_projection(self, foo_bar_ham):
        """Source projections survive serialization."""
        plan = LogicalPlan(Source(df=foo_bar_ham, projection=("foo",)))
        assert deserialize(serialize(plan)).root.projection == ("foo",)

    def test_every_expression_kind(self, foo_bar_ham):
        """Every expression kind survives serialization."""
        lf = foo_bar_ham.lazy().select([
            (-col("foo") % 2).alias("neg"),
            (~(col("bar") >= 7)).alias("inv"),
            col("ham").str.contains("a|b").alias("has"),
            col("ham").str.extract("(.)").alias("first"),
            col("foo").cast(String).alias("as_str"),
            col("foo").fill_null("zero").alias("filled"),
            (col("bar") / lit(2.0)).alias("half"),
        ])
        rebuilt = from_json(to_json(lf.plan))
        assert rebuilt.explain() == lf.plan.explain()

    def test_to_json_with_indent(self, foo_bar_ham):
        """indent pretty-prints the JSON."""
        text = to_json(foo_bar_ham.lazy().plan, indent=2)
        assert "\n" in text
        assert json.loads(text)["version"] == "1.0"

    def test_user_function_plans_serialize_but_do_not_load(self, foo_bar_ham):
        """Plans with a user function write but cannot be read back."""
        lf = foo_bar_ham.lazy().with_column(col("foo").map(lambda s: s, Int64, name="ident"))
        text = to_json(lf.plan)
        with pytest.raises(PlanValidationError, match="Cannot rebuild user function 'ident'"):
            from_json(text)

    def test_unknown_operation_type(self):
        """An unknown operation type is rejected."""
        with pytest.raises(PlanValidationError, match="Unknown operation type: pivot"):
            deserialize({"version": "1.0", "root": {"type": "pivot"}})

    def test_missing_version(self):
        """A plan without a version is rejected."""
        with pytest.raises(PlanValidationError, match="'version'"):
            deserialize({"root": {"type": "cache"}})

    def test_missing_root(self):
        """A plan without a root is rejected."""
        with pytest.raises(PlanValidationError, match="'root'"):
            deserialize({"version": "1.0"})

    def test_unsupported_version(self):
        """Only version 1.0 is accepted."""
        with pytest.raises(PlanValidationError, match="Unsupported serialization version: 2.0"):
            deserialize({"version": "2.0", "root": {"type": "cache"}})

    def test_missing_operation_field(self, foo_bar_ham):
        """A node missing a required field is rejected."""
        data = serialize(foo_bar_ham.lazy().filter(col("foo") > 1).plan)
        del data["root"]["predicate"]
        with pytest.raises(PlanValidationError, match="Missing required field"):
            deserialize(data)

    def test_non_dict(self):
        """Only dicts deserialize."""
        with pytest.raises(TypeError, match="Expected dict"):
            deserialize("plan")

    def test_serialize_non_plan(self):
        """Only plans serialize."""
        with pytest.raises(TypeError, match="Expected LogicalPlan"):
            serialize({"type": "cache"})

    def test_invalid_json(self):
        """Malformed JSON is rejected."""
        with pytest.raises(PlanValidationError, match="Invalid JSON"):
            from_json("{not json")

    def test_from_json_non_string(self):
        """from_json needs a str."""
        with pytest.raises(TypeError, match="Expected str"):
            from_json(b"{}")

    def test_source_requires_table(self):
        """A source must wrap a table."""
        with pytest.raises(PlanValidationError, match="must wrap a DataFrame"):
            Source()

    def test_series_values_survive(self):
        """Float nulls survive serialization."""
        df = DataFrame([Series("f", [1.5, None], dtype=Float64)])
        rebuilt = deserialize(serialize(df.lazy().plan))
        assert rebuilt.root.df["f"].to_list() == [1.5, None]
