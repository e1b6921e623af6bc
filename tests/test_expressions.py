"""
Tests for the expression AST: construction, rendering, static typing and evaluation.

Expressions are evaluated directly against eager DataFrames here; plan-level behaviour
is covered in test_lazyframe.py.
"""

import pytest

from tessera import (
    Boolean,
    DtypeError,
    Float64,
    Int8,
    Int64,
    List,
    NotFoundError,
    PlanValidationError,
    Series,
    ShapeError,
    String,
    UInt8,
    UInt32,
    UnsupportedOption,
    col,
    lit,
)
from tessera.algebra import expression_dtype, evaluate_expression
from tessera.algebra.eager import broadcast, evaluate_named
from tessera.algebra.expressions import (
    Alias,
    Arithmetic,
    BooleanCombine,
    Compare,
    Expression,
    Literal,
    StringFunction,
    UnaryOp,
    contains_map,
    is_fallible,
    output_name,
    referenced_columns,
)


# ======================================================================
# 1. Construction
# ======================================================================


class TestConstruction:
    """Building expression nodes from operators and methods."""

    def test_operators_build_nodes(self):
        """Python operators build the matching node types."""
        assert isinstance(col("a") > 1, Compare)
        assert isinstance(col("a") == col("b"), Compare)
        assert isinstance(col("a") + 1, Arithmetic)
        assert isinstance((col("a") > 1) & (col("b") < 2), BooleanCombine)
        assert isinstance(~col("flag"), UnaryOp)

    def test_scalars_become_literals(self):
        """A scalar operand is wrapped in a Literal."""
        expr = col("a") * 2
        assert isinstance(expr.right, Literal)
        assert expr.right.value == 2

    def test_reflected_operators(self):
        """A scalar on the left stays on the left."""
        expr = 10 - col("a")
        assert isinstance(expr.left, Literal)
        assert expr.left.value == 10

    def test_named_comparison_methods(self):
        """lt_eq, gt_eq and neq build comparisons."""
        assert (col("a").lt_eq(3)).op == "<="
        assert (col("a").gt_eq(3)).op == ">="
        assert (col("a").neq(3)).op == "!="

    def test_expressions_hash_by_identity(self):
        """Structurally equal expressions are distinct set members."""
        a = col("a")
        assert len({a, a, col("a")}) == 2

    def test_invalid_operator(self):
        """An arithmetic symbol is not a comparison operator."""
        with pytest.raises(PlanValidationError, match="operator must be one of"):
            Compare(op="+", left=col("a"), right=lit(1))

    def test_invalid_unary_operator(self):
        """An unknown unary operator is rejected."""
        with pytest.raises(PlanValidationError, match="Unknown unary operator"):
            UnaryOp(op="abs", operand=col("a"))

    def test_string_function_needs_pattern(self):
        """extract without a pattern is rejected."""
        with pytest.raises(PlanValidationError, match="needs a pattern"):
            StringFunction(kind="extract", target=col("s"))

    def test_fill_null_validates_strategy(self):
        """An unknown fill strategy is rejected."""
        with pytest.raises(UnsupportedOption):
            col("a").fill_null("median")


class TestRendering:
    """Readable expression text."""

    @pytest.mark.parametrize("expr, text", [
        (col("a"), 'col("a")'),
        (col("a") > 10, '(col("a") > 10)'),
        ((col("a") > 1) & (col("b") == "x"), '((col("a") > 1) and (col("b") == \'x\'))'),
        (col("a").is_null(), 'col("a").is_null()'),
        (-col("a"), '(neg col("a"))'),
        (col("s").str.contains("p"), "col(\"s\").str.contains('p')"),
        (col("s").str.lengths(), 'col("s").str.lengths()'),
        (col("a").cast(Int64), 'col("a").cast(i64)'),
        (col("a").alias("b"), 'col("a").alias("b")'),
        (col("a").fill_null("zero"), "col(\"a\").fill_null('zero')"),
        (lit(None), "null"),
    ])
    def test_str(self, expr, text):
        """Expressions render as readable text."""
        assert str(expr) == text

    def test_map_rendering(self):
        """A map renders with its name and output type."""
        expr = col("a").map(lambda s: s, Float64, name="scale")
        assert str(expr) == 'scale(col("a")) -> f64'


# ======================================================================
# 2. Names and references
# ======================================================================


class TestNames:
    """Output names and column references."""

    def test_output_name(self):
        """The output name comes from the alias or leftmost column."""
        assert output_name(col("a") + col("b")) == "a"
        assert output_name((col("a") + 1).alias("total")) == "total"
        assert output_name(lit(1)) == "literal"
        assert output_name(lit(1) + col("a")) == "literal"
        assert output_name(col("s").str.lengths()) == "s"
        assert output_name(col("a").map(lambda s: s, Int64)) == "a"

    def test_referenced_columns(self):
        """Every column an expression reads is reported."""
        expr = ((col("a") > 1) & col("b").is_null()) | (col("c").cast(String) == "x")
        assert referenced_columns(expr) == {"a", "b", "c"}
        assert referenced_columns(lit(3)) == set()

    def test_contains_map(self):
        """User functions are found inside larger expressions."""
        mapped = col("a").map(lambda s: s, Int64)
        assert contains_map((mapped + 1) > 2)
        assert not contains_map((col("a") + 1) > 2)

    @pytest.mark.parametrize("expr", [
        col("a") / col("b"),
        (col("a") % 2) == 0,
        col("a").cast(UInt8),
        col("a").map(lambda s: s, Int64).alias("m"),
        ~(col("a").cast(Int8) > 1),
    ], ids=["div", "rem", "strict_cast", "map", "nested_cast"])
    def test_fallible(self, expr):
        """Division, remainder, strict casts and user functions can fail."""
        assert is_fallible(expr)

    @pytest.mark.parametrize("expr", [
        (col("a") + 1) * 2 > col("b"),
        col("a").cast(UInt8, strict=False) > 1,
        col("s").str.contains("x") & col("a").is_null(),
        col("a").fill_null("zero").alias("z"),
    ], ids=["arith", "lenient_cast", "string", "fill"])
    def test_infallible(self, expr):
        """Plain arithmetic, lenient casts, string tests and fills cannot fail."""
        assert not is_fallible(expr)


# ======================================================================
# 3. Static typing
# ======================================================================


class TestExpressionDtype:
    """Static result types."""

    SCHEMA = {"i": Int64, "f": Float64, "s": String, "b": Boolean}

    @pytest.mark.parametrize("expr, dtype", [
        (col("i") + 1, Int64),
        (col("i") / 2, Int64),
        (col("i") * 1.5, Float64),
        (col("i") + col("f"), Float64),
        (col("s") + col("s"), String),
        (col("i") > 1, Boolean),
        (col("b") & col("b"), Boolean),
        (col("i").is_null(), Boolean),
        (-col("f"), Float64),
        (col("s").str.contains("x"), Boolean),
        (col("s").str.extract("(x)"), String),
        (col("s").str.extract_all("x"), List(String)),
        (col("s").str.lengths(), UInt32),
        (col("i").cast(String), String),
        (col("i").alias("z"), Int64),
        (col("i").fill_null("mean"), Int64),
        (lit("x"), String),
        (lit(None), Float64),
        (lit(None, dtype=Int64), Int64),
    ])
    def test_dtypes(self, expr, dtype):
        """Result types follow the input schema."""
        assert expression_dtype(expr, self.SCHEMA) == dtype

    def test_missing_column(self):
        """An unknown column is reported while typing."""
        with pytest.raises(NotFoundError, match="Column 'zz' not found"):
            expression_dtype(col("zz") + 1, self.SCHEMA)

    def test_string_function_on_numbers(self):
        """String functions need a String column."""
        with pytest.raises(DtypeError, match="requires a String column"):
            expression_dtype(col("i").str.contains("1"), self.SCHEMA)


# ======================================================================
# 4. Evaluation
# ======================================================================


class TestEvaluation:
    """Evaluating expressions against a table."""

    def test_arithmetic_chain(self, foo_bar_ham):
        """Arithmetic combines columns row by row."""
        result = evaluate_expression(col("foo") * 2 + col("bar"), foo_bar_ham)
        assert result.to_list() == [8, 11, 14]

    def test_literal_broadcast_on_left(self, foo_bar_ham):
        """A literal on the left is broadcast."""
        assert evaluate_expression(1 - col("foo"), foo_bar_ham).to_list() == [0, -1, -2]

    def test_bare_literal_is_one_row(self, foo_bar_ham):
        """A lone literal evaluates to one row."""
        assert evaluate_expression(lit(5), foo_bar_ham).to_list() == [5]

    def test_comparison_with_nulls(self, with_nulls):
        """Comparing with a null gives null."""
        result = evaluate_expression(col("a") >= 3, with_nulls)
        assert result.to_list() == [False, None, True, None]

    def test_null_literal_comparison_is_null(self, foo_bar_ham):
        """Comparing with a null literal gives all nulls."""
        result = evaluate_expression(col("foo") == None, foo_bar_ham)  # noqa: E711
        assert result.to_list() == [None, None, None]

    def test_boolean_combination(self, employees):
        """and combines two masks row by row."""
        expr = (col("dept") == "eng") & (col("age") > 35)
        assert evaluate_expression(expr, employees).to_list() == [
            False, True, False, False, False, False, False, True,
        ]

    def test_boolean_with_literal(self, foo_bar_ham):
        """or with a literal True is always true."""
        assert evaluate_expression((col("foo") > 1) | True, foo_bar_ham).to_list() == [True, True, True]

    def test_not_and_null_checks(self, with_nulls):
        """Negation and null checks produce Boolean columns."""
        assert evaluate_expression(~col("a").is_null(), with_nulls).to_list() == [True, False, True, False]
        assert evaluate_expression(col("b").is_not_null(), with_nulls).to_list() == [True, True, False, False]

    def test_string_functions(self, employees):
        """starts_with, extract and lengths work on strings."""
        assert evaluate_expression(col("name").str.starts_with("A"), employees).to_list()[:2] == [True, False]
        assert evaluate_expression(col("name").str.extract(r"^(\w)"), employees).to_list()[:3] == ["A", "B", "C"]
        assert evaluate_expression(col("dept").str.lengths(), employees).to_list()[:3] == [3, 3, 5]

    def test_cast(self, foo_bar_ham):
        """cast changes the result type."""
        result = evaluate_expression(col("foo").cast(Float64), foo_bar_ham)
        assert result.dtype == Float64

    def test_fill_null(self, with_nulls):
        """fill_null with max uses the column maximum."""
        assert evaluate_expression(col("a").fill_null("max"), with_nulls).to_list() == [1, 3, 3, 3]

    def test_alias_names_result(self, foo_bar_ham):
        """An alias names the result."""
        assert evaluate_named((col("foo") + 1).alias("next"), foo_bar_ham).name == "next"

    def test_evaluate_named_uses_output_name(self, foo_bar_ham):
        """Unaliased results take the output name."""
        assert evaluate_named(col("bar") > 6, foo_bar_ham).name == "bar"

    def test_missing_column(self, foo_bar_ham):
        """Evaluating an unknown column fails."""
        with pytest.raises(NotFoundError):
            evaluate_expression(col("nope"), foo_bar_ham)

    def test_unknown_expression_type(self, foo_bar_ham):
        """A bare Expression cannot be evaluated."""
        with pytest.raises(TypeError, match="Unknown expression type"):
            evaluate_expression(Expression(), foo_bar_ham)


class TestMapFn:
    """User functions over columns."""

    def test_map(self, foo_bar_ham):
        """map applies the function and keeps the column name."""
        expr = col("foo").map(lambda s: s * 10, Int64)
        result = evaluate_named(expr, foo_bar_ham)
        assert result.name == "foo"
        assert result.to_list() == [10, 20, 30]

    def test_result_cast_to_declared_type(self, foo_bar_ham):
        """The function result is cast to the declared type."""
        result = evaluate_expression(col("foo").map(lambda s: s, Float64), foo_bar_ham)
        assert result.dtype == Float64

    def test_must_return_series(self, foo_bar_ham):
        """A function that returns a list is rejected."""
        expr = col("foo").map(lambda s: s.to_list(), Int64, name="bad")
        with pytest.raises(DtypeError, match="Function 'bad' must return a Series"):
            evaluate_expression(expr, foo_bar_ham)


class TestBroadcast:
    """Length-one broadcasting."""

    def test_single_row_repeats(self):
        """A one-row Series repeats to the target height."""
        assert broadcast(Series("x", [7]), 3).to_list() == [7, 7, 7]

    def test_matching_length_unchanged(self):
        """A Series of the right length is returned as is."""
        s = Series("x", [1, 2])
        assert broadcast(s, 2) is s

    def test_length_mismatch(self):
        """Other lengths are rejected."""
        with pytest.raises(ShapeError, match="has length 2, expected 3"):
            broadcast(Series("x", [1, 2]), 3)


# ======================================================================
# 5. Dict form
# ======================================================================


class TestDictForm:
    """Dict form of expressions."""

    def test_round_trip(self):
        """An expression rebuilds from its dict form."""
        expr = ((col("a") + lit(1, dtype=Int64)) > 2) & col("s").str.extract(r"(\d+)", 1).is_not_null()
        rebuilt = Expression.from_dict(expr.to_dict())
        assert str(rebuilt) == str(expr)
        assert rebuilt.right.operand.group_index == 1

    def test_alias_and_cast(self):
        """Nested alias, cast and fill_null survive the dict form."""
        expr = col("a").cast(Float64, strict=False).alias("f").fill_null("one")
        data = expr.to_dict()
        assert data["type"] == "fill_null"
        rebuilt = Expression.from_dict(data)
        assert isinstance(rebuilt.target, Alias)
        assert rebuilt.target.target.strict is False

    def test_map_is_not_rebuildable(self):
        """A map serializes its signature but cannot be rebuilt."""
        data = col("a").map(lambda s: s, Int64, name="f").to_dict()
        assert data == {
            "type": "map",
            "name": "f",
            "inputs": [{"type": "column", "name": "a"}],
            "output_type": "i64",
        }
        with pytest.raises(PlanValidationError, match="Cannot rebuild user function 'f'"):
            Expression.from_dict(data)

    def test_unknown_type(self):
        """An unknown dict type is rejected."""
        with pytest.raises(PlanValidationError, match="Unknown expression type"):
            Expression.from_dict({"type": "window"})
