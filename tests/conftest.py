"""Shared pytest configuration and fixtures for tessera tests."""

import pytest

from tessera import DataFrame, Series, String


@pytest.fixture
def foo_bar_ham() -> DataFrame:
    return DataFrame({
        "foo": [1, 2, 3],
        "bar": [6, 7, 8],
        "ham": ["a", "b", "c"],
    })


@pytest.fixture
def employees() -> DataFrame:
    return DataFrame({
        "name": ["Alice", "Bob", "Charlie", "Diana", "Eve", "Frank", "Grace", "Heidi"],
        "age": [30, 45, 28, 35, 50, 33, 29, 40],
        "dept": ["eng", "eng", "sales", "eng", "hr", "sales", "hr", "eng"],
        "salary": [90000, 120000, 65000, 95000, 80000, 70000, 75000, 110000],
    })


@pytest.fixture
def departments() -> DataFrame:
    return DataFrame({
        "dept": ["eng", "sales", "hr", "marketing"],
        "budget": [500000, 300000, 200000, 150000],
    })


@pytest.fixture
def with_nulls() -> DataFrame:
    return DataFrame({
        "a": [1, None, 3, None],
        "b": ["x", "y", None, None],
        "c": [1.5, 2.5, 3.5, None],
    })


@pytest.fixture
def nested() -> DataFrame:
    return DataFrame([
        Series("id", [1, 2, 3]),
        Series("tags", [["a", "b"], [], None]),
        Series("label", ["one", "two", "three"], dtype=String),
    ])
