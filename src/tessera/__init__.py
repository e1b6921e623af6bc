"""
tessera - a columnar, type-aware table engine.

tessera holds data in typed, null-aware columns (``Series``) grouped into tables
(``DataFrame``). Tables can be transformed eagerly or through ``LazyFrame``, which
records operations in a logical plan that is optimized and executed on ``collect``.

Usage:
    >>> import tessera as ts
    >>> df = ts.DataFrame({"foo": [1, 2, 3], "bar": [6, 7, 8], "ham": ["a", "b", "c"]})
    >>> df.lazy().filter(ts.col("foo") < 3).collect()

Key components:
- Series: chunked column with copy-on-write buffers and a validity mask
- DataFrame: ordered collection of equal-length, uniquely named columns
- LazyFrame: composable query plan over DataFrames
- col / lit: expression builders for the lazy API
- read_csv: CSV ingestion
"""

from . import datatypes as dtypes
from .core import DataFrame, FillNullStrategy, JoinType, LazyFrame, Series, UniqueKeep
from .algebra import col, lit
from .datatypes import (
    Boolean,
    DataType,
    Float32,
    Float64,
    Int8,
    Int16,
    Int32,
    Int64,
    List,
    String,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
)
from .exceptions import *
from .io import CsvEncoding, read_csv

__version__ = "0.1.0"

__all__ = [
    'DataFrame',
    'Series',
    'LazyFrame',
    'col',
    'lit',
    'read_csv',
    'dtypes',
    'DataType',
    'Boolean',
    'Int8',
    'Int16',
    'Int32',
    'Int64',
    'UInt8',
    'UInt16',
    'UInt32',
    'UInt64',
    'Float32',
    'Float64',
    'String',
    'List',
    'JoinType',
    'FillNullStrategy',
    'UniqueKeep',
    'CsvEncoding',
    'TesseraError',
    'DtypeError',
    'ShapeError',
    'SchemaMismatchError',
    'DuplicateNameError',
    'NotFoundError',
    'OutOfBoundsError',
    'UnsupportedOption',
    'ComputeError',
    'PlanValidationError',
    'DecodeError',
]
