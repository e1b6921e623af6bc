"""
Data types and scalar values.

The type system is a closed set: ``Boolean``, signed and unsigned integers of 8 to 64
bits, ``Float32``/``Float64``, ``String`` and the nested ``List(inner)``. Each type maps
onto the numpy dtype used for its chunk buffers; ``String`` and ``List`` are stored in
object arrays.

A single cell travels as a *Value*: ``None`` for null, or a plain ``bool``, ``int``,
``float``, ``str``, or a ``Series`` for a ``List`` cell.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Union

import numpy as np

from .exceptions import DtypeError

if TYPE_CHECKING:
    from .core.series import Series

Value = Union[None, bool, int, float, str, "Series"]


@dataclass(frozen=True)
class DataType:
    """A column data type.

    ``name`` is the short token (``"i64"``, ``"str"``, ``"list"``); ``inner`` is set
    only for ``List`` types.
    """

    name: str
    inner: Optional["DataType"] = None

    def __str__(self) -> str:
        if self.name == "list":
            return f"list[{self.inner}]"
        return self.name

    def __repr__(self) -> str:
        if self.name == "list":
            return f"List({self.inner!r})"
        return _REPR_NAMES[self.name]

    @property
    def is_numeric(self) -> bool:
        return self.name in _INTEGER_NAMES or self.name in _FLOAT_NAMES

    @property
    def is_integer(self) -> bool:
        return self.name in _INTEGER_NAMES

    @property
    def is_unsigned(self) -> bool:
        return self.name.startswith("u")

    @property
    def is_float(self) -> bool:
        return self.name in _FLOAT_NAMES

    @property
    def is_nested(self) -> bool:
        return self.name == "list"

    @property
    def numpy_dtype(self) -> np.dtype:
        """The numpy dtype of a chunk buffer holding this type."""
        return np.dtype(_NUMPY_TYPES.get(self.name, object))

    @property
    def placeholder(self) -> Any:
        """Physical value stored under a null slot."""
        if self.name == "bool":
            return False
        if self.is_numeric:
            return 0
        if self.name == "str":
            return ""
        return None

    @classmethod
    def from_name(cls, name: str) -> "DataType":
        """Parse the textual form produced by ``str(dtype)``.

        Raises:
            DtypeError: If the name is not a known type
        """
        name = name.strip()
        if name.startswith("list[") and name.endswith("]"):
            return List(cls.from_name(name[5:-1]))
        if name in _BY_NAME:
            return _BY_NAME[name]
        raise DtypeError(f"Unknown data type: {name!r}")

    @classmethod
    def from_numpy(cls, dtype: Any) -> "DataType":
        """Map a numpy dtype onto the type system.

        Raises:
            DtypeError: If the numpy dtype has no counterpart (e.g. complex, datetime)
        """
        dtype = np.dtype(dtype)
        for name, np_type in _NUMPY_TYPES.items():
            if dtype == np.dtype(np_type):
                return _BY_NAME[name]
        if dtype.kind in ("U", "S"):
            return String
        raise DtypeError(f"Unsupported numpy dtype: {dtype}")


Boolean = DataType("bool")
Int8 = DataType("i8")
Int16 = DataType("i16")
Int32 = DataType("i32")
Int64 = DataType("i64")
UInt8 = DataType("u8")
UInt16 = DataType("u16")
UInt32 = DataType("u32")
UInt64 = DataType("u64")
Float32 = DataType("f32")
Float64 = DataType("f64")
String = DataType("str")


def List(inner: DataType) -> DataType:
    """Nested list type whose elements are of ``inner`` type."""
    if not isinstance(inner, DataType):
        raise DtypeError(f"List inner type must be a DataType, got {type(inner).__name__}")
    return DataType("list", inner)


_INTEGER_NAMES = ("i8", "i16", "i32", "i64", "u8", "u16", "u32", "u64")
_FLOAT_NAMES = ("f32", "f64")

_NUMPY_TYPES = {
    "bool": np.bool_,
    "i8": np.int8,
    "i16": np.int16,
    "i32": np.int32,
    "i64": np.int64,
    "u8": np.uint8,
    "u16": np.uint16,
    "u32": np.uint32,
    "u64": np.uint64,
    "f32": np.float32,
    "f64": np.float64,
}

_BY_NAME = {
    dt.name: dt
    for dt in (Boolean, Int8, Int16, Int32, Int64, UInt8, UInt16, UInt32, UInt64,
               Float32, Float64, String)
}

_REPR_NAMES = {
    "bool": "Boolean", "i8": "Int8", "i16": "Int16", "i32": "Int32", "i64": "Int64",
    "u8": "UInt8", "u16": "UInt16", "u32": "UInt32", "u64": "UInt64",
    "f32": "Float32", "f64": "Float64", "str": "String",
}


def supertype(left: DataType, right: DataType) -> DataType:
    """Smallest type both operands can be represented in.

    Raises:
        DtypeError: If no common type exists (e.g. String and Int64)
    """
    if left == right:
        return left
    if left.is_nested and right.is_nested:
        return List(supertype(left.inner, right.inner))
    numeric_or_bool = (left.is_numeric or left == Boolean) and (right.is_numeric or right == Boolean)
    if numeric_or_bool:
        return DataType.from_numpy(np.result_type(left.numpy_dtype, right.numpy_dtype))
    raise DtypeError(f"No common type for {left} and {right}")


def infer_dtype(value: Any) -> Optional[DataType]:
    """Data type of a single Python value; ``None`` for a null."""
    from .core.series import Series

    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return Boolean
    if isinstance(value, np.generic):
        return DataType.from_numpy(value.dtype)
    if isinstance(value, int):
        return Int64
    if isinstance(value, float):
        return Float64
    if isinstance(value, str):
        return String
    if isinstance(value, Series):
        return List(value.dtype)
    if isinstance(value, (list, tuple)):
        inner = None
        for item in value:
            item_dtype = infer_dtype(item)
            if item_dtype is not None:
                inner = item_dtype if inner is None else supertype(inner, item_dtype)
        return List(inner or Float64)
    raise DtypeError(f"Cannot infer a data type for value of type {type(value).__name__}")


def integer_bounds(dtype: DataType) -> tuple[int, int]:
    info = np.iinfo(dtype.numpy_dtype)
    return int(info.min), int(info.max)


def to_value(dtype: DataType, raw: Any) -> Value:
    """Convert a physical buffer element into a Value."""
    if raw is None:
        return None
    if dtype == Boolean:
        return bool(raw)
    if dtype.is_integer:
        return int(raw)
    if dtype.is_float:
        return float(raw)
    return raw


def encode_value(value: Value) -> Any:
    """JSON-compatible form of a Value; List cells become nested lists."""
    if hasattr(value, "to_list"):
        return [encode_value(v) for v in value.to_list()]
    return value


def decode_value(dtype: Optional[DataType], raw: Any) -> Value:
    """Rebuild a Value from ``encode_value`` output."""
    from .core.series import Series

    if raw is None or dtype is None or not dtype.is_nested:
        return raw
    return Series("", [decode_value(dtype.inner, v) for v in raw], dtype=dtype.inner)
