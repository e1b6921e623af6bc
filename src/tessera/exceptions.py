"""
Exception classes for tessera.

These exceptions are used throughout the tessera package to signal invalid input to
column, table and lazy plan operations. Every class derives from ``TesseraError`` and
from the closest Python builtin, so ``except KeyError`` around a column lookup or
``except IndexError`` around a positional read keeps working.
"""


class TesseraError(Exception):
    """Base class for every error raised by the engine."""
    pass


class DtypeError(TesseraError, TypeError):
    """Raised when an operation receives a column of the wrong data type.

    Examples:
        - Filtering with a mask that is not Boolean
        - Bitwise ``and``/``or``/``xor`` on a non-Boolean column
        - A cast with no lossless or explicitly allowed conversion
        - Constructor values that cannot be coerced into the declared dtype
    """
    pass


class ShapeError(TesseraError, ValueError):
    """Raised when lengths disagree.

    Examples:
        - Element-wise arithmetic between columns of different length
        - Adding a column whose length differs from the table height
        - Join key lists of different arity
    """
    pass


class SchemaMismatchError(TesseraError, ValueError):
    """Raised when two tables are stacked vertically with different schemas.

    The column names, their order and their dtypes must all match.
    """
    pass


class DuplicateNameError(TesseraError, ValueError):
    """Raised when an operation would leave two columns with the same name."""
    pass


class NotFoundError(TesseraError, KeyError):
    """Raised when a column name cannot be resolved."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class OutOfBoundsError(TesseraError, IndexError):
    """Raised when a positional index is outside the column or table."""
    pass


class UnsupportedOption(TesseraError, ValueError):
    """Raised when an enumerated option token is not recognized.

    Examples:
        - Join ``how`` other than inner/left/right/full/cross
        - Dedup ``keep`` other than first/last
        - Fill ``strategy`` other than min/max/mean/zero/one
        - CSV ``encoding`` other than utf8/utf8-lossy
    """
    pass


class ComputeError(TesseraError, ArithmeticError):
    """Raised when a computation has no defined result, e.g. integer division by zero."""
    pass


class PlanValidationError(TesseraError, ValueError):
    """Raised when a logical plan is invalid.

    This error is raised when a plan node is built with an inconsistent shape or when
    a serialized plan cannot be rebuilt. Examples:
        - Operation with the wrong number of inputs
        - Select with no expressions
        - Unknown operation or expression type in a serialized plan
    """
    pass


class DecodeError(TesseraError, ValueError):
    """Raised when tabular input cannot be decoded into a DataFrame."""
    pass
