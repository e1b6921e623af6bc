"""
CSV ingestion.

``read_csv`` decodes delimited text into a DataFrame using pandas' parser and then
converts every column into the engine's type system. Columns are parsed with pandas'
nullable dtypes so integer columns with gaps stay integers. Only empty fields are read as
null; tokens such as ``NA`` or ``null`` stay strings.
"""

from __future__ import annotations

import io
import logging
from enum import Enum
from os import PathLike
from typing import IO, List, Optional, Union

import pandas as pd

from . import config
from .core.dataframe import DataFrame
from .core.ordering import parse_option
from .exceptions import DecodeError, UnsupportedOption

logger = logging.getLogger(__name__)

CsvSource = Union[str, PathLike, bytes, IO]


class CsvEncoding(str, Enum):
    UTF8 = "utf8"
    UTF8_LOSSY = "utf8-lossy"


def _skip_lines(skip_rows: int, has_header: bool, skip_rows_after_header: int) -> List[int]:
    """Physical line numbers to drop before parsing."""
    skipped = list(range(skip_rows))
    first_data = skip_rows + 1 if has_header else skip_rows
    skipped.extend(range(first_data, first_data + skip_rows_after_header))
    return skipped


def read_csv(
    source: CsvSource,
    separator: str = ",",
    chunk_size: int = config.CSV_CHUNK_SIZE,
    has_header: bool = True,
    n_rows: Optional[int] = None,
    skip_rows: int = 0,
    rechunk: bool = True,
    encoding: Union[str, CsvEncoding] = CsvEncoding.UTF8,
    n_threads: Optional[int] = None,
    low_memory: bool = False,
    parse_dates: bool = False,
    skip_rows_after_header: int = 0,
) -> DataFrame:
    """Read delimited text into a DataFrame.

    Args:
        source: File path, raw bytes, or an open file object
        separator: Single-character field delimiter
        chunk_size: Rows per chunk in the decoded columns
        has_header: First (non-skipped) line holds column names; otherwise columns
            are named ``column_1`` .. ``column_N``
        n_rows: Stop after this many data rows
        skip_rows: Lines to skip before the header
        rechunk: Consolidate every column into one chunk after decoding
        encoding: ``"utf8"`` fails on invalid bytes, ``"utf8-lossy"`` replaces them
        n_threads: Accepted for compatibility; decoding is single-threaded
        low_memory: Forwarded to the parser
        parse_dates: Accepted; with no temporal type, date-like columns stay String
        skip_rows_after_header: Data lines to skip directly after the header

    Returns:
        Decoded DataFrame

    Raises:
        UnsupportedOption: If ``encoding`` is unknown, ``separator`` is not a single
            character or ``chunk_size`` is not positive
        DecodeError: If the input cannot be parsed
    """
    encoding = parse_option(CsvEncoding, encoding, "Encoding")
    if len(separator) != 1:
        raise UnsupportedOption(f"Separator must be a single character, got {separator!r}")
    if chunk_size <= 0:
        raise UnsupportedOption(f"chunk_size must be positive, got {chunk_size}")

    logger.debug(
        "Reading CSV: separator=%r has_header=%s n_rows=%s skip_rows=%d encoding=%s "
        "n_threads=%s parse_dates=%s",
        separator, has_header, n_rows, skip_rows, encoding.value, n_threads, parse_dates,
    )

    if isinstance(source, bytes):
        source = io.BytesIO(source)

    try:
        frame = pd.read_csv(
            source,
            sep=separator,
            header=0 if has_header else None,
            nrows=n_rows,
            skiprows=_skip_lines(skip_rows, has_header, skip_rows_after_header),
            encoding="utf-8",
            encoding_errors="replace" if encoding is CsvEncoding.UTF8_LOSSY else "strict",
            keep_default_na=False,
            na_values=[""],
            low_memory=low_memory,
            dtype_backend="numpy_nullable",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DecodeError(f"Failed to decode CSV input: {e}") from e

    if not has_header:
        frame.columns = [f"column_{i + 1}" for i in range(frame.shape[1])]

    df = DataFrame.from_pandas(frame)
    if df.height > chunk_size:
        pieces = [df.slice(offset, chunk_size) for offset in range(0, df.height, chunk_size)]
        df = pieces[0]
        for piece in pieces[1:]:
            df.vstack_mut(piece)
    if rechunk:
        df = df.rechunk()
    logger.debug("Decoded CSV into %d rows x %d columns", df.height, df.width)
    return df
