"""
Shared TSV reading and column type checks for the ContamMap parsers.
"""

import pandas as pd
from typing import List
import logging

from src.contam_map.core.errors import DataLoadError

logger = logging.getLogger(__name__)


def read_tsv(path: str, required_columns: List[str], label: str) -> pd.DataFrame:
    """
    Read a headed TSV file as strings and check that the required columns exist.

    :param path: Path to the TSV file.
    :param required_columns: Column names that must appear in the header.
    :param label: Human readable name of the file, used in messages.
    :return: A DataFrame of string columns.
    :raises DataLoadError: If the file cannot be read or a column is missing.
    """
    try:
        # Everything is read as text; NA detection is off so ids like "NA" survive.
        df = pd.read_csv(path, sep='\t', dtype=str, keep_default_na=False, encoding='utf-8')
    except Exception as e:
        logger.error(f"Failed to read {label} file {path}: {e}")
        raise DataLoadError(f"Failed to read {label} file {path}: {e}")

    missing = [c for c in required_columns if c not in df.columns]
    if missing:
        logger.error(f"{label} file {path} is missing columns: {missing}")
        raise DataLoadError(f"{label} file {path} is missing required columns {missing}; found {list(df.columns)}")

    return df


def coerce_column(df: pd.DataFrame, column: str, kind: str, path: str, max_value: int = None) -> pd.Series:
    """
    Convert a string column to 'float' or 'uint', failing on the first bad value.

    :param df: DataFrame read by read_tsv.
    :param column: Column name to convert.
    :param kind: Either 'float' or 'uint'.
    :param path: Source path, used in messages.
    :param max_value: Optional inclusive upper bound for 'uint' columns.
    :return: The converted Series.
    :raises DataLoadError: Naming the offending field, value and line.
    """
    values = pd.to_numeric(df[column].str.strip(), errors='coerce')
    bad = values.isna()
    if kind == 'uint':
        bad |= (values < 0) | (values != values.round())
        if max_value is not None:
            bad |= values > max_value

    if bad.any():
        idx = bad.idxmax()
        # +2: one for the header row, one for 1-based line numbers
        raise DataLoadError(
            f"Invalid value '{df[column].iloc[idx]}' for field '{column}' ({kind}) "
            f"at line {idx + 2} of {path}"
        )

    if kind == 'uint':
        return values.astype('int64')
    return values.astype('float64')
