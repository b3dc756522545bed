"""
Statistics helpers for ContamMap.
Includes NaN-safe means and the column variances used for motif pruning.
"""

import numpy as np
import pandas as pd
from typing import Iterable


def safe_mean(values: Iterable[float]) -> float:
    """
    Arithmetic mean that returns NaN instead of warning on an empty input.

    :param values: Numbers to average.
    :return: The mean, or NaN if there are no values.
    """
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return float("nan")
    return float(arr.mean())


def column_variances(matrix: pd.DataFrame) -> pd.Series:
    """
    Per-column sample variance of a sparse matrix; NaN for columns with n <= 1.

    :param matrix: DataFrame with NaN marking absent cells.
    :return: Series of variances indexed like the matrix columns.
    """
    return matrix.var(axis=0, ddof=1, skipna=True)
