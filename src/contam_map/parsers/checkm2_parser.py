"""
CheckM2 quality report parser for ContamMap.
Only the bin name, completeness and contamination columns are used.
"""

import pandas as pd
import logging

from src.contam_map.parsers.schema import read_tsv, coerce_column

logger = logging.getLogger(__name__)


def parse_checkm2(quality_path: str) -> pd.DataFrame:
    """
    Parse a CheckM2 quality_report.tsv.

    :param quality_path: Path to the quality report.
    :return: DataFrame with columns 'bin_name', 'completeness' and 'contamination'.
    """
    df = read_tsv(quality_path, ['Name', 'Completeness', 'Contamination'], 'bin quality')

    quality = pd.DataFrame({
        'bin_name': df['Name'],
        'completeness': coerce_column(df, 'Completeness', 'float', quality_path),
        'contamination': coerce_column(df, 'Contamination', 'float', quality_path),
    })

    logger.info(f"Read quality estimates for {len(quality)} bins from {quality_path}")
    return quality
