"""
Methylation table parser for ContamMap.
Reads the per contig and motif methylation summary TSV.
"""

import pandas as pd
import logging

from src.contam_map.parsers.schema import read_tsv, coerce_column

logger = logging.getLogger(__name__)

METHYLATION_COLUMNS = [
    'contig', 'motif', 'mod_type', 'mod_position', 'methylation_value',
    'mean_read_cov', 'n_motif_obs', 'motif_occurences_total'
]


def parse_methylation(methylation_path: str) -> pd.DataFrame:
    """
    Parse a methylation TSV file into a typed DataFrame.

    :param methylation_path: Path to the methylation file.
    :return: DataFrame with one row per (contig, motif) record.
    :raises DataLoadError: If the file is unreadable, empty or a field has the wrong type.
    """
    df = read_tsv(methylation_path, METHYLATION_COLUMNS, 'methylation')
    df = df[METHYLATION_COLUMNS].copy()

    df['mod_position'] = coerce_column(df, 'mod_position', 'uint', methylation_path, max_value=255)
    df['methylation_value'] = coerce_column(df, 'methylation_value', 'float', methylation_path)
    df['mean_read_cov'] = coerce_column(df, 'mean_read_cov', 'float', methylation_path)
    df['n_motif_obs'] = coerce_column(df, 'n_motif_obs', 'uint', methylation_path)
    df['motif_occurences_total'] = coerce_column(df, 'motif_occurences_total', 'uint', methylation_path)

    logger.info(f"Read {len(df)} methylation records for {df['contig'].nunique()} contigs from {methylation_path}")
    return df
