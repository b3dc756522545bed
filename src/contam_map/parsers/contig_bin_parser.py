"""
Contig to bin mapping parser for ContamMap.
"""

import pandas as pd
import logging

from src.contam_map.parsers.schema import read_tsv

logger = logging.getLogger(__name__)


def parse_contig_bin(contig_bin_path: str) -> pd.DataFrame:
    """
    Parse a contig-bin TSV file with a 'contig' and a 'bin' column.

    :param contig_bin_path: Path to the contig-bin file.
    :return: DataFrame with columns 'contig' and 'bin', in file order.
    """
    df = read_tsv(contig_bin_path, ['contig', 'bin'], 'contig-bin')
    df = df[['contig', 'bin']].copy()

    logger.info(f"Read {len(df)} contig-bin pairs over {df['bin'].nunique()} bins from {contig_bin_path}")
    return df
