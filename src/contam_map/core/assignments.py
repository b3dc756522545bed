"""
Contig assignment tracking and persistence for ContamMap.
Handles wholesale assignment updates per bin and the flat per-contig
contig_metadata.tsv format that carries assignments across reloads.
"""

import os
import stat
import tempfile
from pathlib import Path
from typing import Dict, List, Optional
import logging

import pandas as pd

from src.contam_map.core.errors import (
    DataLoadError,
    MetadataMismatchError,
    PersistenceError,
    RecordFormatError,
)
from src.contam_map.core.models import Assignment, Bin, BinQuality, ContigAssignment

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ['bin_id', 'contig_id', 'assignment', 'completeness', 'contamination', 'quality']

# String codecs used only when reading or writing records.
ASSIGNMENT_CODES = {
    Assignment.UNSET: "None",
    Assignment.CLEAN: "Clean",
    Assignment.CONTAMINATION: "Contamination",
    Assignment.AMBIGUOUS: "Ambiguous",
}
QUALITY_CODES = {
    BinQuality.HQ: "HQ",
    BinQuality.MQ: "MQ",
    BinQuality.LQ: "LQ",
}
_ASSIGNMENT_BY_CODE = {v: k for k, v in ASSIGNMENT_CODES.items()}
_QUALITY_BY_CODE = {v: k for k, v in QUALITY_CODES.items()}


def encode_assignment(assignment: Assignment) -> str:
    return ASSIGNMENT_CODES[assignment]


def decode_assignment(code: str) -> Assignment:
    try:
        return _ASSIGNMENT_BY_CODE[code]
    except KeyError:
        raise RecordFormatError(f"Unknown assignment '{code}'. Expected one of {list(_ASSIGNMENT_BY_CODE)}")


def encode_quality(quality: Optional[BinQuality]) -> str:
    return "" if quality is None else QUALITY_CODES[quality]


def decode_quality(code: str) -> Optional[BinQuality]:
    if code == "":
        return None
    try:
        return _QUALITY_BY_CODE[code]
    except KeyError:
        raise RecordFormatError(f"Unknown bin quality '{code}'. Expected one of {list(_QUALITY_BY_CODE)}")


def _decode_optional_float(value: str, field: str) -> Optional[float]:
    if value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise RecordFormatError(f"Invalid value '{value}' for field '{field}' (float)")


def update_assignments(bins: Dict[str, Bin], bin_id: str, contigs: List[ContigAssignment]) -> Bin:
    """
    Replace the assignment list of a bin, or create the bin if it does not exist.

    :param bins: Bin registry to update in place.
    :param bin_id: Target bin.
    :param contigs: New assignments; must name exactly the contigs already in the bin.
    :return: The updated (or created) Bin.
    :raises MetadataMismatchError: If the contig set differs; the registry is left untouched.
    """
    new_assignments = list(contigs)
    existing = bins.get(bin_id)

    if existing is None:
        created = Bin(bin_id=bin_id, contig_assignments=new_assignments)
        bins[bin_id] = created
        logger.info(f"Created bin {bin_id} with {len(new_assignments)} contigs")
        return created

    current_ids = set(existing.contig_ids)
    new_ids = {c.contig_id for c in new_assignments}
    if len(new_assignments) != len(existing.contig_assignments) or new_ids != current_ids:
        missing = sorted(current_ids - new_ids)
        unexpected = sorted(new_ids - current_ids)
        logger.warning(f"Rejected assignment update for bin {bin_id}: missing {missing}, unexpected {unexpected}")
        raise MetadataMismatchError(
            f"Mismatch between contigs received and in bin '{bin_id}'. Change bin name."
        )

    existing.contig_assignments = new_assignments
    logger.info(f"Updated assignments for bin {bin_id}")
    return existing


def bins_to_records(bins: Dict[str, Bin]) -> pd.DataFrame:
    """
    Flatten the bin registry to one row per (bin, contig), in bin-then-contig order.
    Bin level fields are repeated on every contig row.

    :param bins: Bin registry.
    :return: DataFrame with RECORD_COLUMNS.
    """
    rows = []
    for bin_id in sorted(bins):
        b = bins[bin_id]
        for c in b.contig_assignments:
            rows.append({
                'bin_id': b.bin_id,
                'contig_id': c.contig_id,
                'assignment': encode_assignment(c.assignment),
                'completeness': b.completeness,
                'contamination': b.contamination,
                'quality': encode_quality(b.quality),
            })
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def bins_from_records(df: pd.DataFrame) -> Dict[str, Bin]:
    """
    Rebuild the bin registry from flat records.
    Bin level fields are taken from the first row seen for each bin.

    :param df: DataFrame of string columns as written by bins_to_records.
    :return: Dictionary bin_id -> Bin in lexicographic order.
    :raises RecordFormatError: On an unknown code or a non-numeric percentage.
    """
    bins: Dict[str, Bin] = {}
    for row in df.itertuples(index=False):
        assignment = ContigAssignment(row.contig_id, decode_assignment(row.assignment))
        b = bins.get(row.bin_id)
        if b is None:
            bins[row.bin_id] = Bin(
                bin_id=row.bin_id,
                contig_assignments=[assignment],
                completeness=_decode_optional_float(row.completeness, 'completeness'),
                contamination=_decode_optional_float(row.contamination, 'contamination'),
                quality=decode_quality(row.quality),
            )
        else:
            b.contig_assignments.append(assignment)

    return {bin_id: bins[bin_id] for bin_id in sorted(bins)}


def _target_file_mode(path: Path) -> int:
    """
    Permission bits for a file replacing 'path': those of the existing file,
    otherwise what open() would give a new file under the current umask.
    """
    if path.exists():
        return stat.S_IMODE(path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def save_assignments(bins: Dict[str, Bin], metadata_path: Path):
    """
    Write the bin registry to a TSV file. The file is written next to the
    target and moved into place, so a failure leaves any previous file intact.

    :param bins: Bin registry.
    :param metadata_path: Destination TSV.
    :raises PersistenceError: If the file cannot be created or written.
    """
    metadata_path = Path(metadata_path)
    df = bins_to_records(bins)
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=metadata_path.name, suffix='.tmp', dir=metadata_path.parent)
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            df.to_csv(f, sep='\t', index=False, na_rep='')
        os.chmod(tmp_name, _target_file_mode(metadata_path))
        os.replace(tmp_name, metadata_path)
    except OSError as e:
        logger.error(f"Failed to save contig metadata to {metadata_path}: {e}")
        if tmp_name is not None and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise PersistenceError(f"Failed to save contig metadata to {metadata_path}: {e}")

    logger.info(f"Metadata saved to: {metadata_path} ({len(df)} contig rows)")


def load_assignments(metadata_path: Path) -> Dict[str, Bin]:
    """
    Read a contig_metadata.tsv written by save_assignments.

    :param metadata_path: Path to the TSV.
    :return: The reconstructed bin registry.
    :raises DataLoadError: If the file cannot be read or lacks columns.
    """
    try:
        df = pd.read_csv(metadata_path, sep='\t', dtype=str, keep_default_na=False, encoding='utf-8')
    except Exception as e:
        logger.error(f"Failed to read contig metadata {metadata_path}: {e}")
        raise DataLoadError(f"Could not load bins from {metadata_path}: {e}")

    missing = [c for c in RECORD_COLUMNS if c not in df.columns]
    if missing:
        raise DataLoadError(f"Contig metadata {metadata_path} is missing columns {missing}")

    bins = bins_from_records(df[RECORD_COLUMNS])
    logger.info(f"Loaded assignments for {len(bins)} bins from {metadata_path}")
    return bins
