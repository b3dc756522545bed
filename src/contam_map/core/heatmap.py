"""
Heatmap query engine for ContamMap.
Resolves a bin or contig-list selection, applies observation/coverage
thresholds, builds the sparse contig x motif methylation matrix and prunes
motifs by sample variance.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

import numpy as np
import pandas as pd

from src.contam_map.core.assignments import encode_assignment
from src.contam_map.core.errors import BinNotFoundError
from src.contam_map.core.models import Assignment, Bin, Contig, MotifSignature
from src.contam_map.utils.stats import column_variances

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BinSelection:
    """Select every contig of one bin; assignments come from that bin."""
    bin_id: str


@dataclass(frozen=True)
class ContigSelection:
    """Select an explicit list of contigs; no bin owns their assignments."""
    contig_ids: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, 'contig_ids', tuple(self.contig_ids))


Selection = Union[BinSelection, ContigSelection]


@dataclass
class HeatmapQuery:
    selection: Selection
    min_n_motif_obs: Optional[int] = None
    min_coverage: Optional[float] = None
    min_motif_variance: Optional[float] = None


@dataclass
class ContigMetadata:
    contig_id: str
    assignment: Assignment
    mean_coverage: float


@dataclass
class HeatmapData:
    """
    Query result. matrix[i][j] is the methylation value of contigs[i] at
    motifs[j], or None when there is no (surviving) observation.
    """
    contigs: List[str]
    motifs: List[str]
    matrix: List[List[Optional[float]]]
    metadata: Dict[str, ContigMetadata] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'contigs': list(self.contigs),
            'motifs': list(self.motifs),
            'matrix': [list(row) for row in self.matrix],
            'metadata': {
                cid: {
                    'contig_id': m.contig_id,
                    'assignment': encode_assignment(m.assignment),
                    'mean_coverage': m.mean_coverage,
                }
                for cid, m in self.metadata.items()
            },
        }

    def matrix_frame(self) -> pd.DataFrame:
        # None becomes NaN
        values = np.array(self.matrix, dtype=float).reshape(len(self.contigs), len(self.motifs))
        return pd.DataFrame(values, index=self.contigs, columns=self.motifs)

    def metadata_frame(self) -> pd.DataFrame:
        metadata = self.to_dict()['metadata']
        rows = [metadata[cid] for cid in sorted(metadata)]
        return pd.DataFrame(rows, columns=['contig_id', 'assignment', 'mean_coverage'])


def resolve_bin_selection(selection: BinSelection, bins: Dict[str, Bin]) -> Tuple[List[str], Dict[str, Assignment]]:
    """
    :return: Tuple (contig ids of the bin, contig_id -> assignment in that bin).
    :raises BinNotFoundError: If the bin does not exist.
    """
    b = bins.get(selection.bin_id)
    if b is None:
        raise BinNotFoundError(f"Bin '{selection.bin_id}' not found.")
    return b.contig_ids, {c.contig_id: c.assignment for c in b.contig_assignments}


def resolve_contig_selection(selection: ContigSelection) -> Tuple[List[str], Dict[str, Assignment]]:
    """
    :return: Tuple (the listed contig ids, empty assignment lookup).
    """
    return list(selection.contig_ids), {}


def resolve_selection(selection: Selection, bins: Dict[str, Bin]) -> Tuple[List[str], Dict[str, Assignment]]:
    if isinstance(selection, BinSelection):
        return resolve_bin_selection(selection, bins)
    return resolve_contig_selection(selection)


def passes_thresholds(signature: MotifSignature, query: HeatmapQuery) -> bool:
    """
    Check a signature against the observation and coverage thresholds.
    An unset threshold never excludes.
    """
    if query.min_n_motif_obs is not None and signature.n_motif_obs < query.min_n_motif_obs:
        return False
    if query.min_coverage is not None and signature.mean_coverage < query.min_coverage:
        return False
    return True


def build_matrix(selected: List[Contig], query: HeatmapQuery) -> pd.DataFrame:
    """
    Build the contig x motif matrix over surviving observations.
    Rows follow the order of 'selected'; columns are the motifs with at least
    one surviving value, sorted by sequence, modification and position.
    Absent cells are NaN.

    :param selected: Contigs forming the row axis.
    :param query: Query carrying the thresholds.
    :return: DataFrame indexed by contig id with motif labels as columns.
    """
    rows: List[Dict[str, float]] = []
    surviving = {}
    excluded = 0
    for contig in selected:
        row = {}
        for motif, signature in contig.motifs.items():
            if passes_thresholds(signature, query):
                row[motif.label] = signature.methylation_value
                surviving[motif.label] = motif
            else:
                excluded += 1
        rows.append(row)

    columns = [m.label for m in sorted(surviving.values(), key=lambda m: m.sort_key)]
    data = np.array([[row.get(label, np.nan) for label in columns] for row in rows], dtype=float)
    data = data.reshape(len(rows), len(columns))
    matrix = pd.DataFrame(data, index=[c.contig_id for c in selected], columns=columns)

    logger.debug(f"Threshold filtering excluded {excluded} contig-motif observations; "
                 f"{len(columns)} motifs have surviving values")
    return matrix


def prune_by_variance(matrix: pd.DataFrame, min_motif_variance: float) -> pd.DataFrame:
    """
    Drop motif columns whose sample variance over present values is below the
    threshold. Columns with fewer than two present values have no variance and
    are dropped as well.
    """
    variances = column_variances(matrix)
    # NaN >= x is False, so undefined variances never pass
    keep = [col for col in matrix.columns if variances[col] >= min_motif_variance]
    dropped = len(matrix.columns) - len(keep)
    if dropped:
        logger.debug(f"Variance pruning (< {min_motif_variance}) dropped {dropped} motifs")
    return matrix[keep]


def get_heatmap_data(query: HeatmapQuery, contigs: Dict[str, Contig], bins: Dict[str, Bin]) -> HeatmapData:
    """
    Answer a heatmap query against the contig and bin registries. Reads only.

    :param query: Selection and optional thresholds.
    :param contigs: Contig registry.
    :param bins: Bin registry.
    :return: HeatmapData with axes in matrix order and metadata per selected contig.
    :raises BinNotFoundError: If a BinSelection names an unknown bin.
    """
    selected_ids, assignments = resolve_selection(query.selection, bins)

    # Contigs without methylation data are dropped silently.
    selected = [contigs[cid] for cid in sorted(set(selected_ids)) if cid in contigs]
    if len(selected) < len(set(selected_ids)):
        logger.debug(f"{len(set(selected_ids)) - len(selected)} selected contigs have no methylation data")

    matrix = build_matrix(selected, query)
    if query.min_motif_variance is not None:
        matrix = prune_by_variance(matrix, query.min_motif_variance)

    # Every selected contig gets metadata, including those without methylation data
    metadata = {}
    for cid in dict.fromkeys(selected_ids):
        coverage = contigs[cid].mean_coverage if cid in contigs else np.nan
        metadata[cid] = ContigMetadata(
            contig_id=cid,
            assignment=assignments.get(cid, Assignment.UNSET),
            mean_coverage=0.0 if np.isnan(coverage) else float(coverage),
        )

    values = [
        [None if np.isnan(v) else float(v) for v in row]
        for row in matrix.to_numpy(dtype=float)
    ]

    return HeatmapData(
        contigs=list(matrix.index),
        motifs=list(matrix.columns),
        matrix=values,
        metadata=metadata,
    )
