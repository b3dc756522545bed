"""
Registry construction for ContamMap.
Builds the contig registry and motif set from methylation records, and the
bin registry (with quality labels) from contig-bin and quality records.
"""

from typing import Dict, Iterable, Optional, Set, Tuple, Any
import logging

from src.contam_map.core.errors import (
    ContigOverlapError,
    NoBinsError,
    QualityOverlapError,
)
from src.contam_map.core.models import Bin, Contig, ContigAssignment, MotifKey, MotifSignature

logger = logging.getLogger(__name__)


def build_contig_registry(records: Iterable[Any]) -> Tuple[Dict[str, Contig], Set[MotifKey]]:
    """
    Build the contig registry and project-wide motif set from methylation records.
    A later record for the same (contig, motif) pair overwrites the earlier one.

    :param records: Objects with contig, motif, mod_type, mod_position,
                    methylation_value, mean_read_cov and n_motif_obs attributes
                    (e.g. DataFrame.itertuples()).
    :return: Tuple (contig_id -> Contig, set of MotifKey).
    :raises MotifParseError: On the first record with an invalid motif; nothing is returned.
    """
    contigs: Dict[str, Contig] = {}
    motifs: Set[MotifKey] = set()
    overwritten = 0

    for rec in records:
        motif = MotifKey.parse(rec.motif, rec.mod_type, rec.mod_position)
        signature = MotifSignature(
            motif=motif,
            methylation_value=float(rec.methylation_value),
            n_motif_obs=int(rec.n_motif_obs),
            mean_coverage=float(rec.mean_read_cov),
        )
        motifs.add(motif)

        contig_id = str(rec.contig)
        contig = contigs.get(contig_id)
        if contig is None:
            contig = Contig(contig_id=contig_id)
            contigs[contig_id] = contig
        if motif in contig.motifs:
            overwritten += 1
        contig.motifs[motif] = signature

    for contig in contigs.values():
        contig.mean_coverage = contig.derive_mean_coverage()

    if overwritten:
        logger.warning(f"{overwritten} duplicate (contig, motif) records overwrote earlier values")
    logger.info(f"Contig registry built: {len(contigs)} contigs, {len(motifs)} motifs")
    return contigs, motifs


def build_bin_registry(
    contig_bin_records: Iterable[Any],
    quality_records: Optional[Iterable[Any]] = None
) -> Dict[str, Bin]:
    """
    Group contigs into bins and attach quality estimates.

    :param contig_bin_records: Objects with contig and bin attributes, in file order.
    :param quality_records: Optional objects with bin_name, completeness and contamination attributes.
    :return: Dictionary bin_id -> Bin, keyed in lexicographic bin order.
    :raises NoBinsError: If no bin was collected.
    :raises QualityOverlapError: If quality records were given but name none of the bins.
    """
    grouped: Dict[str, Bin] = {}
    seen: Dict[str, Set[str]] = {}
    for rec in contig_bin_records:
        bin_id, contig_id = str(rec.bin), str(rec.contig)
        if bin_id not in grouped:
            grouped[bin_id] = Bin(bin_id=bin_id)
            seen[bin_id] = set()
        if contig_id in seen[bin_id]:
            logger.debug(f"Contig {contig_id} listed twice for bin {bin_id}; keeping first")
            continue
        seen[bin_id].add(contig_id)
        grouped[bin_id].contig_assignments.append(ContigAssignment(contig_id))

    if not grouped:
        logger.error("No bins were collected from provided files")
        raise NoBinsError("No bins were collected from provided files")

    bins = {bin_id: grouped[bin_id] for bin_id in sorted(grouped)}

    if quality_records is not None:
        quality_map = {str(q.bin_name): q for q in quality_records}
        matched = [bin_id for bin_id in bins if bin_id in quality_map]
        if not matched:
            logger.error("No bin names are shared between the quality file and the contig-bin file")
            raise QualityOverlapError(
                "No bin names are shared between the quality file and the contig-bin file"
            )
        for bin_id in matched:
            q = quality_map[bin_id]
            bins[bin_id].set_quality_estimates(q.completeness, q.contamination)
        logger.info(f"Quality estimates attached to {len(matched)}/{len(bins)} bins")

    logger.info(f"Bin registry built: {len(bins)} bins, "
                f"{sum(len(b.contig_assignments) for b in bins.values())} contig assignments")
    return bins


def assert_contig_overlap(contigs: Dict[str, Contig], bins: Dict[str, Bin]):
    """
    Check that at least one methylation contig is binned.

    :raises ContigOverlapError: If the two inputs share no contig.
    """
    binned = {c for b in bins.values() for c in b.contig_ids}
    shared = binned.intersection(contigs)
    if not shared:
        logger.error("There are no contig matches between contig_bin and methylation data")
        raise ContigOverlapError("There are no contig matches between contig_bin and methylation data")

    logger.debug(f"{len(shared)} contigs present in both methylation and contig-bin inputs; "
                 f"{len(binned) - len(shared)} binned contigs lack methylation data")
