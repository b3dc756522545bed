"""
Main entry point for the ContamMap command-line tool.
Creates projects from methylation, contig-bin and quality files, lists bins,
exports heatmap queries and records contamination assignments.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

import pandas as pd

from src.contam_map.core.assignments import decode_assignment, QUALITY_CODES
from src.contam_map.core.errors import DataLoadError
from src.contam_map.core.heatmap import BinSelection, ContigSelection, HeatmapQuery
from src.contam_map.core.models import ContigAssignment
from src.contam_map.core.project import Project, ProjectDetails, PROJECT_FILE
from src.contam_map.utils.logging import setup_logging

logger = logging.getLogger(__name__)

_QUALITY_BY_CODE = {code: quality for quality, code in QUALITY_CODES.items()}


def read_assignment_update(path: Path) -> List[ContigAssignment]:
    """
    Read a TSV with 'contig_id' and 'assignment' columns into ContigAssignments.
    """
    try:
        df = pd.read_csv(path, sep='\t', dtype=str, keep_default_na=False, encoding='utf-8')
    except Exception as e:
        logger.error(f"Failed to read assignment file {path}: {e}")
        raise DataLoadError(f"Failed to read assignment file {path}: {e}")
    if 'contig_id' not in df.columns or 'assignment' not in df.columns:
        raise DataLoadError(f"Assignment file {path} needs 'contig_id' and 'assignment' columns")
    return [ContigAssignment(row.contig_id, decode_assignment(row.assignment)) for row in df.itertuples(index=False)]


def run_create(args):
    details = ProjectDetails(
        project_id=args.project_id,
        methylation_data_path=Path(args.methylation),
        contig_bin_path=Path(args.contig_bin),
        bin_quality_path=Path(args.quality) if args.quality else None,
        output_path=Path(args.output),
    )
    project = Project.create(details)
    logger.info(f"Project file: {project.project_file}")


def run_bins(args):
    project = Project.load(Path(args.project))
    qualities = [_QUALITY_BY_CODE[q] for q in args.quality] if args.quality else None
    for bin_id in project.bin_ids(qualities):
        b = project.bins[bin_id]
        quality = QUALITY_CODES[b.quality] if b.quality is not None else "NA"
        print(f"{bin_id}\t{len(b.contig_assignments)}\t{b.completeness}\t{b.contamination}\t{quality}")


def run_heatmap(args):
    project = Project.load(Path(args.project))
    selection = BinSelection(args.bin) if args.bin else ContigSelection(args.contigs)
    query = HeatmapQuery(
        selection=selection,
        min_n_motif_obs=args.min_n_motif_obs,
        min_coverage=args.min_coverage,
        min_motif_variance=args.min_motif_variance,
    )
    heatmap = project.heatmap(query)
    logger.info(f"Heatmap: {len(heatmap.contigs)} contigs x {len(heatmap.motifs)} motifs")

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    with open(output_dir / 'heatmap.json', 'w', encoding='utf-8') as f:
        json.dump(heatmap.to_dict(), f, indent=2)
    heatmap.matrix_frame().to_csv(output_dir / 'heatmap_matrix.tsv', sep='\t', index_label='contig', na_rep='', encoding='utf-8')
    heatmap.metadata_frame().to_csv(output_dir / 'heatmap_metadata.tsv', sep='\t', index=False, encoding='utf-8')
    logger.info(f"Heatmap written to {output_dir}")


def run_update(args):
    project = Project.load(Path(args.project))
    assignments = read_assignment_update(Path(args.assignments))
    project.update_assignments(args.bin, assignments)
    project.save_assignments()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ContamMap: methylation-based contamination triage of metagenomic bins.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log DEBUG messages to the console")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create a project", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    create.add_argument("-p", "--project-id", required=True, help="Project identifier")
    create.add_argument("-m", "--methylation", required=True, help="Motif methylation TSV")
    create.add_argument("-c", "--contig-bin", required=True, help="Contig to bin TSV (columns: contig, bin)")
    create.add_argument("-q", "--quality", help="Optional CheckM2 quality_report.tsv")
    create.add_argument("-o", "--output", default="./output", help="Project directory")
    create.set_defaults(func=run_create)

    bins = subparsers.add_parser("bins", help="List bins of a project", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    bins.add_argument("--project", required=True, help=f"Path to {PROJECT_FILE}")
    bins.add_argument("--quality", nargs="+", choices=sorted(_QUALITY_BY_CODE), help="Only list bins of these qualities")
    bins.set_defaults(func=run_bins)

    heatmap = subparsers.add_parser("heatmap", help="Export a contig x motif heatmap", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    heatmap.add_argument("--project", required=True, help=f"Path to {PROJECT_FILE}")
    selection = heatmap.add_mutually_exclusive_group(required=True)
    selection.add_argument("--bin", help="Select all contigs of this bin")
    selection.add_argument("--contigs", nargs="+", help="Select these contigs")
    heatmap.add_argument("--min-n-motif-obs", type=int, help="Minimum motif observations for a value to be shown")
    heatmap.add_argument("--min-coverage", type=float, help="Minimum mean read coverage for a value to be shown")
    heatmap.add_argument("--min-motif-variance", type=float, help="Drop motifs with lower sample variance")
    heatmap.add_argument("-o", "--output", default="./heatmap", help="Output directory")
    heatmap.set_defaults(func=run_heatmap)

    update = subparsers.add_parser("update", help="Set contig assignments of a bin", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    update.add_argument("--project", required=True, help=f"Path to {PROJECT_FILE}")
    update.add_argument("--bin", required=True, help="Bin to update (created if it does not exist)")
    update.add_argument("--assignments", required=True, help="TSV with contig_id and assignment columns")
    update.set_defaults(func=run_update)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    log_dir = Path(args.output) if getattr(args, "output", None) else None
    log_listener = setup_logging(log_dir, verbose=args.verbose)

    try:
        logger.info(f"Running contam-map {args.command}...")
        args.func(args)
    except Exception as e:
        logger.error(f"Critical failure: {e}")
        sys.exit(1)
    finally:
        log_listener.stop()


if __name__ == "__main__":
    main()
