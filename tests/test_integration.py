import json
import subprocess
import sys
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parent.parent


def run_cli(*args):
    cmd = [sys.executable, "-m", "src.contam_map.main", *[str(a) for a in args]]
    result = subprocess.run(cmd, capture_output=True, text=True, cwd=ROOT)
    print(result.stdout)
    print(result.stderr)
    return result


def test_full_workflow(tmp_path):
    meth = tmp_path / "meth.tsv"
    meth.write_text(
        "contig\tmotif\tmod_type\tmod_position\tmethylation_value\tmean_read_cov\tn_motif_obs\tmotif_occurences_total\n"
        "c1\tGATC\ta\t1\t0.9\t10.0\t50\t50\n"
        "c2\tGATC\ta\t1\t0.7\t20.0\t50\t50\n"
        "c2\tCCWGG\tm\t1\t0.2\t20.0\t3\t3\n",
        encoding='utf-8'
    )
    contig_bin = tmp_path / "contig_bin.tsv"
    contig_bin.write_text("contig\tbin\nc1\tb1\nc2\tb1\n", encoding='utf-8')
    quality = tmp_path / "quality.tsv"
    quality.write_text("Name\tCompleteness\tContamination\nb1\t95\t2\n", encoding='utf-8')
    project_dir = tmp_path / "project"

    result = run_cli("create", "-p", "demo", "-m", meth, "-c", contig_bin, "-q", quality, "-o", project_dir)
    assert result.returncode == 0
    project_file = project_dir / "project.json"
    assert project_file.exists()
    assert (project_dir / "contig_metadata.tsv").exists()
    assert (project_dir / "log.txt").exists()

    result = run_cli("bins", "--project", project_file, "--quality", "HQ")
    assert result.returncode == 0
    assert "b1\t2\t95.0\t2.0\tHQ" in result.stdout

    updates = tmp_path / "updates.tsv"
    updates.write_text("contig_id\tassignment\nc2\tContamination\nc1\tClean\n", encoding='utf-8')
    result = run_cli("update", "--project", project_file, "--bin", "b1", "--assignments", updates)
    assert result.returncode == 0

    out_dir = tmp_path / "heatmap"
    result = run_cli("heatmap", "--project", project_file, "--bin", "b1", "--min-n-motif-obs", 10, "-o", out_dir)
    assert result.returncode == 0

    with open(out_dir / "heatmap.json", encoding='utf-8') as f:
        heatmap = json.load(f)
    assert heatmap['contigs'] == ['c1', 'c2']
    assert heatmap['motifs'] == ['GATC_a_1']
    assert heatmap['matrix'] == [[0.9], [0.7]]
    assert heatmap['metadata']['c2']['assignment'] == 'Contamination'

    matrix = pd.read_csv(out_dir / "heatmap_matrix.tsv", sep='\t', index_col=0)
    assert list(matrix.columns) == ['GATC_a_1']
    assert (out_dir / "heatmap_metadata.tsv").exists()


def test_mismatched_update_fails(tmp_path):
    meth = tmp_path / "meth.tsv"
    meth.write_text(
        "contig\tmotif\tmod_type\tmod_position\tmethylation_value\tmean_read_cov\tn_motif_obs\tmotif_occurences_total\n"
        "c1\tGATC\ta\t1\t0.9\t10.0\t50\t50\n",
        encoding='utf-8'
    )
    contig_bin = tmp_path / "contig_bin.tsv"
    contig_bin.write_text("contig\tbin\nc1\tb1\n", encoding='utf-8')
    project_dir = tmp_path / "project"
    assert run_cli("create", "-p", "demo", "-m", meth, "-c", contig_bin, "-o", project_dir).returncode == 0

    saved = (project_dir / "contig_metadata.tsv").read_bytes()
    updates = tmp_path / "updates.tsv"
    updates.write_text("contig_id\tassignment\nc9\tClean\n", encoding='utf-8')
    result = run_cli("update", "--project", project_dir / "project.json", "--bin", "b1", "--assignments", updates)

    assert result.returncode == 1
    assert "Critical failure" in result.stdout
    assert (project_dir / "contig_metadata.tsv").read_bytes() == saved
