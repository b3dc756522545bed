import pytest
import pandas as pd
from src.contam_map.core.errors import (
    ContigOverlapError,
    MotifParseError,
    NoBinsError,
    QualityOverlapError,
)
from src.contam_map.core.models import Assignment, BinQuality, MotifKey
from src.contam_map.core.registry import (
    assert_contig_overlap,
    build_bin_registry,
    build_contig_registry,
)


def methylation_df(rows):
    columns = ['contig', 'motif', 'mod_type', 'mod_position', 'methylation_value',
               'mean_read_cov', 'n_motif_obs', 'motif_occurences_total']
    return pd.DataFrame(rows, columns=columns)


def test_build_contig_registry():
    df = methylation_df([
        ('c1', 'GATC', 'a', 1, 0.9, 10.0, 100, 110),
        ('c1', 'CCWGG', 'm', 1, 0.2, 20.0, 50, 50),
        ('c2', 'GATC', 'a', 1, 0.8, 30.0, 70, 80),
    ])
    contigs, motifs = build_contig_registry(df.itertuples(index=False))

    gatc = MotifKey.parse('GATC', 'a', 1)
    assert set(contigs) == {'c1', 'c2'}
    assert motifs == {gatc, MotifKey.parse('CCWGG', 'm', 1)}
    assert contigs['c1'].motifs[gatc].methylation_value == 0.9
    assert contigs['c1'].motifs[gatc].n_motif_obs == 100
    # (10 + 20) / 2
    assert contigs['c1'].mean_coverage == 15.0
    assert contigs['c2'].mean_coverage == 30.0


def test_duplicate_records_overwrite():
    df = methylation_df([
        ('c1', 'GATC', 'a', 1, 0.9, 10.0, 100, 110),
        ('c1', 'GATC', 'a', 1, 0.4, 40.0, 5, 5),
    ])
    contigs, motifs = build_contig_registry(df.itertuples(index=False))

    sig = contigs['c1'].motifs[MotifKey.parse('GATC', 'a', 1)]
    assert len(contigs['c1'].motifs) == 1
    assert sig.methylation_value == 0.4
    assert sig.n_motif_obs == 5
    assert contigs['c1'].mean_coverage == 40.0


def test_invalid_motif_aborts_load():
    df = methylation_df([
        ('c1', 'GATC', 'a', 1, 0.9, 10.0, 100, 110),
        ('c2', 'GATC', 'a', 7, 0.9, 10.0, 100, 110),
    ])
    with pytest.raises(MotifParseError) as exc:
        build_contig_registry(df.itertuples(index=False))
    assert 'GATC_a_7' in str(exc.value)


def test_build_bin_registry_groups_in_order():
    pairs = pd.DataFrame({'contig': ['c3', 'c1', 'c2', 'c4'], 'bin': ['b2', 'b1', 'b1', 'b2']})
    bins = build_bin_registry(pairs.itertuples(index=False))

    assert list(bins) == ['b1', 'b2']
    # First-seen order within the bin, every contig defaults to UNSET
    assert bins['b1'].contig_ids == ['c1', 'c2']
    assert bins['b2'].contig_ids == ['c3', 'c4']
    assert all(c.assignment == Assignment.UNSET for b in bins.values() for c in b.contig_assignments)
    assert bins['b1'].quality is None
    assert bins['b1'].completeness is None


def test_build_bin_registry_skips_repeated_pairs():
    pairs = pd.DataFrame({'contig': ['c1', 'c1', 'c2'], 'bin': ['b1', 'b1', 'b1']})
    bins = build_bin_registry(pairs.itertuples(index=False))
    assert bins['b1'].contig_ids == ['c1', 'c2']


def test_build_bin_registry_attaches_quality():
    pairs = pd.DataFrame({'contig': ['c1', 'c2', 'c3'], 'bin': ['b1', 'b2', 'b3']})
    quality = pd.DataFrame({
        'bin_name': ['b1', 'b2', 'b3', 'not_binned'],
        'completeness': [95.0, 60.0, 20.0, 99.0],
        'contamination': [2.0, 8.0, 50.0, 0.0],
    })
    bins = build_bin_registry(pairs.itertuples(index=False), quality.itertuples(index=False))

    assert bins['b1'].quality == BinQuality.HQ
    assert bins['b2'].quality == BinQuality.MQ
    assert bins['b3'].quality == BinQuality.LQ
    assert bins['b1'].completeness == 95.0
    assert bins['b1'].contamination == 2.0


def test_bins_without_quality_record_stay_unlabelled():
    pairs = pd.DataFrame({'contig': ['c1', 'c2'], 'bin': ['b1', 'b2']})
    quality = pd.DataFrame({'bin_name': ['b1'], 'completeness': [95.0], 'contamination': [2.0]})
    bins = build_bin_registry(pairs.itertuples(index=False), quality.itertuples(index=False))

    assert bins['b1'].quality == BinQuality.HQ
    assert bins['b2'].quality is None


def test_no_bins_error():
    pairs = pd.DataFrame({'contig': [], 'bin': []})
    with pytest.raises(NoBinsError):
        build_bin_registry(pairs.itertuples(index=False))


def test_quality_overlap_error():
    pairs = pd.DataFrame({'contig': ['c1'], 'bin': ['b1']})
    quality = pd.DataFrame({'bin_name': ['other'], 'completeness': [95.0], 'contamination': [2.0]})
    with pytest.raises(QualityOverlapError):
        build_bin_registry(pairs.itertuples(index=False), quality.itertuples(index=False))


def test_contig_overlap():
    df = methylation_df([('c1', 'GATC', 'a', 1, 0.9, 10.0, 100, 110)])
    contigs, _ = build_contig_registry(df.itertuples(index=False))

    shared = build_bin_registry(pd.DataFrame({'contig': ['c1', 'c9'], 'bin': ['b1', 'b1']}).itertuples(index=False))
    assert_contig_overlap(contigs, shared)

    disjoint = build_bin_registry(pd.DataFrame({'contig': ['c9'], 'bin': ['b1']}).itertuples(index=False))
    with pytest.raises(ContigOverlapError):
        assert_contig_overlap(contigs, disjoint)
