import math

import pytest
from src.contam_map.core.errors import MotifParseError
from src.contam_map.core.models import (
    Assignment,
    Bin,
    BinQuality,
    Contig,
    ContigAssignment,
    ModType,
    MotifKey,
    MotifSignature,
    HQ_MIN_COMPLETENESS,
    HQ_MAX_CONTAMINATION,
    MQ_MIN_COMPLETENESS,
    MQ_MAX_CONTAMINATION,
)


def test_motif_key_parse_and_label():
    m = MotifKey.parse("GATC", "a", 1)
    assert m.sequence == "GATC"
    assert m.mod_type == ModType.SIX_MA
    assert m.position == 1
    assert m.label == "GATC_a_1"

    # Lower case input and long modification names are normalized
    m2 = MotifKey.parse("gatc", "6mA", 1)
    assert m2 == m
    assert hash(m2) == hash(m)

    assert MotifKey.parse("CCWGG", "21839", 0).label == "CCWGG_21839_0"
    assert MotifKey.parse("GANTC", "a", 1).label == "GANTC_a_1"


@pytest.mark.parametrize("sequence, mod_type, position", [
    ("GATC", "x", 1),       # unknown modification
    ("GATC", "a", 4),       # position outside the motif
    ("GATC", "a", 3),       # C cannot carry 6mA
    ("GATC", "m", 1),       # A cannot carry 5mC
    ("GANTC", "m", 2),      # N is not the modified base itself
    ("GA-C", "a", 1),       # not an IUPAC letter
    ("", "a", 0),
])
def test_motif_key_parse_rejects_invalid(sequence, mod_type, position):
    with pytest.raises(MotifParseError) as exc:
        MotifKey.parse(sequence, mod_type, position)
    # The offending values are part of the message
    assert f"{sequence}_{mod_type}_{position}" in str(exc.value)


def test_contig_mean_coverage_unweighted():
    m1 = MotifKey.parse("GATC", "a", 1)
    m2 = MotifKey.parse("CCWGG", "m", 1)
    c = Contig("c1", {
        m1: MotifSignature(m1, 0.9, n_motif_obs=1000, mean_coverage=10.0),
        m2: MotifSignature(m2, 0.1, n_motif_obs=1, mean_coverage=30.0),
    })
    # (10 + 30) / 2, observation counts do not weight the mean
    assert c.derive_mean_coverage() == 20.0


def test_contig_without_signatures_has_nan_coverage():
    c = Contig("empty")
    assert math.isnan(c.derive_mean_coverage())
    assert math.isnan(c.mean_coverage)


def test_bin_quality_scenarios():
    assert BinQuality.from_values(95, 2) == BinQuality.HQ
    assert BinQuality.from_values(60, 8) == BinQuality.MQ
    assert BinQuality.from_values(20, 50) == BinQuality.LQ


def test_bin_quality_boundaries():
    # Thresholds as configured
    assert (HQ_MIN_COMPLETENESS, HQ_MAX_CONTAMINATION) == (90.0, 5.0)
    assert (MQ_MIN_COMPLETENESS, MQ_MAX_CONTAMINATION) == (50.0, 10.0)

    # HQ needs completeness strictly above 90 and contamination strictly below 5
    assert BinQuality.from_values(90.0, 1.0) == BinQuality.MQ
    assert BinQuality.from_values(95.0, 5.0) == BinQuality.MQ
    # MQ contamination bound is inclusive, completeness bound is strict
    assert BinQuality.from_values(60.0, 10.0) == BinQuality.MQ
    assert BinQuality.from_values(60.0, 10.01) == BinQuality.LQ
    assert BinQuality.from_values(50.0, 1.0) == BinQuality.LQ


def test_bin_quality_monotone():
    # Raising completeness above 90 or lowering contamination below 5 never leaves HQ
    for completeness in [90.5, 92.0, 99.0, 100.0]:
        for contamination in [4.99, 3.0, 1.0, 0.0]:
            assert BinQuality.from_values(completeness, contamination) == BinQuality.HQ


def test_bin_set_quality_estimates():
    b = Bin("b1", [ContigAssignment("c1"), ContigAssignment("c2", Assignment.CONTAMINATION)])
    assert b.quality is None
    b.set_quality_estimates(95, 2)
    assert b.completeness == 95.0
    assert b.quality == BinQuality.HQ
    assert b.contig_ids == ["c1", "c2"]
    assert b.contig_assignments[1].assignment == Assignment.CONTAMINATION
