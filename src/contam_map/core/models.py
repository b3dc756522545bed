"""
Data models for ContamMap.
Defines motifs, per-contig methylation signatures, contigs, bins and their
contamination assignments and quality labels.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from Bio.Data.IUPACData import ambiguous_dna_letters

from src.contam_map.core.errors import MotifParseError
from src.contam_map.utils.stats import safe_mean

# Bin quality thresholds (percent). HQ bounds are strict on both sides,
# the MQ contamination bound is inclusive.
HQ_MIN_COMPLETENESS = 90.0
HQ_MAX_CONTAMINATION = 5.0
MQ_MIN_COMPLETENESS = 50.0
MQ_MAX_CONTAMINATION = 10.0


class ModType(Enum):
    """
    Enum of supported base modifications, valued by their pileup code.
    """
    SIX_MA = "a"
    FIVE_MC = "m"
    FOUR_MC = "21839"

    @property
    def modified_base(self) -> str:
        return "A" if self is ModType.SIX_MA else "C"

    @classmethod
    def parse(cls, raw: str) -> "ModType":
        aliases = {"6mA": cls.SIX_MA, "5mC": cls.FIVE_MC, "4mC": cls.FOUR_MC}
        if raw in aliases:
            return aliases[raw]
        return cls(raw)


@dataclass(frozen=True)
class MotifKey:
    """
    A methylation motif: sequence, modification type and 0-based position of
    the modified base within the sequence.
    """
    sequence: str
    mod_type: ModType
    position: int

    @classmethod
    def parse(cls, sequence: str, mod_type: str, position: int) -> "MotifKey":
        """
        Build a MotifKey from raw record fields, validating the definition.

        :param sequence: Motif sequence in IUPAC DNA letters.
        :param mod_type: Pileup code (a, m, 21839) or long name (6mA, 5mC, 4mC).
        :param position: 0-based position of the modified base.
        :return: A validated MotifKey.
        :raises MotifParseError: If the triple does not describe a valid motif.
        """
        label = f"{sequence}_{mod_type}_{position}"
        seq = str(sequence).upper()
        if not seq or any(base not in ambiguous_dna_letters for base in seq):
            raise MotifParseError(f"Wrong motif mod: {label}. Error: invalid sequence '{sequence}'")

        try:
            mod = ModType.parse(str(mod_type))
        except ValueError:
            raise MotifParseError(f"Wrong motif mod: {label}. Error: unknown modification type '{mod_type}'")

        try:
            pos = int(position)
        except (TypeError, ValueError):
            raise MotifParseError(f"Wrong motif mod: {label}. Error: position is not an integer")

        if pos < 0 or pos >= len(seq):
            raise MotifParseError(f"Wrong motif mod: {label}. Error: position {pos} outside motif of length {len(seq)}")
        if seq[pos] != mod.modified_base:
            raise MotifParseError(
                f"Wrong motif mod: {label}. Error: base '{seq[pos]}' cannot carry {mod.name} "
                f"(expected {mod.modified_base})"
            )

        return cls(sequence=seq, mod_type=mod, position=pos)

    @property
    def label(self) -> str:
        return f"{self.sequence}_{self.mod_type.value}_{self.position}"

    @property
    def sort_key(self) -> Tuple[str, str, int]:
        return self.sequence, self.mod_type.value, self.position


@dataclass(frozen=True)
class MotifSignature:
    """
    Aggregated methylation statistics for one contig at one motif.
    """
    motif: MotifKey
    methylation_value: float
    n_motif_obs: int
    mean_coverage: float


@dataclass
class Contig:
    """
    A contig and its motif signatures. mean_coverage is NaN until derived and
    stays NaN for a contig without signatures.
    """
    contig_id: str
    motifs: Dict[MotifKey, MotifSignature] = field(default_factory=dict)
    mean_coverage: float = float("nan")

    def derive_mean_coverage(self) -> float:
        # Unweighted mean over signatures, not over observations.
        return safe_mean(s.mean_coverage for s in self.motifs.values())


class Assignment(Enum):
    """
    Enum representing a human contamination call for a contig in a bin.
    """
    UNSET = "unset"
    CLEAN = "clean"
    CONTAMINATION = "contamination"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class ContigAssignment:
    contig_id: str
    assignment: Assignment = Assignment.UNSET


class BinQuality(Enum):
    """
    Three-level genome quality label derived from completeness/contamination.
    """
    HQ = "high"
    MQ = "medium"
    LQ = "low"

    @classmethod
    def from_values(cls, completeness: float, contamination: float) -> "BinQuality":
        if completeness > HQ_MIN_COMPLETENESS and contamination < HQ_MAX_CONTAMINATION:
            return cls.HQ
        if completeness > MQ_MIN_COMPLETENESS and contamination <= MQ_MAX_CONTAMINATION:
            return cls.MQ
        return cls.LQ


@dataclass
class Bin:
    """
    A cluster of contigs with their assignments and optional quality estimates.
    """
    bin_id: str
    contig_assignments: List[ContigAssignment] = field(default_factory=list)
    completeness: Optional[float] = None
    contamination: Optional[float] = None
    quality: Optional[BinQuality] = None

    def set_quality_estimates(self, completeness: float, contamination: float):
        """
        Attach completeness/contamination percentages and recompute the quality label.
        """
        self.completeness = float(completeness)
        self.contamination = float(contamination)
        self.quality = BinQuality.from_values(self.completeness, self.contamination)

    @property
    def contig_ids(self) -> List[str]:
        return [c.contig_id for c in self.contig_assignments]
