"""
Exception hierarchy for ContamMap.
Every error is surfaced to the caller; none is retried.
"""


class ContamMapError(Exception):
    """Base class for all ContamMap errors."""


class DataLoadError(ContamMapError):
    """An input file could not be read or a record has the wrong shape or types."""


class MotifParseError(DataLoadError):
    """A (sequence, mod_type, position) triple is not a valid motif."""


class RecordFormatError(DataLoadError):
    """A persisted assignment record carries an unknown code or value."""


class DataAssertionError(ContamMapError):
    """Inputs parsed, but cannot form a usable project."""


class NoBinsError(DataAssertionError):
    pass


class QualityOverlapError(DataAssertionError):
    pass


class ContigOverlapError(DataAssertionError):
    pass


class BinNotFoundError(ContamMapError):
    pass


class MetadataMismatchError(ContamMapError):
    """An assignment update does not name the same contigs as the stored bin."""


class PersistenceError(ContamMapError):
    pass


class ProjectExistsError(ContamMapError):
    pass


class ProjectNotFoundError(ContamMapError):
    pass
