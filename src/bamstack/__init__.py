"""Order-independent pileup reconciliation, layout and mismatch engine."""

from .config import BamstackConfig
from .core import (
    Alignment,
    AlignmentCache,
    CigarOp,
    ContigInterval,
    CoverageState,
    Mismatch,
    PileupLayout,
    PileupRecord,
    PileupTrack,
    PileupView,
    ReferenceBases,
    ReferenceCache,
    ReferenceRecord,
    TrackState,
    find_mismatches,
    serialize_records,
)
from .errors import BamstackError, FetchError, MalformedRecordError

__version__ = "0.1.0"

__all__ = [
    "Alignment",
    "AlignmentCache",
    "BamstackConfig",
    "BamstackError",
    "CigarOp",
    "ContigInterval",
    "CoverageState",
    "FetchError",
    "MalformedRecordError",
    "Mismatch",
    "PileupLayout",
    "PileupRecord",
    "PileupTrack",
    "PileupView",
    "ReferenceBases",
    "ReferenceCache",
    "ReferenceRecord",
    "TrackState",
    "find_mismatches",
    "serialize_records",
]
