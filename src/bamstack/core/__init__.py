"""Reconciliation, layout and mismatch engine for pileup tracks."""

from .cache import AlignmentCache, RangeCache, ReferenceCache
from .interval import ContigInterval, alternate_contig_name, coalesce, resolve_contig
from .layout import PileupLayout
from .mismatch import MismatchResult, find_mismatches
from .models import (
    Alignment,
    CigarOp,
    CoverageState,
    Mismatch,
    ReferenceBases,
    format_cigar,
    parse_cigar,
)
from .serialization import serialize_records, summarize_records
from .track import (
    PileupRecord,
    PileupTrack,
    PileupView,
    ReferenceRecord,
    RenderRecord,
    TrackState,
)

__all__ = [
    "Alignment",
    "AlignmentCache",
    "CigarOp",
    "ContigInterval",
    "CoverageState",
    "Mismatch",
    "MismatchResult",
    "PileupLayout",
    "PileupRecord",
    "PileupTrack",
    "PileupView",
    "RangeCache",
    "ReferenceBases",
    "ReferenceCache",
    "ReferenceRecord",
    "RenderRecord",
    "TrackState",
    "alternate_contig_name",
    "coalesce",
    "find_mismatches",
    "format_cigar",
    "parse_cigar",
    "resolve_contig",
    "serialize_records",
    "summarize_records",
]
