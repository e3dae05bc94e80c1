"""Data sources feeding the pileup caches."""

from .base import AlignmentSource, ReferenceSource
from .index_cache import IndexCache, ensure_cached_index
from .pysam_sources import (
    BamAlignmentSource,
    FastaReferenceSource,
    alignment_from_segment,
    segment_id,
)
from .validation import validate_path

__all__ = [
    "AlignmentSource",
    "BamAlignmentSource",
    "FastaReferenceSource",
    "IndexCache",
    "ReferenceSource",
    "alignment_from_segment",
    "ensure_cached_index",
    "segment_id",
    "validate_path",
]
