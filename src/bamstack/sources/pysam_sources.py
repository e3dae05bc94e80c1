"""Reference and alignment sources backed by pysam.

pysam does the decoding; these classes run its blocking calls in a worker
thread under a timeout and translate the results into bamstack records.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TypeVar

import pysam

from ..config import BamstackConfig
from ..constants import DEFAULT_FETCH_TIMEOUT_SECONDS, DEFAULT_MAX_READS, DEFAULT_MIN_MAPQ
from ..core.interval import ContigInterval, resolve_contig
from ..core.models import Alignment, CigarOp, ReferenceBases
from ..errors import FetchError
from .index_cache import IndexCache, ensure_cached_index
from .validation import REFERENCE_EXTENSIONS, is_remote, validate_path

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_blocking(func: Callable[..., T], *args: object, timeout: float, what: str) -> T:
    """Run a blocking pysam call in a thread, mapping failures to FetchError."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except TimeoutError as e:
        raise FetchError(f"Timed out after {timeout:g}s reading {what}") from e
    except (OSError, ValueError, KeyError) as e:
        raise FetchError(f"Failed to read {what}: {e}") from e


class FastaReferenceSource:
    """Reference bases from an indexed FASTA file (local path or URL)."""

    def __init__(self, path: str, timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS):
        self.path = path
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: BamstackConfig) -> FastaReferenceSource:
        if not config.reference:
            raise ValueError("No reference configured (set BAMSTACK_REFERENCE)")
        validate_path(config.reference, config, REFERENCE_EXTENSIONS)
        return cls(config.reference, timeout=config.fetch_timeout)

    async def fetch(self, interval: ContigInterval) -> ReferenceBases:
        return await _run_blocking(
            self._read, interval, timeout=self.timeout, what=f"{self.path} at {interval}"
        )

    def _read(self, interval: ContigInterval) -> ReferenceBases:
        with pysam.FastaFile(self.path) as fasta:
            contig = resolve_contig(interval.contig, fasta.references)
            if contig is None:
                raise FetchError(f"Contig {interval.contig!r} not found in {self.path}")
            # Regions running past the contig end return the bases that exist
            stop = min(interval.stop, fasta.get_reference_length(contig))
            if interval.start >= stop:
                return ReferenceBases(interval.contig, interval.start, "")
            bases = fasta.fetch(contig, interval.start, stop)
        return ReferenceBases(interval.contig, interval.start, bases)


def segment_id(read: pysam.AlignedSegment) -> str:
    """Identity that is stable across re-fetches of the same record."""
    if read.is_read1:
        mate = "1"
    elif read.is_read2:
        mate = "2"
    else:
        mate = "0"
    return f"{read.query_name}/{mate}:{read.reference_start}:{read.cigarstring or '*'}"


def alignment_from_segment(read: pysam.AlignedSegment, contig: str) -> Alignment:
    """Convert a pysam record, reporting it on ``contig`` as the caller named it."""
    ops = tuple((CigarOp(op), length) for op, length in read.cigartuples or ())
    start = read.reference_start if read.reference_start is not None else 0
    return Alignment(
        id=segment_id(read),
        contig=contig,
        start=max(start, 0),
        cigar_ops=ops,
        read_bases=read.query_sequence or "",
        mapped=not read.is_unmapped,
        is_reverse=read.is_reverse,
        name=read.query_name or "",
    )


class BamAlignmentSource:
    """Alignments from an indexed BAM/CRAM file (local path or URL)."""

    def __init__(
        self,
        path: str,
        reference_path: str | None = None,
        index_filename: str | None = None,
        max_reads: int = DEFAULT_MAX_READS,
        min_mapq: int = DEFAULT_MIN_MAPQ,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ):
        self.path = path
        self.reference_path = reference_path
        self.index_filename = index_filename
        self.max_reads = max_reads
        self.min_mapq = min_mapq
        self.timeout = timeout

    @classmethod
    async def open(
        cls,
        path: str,
        config: BamstackConfig,
        index_cache: IndexCache | None = None,
    ) -> BamAlignmentSource:
        """Validate ``path`` and, for remote files, download its index first."""
        validate_path(path, config)
        index_filename = None
        if is_remote(path):
            cache = index_cache or IndexCache(config.cache_dir, config.cache_ttl)
            index_filename = await ensure_cached_index(path, cache)
        return cls(
            path,
            reference_path=config.reference,
            index_filename=index_filename,
            max_reads=config.max_reads,
            min_mapq=config.min_mapq,
            timeout=config.fetch_timeout,
        )

    async def fetch(self, interval: ContigInterval, contained_only: bool = False) -> list[Alignment]:
        return await _run_blocking(
            self._read,
            interval,
            contained_only,
            timeout=self.timeout,
            what=f"{self.path} at {interval}",
        )

    def _read(self, interval: ContigInterval, contained_only: bool) -> list[Alignment]:
        mode = "rc" if self.path.endswith(".cram") else "rb"
        alignments: list[Alignment] = []

        with pysam.AlignmentFile(
            self.path,
            mode,  # type: ignore[arg-type]
            reference_filename=self.reference_path,
            index_filename=self.index_filename,
        ) as samfile:
            contig = resolve_contig(interval.contig, samfile.references)
            if contig is None:
                logger.debug("Contig %s not in %s; no alignments", interval.contig, self.path)
                return alignments

            for read in samfile.fetch(contig, interval.start, interval.stop):
                if read.is_secondary or read.is_supplementary:
                    continue
                if read.mapping_quality < self.min_mapq:
                    continue
                alignment = alignment_from_segment(read, interval.contig)
                if contained_only and not interval.contains(alignment.span):
                    continue
                alignments.append(alignment)
                if len(alignments) >= self.max_reads:
                    logger.warning(
                        "Stopped at %d alignments for %s (max_reads)", self.max_reads, interval
                    )
                    break

        return alignments
