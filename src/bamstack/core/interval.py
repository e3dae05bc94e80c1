"""Half-open genomic intervals on a named contig."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class ContigInterval:
    """A half-open range ``[start, stop)`` on a contig.

    Intervals on different contigs never overlap, contain, or intersect
    one another, even when their coordinates do.
    """

    contig: str
    start: int
    stop: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"Start position must be non-negative, got {self.start}")
        if self.stop < self.start:
            raise ValueError(f"Stop position ({self.stop}) must not precede start ({self.start})")

    def __str__(self) -> str:
        return f"{self.contig}:{self.start}-{self.stop}"

    @property
    def length(self) -> int:
        return self.stop - self.start

    def is_empty(self) -> bool:
        return self.stop == self.start

    def overlaps(self, other: ContigInterval) -> bool:
        """True if the two intervals share at least one position."""
        return (
            self.contig == other.contig
            and self.start < other.stop
            and other.start < self.stop
        )

    def contains(self, other: ContigInterval) -> bool:
        """True if every position of ``other`` lies inside this interval."""
        return (
            self.contig == other.contig
            and self.start <= other.start
            and other.stop <= self.stop
        )

    def contains_position(self, contig: str, pos: int) -> bool:
        return self.contig == contig and self.start <= pos < self.stop

    def intersect(self, other: ContigInterval) -> ContigInterval | None:
        """Return the shared sub-range, or None when the intervals are disjoint."""
        if not self.overlaps(other):
            return None
        return ContigInterval(self.contig, max(self.start, other.start), min(self.stop, other.stop))

    def subtract(self, others: Iterable[ContigInterval]) -> list[ContigInterval]:
        """Return the pieces of this interval not covered by any of ``others``.

        Pieces are returned in ascending order.
        """
        pieces: list[ContigInterval] = []
        cursor = self.start
        for other in coalesce(o for o in others if o.contig == self.contig):
            if other.stop <= cursor:
                continue
            if other.start >= self.stop:
                break
            if other.start > cursor:
                pieces.append(ContigInterval(self.contig, cursor, other.start))
            cursor = max(cursor, other.stop)
            if cursor >= self.stop:
                break
        if cursor < self.stop:
            pieces.append(ContigInterval(self.contig, cursor, self.stop))
        return pieces

    def is_covered_by(self, others: Iterable[ContigInterval]) -> bool:
        """True if the union of ``others`` includes every position of this interval."""
        return not self.subtract(others)

    @classmethod
    def parse(cls, region: str) -> ContigInterval:
        """
        Parse a genomic region string into an interval.

        Supports formats:
            - chr1:1000-2000
            - chr1:1,000-2,000
            - 1:1000-2000

        Raises:
            ValueError: If the region format is invalid.
        """
        region = region.replace(",", "").strip()
        try:
            contig, coords = region.rsplit(":", 1)
            start_str, stop_str = coords.split("-")
            start = int(start_str)
            stop = int(stop_str)
        except (ValueError, AttributeError) as e:
            raise ValueError(
                f"Invalid region format: '{region}'. Expected format: 'chr1:1000-2000'"
            ) from e

        if not contig:
            raise ValueError(f"Invalid region format: '{region}'. Contig name is empty")

        return cls(contig, start, stop)


def coalesce(intervals: Iterable[ContigInterval]) -> list[ContigInterval]:
    """Merge overlapping or abutting intervals.

    The result is sorted by ``(contig, start)`` and contains no empty intervals.
    """
    merged: list[ContigInterval] = []
    for iv in sorted(i for i in intervals if not i.is_empty()):
        if merged and merged[-1].contig == iv.contig and iv.start <= merged[-1].stop:
            last = merged[-1]
            if iv.stop > last.stop:
                merged[-1] = ContigInterval(last.contig, last.start, iv.stop)
        else:
            merged.append(iv)
    return merged


def alternate_contig_name(contig: str) -> str:
    """Return the other common spelling of a contig name ("chr17" <-> "17")."""
    if contig.startswith("chr"):
        return contig[3:]
    return "chr" + contig


def resolve_contig(contig: str, available: Sequence[str]) -> str | None:
    """
    Match a contig name to the naming used by a data file.

    Args:
        contig: Contig name as requested (e.g. "chr17" or "17").
        available: Contig names present in the file.

    Returns:
        The matching name from ``available``, or None if neither spelling is present.
    """
    if contig in available:
        return contig
    alt = alternate_contig_name(contig)
    if alt in available:
        return alt
    return None
