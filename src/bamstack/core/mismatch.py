"""Per-base comparison of an alignment against the reference."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ..constants import UNKNOWN_BASE
from .interval import ContigInterval, coalesce
from .models import Alignment, CigarOp, Mismatch


class BaseLookup(Protocol):
    """Anything that can answer "which reference base is at this position"."""

    def base_at(self, contig: str, pos: int) -> str | None: ...


@dataclass(frozen=True)
class MismatchResult:
    """Mismatches found so far and the reference ranges not yet delivered."""

    mismatches: tuple[Mismatch, ...] = ()
    pending: tuple[ContigInterval, ...] = field(default=())

    @property
    def complete(self) -> bool:
        return not self.pending


def find_mismatches(
    alignment: Alignment,
    reference: BaseLookup,
    window: ContigInterval | None = None,
) -> MismatchResult:
    """
    Walk the CIGAR of ``alignment`` and compare aligned bases to the reference.

    Match-type operations (M, =, X) compare each aligned pair. Insertions and
    soft clips advance only the read; deletions and skips advance only the
    reference; hard clips and padding advance neither. An ``N`` on either side
    is never a mismatch. Positions whose reference base has not been delivered
    produce nothing and are reported in ``pending`` instead.

    Args:
        alignment: The read to compare.
        reference: Source of delivered reference bases.
        window: If given, positions outside it are ignored entirely.

    Returns:
        MismatchResult with mismatches in reference order.
    """
    mismatches: list[Mismatch] = []
    missing: list[ContigInterval] = []
    if not alignment.mapped:
        return MismatchResult()

    contig = alignment.contig
    read = alignment.read_bases
    read_pos = 0
    ref_pos = alignment.start

    for op, length in alignment.cigar_ops:
        if op in (CigarOp.MATCH, CigarOp.EQUAL, CigarOp.DIFF):
            for i in range(length):
                pos = ref_pos + i
                if window is not None and not window.contains_position(contig, pos):
                    continue
                ref_base = reference.base_at(contig, pos)
                if ref_base is None:
                    _extend_missing(missing, contig, pos)
                    continue
                read_base = read[read_pos + i].upper()
                ref_base = ref_base.upper()
                if UNKNOWN_BASE in (ref_base, read_base):
                    continue
                if read_base != ref_base:
                    mismatches.append(Mismatch(alignment.id, pos, read_base, ref_base))
            read_pos += length
            ref_pos += length
        elif op.consumes_read:
            read_pos += length
        elif op.consumes_reference:
            ref_pos += length

    return MismatchResult(tuple(mismatches), tuple(coalesce(missing)))


def _extend_missing(missing: list[ContigInterval], contig: str, pos: int) -> None:
    if missing and missing[-1].stop == pos:
        last = missing[-1]
        missing[-1] = ContigInterval(contig, last.start, pos + 1)
    else:
        missing.append(ContigInterval(contig, pos, pos + 1))
