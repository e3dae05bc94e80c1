"""Data records shared by the caches, layout engine and mismatch detector."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import IntEnum

from ..errors import MalformedRecordError
from .interval import ContigInterval


class CigarOp(IntEnum):
    """CIGAR operations, numbered as in the SAM/BAM specification."""

    MATCH = 0  # M
    INSERTION = 1  # I
    DELETION = 2  # D
    SKIP = 3  # N
    SOFT_CLIP = 4  # S
    HARD_CLIP = 5  # H
    PADDING = 6  # P
    EQUAL = 7  # =
    DIFF = 8  # X

    @property
    def consumes_read(self) -> bool:
        return self in _READ_CONSUMING

    @property
    def consumes_reference(self) -> bool:
        return self in _REFERENCE_CONSUMING

    @property
    def symbol(self) -> str:
        return _CIGAR_SYMBOLS[self]


# Operations that consume query: M, I, S, =, X (0, 1, 4, 7, 8)
_READ_CONSUMING = frozenset({CigarOp.MATCH, CigarOp.INSERTION, CigarOp.SOFT_CLIP, CigarOp.EQUAL, CigarOp.DIFF})
# Operations that consume reference: M, D, N, =, X (0, 2, 3, 7, 8)
_REFERENCE_CONSUMING = frozenset({CigarOp.MATCH, CigarOp.DELETION, CigarOp.SKIP, CigarOp.EQUAL, CigarOp.DIFF})

_CIGAR_SYMBOLS = {
    CigarOp.MATCH: "M",
    CigarOp.INSERTION: "I",
    CigarOp.DELETION: "D",
    CigarOp.SKIP: "N",
    CigarOp.SOFT_CLIP: "S",
    CigarOp.HARD_CLIP: "H",
    CigarOp.PADDING: "P",
    CigarOp.EQUAL: "=",
    CigarOp.DIFF: "X",
}
_SYMBOL_TO_OP = {symbol: op for op, symbol in _CIGAR_SYMBOLS.items()}

CIGAR_PATTERN = re.compile(r"(\d+)([MIDNSHP=X])")


def parse_cigar(cigar: str) -> tuple[tuple[CigarOp, int], ...]:
    """
    Parse a CIGAR string such as ``"10M2I5M"`` into operation tuples.

    Raises:
        ValueError: If the string contains anything other than CIGAR operations.
    """
    if cigar in ("", "*"):
        return ()
    ops = CIGAR_PATTERN.findall(cigar)
    if "".join(f"{n}{op}" for n, op in ops) != cigar:
        raise ValueError(f"Invalid CIGAR string: '{cigar}'")
    return tuple((_SYMBOL_TO_OP[op], int(n)) for n, op in ops)


def format_cigar(ops: tuple[tuple[CigarOp, int], ...]) -> str:
    if not ops:
        return "*"
    return "".join(f"{length}{op.symbol}" for op, length in ops)


class CoverageState(IntEnum):
    """How much of an interval a cache can answer for."""

    UNREQUESTED = 0
    PENDING = 1
    PARTIAL = 2
    COMPLETE = 3


@dataclass(frozen=True)
class ReferenceBases:
    """A run of reference bases starting at ``start`` on ``contig``."""

    contig: str
    start: int
    bases: str

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"Start position must be non-negative, got {self.start}")

    @property
    def stop(self) -> int:
        return self.start + len(self.bases)

    @property
    def interval(self) -> ContigInterval:
        return ContigInterval(self.contig, self.start, self.stop)

    def base_at(self, pos: int) -> str | None:
        if self.start <= pos < self.stop:
            return self.bases[pos - self.start]
        return None

    def clip(self, interval: ContigInterval) -> ReferenceBases | None:
        """Return the part of this run inside ``interval``, or None if disjoint."""
        shared = self.interval.intersect(interval)
        if shared is None:
            return None
        return ReferenceBases(
            self.contig,
            shared.start,
            self.bases[shared.start - self.start : shared.stop - self.start],
        )


@dataclass(frozen=True)
class Alignment:
    """A single aligned read.

    ``id`` must be unique and stable across re-fetches of the same read, so
    repeated or overlapping deliveries can be deduplicated.
    """

    id: str
    contig: str
    start: int
    cigar_ops: tuple[tuple[CigarOp, int], ...]
    read_bases: str
    mapped: bool = True
    is_reverse: bool = False
    name: str = ""
    end: int = field(init=False, compare=False)

    def __post_init__(self) -> None:
        ref_length = sum(length for op, length in self.cigar_ops if op.consumes_reference)
        object.__setattr__(self, "end", self.start + ref_length)

    @classmethod
    def from_cigar_string(
        cls,
        id: str,
        contig: str,
        start: int,
        cigar: str,
        read_bases: str,
        **kwargs: object,
    ) -> Alignment:
        """Build an alignment from a textual CIGAR such as ``"50M"``."""
        return cls(id, contig, start, parse_cigar(cigar), read_bases, **kwargs)  # type: ignore[arg-type]

    @property
    def span(self) -> ContigInterval:
        """Reference interval covered by the alignment."""
        return ContigInterval(self.contig, self.start, self.end)

    @property
    def cigar(self) -> str:
        return format_cigar(self.cigar_ops)

    @property
    def read_length(self) -> int:
        """Number of read bases the CIGAR expects."""
        return sum(length for op, length in self.cigar_ops if op.consumes_read)

    def validate(self) -> None:
        """
        Check the CIGAR against the stored read bases.

        Raises:
            MalformedRecordError: If an operation length is negative, the start is
                negative, or the read length disagrees with the CIGAR.
        """
        if self.start < 0:
            raise MalformedRecordError(self.id, f"negative start {self.start}")
        for op, length in self.cigar_ops:
            if length < 0:
                raise MalformedRecordError(self.id, f"negative length for {op.symbol} operation")
        if not self.mapped:
            # Unmapped reads have no alignment to check
            return
        expected = self.read_length
        if len(self.read_bases) != expected:
            raise MalformedRecordError(
                self.id,
                f"CIGAR {self.cigar} expects {expected} read bases, got {len(self.read_bases)}",
            )


@dataclass(frozen=True, order=True)
class Mismatch:
    """A read base that disagrees with the reference at ``position``."""

    alignment_id: str
    position: int
    base_pair: str
    reference_base: str
