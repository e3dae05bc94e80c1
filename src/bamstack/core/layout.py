"""Row assignment for stacked pileup display."""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable

from .models import Alignment

logger = logging.getLogger(__name__)


class PileupLayout:
    """Assigns each alignment a row so that spans sharing a row never overlap.

    New alignments are placed greedily in ``(start, id)`` order, each into the
    lowest row with room for its span, opening a new row when none has room.
    Processing a whole set this way in one call uses the minimum number of rows.
    Alignments already placed keep their row across later calls until
    :meth:`reset`.
    """

    def __init__(self) -> None:
        self._rows: dict[str, int] = {}
        # Per row: starts and ends of the placed spans, both sorted by start
        self._row_starts: list[list[int]] = []
        self._row_ends: list[list[int]] = []

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, alignment_id: object) -> bool:
        return alignment_id in self._rows

    @property
    def row_count(self) -> int:
        return len(self._row_starts)

    @property
    def rows(self) -> dict[str, int]:
        return dict(self._rows)

    def row_of(self, alignment_id: str) -> int | None:
        return self._rows.get(alignment_id)

    def reset(self) -> None:
        self._rows.clear()
        self._row_starts.clear()
        self._row_ends.clear()

    def assign(self, alignments: Iterable[Alignment]) -> dict[str, int]:
        """
        Place every not-yet-placed mapped alignment.

        Args:
            alignments: Alignments to place; ones already placed are left alone.

        Returns:
            Mapping of alignment id to row for the alignments placed by this call.
        """
        placed: dict[str, int] = {}
        pending = sorted(
            (a for a in alignments if a.mapped and a.id not in self._rows),
            key=lambda a: (a.start, a.id),
        )
        for alignment in pending:
            if alignment.id in placed:
                continue
            row = self._place(alignment.start, alignment.end)
            self._rows[alignment.id] = row
            placed[alignment.id] = row
        if placed:
            logger.debug("Placed %d alignments into %d rows", len(placed), self.row_count)
        return placed

    def _place(self, start: int, end: int) -> int:
        for row in range(len(self._row_starts)):
            if self._fits(row, start, end):
                self._insert(row, start, end)
                return row
        self._row_starts.append([])
        self._row_ends.append([])
        row = len(self._row_starts) - 1
        self._insert(row, start, end)
        return row

    def _fits(self, row: int, start: int, end: int) -> bool:
        starts = self._row_starts[row]
        ends = self._row_ends[row]
        # Only spans starting before our end can collide; a span ending at our
        # start leaves the row free, so empty spans never block their own position
        j = bisect.bisect_left(starts, end) - 1
        floor: int | None = None
        while j >= 0 and (floor is None or starts[j] == floor):
            if ends[j] > start:
                return False
            # Spans starting left of ``floor`` end at or before it
            if floor is None and starts[j] < start:
                floor = starts[j]
            j -= 1
        return True

    def _insert(self, row: int, start: int, end: int) -> None:
        starts = self._row_starts[row]
        idx = bisect.bisect_left(starts, start)
        starts.insert(idx, start)
        self._row_ends[row].insert(idx, end)
