"""Pileup track: reconciles the reference and alignment feeds for one range.

A :class:`PileupTrack` owns a reference cache and an alignment cache for a
single visible interval. Whenever either cache reports new data, the track
lays out the alignments, computes mismatches where the reference is known,
and hands a render-ready record list to its subscribers. The final record
list depends only on what the caches hold, not on the order data arrived in.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import numpy as np

from ..constants import MAX_REGION_SIZE
from .cache import AlignmentCache, RangeCache, ReferenceCache
from .interval import ContigInterval
from .layout import PileupLayout
from .mismatch import MismatchResult, find_mismatches
from .models import Alignment, CigarOp, CoverageState, Mismatch

if TYPE_CHECKING:
    from ..sources.base import AlignmentSource, ReferenceSource

logger = logging.getLogger(__name__)


class TrackState(Enum):
    """Which feeds have delivered data for the visible range."""

    WAITING_BOTH = "waiting_both"
    HAVE_REFERENCE_ONLY = "have_reference_only"
    HAVE_ALIGNMENTS_ONLY = "have_alignments_only"
    READY = "ready"


@dataclass(frozen=True)
class ReferenceRecord:
    """One reference base to draw."""

    pos: int
    base_pair: str

    kind: ClassVar[str] = "reference"


@dataclass(frozen=True)
class PileupRecord:
    """One alignment to draw, with its row and the mismatches inside the view."""

    alignment_id: str
    row: int
    span: ContigInterval
    mismatches: tuple[Mismatch, ...] = ()
    is_reverse: bool = False

    kind: ClassVar[str] = "pileup"


RenderRecord = ReferenceRecord | PileupRecord
Subscriber = Callable[[list[RenderRecord]], None]

_EMPTY_RESULT = MismatchResult()


class PileupTrack:
    """Reconciler for one visible interval.

    Not thread-safe; all notifications must arrive on the same event loop.
    """

    def __init__(
        self,
        interval: ContigInterval,
        reference_source: ReferenceSource | None = None,
        alignment_source: AlignmentSource | None = None,
        contained_only: bool = False,
    ):
        if interval.length > MAX_REGION_SIZE:
            raise ValueError(
                f"Region size {interval.length:,}bp exceeds maximum allowed {MAX_REGION_SIZE:,}bp"
            )
        self.interval = interval
        self.contained_only = contained_only
        self.reference_cache = ReferenceCache(reference_source)
        self.alignment_cache = AlignmentCache(alignment_source)
        self.state = TrackState.WAITING_BOTH

        self._layout = PileupLayout()
        self._full_layout_ids: frozenset[str] | None = None
        self._mismatches: dict[str, MismatchResult] = {}
        self._subscribers: list[Subscriber] = []
        self._records: list[RenderRecord] | None = None
        self._emissions = 0
        self._closed = False

        self.reference_cache.add_listener(self._on_cache_changed)
        self.alignment_cache.add_listener(self._on_cache_changed)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def records(self) -> list[RenderRecord]:
        """The most recently emitted record list (empty before the first emission)."""
        return list(self._records or [])

    @property
    def emissions(self) -> int:
        return self._emissions

    @property
    def layout(self) -> PileupLayout:
        return self._layout

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def start(self) -> None:
        """Request both feeds for the visible interval. Must run inside an event loop."""
        if self._closed:
            raise RuntimeError("Cannot start a closed PileupTrack")
        self.reference_cache.request(self.interval)
        self.alignment_cache.request(self.interval, contained_only=self.contained_only)

    async def settle(self) -> None:
        """Wait for every in-flight fetch of both caches."""
        await self.reference_cache.settle()
        await self.alignment_cache.settle()

    def close(self) -> None:
        """Release the caches. Later notifications become no-ops."""
        if self._closed:
            return
        self._closed = True
        self.reference_cache.remove_listener(self._on_cache_changed)
        self.alignment_cache.remove_listener(self._on_cache_changed)
        self.reference_cache.close()
        self.alignment_cache.close()
        self._subscribers.clear()
        logger.debug("Closed pileup track for %s", self.interval)

    def refresh(self) -> None:
        """Recompute from the current cache contents and emit if anything changed."""
        self._update(reference_changed=True)

    def _on_cache_changed(self, cache: RangeCache) -> None:
        if self._closed or (
            cache is not self.reference_cache and cache is not self.alignment_cache
        ):
            logger.debug("Ignoring notification for superseded track %s", self.interval)
            return
        self._update(reference_changed=cache is self.reference_cache)

    def _compute_state(self) -> TrackState:
        have_reference = self.reference_cache.coverage_of(self.interval) >= CoverageState.PARTIAL
        have_alignments = (
            self.alignment_cache.coverage_of(self.interval, self.contained_only)
            >= CoverageState.PARTIAL
        )
        if have_reference and have_alignments:
            return TrackState.READY
        if have_reference:
            return TrackState.HAVE_REFERENCE_ONLY
        if have_alignments:
            return TrackState.HAVE_ALIGNMENTS_ONLY
        return TrackState.WAITING_BOTH

    def _update(self, reference_changed: bool) -> None:
        previous = self.state
        self.state = self._compute_state()
        if self.state is not previous:
            logger.debug("Track %s: %s -> %s", self.interval, previous.value, self.state.value)

        alignments = self.alignment_cache.data_for(self.interval, self.contained_only)
        self._update_layout(alignments)
        if self.state is TrackState.READY:
            self._update_mismatches(alignments, reference_changed)

        records = self._build_records(alignments)
        if records == self._records:
            logger.debug("Track %s unchanged; nothing to emit", self.interval)
            return
        self._records = records
        self._emissions += 1
        for subscriber in list(self._subscribers):
            subscriber(list(records))

    def _update_layout(self, alignments: list[Alignment]) -> None:
        ids = frozenset(a.id for a in alignments)
        coverage = self.alignment_cache.coverage_of(self.interval, self.contained_only)
        complete = coverage is CoverageState.COMPLETE
        if complete and ids != self._full_layout_ids:
            # Full re-run once every alignment is known, so rows depend only on the set
            self._layout.reset()
            self._full_layout_ids = ids
        self._layout.assign(alignments)

    def _update_mismatches(self, alignments: list[Alignment], reference_changed: bool) -> None:
        recomputed = 0
        for alignment in alignments:
            cached = self._mismatches.get(alignment.id)
            if cached is not None and (cached.complete or not reference_changed):
                continue
            self._mismatches[alignment.id] = find_mismatches(
                alignment, self.reference_cache, window=self.interval
            )
            recomputed += 1
        if recomputed:
            logger.debug("Recomputed mismatches for %d alignments", recomputed)

    def _build_records(self, alignments: list[Alignment]) -> list[RenderRecord]:
        records: list[RenderRecord] = []
        for run in self.reference_cache.data_for(self.interval):
            records.extend(
                ReferenceRecord(run.start + i, base) for i, base in enumerate(run.bases)
            )

        pileups: list[PileupRecord] = []
        for alignment in alignments:
            row = self._layout.row_of(alignment.id)
            if row is None:
                continue
            result = self._mismatches.get(alignment.id, _EMPTY_RESULT)
            pileups.append(
                PileupRecord(
                    alignment_id=alignment.id,
                    row=row,
                    span=alignment.span,
                    mismatches=result.mismatches,
                    is_reverse=alignment.is_reverse,
                )
            )
        pileups.sort(key=lambda p: (p.row, p.span.start, p.alignment_id))
        records.extend(pileups)
        return records

    def mismatches(self) -> list[Mismatch]:
        """All mismatches currently shown, in alignment then position order."""
        return [
            mm
            for record in self._records or []
            if isinstance(record, PileupRecord)
            for mm in record.mismatches
        ]

    def coverage(self) -> np.ndarray:
        """Read depth at each position of the visible interval.

        Counts aligned bases (M, =, X); deletions and skips do not add depth.
        """
        width = self.interval.length
        diff = np.zeros(width + 1, dtype=np.int64)
        for alignment in self.alignment_cache.data_for(self.interval, self.contained_only):
            ref_pos = alignment.start
            for op, length in alignment.cigar_ops:
                if op in (CigarOp.MATCH, CigarOp.EQUAL, CigarOp.DIFF):
                    lo = max(ref_pos, self.interval.start) - self.interval.start
                    hi = min(ref_pos + length, self.interval.stop) - self.interval.start
                    if lo < hi:
                        diff[lo] += 1
                        diff[hi] -= 1
                if op.consumes_reference:
                    ref_pos += length
        return np.cumsum(diff[:-1])


class PileupView:
    """Keeps one live :class:`PileupTrack` and replaces it when the range changes.

    Emissions from a track that has been replaced are dropped by identity, so
    late fetches for an old range never reach subscribers.
    """

    def __init__(
        self,
        reference_source: ReferenceSource | None = None,
        alignment_source: AlignmentSource | None = None,
        contained_only: bool = False,
    ):
        self._reference_source = reference_source
        self._alignment_source = alignment_source
        self._contained_only = contained_only
        self._subscribers: list[Subscriber] = []
        self.track: PileupTrack | None = None

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def set_range(self, interval: ContigInterval) -> PileupTrack:
        """Show ``interval``, discarding the previous track and its caches."""
        if self.track is not None:
            if self.track.interval == interval:
                return self.track
            self.track.close()

        track = PileupTrack(
            interval,
            self._reference_source,
            self._alignment_source,
            contained_only=self._contained_only,
        )
        track.subscribe(lambda records: self._forward(track, records))
        self.track = track
        track.start()
        return track

    def close(self) -> None:
        if self.track is not None:
            self.track.close()
            self.track = None

    def _forward(self, track: PileupTrack, records: list[RenderRecord]) -> None:
        if track is not self.track:
            logger.debug("Dropping emission from superseded track %s", track.interval)
            return
        for subscriber in list(self._subscribers):
            subscriber(records)
