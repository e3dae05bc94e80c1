"""Reference and alignment caches with per-interval coverage tracking.

Each cache records which intervals have been requested, which have been
delivered, and which fetches are still in flight. Sources deliver data through
``on_data_arrived``; the cache merges it, updates coverage, and notifies its
listeners when something requested actually changed.
"""

from __future__ import annotations

import asyncio
import bisect
import logging
from collections.abc import Awaitable, Callable, Hashable, Iterable
from typing import TYPE_CHECKING

from ..errors import FetchError, MalformedRecordError
from .interval import ContigInterval, coalesce
from .models import Alignment, CoverageState, ReferenceBases

if TYPE_CHECKING:
    from ..sources.base import AlignmentSource, ReferenceSource

logger = logging.getLogger(__name__)

Listener = Callable[["RangeCache"], None]


class RangeCache:
    """Request, coverage and notification bookkeeping shared by both caches.

    Not thread-safe: all calls are expected on one asyncio event loop.
    """

    kind = "data"

    def __init__(self) -> None:
        self._requested: list[ContigInterval] = []
        self._covered: list[ContigInterval] = []
        self._inflight: dict[Hashable, asyncio.Task] = {}
        self._listeners: list[Listener] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def requested(self) -> list[ContigInterval]:
        return list(self._requested)

    @property
    def covered(self) -> list[ContigInterval]:
        return list(self._covered)

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def coverage_of(self, interval: ContigInterval) -> CoverageState:
        """Report how much of ``interval`` this cache can answer for."""
        return _coverage_state(interval, self._covered, self._requested)

    def is_fetching(self, interval: ContigInterval) -> bool:
        return any(
            not task.done() and _key_interval(key) == interval
            for key, task in self._inflight.items()
        )

    async def settle(self) -> None:
        """Wait until every fetch started so far has finished."""
        while True:
            pending = [t for t in self._inflight.values() if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    def close(self) -> None:
        """Cancel outstanding fetches and stop notifying listeners."""
        self._closed = True
        for task in self._inflight.values():
            task.cancel()
        self._inflight.clear()
        self._listeners.clear()

    def _register(
        self, interval: ContigInterval, covered: list[ContigInterval] | None = None
    ) -> bool:
        """Record interest in ``interval``; return True if a fetch is needed."""
        if self._closed:
            logger.debug("Ignoring %s request for %s on a closed cache", self.kind, interval)
            return False
        if interval not in self._requested:
            self._requested.append(interval)
        if interval.is_empty() or interval.is_covered_by(covered or self._covered):
            return False
        return True

    def _schedule(self, key: Hashable, fetch: Callable[[], Awaitable[None]]) -> None:
        existing = self._inflight.get(key)
        if existing is not None and not existing.done():
            logger.debug("Fetch for %s already in flight", key)
            return
        loop = asyncio.get_running_loop()
        self._inflight[key] = loop.create_task(self._run(key, fetch))

    async def _run(self, key: Hashable, fetch: Callable[[], Awaitable[None]]) -> None:
        try:
            await fetch()
        except FetchError as e:
            # Coverage stays pending; the next request() retries
            logger.warning("Fetching %s for %s failed: %s", self.kind, key, e)
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def _mark_covered(self, interval: ContigInterval) -> bool:
        """Add ``interval`` to the covered set; return True if coverage grew."""
        if interval.is_empty() or interval.is_covered_by(self._covered):
            return False
        self._covered = coalesce([*self._covered, interval])
        return True

    def _accept(self, interval: ContigInterval, changed: bool) -> bool:
        """Notify listeners if ``interval`` was requested and something changed."""
        if not any(interval.overlaps(r) for r in self._requested):
            logger.debug(
                "Stored %s for %s outside any requested interval; no notification",
                self.kind,
                interval,
            )
            return False

        if not changed:
            logger.debug("Duplicate %s delivery for %s ignored", self.kind, interval)
            return False

        for listener in list(self._listeners):
            listener(self)
        return True


def _coverage_state(
    interval: ContigInterval,
    covered: list[ContigInterval],
    requested: list[ContigInterval],
) -> CoverageState:
    if interval.is_covered_by(covered):
        return CoverageState.COMPLETE
    if any(interval.overlaps(c) for c in covered):
        return CoverageState.PARTIAL
    if any(interval.overlaps(r) for r in requested):
        return CoverageState.PENDING
    return CoverageState.UNREQUESTED


def _key_interval(key: Hashable) -> ContigInterval | None:
    if isinstance(key, ContigInterval):
        return key
    if isinstance(key, tuple) and key and isinstance(key[0], ContigInterval):
        return key[0]
    return None


class ReferenceCache(RangeCache):
    """Reference bases keyed by contig, stored as sorted non-overlapping runs.

    Bases already present are never overwritten by a later delivery.
    """

    kind = "reference"

    def __init__(self, source: ReferenceSource | None = None):
        super().__init__()
        self._source = source
        self._runs: dict[str, list[ReferenceBases]] = {}
        self._run_starts: dict[str, list[int]] = {}

    def request(self, interval: ContigInterval) -> None:
        """Register interest in ``interval`` and start a fetch if it is not covered."""
        if not self._register(interval) or self._source is None:
            return
        source = self._source

        async def fetch() -> None:
            logger.info("Fetching reference for %s", interval)
            bases = await source.fetch(interval)
            self.on_data_arrived(bases.interval, bases)

        self._schedule(interval, fetch)

    def on_data_arrived(self, interval: ContigInterval, bases: ReferenceBases) -> bool:
        """
        Merge delivered bases into the cache.

        Args:
            interval: The interval the delivery is for. Bases outside it are dropped.
            bases: The delivered run.

        Returns:
            True if listeners were notified.
        """
        if self._closed:
            logger.debug("Late reference delivery for %s ignored by closed cache", interval)
            return False
        clipped = bases.clip(interval)
        if clipped is None:
            return self._accept(interval, changed=False)
        stored_new = self._store(clipped)
        coverage_grew = self._mark_covered(clipped.interval)
        return self._accept(clipped.interval, changed=stored_new or coverage_grew)

    def _store(self, bases: ReferenceBases) -> bool:
        runs = self._runs.setdefault(bases.contig, [])
        missing = bases.interval.subtract(r.interval for r in runs)
        if not missing:
            return False
        for piece in missing:
            clipped = bases.clip(piece)
            if clipped is not None:
                runs.append(clipped)
        runs.sort(key=lambda r: r.start)

        merged: list[ReferenceBases] = []
        for run in runs:
            if merged and merged[-1].stop == run.start:
                last = merged[-1]
                merged[-1] = ReferenceBases(last.contig, last.start, last.bases + run.bases)
            else:
                merged.append(run)
        self._runs[bases.contig] = merged
        self._run_starts[bases.contig] = [r.start for r in merged]
        return True

    def base_at(self, contig: str, pos: int) -> str | None:
        """Return the delivered base at ``pos``, or None if not delivered yet."""
        starts = self._run_starts.get(contig)
        if not starts:
            return None
        idx = bisect.bisect_right(starts, pos) - 1
        if idx < 0:
            return None
        return self._runs[contig][idx].base_at(pos)

    def data_for(self, interval: ContigInterval) -> list[ReferenceBases]:
        """Delivered runs clipped to ``interval``, in ascending order."""
        clipped = (r.clip(interval) for r in self._runs.get(interval.contig, []))
        return [r for r in clipped if r is not None]


class AlignmentCache(RangeCache):
    """Alignment records deduplicated by id.

    Overlap fetches and contained-only fetches are tracked separately: a
    contained-only result may leave out reads that straddle the interval
    boundary, so it only answers contained-only queries.
    """

    kind = "alignments"

    def __init__(self, source: AlignmentSource | None = None):
        super().__init__()
        self._source = source
        self._alignments: dict[str, Alignment] = {}
        self._contained_covered: list[ContigInterval] = []
        self.skipped: set[str] = set()

    def __len__(self) -> int:
        return len(self._alignments)

    def __contains__(self, alignment_id: object) -> bool:
        return alignment_id in self._alignments

    def request(self, interval: ContigInterval, contained_only: bool = False) -> None:
        """Register interest in ``interval`` and start a fetch if it is not covered."""
        covered = self._covered + self._contained_covered if contained_only else self._covered
        if not self._register(interval, covered) or self._source is None:
            return
        source = self._source

        async def fetch() -> None:
            logger.info("Fetching alignments for %s (contained_only=%s)", interval, contained_only)
            alignments = await source.fetch(interval, contained_only)
            self.on_data_arrived(interval, alignments, contained_only=contained_only)

        self._schedule((interval, contained_only), fetch)

    def on_data_arrived(
        self,
        interval: ContigInterval,
        alignments: Iterable[Alignment],
        contained_only: bool = False,
    ) -> bool:
        """
        Merge a delivered batch of alignments.

        Malformed records are skipped and logged; the rest of the batch is kept.

        Returns:
            True if listeners were notified.
        """
        if self._closed:
            logger.debug("Late alignment delivery for %s ignored by closed cache", interval)
            return False
        stored_new = self._store(alignments)
        if contained_only:
            coverage_grew = self._mark_contained(interval)
        else:
            coverage_grew = self._mark_covered(interval)
        return self._accept(interval, changed=stored_new or coverage_grew)

    def coverage_of(self, interval: ContigInterval, contained_only: bool = False) -> CoverageState:
        """Report how much of ``interval`` this cache can answer for.

        An overlap fetch also answers contained-only queries, but not the reverse.
        """
        if not contained_only:
            return super().coverage_of(interval)
        covered = coalesce([*self._covered, *self._contained_covered])
        return _coverage_state(interval, covered, self._requested)

    def _mark_contained(self, interval: ContigInterval) -> bool:
        known = [*self._covered, *self._contained_covered]
        if interval.is_empty() or interval.is_covered_by(known):
            return False
        self._contained_covered = coalesce([*self._contained_covered, interval])
        return True

    def _store(self, alignments: Iterable[Alignment]) -> bool:
        added = 0
        for alignment in alignments:
            if alignment.id in self._alignments or alignment.id in self.skipped:
                continue
            try:
                alignment.validate()
            except MalformedRecordError as e:
                logger.warning("Skipping malformed alignment: %s", e)
                self.skipped.add(alignment.id)
                continue
            self._alignments[alignment.id] = alignment
            added += 1
        if added:
            logger.debug("Stored %d new alignments (%d total)", added, len(self._alignments))
        return added > 0

    def get(self, alignment_id: str) -> Alignment | None:
        return self._alignments.get(alignment_id)

    def all(self) -> list[Alignment]:
        return sorted(self._alignments.values(), key=lambda a: (a.start, a.id))

    def data_for(self, interval: ContigInterval, contained_only: bool = False) -> list[Alignment]:
        """Mapped alignments overlapping (or inside) ``interval``, sorted by (start, id)."""
        test = interval.contains if contained_only else interval.overlaps
        return [a for a in self.all() if a.mapped and test(a.span)]
