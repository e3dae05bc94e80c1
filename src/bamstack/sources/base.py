"""Interfaces the caches use to fetch data.

Any object with a matching ``fetch`` coroutine works; no base class is needed.
Implementations raise :class:`~bamstack.errors.FetchError` on I/O or network
failure and own any timeout or retry policy.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..core.interval import ContigInterval
from ..core.models import Alignment, ReferenceBases


@runtime_checkable
class ReferenceSource(Protocol):
    async def fetch(self, interval: ContigInterval) -> ReferenceBases:
        """Return the reference bases for ``interval`` (possibly a sub-range of it)."""
        ...


@runtime_checkable
class AlignmentSource(Protocol):
    async def fetch(self, interval: ContigInterval, contained_only: bool = False) -> Sequence[Alignment]:
        """Return alignments overlapping ``interval``, or only those inside it."""
        ...
