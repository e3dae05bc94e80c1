"""Exception types raised across bamstack."""

from __future__ import annotations


class BamstackError(Exception):
    """Base class for bamstack errors."""


class FetchError(BamstackError):
    """A reference or alignment source could not deliver data.

    Raised by sources on I/O, network, or timeout failure. Caches treat it as
    retryable: the requested interval stays pending until a later request.
    """


class MalformedRecordError(BamstackError, ValueError):
    """An alignment whose CIGAR is inconsistent with its read bases."""

    def __init__(self, alignment_id: str, reason: str):
        super().__init__(f"Malformed alignment {alignment_id!r}: {reason}")
        self.alignment_id = alignment_id
        self.reason = reason
