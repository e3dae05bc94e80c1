"""Render record serialization for renderers that consume JSON.

Converts the record list emitted by a pileup track into JSON-compatible dicts,
optionally dropping reference bases to reduce payload size.
"""

from __future__ import annotations

from typing import Any

from .models import Mismatch
from .track import PileupRecord, ReferenceRecord, RenderRecord


def _serialize_mismatch(mm: Mismatch) -> dict:
    return {
        "pos": mm.position,
        "base_pair": mm.base_pair,
        "reference_base": mm.reference_base,
    }


def _serialize_pileup(record: PileupRecord) -> dict:
    d: dict[str, Any] = {
        "kind": record.kind,
        "alignment_id": record.alignment_id,
        "row": record.row,
        "span": {
            "contig": record.span.contig,
            "start": record.span.start,
            "stop": record.span.stop,
        },
        "mismatches": [_serialize_mismatch(mm) for mm in record.mismatches],
    }
    # Only include strand when it differs from the default
    if record.is_reverse:
        d["is_reverse"] = True
    return d


def serialize_records(records: list[RenderRecord], include_reference: bool = True) -> list[dict]:
    """Serialize render records to JSON-compatible dicts.

    Args:
        records: Records as emitted by a pileup track.
        include_reference: If False, omit reference records.
    """
    out: list[dict] = []
    for record in records:
        if isinstance(record, ReferenceRecord):
            if include_reference:
                out.append({"kind": record.kind, "pos": record.pos, "base_pair": record.base_pair})
        else:
            out.append(_serialize_pileup(record))
    return out


def summarize_records(records: list[RenderRecord]) -> dict:
    """Counts that describe an emission without listing every record."""
    pileups = [r for r in records if isinstance(r, PileupRecord)]
    return {
        "reference_bases": sum(1 for r in records if isinstance(r, ReferenceRecord)),
        "alignments": len(pileups),
        "rows": max((p.row for p in pileups), default=-1) + 1,
        "mismatches": sum(len(p.mismatches) for p in pileups),
    }
