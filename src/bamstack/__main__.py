"""Entry point for a one-shot pileup render: python -m bamstack chr1:1000-2000."""

import asyncio
import json
import logging
import sys

from .config import BamstackConfig
from .core.interval import ContigInterval
from .core.serialization import serialize_records, summarize_records
from .core.track import PileupTrack
from .sources.index_cache import IndexCache
from .sources.pysam_sources import BamAlignmentSource, FastaReferenceSource

USAGE = "usage: python -m bamstack REGION [--summary]"


async def render_region(config: BamstackConfig, interval: ContigInterval) -> PileupTrack:
    """Fetch both feeds for ``interval`` and return the settled track."""
    if not config.alignments:
        raise ValueError("No alignment file configured (set BAMSTACK_ALIGNMENTS)")

    index_cache = IndexCache(config.cache_dir, config.cache_ttl)
    try:
        reference = FastaReferenceSource.from_config(config) if config.reference else None
        alignments = await BamAlignmentSource.open(config.alignments, config, index_cache)

        track = PileupTrack(interval, reference, alignments, contained_only=config.contained_only)
        track.start()
        await track.settle()
        return track
    finally:
        index_cache.cleanup_session()


def main(argv: list[str] | None = None) -> None:
    """Render one region and print its records as JSON."""
    args = sys.argv[1:] if argv is None else argv
    if not args or args[0] in ("-h", "--help"):
        print(USAGE, file=sys.stderr)
        sys.exit(0 if args else 2)

    try:
        config = BamstackConfig.from_env()
        interval = ContigInterval.parse(args[0])
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        track = asyncio.run(render_region(config, interval))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if "--summary" in args[1:]:
        payload: object = summarize_records(track.records)
    else:
        payload = serialize_records(track.records)
    json.dump(payload, sys.stdout)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
