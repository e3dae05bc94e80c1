"""Shared test fixtures for bamstack tests."""

import asyncio
import os
import random

import pysam
import pytest

from bamstack.core.interval import ContigInterval
from bamstack.core.models import Alignment, ReferenceBases
from bamstack.errors import FetchError

# -- Controlled-release sources ---------------------------------------------


class DeferredReferenceSource:
    """Reference source whose fetches finish only when the test releases them."""

    def __init__(self):
        self.calls: list[ContigInterval] = []
        self._pending: list[asyncio.Future] = []

    async def fetch(self, interval):
        future = asyncio.get_running_loop().create_future()
        self.calls.append(interval)
        self._pending.append(future)
        return await future

    def _next(self):
        while self._pending:
            future = self._pending.pop(0)
            if not future.done():
                return future
        raise AssertionError("No outstanding fetch to complete")

    def release(self, bases):
        self._next().set_result(bases)

    def fail(self, message="connection reset"):
        self._next().set_exception(FetchError(message))


class DeferredAlignmentSource(DeferredReferenceSource):
    """Alignment source whose fetches finish only when the test releases them."""

    def __init__(self):
        super().__init__()
        self.contained_flags: list[bool] = []

    async def fetch(self, interval, contained_only=False):
        self.contained_flags.append(contained_only)
        return await super().fetch(interval)


async def drain():
    """Let scheduled fetch tasks run to completion."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def reference_source():
    return DeferredReferenceSource()


@pytest.fixture
def alignment_source():
    return DeferredAlignmentSource()


# -- Record builders ---------------------------------------------------------


def read_from_reference(
    read_id,
    reference: ReferenceBases,
    start,
    length=50,
    substitutions=None,
    contig=None,
    is_reverse=False,
):
    """Build an all-match alignment copying the reference, with optional substitutions."""
    offset = start - reference.start
    bases = list(reference.bases[offset : offset + length])
    for pos, base in (substitutions or {}).items():
        bases[pos - start] = base
    return Alignment.from_cigar_string(
        read_id,
        contig or reference.contig,
        start,
        f"{length}M",
        "".join(bases),
        is_reverse=is_reverse,
    )


def alternate_base(base):
    """A base different from ``base``."""
    return {"A": "C", "C": "G", "G": "T", "T": "A"}[base.upper()]


# Window and column used by the chr17 column-of-T scenario
SCENARIO_REFERENCE = ContigInterval("chr17", 7_500_000, 7_501_000)
SCENARIO_VIEW = ContigInterval("chr17", 7_500_734, 7_500_795)
SCENARIO_T_COLUMN = 7_500_765 - 1


def build_scenario():
    """Reference and alignments with 22 C->T reads at chr17:7,500,765 (1-based)."""
    rng = random.Random(17)
    bases = [rng.choice("ACGT") for _ in range(SCENARIO_REFERENCE.length)]
    bases[SCENARIO_T_COLUMN - SCENARIO_REFERENCE.start] = "C"
    bases[SCENARIO_T_COLUMN - 1 - SCENARIO_REFERENCE.start] = "A"
    reference = ReferenceBases("chr17", SCENARIO_REFERENCE.start, "".join(bases))

    alignments = []
    for i in range(26):
        start = 7_500_715 + 2 * i
        subs = {}
        if i < 22:
            subs[SCENARIO_T_COLUMN] = "T"
        alignments.append(read_from_reference(f"read{i:02d}", reference, start, substitutions=subs))

    # A few reads with one unrelated SNV each
    snv = 7_500_780
    for i in range(3):
        alt = alternate_base(reference.base_at(snv))
        alignments.append(
            read_from_reference(
                f"snv{i}", reference, 7_500_760 + i, substitutions={snv: alt}, is_reverse=True
            )
        )
    return reference, alignments


@pytest.fixture
def scenario():
    return build_scenario()


# -- pysam-generated files ---------------------------------------------------

REFERENCE_SEQUENCE = "ACGTACGTAC" * 100  # 1000bp chr1


def _segment(name, start, cigar, sequence, flag=0, mapq=60):
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = sequence
    a.flag = flag
    a.reference_id = 0
    a.reference_start = start
    a.mapping_quality = mapq
    a.cigarstring = cigar
    a.query_qualities = pysam.qualitystring_to_array("I" * len(sequence))
    return a


@pytest.fixture(scope="session")
def fixture_files(tmp_path_factory):
    """Write an indexed FASTA and BAM; return their paths."""
    root = tmp_path_factory.mktemp("fixtures")
    ref_path = os.path.join(root, "ref.fa")
    with open(ref_path, "w") as f:
        f.write(">chr1\n")
        for i in range(0, len(REFERENCE_SEQUENCE), 80):
            f.write(REFERENCE_SEQUENCE[i : i + 80] + "\n")
    pysam.faidx(ref_path)

    ref = REFERENCE_SEQUENCE
    mismatched = ref[200:210] + "T" + ref[211:250]
    inserted = ref[300:320] + "GG" + ref[320:348]

    bam_path = os.path.join(root, "small.bam")
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": "chr1", "LN": 1000}],
    }
    with pysam.AlignmentFile(bam_path, "wb", header=header) as outf:
        outf.write(_segment("read1", 100, "50M", ref[100:150]))
        outf.write(_segment("read2", 120, "50M", ref[120:170], flag=16, mapq=50))
        outf.write(_segment("read3", 200, "50M", mismatched))
        outf.write(_segment("read4", 300, "20M2I28M", inserted))
        outf.write(_segment("read5", 400, "50M", ref[400:450], flag=256))
        outf.write(_segment("read6", 450, "50M", ref[450:500], mapq=5))
    pysam.index(bam_path)

    return {"reference": ref_path, "alignments": bam_path}
