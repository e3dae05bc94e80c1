"""Unit tests for bamstack.core.mismatch module."""

import pytest

from bamstack.core.cache import ReferenceCache
from bamstack.core.interval import ContigInterval
from bamstack.core.mismatch import find_mismatches
from bamstack.core.models import Alignment, Mismatch, ReferenceBases

REF = "ACGTACGTACGTACGTACGT"  # chr1:100-120


@pytest.fixture
def reference():
    cache = ReferenceCache()
    cache.on_data_arrived(ContigInterval("chr1", 100, 120), ReferenceBases("chr1", 100, REF))
    return cache


def _read(cigar, bases, start=100, read_id="r1"):
    return Alignment.from_cigar_string(read_id, "chr1", start, cigar, bases)


class TestFindMismatches:
    """Tests for the CIGAR walk."""

    @pytest.mark.unit
    def test_perfect_match(self, reference):
        result = find_mismatches(_read("10M", REF[:10]), reference)
        assert result.mismatches == ()
        assert result.complete

    @pytest.mark.unit
    def test_single_substitution(self, reference):
        result = find_mismatches(_read("10M", "ACGTTCGTAC"), reference)
        assert result.mismatches == (Mismatch("r1", 104, "T", "A"),)

    @pytest.mark.unit
    def test_insertion_shifts_read_only(self, reference):
        # 4 matches, 2 inserted bases, then 4 matches continuing at 104
        result = find_mismatches(_read("4M2I4M", "ACGT" + "GG" + "ACGT"), reference)
        assert result.mismatches == ()

    @pytest.mark.unit
    def test_mismatch_after_insertion(self, reference):
        result = find_mismatches(_read("4M2I4M", "ACGT" + "GG" + "ACTT"), reference)
        assert result.mismatches == (Mismatch("r1", 106, "T", "G"),)

    @pytest.mark.unit
    def test_deletion_shifts_reference_only(self, reference):
        # Skips reference 104-106, resumes at 106 ("GT")
        result = find_mismatches(_read("4M2D4M", "ACGT" + "GTAC"), reference)
        assert result.mismatches == ()

    @pytest.mark.unit
    def test_skip_shifts_reference_only(self, reference):
        result = find_mismatches(_read("2M8N2M", "AC" + "GT"), reference)
        assert result.mismatches == ()

    @pytest.mark.unit
    def test_clips_are_not_compared(self, reference):
        result = find_mismatches(_read("2H3S4M", "TTT" + "ACGT"), reference)
        assert result.mismatches == ()

    @pytest.mark.unit
    def test_equal_and_diff_ops_compare(self, reference):
        result = find_mismatches(_read("3=1X", "ACGA"), reference)
        assert result.mismatches == (Mismatch("r1", 103, "A", "T"),)

    @pytest.mark.unit
    def test_n_never_mismatches(self, reference):
        assert find_mismatches(_read("4M", "ANGN"), reference).mismatches == ()

    @pytest.mark.unit
    def test_reference_n_never_mismatches(self):
        cache = ReferenceCache()
        cache.on_data_arrived(ContigInterval("chr1", 0, 4), ReferenceBases("chr1", 0, "ANNT"))
        result = find_mismatches(_read("4M", "AGCT", start=0), cache)
        assert result.mismatches == ()

    @pytest.mark.unit
    def test_case_insensitive(self, reference):
        result = find_mismatches(_read("4M", "acga"), reference)
        assert result.mismatches == (Mismatch("r1", 103, "A", "T"),)

    @pytest.mark.unit
    def test_undelivered_reference_is_pending(self, reference):
        # Read runs past the delivered reference at 120
        result = find_mismatches(_read("10M", "TACGTAAAAA", start=115), reference)
        assert result.pending == (ContigInterval("chr1", 120, 125),)
        assert not result.complete
        assert result.mismatches == ()

    @pytest.mark.unit
    def test_window_restricts_positions(self, reference):
        read = _read("10M", "TCGTTCGTAC")
        result = find_mismatches(read, reference, window=ContigInterval("chr1", 102, 110))
        assert result.mismatches == (Mismatch("r1", 104, "T", "A"),)

    @pytest.mark.unit
    def test_window_hides_missing_reference(self, reference):
        read = _read("10M", "TACGTAAAAA", start=115)
        result = find_mismatches(read, reference, window=ContigInterval("chr1", 100, 120))
        assert result.complete

    @pytest.mark.unit
    def test_unmapped_read_has_no_mismatches(self, reference):
        unmapped = Alignment("u", "chr1", 100, (), "ACGT", mapped=False)
        assert find_mismatches(unmapped, reference).mismatches == ()
