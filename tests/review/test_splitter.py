"""
Unit tests for DiffSplitter.

Tests diff parsing and first-fit packing without any reviewer.
"""

import pytest

from amp_review.review.models import ReviewChunk
from amp_review.review.splitter import DiffSplitter, parse_file_diffs, split_diff


# =============================================================================
# HELPERS
# =============================================================================

def make_file_diff(path: str, size: int) -> str:
    """Build one file's diff text of exactly ``size`` characters."""
    header = f"diff --git a/{path} b/{path}"
    filler = size - len(header) - 2
    assert filler >= 0, "size too small for header"
    return f"{header}\n+{'x' * filler}"


def make_diff(*files: tuple[str, int]) -> str:
    """Join file diffs the way GitLab diff text is joined."""
    return "\n".join(make_file_diff(path, size) for path, size in files)


def all_files(chunks: list[ReviewChunk]) -> list[str]:
    return [path for chunk in chunks for path in chunk.files]


SAMPLE_DIFF = """\
diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1,3 +1,4 @@
 import os
+import sys

 def main():
diff --git a/old_name.py b/new_name.py
similarity index 90%
rename from old_name.py
rename to new_name.py"""


# =============================================================================
# UNIT TESTS: parse_file_diffs()
# =============================================================================

class TestParseFileDiffs:
    """Tests for splitting diff text at file headers."""

    def test_parses_each_file(self):
        """Each diff --git header starts a new file."""
        files = parse_file_diffs(SAMPLE_DIFF)

        assert [f.path for f in files] == ["src/app.py", "new_name.py"]

    def test_uses_destination_path(self):
        """Renamed files are keyed by their new path."""
        files = parse_file_diffs(SAMPLE_DIFF)

        assert files[1].path == "new_name.py"
        assert files[1].content.startswith("diff --git a/old_name.py b/new_name.py")

    def test_size_is_content_length(self):
        """Size counts characters of the file's slice."""
        for f in parse_file_diffs(SAMPLE_DIFF):
            assert f.size == len(f.content)

    def test_preamble_is_discarded(self):
        """Lines before the first header belong to no file."""
        text = "From 123 Mon Sep 17\nSubject: patch\n" + make_file_diff("a.py", 60)

        files = parse_file_diffs(text)

        assert len(files) == 1
        assert files[0].content == make_file_diff("a.py", 60)

    def test_no_headers_returns_empty(self):
        """Text without headers yields no file records."""
        assert parse_file_diffs("just some text\nwith lines") == []

    def test_crlf_header_path(self):
        """Carriage returns are not part of the path."""
        text = "diff --git a/win.py b/win.py\r\n+x = 1\r\ndiff --git a/b.py b/b.py\r\n+y = 2"

        files = parse_file_diffs(text)

        assert [f.path for f in files] == ["win.py", "b.py"]
        assert "\n".join(f.content for f in files) == text

    def test_slices_rejoin_to_input(self):
        """File slices joined by newlines reproduce the diff."""
        files = parse_file_diffs(SAMPLE_DIFF)

        assert "\n".join(f.content for f in files) == SAMPLE_DIFF


# =============================================================================
# UNIT TESTS: DiffSplitter.split() single chunk
# =============================================================================

class TestSingleChunk:
    """Tests for the small-diff and unrecognized-format paths."""

    def test_small_diff_is_single_chunk(self):
        """A 10,000 character diff fits in one 500,000 character chunk."""
        diff = make_diff(("a.py", 6000), ("b.py", 3999))
        assert len(diff) == 10_000

        chunks = DiffSplitter(500_000).split(diff)

        assert len(chunks) == 1
        assert chunks[0].chunk_id == 0
        assert chunks[0].content == diff
        assert chunks[0].total_size == len(diff)

    def test_single_chunk_lists_files(self):
        """The single-chunk path still reports the files it contains."""
        chunks = DiffSplitter(500_000).split(SAMPLE_DIFF)

        assert chunks[0].files == ["src/app.py", "new_name.py"]

    def test_exact_limit_is_single_chunk(self):
        """A diff exactly at the limit is not split."""
        diff = make_diff(("a.py", 50), ("b.py", 49))
        assert len(diff) == 100

        chunks = DiffSplitter(100).split(diff)

        assert len(chunks) == 1
        assert chunks[0].content == diff

    def test_unrecognized_format_falls_back_to_single_chunk(self):
        """Oversized text with no file headers is returned whole."""
        text = "x" * 500

        chunks = DiffSplitter(100).split(text)

        assert len(chunks) == 1
        assert chunks[0].content == text
        assert chunks[0].files == []
        assert chunks[0].total_size == 500

    def test_invalid_max_chunk_size(self):
        """Non-positive limits are rejected."""
        with pytest.raises(ValueError):
            DiffSplitter(0)


# =============================================================================
# UNIT TESTS: DiffSplitter.split() bin packing
# =============================================================================

class TestPacking:
    """Tests for first-fit, size-descending packing."""

    def test_two_large_files_get_separate_chunks(self):
        """400k + 300k cannot share a 500k chunk."""
        diff = make_diff(("big.py", 400_000), ("medium.py", 300_000))

        chunks = DiffSplitter(500_000).split(diff)

        assert len(chunks) == 2
        assert chunks[0].files == ["big.py"]
        assert chunks[1].files == ["medium.py"]
        assert chunks[0].total_size == 400_000
        assert chunks[1].total_size == 300_000

    def test_first_fit_fills_earlier_chunks(self):
        """Smaller files go into the first chunk with room."""
        diff = make_diff(("a.py", 60), ("b.py", 50), ("c.py", 40), ("d.py", 30))

        chunks = DiffSplitter(100).split(diff)

        # a(60) -> 0; b(50) -> 1; c(40) -> 0 (100); d(30) -> 1 (80)
        assert [c.files for c in chunks] == [["a.py", "c.py"], ["b.py", "d.py"]]
        assert [c.total_size for c in chunks] == [100, 80]

    def test_chunk_content_joins_files_with_newline(self):
        """Packed content is the file slices joined by newlines."""
        diff = make_diff(("a.py", 60), ("b.py", 50), ("c.py", 40))

        chunks = DiffSplitter(100).split(diff)

        assert chunks[0].content == make_file_diff("a.py", 60) + "\n" + make_file_diff("c.py", 40)

    def test_chunk_ids_are_sequential(self):
        """Chunk ids follow creation order from zero."""
        diff = make_diff(*[(f"f{i}.py", 80) for i in range(4)])

        chunks = DiffSplitter(100).split(diff)

        assert [c.chunk_id for c in chunks] == [0, 1, 2, 3]

    def test_largest_file_is_packed_first(self):
        """Chunk order follows size, not diff order."""
        diff = make_diff(("small.py", 40), ("large.py", 90))

        chunks = DiffSplitter(100).split(diff)

        assert chunks[0].files == ["large.py"]
        assert chunks[1].files == ["small.py"]

    def test_equal_sizes_keep_diff_order(self):
        """Ties are broken by position in the diff."""
        diff = make_diff(("first.py", 70), ("second.py", 70), ("third.py", 70))

        chunks = DiffSplitter(100).split(diff)

        assert all_files(chunks) == ["first.py", "second.py", "third.py"]

    def test_oversized_file_is_dropped(self):
        """A file larger than the limit appears in no chunk."""
        diff = make_diff(("huge.py", 150), ("a.py", 60), ("b.py", 30))

        chunks = DiffSplitter(100).split(diff)

        assert "huge.py" not in all_files(chunks)
        assert sorted(all_files(chunks)) == ["a.py", "b.py"]

    def test_all_files_oversized_yields_no_chunks(self):
        """Nothing is left to review when every file is too large."""
        diff = make_diff(("a.py", 150), ("b.py", 120))

        assert DiffSplitter(100).split(diff) == []

    def test_size_bound_and_conservation(self):
        """Every chunk respects the limit and every fitting file appears once."""
        sizes = [97, 40, 45, 45, 42, 88, 60, 40, 50, 50, 150, 53]
        files = [(f"file_{i}.py", size) for i, size in enumerate(sizes)]
        diff = make_diff(*files)

        chunks = DiffSplitter(100).split(diff)

        for chunk in chunks:
            assert chunk.total_size <= 100
            assert chunk.total_size == sum(
                size for path, size in files if path in chunk.files
            )
        expected = sorted(path for path, size in files if size <= 100)
        assert sorted(all_files(chunks)) == expected
        assert len(all_files(chunks)) == len(set(all_files(chunks)))

    def test_deterministic(self):
        """Same input, same chunks."""
        diff = make_diff(("a.py", 60), ("b.py", 50), ("c.py", 40), ("d.py", 30))

        first = DiffSplitter(100).split(diff)
        second = DiffSplitter(100).split(diff)

        assert first == second

    def test_split_diff_helper(self):
        """Module-level helper matches the class."""
        diff = make_diff(("a.py", 60), ("b.py", 50))

        assert split_diff(diff, 100) == DiffSplitter(100).split(diff)
