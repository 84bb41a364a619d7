"""
Diff Splitter

Splits a large unified diff into size-bounded chunks so each review call
stays under the reviewer's input limit. Files are never split across
chunks; they are packed first-fit, largest first.
"""

import re

import structlog

from .models import DEFAULT_MAX_CHUNK_SIZE, FileDiff, ReviewChunk

logger = structlog.get_logger(__name__)

FILE_HEADER = re.compile(r"^diff --git a/(.+?) b/(.+?)$")


def parse_file_diffs(diff_text: str) -> list[FileDiff]:
    """
    Split diff text into per-file records at ``diff --git`` headers.

    The destination path is used as the file path. Lines before the
    first header are dropped.
    """
    files: list[FileDiff] = []
    current_path: str | None = None
    current_lines: list[str] = []

    for line in diff_text.split("\n"):
        match = FILE_HEADER.match(line)
        if match:
            if current_path is not None:
                files.append(FileDiff(path=current_path, content="\n".join(current_lines)))
            # CRLF diffs leave the carriage return on the header line
            current_path = match.group(2).rstrip("\r")
            current_lines = [line]
        elif current_path is not None:
            current_lines.append(line)

    if current_path is not None:
        files.append(FileDiff(path=current_path, content="\n".join(current_lines)))

    return files


class DiffSplitter:
    """Partition a diff into review chunks no larger than ``max_chunk_size``."""

    def __init__(self, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE):
        """
        Initialize splitter.

        Args:
            max_chunk_size: Maximum characters per chunk
        """
        if max_chunk_size <= 0:
            raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")
        self.max_chunk_size = max_chunk_size

    def split(self, diff_text: str) -> list[ReviewChunk]:
        """
        Split a diff into chunks.

        Strategy:
        1. Small diffs are returned whole as chunk 0
        2. Otherwise parse per-file diffs and bin-pack them
        3. Files larger than the limit on their own are dropped

        Chunk order follows packing order, not diff order.
        """
        if len(diff_text) <= self.max_chunk_size:
            logger.debug("Diff fits in single chunk", size=len(diff_text))
            return [self._whole_diff_chunk(diff_text)]

        file_diffs = parse_file_diffs(diff_text)
        if not file_diffs:
            logger.warning(
                "No file headers found in oversized diff, returning single chunk",
                size=len(diff_text),
            )
            return [self._whole_diff_chunk(diff_text, file_diffs)]

        chunks = self._pack(file_diffs)

        logger.info(
            "Split diff into chunks",
            size=len(diff_text),
            files=len(file_diffs),
            chunks=len(chunks),
        )
        for chunk in chunks:
            logger.debug(
                "Chunk packed",
                chunk_id=chunk.chunk_id,
                files=len(chunk.files),
                size=chunk.total_size,
            )
        return chunks

    def _pack(self, file_diffs: list[FileDiff]) -> list[ReviewChunk]:
        """First-fit bin packing, largest file first."""
        chunks: list[ReviewChunk] = []

        # sorted() is stable, so equal sizes keep diff order
        for file_diff in sorted(file_diffs, key=lambda f: f.size, reverse=True):
            if file_diff.size > self.max_chunk_size:
                logger.warning(
                    "File exceeds chunk size limit, skipping",
                    path=file_diff.path,
                    size=file_diff.size,
                    max_chunk_size=self.max_chunk_size,
                )
                continue

            target = next(
                (c for c in chunks if c.total_size + file_diff.size <= self.max_chunk_size),
                None,
            )
            if target is None:
                target = ReviewChunk(chunk_id=len(chunks))
                chunks.append(target)
            target.add(file_diff)

        return chunks

    def _whole_diff_chunk(
        self, diff_text: str, file_diffs: list[FileDiff] | None = None
    ) -> ReviewChunk:
        """Single chunk holding the entire diff verbatim."""
        if file_diffs is None:
            file_diffs = parse_file_diffs(diff_text)
        return ReviewChunk(
            chunk_id=0,
            files=[f.path for f in file_diffs],
            total_size=len(diff_text),
            content=diff_text,
        )


def split_diff(diff_text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[ReviewChunk]:
    """Convenience wrapper around :class:`DiffSplitter`."""
    return DiffSplitter(max_chunk_size).split(diff_text)
