"""
Review Dispatcher

Reviews arbitrarily large diffs by splitting them into chunks and sending
the chunks to the reviewer in bounded concurrent batches. Per-chunk
outcomes are merged into one ReviewResult; a failing chunk never aborts
its siblings.
"""

import asyncio
from collections.abc import Callable, Iterator
from dataclasses import replace
from typing import Protocol, TypeVar

import structlog

from .errors import ChunkReviewError
from .models import (
    DEFAULT_MAX_CHUNK_SIZE,
    DEFAULT_MAX_CONCURRENT,
    ChunkFailure,
    ChunkOutcome,
    ReviewChunk,
    ReviewContext,
    ReviewIssue,
    ReviewResult,
    ReviewStats,
)
from .splitter import DiffSplitter

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SECTION_SEPARATOR = "\n\n---\n\n"
PARTIAL_FAILURE_NOTE = "\n\n**Note:** Some files could not be processed."


class ChunkReviewer(Protocol):
    """The external review capability (e.g. an Amp thread)."""

    async def review_chunk(self, diff_text: str, context: ReviewContext) -> ReviewResult:
        """Review one piece of diff text."""
        ...


ReviewerFactory = Callable[[], ChunkReviewer]


def batched(items: list[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive groups of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


class ReviewDispatcher:
    """
    Multi-chunk reviewer.

    Diffs that fit in one chunk go straight to a single reviewer call.
    Larger diffs are split, and chunks are reviewed ``max_concurrent`` at
    a time; the next batch starts only after every chunk in the current
    batch has settled.
    """

    def __init__(
        self,
        reviewer_factory: ReviewerFactory,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        review_timeout: float | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            reviewer_factory: Creates a fresh reviewer; called once per chunk
            max_chunk_size: Maximum characters per chunk
            max_concurrent: Chunks reviewed at the same time
            review_timeout: Seconds allowed per reviewer call (None = no limit)
        """
        if max_concurrent <= 0:
            raise ValueError(f"max_concurrent must be positive, got {max_concurrent}")

        self.reviewer_factory = reviewer_factory
        self.max_concurrent = max_concurrent
        self.review_timeout = review_timeout
        self.splitter = DiffSplitter(max_chunk_size)

    async def review_diff(self, diff_text: str, context: ReviewContext) -> ReviewResult:
        """
        Review a diff of any size.

        Args:
            diff_text: Unified diff text
            context: Merge request the diff belongs to

        Returns:
            The reviewer's own result for single-chunk diffs, otherwise the
            aggregate over all chunks
        """
        chunks = self.splitter.split(diff_text)

        if not chunks:
            logger.error(
                "No reviewable chunks, every file exceeds the chunk size limit",
                mr_iid=context.mr_iid,
                max_chunk_size=self.splitter.max_chunk_size,
            )
            return ReviewResult(
                success=False,
                error="No reviewable files: every file exceeds the chunk size limit",
                stats=ReviewStats(),
            )

        if len(chunks) == 1:
            logger.info("Using single-chunk review", mr_iid=context.mr_iid)
            return await self._review_single(diff_text, context)

        logger.info(
            "Using multi-chunk review",
            mr_iid=context.mr_iid,
            chunks=len(chunks),
            max_concurrent=self.max_concurrent,
        )
        return await self._review_chunks(chunks, context)

    async def _review_single(self, diff_text: str, context: ReviewContext) -> ReviewResult:
        """Review the whole diff with one reviewer call."""
        try:
            return await self._call_reviewer(self.reviewer_factory(), diff_text, context)
        except Exception as e:
            logger.error("Single-chunk review failed", mr_iid=context.mr_iid, error=_error_message(e))
            return ReviewResult(success=False, error=_error_message(e))

    async def _review_chunks(
        self, chunks: list[ReviewChunk], context: ReviewContext
    ) -> ReviewResult:
        """Review chunks in sequential batches of concurrent calls."""
        outcomes: list[ChunkOutcome] = []
        failures: list[ChunkFailure] = []

        for batch in batched(chunks, self.max_concurrent):
            settled = await asyncio.gather(
                *(self._review_chunk(chunk, context) for chunk in batch),
                return_exceptions=True,
            )

            for chunk, outcome in zip(batch, settled):
                if isinstance(outcome, ReviewResult):
                    outcomes.append(
                        ChunkOutcome(chunk_id=chunk.chunk_id, files=chunk.files, result=outcome)
                    )
                    logger.info("Chunk review completed", mr_iid=context.mr_iid, chunk_id=chunk.chunk_id)
                elif isinstance(outcome, Exception):
                    failures.append(
                        ChunkFailure(
                            chunk_id=chunk.chunk_id,
                            files=chunk.files,
                            error=_error_message(outcome),
                        )
                    )
                    logger.error(
                        "Chunk review failed",
                        mr_iid=context.mr_iid,
                        chunk_id=chunk.chunk_id,
                        files=chunk.files or ["unknown files"],
                        error=_error_message(outcome),
                    )
                else:
                    # Cancellation of a chunk is not a chunk failure
                    raise outcome

        return self._aggregate(outcomes, failures, context)

    async def _review_chunk(self, chunk: ReviewChunk, context: ReviewContext) -> ReviewResult:
        """Review one chunk with its own reviewer and context."""
        logger.debug(
            "Reviewing chunk",
            mr_iid=context.mr_iid,
            chunk_id=chunk.chunk_id,
            files=len(chunk.files),
            size=chunk.total_size,
        )
        reviewer = self.reviewer_factory()
        chunk_context = replace(context, chunk_id=chunk.chunk_id)

        result = await self._call_reviewer(reviewer, chunk.content, chunk_context)
        if not result.success:
            raise ChunkReviewError(result.error or "Review failed")
        return result

    async def _call_reviewer(
        self, reviewer: ChunkReviewer, diff_text: str, context: ReviewContext
    ) -> ReviewResult:
        """Call the reviewer, enforcing the per-call timeout."""
        try:
            return await asyncio.wait_for(
                reviewer.review_chunk(diff_text, context),
                timeout=self.review_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"Review timeout after {self.review_timeout}s") from e

    def _aggregate(
        self,
        outcomes: list[ChunkOutcome],
        failures: list[ChunkFailure],
        context: ReviewContext,
    ) -> ReviewResult:
        """Merge chunk outcomes into one result."""
        issues: list[ReviewIssue] = []
        thread_ids: list[str] = []
        review_parts: list[str] = []

        for outcome in outcomes:
            issues.extend(outcome.result.issues)
            thread_ids.extend(outcome.result.thread_ids)
            if outcome.result.final_review:
                review_parts.append(outcome.result.final_review)

        stats = ReviewStats(
            files_reviewed=sum(len(o.files) for o in outcomes),
            chunks_processed=len(outcomes),
            chunks_failed=len(failures),
            total_issues=len(issues),
        )

        if not outcomes:
            logger.error("All chunks failed", mr_iid=context.mr_iid, chunks_failed=len(failures))
            return ReviewResult(
                success=False,
                error=f"All {len(failures)} chunks failed",
                stats=stats,
            )

        final_review = SECTION_SEPARATOR.join(review_parts)
        if failures:
            final_review = (final_review + PARTIAL_FAILURE_NOTE) if final_review else PARTIAL_FAILURE_NOTE.lstrip()

        logger.info(
            "Aggregated chunk reviews",
            mr_iid=context.mr_iid,
            issues=len(issues),
            chunks_processed=len(outcomes),
            chunks_failed=len(failures),
        )
        return ReviewResult(
            success=True,
            issues=issues,
            final_review=final_review or None,
            thread_ids=thread_ids,
            stats=stats,
            partial_failures=failures,
        )
