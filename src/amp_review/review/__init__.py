"""
Review Module

Splits large diffs into chunks, reviews the chunks concurrently, and
tracks review jobs through their lifecycle.
"""

from .dispatcher import ChunkReviewer, ReviewDispatcher
from .errors import ChunkReviewError, QueueFullError, ReviewError, ReviewInputError
from .models import (
    ChunkFailure,
    ChunkOutcome,
    FileDiff,
    JobStatus,
    QueueStats,
    ReviewChunk,
    ReviewContext,
    ReviewIssue,
    ReviewJob,
    ReviewResult,
    ReviewStats,
)
from .queue import ReviewJobQueue
from .splitter import DiffSplitter, parse_file_diffs, split_diff

__all__ = [
    "ChunkReviewer",
    "ReviewDispatcher",
    "ReviewJobQueue",
    "DiffSplitter",
    "parse_file_diffs",
    "split_diff",
    "ReviewError",
    "ReviewInputError",
    "ChunkReviewError",
    "QueueFullError",
    "ChunkFailure",
    "ChunkOutcome",
    "FileDiff",
    "JobStatus",
    "QueueStats",
    "ReviewChunk",
    "ReviewContext",
    "ReviewIssue",
    "ReviewJob",
    "ReviewResult",
    "ReviewStats",
]
