"""Exceptions raised by the review core."""


class ReviewError(Exception):
    """Base class for review errors."""


class ReviewInputError(ReviewError):
    """A review request is missing required data (MR id, commit SHA, diff)."""


class ChunkReviewError(ReviewError):
    """The reviewer reported failure for a single chunk."""


class QueueFullError(ReviewError):
    """
    The job queue is at capacity.

    Callers should turn this into a backpressure signal (e.g. HTTP 503
    with ``retry_after``) instead of a generic failure.
    """

    def __init__(self, max_size: int, retry_after: int | None = None):
        super().__init__(f"Review queue is full (max: {max_size})")
        self.max_size = max_size
        self.retry_after = retry_after
