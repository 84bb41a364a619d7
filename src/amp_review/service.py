"""Review service.

Wires configuration, logging, the review dispatcher, the merge request
pipeline and the job queue together. A webhook handler holds one
ReviewService and calls ``submit`` for each incoming event.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog

from amp_review.config import ReviewConfig
from amp_review.config import config as default_config
from amp_review.gitlab.events import MergeRequestEvent
from amp_review.gitlab.processor import DiffSource, MergeRequestProcessor, StatusSink
from amp_review.log_config import configure_logging
from amp_review.review.dispatcher import ReviewDispatcher, ReviewerFactory
from amp_review.review.models import QueueStats, ReviewJob
from amp_review.review.queue import ReviewJobQueue

logger = structlog.get_logger(__name__)


class ReviewService:
    """Accepts merge request events and reviews them in the background."""

    def __init__(
        self,
        diff_source: DiffSource,
        status_sink: StatusSink,
        reviewer_factory: ReviewerFactory,
        config: Optional[ReviewConfig] = None,
        setup_logging: bool = True,
    ):
        """
        Initialize the service.

        Args:
            diff_source: Fetches merge request diffs
            status_sink: Posts commit statuses
            reviewer_factory: Creates a fresh reviewer per review call
            config: Configuration (defaults to the environment)
            setup_logging: Configure structlog from ``config``
        """
        self.config = config or default_config
        self.config.validate()

        if setup_logging:
            configure_logging(self.config.log_level, self.config.log_json)

        self.dispatcher = ReviewDispatcher(
            reviewer_factory,
            max_chunk_size=self.config.max_chunk_size,
            max_concurrent=self.config.max_concurrent,
            review_timeout=self.config.review_timeout,
        )
        self.processor = MergeRequestProcessor(
            diff_source, status_sink, self.dispatcher, self.config
        )
        self.queue = ReviewJobQueue(
            max_queue_size=self.config.max_queue_size,
            retention_seconds=self.config.job_retention_seconds,
            retry_after=self.config.retry_after_seconds,
        )

    def submit(self, payload: MergeRequestEvent | dict[str, Any]) -> Optional[str]:
        """
        Enqueue a review for a webhook event.

        Returns:
            The job id, or None if the event is not one we review

        Raises:
            QueueFullError: If the queue is at capacity
            pydantic.ValidationError: If a dict payload is malformed
        """
        event = (
            payload
            if isinstance(payload, MergeRequestEvent)
            else MergeRequestEvent.model_validate(payload)
        )

        if not event.is_reviewable:
            logger.info(
                "Ignoring event",
                object_kind=event.object_kind,
                action=event.object_attributes.action,
            )
            return None

        job_id = self.queue.enqueue(lambda: self.processor.process(event))
        logger.info(
            "Review submitted",
            job_id=job_id,
            project_id=event.project_id,
            mr_iid=event.mr_iid,
        )
        return job_id

    def get_job(self, job_id: str) -> Optional[ReviewJob]:
        """Look up a job by id."""
        return self.queue.get_status(job_id)

    def queue_stats(self) -> QueueStats:
        """Current job counts."""
        return self.queue.get_stats()

    async def shutdown(self) -> None:
        """Wait for running jobs, then stop eviction timers."""
        logger.info("Shutting down review service", stats=self.queue_stats().to_dict())
        await self.queue.join()
        self.queue.close()
