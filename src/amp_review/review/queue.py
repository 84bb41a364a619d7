"""
Review Job Queue

Runs review jobs as detached asyncio tasks so a webhook handler can
answer immediately, and keeps each job's status around for polling.

Job lifecycle:
    queued -> running -> completed | failed -> (evicted after retention)
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from .errors import QueueFullError
from .models import JobStatus, QueueStats, ReviewJob, ReviewResult

logger = structlog.get_logger(__name__)

DEFAULT_MAX_QUEUE_SIZE = 10
DEFAULT_RETENTION_SECONDS = 60.0

JobWork = Callable[[], Awaitable[ReviewResult]]


class ReviewJobQueue:
    """
    Bounded table of asynchronous review jobs.

    All state is touched from the event loop thread only, so no locks are
    needed; records are still re-checked before use because both job start
    and eviction are deferred.
    """

    def __init__(
        self,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        retry_after: int | None = None,
    ):
        """
        Initialize the queue.

        Args:
            max_queue_size: Jobs tracked at once, including settled jobs
                that have not been evicted yet
            retention_seconds: How long settled jobs stay visible
            retry_after: Seconds suggested to callers when the queue is full
        """
        if max_queue_size <= 0:
            raise ValueError(f"max_queue_size must be positive, got {max_queue_size}")

        self.max_queue_size = max_queue_size
        self.retention_seconds = retention_seconds
        self.retry_after = retry_after

        self._jobs: dict[str, ReviewJob] = {}
        self._tasks: set[asyncio.Task] = set()
        self._evictions: dict[str, asyncio.TimerHandle] = {}

        logger.info(
            "Review queue initialized",
            max_queue_size=max_queue_size,
            retention_seconds=retention_seconds,
        )

    def enqueue(self, work: JobWork) -> str:
        """
        Accept a job and start it in the background.

        Must be called from a running event loop. The job is recorded as
        queued before this returns, so its id is immediately pollable.

        Args:
            work: Zero-argument coroutine function running the review

        Returns:
            The new job id

        Raises:
            QueueFullError: If ``max_queue_size`` jobs are already tracked
        """
        if len(self._jobs) >= self.max_queue_size:
            logger.warning("Review queue full", max_size=self.max_queue_size, tracked=len(self._jobs))
            raise QueueFullError(self.max_queue_size, self.retry_after)

        loop = asyncio.get_running_loop()

        job_id = str(uuid.uuid4())
        self._jobs[job_id] = ReviewJob(job_id=job_id)

        task = loop.create_task(self._run(job_id, work), name=f"review-job-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info("Enqueued review job", job_id=job_id, tracked=len(self._jobs))
        return job_id

    def get_status(self, job_id: str) -> ReviewJob | None:
        """Return the job record, or None if unknown or already evicted."""
        return self._jobs.get(job_id)

    def get_stats(self) -> QueueStats:
        """Count tracked jobs by status."""
        stats = QueueStats(total=len(self._jobs), max_size=self.max_queue_size)
        for job in self._jobs.values():
            if job.status == JobStatus.QUEUED:
                stats.queued += 1
            elif job.status == JobStatus.RUNNING:
                stats.running += 1
            elif job.status == JobStatus.COMPLETED:
                stats.completed += 1
            elif job.status == JobStatus.FAILED:
                stats.failed += 1
        return stats

    async def join(self) -> None:
        """Wait until every started job has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel pending evictions. Job records are left in place."""
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()

    async def _run(self, job_id: str, work: JobWork) -> None:
        """Execute one job and record how it settled."""
        job = self._jobs.get(job_id)
        if job is None:
            logger.error("Job not found at start", job_id=job_id)
            return

        job.status = JobStatus.RUNNING
        job.started_at = datetime.now()
        logger.info("Review job running", job_id=job_id)

        try:
            result = await work()
        except asyncio.CancelledError:
            self._settle(job, JobStatus.FAILED, error="Job cancelled")
            raise
        except Exception as e:
            self._settle(job, JobStatus.FAILED, error=str(e) or e.__class__.__name__)
            logger.error("Review job raised", job_id=job_id, error=job.error)
        else:
            if not isinstance(result, ReviewResult):
                error = f"Job returned {type(result).__name__}, expected ReviewResult"
                self._settle(job, JobStatus.FAILED, error=error)
                logger.error("Review job failed", job_id=job_id, error=error)
            elif result.success:
                self._settle(job, JobStatus.COMPLETED, result=result)
                logger.info("Review job completed", job_id=job_id)
            else:
                error = result.error or "Review processing failed"
                self._settle(job, JobStatus.FAILED, result=result, error=error)
                logger.error("Review job failed", job_id=job_id, error=error)
        finally:
            self._schedule_eviction(job_id)

    def _settle(
        self,
        job: ReviewJob,
        status: JobStatus,
        result: ReviewResult | None = None,
        error: str | None = None,
    ) -> None:
        job.status = status
        job.completed_at = datetime.now()
        job.result = result
        job.error = error

    def _schedule_eviction(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None or not job.status.is_terminal:
            return
        loop = asyncio.get_running_loop()
        self._evictions[job_id] = loop.call_later(self.retention_seconds, self._evict, job_id)

    def _evict(self, job_id: str) -> None:
        self._evictions.pop(job_id, None)
        if self._jobs.pop(job_id, None) is not None:
            logger.debug("Evicted settled job", job_id=job_id)
