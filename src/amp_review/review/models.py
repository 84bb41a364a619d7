"""
Data models for the review dispatch core.

Defines the chunk, result and job types shared by the splitter,
the dispatcher and the job queue.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


DEFAULT_MAX_CHUNK_SIZE = 500_000
DEFAULT_MAX_CONCURRENT = 3


class LineType(str, Enum):
    """Which side of the diff an issue points at."""

    ADDED = "ADDED"
    REMOVED = "REMOVED"
    CONTEXT = "CONTEXT"


class JobStatus(str, Enum):
    """Lifecycle state of a review job."""

    QUEUED = "queued"  # Accepted, not started yet
    RUNNING = "running"  # Detached execution in progress
    COMPLETED = "completed"  # Settled with a successful result
    FAILED = "failed"  # Settled with an error

    @property
    def is_terminal(self) -> bool:
        """True once the job has settled and is awaiting eviction."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class FileDiff:
    """One file's slice of a unified diff."""

    path: str
    content: str

    @property
    def size(self) -> int:
        """Character length of the file's diff."""
        return len(self.content)


@dataclass
class ReviewChunk:
    """A bounded-size group of whole file diffs, reviewed in one call."""

    chunk_id: int
    files: list[str] = field(default_factory=list)
    total_size: int = 0
    content: str = ""

    def add(self, file_diff: FileDiff) -> None:
        """Append a file diff to this chunk while packing."""
        self.files.append(file_diff.path)
        self.total_size += file_diff.size
        if self.content:
            self.content += "\n" + file_diff.content
        else:
            self.content = file_diff.content


@dataclass(frozen=True)
class ReviewContext:
    """Identifies the merge request a review belongs to."""

    project_id: int
    mr_iid: int
    commit_sha: str
    mr_url: str = ""
    chunk_id: int | None = None


@dataclass
class ReviewIssue:
    """A single finding reported by the reviewer."""

    path: str
    line: int
    message: str
    line_type: LineType = LineType.ADDED
    suggested_fix: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "line": self.line,
            "line_type": self.line_type.value,
            "message": self.message,
            "suggested_fix": self.suggested_fix,
        }


@dataclass
class ReviewStats:
    """Totals over a multi-chunk review."""

    files_reviewed: int = 0
    chunks_processed: int = 0
    chunks_failed: int = 0
    total_issues: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "files_reviewed": self.files_reviewed,
            "chunks_processed": self.chunks_processed,
            "chunks_failed": self.chunks_failed,
            "total_issues": self.total_issues,
        }


@dataclass
class ChunkFailure:
    """A chunk whose review call raised, timed out or reported failure."""

    chunk_id: int
    files: list[str]
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"chunk_id": self.chunk_id, "files": list(self.files), "error": self.error}


@dataclass
class ReviewResult:
    """
    Outcome of a review.

    Used both for a single reviewer call and for the aggregate over
    all chunks of a diff. ``partial_failures`` is only ever populated
    on a successful aggregate where some chunks failed.
    """

    success: bool
    issues: list[ReviewIssue] = field(default_factory=list)
    final_review: str | None = None
    thread_ids: list[str] = field(default_factory=list)
    error: str | None = None
    stats: ReviewStats | None = None
    partial_failures: list[ChunkFailure] = field(default_factory=list)

    # Filled in by the merge request pipeline
    mr_iid: int | None = None
    project_id: int | None = None
    commit_sha: str | None = None

    @property
    def is_partial(self) -> bool:
        """True if the review succeeded without covering every chunk."""
        return self.success and bool(self.partial_failures)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        data: dict[str, Any] = {
            "success": self.success,
            "issues": [i.to_dict() for i in self.issues],
            "final_review": self.final_review,
            "thread_ids": list(self.thread_ids),
            "error": self.error,
            "stats": self.stats.to_dict() if self.stats else None,
            "partial_failures": [f.to_dict() for f in self.partial_failures],
        }
        if self.mr_iid is not None:
            data["mr_iid"] = self.mr_iid
            data["project_id"] = self.project_id
            data["commit_sha"] = self.commit_sha
        return data


@dataclass
class ChunkOutcome:
    """A chunk whose review call succeeded."""

    chunk_id: int
    files: list[str]
    result: ReviewResult


@dataclass
class ReviewJob:
    """An asynchronous review job tracked by the queue."""

    job_id: str
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=datetime.now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: ReviewResult | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for status polling."""
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


@dataclass
class QueueStats:
    """Point-in-time job counts."""

    total: int = 0
    queued: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    max_size: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "queued": self.queued,
            "running": self.running,
            "completed": self.completed,
            "failed": self.failed,
            "max_size": self.max_size,
        }
