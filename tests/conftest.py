"""Pytest configuration and fixtures for amp-review tests."""

import asyncio

import pytest

from amp_review.config import ReviewConfig
from amp_review.review.models import ReviewContext, ReviewIssue, ReviewResult


class ReviewTracker:
    """Shared record of what fake reviewers were asked to do."""

    def __init__(self) -> None:
        self.events: list[tuple[str, int | None]] = []
        self.contexts: list[ReviewContext] = []
        self.diffs: list[str] = []
        self.reviewer_ids: set[int] = set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.failures: dict[int | None, BaseException] = {}
        self.returned_failures: set[int | None] = set()
        self.delays: dict[int | None, float] = {}


class FakeReviewer:
    """Reviewer that reports one issue per call and records concurrency."""

    def __init__(self, tracker: ReviewTracker):
        self.tracker = tracker

    async def review_chunk(self, diff_text: str, context: ReviewContext) -> ReviewResult:
        tracker = self.tracker
        chunk_id = context.chunk_id
        tracker.reviewer_ids.add(id(self))
        tracker.contexts.append(context)
        tracker.diffs.append(diff_text)
        tracker.events.append(("start", chunk_id))
        tracker.in_flight += 1
        tracker.max_in_flight = max(tracker.max_in_flight, tracker.in_flight)
        try:
            await asyncio.sleep(tracker.delays.get(chunk_id, 0.01))
            if chunk_id in tracker.failures:
                raise tracker.failures[chunk_id]
            if chunk_id in tracker.returned_failures:
                return ReviewResult(success=False, error=f"reviewer gave up on chunk {chunk_id}")
            return ReviewResult(
                success=True,
                issues=[
                    ReviewIssue(path=f"chunk-{chunk_id}", line=1, message=f"issue in chunk {chunk_id}")
                ],
                final_review=f"Review of chunk {chunk_id}",
                thread_ids=[f"T-{chunk_id}"],
            )
        finally:
            tracker.in_flight -= 1
            tracker.events.append(("end", chunk_id))


@pytest.fixture
def tracker() -> ReviewTracker:
    """Fresh tracker for each test."""
    return ReviewTracker()


@pytest.fixture
def reviewer_factory(tracker: ReviewTracker):
    """Factory creating a new FakeReviewer per call."""
    return lambda: FakeReviewer(tracker)


@pytest.fixture
def review_context() -> ReviewContext:
    """Sample merge request context."""
    return ReviewContext(
        project_id=42,
        mr_iid=7,
        commit_sha="abc123def456",
        mr_url="https://gitlab.example.com/group/app/-/merge_requests/7",
    )


@pytest.fixture
def review_config() -> ReviewConfig:
    """Config with small limits for fast tests."""
    return ReviewConfig(
        max_chunk_size=100,
        max_concurrent=2,
        review_timeout=5.0,
        max_queue_size=2,
        retry_after_seconds=30,
        job_retention_seconds=60.0,
        build_status_name="Amp Code Review",
        build_status_key="amp-code-review",
        amp_server_url="https://ampcode.com",
        log_level="WARNING",
        log_json=True,
    )


@pytest.fixture
def mr_event_payload() -> dict:
    """Sample GitLab merge request webhook payload."""
    return {
        "object_kind": "merge_request",
        "user": {"id": 1, "name": "Dev", "username": "dev"},
        "project": {
            "id": 42,
            "name": "app",
            "path_with_namespace": "group/app",
            "web_url": "https://gitlab.example.com/group/app",
        },
        "object_attributes": {
            "id": 1001,
            "iid": 7,
            "target_branch": "main",
            "source_branch": "feature",
            "title": "Add feature",
            "description": "Adds the feature",
            "state": "opened",
            "merge_status": "can_be_merged",
            "action": "open",
            "last_commit": {
                "id": "abc123def456",
                "title": "Add feature",
                "timestamp": "2026-01-01T00:00:00Z",
            },
        },
    }
