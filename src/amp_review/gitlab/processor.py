"""
Merge request review pipeline.

Turns one merge request event into a review: fetch the diff, run the
dispatcher, and report the outcome as a GitLab commit status. Nothing
raised in here escapes ``process``; failures come back as a
``ReviewResult`` with ``success=False``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Protocol

import structlog

from amp_review.config import ReviewConfig
from amp_review.review.dispatcher import ReviewDispatcher
from amp_review.review.errors import ReviewInputError
from amp_review.review.models import ReviewContext, ReviewResult

from .events import CommitState, MergeRequestEvent

logger = structlog.get_logger(__name__)

STATUS_ERROR_PREVIEW = 100


class DiffSource(Protocol):
    """Fetches the unified diff of a merge request."""

    async def get_mr_diff(self, project_id: int, mr_iid: int) -> str: ...


class StatusSink(Protocol):
    """Posts commit statuses back to GitLab."""

    async def post_commit_status(
        self,
        project_id: int,
        sha: str,
        state: CommitState,
        *,
        name: str,
        description: str,
        context: str,
        target_url: Optional[str] = None,
    ) -> None: ...


def build_context(event: MergeRequestEvent) -> ReviewContext:
    """
    Extract the review context from an event.

    Raises:
        ReviewInputError: If the MR iid, project id or commit SHA is missing
    """
    if not event.mr_iid or not event.project_id or not event.commit_sha:
        raise ReviewInputError("Missing required MR information")
    return ReviewContext(
        project_id=event.project_id,
        mr_iid=event.mr_iid,
        commit_sha=event.commit_sha,
        mr_url=event.mr_url,
    )


class MergeRequestProcessor:
    """End-to-end review of a single merge request event."""

    def __init__(
        self,
        diff_source: DiffSource,
        status_sink: StatusSink,
        dispatcher: ReviewDispatcher,
        config: ReviewConfig,
    ):
        self.diff_source = diff_source
        self.status_sink = status_sink
        self.dispatcher = dispatcher
        self.config = config

    async def process(self, event: MergeRequestEvent) -> ReviewResult:
        """
        Review the merge request described by ``event``.

        Returns:
            The review result annotated with the MR identifiers, or a
            failure result describing what went wrong
        """
        try:
            context = build_context(event)
        except ReviewInputError as e:
            logger.error("Invalid merge request event", error=str(e))
            return ReviewResult(success=False, error=str(e))

        log = logger.bind(project_id=context.project_id, mr_iid=context.mr_iid)

        try:
            log.info("Fetching merge request diff")
            diff_text = await self.diff_source.get_mr_diff(context.project_id, context.mr_iid)
            if not diff_text:
                raise ReviewInputError("No diff content found")
            log.info("Retrieved diff content", size=len(diff_text))

            await self._post_status(context, CommitState.RUNNING, "Code review in progress", context.mr_url)

            result = await self.dispatcher.review_diff(diff_text, context)
            log.info("Review finished", success=result.success)
        except Exception as e:
            log.error("Review processing failed", error=str(e))
            await self._post_failure(context, str(e) or e.__class__.__name__)
            return ReviewResult(success=False, error=str(e) or e.__class__.__name__)

        if not result.success:
            await self._post_failure(context, result.error or "Unknown error")
            return result

        total_issues = len(result.issues)
        if total_issues == 0:
            description = "Code review completed - no issues found"
        else:
            description = f"Code review completed - {total_issues} issues found (see comments)"

        target_url = context.mr_url
        if result.thread_ids:
            target_url = f"{self.config.amp_server_url}/threads/{result.thread_ids[0]}"

        await self._post_status(context, CommitState.SUCCESS, description, target_url)

        if result.partial_failures:
            log.warning(
                "Review completed with partial coverage",
                chunks_failed=len(result.partial_failures),
            )

        return replace(
            result,
            mr_iid=context.mr_iid,
            project_id=context.project_id,
            commit_sha=context.commit_sha,
        )

    async def _post_failure(self, context: ReviewContext, error: str) -> None:
        description = f"Review failed: {error[:STATUS_ERROR_PREVIEW]}"
        await self._post_status(context, CommitState.FAILED, description, context.mr_url)

    async def _post_status(
        self,
        context: ReviewContext,
        state: CommitState,
        description: str,
        target_url: Optional[str],
    ) -> None:
        """Post a commit status; failures are logged and swallowed."""
        try:
            await self.status_sink.post_commit_status(
                context.project_id,
                context.commit_sha,
                state,
                name=self.config.build_status_name,
                description=description,
                context=self.config.build_status_key,
                target_url=target_url,
            )
            logger.debug(
                "Posted commit status",
                project_id=context.project_id,
                sha=context.commit_sha,
                state=state.value,
            )
        except Exception as e:
            logger.error(
                "Failed to post commit status",
                project_id=context.project_id,
                sha=context.commit_sha,
                state=state.value,
                error=str(e),
            )
