"""
GitLab merge request webhook payload (subset of fields).

Only the fields the review pipeline reads are modelled; everything else in
the payload is ignored.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

REVIEWABLE_ACTIONS = frozenset({"open", "reopen", "update"})


class CommitState(str, Enum):
    """GitLab commit status states."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELED = "canceled"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class EventUser(_Payload):
    id: int
    name: str = ""
    username: str = ""


class EventProject(_Payload):
    id: Optional[int] = None
    name: str = ""
    path_with_namespace: str = ""
    web_url: str = ""


class LastCommit(_Payload):
    id: Optional[str] = None
    title: str = ""
    timestamp: str = ""


class MergeRequestAttributes(_Payload):
    id: Optional[int] = None
    iid: Optional[int] = None
    target_branch: str = ""
    source_branch: str = ""
    title: str = ""
    description: Optional[str] = None
    state: str = ""
    merge_status: str = ""
    action: Optional[str] = None
    last_commit: LastCommit = Field(default_factory=LastCommit)


class MergeRequestEvent(_Payload):
    """GitLab ``merge_request`` webhook event."""

    object_kind: str
    user: Optional[EventUser] = None
    project: EventProject = Field(default_factory=EventProject)
    object_attributes: MergeRequestAttributes = Field(default_factory=MergeRequestAttributes)

    @property
    def project_id(self) -> Optional[int]:
        return self.project.id

    @property
    def mr_iid(self) -> Optional[int]:
        return self.object_attributes.iid

    @property
    def commit_sha(self) -> Optional[str]:
        return self.object_attributes.last_commit.id

    @property
    def mr_url(self) -> str:
        """Web URL of the merge request."""
        return f"{self.project.web_url.rstrip('/')}/-/merge_requests/{self.mr_iid}"

    @property
    def is_reviewable(self) -> bool:
        """Only opened, reopened and updated merge requests are reviewed."""
        return (
            self.object_kind == "merge_request"
            and self.object_attributes.action in REVIEWABLE_ACTIONS
        )
