"""GitLab merge request event handling."""

from .events import CommitState, MergeRequestEvent
from .processor import DiffSource, MergeRequestProcessor, StatusSink

__all__ = [
    "CommitState",
    "MergeRequestEvent",
    "DiffSource",
    "MergeRequestProcessor",
    "StatusSink",
]
