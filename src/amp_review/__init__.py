"""
Amp Review

Chunked, concurrent AI code review for GitLab merge requests, with an
asynchronous job queue for webhook-driven use.
"""

__version__ = "0.1.0"
