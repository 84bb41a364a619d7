"""Configuration management for the review agent.

Values come from environment variables, with defaults suitable for a
single-instance deployment.
"""

import os
from dataclasses import dataclass

from amp_review.review.models import DEFAULT_MAX_CHUNK_SIZE, DEFAULT_MAX_CONCURRENT


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ReviewConfig:
    """Review agent configuration."""

    # Diff splitting
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE  # characters per chunk
    max_concurrent: int = DEFAULT_MAX_CONCURRENT  # chunks in flight per batch
    review_timeout: float = 600.0  # seconds per reviewer call

    # Job queue
    max_queue_size: int = 10
    retry_after_seconds: int = 60
    job_retention_seconds: float = 60.0

    # GitLab commit status
    build_status_name: str = "Amp Code Review"
    build_status_key: str = "amp-code-review"

    # Amp
    amp_server_url: str = "https://ampcode.com"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    def validate(self) -> None:
        """Reject settings the review core cannot work with."""
        for name in ("max_chunk_size", "max_concurrent", "max_queue_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.review_timeout <= 0:
            raise ValueError(f"review_timeout must be positive, got {self.review_timeout}")
        if self.job_retention_seconds < 0:
            raise ValueError(
                f"job_retention_seconds must not be negative, got {self.job_retention_seconds}"
            )

    @classmethod
    def from_env(cls) -> "ReviewConfig":
        """Create configuration from environment variables."""
        return cls(
            max_chunk_size=int(os.getenv("AMP_REVIEW_MAX_CHUNK_SIZE", str(DEFAULT_MAX_CHUNK_SIZE))),
            max_concurrent=int(os.getenv("AMP_REVIEW_MAX_CONCURRENT", str(DEFAULT_MAX_CONCURRENT))),
            review_timeout=float(os.getenv("AMP_REVIEW_TIMEOUT", "600")),
            max_queue_size=int(os.getenv("AMP_REVIEW_MAX_QUEUE_SIZE", "10")),
            retry_after_seconds=int(os.getenv("AMP_REVIEW_RETRY_AFTER", "60")),
            job_retention_seconds=float(os.getenv("AMP_REVIEW_JOB_RETENTION", "60")),
            build_status_name=os.getenv("GITLAB_BUILD_STATUS_NAME", "Amp Code Review"),
            build_status_key=os.getenv("GITLAB_BUILD_STATUS_KEY", "amp-code-review"),
            amp_server_url=os.getenv("AMP_SERVER_URL", "https://ampcode.com").rstrip("/"),
            log_level=os.getenv("AMP_REVIEW_LOG_LEVEL", "INFO").upper(),
            log_json=_get_bool("AMP_REVIEW_LOG_JSON", True),
        )


# Global configuration instance
config = ReviewConfig.from_env()
