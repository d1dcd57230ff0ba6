"""
Error taxonomy shared by the pipeline and the HTTP layer.

Validation and state conflicts are resolved at the API boundary.
APIError comes from the data provider and fails the running stage.
"""

from typing import Optional


class LinkScoreError(Exception):
    """Base class for all LinkScore errors."""


class ValidationError(LinkScoreError):
    """Submission input is malformed or out of range."""


class RateLimitError(LinkScoreError):
    """Caller exceeded the submission rate."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class APIError(LinkScoreError):
    """External data provider failure (HTTP, API status or malformed payload)."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class NotFoundError(LinkScoreError):
    """Referenced analysis job does not exist."""


class StateConflictError(LinkScoreError):
    """Operation is not valid for the job's current status."""
