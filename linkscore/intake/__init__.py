"""Submission intake: validation, sanitization and rate limiting."""

from .validation import (
    CampaignParameters,
    sanitize_domain,
    sanitize_email,
    sanitize_keywords,
    validate_submission,
)
from .rate_limit import RateLimiter

__all__ = [
    "CampaignParameters",
    "sanitize_domain",
    "sanitize_email",
    "sanitize_keywords",
    "validate_submission",
    "RateLimiter",
]
