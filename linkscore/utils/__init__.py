"""Utility modules for the LinkScore engine."""

from .config import Settings, get_settings
from .domain_filter import canonicalize_host, is_excluded_domain

__all__ = [
    "Settings",
    "get_settings",
    # Domain handling
    "canonicalize_host",
    "is_excluded_domain",
]
