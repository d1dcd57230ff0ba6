"""
Submission rate limiting.

Sliding-window limiter keyed by client IP. Each analysis costs real
DataForSEO money, so limits are per hour as well as per minute.
"""

import time
import logging
from typing import Callable, Dict, List, Optional, Tuple

from linkscore.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Sliding-window rate limiter.

    Usage:
        limiter = RateLimiter(requests_per_minute=2, requests_per_hour=5)
        limiter.enforce(client_ip)  # raises RateLimitError when exceeded
    """

    def __init__(
        self,
        requests_per_minute: int = 2,
        requests_per_hour: int = 5,
        clock: Callable[[], float] = time.time,
    ):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self._clock = clock

        # Request timestamps per key, newest last
        self._buckets: Dict[str, List[float]] = {}

    def _prune(self, key: str, now: float) -> List[float]:
        hour_ago = now - 3600
        bucket = [t for t in self._buckets.get(key, ()) if t > hour_ago]
        if bucket:
            self._buckets[key] = bucket
        else:
            self._buckets.pop(key, None)
        return bucket

    def check_rate_limit(self, key: str) -> Tuple[bool, Optional[str]]:
        """
        Check and record a request.

        Returns:
            Tuple of (allowed, error_message)
        """
        now = self._clock()
        bucket = self._prune(key, now)

        minute_ago = now - 60
        if len([t for t in bucket if t > minute_ago]) >= self.requests_per_minute:
            return False, f"Rate limit exceeded: {self.requests_per_minute} analyses per minute"

        if len(bucket) >= self.requests_per_hour:
            return False, f"Rate limit exceeded: {self.requests_per_hour} analyses per hour"

        bucket.append(now)
        self._buckets[key] = bucket
        return True, None

    def enforce(self, key: str) -> None:
        """
        Raises:
            RateLimitError: Key is over either limit
        """
        allowed, message = self.check_rate_limit(key)
        if not allowed:
            logger.warning(f"Rate limit hit for {key}: {message}")
            raise RateLimitError(message, retry_after=self.retry_after(key))

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest request in the tightest window expires."""
        now = self._clock()
        bucket = self._prune(key, now)
        if not bucket:
            return 0
        recent = [t for t in bucket if t > now - 60]
        if len(recent) >= self.requests_per_minute:
            return max(1, int(recent[0] + 60 - now))
        return max(1, int(bucket[0] + 3600 - now))
