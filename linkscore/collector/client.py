"""
DataForSEO API Client

Thin async wrapper over the two live endpoints the engine needs:
- serp/google/organic/live/advanced (competitor discovery)
- backlinks/backlinks/live, one row per referring domain

Transient failures (HTTP 429, 5xx, timeouts, dropped connections) are
retried with exponential backoff. Anything else surfaces immediately as
APIError. Every successful response adds its reported cost to total_cost.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from linkscore.errors import APIError

logger = logging.getLogger(__name__)

SUCCESS_STATUS = 20000
TASK_OK_STATUSES = (20000, 20100)


def safe_get_result(response: Dict, get_items: bool = True) -> Any:
    """
    First task result of a DataForSEO envelope.

    Args:
        response: Parsed response body
        get_items: Return result["items"] instead of the result object

    Returns:
        Items list or result dict; [] / {} when the envelope is incomplete
    """
    empty = [] if get_items else {}
    if not isinstance(response, dict):
        return empty

    tasks = response.get("tasks")
    if not isinstance(tasks, list) or not tasks or not isinstance(tasks[0], dict):
        return empty

    results = tasks[0].get("result")
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        return empty

    first = results[0]
    if not get_items:
        return first
    items = first.get("items")
    return items if isinstance(items, list) else []


@dataclass
class RetryConfig:
    """Backoff schedule for transient failures."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0

    def delays(self):
        delay = self.initial_delay
        for _ in range(self.max_retries):
            yield delay
            delay = min(delay * self.exponential_base, self.max_delay)


def is_retryable(error: APIError) -> bool:
    """Transport failures, 429 and 5xx are worth another attempt."""
    code = error.status_code
    if code is None:
        return True
    if code >= 10000:
        # DataForSEO envelope codes: 4xxxx are caller errors, 5xxxx are theirs
        return code >= 50000
    return code == 429 or code >= 500


class DataForSEOClient:
    """
    One client per analysis run, so total_cost is that run's spend.

    Usage:
        async with DataForSEOClient(login, password) as client:
            rows = await client.get_backlinks("acme.com.au")
            serp = await client.get_serp_results("plumber sydney", 1000286)
    """

    BASE_URL = "https://api.dataforseo.com/v3"

    def __init__(
        self,
        login: str,
        password: str,
        retry_config: Optional[RetryConfig] = None,
        max_connections: int = 10,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            login: DataForSEO account login
            password: DataForSEO API password
            retry_config: Backoff schedule (defaults to 3 retries, 1s doubling to 10s)
            max_connections: Connection pool size
            timeout: Per-request timeout in seconds
            transport: httpx transport override (tests pass httpx.MockTransport)
        """
        self.retry_config = retry_config or RetryConfig()
        self.total_cost = 0.0
        self.request_count = 0
        self._closed = False

        token = base64.b64encode(f"{login}:{password}".encode()).decode()
        self._http = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={"Authorization": f"Basic {token}", "Content-Type": "application/json"},
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._closed:
            return
        self._closed = True
        await self._http.aclose()

    # ========================================================================
    # TRANSPORT
    # ========================================================================

    async def post(self, endpoint: str, tasks: List[Dict[str, Any]], retry: bool = True) -> Dict[str, Any]:
        """
        POST a task list and return the validated envelope.

        Raises:
            APIError: Non-retryable failure, or retries exhausted
        """
        if self._closed:
            raise APIError("Client is closed")

        path = f"/{endpoint}"
        delays = self.retry_config.delays() if retry else iter(())
        attempt = 1

        while True:
            try:
                return await self._send(path, tasks)
            except APIError as e:
                error = e
            except httpx.TimeoutException as e:
                error = APIError(f"Request timed out: {e}")
            except httpx.HTTPError as e:
                error = APIError(f"HTTP error: {e}")

            delay = next(delays, None) if is_retryable(error) else None
            if delay is None:
                raise error

            logger.warning(f"{path} attempt {attempt} failed ({error}), retrying in {delay}s")
            attempt += 1
            await asyncio.sleep(delay)

    async def _send(self, path: str, tasks: List[Dict[str, Any]]) -> Dict[str, Any]:
        logger.debug(f"POST {path}")
        response = await self._http.post(path, json=tasks)
        self.request_count += 1

        body = self._parse_body(response)
        if response.status_code != 200:
            raise APIError(
                f"API request failed: {response.status_code}",
                status_code=response.status_code,
                response=body,
            )
        if not isinstance(body, dict):
            raise APIError(f"Malformed response from {path}", status_code=response.status_code)

        if body.get("status_code") != SUCCESS_STATUS:
            raise APIError(
                f"API error: {body.get('status_message', 'Unknown error')}",
                status_code=body.get("status_code"),
                response=body,
            )

        self.total_cost += float(body.get("cost") or 0)

        # A failed task would otherwise read as "no results"
        for task in body.get("tasks") or []:
            code = task.get("status_code")
            if code not in TASK_OK_STATUSES:
                message = task.get("status_message", "Task error")
                logger.error(f"DataForSEO task failed on {path}: {message} ({code})")
                raise APIError(f"Task error: {message}", status_code=code, response=body)

        return body

    @staticmethod
    def _parse_body(response: httpx.Response) -> Optional[Any]:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # ========================================================================
    # ENDPOINTS
    # ========================================================================

    async def get_backlinks(self, target: str, limit: int = 1000) -> List[Dict[str, Any]]:
        """
        Live backlinks for `target`, one row per referring domain, strongest first.

        Ranks are requested on the 0-100 scale; the gateway still checks,
        since some accounts answer on 0-1000 regardless.
        """
        body = await self.post("backlinks/backlinks/live", [{
            "target": target,
            "mode": "one_per_domain",
            "rank_scale": "one_hundred",
            "include_subdomains": True,
            "exclude_internal_backlinks": True,
            "backlinks_status_type": "live",
            "limit": min(limit, 1000),
            "order_by": ["domain_from_rank,desc"],
        }])
        return safe_get_result(body)

    async def get_serp_results(
        self,
        keyword: str,
        location_code: int,
        language_code: str = "en",
        depth: int = 10,
    ) -> List[Dict[str, Any]]:
        """Desktop SERP items for a keyword (all item types; callers keep "organic")."""
        body = await self.post("serp/google/organic/live/advanced", [{
            "keyword": keyword,
            "location_code": location_code,
            "language_code": language_code,
            "device": "desktop",
            "depth": depth,
        }])
        return safe_get_result(body)
