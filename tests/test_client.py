"""
Test Suite for the DataForSEO Client

Uses httpx.MockTransport so no request leaves the process.
"""

import json

import httpx
import pytest

from linkscore.collector.client import DataForSEOClient, RetryConfig, safe_get_result
from linkscore.errors import APIError

NO_DELAY = RetryConfig(max_retries=2, initial_delay=0, max_delay=0)


def ok_body(items, cost=0.02, task_status=20000):
    return {
        "status_code": 20000,
        "status_message": "Ok.",
        "cost": cost,
        "tasks": [{
            "status_code": task_status,
            "status_message": "Ok." if task_status == 20000 else "Task failed",
            "result": [{"items": items}],
        }],
    }


def make_client(handler, retry_config=NO_DELAY) -> DataForSEOClient:
    return DataForSEOClient(
        login="login",
        password="password",
        retry_config=retry_config,
        transport=httpx.MockTransport(handler),
    )


class TestSafeGetResult:

    def test_items(self):
        assert safe_get_result(ok_body([{"a": 1}])) == [{"a": 1}]

    def test_malformed(self):
        assert safe_get_result({}) == []
        assert safe_get_result({"tasks": [{"result": None}]}) == []
        assert safe_get_result({"tasks": [{"result": [None]}]}, get_items=False) == {}
        assert safe_get_result({"tasks": "nope"}) == []


class TestDataForSEOClient:
    """Request shaping, retry policy and cost tracking."""

    @pytest.mark.asyncio
    async def test_get_backlinks_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=ok_body([{"domain_from": "news.com.au"}]))

        async with make_client(handler) as client:
            items = await client.get_backlinks("acme.com.au", limit=5000)

        assert items == [{"domain_from": "news.com.au"}]
        assert seen["path"] == "/v3/backlinks/backlinks/live"
        assert seen["auth"].startswith("Basic ")
        task = seen["body"][0]
        assert task["target"] == "acme.com.au"
        assert task["mode"] == "one_per_domain"
        assert task["rank_scale"] == "one_hundred"
        assert task["limit"] == 1000

    @pytest.mark.asyncio
    async def test_get_serp_results_request(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=ok_body([{"type": "organic", "domain": "fastfix.com.au"}]))

        async with make_client(handler) as client:
            items = await client.get_serp_results("plumber sydney", 1000286, depth=10)

        assert items[0]["domain"] == "fastfix.com.au"
        assert seen["path"] == "/v3/serp/google/organic/live/advanced"
        assert seen["body"][0]["location_code"] == 1000286

    @pytest.mark.asyncio
    async def test_tracks_cost(self):
        def handler(request):
            return httpx.Response(200, json=ok_body([], cost=0.05))

        async with make_client(handler) as client:
            await client.get_backlinks("a.com.au")
            await client.get_backlinks("b.com.au")
            assert client.total_cost == pytest.approx(0.10)
            assert client.request_count == 2

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) < 3:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json=ok_body([{"ok": True}]))

        async with make_client(handler) as client:
            assert await client.get_backlinks("acme.com.au") == [{"ok": True}]
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(503)

        async with make_client(handler) as client:
            with pytest.raises(APIError) as exc_info:
                await client.get_backlinks("acme.com.au")
        assert exc_info.value.status_code == 503
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_no_retry_on_auth_failure(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(401, json={"status_message": "Unauthorized"})

        async with make_client(handler) as client:
            with pytest.raises(APIError):
                await client.get_backlinks("acme.com.au")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_rate_limit(self):
        calls = []

        def handler(request):
            calls.append(1)
            if len(calls) == 1:
                return httpx.Response(429)
            return httpx.Response(200, json=ok_body([]))

        async with make_client(handler) as client:
            assert await client.get_backlinks("acme.com.au") == []
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_api_level_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(200, json={"status_code": 40100, "status_message": "You are not authorized"})

        async with make_client(handler) as client:
            with pytest.raises(APIError) as exc_info:
                await client.get_backlinks("acme.com.au")
        assert exc_info.value.status_code == 40100
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_task_error_raises(self):
        def handler(request):
            return httpx.Response(200, json=ok_body([], task_status=40501))

        async with make_client(handler) as client:
            with pytest.raises(APIError, match="Task error"):
                await client.get_backlinks("acme.com.au")

    @pytest.mark.asyncio
    async def test_transport_errors_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(APIError, match="HTTP error"):
                await client.get_backlinks("acme.com.au")

    @pytest.mark.asyncio
    async def test_closed_client_rejects_requests(self):
        client = make_client(lambda request: httpx.Response(200, json=ok_body([])))
        await client.close()
        with pytest.raises(APIError, match="closed"):
            await client.get_backlinks("acme.com.au")
