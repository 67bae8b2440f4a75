"""
test_fetch.py: Fetch-with-retry against ``httpx.MockTransport``.

Backoff waits go through an injected ``sleep`` that only records the delays.
"""

import asyncio

import httpx
import pytest

from core.config import RetryPolicy
from core.errors import InvalidResponseError, MalformedTableError, UpstreamStatusError, UpstreamUnavailableError
from core.fetch import parse_json, read_table, request_with_retry, request_with_retry_sync

URL = "https://sheets.example.test/exec"


def scripted(*steps):
    """Handler replaying ``steps``: an int status, a (status, body) pair, or an exception class."""
    calls = []

    def handler(request):
        step = steps[min(len(calls), len(steps) - 1)]
        calls.append(request)
        if isinstance(step, type) and issubclass(step, Exception):
            raise step("boom", request=request)
        status, body = step if isinstance(step, tuple) else (step, [["h"], [1]])
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    return handler, calls


def run_async(handler, policy, sleeps):
    async def fake_sleep(delay):
        sleeps.append(delay)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await request_with_retry(client, "GET", URL, policy, source="test", sleep=fake_sleep)

    return asyncio.run(scenario())


class TestAsyncRetry:

    def test_first_attempt_succeeds(self):
        handler, calls = scripted(200)
        response = run_async(handler, RetryPolicy(attempts=3), [])
        assert response.json() == [["h"], [1]]
        assert len(calls) == 1

    def test_status_retried_with_linear_backoff(self):
        handler, calls = scripted(500, 502, 200)
        sleeps = []
        policy = RetryPolicy(attempts=3, backoff=3.0, linear=True, retry_on_status=True)
        response = run_async(handler, policy, sleeps)
        assert response.status_code == 200
        assert len(calls) == 3
        assert sleeps == [3.0, 6.0]

    def test_status_not_retried_by_default(self):
        handler, calls = scripted((503, "maintenance"))
        with pytest.raises(UpstreamStatusError) as info:
            run_async(handler, RetryPolicy(attempts=3), [])
        assert info.value.status == 503
        assert info.value.body == "maintenance"
        assert str(info.value) == "Data source error: 503"
        assert len(calls) == 1

    def test_last_status_surfaces_after_retries(self):
        handler, calls = scripted(500)
        with pytest.raises(UpstreamStatusError) as info:
            run_async(handler, RetryPolicy(attempts=2, retry_on_status=True), [])
        assert info.value.attempts == 2
        assert len(calls) == 2

    def test_timeouts_exhausted(self):
        handler, calls = scripted(httpx.ReadTimeout)
        sleeps = []
        with pytest.raises(UpstreamUnavailableError) as info:
            run_async(handler, RetryPolicy(attempts=3, backoff=1.0), sleeps)
        assert info.value.timed_out
        assert info.value.attempts == 3
        assert sleeps == [1.0, 1.0]

    def test_timeouts_only_fails_fast_on_network_error(self):
        handler, calls = scripted(httpx.ConnectError)
        with pytest.raises(UpstreamUnavailableError) as info:
            run_async(handler, RetryPolicy(attempts=3, backoff=1.0, timeouts_only=True), [])
        assert not info.value.timed_out
        assert len(calls) == 1

    def test_network_error_then_success(self):
        handler, calls = scripted(httpx.ConnectError, 200)
        response = run_async(handler, RetryPolicy(attempts=2), [])
        assert response.status_code == 200

    def test_cancellation_is_not_retried(self):
        calls = []

        async def slow(request):
            calls.append(request)
            await asyncio.sleep(10)
            return httpx.Response(200, json=[[1]])

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
                task = asyncio.create_task(request_with_retry(client, "GET", URL, RetryPolicy(attempts=3), source="test"))
                await asyncio.sleep(0.05)
                task.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task

        asyncio.run(scenario())
        assert len(calls) == 1


class TestSyncRetry:

    def test_retry_then_success(self):
        handler, calls = scripted(httpx.ConnectTimeout, 200)
        sleeps = []
        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            response = request_with_retry_sync(
                client, "GET", URL, RetryPolicy(attempts=3, backoff=2.0), source="test", sleep=sleeps.append
            )
        assert response.status_code == 200
        assert sleeps == [2.0]

    def test_default_headers_sent(self):
        handler, calls = scripted(200)
        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            request_with_retry_sync(client, "GET", URL, RetryPolicy(), headers={"X-Test": "1"})
        sent = calls[0].headers
        assert sent["Cache-Control"] == "no-cache"
        assert sent["X-Test"] == "1"


class TestDecoding:

    def test_non_json_body(self):
        response = httpx.Response(200, text="<html>login</html>", headers={"content-type": "text/html"})
        with pytest.raises(InvalidResponseError) as info:
            parse_json(response, source="test")
        assert info.value.content_type == "text/html"

    def test_not_a_table(self):
        with pytest.raises(MalformedTableError):
            read_table(httpx.Response(200, json={"rows": []}))

    def test_table(self):
        assert read_table(httpx.Response(200, json=[["h"], [1, 2]])) == [["h"], [1, 2]]
