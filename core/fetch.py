from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from core.config import RetryPolicy
from core.data import validate_table
from core.errors import InvalidResponseError, UpstreamStatusError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


class _Retry(Exception):
    """Internal signal: this attempt failed in a retryable way."""

    def __init__(self, timed_out: bool, reason: str, response: Optional[httpx.Response] = None):
        super().__init__(reason)
        self.timed_out = timed_out
        self.response = response


def _judge_response(response: httpx.Response, policy: RetryPolicy, attempt: int, source: str) -> httpx.Response:
    if response.is_success:
        return response
    if policy.retry_on_status and attempt < policy.attempts:
        raise _Retry(False, f"HTTP {response.status_code}", response)
    raise UpstreamStatusError(
        response.status_code,
        response.reason_phrase,
        body=response.text[:500],
        source=source,
        attempts=attempt,
    )


def _judge_error(exc: httpx.TransportError, policy: RetryPolicy, attempt: int, source: str) -> _Retry:
    timed_out = isinstance(exc, httpx.TimeoutException)
    if policy.timeouts_only and not timed_out:
        raise UpstreamUnavailableError(str(exc) or type(exc).__name__, source=source, attempts=attempt) from exc
    return _Retry(timed_out, str(exc) or type(exc).__name__)


def _exhausted(last: Optional[_Retry], policy: RetryPolicy, source: str) -> UpstreamUnavailableError:
    reason = str(last) if last else "no attempt made"
    return UpstreamUnavailableError(
        f"{source or 'upstream'} unreachable after {policy.attempts} attempt(s): {reason}",
        source=source,
        attempts=policy.attempts,
        timed_out=bool(last and last.timed_out),
    )


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    policy: RetryPolicy,
    *,
    source: str = "",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request under ``policy``; return the first 2xx response.

    Raises ``UpstreamStatusError`` for a non-2xx answer that is not (or no
    longer) retried and ``UpstreamUnavailableError`` when no attempt produced
    a response. Cancellation propagates untouched.
    """
    headers = {**DEFAULT_HEADERS, **(kwargs.pop("headers", None) or {})}
    last: Optional[_Retry] = None
    for attempt in range(1, policy.attempts + 1):
        started = time.perf_counter()
        try:
            response = await client.request(method, url, headers=headers, timeout=policy.timeout, **kwargs)
            return _judge_response(response, policy, attempt, source)
        except _Retry as retry:
            last = retry
        except httpx.TransportError as exc:
            last = _judge_error(exc, policy, attempt, source)
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000)
            logger.debug(
                "%s attempt %d took %dms",
                source,
                attempt,
                elapsed_ms,
                extra={"source": source, "attempt": attempt, "duration_ms": elapsed_ms},
            )

        logger.warning("%s attempt %d/%d failed: %s", source, attempt, policy.attempts, last)
        if attempt < policy.attempts:
            wait = policy.delay(attempt)
            if wait:
                await sleep(wait)

    raise _exhausted(last, policy, source)


def request_with_retry_sync(
    client: httpx.Client,
    method: str,
    url: str,
    policy: RetryPolicy,
    *,
    source: str = "",
    sleep: Callable[[float], Any] = time.sleep,
    **kwargs: Any,
) -> httpx.Response:
    headers = {**DEFAULT_HEADERS, **(kwargs.pop("headers", None) or {})}
    last: Optional[_Retry] = None
    for attempt in range(1, policy.attempts + 1):
        try:
            response = client.request(method, url, headers=headers, timeout=policy.timeout, **kwargs)
            return _judge_response(response, policy, attempt, source)
        except _Retry as retry:
            last = retry
        except httpx.TransportError as exc:
            last = _judge_error(exc, policy, attempt, source)

        logger.warning("%s attempt %d/%d failed: %s", source, attempt, policy.attempts, last)
        if attempt < policy.attempts:
            wait = policy.delay(attempt)
            if wait:
                sleep(wait)

    raise _exhausted(last, policy, source)


def parse_json(response: httpx.Response, *, source: str = "") -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidResponseError(
            "Server returned non-JSON data",
            content_type=response.headers.get("content-type"),
            source=source,
        ) from exc


def read_table(response: httpx.Response, *, source: str = "") -> list:
    """Decode a Record Table body; raises on non-JSON or a non-list/empty payload."""
    return validate_table(parse_json(response, source=source))
