from __future__ import annotations

from typing import Any, Optional


class DashboardError(Exception):
    """Base class for errors the dashboard knows how to report."""


class UpstreamError(DashboardError):
    def __init__(self, message: str, *, source: str = "", attempts: int = 1):
        super().__init__(message)
        self.source = source
        self.attempts = attempts


class UpstreamUnavailableError(UpstreamError):
    """No usable answer after every attempt (network failure or timeout)."""

    def __init__(self, message: str, *, source: str = "", attempts: int = 1, timed_out: bool = False):
        super().__init__(message, source=source, attempts=attempts)
        self.timed_out = timed_out


class UpstreamStatusError(UpstreamError):
    def __init__(
        self,
        status: int,
        reason: str = "",
        *,
        body: Any = None,
        source: str = "",
        attempts: int = 1,
    ):
        super().__init__(f"Data source error: {status}", source=source, attempts=attempts)
        self.status = status
        self.reason = reason
        self.body = body


class InvalidResponseError(UpstreamError):
    def __init__(self, message: str, *, content_type: Optional[str] = None, source: str = ""):
        super().__init__(message, source=source)
        self.content_type = content_type


class MalformedTableError(DashboardError):
    """The payload is not a non-empty list of rows."""


class AuthenticationError(DashboardError):
    pass


class AuthorizationError(DashboardError):
    pass
