from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional

_SCRIPT_BASE = "https://script.google.com/macros/s"

DEFAULT_SOURCE_URLS: Dict[str, str] = {
    "workforce": f"{_SCRIPT_BASE}/AKfycbwnhwQ6b59cGeK4Fi8KpO9yBAb6AuERQ2JpXlEvScg4u1NhZyPo48xAdNrqKtv18hAwNA/exec",
    "attendance": f"{_SCRIPT_BASE}/AKfycbynn0NtjrdC1U2cf0IevblQmFeaEyZoX9CexWQQfe9A4c7WgwVYc233i7KE7fc95IpLKg/exec",
    "performance": "",
    "turnover": f"{_SCRIPT_BASE}/AKfycbzZ0hXQqn0Io7kwHky_c73CI3IswwZHY2iz5BtmVFlVCdfaWXbJln6GbEPeVf6NZ4a1/exec",
    "recruitment": f"{_SCRIPT_BASE}/AKfycbyjlSMF3hCNzt9Ifa_jox3NdRAlfHzNYwzaZtdvoZ7YKYY4qyOKQ45M4rdZtX4ryJTu/exec",
    "sortie": f"{_SCRIPT_BASE}/AKfycbwUke_wNtq7o6ErgQeXIxN1As9ccVSfqJqXfLq3bKcUZN3TWt6LtYaHay9QGGtM2Hw7/exec",
    "auth": f"{_SCRIPT_BASE}/AKfycbwHvky0ULsONJ-lvYRSlX5sPAhiTu1LwqSWFlaaK2ch_mxkJJx-MRte4p7Haq0ZIg4/exec",
}

# Apps Script deployments that accept sheet uploads from the admin pages.
UPLOAD_TARGETS: Dict[str, str] = {
    "pointage": f"{_SCRIPT_BASE}/AKfycby4mCciphgVZY6iUNEYxcQMH6Tz90pJNLQqoqTcQNyZwk3W5mi3nhb8Ntp9IKM58coUlg/exec",
    "presence": f"{_SCRIPT_BASE}/AKfycbxvF4KTipY1HDUPquth1Cpg8kIbeA2RfCZcVHyqcqRuuks0HsNzWPr60sNrkR-qHK4_yw/exec",
    "database": f"{_SCRIPT_BASE}/AKfycbzTolLMQjvwvDXe8O3FgVIK_sjnOGzR0vdwk7q6RpzRas-dHPUbmEAXmHNLx9c6zGrA/exec",
    "recruitment": f"{_SCRIPT_BASE}/AKfycbz16Vg2z5c-1C8QO5Q94yMMXS-r3YZJRVKX75BMZ8MOUANKLhoRHmHna5DIkNP4o2Wc/exec",
    "temporary": f"{_SCRIPT_BASE}/AKfycbxKLKZq4WXqT1Ueh6fFWW9XgOLA2L2ACGG0O_i8FoO29s3ESgQ1lPADUrmmX9cC6sTq/exec",
    "turnover_form": f"{_SCRIPT_BASE}/AKfycbxIMp6iuxHymhAOEgHKjcQjRHisRkNktK2PQJl8cgzaukc3CKJ1sdX95isSqelipxSA/exec",
}


@dataclass(frozen=True)
class RetryPolicy:
    """Timeout and bounded retry budget for one remote call.

    ``backoff`` is in seconds. With ``linear`` the wait before attempt n+1 is
    ``backoff * n``, otherwise it is the fixed ``backoff``. ``retry_on_status``
    decides whether a non-2xx answer is retried or surfaced immediately;
    with ``timeouts_only`` a network failure other than a timeout is not retried.
    """

    timeout: float = 15.0
    attempts: int = 1
    backoff: float = 0.0
    linear: bool = False
    retry_on_status: bool = False
    timeouts_only: bool = False

    def delay(self, attempt: int) -> float:
        if self.backoff <= 0:
            return 0.0
        return self.backoff * attempt if self.linear else self.backoff


# Server side: proxy -> spreadsheet deployments.
UPSTREAM_POLICIES: Dict[str, RetryPolicy] = {
    "workforce": RetryPolicy(timeout=15.0),
    "attendance": RetryPolicy(timeout=30.0, attempts=3, backoff=3.0, linear=True, retry_on_status=True),
    "performance": RetryPolicy(timeout=180.0),
    "turnover": RetryPolicy(timeout=45.0),
    "recruitment": RetryPolicy(timeout=35.0, attempts=3, backoff=1.0, timeouts_only=True),
    "sortie": RetryPolicy(timeout=15.0),
    "auth": RetryPolicy(timeout=30.0),
    "upload": RetryPolicy(timeout=60.0),
}

# Client side: dashboard -> proxy.
CLIENT_POLICIES: Dict[str, RetryPolicy] = {
    "health": RetryPolicy(timeout=5.0),
    "workforce": RetryPolicy(timeout=15.0),
    "attendance": RetryPolicy(timeout=25.0, attempts=3, backoff=2.0, linear=True, retry_on_status=True),
    "performance": RetryPolicy(timeout=180.0),
    "turnover": RetryPolicy(timeout=60.0),
    "recruitment": RetryPolicy(timeout=40.0, attempts=3, backoff=2.0),
    "sortie": RetryPolicy(timeout=60.0),
    "auth": RetryPolicy(timeout=30.0),
    "upload": RetryPolicy(timeout=60.0),
}


@dataclass(frozen=True)
class SourceConfig:
    name: str
    url: str
    policy: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass(frozen=True)
class Settings:
    sources: Dict[str, SourceConfig] = field(default_factory=dict)
    api_base_url: str = "http://localhost:8000"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:8501", "http://127.0.0.1:8501"])
    log_level: str = "INFO"
    log_format: str = "json"
    session_dir: Path = Path(".hr_sessions")

    def source(self, name: str) -> SourceConfig:
        try:
            return self.sources[name]
        except KeyError:
            raise KeyError(f"Unknown data source: {name}") from None

    def with_source(self, name: str, **changes) -> "Settings":
        sources = dict(self.sources)
        sources[name] = replace(self.source(name), **changes)
        return replace(self, sources=sources)


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def load_settings(env: Optional[Dict[str, str]] = None) -> Settings:
    env = os.environ if env is None else env

    sources: Dict[str, SourceConfig] = {}
    for name, default_url in DEFAULT_SOURCE_URLS.items():
        url = env.get(f"HR_{name.upper()}_URL", default_url) or ""
        sources[name] = SourceConfig(name=name, url=url.strip(), policy=UPSTREAM_POLICIES[name])

    defaults = Settings()
    cors = _split_csv(env.get("CORS_ORIGINS")) or list(defaults.cors_origins)
    return Settings(
        sources=sources,
        api_base_url=(env.get("HR_API_BASE_URL") or defaults.api_base_url).rstrip("/"),
        cors_origins=cors,
        log_level=env.get("LOG_LEVEL", defaults.log_level),
        log_format=env.get("LOG_FORMAT", defaults.log_format),
        session_dir=Path(env.get("HR_SESSION_DIR") or defaults.session_dir),
    )
