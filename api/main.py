from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
import json
import logging
import math
from typing import Any, Awaitable, Callable, Dict

import httpx
import numpy as np
import pandas as pd
from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import DashboardFiltersModel, HealthResponse, SectorRequest
from core.config import UPSTREAM_POLICIES, Settings, load_settings
from core.data import NormalizedTable, normalize_table
from core.errors import (
    DashboardError,
    InvalidResponseError,
    MalformedTableError,
    UpstreamError,
    UpstreamStatusError,
    UpstreamUnavailableError,
)
from core.fetch import parse_json, read_table, request_with_retry
from core.filters import DashboardFilters, apply_filters, category_predicates, normalize_filters
from core.logging_config import setup_logging
from core.metrics_attendance import compute_attendance, export_groups as attendance_export
from core.metrics_overview import compute_overview
from core.metrics_performance import compute_performance, export_groups as performance_export
from core.metrics_recruitment import compute_recruitment, filtered_records as recruitment_records
from core.metrics_sector import compute_sector
from core.metrics_sortie import FILTER_FIELDS as SORTIE_FIELDS, compute_sortie
from core.metrics_turnover import FILTER_FIELDS as TURNOVER_FIELDS, compute_turnover, detail_rows
from core.metrics_workforce import FILTER_FIELDS as WORKFORCE_FIELDS, compute_workforce
from core.schema import SCHEMAS

logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.log_format == "json")
    # Apps Script answers through a redirect to googleusercontent.com.
    app.state.http_client = httpx.AsyncClient(follow_redirects=True)
    try:
        yield
    finally:
        await app.state.http_client.aclose()


app = FastAPI(title="HR Dashboard API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


class ClientDisconnected(Exception):
    pass


def _filters_from_model(model: DashboardFiltersModel) -> DashboardFilters:
    return normalize_filters(model.model_dump())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


async def _until_disconnect(request: Request, work: Awaitable[Any]) -> Any:
    """Await ``work``; cancel it and raise ``ClientDisconnected`` if the caller goes away."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                task.cancel()
                raise ClientDisconnected(request.url.path)
    finally:
        if not task.done():
            task.cancel()


def _source_url(settings: Settings, name: str) -> str:
    url = settings.source(name).url
    if not url:
        raise UpstreamError(f"No URL configured for {name} (set HR_{name.upper()}_URL)", source=name)
    return url


async def _get(name: str, client: httpx.AsyncClient, settings: Settings) -> httpx.Response:
    source = settings.source(name)
    return await request_with_retry(client, "GET", _source_url(settings, name), source.policy, source=name)


async def _load_table(name: str, client: httpx.AsyncClient, settings: Settings) -> NormalizedTable:
    response = await _get(name, client, settings)
    return normalize_table(read_table(response, source=name), SCHEMAS[name])


# Failure shapes, one per upstream.


def _fetch_failed(name: str) -> Callable[[Exception], JSONResponse]:
    def _respond(exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": f"Failed to fetch {name} data", "message": str(exc)})

    return _respond


def _turnover_failed(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to fetch turnover data", "message": str(exc), "data": []},
    )


def _recruitment_failed(exc: Exception) -> JSONResponse:
    if isinstance(exc, UpstreamUnavailableError) and exc.timed_out:
        return JSONResponse(
            status_code=504,
            content={"error": "Gateway Timeout", "message": "Failed to fetch recruitment data after multiple attempts"},
        )
    return _fetch_failed("recruitment")(exc)


def _attendance_failed(exc: Exception) -> JSONResponse:
    if isinstance(exc, UpstreamUnavailableError):
        return JSONResponse(
            status_code=503,
            content={
                "error": "Service temporarily unavailable",
                "details": str(exc),
                "timestamp": _now(),
                "attempts": exc.attempts,
            },
        )
    if isinstance(exc, UpstreamStatusError):
        return JSONResponse(
            status_code=exc.status,
            content={"error": str(exc), "details": exc.reason, "timestamp": _now()},
        )
    if isinstance(exc, InvalidResponseError):
        return JSONResponse(
            status_code=500,
            content={"error": "Invalid response format", "details": "Server returned non-JSON data"},
        )
    if isinstance(exc, MalformedTableError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid data format", "details": "Expected array with at least one row"},
        )
    return JSONResponse(status_code=500, content={"error": "Server error", "details": str(exc), "timestamp": _now()})


def _auth_failed(exc: Exception) -> JSONResponse:
    if isinstance(exc, UpstreamStatusError):
        return JSONResponse(
            status_code=exc.status,
            content={"error": "Failed to fetch authentication data", "status": exc.status, "statusText": exc.reason},
        )
    if isinstance(exc, InvalidResponseError):
        return JSONResponse(
            status_code=500,
            content={"error": "Invalid response format from Google Sheets", "receivedContentType": exc.content_type},
        )
    return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})


FAILURES: Dict[str, Callable[[Exception], JSONResponse]] = {
    "workforce": _fetch_failed("workforce"),
    "attendance": _attendance_failed,
    "performance": _fetch_failed("performance"),
    "turnover": _turnover_failed,
    "recruitment": _recruitment_failed,
    "sortie": _fetch_failed("sortie"),
    "auth": _auth_failed,
}


def _read_auth(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise InvalidResponseError(
            "Invalid response format from Google Sheets", content_type=content_type, source="auth"
        )
    return parse_json(response, source="auth")


READERS: Dict[str, Callable[[httpx.Response], Any]] = {
    "attendance": lambda response: read_table(response, source="attendance"),
    "auth": _read_auth,
}


async def _proxy(name: str, request: Request, client: httpx.AsyncClient, settings: Settings) -> Response:
    reader = READERS.get(name) or (lambda response: parse_json(response, source=name))
    try:
        response = await _until_disconnect(request, _get(name, client, settings))
        return _json(reader(response))
    except ClientDisconnected:
        logger.info("client left before %s answered; upstream call cancelled", name, extra={"source": name})
        return Response(status_code=499)
    except Exception as exc:
        logger.exception("%s proxy failed", name, extra={"source": name})
        return FAILURES[name](exc)


@app.get("/health", response_model=HealthResponse)
def health():
    return {"status": "ok", "timestamp": _now()}


@app.get("/api/workforce")
async def workforce_proxy(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _proxy("workforce", request, client, settings)


@app.get("/api/attendance")
async def attendance_proxy(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _proxy("attendance", request, client, settings)


@app.get("/api/performance")
async def performance_proxy(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _proxy("performance", request, client, settings)


@app.get("/api/turnover")
async def turnover_proxy(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _proxy("turnover", request, client, settings)


@app.get("/api/recruitment")
async def recruitment_proxy(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _proxy("recruitment", request, client, settings)


@app.get("/api/sortie")
async def sortie_proxy(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _proxy("sortie", request, client, settings)


@app.get("/api/admin/auth")
async def auth_proxy(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _proxy("auth", request, client, settings)


@app.post("/api/admin/upload")
async def admin_upload(
    request: Request,
    body: Dict[str, Any] = Body(...),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    payload = dict(body)
    script_url = payload.pop("googleScriptUrl", None)
    if not script_url:
        return JSONResponse(status_code=400, content={"error": "googleScriptUrl is required"})

    try:
        response = await _until_disconnect(
            request,
            request_with_retry(
                client,
                "POST",
                script_url,
                UPSTREAM_POLICIES["upload"],
                source="upload",
                content=json.dumps(payload, ensure_ascii=False),
                headers={"Content-Type": "text/plain;charset=utf-8"},
            ),
        )
        if "application/json" in response.headers.get("content-type", ""):
            return _json(parse_json(response, source="upload"))
        return JSONResponse(content=response.text)
    except ClientDisconnected:
        logger.info("client left during upload; upstream call cancelled", extra={"source": "upload"})
        return Response(status_code=499)
    except UpstreamStatusError as exc:
        logger.warning("upload rejected with %s", exc.status, extra={"source": "upload"})
        return JSONResponse(
            status_code=exc.status,
            content={"error": "Failed to upload to Google Sheets", "details": exc.body},
        )
    except Exception as exc:
        logger.exception("upload failed", extra={"source": "upload"})
        return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})


# Page payloads computed server side from the same upstream tables.


async def _compute(
    name: str,
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient,
    settings: Settings,
    compute: Callable[[DashboardFilters, NormalizedTable], Any],
) -> Response:
    try:
        f = _filters_from_model(filters)
        table = await _until_disconnect(request, _load_table(name, client, settings))
        return _json(compute(f, table))
    except ClientDisconnected:
        logger.info("client left before %s was computed", name, extra={"source": name})
        return Response(status_code=499)
    except (UpstreamError, MalformedTableError) as exc:
        logger.exception("%s fetch failed", name, extra={"source": name})
        return FAILURES[name](exc)
    except Exception as exc:
        logger.exception("%s failed", name)
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/attendance")
async def attendance(
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _compute("attendance", filters, request, client, settings, compute_attendance)


@app.post("/performance")
async def performance(
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _compute("performance", filters, request, client, settings, compute_performance)


@app.post("/recruitment")
async def recruitment(
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _compute("recruitment", filters, request, client, settings, compute_recruitment)


@app.post("/sortie")
async def sortie(
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _compute("sortie", filters, request, client, settings, compute_sortie)


@app.post("/turnover")
async def turnover(
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _compute("turnover", filters, request, client, settings, compute_turnover)


@app.post("/workforce")
async def workforce(
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    return await _compute("workforce", filters, request, client, settings, compute_workforce)


async def _optional_table(name: str, client: httpx.AsyncClient, settings: Settings) -> NormalizedTable | None:
    try:
        return await _load_table(name, client, settings)
    except DashboardError as exc:
        logger.warning("overview: %s unavailable: %s", name, exc, extra={"source": name})
        return None


@app.post("/overview")
async def overview(
    filters: DashboardFiltersModel,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    try:
        f = _filters_from_model(filters)
        att, wf = await _until_disconnect(
            request,
            asyncio.gather(
                _optional_table("attendance", client, settings),
                _optional_table("workforce", client, settings),
            ),
        )
        return _json(compute_overview(f, attendance=att, workforce=wf))
    except ClientDisconnected:
        return Response(status_code=499)
    except Exception as exc:
        logger.exception("overview failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.post("/sector")
def sector(body: SectorRequest):
    try:
        f = _filters_from_model(body.filters)
        farms = [farm.model_dump() for farm in body.farms]
        return _json(compute_sector(f, body.workers, farms=farms, supervisors=body.supervisors))
    except Exception as exc:
        logger.exception("sector failed")
        return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _filtered_frame(fields):
    def _export(filters: DashboardFilters, table: NormalizedTable) -> pd.DataFrame:
        return apply_filters(table.frame, category_predicates(filters, fields))

    return _export


def _turnover_details(filters: DashboardFilters, table: NormalizedTable) -> pd.DataFrame:
    df = apply_filters(table.frame, category_predicates(filters, TURNOVER_FIELDS))
    return pd.DataFrame(detail_rows(df))


EXPORTS: Dict[str, Callable[[DashboardFilters, NormalizedTable], pd.DataFrame]] = {
    "attendance": attendance_export,
    "performance": performance_export,
    "recruitment": recruitment_records,
    "sortie": _filtered_frame(SORTIE_FIELDS),
    "turnover": _turnover_details,
    "workforce": _filtered_frame(WORKFORCE_FIELDS),
}


@app.post("/export/{page}")
async def export_page(
    page: str,
    filters: DashboardFiltersModel,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
):
    exporter = EXPORTS.get(page)
    if exporter is None:
        return JSONResponse(status_code=404, content={"error": f"Unknown export page: {page}"})

    try:
        table = await _load_table(page, client, settings)
    except (UpstreamError, MalformedTableError) as exc:
        logger.exception("export %s fetch failed", page, extra={"source": page})
        return FAILURES[page](exc)

    export_df = exporter(_filters_from_model(filters), table)
    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    filename = f"{page}.csv"
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
