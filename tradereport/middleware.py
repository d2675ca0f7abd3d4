"""
tradereport.middleware — HTTP middleware for the report API.

Provides:
    - ReportContextMiddleware: tags every response with the request id and,
      once a report run has been published, its run id and reporting year;
      emits one structured access-log line carrying that run context
    - CachePolicyMiddleware: baseline hardening headers and Cache-Control
      tied to report availability

Both read app.state (config, result, run_id) as set by the lifespan in
tradereport.api; neither mutates it.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("tradereport.http")

REPORT_RUN_HEADER = "X-Report-Run"
REPORT_YEAR_HEADER = "X-Report-Year"

# Reports are computed once per process; a published run never changes.
REPORT_MAX_AGE = 60


def _run_context(request: Request) -> dict[str, Any]:
    """Report-run fields for headers and logs, from app.state."""
    state = request.app.state
    config = getattr(state, "config", None)
    result = getattr(state, "result", None)
    return {
        "run_id": getattr(state, "run_id", None) if result is not None else None,
        "year": config.year_prefix if config is not None else None,
        "report_ready": result is not None,
    }


def _bucket_code(path: str) -> Optional[str]:
    """'/reports/no' → 'NO'; None for any other path."""
    prefix = "/reports/"
    if path.startswith(prefix) and len(path) > len(prefix):
        return path[len(prefix):].strip().upper()
    return None


class ReportContextMiddleware(BaseHTTPMiddleware):
    """Request id plus report-run identity on every response."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        t0 = time.monotonic()
        response = await call_next(request)
        latency_ms = round((time.monotonic() - t0) * 1000, 1)

        context = _run_context(request)
        response.headers["X-Request-ID"] = request_id
        if context["run_id"] is not None:
            response.headers[REPORT_RUN_HEADER] = context["run_id"]
        if context["year"] is not None:
            response.headers[REPORT_YEAR_HEADER] = context["year"]

        _log_report_request(request, response.status_code, latency_ms, request_id, context)
        return response


class CachePolicyMiddleware(BaseHTTPMiddleware):
    """Hardening headers; only a published report is cacheable.

    Health checks, errors and the 503 served before a run completes are
    no-store, so a client never caches the unavailable state.
    """

    _HEALTH_PATHS = frozenset(("/health", "/ready"))

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"

        ready = getattr(request.app.state, "result", None) is not None
        if (
            request.url.path in self._HEALTH_PATHS
            or response.status_code >= 400
            or not ready
        ):
            response.headers["Cache-Control"] = "no-store"
        else:
            response.headers["Cache-Control"] = f"public, max-age={REPORT_MAX_AGE}"

        return response


def _log_report_request(
    request: Request,
    status_code: int,
    latency_ms: float,
    request_id: str,
    context: dict[str, Any],
) -> None:
    log_data = {
        "event": "report_request",
        "method": request.method,
        "path": request.url.path,
        "bucket": _bucket_code(request.url.path),
        "status": status_code,
        "latency_ms": latency_ms,
        "request_id": request_id,
        **context,
    }
    # 503 before a run completes is the documented degraded state.
    if status_code >= 500 and status_code != 503:
        logger.error(json.dumps(log_data))
    elif status_code >= 400:
        logger.warning(json.dumps(log_data))
    else:
        logger.info(json.dumps(log_data))
