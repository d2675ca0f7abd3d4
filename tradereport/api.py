#!/usr/bin/env python3
"""
tradereport.api — Read-only HTTP view of one completed report run.

At startup the lifespan hook runs a single pipeline pass over the
configured files (off the event loop, under an optional deadline).
Only a finished PipelineResult is ever published; until then, or if
the run failed, report endpoints answer 503.

Endpoints:
    GET /health             → Liveness, always 200
    GET /ready              → Readiness diagnostics, always 200
    GET /reports            → All report records in output order
    GET /reports/{code}     → One bucket (focus, member, or bloc key)
    GET /summary            → Run configuration and row waterfall

Environment variables:
    ENV                       — "dev" or "prod" (default: "prod")
    REQUIRE_DATA              — "1" to abort startup if the run fails
    PIPELINE_TIMEOUT_SECONDS  — deadline for the startup run (default: none)
    plus every variable understood by tradereport.config.resolve_config()

Requires: fastapi, slowapi, uvicorn
"""

from __future__ import annotations

import asyncio
import csv
import json
import logging
import os
import re
import sys
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.gzip import GZipMiddleware

from tradereport.config import ReportConfig, resolve_config
from tradereport.middleware import CachePolicyMiddleware, ReportContextMiddleware
from tradereport.output import report_to_dict, result_to_dict
from tradereport.pipeline import PipelineResult, run_from_files
from tradereport.rows import InputNotFoundError, MissingColumnError

# ---------------------------------------------------------------------------
# Logging configuration: structured JSON to stdout
# ---------------------------------------------------------------------------

ENV = os.getenv("ENV", "prod").lower().strip()

logging.basicConfig(
    level=logging.DEBUG if ENV == "dev" else logging.INFO,
    format="%(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("tradereport.api")

REQUIRE_DATA = os.getenv("REQUIRE_DATA", "").strip() == "1"

# Strict bucket code: exactly 2 alpha characters
_CODE_RE = re.compile(r"^[A-Za-z]{2}$")


def _env_timeout() -> Optional[float]:
    raw = os.getenv("PIPELINE_TIMEOUT_SECONDS", "").strip()
    if not raw:
        return None
    timeout = float(raw)
    return timeout if timeout > 0 else None


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    config: Optional[ReportConfig] = None,
    timeout: Optional[float] = None,
    require_data: Optional[bool] = None,
) -> FastAPI:
    """Build the API around one report run.

    Args:
        config: Run configuration. None → resolve_config() at startup.
        timeout: Seconds allowed for the startup run. None → env / no deadline.
        require_data: Abort startup when the run fails. None → REQUIRE_DATA env.
    """
    if timeout is None:
        timeout = _env_timeout()
    if require_data is None:
        require_data = REQUIRE_DATA

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        cfg: ReportConfig = config if config is not None else resolve_config()
        app.state.config = cfg
        logger.info(json.dumps({
            "event": "startup",
            "env": ENV,
            "data_path": str(cfg.data_path),
            "year_prefix": cfg.year_prefix,
            "timeout_s": timeout,
        }))

        try:
            # The worker thread keeps running past a timeout, but its
            # result is discarded: partial aggregates are never published.
            result = await asyncio.wait_for(
                asyncio.to_thread(run_from_files, cfg),
                timeout=timeout,
            )
            app.state.run_id = uuid.uuid4().hex[:12]
            app.state.result = result
            logger.info(json.dumps({
                "event": "report_ready",
                "run_id": app.state.run_id,
                "reports": len(result.reports),
                "kept": result.counts.kept,
            }))
        except (
            InputNotFoundError,
            MissingColumnError,
            UnicodeDecodeError,
            csv.Error,
            OSError,
            asyncio.TimeoutError,
        ) as exc:
            reason = "timeout" if isinstance(exc, asyncio.TimeoutError) else str(exc)
            app.state.error = reason
            logger.error(json.dumps({"event": "report_unavailable", "reason": reason}))
            if require_data:
                logger.error(json.dumps({
                    "event": "startup_abort",
                    "reason": "REQUIRE_DATA=1 but the report run failed",
                }))
                sys.exit(1)

        yield

        logger.info(json.dumps({"event": "shutdown"}))

    app = FastAPI(
        title="Trade Report API",
        description="Yearly goods trade balance and top HS4 products",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.config = config
    app.state.result = None
    app.state.error = None
    app.state.run_id = None

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=["120/minute"],
        storage_uri="memory://",
        strategy="fixed-window",
    )
    app.state.limiter = limiter

    # Registration order: ReportContext → CachePolicy → GZip (outermost).
    app.add_middleware(ReportContextMiddleware)
    app.add_middleware(CachePolicyMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.exception_handler(RateLimitExceeded)
    async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded. Try again later."},
            headers={"Retry-After": "60"},
        )

    @app.exception_handler(Exception)
    async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(json.dumps({
            "event": "unhandled_exception",
            "exception_type": type(exc).__name__,
            "request_id": request_id,
            "path": request.url.path,
        }))
        return JSONResponse(status_code=500, content={"detail": "Internal server error."})

    def _require_result() -> tuple[ReportConfig, PipelineResult]:
        result: Optional[PipelineResult] = app.state.result
        if result is None:
            raise HTTPException(
                status_code=503,
                detail="Report not available. Check input files and /ready.",
            )
        return app.state.config, result

    @app.get("/health", include_in_schema=False)
    async def health(request: Request) -> JSONResponse:
        """Liveness check. No state reads."""
        return JSONResponse(status_code=200, content={"status": "ok"})

    @app.get("/ready")
    @limiter.limit("60/minute")
    async def ready(request: Request) -> JSONResponse:
        """Readiness check. Business readiness is in the 'ready' field."""
        result: Optional[PipelineResult] = app.state.result
        body = {
            "ready": result is not None,
            "status": "healthy" if result is not None else "degraded",
            "reason": app.state.error,
            "run_id": app.state.run_id if result is not None else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return JSONResponse(status_code=200, content=body)

    @app.get("/reports")
    @limiter.limit("60/minute")
    async def list_reports(request: Request) -> Any:
        """Every bucket: focus country, members by name, bloc aggregate."""
        cfg, result = _require_result()
        body = result_to_dict(result, cfg)
        body.pop("counts")
        return body

    @app.get("/reports/{code}")
    @limiter.limit("60/minute")
    async def get_report(code: str, request: Request) -> Any:
        """One bucket's report record."""
        cfg, result = _require_result()
        code = code.strip().upper()
        if not _CODE_RE.match(code):
            raise HTTPException(status_code=404, detail=f"Country '{code}' not in report scope.")
        report = result.get(code)
        if report is None:
            raise HTTPException(status_code=404, detail=f"Country '{code}' not in report scope.")
        return report_to_dict(report)

    @app.get("/summary")
    @limiter.limit("30/minute")
    async def summary(request: Request) -> Any:
        """Run parameters and the row waterfall."""
        cfg, result = _require_result()
        return {
            "year": cfg.year_prefix,
            "category": cfg.category,
            "code_length": cfg.code_length,
            "focus": cfg.label_for(cfg.focus_code),
            "bloc": cfg.label_for(cfg.bloc_code),
            "bloc_members": sorted(cfg.bloc_members),
            "counts": result.counts.to_dict(),
        }

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Entry point (development only)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    os.environ.setdefault("ENV", "dev")
    uvicorn.run(app, host="127.0.0.1", port=8000)
