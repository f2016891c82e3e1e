"""HTTP front end: health/diagnostics, saved reports, and the SSE report job.

Usage:
    uvicorn chatdigest.web:create_app --factory
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, StreamingResponse

from chatdigest.config_validator import ConfigValidator
from chatdigest.context import RuntimeContext
from chatdigest.diagnostics import Diagnostics
from chatdigest.errors import ConfigError, ReportNotFound
from chatdigest.log_setup import correlation_scope, new_correlation_id
from chatdigest.progress import FanoutProgressSink, LoggingProgressSink, ProgressEvent, QueueProgressSink
from chatdigest.report_job import ReportRequest, run_report_job
from chatdigest.reports import list_reports, read_report
from chatdigest.settings import Settings

_LOG = logging.getLogger(__name__)

# Stages streamed to every client; the rest only in debug mode.
_CLIENT_STAGES = {"status", "report", "error", "done"}
# Detail stages that carry a user-facing message and are shown as status.
_STATUS_STAGES = {"summarize_retry", "route_fallback", "range_incomplete"}
_TERMINAL_STAGES = {"done", "error"}


def _sse(event: ProgressEvent, correlation_id: str) -> str:
    detail = dict(event.detail)
    message = detail.pop("message", "")
    if event.stage in _CLIENT_STAGES:
        event_type = event.stage
    elif event.stage in _STATUS_STAGES and message:
        event_type = "status"
    else:
        event_type = "debug"
        detail["stage"] = event.stage
    payload = {
        "type": event_type,
        "message": message,
        "correlationId": correlation_id,
        "timestamp": event.timestamp.isoformat(),
        **detail,
    }
    return f"data: {json.dumps(payload, default=str)}\n\n"


def _is_visible(event: ProgressEvent, debug: bool) -> bool:
    if debug or event.stage in _CLIENT_STAGES:
        return True
    return event.stage in _STATUS_STAGES and bool(event.message)


def create_app(
    settings: Settings | None = None,
    context: RuntimeContext | None = None,
    validator: ConfigValidator | None = None,
    **job_options: Any,
) -> FastAPI:
    """Build the FastAPI app.

    ``job_options`` are forwarded to :func:`run_report_job` (tests pass fake
    client and generator factories here).
    """
    settings = settings or Settings.from_env()
    context = context or RuntimeContext()
    validator = validator or ConfigValidator()
    diagnostics = Diagnostics(
        context.metrics,
        directories={"reports": settings.reports_dir, "logs": settings.logs_dir},
    )

    app = FastAPI(title="chatdigest")
    app.state.settings = settings
    app.state.context = context

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        correlation_id = new_correlation_id()
        request.state.correlation_id = correlation_id
        with correlation_scope(correlation_id):
            _LOG.info(
                "Incoming request %s %s (agent=%s)",
                request.method,
                request.url.path,
                request.headers.get("user-agent", "-"),
            )
            context.metrics.record_request()
            response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.get("/health")
    async def health(request: Request):
        config_health = validator.health_check()
        system = diagnostics.generate_report()
        status_code = 200 if config_health["status"] == "healthy" else 503
        return JSONResponse(
            status_code=status_code,
            content={
                "status": config_health["status"],
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "correlationId": request.state.correlation_id,
                "config": config_health,
                "system": system["health"],
            },
        )

    @app.get("/diagnostics")
    async def diagnostics_report(format: str = Query("json")):
        if format == "text":
            return PlainTextResponse(diagnostics.export("text"))
        return JSONResponse(json.loads(diagnostics.export("json")))

    @app.get("/config-report")
    async def config_report():
        return PlainTextResponse(validator.generate_config_report(), media_type="text/markdown")

    @app.get("/")
    async def index():
        page = Path.cwd() / "index.html"
        if not page.is_file():
            raise HTTPException(status_code=404, detail="index.html not found")
        return FileResponse(page)

    @app.get("/reports")
    async def reports():
        with context.metrics.timed("list-reports", service="filesystem"):
            return list_reports(settings.reports_dir)

    @app.get("/report/{filename}")
    async def report(filename: str, request: Request):
        try:
            with context.metrics.timed("get-report", service="filesystem"):
                markdown_text, html = read_report(settings.reports_dir, filename)
        except ReportNotFound:
            _LOG.warning("Report not found or inaccessible: %s", filename)
            context.metrics.record_failure()
            return JSONResponse(
                status_code=404,
                content={"error": "Report not found.", "correlationId": request.state.correlation_id},
            )
        return {"markdown": markdown_text, "html": html}

    @app.get("/generate-report")
    async def generate_report_stream(
        request: Request,
        chatId: list[str] = Query(default=[]),
        dateFrom: Optional[str] = None,
        timeFrom: str = "00:00",
        dateTo: Optional[str] = None,
        timeTo: str = "23:59",
        debug: bool = False,
    ):
        correlation_id = request.state.correlation_id
        queue_sink = QueueProgressSink()
        progress = FanoutProgressSink(queue_sink, LoggingProgressSink())

        try:
            report_request = ReportRequest.from_query(
                chatId, dateFrom or "", timeFrom, dateTo or "", timeTo, debug=debug
            )
        except ConfigError as exc:
            context.metrics.record_failure()
            progress.emit("error", message=type(exc).__name__, details=str(exc))
            report_request = None

        async def event_stream() -> AsyncIterator[str]:
            with correlation_scope(correlation_id):
                task = None
                if report_request is not None:
                    task = asyncio.create_task(
                        run_report_job(
                            report_request,
                            settings=settings,
                            context=context,
                            progress=progress,
                            validator=validator,
                            **job_options,
                        )
                    )
                try:
                    while True:
                        event = await queue_sink.queue.get()
                        if _is_visible(event, debug):
                            yield _sse(event, correlation_id)
                        if event.stage in _TERMINAL_STAGES:
                            break
                finally:
                    # Stream ended or client went away; stop any leftover work.
                    if task is not None and not task.done():
                        task.cancel()

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Correlation-ID": correlation_id,
            },
        )

    return app
