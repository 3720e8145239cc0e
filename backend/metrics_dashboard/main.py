# -*- coding: utf-8 -*-
"""FastAPI application serving the metrics dashboard."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Tuple

import httpx
from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from . import __version__
from .api.client import MetricsAPIClient, MetricsAPIError
from .config import DashboardSettings, load_settings
from .feeds import MetricsFeed, MetricsListFeed
from .models import PagedMetricsList
from .parsers import unwrap_payload
from .rendering.charts import ChartBoard
from .rendering.html import render_dashboard_html, render_runs_html
from .utils.logging import configure_logging
from .views import DashboardView

logger = logging.getLogger(__name__)


class DashboardRuntime:
    """Everything the app creates on startup and tears down on shutdown."""

    def __init__(
        self,
        settings: DashboardSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.client = MetricsAPIClient(
            settings.api_base_url,
            timeout=settings.request_timeout,
            transport=transport,
        )
        self.charts = ChartBoard()
        self.view = DashboardView(self.charts)
        self.feed = MetricsFeed(
            self.client,
            include_curves=settings.include_curves,
            poll_interval=settings.poll_interval,
        )
        self.feed.subscribe(self.view.apply_document)
        self.runs = MetricsListFeed(self.client, limit=settings.page_size)
        # requests share one list feed, so a query and its refetch run as a unit
        self._runs_lock = asyncio.Lock()

    def start(self) -> None:
        self.feed.start()

    async def close(self) -> None:
        await self.feed.stop()
        await self.runs.stop()
        self.charts.close()
        await self.client.aclose()

    def dashboard_state(self) -> Dict[str, Any]:
        state = self.view.snapshot()
        state["loading"] = self.feed.loading
        state["error"] = _error_text(self.feed.error)
        return state

    async def load_runs(
        self, *, page: int = 1, limit: Optional[int] = None, include_curves: bool = False
    ) -> Tuple[PagedMetricsList, Optional[Exception]]:
        """Fetch one page of the run list and return it with the fetch error."""
        async with self._runs_lock:
            self.runs.set_query(
                limit=limit or self.settings.page_size,
                page=page,
                include_curves=include_curves,
            )
            await self.runs.refetch()
            return self.runs.data, self.runs.error


def _error_text(error: Optional[Exception]) -> Optional[str]:
    if error is None:
        return None
    return str(error) or type(error).__name__


def _backend_failure(exc: Exception) -> HTTPException:
    if isinstance(exc, MetricsAPIError):
        detail = f"Metrics API error: {exc}"
    else:
        detail = f"Metrics API unreachable: {_error_text(exc)}"
    return HTTPException(status_code=502, detail=detail)


def _runtime(request: Request) -> DashboardRuntime:
    return request.app.state.runtime


def create_app(
    settings: Optional[DashboardSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime = DashboardRuntime(settings, transport=transport)
        app.state.runtime = runtime
        runtime.start()
        logger.info("Dashboard reading metrics from %s", settings.api_base_url)
        try:
            yield
        finally:
            await runtime.close()

    app = FastAPI(title="Metrics Dashboard", version=__version__, lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", "backend": _runtime(request).settings.api_base_url}

    @app.get("/", response_class=HTMLResponse)
    async def dashboard(request: Request):
        runtime = _runtime(request)
        return render_dashboard_html(
            runtime.view.snapshot(),
            runtime.charts,
            error=_error_text(runtime.feed.error),
            loading=runtime.feed.loading,
            refresh_seconds=runtime.feed.poll_interval,
        )

    @app.get("/api/dashboard")
    async def dashboard_state(request: Request):
        return _runtime(request).dashboard_state()

    @app.post("/api/dashboard/refetch")
    async def refetch_dashboard(request: Request):
        runtime = _runtime(request)
        await runtime.feed.refetch()
        return runtime.dashboard_state()

    @app.get("/charts/{name}.png")
    async def chart_image(name: str, request: Request):
        charts = _runtime(request).charts
        if name not in charts or charts[name].png is None:
            raise HTTPException(status_code=404, detail=f"Unknown chart: {name}")
        return Response(
            content=charts[name].png,
            media_type="image/png",
            headers={"Cache-Control": "no-store"},
        )

    @app.get("/api/runs")
    async def list_runs(
        request: Request,
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1, le=500),
        include_curves: bool = False,
    ):
        data, error = await _runtime(request).load_runs(
            page=page, limit=limit, include_curves=include_curves
        )
        payload = data.model_dump()
        payload["error"] = _error_text(error)
        return payload

    @app.get("/runs", response_class=HTMLResponse)
    async def runs_page(
        request: Request,
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1, le=500),
    ):
        data, error = await _runtime(request).load_runs(page=page, limit=limit)
        return render_runs_html(data, error=_error_text(error))

    @app.get("/runs/{run_id}", response_class=HTMLResponse)
    async def run_page(run_id: str, request: Request):
        runtime = _runtime(request)
        try:
            document = await runtime.client.get_metric_by_id(
                run_id, include_curves=runtime.settings.include_curves
            )
        except (MetricsAPIError, httpx.TransportError) as exc:
            logger.warning("Loading run %s failed: %s", run_id, exc)
            raise _backend_failure(exc) from exc

        with ChartBoard() as charts:
            view = DashboardView(charts)
            view.apply_document(unwrap_payload(document))
            return render_dashboard_html(view.snapshot(), charts, title=f"Run {run_id}")

    @app.post("/api/predict")
    async def predict(request: Request, payload: Any = Body(...)):
        runtime = _runtime(request)
        try:
            result = await runtime.client.predict(payload)
        except (MetricsAPIError, httpx.TransportError) as exc:
            logger.warning("Prediction request failed: %s", exc)
            raise _backend_failure(exc) from exc
        if isinstance(result, str):
            return PlainTextResponse(result)
        try:
            return JSONResponse(result)
        except ValueError as exc:
            # NaN and infinities parse but cannot be sent back as JSON
            logger.warning("Prediction result is not valid JSON: %s", exc)
            raise HTTPException(
                status_code=502, detail=f"Metrics API returned an unserialisable result: {exc}"
            ) from exc

    return app


app = create_app()
