"""Async client for the remote metrics API."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

_JSON_HEADERS = {"Content-Type": "application/json"}


class MetricsAPIError(Exception):
    """Raised when the metrics API answers outside the 2xx range."""

    def __init__(self, status_code: int, reason: str, body: Optional[str] = None) -> None:
        message = f"HTTP {status_code} - {reason}"
        if body is not None:
            message = f"{message}: {body}"
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


def _flag(value: bool) -> str:
    return "true" if value else "false"


def parse_body(text: str) -> Any:
    """Return the JSON-decoded body, or the raw text when it is not JSON."""
    try:
        return json.loads(text)
    except ValueError:
        return text


class MetricsAPIClient:
    """Thin wrapper around the four metrics API endpoints.

    Every call is a single round trip: no retries and no backoff. Transport
    errors raised by httpx propagate unchanged.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=_JSON_HEADERS,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "MetricsAPIClient":
        return self

    async def __aexit__(self, *_exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Dict[str, str]) -> Any:
        logger.debug("GET %s%s params=%s", self.base_url, path, params)
        response = await self._client.get(path, params=params)
        if not response.is_success:
            logger.warning("GET %s failed with HTTP %s", path, response.status_code)
            raise MetricsAPIError(response.status_code, response.reason_phrase)
        return parse_body(response.text)

    async def get_latest_metrics(self, *, include_curves: bool = True) -> Any:
        return await self._get(
            "/api/metrics/latest",
            {"include_curves": _flag(include_curves)},
        )

    async def list_metrics(
        self,
        *,
        limit: int = 10,
        page: int = 1,
        include_curves: bool = False,
    ) -> Any:
        return await self._get(
            "/api/metrics",
            {
                "limit": str(limit),
                "page": str(page),
                "include_curves": _flag(include_curves),
            },
        )

    async def get_metric_by_id(self, run_id: str, *, include_curves: bool = True) -> Any:
        # Escape "/" as well so the identifier stays one path segment.
        path = f"/api/metrics/{quote(str(run_id), safe='')}"
        return await self._get(path, {"include_curves": _flag(include_curves)})

    async def predict(self, payload: Any) -> Any:
        logger.debug("POST %s/api/predict", self.base_url)
        response = await self._client.post("/api/predict", content=json.dumps(payload))
        if not response.is_success:
            logger.warning("Predict request failed with HTTP %s", response.status_code)
            raise MetricsAPIError(response.status_code, response.reason_phrase, response.text)
        return parse_body(response.text)
