"""Tests for FastAPI endpoints."""
import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from metrics_dashboard.config import DashboardSettings
from metrics_dashboard.main import DashboardRuntime, create_app


class FakeBackend:
    """Routes requests the way the remote metrics API would."""

    def __init__(self, latest):
        self.latest = latest
        self.latest_status = 200
        self.runs = {
            "items": [
                {"run_id": "run-41", "model_name": "rf-v2.0", "precision": 0.79, "f1": 0.74},
                {"run_id": "run-42", "model_name": "rf-v2.1", "precision": 0.8123, "f1": 0.77},
            ],
            "total": 2,
            "page": 1,
            "limit": 10,
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/metrics/latest":
            if self.latest_status != 200:
                return httpx.Response(self.latest_status)
            # json.dumps keeps NaN, the way a lenient backend would send it
            return httpx.Response(200, content=json.dumps({"data": self.latest}).encode("utf-8"))
        if path == "/api/metrics":
            return httpx.Response(200, json=self.runs)
        if path == "/api/metrics/run-42":
            return httpx.Response(200, json=self.latest)
        if path == "/api/predict":
            body = json.loads(request.content)
            if not body:
                return httpx.Response(422, text="empty payload")
            if body.get("diverge"):
                return httpx.Response(200, text='{"prediction": NaN}')
            return httpx.Response(200, json={"prediction": 1, "echo": body})
        return httpx.Response(404, text="not found")


@pytest.fixture
def backend(sample_document):
    return FakeBackend(sample_document)


@pytest.fixture
def client(backend, make_transport):
    """Create a test client for the FastAPI app."""
    transport = make_transport(backend)
    settings = DashboardSettings(api_base_url="http://metrics.test", poll_interval=0)
    app = create_app(settings, transport=transport)
    with TestClient(app) as test_client:
        test_client.transport_log = transport.requests
        yield test_client


class TestAPI:
    """Test suite for API endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "backend": "http://metrics.test"}

    def test_refetch_updates_dashboard_state(self, client):
        response = client.post("/api/dashboard/refetch")

        assert response.status_code == 200
        data = response.json()
        assert data["loading"] is False
        assert data["error"] is None
        assert data["summary"]["precision"] == "81.23%"
        assert data["summary"]["f1"] == "0.77"
        assert data["summary"]["auc"] == "0.912"
        assert data["curves"]["roc"] == {"labels": [0.0, 1.0], "values": [0.0, 1.0]}
        assert data["run"]["run_id"] == "run-42"

    def test_failed_refetch_keeps_stale_values(self, client, backend):
        client.post("/api/dashboard/refetch")
        backend.latest_status = 503

        response = client.post("/api/dashboard/refetch")

        data = response.json()
        assert "503" in data["error"]
        assert data["summary"]["precision"] == "81.23%"

        page = client.get("/")
        assert page.status_code == 200
        assert "error-banner" in page.text
        assert "81.23%" in page.text

    def test_latest_request_uses_curve_flag(self, client):
        client.post("/api/dashboard/refetch")

        latest = [r for r in client.transport_log if r.url.path == "/api/metrics/latest"]
        assert latest
        assert latest[-1].url.params["include_curves"] == "true"

    def test_dashboard_page(self, client):
        client.post("/api/dashboard/refetch")

        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "81.23%" in response.text
        assert "rf-v2.1" not in response.text
        assert "Random Forest Classifier v2.1" in response.text

    def test_chart_png(self, client):
        response = client.get("/charts/roc.png")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")

    def test_unknown_chart(self, client):
        response = client.get("/charts/confusion.png")

        assert response.status_code == 404

    def test_runs_json(self, client):
        response = client.get("/api/runs", params={"page": 1, "limit": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [item["run_id"] for item in data["items"]] == ["run-41", "run-42"]
        assert data["error"] is None

    def test_runs_page(self, client):
        response = client.get("/runs")

        assert response.status_code == 200
        assert "runs-table" in response.text
        assert 'href="/runs/run-42"' in response.text

    def test_runs_invalid_page(self, client):
        response = client.get("/api/runs", params={"page": 0})

        assert response.status_code == 422

    def test_run_detail_page(self, client):
        response = client.get("/runs/run-42")

        assert response.status_code == 200
        assert "Run run-42" in response.text
        assert "81.23%" in response.text

    def test_run_detail_backend_error(self, client):
        response = client.get("/runs/missing")

        assert response.status_code == 502
        assert "HTTP 404" in response.json()["detail"]

    def test_predict_proxy(self, client):
        payload = {"features": [0.1, 0.2]}

        response = client.post("/api/predict", json=payload)

        assert response.status_code == 200
        assert response.json() == {"prediction": 1, "echo": payload}

    def test_predict_backend_error(self, client):
        response = client.post("/api/predict", json={})

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert "HTTP 422" in detail
        assert "empty payload" in detail

    def test_predict_non_finite_result(self, client):
        response = client.post("/api/predict", json={"diverge": True})

        assert response.status_code == 502
        assert "unserialisable" in response.json()["detail"]

    def test_non_finite_metrics_keep_dashboard_usable(self, client, backend):
        backend.latest = {"precision": 0.8, "correct_predictions": float("nan")}

        data = client.post("/api/dashboard/refetch").json()

        assert data["error"] is None
        assert data["summary"]["precision"] == "80.00%"

    def test_runs_with_non_finite_total(self, client, backend):
        backend.runs = {"items": [{"run_id": "run-41"}], "total": "Infinity"}

        response = client.get("/api/runs")

        assert response.status_code == 200
        assert response.json()["total"] == 1


def test_unreachable_backend_reports_error(make_transport, sample_document):
    def _refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    settings = DashboardSettings(api_base_url="http://metrics.test", poll_interval=0)
    app = create_app(settings, transport=make_transport(_refuse))

    with TestClient(app) as client:
        state = client.post("/api/dashboard/refetch").json()
        run_page = client.get("/runs/run-42")

    assert "connection refused" in state["error"]
    assert state["summary"]["precision"] == "--%"
    assert run_page.status_code == 502
    assert "unreachable" in run_page.json()["detail"]


def test_concurrent_run_pages_stay_separate(make_transport):
    async def scenario():
        release_first_page = asyncio.Event()

        async def handler(request):
            page = int(request.url.params["page"])
            if page == 1:
                await release_first_page.wait()
            return httpx.Response(
                200, json={"items": [{"run_id": f"p{page}"}], "total": 2, "page": page, "limit": 1}
            )

        settings = DashboardSettings(api_base_url="http://metrics.test", poll_interval=0)
        runtime = DashboardRuntime(settings, transport=make_transport(handler))
        try:
            first = asyncio.create_task(runtime.load_runs(page=1, limit=1))
            await asyncio.sleep(0)
            second = asyncio.create_task(runtime.load_runs(page=2, limit=1))
            await asyncio.sleep(0.01)
            release_first_page.set()
            return await first, await second
        finally:
            await runtime.close()

    (first_page, first_error), (second_page, second_error) = asyncio.run(scenario())

    assert first_error is None and second_error is None
    assert (first_page.page, [item["run_id"] for item in first_page.items]) == (1, ["p1"])
    assert (second_page.page, [item["run_id"] for item in second_page.items]) == (2, ["p2"])
