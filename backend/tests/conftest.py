"""Pytest configuration and fixtures."""
import json
import sys
from pathlib import Path

import httpx
import pytest

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))


@pytest.fixture
def sample_document():
    """Metrics document in the plain English layout."""
    return {
        "run_id": "run-42",
        "model_name": "Random Forest Classifier v2.1",
        "precision": 0.8123,
        "recall": 0.75,
        "accuracy": 0.9,
        "f1": 0.77,
        "auc": 0.912,
        "average_precision": 0.85,
        "curves": {"roc": {"labels": [0, 1], "values": [0, 1]}},
    }


@pytest.fixture
def spanish_document():
    """Metrics document in the Spanish layout with fpr/tpr arrays."""
    return {
        "Precisión": "81.5%",
        "Sensibilidad": 0.7,
        "Exactitud": 0.88,
        "F1-Score": 0.74,
        "Matriz de Confusión": [[50, 5], [8, 37]],
        "Curvas": {
            "roc_curve": {"fpr": [0.0, 0.2, 1.0], "tpr": [0.0, 0.8, 1.0], "auc": 0.87},
            "pr_curve": {"recall": [0.0, 0.5, 1.0], "precision": [1.0, 0.9, 0.6]},
        },
    }


@pytest.fixture
def make_transport():
    """Build an ``httpx.MockTransport`` that records every request."""

    def _factory(handler):
        requests = []

        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        transport = httpx.MockTransport(_record)
        transport.requests = requests
        return transport

    return _factory


@pytest.fixture
def json_response():
    def _build(payload, status_code=200):
        return httpx.Response(status_code, content=json.dumps(payload).encode("utf-8"))

    return _build
