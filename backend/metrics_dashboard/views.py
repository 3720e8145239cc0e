"""Display state of a dashboard fed by metrics documents."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .models import ConfusionCounts, CurveSeries, EvaluationRun
from .parsers import parse_metrics_document
from .rendering.charts import ChartBoard
from .rendering.formatting import (
    PERCENT_PLACEHOLDER,
    VALUE_PLACEHOLDER,
    format_count,
    format_decimal,
    format_percent,
)

logger = logging.getLogger(__name__)

_GRID = [0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1]

# Shown until the first document with curve data arrives.
DEFAULT_ROC = CurveSeries(
    labels=_GRID,
    values=[0, 0.45, 0.63, 0.75, 0.82, 0.88, 0.91, 0.95, 0.97, 0.99, 1],
)
DEFAULT_PR = CurveSeries(
    labels=_GRID,
    values=[1, 0.97, 0.95, 0.92, 0.89, 0.87, 0.83, 0.79, 0.74, 0.68, 0.6],
)

SCALAR_FORMATTERS: Dict[str, Callable[[Any], Optional[str]]] = {
    "precision": format_percent,
    "recall": format_percent,
    "accuracy": format_percent,
    "f1": lambda value: format_decimal(value, 2),
    "auc": lambda value: format_decimal(value, 3),
    "average_precision": lambda value: format_decimal(value, 3),
    "correct_predictions": format_count,
}

PLACEHOLDERS: Dict[str, str] = {
    "precision": PERCENT_PLACEHOLDER,
    "recall": PERCENT_PLACEHOLDER,
    "accuracy": PERCENT_PLACEHOLDER,
    "f1": VALUE_PLACEHOLDER,
    "auc": VALUE_PLACEHOLDER,
    "average_precision": VALUE_PLACEHOLDER,
    "correct_predictions": VALUE_PLACEHOLDER,
}


class DashboardView:
    """Formatted values and curves currently on screen.

    Fields missing from a new document keep whatever was shown before, so a
    partial or malformed document never blanks the dashboard.
    """

    def __init__(self, charts: Optional[ChartBoard] = None) -> None:
        self.display: Dict[str, str] = dict(PLACEHOLDERS)
        self.curves: Dict[str, CurveSeries] = {"roc": DEFAULT_ROC, "pr": DEFAULT_PR}
        self.confusion: Optional[ConfusionCounts] = None
        self.run_id: Optional[str] = None
        self.model_name: Optional[str] = None
        self.created_at: Optional[str] = None
        self.revision = 0
        self.charts = charts
        if charts is not None:
            for name, series in self.curves.items():
                charts.draw(name, series)

    def apply(self, run: EvaluationRun) -> None:
        for field, formatter in SCALAR_FORMATTERS.items():
            text = formatter(getattr(run, field))
            if text is not None:
                self.display[field] = text

        for name in ("roc", "pr"):
            series = getattr(run, name)
            if series is None:
                continue
            self.curves[name] = series
            if self.charts is not None:
                self.charts.draw(name, series)

        if run.confusion is not None:
            self.confusion = run.confusion
        for field in ("run_id", "model_name", "created_at"):
            value = getattr(run, field)
            if value is not None:
                setattr(self, field, value)

        self.revision += 1
        missing = sorted(set(PLACEHOLDERS) - set(run.sources))
        if missing:
            logger.debug("Document revision %d left unchanged: %s", self.revision, ", ".join(missing))

    def apply_document(self, document: Any) -> EvaluationRun:
        run = parse_metrics_document(document)
        self.apply(run)
        return run

    def snapshot(self) -> Dict[str, Any]:
        return {
            "revision": self.revision,
            "run": {
                "run_id": self.run_id,
                "model_name": self.model_name,
                "created_at": self.created_at,
            },
            "summary": dict(self.display),
            "confusion": self.confusion.model_dump() if self.confusion is not None else None,
            "curves": {name: series.model_dump() for name, series in self.curves.items()},
        }
