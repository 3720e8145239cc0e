"""Canonical parser for metrics documents returned by the metrics API.

The backend has shipped several spellings for the same fields (English and
Spanish keys, ``curves`` vs ``Curvas``, ``labels/values`` vs ``fpr/tpr``).
Every accepted spelling is listed here, in priority order, and nowhere else.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..models import ConfusionCounts, CurveSeries, EvaluationRun, PagedMetricsList
from .base import BaseParser

logger = logging.getLogger(__name__)

KeyPath = Tuple[str, ...]

_CURVE_ROOTS: Tuple[KeyPath, ...] = (("Curvas",), ("curves",), ())


@dataclass(frozen=True)
class CurveLayout:
    """Where one curve variant stores its x and y arrays."""

    container: KeyPath
    label_key: str
    value_key: str

    @property
    def tag(self) -> str:
        return ".".join(self.container + (f"{{{self.label_key},{self.value_key}}}",))


def _curve_layouts(name: str, alt_name: str, label_key: str, value_key: str) -> Tuple[CurveLayout, ...]:
    layouts: List[CurveLayout] = []
    for root in _CURVE_ROOTS:
        layouts.append(CurveLayout(root + (name,), "labels", "values"))
    for root in _CURVE_ROOTS:
        layouts.append(CurveLayout(root + (alt_name,), label_key, value_key))
    for root in _CURVE_ROOTS:
        layouts.append(CurveLayout(root + (name,), label_key, value_key))
    return tuple(layouts)


ROC_LAYOUTS = _curve_layouts("roc", "roc_curve", "fpr", "tpr")
PR_LAYOUTS = _curve_layouts("pr", "pr_curve", "recall", "precision")

_METRIC_CONTAINERS: Tuple[KeyPath, ...] = ((), ("metrics",), ("Metricas",), ("Métricas",))


def _candidates(*keys: str, extra: Sequence[KeyPath] = ()) -> Tuple[KeyPath, ...]:
    paths: List[KeyPath] = []
    for container in _METRIC_CONTAINERS:
        for key in keys:
            paths.append(container + (key,))
    paths.extend(extra)
    return tuple(paths)


SCALAR_PATHS: Dict[str, Tuple[KeyPath, ...]] = {
    "precision": _candidates("precision", "Precision", "Precisión", "precision_score"),
    "recall": _candidates("recall", "Recall", "Sensibilidad", "recall_score"),
    "accuracy": _candidates("accuracy", "Accuracy", "Exactitud", "accuracy_score"),
    "f1": _candidates("f1", "F1", "f1_score", "f1score", "F1-Score"),
    "auc": _candidates(
        "auc",
        "AUC",
        "roc_auc",
        "auc_roc",
        "AUC-ROC",
        extra=[root + (curve, "auc") for root in _CURVE_ROOTS for curve in ("roc", "roc_curve")],
    ),
    "average_precision": _candidates(
        "average_precision",
        "avg_precision",
        "Average Precision",
        "ap",
        "AP",
        extra=[
            root + (curve, key)
            for root in _CURVE_ROOTS
            for curve in ("pr", "pr_curve")
            for key in ("average_precision", "ap")
        ],
    ),
}

CORRECT_PREDICTION_PATHS = _candidates(
    "correct_predictions", "Predicciones Correctas", "predicciones_correctas"
)

CONFUSION_PATHS = _candidates(
    "confusion_matrix", "confusionMatrix", "Matriz de Confusión", "matriz_confusion"
)

_CONFUSION_ALIASES: Dict[str, Tuple[str, ...]] = {
    "tp": ("tp", "true_positive", "true_positives", "vp"),
    "fp": ("fp", "false_positive", "false_positives"),
    "fn": ("fn", "false_negative", "false_negatives"),
    "tn": ("tn", "true_negative", "true_negatives", "vn"),
}

RUN_ID_PATHS: Tuple[KeyPath, ...] = (("run_id",), ("id",), ("runId",))
MODEL_NAME_PATHS: Tuple[KeyPath, ...] = (("model_name",), ("model",), ("Modelo",), ("modelo",))
CREATED_AT_PATHS: Tuple[KeyPath, ...] = (("created_at",), ("timestamp",), ("fecha",))


def _dig(source: Any, path: KeyPath) -> Any:
    current = source
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def _path_tag(path: KeyPath) -> str:
    return ".".join(path)


def coerce_number(value: Any) -> Optional[float]:
    """Convert numbers, numeric strings and percent strings into ``float``.

    NaN and infinities count as missing values.
    """

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            numeric = float(value)
        except OverflowError:
            return None
        return numeric if math.isfinite(numeric) else None

    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return None
        is_percent = cleaned.endswith("%")
        candidate = cleaned.rstrip("% ").replace(",", ".")
        try:
            numeric = float(candidate)
        except ValueError:
            return None
        if not math.isfinite(numeric):
            return None
        return numeric / 100 if is_percent else numeric

    return None


def _coerce_int(value: Any) -> Optional[int]:
    numeric = coerce_number(value)
    if numeric is None:
        return None
    return int(numeric)


def _coerce_sequence(value: Any) -> Optional[List[float]]:
    if not isinstance(value, (list, tuple)):
        return None
    points: List[float] = []
    for item in value:
        numeric = coerce_number(item)
        if numeric is None:
            return None
        points.append(numeric)
    return points


class MetricsDocumentParser(BaseParser[EvaluationRun]):
    """Turn a raw metrics document into an :class:`EvaluationRun`."""

    def parse(self, source: Any) -> EvaluationRun:
        if not isinstance(source, dict):
            logger.warning("Metrics document is not an object (got %s)", type(source).__name__)
            return EvaluationRun()

        sources: Dict[str, str] = {}
        values: Dict[str, Any] = {}

        for field, paths in SCALAR_PATHS.items():
            found = self._first_number(source, paths)
            if found is not None:
                values[field], sources[field] = found

        for field, layouts in (("roc", ROC_LAYOUTS), ("pr", PR_LAYOUTS)):
            curve = self._first_curve(source, field, layouts)
            if curve is not None:
                values[field], sources[field] = curve

        confusion = self._confusion(source)
        if confusion is not None:
            values["confusion"], sources["confusion"] = confusion

        correct = self._first_number(source, CORRECT_PREDICTION_PATHS)
        if correct is not None:
            values["correct_predictions"] = int(correct[0])
            sources["correct_predictions"] = correct[1]
        elif "confusion" in values:
            values["correct_predictions"] = values["confusion"].correct
            sources["correct_predictions"] = sources["confusion"]

        for field, paths in (
            ("run_id", RUN_ID_PATHS),
            ("model_name", MODEL_NAME_PATHS),
            ("created_at", CREATED_AT_PATHS),
        ):
            text = self._first_text(source, paths)
            if text is not None:
                values[field], sources[field] = text

        logger.debug("Parsed metrics document fields: %s", sources)
        return EvaluationRun(sources=sources, **values)

    @staticmethod
    def _first_number(source: Dict[str, Any], paths: Sequence[KeyPath]) -> Optional[Tuple[float, str]]:
        for path in paths:
            raw_value = _dig(source, path)
            if raw_value is None:
                continue
            numeric = coerce_number(raw_value)
            if numeric is None:
                logger.debug("Skipping non-numeric value at %s: %r", _path_tag(path), raw_value)
                continue
            return numeric, _path_tag(path)
        return None

    @staticmethod
    def _first_text(source: Dict[str, Any], paths: Sequence[KeyPath]) -> Optional[Tuple[str, str]]:
        for path in paths:
            raw_value = _dig(source, path)
            if raw_value is None or isinstance(raw_value, (dict, list)):
                continue
            text = str(raw_value).strip()
            if text:
                return text, _path_tag(path)
        return None

    @staticmethod
    def _first_curve(
        source: Dict[str, Any], name: str, layouts: Sequence[CurveLayout]
    ) -> Optional[Tuple[CurveSeries, str]]:
        for layout in layouts:
            container = _dig(source, layout.container)
            if not isinstance(container, dict):
                continue
            raw_labels = container.get(layout.label_key)
            raw_values = container.get(layout.value_key)
            if raw_labels is None or raw_values is None:
                continue

            labels = _coerce_sequence(raw_labels)
            values = _coerce_sequence(raw_values)
            if labels is None or values is None:
                logger.warning("Ignoring %s curve at %s: non-numeric points", name, layout.tag)
                return None
            try:
                return CurveSeries(labels=labels, values=values), layout.tag
            except ValidationError:
                logger.warning(
                    "Ignoring %s curve at %s: %d labels vs %d values",
                    name,
                    layout.tag,
                    len(labels),
                    len(values),
                )
                return None
        return None

    @staticmethod
    def _confusion(source: Dict[str, Any]) -> Optional[Tuple[ConfusionCounts, str]]:
        for path in CONFUSION_PATHS:
            raw_value = _dig(source, path)
            if raw_value is None:
                continue
            counts = _confusion_counts(raw_value)
            if counts is not None:
                return counts, _path_tag(path)
            logger.debug("Unrecognised confusion matrix shape at %s", _path_tag(path))
        return None


def _confusion_counts(raw_value: Any) -> Optional[ConfusionCounts]:
    if isinstance(raw_value, dict):
        lowered = {str(key).strip().lower(): value for key, value in raw_value.items()}
        counts: Dict[str, int] = {}
        for target, aliases in _CONFUSION_ALIASES.items():
            for alias in aliases:
                numeric = _coerce_int(lowered.get(alias))
                if numeric is not None:
                    counts[target] = numeric
                    break
        if len(counts) == len(_CONFUSION_ALIASES):
            return ConfusionCounts(**counts)
        return None

    # scikit-learn layout: [[tn, fp], [fn, tp]]
    if isinstance(raw_value, (list, tuple)) and len(raw_value) == 2:
        rows = [_coerce_sequence(row) for row in raw_value]
        if all(row is not None and len(row) == 2 for row in rows):
            (tn, fp), (fn, tp) = rows
            return ConfusionCounts(tp=int(tp), fp=int(fp), fn=int(fn), tn=int(tn))
    return None


def unwrap_payload(response: Any) -> Any:
    """Return ``response["data"]`` when the backend wrapped the document."""
    if isinstance(response, dict) and "data" in response:
        return response["data"]
    return response


class PagedListParser(BaseParser[PagedMetricsList]):
    """Parse the paginated run list, tolerating a bare JSON array."""

    def __init__(self, page: int = 1, limit: int = 10) -> None:
        self.page = page
        self.limit = limit

    def parse(self, source: Any) -> PagedMetricsList:
        if isinstance(source, list):
            items = [item for item in source if isinstance(item, dict)]
            return PagedMetricsList(items=items, total=len(items), page=self.page, limit=self.limit)

        if not isinstance(source, dict) or not isinstance(source.get("items"), list):
            logger.warning("Run list response has no items array; showing an empty page")
            return PagedMetricsList(page=self.page, limit=self.limit)

        items = [item for item in source["items"] if isinstance(item, dict)]
        total = _coerce_int(source.get("total"))
        page = _coerce_int(source.get("page"))
        limit = _coerce_int(source.get("limit"))
        return PagedMetricsList(
            items=items,
            total=total if total is not None else len(items),
            page=page if page is not None else self.page,
            limit=limit if limit is not None else self.limit,
        )


_DOCUMENT_PARSER = MetricsDocumentParser()


def parse_metrics_document(source: Any) -> EvaluationRun:
    """Parse one metrics document with the shared parser."""
    return _DOCUMENT_PARSER.parse(source)
