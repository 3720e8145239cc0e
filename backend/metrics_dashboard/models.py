"""Pydantic models for parsed metrics documents."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class CurveSeries(BaseModel):
    """Chart coordinates: ``labels`` on the x axis, ``values`` on the y axis."""

    labels: List[float]
    values: List[float]

    @model_validator(mode="after")
    def _check_lengths(self) -> "CurveSeries":
        if len(self.labels) != len(self.values):
            raise ValueError(
                f"curve labels and values differ in length ({len(self.labels)} != {len(self.values)})"
            )
        return self

    def points(self) -> List[tuple]:
        return list(zip(self.labels, self.values))


class ConfusionCounts(BaseModel):
    """Binary confusion matrix counts."""

    tp: int
    fp: int
    fn: int
    tn: int

    @property
    def correct(self) -> int:
        return self.tp + self.tn


class EvaluationRun(BaseModel):
    """Typed view of one loosely-structured metrics document."""

    run_id: Optional[str] = None
    model_name: Optional[str] = None
    created_at: Optional[str] = None
    precision: Optional[float] = None
    recall: Optional[float] = None
    accuracy: Optional[float] = None
    f1: Optional[float] = None
    auc: Optional[float] = None
    average_precision: Optional[float] = None
    roc: Optional[CurveSeries] = None
    pr: Optional[CurveSeries] = None
    confusion: Optional[ConfusionCounts] = None
    correct_predictions: Optional[int] = None
    # field name -> dotted key path that supplied it
    sources: Dict[str, str] = Field(default_factory=dict)


class PagedMetricsList(BaseModel):
    """One page of the run list."""

    items: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
