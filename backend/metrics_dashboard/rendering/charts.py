"""Matplotlib chart rendering for ROC and PR curves."""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Any, Dict, Optional

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402

from ..models import CurveSeries  # noqa: E402

logger = logging.getLogger(__name__)


class ChartSlot:
    """Owns at most one figure; drawing again destroys the previous one."""

    def __init__(
        self,
        name: str,
        title: str,
        xlabel: str,
        ylabel: str,
        *,
        series_label: str,
        color: str,
        fill: bool = False,
        diagonal: bool = False,
    ) -> None:
        self.name = name
        self.title = title
        self.xlabel = xlabel
        self.ylabel = ylabel
        self.series_label = series_label
        self.color = color
        self.fill = fill
        self.diagonal = diagonal
        self.figure: Optional[Figure] = None
        self.png: Optional[bytes] = None
        self.draw_count = 0

    def draw(self, series: CurveSeries) -> bytes:
        self.destroy()

        fig, ax = plt.subplots(figsize=(6, 4.5))
        ax.plot(series.labels, series.values, color=self.color, linewidth=2, label=self.series_label)
        if self.fill:
            ax.fill_between(series.labels, series.values, color=self.color, alpha=0.2)
        if self.diagonal:
            ax.plot([0, 1], [0, 1], color="#aaaaaa", linestyle="--", linewidth=1, label="Random classifier")

        ax.set_title(self.title, fontsize=13, fontweight="bold")
        ax.set_xlabel(self.xlabel)
        ax.set_ylabel(self.ylabel)
        ax.set_xlim([0, 1])
        ax.set_ylim([0, 1])
        ax.grid(True, alpha=0.3)
        ax.legend(loc="lower center", bbox_to_anchor=(0.5, -0.32), ncol=2, frameon=False)
        fig.tight_layout()

        buffer = BytesIO()
        fig.savefig(buffer, format="png", dpi=100, bbox_inches="tight")
        self.figure = fig
        self.png = buffer.getvalue()
        self.draw_count += 1
        logger.debug("Redrew %s chart with %d points", self.name, len(series.labels))
        return self.png

    def destroy(self) -> None:
        if self.figure is not None:
            plt.close(self.figure)
            self.figure = None


class ChartBoard:
    """The ROC and PR charts of one dashboard, closed together."""

    def __init__(self) -> None:
        self.slots: Dict[str, ChartSlot] = {
            "roc": ChartSlot(
                "roc",
                "ROC curve",
                "False positive rate (FPR)",
                "True positive rate (TPR)",
                series_label="Model ROC curve",
                color="#26a69a",
                diagonal=True,
            ),
            "pr": ChartSlot(
                "pr",
                "Precision-Recall curve",
                "Recall",
                "Precision",
                series_label="Precision-Recall curve",
                color="#ff7043",
                fill=True,
            ),
        }

    def __enter__(self) -> "ChartBoard":
        return self

    def __exit__(self, *_exc_info: Any) -> None:
        self.close()

    def __getitem__(self, name: str) -> ChartSlot:
        return self.slots[name]

    def __contains__(self, name: object) -> bool:
        return name in self.slots

    def draw(self, name: str, series: CurveSeries) -> bytes:
        return self.slots[name].draw(series)

    def close(self) -> None:
        for slot in self.slots.values():
            slot.destroy()
