"""Chart, formatting and HTML rendering for the dashboard."""

from .charts import ChartBoard, ChartSlot
from .html import render_dashboard_html, render_runs_html

__all__ = ["ChartBoard", "ChartSlot", "render_dashboard_html", "render_runs_html"]
