"""HTML pages for the dashboard and the run list."""

from __future__ import annotations

import base64
from html import escape
from string import Template
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pandas as pd

from ..models import PagedMetricsList
from ..parsers import parse_metrics_document
from .charts import ChartBoard
from .formatting import VALUE_PLACEHOLDER, format_decimal, format_percent

_STYLE = """
body { font-family: system-ui, sans-serif; margin: 0; background: #f4f6f8; color: #263238; }
.dashboard-container { max-width: 1100px; margin: 0 auto; padding: 24px; }
.header { display: flex; justify-content: space-between; align-items: center; }
.header a.btn { background: #26a69a; color: #fff; padding: 8px 14px; border-radius: 6px; text-decoration: none; }
.error-banner { background: #ffebee; color: #b71c1c; border: 1px solid #ef9a9a; padding: 10px 14px; border-radius: 6px; }
.metrics, .summary-grid { display: grid; grid-template-columns: repeat(4, 1fr); gap: 16px; }
.summary-grid { grid-template-columns: repeat(3, 1fr); }
.metric-card, .summary-item, .chart-card { background: #fff; border-radius: 8px; padding: 16px; box-shadow: 0 1px 3px rgba(0,0,0,.1); }
.metric-value, .summary-value { font-size: 1.8rem; font-weight: 700; margin: 8px 0; }
.charts { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; margin: 24px 0; }
.chart-card img { width: 100%; }
.matrix-grid { display: grid; grid-template-columns: 1fr 1fr; gap: 8px; max-width: 360px; }
.matrix-cell { background: #fff; border-radius: 6px; padding: 12px; text-align: center; }
.runs-table { width: 100%; border-collapse: collapse; background: #fff; }
.runs-table th, .runs-table td { padding: 8px; border-bottom: 1px solid #eceff1; text-align: left; }
.muted { color: #78909c; }
"""

_DASHBOARD_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
$refresh_meta
<title>$title</title>
<style>$style</style>
</head>
<body>
<div class="dashboard-container">
  <header class="header">
    <div>
      <h1>$title</h1>
      <p>Performance analysis of the evaluated model</p>
    </div>
    <div class="header-right">
      <a class="btn" href="/runs">View history</a>
      <div class="current-model">
        <span class="muted">Current model</span>
        <p>$model_name</p>
        <small class="muted">$run_line</small>
      </div>
    </div>
  </header>
  $error_banner
  <section class="metrics">
    <div class="metric-card"><h3>Precision</h3><p class="metric-value" id="precision">$precision</p><small>Share of positive predictions that are correct</small></div>
    <div class="metric-card"><h3>Recall</h3><p class="metric-value" id="recall">$recall</p><small>Share of positive cases identified</small></div>
    <div class="metric-card"><h3>Accuracy</h3><p class="metric-value" id="accuracy">$accuracy</p><small>Share of all predictions that are correct</small></div>
    <div class="metric-card"><h3>F1-Score</h3><p class="metric-value" id="f1score">$f1</p><small>Harmonic mean of precision and recall</small></div>
  </section>
  <section class="confusion-matrix">
    <h2>Confusion matrix</h2>
    <div class="matrix-grid" id="confusionMatrix">$confusion_cells</div>
  </section>
  <section class="charts">
    <div class="chart-card"><h3>ROC curve</h3>$roc_image</div>
    <div class="chart-card"><h3>Precision-Recall curve</h3>$pr_image</div>
  </section>
  <section class="summary">
    <h2>Performance summary</h2>
    <div class="summary-grid">
      <div class="summary-item"><h3>AUC-ROC</h3><p class="summary-value" id="aucroc">$auc</p><small>Area under the ROC curve</small></div>
      <div class="summary-item"><h3>Average Precision</h3><p class="summary-value" id="avgPrecision">$average_precision</p><small>Area under the PR curve</small></div>
      <div class="summary-item"><h3>Correct predictions</h3><p class="summary-value" id="predictions">$correct_predictions</p><small>Total hits</small></div>
    </div>
  </section>
  <p class="muted">$status_line</p>
</div>
</body>
</html>
""")

_RUNS_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Evaluation runs</title>
<style>$style</style>
</head>
<body>
<div class="dashboard-container">
  <header class="header">
    <h1>Evaluation runs</h1>
    <a class="btn" href="/">Back to dashboard</a>
  </header>
  $error_banner
  $table
  <p class="muted">Page $page of $pages &middot; $total runs $pager</p>
</div>
</body>
</html>
""")

RUN_TABLE_COLUMNS = ["Run", "Model", "Created", "Precision", "Recall", "Accuracy", "F1", "AUC"]


def _error_banner(error: Optional[str]) -> str:
    if not error:
        return ""
    return f'<div class="error-banner" role="alert">Could not refresh metrics: {escape(error)}</div>'


def _chart_image(charts: ChartBoard, name: str) -> str:
    png = charts[name].png
    if png is None:
        return '<p class="muted">Chart not available.</p>'
    encoded = base64.b64encode(png).decode("ascii")
    return f'<img alt="{escape(name)} chart" src="data:image/png;base64,{encoded}">'


def _confusion_cells(confusion: Optional[Dict[str, Any]]) -> str:
    cells: List[str] = []
    for key in ("tp", "fp", "fn", "tn"):
        label = key.upper()
        if confusion is None:
            cells.append(f'<div class="matrix-cell">{label}</div>')
        else:
            cells.append(f'<div class="matrix-cell">{label}<br><strong>{confusion[key]}</strong></div>')
    return "".join(cells)


def render_dashboard_html(
    snapshot: Dict[str, Any],
    charts: ChartBoard,
    *,
    title: str = "Model evaluation dashboard",
    error: Optional[str] = None,
    loading: bool = False,
    refresh_seconds: float = 0,
) -> str:
    summary = snapshot["summary"]
    run = snapshot.get("run") or {}
    run_bits = [str(run[key]) for key in ("run_id", "created_at") if run.get(key)]
    refresh_meta = (
        f'<meta http-equiv="refresh" content="{int(max(refresh_seconds, 1))}">' if refresh_seconds > 0 else ""
    )
    status_line = "Refreshing metrics..." if loading else f"Revision {snapshot.get('revision', 0)}"

    return _DASHBOARD_TEMPLATE.substitute(
        refresh_meta=refresh_meta,
        title=escape(title),
        style=_STYLE,
        model_name=escape(run.get("model_name") or VALUE_PLACEHOLDER),
        run_line=escape(" · ".join(run_bits)),
        error_banner=_error_banner(error),
        confusion_cells=_confusion_cells(snapshot.get("confusion")),
        roc_image=_chart_image(charts, "roc"),
        pr_image=_chart_image(charts, "pr"),
        status_line=escape(status_line),
        **{key: escape(value) for key, value in summary.items()},
    )


def _run_row(item: Dict[str, Any]) -> Dict[str, str]:
    run = parse_metrics_document(item)
    if run.run_id:
        run_cell = f'<a href="/runs/{quote(run.run_id, safe="")}">{escape(run.run_id)}</a>'
    else:
        run_cell = VALUE_PLACEHOLDER
    return {
        "Run": run_cell,
        "Model": escape(run.model_name or VALUE_PLACEHOLDER),
        "Created": escape(run.created_at or VALUE_PLACEHOLDER),
        "Precision": format_percent(run.precision) or VALUE_PLACEHOLDER,
        "Recall": format_percent(run.recall) or VALUE_PLACEHOLDER,
        "Accuracy": format_percent(run.accuracy) or VALUE_PLACEHOLDER,
        "F1": format_decimal(run.f1, 2) or VALUE_PLACEHOLDER,
        "AUC": format_decimal(run.auc, 3) or VALUE_PLACEHOLDER,
    }


def runs_dataframe(page: PagedMetricsList) -> pd.DataFrame:
    """One formatted row per run, cells already HTML-escaped."""
    return pd.DataFrame([_run_row(item) for item in page.items], columns=RUN_TABLE_COLUMNS)


def render_runs_html(page: PagedMetricsList, *, error: Optional[str] = None) -> str:
    frame = runs_dataframe(page)
    if frame.empty:
        table = '<p class="empty-state muted">No evaluation runs found.</p>'
    else:
        table = frame.to_html(index=False, escape=False, classes="runs-table", border=0)

    pages = max((page.total + page.limit - 1) // page.limit, 1) if page.limit else 1
    links: List[str] = []
    if page.page > 1:
        links.append(f'<a href="/runs?page={page.page - 1}&amp;limit={page.limit}">Previous</a>')
    if page.page < pages:
        links.append(f'<a href="/runs?page={page.page + 1}&amp;limit={page.limit}">Next</a>')

    return _RUNS_TEMPLATE.substitute(
        style=_STYLE,
        error_banner=_error_banner(error),
        table=table,
        page=page.page,
        pages=pages,
        total=page.total,
        pager=" &middot; ".join(links),
    )
