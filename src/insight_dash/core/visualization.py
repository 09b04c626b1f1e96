"""
visualization.py
─────────────────────────────────────────────────────────────────────────────
Turns a chart frame into a Plotly figure. Shaping the data happens upstream;
this module only maps the frame onto traces.

Chart type → traces
  line     → one line per y column
  bar      → grouped bars, one series per y column
  area     → stacked filled areas
  scatter  → markers only
  pie      → first y column as slice values, x column as labels
─────────────────────────────────────────────────────────────────────────────
"""

from typing import Optional

import plotly.graph_objects as go

from insight_dash.models import ChartFrame
from insight_dash.utils.logger import get_logger

logger = get_logger(__name__)

# ── colour palette ────────────────────────────────────────────────────────────
SERIES_COLORS = ["#00C9FF", "#92FE9D", "#3B82F6", "#10B981", "#F59E0B", "#EF4444"]
CLR_BG = "rgba(0,0,0,0)"
FONT_COLOR = "#6B7280"

LAYOUT_BASE = dict(
    paper_bgcolor=CLR_BG,
    plot_bgcolor=CLR_BG,
    font=dict(color=FONT_COLOR, size=12),
    margin=dict(l=20, r=30, t=60, b=40),
    xaxis=dict(gridcolor="rgba(55,65,81,0.3)"),
    yaxis=dict(gridcolor="rgba(55,65,81,0.3)"),
)


def _color(i: int) -> str:
    return SERIES_COLORS[i % len(SERIES_COLORS)]


def _apply_layout(fig: go.Figure, title: str, xlabel: str = None, ylabel: str = None) -> go.Figure:
    updates = dict(**LAYOUT_BASE, title=dict(text=title))
    if xlabel:
        updates["xaxis"] = {**LAYOUT_BASE["xaxis"], "title": xlabel}
    if ylabel:
        updates["yaxis"] = {**LAYOUT_BASE["yaxis"], "title": ylabel}
    fig.update_layout(**updates)
    return fig


def _series_figure(frame: ChartFrame) -> go.Figure:
    df = frame.dataframe
    x = df[frame.x_axis]
    fig = go.Figure()

    for i, column in enumerate(frame.y_axis):
        color = _color(i)
        if frame.chart_type == "bar":
            fig.add_trace(go.Bar(x=x, y=df[column], name=column, marker_color=color))
        elif frame.chart_type == "area":
            fig.add_trace(go.Scatter(
                x=x, y=df[column], name=column, mode="lines",
                line=dict(color=color), stackgroup="one",
            ))
        elif frame.chart_type == "scatter":
            fig.add_trace(go.Scatter(
                x=x, y=df[column], name=column, mode="markers",
                marker=dict(color=color, size=8),
            ))
        else:
            fig.add_trace(go.Scatter(
                x=x, y=df[column], name=column, mode="lines+markers",
                line=dict(color=color, width=3), marker=dict(size=6),
            ))

    if frame.chart_type == "bar":
        fig.update_layout(barmode="group")
    return fig


def _pie_figure(frame: ChartFrame) -> go.Figure:
    df = frame.dataframe
    column = frame.y_axis[0]
    return go.Figure(go.Pie(
        labels=df[frame.x_axis].astype(str),
        values=df[column],
        marker=dict(colors=SERIES_COLORS),
        hole=0.3,
    ))


def build_figure(frame: ChartFrame) -> Optional[go.Figure]:
    if frame.size == 0 or not frame.y_axis:
        logger.info("Chart frame is empty or has no y-axis; skipping figure.")
        return None

    if frame.chart_type == "pie":
        fig = _pie_figure(frame)
    else:
        fig = _series_figure(frame)

    title = f"{', '.join(frame.y_axis)} by {frame.x_axis}"
    return _apply_layout(fig, title, xlabel=frame.x_axis, ylabel=", ".join(frame.y_axis))


def generate_plotly_json(frame: ChartFrame) -> Optional[str]:
    """Figure JSON for the frame, or None when there is nothing to draw."""
    try:
        fig = build_figure(frame)
    except (KeyError, ValueError) as e:
        logger.error(f"Visualization generation failed: {e}", exc_info=True)
        return None
    if fig is None:
        return None
    logger.info(f"Visualization generated ({frame.chart_type}, {frame.size} points).")
    return fig.to_json()
