"""Render chart views to PNG with matplotlib.

Bars views draw one bar per bucket, time-series views draw a line through
the active days or months, and an empty view draws a "no data" note.  The
view's own axis formatter labels the x ticks.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import matplotlib

matplotlib.use("Agg")  # headless

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from matplotlib.ticker import FixedLocator, FuncFormatter

from charts import Bars, ChartView, Line

NO_DATA_TEXT = "No data available for this chart type."
BAR_COLOR = "lightblue"
LINE_COLOR = "steelblue"

sns.set_theme(style="whitegrid")


def series_to_frame(view: ChartView) -> pd.DataFrame:
    """Tabulate a chart view as ``x``, ``count`` and ``label`` columns.

    Labels come from the view's axis formatter, so they match the tick
    labels on the rendered chart.  An empty view gives an empty frame.
    """
    series = view.series
    if isinstance(series, Bars):
        xs = [float(i) for i in range(len(series.buckets))]
        counts = series.counts
    elif isinstance(series, Line):
        xs = [x for x, _ in series.points]
        counts = [y for _, y in series.points]
    else:
        xs, counts = [], []

    return pd.DataFrame(
        {
            "x": pd.Series(xs, dtype="float64"),
            "count": pd.Series(counts, dtype="int64"),
            "label": pd.Series([view.formatter(x) for x in xs], dtype="object"),
        }
    )


def _tick_formatter(formatter: Callable[[float], str]) -> FuncFormatter:
    return FuncFormatter(lambda x, _pos: formatter(x))


def _draw(ax, view: ChartView) -> None:
    df = series_to_frame(view)
    if df.empty:
        ax.text(0.5, 0.5, NO_DATA_TEXT, ha="center", va="center", transform=ax.transAxes)
        ax.set_xticks([])
        return

    if isinstance(view.series, Bars):
        ax.bar(df["x"], df["count"], color=BAR_COLOR, label="Messages")
        step = 4 if len(df) > 24 else 1
        ax.xaxis.set_major_locator(FixedLocator(df["x"].iloc[::step].tolist()))
        ax.xaxis.set_major_formatter(_tick_formatter(view.formatter))
    else:
        ax.plot(df["x"], df["count"], color=LINE_COLOR, marker="o", linewidth=2, label="Messages")
        ax.xaxis.set_major_locator(FixedLocator(df["x"].tolist()))
        ax.xaxis.set_major_formatter(_tick_formatter(view.formatter))
        ax.set_ylim(bottom=0)

    ax.set_ylabel("Number of Messages", fontsize=12)
    ax.legend()
    ax.tick_params(axis="x", labelrotation=45)


def render_chart(view: ChartView, dpi: int = 150) -> bytes:
    """Draw *view* and return the PNG image bytes."""
    fig, ax = plt.subplots(figsize=(12, 6))
    try:
        ax.set_title(f"Showing: {view.view.display_name}", fontsize=14, pad=20)
        _draw(ax, view)
        fig.tight_layout()
        buf = io.BytesIO()
        fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight")
    finally:
        plt.close(fig)
    return buf.getvalue()


def save_chart(view: ChartView, path: str | Path, dpi: int = 150) -> Path:
    """Render *view* to a PNG file at *path* and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(render_chart(view, dpi=dpi))
    return path
