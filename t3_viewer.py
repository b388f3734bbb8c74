"""t3_viewer.py

Print message-volume charts and the thread list of a t3.chat export, and
optionally save each chart as a PNG.

Examples:
    python t3_viewer.py export.json --threads
    python t3_viewer.py export.json --view last-30-days --output-dir charts
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from chart_render import NO_DATA_TEXT, save_chart
from charts import Bars, ChartAggregator, ChartView, Line, ViewKind
from t3_export import ExportDocument, ExportFormatError, display_title, load_export

LOG_LEVEL_ENV = "T3_VIEWER_LOG_LEVEL"
LOG_FORMAT = "%(levelname)s %(filename)s:%(lineno)d %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Set up root logging.

    The level comes from *level*, else the ``T3_VIEWER_LOG_LEVEL``
    environment variable, else INFO.  Unknown level names fall back to INFO.
    """
    name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT, force=True)


def print_threads(document: ExportDocument) -> None:
    print(f"\n{'=' * 60}")
    print(f"Threads ({len(document.threads):,})")
    print(f"{'=' * 60}")
    for thread in document.threads:
        count = len(document.messages_for(thread.id))
        print(f"  {display_title(thread.title):<80} {count:>6,} messages")


def print_chart(chart: ChartView) -> None:
    """Print a chart view as label/count rows."""
    print(f"\n{'=' * 60}")
    print(f"Showing: {chart.view.display_name}")
    print(f"{'=' * 60}")
    series = chart.series
    if isinstance(series, Bars):
        rows = [(chart.formatter(float(i)), count) for i, (_, count) in enumerate(series.buckets)]
    elif isinstance(series, Line):
        rows = [(chart.formatter(x), y) for x, y in series.points]
    else:
        print(NO_DATA_TEXT)
        return
    for label, count in rows:
        print(f"  {label:<8} {count:>6,}")
    print(f"  {'Total':<8} {series.total():>6,}")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="View charts and threads of a t3.chat JSON export")
    parser.add_argument("export", help="Path to the t3.chat export JSON file")
    parser.add_argument(
        "--view", "-v",
        default="all",
        choices=["all"] + [v.slug for v in ViewKind.all()],
        help="Chart view to print (default: all)",
    )
    parser.add_argument("--threads", "-t", action="store_true", help="Print the thread list")
    parser.add_argument("--output-dir", "-o", help="Save each printed chart as <view>.png here")
    parser.add_argument("--log-level", help=f"Logging level (default: ${LOG_LEVEL_ENV} or INFO)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = _parse_args(argv)
    configure_logging(args.log_level)

    try:
        document = load_export(args.export)
    except FileNotFoundError:
        print(f"Error: File not found: {args.export}", file=sys.stderr)
        sys.exit(1)
    except ExportFormatError as exc:
        print(f"Error: {args.export} is not a valid t3.chat export: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.threads:
        print_threads(document)

    views = ViewKind.all() if args.view == "all" else [ViewKind.from_slug(args.view)]
    aggregator = ChartAggregator()
    for view in views:
        aggregator.select(view)
        chart = aggregator.draw_data(document.messages)
        print_chart(chart)
        if args.output_dir:
            path = save_chart(chart, Path(args.output_dir) / f"{view.slug}.png")
            print(f"Saved {path}")


if __name__ == "__main__":
    main()
