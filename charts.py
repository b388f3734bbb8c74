"""Chart aggregation for the t3.chat export viewer.

Turns a flat collection of timestamped messages into the datasets behind the
four quick chart views (day of week, last 30 days, last 12 months, time of
day).  Results are memoized per view by ``ChartAggregator`` so the viewer can
ask for them on every redraw.

All bucketing is done on UTC calendar dates and clock times.
"""

from __future__ import annotations

import calendar
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Iterable, NamedTuple, Protocol, Union

logger = logging.getLogger(__name__)

DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
TIME_BINS = 48  # 30-minute bins over 24 hours


class TimestampedMessage(Protocol):
    created_at: datetime


class ViewKind(Enum):
    """The quick chart views, in the order they are offered for selection."""

    DAY_OF_WEEK = "day-of-week"
    LAST_30_DAYS = "last-30-days"
    LAST_12_MONTHS = "last-12-months"
    TIME_OF_DAY = "time-of-day"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def slug(self) -> str:
        return self.value

    @classmethod
    def all(cls) -> list[ViewKind]:
        return list(cls)

    @classmethod
    def from_slug(cls, slug: str) -> ViewKind:
        """Look up a view by its slug.

        Raises:
            ValueError: If *slug* does not name a view.
        """
        return cls(slug)


_DISPLAY_NAMES = {
    ViewKind.DAY_OF_WEEK: "Message Volume by Day of Week",
    ViewKind.LAST_30_DAYS: "Message Volume Last 30 Days",
    ViewKind.LAST_12_MONTHS: "Message Volume Last 12 Months",
    ViewKind.TIME_OF_DAY: "Message Volume by Time of Day",
}


# ---------------------------------------------------------------------------
# Aggregated series
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Bars:
    """Categorical counts; a bucket's position is its x-coordinate."""

    buckets: tuple[tuple[str, int], ...]

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self.buckets]

    @property
    def counts(self) -> list[int]:
        return [count for _, count in self.buckets]

    def total(self) -> int:
        return sum(self.counts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "bars",
            "buckets": [{"label": label, "count": count} for label, count in self.buckets],
        }


@dataclass(frozen=True)
class Line:
    """Sparse time series of (epoch seconds, count) points, ascending by x."""

    points: tuple[tuple[float, int], ...]

    def total(self) -> int:
        return sum(y for _, y in self.points)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "line",
            "points": [{"x": x, "y": y} for x, y in self.points],
        }


@dataclass(frozen=True)
class Empty:
    """No messages fell inside the view's window."""

    def total(self) -> int:
        return 0

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "empty"}


EMPTY = Empty()

AggregatedSeries = Union[Bars, Line, Empty]


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def _utc(ts: datetime) -> datetime:
    """Return *ts* converted to UTC (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _epoch_seconds(d: date) -> float:
    """Unix timestamp of 00:00 UTC on *d*."""
    return float(calendar.timegm(d.timetuple()))


def shift_months(d: date, months: int) -> date:
    """Move *d* by a whole number of calendar months.

    Works on (year, month) pairs so that stepping back from January lands on
    December of the previous year.  The day is clamped to the length of the
    target month (31 March minus one month is 29 February in a leap year),
    and the result is clamped to the representable date range.

    Args:
        d: Starting date.
        months: Months to add; negative values move backwards.

    Returns:
        The shifted date.
    """
    index = d.year * 12 + (d.month - 1) + months
    year, month_index = divmod(index, 12)
    if year < date.min.year:
        return date.min
    if year > date.max.year:
        return date.max
    month = month_index + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


# ---------------------------------------------------------------------------
# Aggregations
# ---------------------------------------------------------------------------

def day_of_week(messages: Iterable[TimestampedMessage]) -> Bars:
    """Count messages per weekday, Monday first.

    Every weekday is present, including days with no messages.
    """
    counts = Counter(_utc(m.created_at).weekday() for m in messages)
    return Bars(tuple((label, counts.get(i, 0)) for i, label in enumerate(DAY_LABELS)))


def last_n_days(
    messages: Iterable[TimestampedMessage],
    n: int = 30,
    today: date | None = None,
) -> Line | Empty:
    """Count messages per UTC calendar day over the trailing *n* days.

    The window is ``[today - (n - 1) days, today]``, both ends inclusive.
    Only days with at least one message are emitted.

    Args:
        messages: Messages to aggregate.
        n: Window length in days, including today.
        today: The date treated as "today".  Defaults to the current UTC date.

    Returns:
        A ``Line`` with one point per active day (x is 00:00 UTC of that day
        in epoch seconds), or ``EMPTY`` if no message falls in the window.
    """
    if today is None:
        today = _utc_today()
    try:
        start = today - timedelta(days=max(n, 1) - 1)
    except OverflowError:
        start = date.min

    counts: Counter[date] = Counter()
    for m in messages:
        day = _utc(m.created_at).date()
        if start <= day <= today:
            counts[day] += 1

    if not counts:
        return EMPTY
    return Line(tuple((_epoch_seconds(day), counts[day]) for day in sorted(counts)))


def last_n_months(
    messages: Iterable[TimestampedMessage],
    n: int = 12,
    today: date | None = None,
) -> Line | Empty:
    """Count messages per UTC calendar month from *n* - 1 months ago onwards.

    The window starts on the first day of the month ``n - 1`` months before
    the current one.  Only months with at least one message are emitted.

    Args:
        messages: Messages to aggregate.
        n: Number of months in the window, including the current month.
        today: The date treated as "today".  Defaults to the current UTC date.

    Returns:
        A ``Line`` with one point per active month (x is the first instant of
        the month in epoch seconds), or ``EMPTY`` if nothing qualifies.
    """
    if today is None:
        today = _utc_today()
    start = shift_months(today.replace(day=1), -(max(n, 1) - 1))

    counts: Counter[date] = Counter()
    for m in messages:
        day = _utc(m.created_at).date()
        if day >= start:
            counts[day.replace(day=1)] += 1

    if not counts:
        return EMPTY
    return Line(tuple((_epoch_seconds(month), counts[month]) for month in sorted(counts)))


def time_of_day(messages: Iterable[TimestampedMessage]) -> Bars:
    """Count messages per 30-minute slot of the UTC clock, across all days."""
    counts: Counter[int] = Counter()
    for m in messages:
        ts = _utc(m.created_at)
        counts[ts.hour * 2 + ts.minute // 30] += 1
    return Bars(tuple((_bin_label(i), counts.get(i, 0)) for i in range(TIME_BINS)))


def _bin_label(index: int) -> str:
    return f"{index // 2:02d}:{(index % 2) * 30:02d}"


# ---------------------------------------------------------------------------
# Axis formatting
# ---------------------------------------------------------------------------

def _label_formatter(labels: list[str]) -> Callable[[float], str]:
    def fmt(x: float) -> str:
        try:
            index = int(round(float(x)))
        except (ValueError, OverflowError):
            return ""
        if 0 <= index < len(labels):
            return labels[index]
        return ""

    return fmt


def _date_formatter(pattern: str) -> Callable[[float], str]:
    def fmt(x: float) -> str:
        try:
            ts = datetime.fromtimestamp(int(round(float(x))), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return ""
        return ts.strftime(pattern)

    return fmt


def axis_formatter(view: ViewKind, series: AggregatedSeries) -> Callable[[float], str]:
    """Build the x-axis tick formatter for *view*.

    Categorical views index into the series labels; time-series views read
    x as Unix seconds and format the UTC date.  Values that cannot be
    mapped format to an empty string.
    """
    if view in (ViewKind.DAY_OF_WEEK, ViewKind.TIME_OF_DAY):
        labels = series.labels if isinstance(series, Bars) else []
        return _label_formatter(labels)
    if view is ViewKind.LAST_30_DAYS:
        return _date_formatter("%m-%d")
    return _date_formatter("%Y-%m")


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class ChartView(NamedTuple):
    view: ViewKind
    series: AggregatedSeries
    formatter: Callable[[float], str]


class ChartAggregator:
    """Selected chart view plus a per-view cache of aggregated series.

    One aggregator belongs to one loaded document.  A cached series is
    returned as-is for the lifetime of the aggregator, even if a different
    message collection is passed later; call ``invalidate`` to recompute.

    Args:
        today: Optional callable returning the date treated as "today" by
            the trailing-window views.  Defaults to the current UTC date.
    """

    def __init__(self, today: Callable[[], date] | None = None) -> None:
        self.selected = ViewKind.DAY_OF_WEEK
        self._today = today or _utc_today
        self._cache: dict[ViewKind, AggregatedSeries] = {}

    def select(self, view: ViewKind) -> None:
        self.selected = view

    def is_cached(self, view: ViewKind) -> bool:
        return view in self._cache

    def invalidate(self, view: ViewKind | None = None) -> None:
        """Drop the cached series for *view*, or for every view if None."""
        if view is None:
            self._cache.clear()
        else:
            self._cache.pop(view, None)

    def get_or_compute(
        self,
        view: ViewKind,
        messages: Iterable[TimestampedMessage],
    ) -> AggregatedSeries:
        """Return the series for *view*, computing and caching it on first use."""
        cached = self._cache.get(view)
        if cached is not None:
            logger.debug("Chart data for %s found in cache.", view.name)
            return cached

        logger.info("Processing chart data for %s (not in cache).", view.name)
        series = self._compute(view, list(messages))
        self._cache[view] = series
        return series

    def _compute(self, view: ViewKind, messages: list[TimestampedMessage]) -> AggregatedSeries:
        if view is ViewKind.DAY_OF_WEEK:
            return day_of_week(messages)
        if view is ViewKind.LAST_30_DAYS:
            return last_n_days(messages, 30, today=self._today())
        if view is ViewKind.LAST_12_MONTHS:
            return last_n_months(messages, 12, today=self._today())
        return time_of_day(messages)

    def draw_data(self, messages: Iterable[TimestampedMessage]) -> ChartView:
        """Series and axis formatter for the selected view, for one redraw."""
        series = self.get_or_compute(self.selected, messages)
        return ChartView(self.selected, series, axis_formatter(self.selected, series))

    def view_data(self, view: ViewKind, messages: Iterable[TimestampedMessage]) -> ChartView:
        series = self.get_or_compute(view, messages)
        return ChartView(view, series, axis_formatter(view, series))
