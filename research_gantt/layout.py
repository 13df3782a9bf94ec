"""Deterministic grid layout for a chart document, including the "today" marker.

The date arithmetic (``find_today_column_position``) is pure and always safe to
call. Converting that position to pixels depends on measured geometry, which
may be missing; in that case the marker is dropped rather than failing.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Optional

from research_gantt.logging import get_logger
from research_gantt.models import (
    BarPlacement,
    ChartDocument,
    ChartLayout,
    RowLayout,
    TaskIdentifier,
    TodayMarker,
    TodayPosition,
)
from research_gantt.periods import bucket_label, detect_granularity, quarter_of

logger = get_logger(__name__)

LABEL_COLUMN_TEMPLATE = "minmax(400px, 1.5fr)"


def _fraction(day: date, granularity: str) -> float:
    if granularity == "year":
        days_in_year = 366 if calendar.isleap(day.year) else 365
        return (day - date(day.year, 1, 1)).days / days_in_year
    if granularity == "quarter":
        first_month = (quarter_of(day) - 1) * 3 + 1
        start = date(day.year, first_month, 1)
        last_month = first_month + 2
        end = date(day.year, last_month, calendar.monthrange(day.year, last_month)[1])
        return (day - start).days / ((end - start).days + 1)
    if granularity == "month":
        return day.day / calendar.monthrange(day.year, day.month)[1]
    # Sunday=0 .. Saturday=6, centred on the day.
    return (day.isoweekday() % 7 + 0.5) / 7


def find_today_column_position(day: date, time_columns: list[str]) -> Optional[TodayPosition]:
    """Locate ``day`` among bucket labels; None when no bucket matches."""
    if not time_columns:
        return None
    granularity = detect_granularity(time_columns[0])
    if granularity is None:
        return None
    label = bucket_label(day, granularity)
    try:
        index = time_columns.index(label)
    except ValueError:
        return None
    return TodayPosition(index=index, percentage=_fraction(day, granularity))


def today_marker_left(
    position: TodayPosition,
    label_width: Optional[float],
    column_width: Optional[float],
) -> Optional[float]:
    """Pixel offset of the marker from the grid's left edge, or None without geometry."""
    try:
        if label_width is None or column_width is None:
            return None
        if label_width < 0 or column_width <= 0:
            return None
        return float(label_width) + (position.index + position.percentage) * float(column_width)
    except (TypeError, ValueError) as exc:
        logger.debug("Skipping today marker: %s", exc)
        return None


def compute_layout(
    doc: ChartDocument,
    today: Optional[date] = None,
    label_width: Optional[float] = None,
    grid_width: Optional[float] = None,
) -> ChartLayout:
    n = len(doc.time_columns)
    rows: list[RowLayout] = []
    for row in doc.data:
        placement = None
        task = None
        if not row.is_swimlane and row.bar is not None and row.bar.start_col is not None:
            end_col = row.bar.end_col if row.bar.end_col is not None else row.bar.start_col + 1
            placement = BarPlacement(grid_column=f"{row.bar.start_col} / {end_col}", color=row.bar.color or "default")
            task = TaskIdentifier(task_name=row.title, entity=row.entity)
        rows.append(
            RowLayout(
                title=row.title,
                is_swimlane=row.is_swimlane,
                entity=row.entity,
                bar=placement,
                task=task,
            )
        )

    marker = None
    if today is not None:
        position = find_today_column_position(today, doc.time_columns)
        if position is not None:
            column_width = None
            if grid_width is not None and label_width is not None and n:
                column_width = (grid_width - label_width) / n
            marker = TodayMarker(
                index=position.index,
                percentage=position.percentage,
                left_px=today_marker_left(position, label_width, column_width),
            )

    return ChartLayout(
        title=doc.title,
        column_count=n,
        grid_template_columns=f"{LABEL_COLUMN_TEMPLATE} repeat({n}, 1fr)",
        headers=list(doc.time_columns),
        rows=rows,
        legend=list(doc.legend),
        today=marker,
    )
