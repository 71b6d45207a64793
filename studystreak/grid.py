"""
Year-long activity heatmap grid.

`build_activity_grid(today, records)` lays out 53 weeks x 7 days starting on
the Sunday on or before `today - 365 days`. Output depends only on its inputs.
"""
from datetime import date, timedelta
from typing import Iterable, Mapping, Union

from studystreak.calculator import sanitize_records
from studystreak.config import DAYS_PER_WEEK, GRID_WEEKS, LOOKBACK_DAYS, QUALIFYING_MINUTES
from studystreak.models import ActivityGrid, ActivityGridCell, DailyActivityRecord

GRID_DAYS = GRID_WEEKS * DAYS_PER_WEEK

WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Lower bounds (minutes) for heat levels 1..4
LEVEL_THRESHOLDS = (QUALIFYING_MINUTES, 60, 120, 240)

RecordSource = Union[Mapping[date, DailyActivityRecord], Iterable[DailyActivityRecord]]


def grid_start_date(today: date) -> date:
    start = today - timedelta(days=LOOKBACK_DAYS)
    # date.weekday(): Monday=0 .. Sunday=6
    return start - timedelta(days=(start.weekday() + 1) % 7)


def intensity_level(minutes: int) -> int:
    level = 0
    for i, threshold in enumerate(LEVEL_THRESHOLDS, start=1):
        if minutes >= threshold:
            level = i
    return level


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m" if hours > 0 else f"{mins}m"


def cell_title(day: date, record: DailyActivityRecord | None) -> str:
    if record is None:
        return "No study time recorded"
    return (
        f"{MONTH_LABELS[day.month - 1]} {day.day}, {day.year}: "
        f"{format_duration(max(0, record.minutes))} studied ({max(0, record.session_count)} sessions)"
    )


def _as_lookup(records: RecordSource, today: date) -> Mapping[date, DailyActivityRecord]:
    """Clamp and merge records the same way the streak calculator does."""
    if isinstance(records, Mapping):
        records = records.values()
    return sanitize_records(records, today)


def month_labels(weeks: list[list[ActivityGridCell]]) -> list[str]:
    """Label a week only when its first day starts a new month."""
    labels = []
    last_month = None
    for week in weeks:
        first = week[0].date
        key = (first.year, first.month)
        if key != last_month:
            labels.append(MONTH_LABELS[first.month - 1])
            last_month = key
        else:
            labels.append("")
    return labels


def build_activity_grid(today: date, records: RecordSource) -> ActivityGrid:
    lookup = _as_lookup(records, today)
    start = grid_start_date(today)

    cells = []
    for offset in range(GRID_DAYS):
        day = start + timedelta(days=offset)
        is_future = day > today
        record = None if is_future else lookup.get(day)
        value = max(0, record.minutes) if record else 0
        cells.append(ActivityGridCell(
            date=day,
            value=value,
            is_future=is_future,
            level=intensity_level(value),
            sessions=max(0, record.session_count) if record else 0,
            title=cell_title(day, record),
        ))

    weeks = [cells[i:i + DAYS_PER_WEEK] for i in range(0, GRID_DAYS, DAYS_PER_WEEK)]
    return ActivityGrid(
        start_date=start,
        end_date=today,
        weeks=weeks,
        month_labels=month_labels(weeks),
        weekday_labels=list(WEEKDAY_LABELS),
    )
