"""Activity grid layout: 53x7 cells, Sunday start, sparse month labels."""
from datetime import date, timedelta

from studystreak.grid import (
    build_activity_grid,
    cell_title,
    grid_start_date,
    intensity_level,
)
from studystreak.models import DailyActivityRecord

from conftest import TODAY


def test_grid_has_53_weeks_of_7_days():
    grid = build_activity_grid(TODAY, [])
    assert len(grid.weeks) == 53
    assert all(len(week) == 7 for week in grid.weeks)
    assert len(grid.month_labels) == 53
    assert grid.weekday_labels == ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def test_grid_starts_on_sunday_on_or_before_a_year_ago():
    for offset in range(14):
        today = TODAY + timedelta(days=offset)
        start = grid_start_date(today)
        assert start.weekday() == 6
        year_ago = today - timedelta(days=365)
        assert 0 <= (year_ago - start).days < 7


def test_grid_dates_are_consecutive():
    grid = build_activity_grid(TODAY, [])
    cells = [cell for week in grid.weeks for cell in week]
    assert len(cells) == 371
    assert cells[0].date == date(2025, 3, 16)
    for prev, cur in zip(cells, cells[1:]):
        assert (cur.date - prev.date).days == 1


def test_future_cells_are_zero():
    records = [
        DailyActivityRecord(date=TODAY, minutes=50, session_count=2),
        DailyActivityRecord(date=TODAY + timedelta(days=1), minutes=90, session_count=1),
    ]
    grid = build_activity_grid(TODAY, records)
    last_week = grid.weeks[-1]
    by_date = {cell.date: cell for cell in last_week}
    assert by_date[TODAY].value == 50
    assert by_date[TODAY].is_future is False
    future = by_date[TODAY + timedelta(days=1)]
    assert future.is_future is True
    assert future.value == 0
    assert future.level == 0


def test_values_come_from_lookup():
    day = TODAY - timedelta(days=40)
    lookup = {day: DailyActivityRecord(date=day, minutes=125, session_count=3)}
    grid = build_activity_grid(TODAY, lookup)
    cell = next(c for week in grid.weeks for c in week if c.date == day)
    assert cell.value == 125
    assert cell.sessions == 3
    assert cell.level == 3


def test_month_labels_are_sparse_and_non_repeating():
    grid = build_activity_grid(TODAY, [])
    labels = grid.month_labels
    assert labels[0] == "Mar"
    assert labels[1] == ""
    non_empty = [label for label in labels if label]
    assert len(non_empty) == 13
    for i, label in enumerate(labels):
        if label:
            assert grid.weeks[i][0].date.strftime("%b") == label


def test_grid_is_deterministic():
    records = [DailyActivityRecord(date=TODAY - timedelta(days=i), minutes=i * 7, session_count=1) for i in range(60)]
    assert build_activity_grid(TODAY, records) == build_activity_grid(TODAY, list(reversed(records)))


def test_intensity_levels():
    assert intensity_level(0) == 0
    assert intensity_level(29) == 0
    assert intensity_level(30) == 1
    assert intensity_level(59) == 1
    assert intensity_level(60) == 2
    assert intensity_level(120) == 3
    assert intensity_level(239) == 3
    assert intensity_level(240) == 4


def test_cell_titles():
    day = date(2026, 3, 5)
    assert cell_title(day, None) == "No study time recorded"
    assert cell_title(day, DailyActivityRecord(date=day, minutes=65, session_count=2)) == (
        "Mar 5, 2026: 1h 5m studied (2 sessions)"
    )
    assert cell_title(day, DailyActivityRecord(date=day, minutes=45, session_count=1)) == (
        "Mar 5, 2026: 45m studied (1 sessions)"
    )


def test_duplicate_dates_merge_like_the_calculator():
    day = TODAY - timedelta(days=3)
    records = [
        DailyActivityRecord(date=day, minutes=20, session_count=1),
        DailyActivityRecord(date=day, minutes=15, session_count=1),
        DailyActivityRecord(date=TODAY, minutes=-10, session_count=1),
    ]
    grid = build_activity_grid(TODAY, records)
    cells = {c.date: c for week in grid.weeks for c in week}
    assert cells[day].value == 35
    assert cells[day].sessions == 2
    assert cells[day].level == 1
    assert cells[TODAY].value == 0
