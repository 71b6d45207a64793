"""
Streak calculation over a user's daily study-minute series.

Pure functions only: no database, no clock. The reference date is always
passed in so results depend only on the inputs.
"""
import logging
from datetime import date, timedelta
from typing import Iterable

from studystreak.config import QUALIFYING_MINUTES, STREAK_WALK_LIMIT_DAYS
from studystreak.models import DailyActivityRecord, StreakStats, TodayProgress

logger = logging.getLogger(__name__)


def sanitize_records(records: Iterable[DailyActivityRecord], today: date) -> dict[date, DailyActivityRecord]:
    """
    Index records by date, clamping malformed values.

    Negative minutes or session counts become zero, records dated after
    `today` are dropped and duplicate dates are merged.
    """
    by_date: dict[date, DailyActivityRecord] = {}
    for rec in records:
        if rec.date > today:
            logger.debug("Ignoring activity record dated in the future: %s", rec.date)
            continue
        minutes = max(0, rec.minutes)
        sessions = max(0, rec.session_count)
        existing = by_date.get(rec.date)
        if existing is not None:
            minutes += existing.minutes
            sessions += existing.session_count
        by_date[rec.date] = DailyActivityRecord(date=rec.date, minutes=minutes, session_count=sessions)
    return by_date


def is_qualifying(minutes: int) -> bool:
    return minutes >= QUALIFYING_MINUTES


def qualifying_days(records: Iterable[DailyActivityRecord], today: date) -> list[date]:
    """Sorted dates with at least QUALIFYING_MINUTES of study."""
    by_date = sanitize_records(records, today)
    return sorted(d for d, rec in by_date.items() if is_qualifying(rec.minutes))


def current_streak(days: Iterable[date], today: date) -> int:
    """
    Count consecutive qualifying days walking backward from `today`.

    An empty today does not break the streak (the day is still open), any
    other empty day does. Missing dates count as zero-minute days.
    """
    day_set = set(days)
    streak = 0
    check = today
    for _ in range(STREAK_WALK_LIMIT_DAYS + 1):
        if check in day_set:
            streak += 1
        elif check != today:
            break
        check -= timedelta(days=1)
    return streak


def longest_streak(days: Iterable[date]) -> int:
    longest = 0
    run = 0
    previous = None
    for day in sorted(set(days)):
        if previous is not None and (day - previous).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def days_since_signup(signup_date: date, today: date) -> int:
    """Calendar days from signup through today inclusive, floored at 1."""
    return max(1, (today - signup_date).days + 1)


def average_minutes_per_day(lifetime_total_minutes: int, signup_date: date, today: date) -> int:
    """
    Lifetime minutes spread over every day since signup, rounded half up.

    Independent of the qualifying threshold: all minutes, all days.
    """
    total = max(0, lifetime_total_minutes or 0)
    days = days_since_signup(signup_date, today)
    return (2 * total + days) // (2 * days)


def calculate_streak_stats(
    records: Iterable[DailyActivityRecord],
    signup_date: date,
    lifetime_total_minutes: int,
    today: date,
) -> StreakStats:
    days = qualifying_days(records, today)
    current = current_streak(days, today)
    # current <= longest
    longest = max(longest_streak(days), current)
    return StreakStats(
        current_streak=current,
        longest_streak=longest,
        total_study_days=len(days),
        average_minutes_per_day=average_minutes_per_day(lifetime_total_minutes, signup_date, today),
    )


def today_progress(records: Iterable[DailyActivityRecord], today: date) -> TodayProgress:
    by_date = sanitize_records(records, today)
    rec = by_date.get(today)
    minutes = rec.minutes if rec else 0
    return TodayProgress(
        minutes=minutes,
        display_minutes=min(minutes, QUALIFYING_MINUTES),
        goal_minutes=QUALIFYING_MINUTES,
        percent=min(round(minutes / QUALIFYING_MINUTES * 100), 100),
        minutes_remaining=max(QUALIFYING_MINUTES - minutes, 0),
        streak_active=is_qualifying(minutes),
    )


def streak_change(current: int, previous: int) -> str | None:
    """'increased', 'maintained' or None when the streak dropped or is zero."""
    if current > previous:
        return "increased"
    if current > 0 and current == previous:
        return "maintained"
    return None
