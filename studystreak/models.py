import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field


class DailyActivityRecord(BaseModel):
    date: dt.date
    minutes: int = 0
    session_count: int = 0


class UserProfile(BaseModel):
    user_id: str
    signup_date: dt.date
    total_focus_minutes: int = 0


class StreakStats(BaseModel):
    current_streak: int = 0
    longest_streak: int = 0
    total_study_days: int = 0
    average_minutes_per_day: int = 0


class TodayProgress(BaseModel):
    """Progress toward today's qualifying threshold."""
    minutes: int = 0
    display_minutes: int = 0
    goal_minutes: int = 30
    percent: int = 0
    minutes_remaining: int = 30
    streak_active: bool = False


class ActivityGridCell(BaseModel):
    date: dt.date
    value: int = 0
    is_future: bool = False
    level: int = 0
    sessions: int = 0
    title: str = ""


class ActivityGrid(BaseModel):
    start_date: dt.date
    end_date: dt.date
    weeks: list[list[ActivityGridCell]]
    month_labels: list[str]
    weekday_labels: list[str]


class StreakSnapshot(BaseModel):
    """Everything the presentation layer renders for one user."""
    user_id: str
    streak_stats: StreakStats
    today_progress: TodayProgress
    loading: bool = False
    previous_streak: int = 0
    error: Optional[str] = None
    refreshed_at: Optional[dt.datetime] = None


class CreateUserRequest(BaseModel):
    user_id: str = Field(min_length=1)
    signup_date: Optional[dt.date] = None


class RecordSessionRequest(BaseModel):
    minutes: int
    date: Optional[dt.date] = None
