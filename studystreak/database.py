import asyncio
import logging
import sqlite3
from datetime import date

from studystreak import config
from studystreak.models import DailyActivityRecord
from studystreak.signals import session_changed

logger = logging.getLogger(__name__)


def _use_pg() -> bool:
    return bool(config.DATABASE_URL)


def local_today() -> date:
    """Today's date on the local clock; the calendar every statistic uses."""
    return date.today()


def _pg_conn():
    import psycopg2
    from psycopg2.extras import RealDictCursor
    return psycopg2.connect(config.DATABASE_URL, cursor_factory=RealDictCursor)


def _sqlite_conn():
    conn = sqlite3.connect(config.get_db_path())
    conn.row_factory = sqlite3.Row
    return conn


def get_connection():
    if _use_pg():
        return _pg_conn()
    return _sqlite_conn()


def _sql(sql: str) -> str:
    """
    Queries are written with sqlite `?` placeholders. For Postgres they become
    `%s`; a `?` inside a single-quoted literal is left alone.
    """
    if not _use_pg():
        return sql
    # even-indexed parts are outside quotes
    parts = sql.split("'")
    for i in range(0, len(parts), 2):
        parts[i] = parts[i].replace("?", "%s")
    return "'".join(parts)


def _execute(conn, sql, params=()):
    if _use_pg():
        cur = conn.cursor()
        cur.execute(_sql(sql), params)
        return cur
    return conn.execute(sql, params)


def _fetch_all(conn, sql, params):
    return [dict(r) for r in _execute(conn, sql, params).fetchall()]


def _fetch_one(conn, sql, params):
    row = _execute(conn, sql, params).fetchone()
    return dict(row) if row else None


def init_db():
    conn = get_connection()
    try:
        _execute(conn, """
            CREATE TABLE IF NOT EXISTS profiles (
                user_id TEXT PRIMARY KEY,
                signup_date TEXT NOT NULL,
                total_focus_minutes INTEGER NOT NULL DEFAULT 0
            )
        """)
        if _use_pg():
            id_column = "id SERIAL PRIMARY KEY"
        else:
            id_column = "id INTEGER PRIMARY KEY AUTOINCREMENT"
        _execute(conn, f"""
            CREATE TABLE IF NOT EXISTS daily_activity (
                {id_column},
                user_id TEXT NOT NULL REFERENCES profiles(user_id),
                activity_date TEXT NOT NULL,
                minutes INTEGER NOT NULL DEFAULT 0,
                session_count INTEGER NOT NULL DEFAULT 0,
                UNIQUE (user_id, activity_date)
            )
        """)
        _execute(
            conn,
            "CREATE INDEX IF NOT EXISTS idx_daily_activity_user_date ON daily_activity(user_id, activity_date)",
        )
        conn.commit()
    finally:
        conn.close()


def _profile_from_row(row: dict) -> dict:
    return {
        "user_id": row["user_id"],
        "signup_date": date.fromisoformat(row["signup_date"]),
        "total_focus_minutes": row["total_focus_minutes"],
    }


def get_profile(user_id: str) -> dict | None:
    conn = get_connection()
    try:
        row = _fetch_one(
            conn,
            "SELECT user_id, signup_date, total_focus_minutes FROM profiles WHERE user_id = ?",
            (user_id,),
        )
        return _profile_from_row(row) if row else None
    finally:
        conn.close()


def ensure_profile(user_id: str, signup_date: date | None = None) -> dict:
    """Create the profile on first sight; an existing profile is returned unchanged."""
    signup = signup_date or local_today()
    conn = get_connection()
    try:
        row = _fetch_one(
            conn,
            "SELECT user_id, signup_date, total_focus_minutes FROM profiles WHERE user_id = ?",
            (user_id,),
        )
        if row is None:
            _execute(
                conn,
                "INSERT INTO profiles (user_id, signup_date, total_focus_minutes) VALUES (?, ?, 0)",
                (user_id, signup.isoformat()),
            )
            conn.commit()
            logger.info("Created profile for user %s (signup %s)", user_id, signup)
            row = {"user_id": user_id, "signup_date": signup.isoformat(), "total_focus_minutes": 0}
        return _profile_from_row(row)
    finally:
        conn.close()


def record_study_session(user_id: str, minutes: int, on_date: date | None = None) -> dict:
    """
    Add one completed study session to the user's day row and lifetime total.

    The day row is created on first use and incremented afterwards, never
    replaced. Publishes `session_changed` once committed.
    """
    if minutes < 0:
        raise ValueError("Minutes must be non-negative")
    day = on_date or local_today()
    conn = get_connection()
    try:
        profile = _fetch_one(conn, "SELECT user_id FROM profiles WHERE user_id = ?", (user_id,))
        if not profile:
            raise ValueError("User not found")
        _execute(
            conn,
            """INSERT INTO daily_activity (user_id, activity_date, minutes, session_count)
               VALUES (?, ?, ?, 1)
               ON CONFLICT (user_id, activity_date) DO UPDATE SET
                   minutes = daily_activity.minutes + excluded.minutes,
                   session_count = daily_activity.session_count + 1""",
            (user_id, day.isoformat(), minutes),
        )
        _execute(
            conn,
            "UPDATE profiles SET total_focus_minutes = total_focus_minutes + ? WHERE user_id = ?",
            (minutes, user_id),
        )
        row = _fetch_one(
            conn,
            """SELECT activity_date, minutes, session_count FROM daily_activity
               WHERE user_id = ? AND activity_date = ?""",
            (user_id, day.isoformat()),
        )
        conn.commit()
    finally:
        conn.close()

    session_changed.send(user_id, day=day, minutes=minutes)
    return {
        "date": day,
        "minutes": row["minutes"],
        "session_count": row["session_count"],
    }


def query_daily_activity(user_id: str, start_date: date, end_date: date) -> list[DailyActivityRecord]:
    """Day rows for `user_id` with start_date <= date <= end_date, oldest first."""
    conn = get_connection()
    try:
        rows = _fetch_all(
            conn,
            """SELECT activity_date, minutes, session_count FROM daily_activity
               WHERE user_id = ? AND activity_date >= ? AND activity_date <= ?
               ORDER BY activity_date""",
            (user_id, start_date.isoformat(), end_date.isoformat()),
        )
    finally:
        conn.close()
    return [
        DailyActivityRecord(
            date=date.fromisoformat(r["activity_date"]),
            minutes=r["minutes"],
            session_count=r["session_count"],
        )
        for r in rows
    ]


async def fetch_daily_activity(user_id: str, start_date: date, end_date: date) -> list[DailyActivityRecord]:
    """Non-blocking range query for the refresh loop."""
    return await asyncio.to_thread(query_daily_activity, user_id, start_date, end_date)
