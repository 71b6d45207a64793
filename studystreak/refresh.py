"""
Live refresh loop for one user's streak snapshot.

A controller polls the daily activity store on a fixed interval and also
refreshes whenever a `session_changed` signal arrives for its user. Only one
fetch runs at a time; triggers that arrive meanwhile join the in-flight cycle.
Derived state is replaced as a whole after each successful cycle, and a
failed fetch leaves the previous state in place with `error` set.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, NamedTuple, Optional

from studystreak import config
from studystreak.averages import AverageMinutesRecalculator
from studystreak.calculator import calculate_streak_stats, streak_change, today_progress
from studystreak.database import fetch_daily_activity, local_today
from studystreak.grid import build_activity_grid
from studystreak.models import ActivityGrid, DailyActivityRecord, StreakSnapshot, StreakStats, TodayProgress
from studystreak.signals import session_changed, streak_changed

logger = logging.getLogger(__name__)

FetchFn = Callable[[str, date, date], Awaitable[list[DailyActivityRecord]]]


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class _Derived(NamedTuple):
    stats: StreakStats
    grid: ActivityGrid
    progress: TodayProgress


class LiveRefreshController:

    def __init__(
        self,
        user_id: str,
        signup_date: date,
        lifetime_total_minutes: int,
        fetch: FetchFn = fetch_daily_activity,
        clock: Callable[[], date] = local_today,
        interval: float = config.REFRESH_INTERVAL_SECONDS,
    ):
        self.user_id = user_id
        self.signup_date = signup_date
        self.lifetime_total_minutes = lifetime_total_minutes
        self.interval = interval
        self.state = RefreshState.IDLE
        self.error: Optional[str] = None
        self.refreshed_at: Optional[datetime] = None
        self.fetch_count = 0
        self.previous_streak = 0

        self._fetch = fetch
        self._clock = clock
        self._averages = AverageMinutesRecalculator()
        self._derived = self._empty_derived()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._subscribed_user: Optional[str] = None
        self._mounted = False
        # bumped on teardown and user switch; cycles from an older generation are discarded
        self._generation = 0

    def _empty_derived(self) -> _Derived:
        today = self._clock()
        return _Derived(StreakStats(), build_activity_grid(today, {}), TodayProgress())

    # -- presentation-facing state --

    @property
    def loading(self) -> bool:
        return self.state == RefreshState.REFRESHING

    @property
    def average_minutes_per_day(self) -> int:
        return self._averages.value

    @property
    def streak_stats(self) -> StreakStats:
        return self._derived.stats.model_copy(update={"average_minutes_per_day": self._averages.value})

    @property
    def activity_grid(self) -> ActivityGrid:
        return self._derived.grid

    @property
    def today_progress(self) -> TodayProgress:
        return self._derived.progress

    def snapshot(self) -> StreakSnapshot:
        return StreakSnapshot(
            user_id=self.user_id,
            streak_stats=self.streak_stats,
            today_progress=self.today_progress,
            loading=self.loading,
            error=self.error,
            previous_streak=self.previous_streak,
            refreshed_at=self.refreshed_at,
        )

    # -- lifecycle --

    def start(self) -> None:
        """Mount: must be called from inside the running event loop."""
        if self._mounted:
            return
        self._loop = asyncio.get_running_loop()
        self._mounted = True
        self._recompute_average()
        self._subscribe()
        self._poll_task = self._loop.create_task(self._poll())
        logger.debug("Started streak refresh for user %s every %ss", self.user_id, self.interval)

    def stop(self) -> None:
        """Unmount: stop polling and ignore any fetch still in flight."""
        self._mounted = False
        self._generation += 1
        self._unsubscribe()
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        self._inflight = None
        self.state = RefreshState.IDLE
        logger.debug("Stopped streak refresh for user %s", self.user_id)

    def set_identity(self, user_id: str, signup_date: date, lifetime_total_minutes: int) -> None:
        """
        Feed new identity inputs. The average updates right away without I/O;
        switching users drops the old user's state and starts a fresh cycle.
        """
        user_changed = user_id != self.user_id
        self.signup_date = signup_date
        self.lifetime_total_minutes = lifetime_total_minutes
        if user_changed:
            self._unsubscribe()
            self.user_id = user_id
            self._generation += 1
            self._inflight = None
            self.state = RefreshState.IDLE
            self.error = None
            self.refreshed_at = None
            self.previous_streak = 0
            self._averages.reset()
            self._derived = self._empty_derived()
            if self._mounted:
                self._subscribe()
        self._recompute_average()
        if user_changed and self._mounted:
            self.refresh()

    def _recompute_average(self) -> None:
        self._averages.update(self.lifetime_total_minutes, self.signup_date, self._clock())

    # -- triggers --

    def refresh(self) -> asyncio.Task:
        """Start a refresh cycle, or return the one already running."""
        if self._inflight is not None and not self._inflight.done():
            return self._inflight
        self._inflight = asyncio.get_running_loop().create_task(self._run_cycle(self._generation))
        return self._inflight

    def notify_session_changed(self) -> None:
        if self._mounted:
            self.refresh()

    def _on_session_changed(self, sender, **kwargs):
        # may be sent from a worker thread
        loop = self._loop
        if loop is None or loop.is_closed() or not self._mounted:
            return
        loop.call_soon_threadsafe(self.notify_session_changed)

    def _subscribe(self) -> None:
        session_changed.connect(self._on_session_changed, sender=self.user_id)
        self._subscribed_user = self.user_id

    def _unsubscribe(self) -> None:
        if self._subscribed_user is not None:
            session_changed.disconnect(self._on_session_changed, sender=self._subscribed_user)
            self._subscribed_user = None

    async def _poll(self):
        while True:
            self.refresh()
            await asyncio.sleep(self.interval)

    async def _run_cycle(self, generation: int) -> None:
        user_id = self.user_id
        today = self._clock()
        start = today - timedelta(days=config.LOOKBACK_DAYS)
        self.state = RefreshState.REFRESHING
        self.fetch_count += 1
        logger.debug("Refreshing streak data for user %s (%s..%s)", user_id, start, today)

        try:
            records = await self._fetch(user_id, start, today)
        except Exception as e:
            if generation != self._generation:
                return
            logger.exception("Streak refresh failed for user %s: %s", user_id, e)
            self.error = str(e) or e.__class__.__name__
            self.state = RefreshState.IDLE
            return

        if generation != self._generation:
            logger.debug("Discarding streak refresh for user %s after teardown", user_id)
            return

        in_range = [r for r in records if start <= r.date <= today]
        if len(in_range) != len(records):
            logger.debug("Dropped %d out-of-range activity records", len(records) - len(in_range))

        self._recompute_average()
        stats = calculate_streak_stats(in_range, self.signup_date, self.lifetime_total_minutes, today)
        previous = self._derived.stats.current_streak
        self._derived = _Derived(
            stats,
            build_activity_grid(today, in_range),
            today_progress(in_range, today),
        )
        self.refreshed_at = datetime.now()
        self.error = None
        self.state = RefreshState.IDLE
        self.previous_streak = previous
        logger.debug("Streak refresh for user %s done: %s", user_id, self._derived.stats)

        change = streak_change(stats.current_streak, previous)
        if change is not None:
            streak_changed.send(user_id, current=stats.current_streak, previous=previous, change=change)
