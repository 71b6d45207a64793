from datetime import date
from typing import Optional

from studystreak.calculator import average_minutes_per_day


class AverageMinutesRecalculator:
    """
    Keeps average minutes per day in step with the lifetime total.

    The lifetime total comes from the profile aggregate, not the daily series,
    so the average can update as soon as that total moves without waiting for
    a streak refresh. Recomputes only when the total, the signup date or the
    calendar day changes.
    """

    def __init__(self):
        self._inputs: Optional[tuple[int, date, date]] = None
        self._value = 0
        self.recomputations = 0

    @property
    def value(self) -> int:
        return self._value

    def update(self, lifetime_total_minutes: int, signup_date: date, today: date) -> int:
        inputs = (lifetime_total_minutes, signup_date, today)
        if inputs != self._inputs:
            self._value = average_minutes_per_day(lifetime_total_minutes, signup_date, today)
            self._inputs = inputs
            self.recomputations += 1
        return self._value

    def reset(self) -> None:
        self._inputs = None
        self._value = 0
