"""
Check-in Streak Service

Counts consecutive calendar days of check-ins ending today.

Policy: a streak only exists if today has a check-in. A member who checked
in every day up to yesterday but not yet today has a streak of 0. Product
has not confirmed whether "yesterday" should keep the streak alive, so the
calculation follows the established behaviour.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Union


def _as_date(value: Union[date, datetime]) -> date:
    # datetime is a subclass of date; strip time-of-day explicitly.
    if isinstance(value, datetime):
        return value.date()
    return value


def calculate_current_streak(
    check_in_dates: Iterable[Union[date, datetime]],
    now: Union[date, datetime],
) -> int:
    """
    Current consecutive-day streak.

    Args:
        check_in_dates: Check-in dates, newest first, already unique per day.
            The order is trusted; nothing is re-sorted.
        now: Reference instant; only its calendar date is used.

    Returns:
        0 if the newest date is not today, otherwise the number of
        consecutive days walking back from today until the first gap.
    """
    today = _as_date(now)
    streak = 0
    previous = None

    for value in check_in_dates:
        current = _as_date(value)
        if previous is None:
            if (today - current).days != 0:
                return 0
            streak = 1
        elif previous - current == timedelta(days=1):
            streak += 1
        else:
            break
        previous = current

    return streak
