"""Consecutive-care-day streak, maintained incrementally.

The counter is updated in the same transaction as every accepted care
action, so reading it never requires walking the action log.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from copet.simulation.stat_clock import ensure_utc


def care_day(dt: datetime) -> date:
    """Calendar day (UTC) a care action counts toward."""
    return ensure_utc(dt).astimezone(timezone.utc).date()


def advance_streak(streak_days: int, last_care_date: date | None, today: date) -> int:
    """Streak after an accepted action on ``today``."""
    if last_care_date is None:
        return 1
    if last_care_date == today:
        return max(streak_days, 1)
    if last_care_date == today - timedelta(days=1):
        return streak_days + 1
    if last_care_date > today:
        # Clock skew: keep the counter, never go backwards
        return max(streak_days, 1)
    return 1


def effective_streak(streak_days: int, last_care_date: date | None, today: date) -> int:
    """Stored streak, or 0 once a whole day has passed without care."""
    if last_care_date is None:
        return streak_days
    if today - last_care_date > timedelta(days=1):
        return 0
    return streak_days
