"""Stat decay since the last care action.

Stats are persisted as of ``last_care_at`` and decayed lazily on read,
so no background job ever has to touch pet rows.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

from copet.simulation.models import STAT_MAX, STAT_MIN, PetStats, StatType

# Points lost per hour without care
DECAY_RATES: dict[StatType, float] = {
    StatType.HUNGER: 5,
    StatType.HAPPINESS: 3,
    StatType.ENERGY: 4,
    StatType.CLEANLINESS: 2,
}


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return math.floor(value + 0.5)


def clamp_stat(value: float) -> int:
    """Clamp a stat into [0, 100] and round it."""
    return max(STAT_MIN, min(STAT_MAX, round_half_up(value)))


def decay(stat: StatType, last_care_at: datetime, current_value: int, now: datetime) -> int:
    """Amount ``stat`` has decayed between ``last_care_at`` and ``now``.

    Never negative (clock skew yields 0) and never more than ``current_value``.
    """
    elapsed = (ensure_utc(now) - ensure_utc(last_care_at)).total_seconds()
    if elapsed <= 0 or current_value <= 0:
        return 0

    hours = elapsed / 3600
    amount = min(hours * DECAY_RATES[stat], current_value)
    return min(round_half_up(amount), current_value)


def current_stats(stats: PetStats, last_care_at: datetime | None, now: datetime) -> PetStats:
    """Re-derive live stats from the persisted snapshot."""
    if last_care_at is None:
        return stats

    def _decayed(stat: StatType, value: int) -> int:
        return value - decay(stat, last_care_at, value, now)

    return PetStats(
        hunger=_decayed(StatType.HUNGER, stats.hunger),
        happiness=_decayed(StatType.HAPPINESS, stats.happiness),
        energy=_decayed(StatType.ENERGY, stats.energy),
        cleanliness=(
            None if stats.cleanliness is None
            else _decayed(StatType.CLEANLINESS, stats.cleanliness)
        ),
    )


def stat_status(value: int) -> str:
    """Classify a stat value for display."""
    if value <= 25:
        return "critical"
    if value <= 50:
        return "low"
    if value <= 75:
        return "moderate"
    return "healthy"


def needed_actions(stats: PetStats) -> list[str]:
    """Care actions the pet is asking for right now."""
    needed = []
    if stats.hunger < 50:
        needed.append("feed")
    if stats.happiness < 50:
        needed.append("play")
    if stats.energy < 30:
        needed.append("sleep")
    if stats.cleanliness is not None and stats.cleanliness < 50:
        needed.append("groom")
    return needed
