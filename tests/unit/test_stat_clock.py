"""Stat decay tests: rates, clamping, clock skew."""

from datetime import datetime, timedelta, timezone

import pytest

from copet.simulation.models import PetStats, StatType
from copet.simulation.stat_clock import (
    clamp_stat,
    current_stats,
    decay,
    ensure_utc,
    needed_actions,
    round_half_up,
    stat_status,
)

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestDecay:
    @pytest.mark.parametrize(
        ("stat", "hours", "expected"),
        [
            (StatType.HUNGER, 1, 5),
            (StatType.HAPPINESS, 1, 3),
            (StatType.ENERGY, 1, 4),
            (StatType.CLEANLINESS, 1, 2),
            (StatType.HUNGER, 2.5, 13),  # 12.5 rounds half up
            (StatType.HAPPINESS, 0.5, 2),  # 1.5 rounds half up
        ],
    )
    def test_rates_per_hour(self, stat, hours, expected):
        assert decay(stat, T0, 100, T0 + timedelta(hours=hours)) == expected

    def test_never_exceeds_current_value(self):
        assert decay(StatType.HUNGER, T0, 30, T0 + timedelta(days=3)) == 30

    def test_zero_value_stays_zero(self):
        assert decay(StatType.ENERGY, T0, 0, T0 + timedelta(hours=10)) == 0

    def test_clock_skew_yields_no_decay(self):
        assert decay(StatType.HUNGER, T0, 80, T0 - timedelta(hours=2)) == 0

    def test_same_instant_yields_no_decay(self):
        assert decay(StatType.HUNGER, T0, 80, T0) == 0

    def test_naive_timestamps_are_utc(self):
        naive = T0.replace(tzinfo=None)
        assert decay(StatType.HUNGER, naive, 100, T0 + timedelta(hours=1)) == 5

    @pytest.mark.parametrize("value", [0, 1, 25, 50, 99, 100])
    @pytest.mark.parametrize("hours", [-5, 0, 0.1, 1, 7, 48, 1000])
    def test_bounded_by_value_and_non_negative(self, value, hours):
        for stat in StatType:
            amount = decay(stat, T0, value, T0 + timedelta(hours=hours))
            assert 0 <= amount <= value


class TestCurrentStats:
    def test_applies_each_rate(self):
        stats = PetStats(hunger=80, happiness=80, energy=80, cleanliness=80)
        live = current_stats(stats, T0, T0 + timedelta(hours=2))
        assert live == PetStats(hunger=70, happiness=74, energy=72, cleanliness=76)

    def test_missing_cleanliness_stays_missing(self):
        live = current_stats(PetStats(cleanliness=None), T0, T0 + timedelta(hours=2))
        assert live.cleanliness is None

    def test_never_cared_for_is_unchanged(self):
        stats = PetStats(hunger=40)
        assert current_stats(stats, None, T0) is stats


class TestHelpers:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2
        assert round_half_up(0.5) == 1

    def test_clamp_stat(self):
        assert clamp_stat(-12) == 0
        assert clamp_stat(140) == 100
        assert clamp_stat(55.5) == 56

    def test_ensure_utc_keeps_aware(self):
        assert ensure_utc(T0) is T0

    @pytest.mark.parametrize(
        ("value", "status"),
        [(0, "critical"), (25, "critical"), (26, "low"), (50, "low"), (75, "moderate"), (76, "healthy")],
    )
    def test_stat_status(self, value, status):
        assert stat_status(value) == status

    def test_needed_actions(self):
        stats = PetStats(hunger=20, happiness=60, energy=10, cleanliness=45)
        assert needed_actions(stats) == ["feed", "sleep", "groom"]

    def test_healthy_pet_needs_nothing(self):
        assert needed_actions(PetStats()) == []
