"""Incremental streak counter tests: day boundaries in UTC."""

from datetime import date, datetime, timedelta, timezone

from copet.simulation.streak import advance_streak, care_day, effective_streak

TODAY = date(2026, 3, 10)


class TestAdvanceStreak:
    def test_first_ever_action(self):
        assert advance_streak(0, None, TODAY) == 1

    def test_same_day_keeps_count(self):
        assert advance_streak(4, TODAY, TODAY) == 4

    def test_same_day_never_zero(self):
        assert advance_streak(0, TODAY, TODAY) == 1

    def test_consecutive_day_increments(self):
        assert advance_streak(4, TODAY - timedelta(days=1), TODAY) == 5

    def test_gap_resets(self):
        assert advance_streak(30, TODAY - timedelta(days=2), TODAY) == 1

    def test_clock_skew_keeps_count(self):
        assert advance_streak(6, TODAY + timedelta(days=1), TODAY) == 6


class TestEffectiveStreak:
    def test_cared_today(self):
        assert effective_streak(7, TODAY, TODAY) == 7

    def test_cared_yesterday_still_alive(self):
        assert effective_streak(7, TODAY - timedelta(days=1), TODAY) == 7

    def test_missed_a_full_day(self):
        assert effective_streak(7, TODAY - timedelta(days=2), TODAY) == 0

    def test_no_care_date(self):
        assert effective_streak(3, None, TODAY) == 3


class TestCareDay:
    def test_utc_midnight_boundary(self):
        before = datetime(2026, 3, 9, 23, 59, 59, tzinfo=timezone.utc)
        after = datetime(2026, 3, 10, 0, 0, 0, tzinfo=timezone.utc)
        assert care_day(before) == date(2026, 3, 9)
        assert care_day(after) == TODAY

    def test_offset_times_normalize_to_utc_date(self):
        # 20:00 at UTC-5 is 01:00 UTC the next day
        local = datetime(2026, 3, 9, 20, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert care_day(local) == TODAY
