"""Pet message text selection."""

from datetime import timedelta

import pytest

from copet.pets.message_service import compose_message, create_message, message_type_after_care
from copet.simulation.models import PetStats


class TestComposeMessage:
    def test_status_hungry_first(self):
        assert "hungry" in compose_message("status", PetStats(hunger=10, happiness=10))

    def test_status_lonely(self):
        assert "lonely" in compose_message("status", PetStats(happiness=20))

    def test_status_sleepy(self):
        assert "sleepy" in compose_message("status", PetStats(energy=20))

    def test_status_happy(self):
        assert "feeling great" in compose_message("status", PetStats())

    def test_reminder(self):
        assert "feed me" in compose_message("reminder", PetStats(hunger=35))
        assert compose_message("reminder", PetStats()) == "Come play with me!"

    def test_celebration_and_miss_you(self):
        assert compose_message("celebration", PetStats()).startswith("Yay!")
        assert "miss" in compose_message("miss_you", PetStats())


class TestTypeAfterCare:
    def test_evolution_celebrates(self):
        assert message_type_after_care(PetStats(hunger=5), co_op_bonus=False, evolved=True) == "celebration"

    def test_coop_celebrates(self):
        assert message_type_after_care(PetStats(), co_op_bonus=True, evolved=False) == "celebration"

    def test_low_stats_remind(self):
        assert message_type_after_care(PetStats(happiness=39), co_op_bonus=False, evolved=False) == "reminder"

    def test_otherwise_status(self):
        assert message_type_after_care(PetStats(), co_op_bonus=False, evolved=False) == "status"

    def test_a_day_apart_misses_you(self):
        apart = timedelta(hours=25)
        assert message_type_after_care(PetStats(hunger=10), False, False, time_apart=apart) == "miss_you"
        assert message_type_after_care(PetStats(), False, False, time_apart=timedelta(hours=24)) == "miss_you"

    def test_short_gap_is_not_missed(self):
        apart = timedelta(hours=23)
        assert message_type_after_care(PetStats(), False, False, time_apart=apart) == "status"

    def test_celebration_beats_miss_you(self):
        apart = timedelta(days=3)
        assert message_type_after_care(PetStats(), True, False, time_apart=apart) == "celebration"


@pytest.mark.asyncio
async def test_unknown_message_type_rejected():
    with pytest.raises(ValueError, match="Unknown message type"):
        await create_message(None, 1, "gossip", PetStats())
