"""On-demand evolution checks and milestone idempotency."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select, text

from copet.db.models import EvolutionMilestone, PetMessage
from copet.pets import care_gateway, milestone_service
from copet.pets.care_gateway import award_game_xp, check_evolution
from copet.pets.pet_service import get_pet
from copet.simulation.errors import NotPetOwnerError
from tests.conftest import OUTSIDER, USER_A, USER_B, make_couple_with_pet

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_egg_with_enough_xp_and_streak_evolves_once(db_session, fake_redis):
    pet = await make_couple_with_pet(db_session, xp=100, streak_days=3, last_care_date=date(2026, 3, 10))

    first = await check_evolution(db_session, fake_redis, USER_A, pet.id, now=NOW)
    second = await check_evolution(db_session, fake_redis, USER_B, pet.id, now=NOW)

    assert first["has_evolved"] is True
    assert first["previous_stage"] == "egg"
    assert first["current_stage"] == "baby"
    assert second["has_evolved"] is False
    assert second["previous_stage"] == "baby"
    assert second["current_stage"] == "baby"

    count = (await db_session.execute(
        select(func.count()).select_from(EvolutionMilestone).where(EvolutionMilestone.couple_id == pet.couple_id)
    )).scalar_one()
    assert count == 2

    messages = (await db_session.execute(select(PetMessage.message_type))).scalars().all()
    assert messages == ["celebration"]


@pytest.mark.asyncio
async def test_insufficient_streak_is_a_no_op(db_session, fake_redis):
    pet = await make_couple_with_pet(db_session, xp=5000, streak_days=2, last_care_date=date(2026, 3, 10))

    result = await check_evolution(db_session, fake_redis, USER_A, pet.id, now=NOW)

    assert result["has_evolved"] is False
    assert result["current_stage"] == "egg"
    assert fake_redis.published == []


@pytest.mark.asyncio
async def test_broken_streak_blocks_evolution(db_session, fake_redis):
    # Stored streak is 30 but nobody cared for the pet for a week
    pet = await make_couple_with_pet(db_session, xp=5000, streak_days=30, last_care_date=date(2026, 3, 3))

    result = await check_evolution(db_session, fake_redis, USER_A, pet.id, now=NOW)

    assert result["has_evolved"] is False
    assert result["pet"]["streak_days"] == 0


@pytest.mark.asyncio
async def test_advances_one_stage_per_check(db_session, fake_redis):
    pet = await make_couple_with_pet(db_session, xp=10_000, streak_days=120, last_care_date=date(2026, 3, 10))

    stages = []
    for _ in range(7):
        result = await check_evolution(db_session, fake_redis, USER_A, pet.id, now=NOW)
        stages.append(result["current_stage"])

    assert stages == ["baby", "child", "teen", "adult", "elder", "elder", "elder"]


@pytest.mark.asyncio
async def test_outsider_cannot_check(db_session, fake_redis):
    pet = await make_couple_with_pet(db_session)
    with pytest.raises(NotPetOwnerError):
        await check_evolution(db_session, fake_redis, OUTSIDER, pet.id, now=NOW)


@pytest.mark.asyncio
async def test_existing_milestone_is_not_duplicated(db_session, fake_redis):
    pet = await make_couple_with_pet(db_session, xp=100, streak_days=3, last_care_date=date(2026, 3, 10))
    await milestone_service.record_milestone(db_session, pet.couple_id, "three_day_streak", NOW)
    await db_session.commit()

    result = await check_evolution(db_session, fake_redis, USER_A, pet.id, now=NOW)

    assert result["has_evolved"] is True
    milestones = await milestone_service.list_milestones(db_session, pet.couple_id)
    assert [m.milestone_type for m in milestones] == ["three_day_streak", "first_evolution"]


@pytest.mark.asyncio
async def test_record_milestone_returns_none_when_present(db_session):
    pet = await make_couple_with_pet(db_session)
    created = await milestone_service.record_milestone(db_session, pet.couple_id, "first_care", NOW)
    duplicate = await milestone_service.record_milestone(db_session, pet.couple_id, "first_care", NOW)
    assert created is not None
    assert duplicate is None


@pytest.mark.asyncio
async def test_award_game_xp_can_evolve(db_session):
    pet = await make_couple_with_pet(db_session, xp=60, streak_days=3, last_care_date=date(2026, 3, 10))
    pet = await get_pet(db_session, pet.id, for_update=True)

    event = await award_game_xp(db_session, pet, 50, NOW, user_id=USER_A)
    await db_session.commit()

    assert pet.xp == 110
    assert event is not None
    assert pet.stage == "baby"


@pytest.mark.asyncio
async def test_award_game_xp_rejects_negative(db_session):
    pet = await make_couple_with_pet(db_session)
    with pytest.raises(ValueError, match="negative"):
        await award_game_xp(db_session, pet, -5, NOW)


@pytest.mark.asyncio
async def test_failed_celebration_message_keeps_evolution(db_session, fake_redis, monkeypatch):
    pet = await make_couple_with_pet(db_session, xp=100, streak_days=3, last_care_date=date(2026, 3, 10))
    pet_id = pet.id

    async def _message_store_down(db, *args, **kwargs):
        await db.execute(text("SELECT 1"))
        raise RuntimeError("message store down")

    monkeypatch.setattr(care_gateway.message_service, "create_message", _message_store_down)

    result = await check_evolution(db_session, fake_redis, USER_A, pet_id, now=NOW)

    assert result["has_evolved"] is True
    assert result["current_stage"] == "baby"
    assert result["pet"]["stage"] == "baby"

    db_session.expire_all()
    stored = await get_pet(db_session, pet_id)
    assert stored.stage == "baby"
    events = [json.loads(msg)["type"] for _, msg in fake_redis.published]
    assert events == ["pet_evolved"]


@pytest.mark.asyncio
async def test_reaching_elder_records_max_stage(db_session, fake_redis):
    pet = await make_couple_with_pet(
        db_session, stage="adult", xp=10_000, streak_days=100, last_care_date=date(2026, 3, 10),
    )

    result = await check_evolution(db_session, fake_redis, USER_A, pet.id, now=NOW)

    assert result["current_stage"] == "elder"
    milestones = await milestone_service.list_milestones(db_session, pet.couple_id)
    assert {m.milestone_type: m.evolution_unlocked for m in milestones} == {
        "hundred_day_streak": "elder",
        "max_stage": "elder",
    }
