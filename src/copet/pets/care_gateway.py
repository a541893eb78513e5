"""Care action gateway: the only writer of pet state.

One care action is one transaction:
1. Lock the pet row and check couple membership
2. Re-derive stats from the stored snapshot (decay)
3. Evaluate the care rules; a cooldown rejection writes nothing
4. Apply stats, XP, combo, streak, cooldown timestamp, personality
5. Append the audit row, run the evolution engine, record milestones
6. Commit; a lost race surfaces as ConcurrencyConflictError

Messages and realtime events are sent after the commit and can never
undo it.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from copet.db.models import CareAction, Pet
from copet.pets import message_service, milestone_service
from copet.pets.pet_service import current_streak, get_pet, pet_view, require_membership, to_state
from copet.redis_client import couple_channel, publish_event
from copet.simulation import care_rules, evolution, personality
from copet.simulation.errors import ConcurrencyConflictError, SimulationError
from copet.simulation.evolution import EvolutionEvent
from copet.simulation.models import ActionType, PetStats, Stage
from copet.simulation.stat_clock import ensure_utc
from copet.simulation.streak import advance_streak, care_day

logger = logging.getLogger(__name__)


@dataclass
class CareResult:
    accepted: bool
    action: ActionType
    pet: dict
    xp_awarded: int = 0
    co_op_bonus: bool = False
    combo: int = 0
    evolution: EvolutionEvent | None = None
    reason: str | None = None
    cooldown_remaining_seconds: int = 0

    @property
    def evolved(self) -> bool:
        return self.evolution is not None


@asynccontextmanager
async def conflicts_as_retryable(db: AsyncSession, pet_id: int) -> AsyncIterator[None]:
    """Turn a lost optimistic race (or milestone insert race) into a retryable error."""
    try:
        yield
    except (StaleDataError, IntegrityError) as exc:
        await db.rollback()
        logger.info("Concurrent update on pet %s: %s", pet_id, type(exc).__name__)
        raise ConcurrencyConflictError("Pet was updated concurrently. Please retry.") from exc


async def lock_pet_for_member(db: AsyncSession, user_id: int, pet_id: int) -> tuple[Pet, int]:
    try:
        pet = await get_pet(db, pet_id, for_update=True)
        couple = await require_membership(db, pet, user_id)
    except SimulationError:
        await db.rollback()
        raise
    return pet, couple.id


async def _partner_last_action_at(db: AsyncSession, pet_id: int, user_id: int) -> datetime | None:
    """Most recent accepted action on this pet by anyone other than ``user_id``."""
    result = await db.execute(
        select(func.max(CareAction.created_at)).where(
            CareAction.pet_id == pet_id,
            CareAction.user_id != user_id,
        )
    )
    last = result.scalar_one_or_none()
    return ensure_utc(last) if last is not None else None


async def _evolve(
    db: AsyncSession,
    pet: Pet,
    user_id: int | None,
    now: datetime,
) -> EvolutionEvent | None:
    """Run the evolution engine on ``pet`` inside the current transaction."""
    event = evolution.evaluate(Stage(pet.stage), pet.xp, current_streak(pet, now))
    if event is None:
        return None

    pet.stage = event.new_stage.value
    pet.updated_at = now
    await milestone_service.record_stage_milestones(db, pet.couple_id, event, now, celebrated_by=user_id)
    logger.info("Pet %s evolved %s -> %s", pet.id, event.previous_stage.value, event.new_stage.value)
    return event


def _apply_outcome(pet: Pet, outcome: care_rules.CareOutcome, user_id: int, now: datetime) -> None:
    stats = outcome.new_stats
    pet.hunger = stats.hunger
    pet.happiness = stats.happiness
    pet.energy = stats.energy
    pet.cleanliness = stats.cleanliness

    pet.xp += outcome.xp_awarded
    pet.combo_count = outcome.combo

    today = care_day(now)
    pet.streak_days = advance_streak(pet.streak_days, pet.last_care_date, today)
    pet.longest_streak = max(pet.longest_streak, pet.streak_days)
    if pet.last_care_date is None or today > pet.last_care_date:
        pet.last_care_date = today

    # JSON columns are reassigned so the ORM sees the change
    timestamps = dict(pet.action_timestamps or {})
    timestamps[outcome.action.value] = now.isoformat()
    pet.action_timestamps = timestamps

    counts = dict(pet.action_counts or {})
    counts[outcome.action.value] = counts.get(outcome.action.value, 0) + 1
    pet.action_counts = counts
    pet.personality = personality.recompute(counts)

    pet.last_care_at = now
    pet.last_actor_id = user_id
    pet.updated_at = now


async def perform_care_action(
    db: AsyncSession,
    redis: object,
    user_id: int,
    pet_id: int,
    action_type: str,
    now: datetime | None = None,
) -> CareResult:
    """Apply one care action for ``user_id`` to ``pet_id``.

    Raises InvalidActionError, PetNotFoundError, NotPetOwnerError or
    ConcurrencyConflictError. A cooldown is not an error: the returned
    result has ``accepted=False`` and nothing is persisted.
    """
    now = ensure_utc(now or datetime.now(timezone.utc))
    action = care_rules.parse_action(action_type)

    pet, couple_id = await lock_pet_for_member(db, user_id, pet_id)
    state = to_state(pet, now)
    partner_last = await _partner_last_action_at(db, pet.id, user_id)

    outcome = care_rules.apply_care(action, state, now, partner_last_action_at=partner_last)
    if not outcome.accepted:
        snapshot = pet_view(pet, now)
        await db.rollback()
        return CareResult(
            accepted=False,
            action=action,
            pet=snapshot,
            reason=outcome.reason,
            cooldown_remaining_seconds=outcome.cooldown_remaining_seconds,
        )

    async with conflicts_as_retryable(db, pet_id):
        _apply_outcome(pet, outcome, user_id, now)
        db.add(CareAction(
            pet_id=pet.id,
            user_id=user_id,
            action_type=action.value,
            xp_awarded=outcome.xp_awarded,
            co_op_bonus=outcome.co_op_bonus,
            combo=outcome.combo,
            created_at=now,
        ))
        await milestone_service.record_milestone(
            db, couple_id, milestone_service.FIRST_CARE, now, celebrated_by=user_id,
        )
        await milestone_service.record_streak_milestones(
            db, couple_id, pet.streak_days, now, celebrated_by=user_id,
        )
        event = await _evolve(db, pet, user_id, now)
        await db.commit()

    logger.info(
        "User %s performed %s on pet %s (+%s XP, combo %s, co-op %s)",
        user_id, action.value, pet.id, outcome.xp_awarded, outcome.combo, outcome.co_op_bonus,
    )
    result = CareResult(
        accepted=True,
        action=action,
        pet=pet_view(pet, now),
        xp_awarded=outcome.xp_awarded,
        co_op_bonus=outcome.co_op_bonus,
        combo=outcome.combo,
        evolution=event,
    )

    time_apart = now - state.last_care_at if state.last_care_at else None
    await _after_care(db, redis, pet.id, couple_id, user_id, outcome, event, now, time_apart)
    return result


async def _after_care(
    db: AsyncSession,
    redis: object,
    pet_id: int,
    couple_id: int,
    user_id: int,
    outcome: care_rules.CareOutcome,
    event: EvolutionEvent | None,
    now: datetime,
    time_apart: timedelta | None = None,
) -> None:
    """Post-commit side effects. Failures are logged and never propagate."""
    message_type = message_service.message_type_after_care(
        outcome.new_stats, outcome.co_op_bonus, evolved=event is not None, time_apart=time_apart,
    )
    await _send_message(db, pet_id, message_type, outcome.new_stats, now)

    await publish_event(redis, couple_channel(couple_id), "care_action", {
        "pet_id": pet_id,
        "user_id": user_id,
        "action_type": outcome.action.value,
        "xp_awarded": outcome.xp_awarded,
        "co_op_bonus": outcome.co_op_bonus,
        "combo": outcome.combo,
        "stats": outcome.new_stats.as_dict(),
    })
    if event is not None:
        await _publish_evolution(redis, pet_id, couple_id, event)


async def _send_message(
    db: AsyncSession,
    pet_id: int,
    message_type: str,
    stats: PetStats,
    now: datetime,
) -> None:
    try:
        await message_service.create_message(db, pet_id, message_type, stats, now)
    except Exception:
        logger.warning("Failed to write %s message for pet %s", message_type, pet_id, exc_info=True)
        await db.rollback()


async def _publish_evolution(redis: object, pet_id: int, couple_id: int, event: EvolutionEvent) -> None:
    await publish_event(redis, couple_channel(couple_id), "pet_evolved", {
        "pet_id": pet_id,
        "previous_stage": event.previous_stage.value,
        "new_stage": event.new_stage.value,
        "milestone_type": event.milestone_type,
    })


async def check_evolution(
    db: AsyncSession,
    redis: object,
    user_id: int,
    pet_id: int,
    now: datetime | None = None,
) -> dict:
    """Evaluate evolution on demand. Idempotent: evolves at most one stage."""
    now = ensure_utc(now or datetime.now(timezone.utc))
    pet, couple_id = await lock_pet_for_member(db, user_id, pet_id)
    previous_stage = pet.stage

    async with conflicts_as_retryable(db, pet_id):
        event = await _evolve(db, pet, user_id, now)
        await db.commit()

    # The message write may roll back and expire ``pet``; nothing reads it afterwards
    snapshot = pet_view(pet, now)
    stats = to_state(pet, now).stats
    if event is not None:
        await _send_message(db, pet_id, "celebration", stats, now)
        await _publish_evolution(redis, pet_id, couple_id, event)

    return {
        "has_evolved": event is not None,
        "previous_stage": previous_stage,
        "current_stage": snapshot["stage"],
        "pet": snapshot,
    }


async def award_game_xp(
    db: AsyncSession,
    pet: Pet,
    amount: int,
    now: datetime,
    user_id: int | None = None,
) -> EvolutionEvent | None:
    """Credit mini-game XP and run the evolution engine.

    Runs inside the caller's transaction; the caller commits.
    """
    if amount < 0:
        raise ValueError("XP awards cannot be negative")
    pet.xp += amount
    pet.updated_at = now
    return await _evolve(db, pet, user_id, now)
