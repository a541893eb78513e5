"""Couple linking, pet adoption, and pet snapshots.

Rules:
- A couple is stored once, with user1_id < user2_id
- A user belongs to at most one active couple
- A couple raises at most one active pet
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from copet.db.models import CareAction, Couple, Pet, User
from copet.simulation import care_rules, evolution, personality, stat_clock
from copet.simulation.errors import CoupleError, NotPetOwnerError, PetNotFoundError
from copet.simulation.models import ActionType, PetState, PetStats, Species, Stage
from copet.simulation.streak import care_day, effective_streak

logger = logging.getLogger(__name__)

MAX_PET_NAME_LENGTH = 64


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_or_create_user(db: AsyncSession, user_id: int) -> User:
    """Mirror an externally authenticated user locally."""
    user = await db.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)
        await db.flush()
    return user


async def get_active_couple(db: AsyncSession, user_id: int) -> Couple | None:
    """The user's active couple, if any."""
    result = await db.execute(
        select(Couple).where(
            Couple.is_active.is_(True),
            or_(Couple.user1_id == user_id, Couple.user2_id == user_id),
        )
    )
    return result.scalars().first()


async def get_pet(db: AsyncSession, pet_id: int, *, for_update: bool = False) -> Pet:
    """Load an active pet, optionally row-locked for the rest of the transaction."""
    stmt = select(Pet).where(Pet.id == pet_id, Pet.is_active.is_(True))
    if for_update:
        # populate_existing so a lock acquired after a wait sees the winner's row
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    pet = result.scalar_one_or_none()
    if pet is None:
        raise PetNotFoundError(f"Pet {pet_id} not found")
    return pet


async def require_membership(db: AsyncSession, pet: Pet, user_id: int) -> Couple:
    """Return the pet's couple, or raise NotPetOwnerError for outsiders."""
    couple = await db.get(Couple, pet.couple_id)
    if couple is None or not couple.is_active or not couple.has_member(user_id):
        logger.warning("User %s attempted to act on pet %s they do not own", user_id, pet.id)
        raise NotPetOwnerError("You are not a caretaker of this pet")
    return couple


async def get_pet_for_member(db: AsyncSession, user_id: int, pet_id: int) -> Pet:
    pet = await get_pet(db, pet_id)
    await require_membership(db, pet, user_id)
    return pet


async def has_active_pet(db: AsyncSession, couple_id: int) -> bool:
    result = await db.execute(
        select(Pet.id).where(Pet.couple_id == couple_id, Pet.is_active.is_(True))
    )
    return result.scalar_one_or_none() is not None


# ---------------------------------------------------------------------------
# Couples & adoption
# ---------------------------------------------------------------------------


async def create_couple(db: AsyncSession, user_id: int, partner_id: int) -> Couple:
    """Link two users as co-parents."""
    if user_id == partner_id:
        raise CoupleError("You cannot pair with yourself")

    for uid in (user_id, partner_id):
        if await get_active_couple(db, uid) is not None:
            who = "You are" if uid == user_id else "Your partner is"
            raise CoupleError(f"{who} already in a couple")

    await get_or_create_user(db, user_id)
    await get_or_create_user(db, partner_id)

    couple = Couple(
        user1_id=min(user_id, partner_id),
        user2_id=max(user_id, partner_id),
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(couple)
    await db.commit()

    logger.info("Couple %s created for users %s and %s", couple.id, couple.user1_id, couple.user2_id)
    return couple


async def adopt_pet(
    db: AsyncSession,
    user_id: int,
    name: str,
    species: str,
    color: str = "default",
) -> Pet:
    """Adopt the couple's pet. It starts as a full-stat egg."""
    name = name.strip()
    if not name or len(name) > MAX_PET_NAME_LENGTH:
        raise CoupleError(f"Pet name must be 1-{MAX_PET_NAME_LENGTH} characters")
    try:
        species_value = Species(species).value
    except ValueError:
        valid = ", ".join(s.value for s in Species)
        raise CoupleError(f"Invalid species '{species}'. Must be one of: {valid}") from None

    couple = await get_active_couple(db, user_id)
    if couple is None:
        raise CoupleError("Pair with your partner before adopting a pet")

    if await has_active_pet(db, couple.id):
        raise CoupleError("Your couple already has a pet")

    now = datetime.now(timezone.utc)
    pet = Pet(
        couple_id=couple.id,
        name=name,
        species=species_value,
        color=color,
        stage=Stage.EGG.value,
        hunger=100,
        happiness=100,
        energy=100,
        cleanliness=100,
        personality=dict(personality.DEFAULT_TRAITS),
        action_counts={},
        action_timestamps={},
        last_care_at=now,
        created_at=now,
        updated_at=now,
    )
    db.add(pet)
    try:
        await db.commit()
    except IntegrityError:
        # A partner adopted at the same moment; one active pet per couple
        await db.rollback()
        raise CoupleError("Your couple already has a pet") from None

    logger.info("Couple %s adopted pet %s (%s)", couple.id, pet.id, species_value)
    return pet


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def stored_stats(pet: Pet) -> PetStats:
    return PetStats(
        hunger=pet.hunger,
        happiness=pet.happiness,
        energy=pet.energy,
        cleanliness=pet.cleanliness,
    )


def action_timestamps(pet: Pet) -> dict[str, datetime]:
    """Decode the per-action last-accepted timestamps stored as ISO strings."""
    decoded: dict[str, datetime] = {}
    for action, value in (pet.action_timestamps or {}).items():
        if value:
            decoded[action] = stat_clock.ensure_utc(datetime.fromisoformat(value))
    return decoded


def to_state(pet: Pet, now: datetime) -> PetState:
    """Rule-engine view of the pet with stats decayed to ``now``."""
    last_care_at = stat_clock.ensure_utc(pet.last_care_at) if pet.last_care_at else None
    return PetState(
        stats=stat_clock.current_stats(stored_stats(pet), last_care_at, now),
        stage=Stage(pet.stage),
        xp=pet.xp,
        streak_days=pet.streak_days,
        last_care_date=pet.last_care_date,
        combo_count=pet.combo_count,
        last_care_at=last_care_at,
        action_timestamps=action_timestamps(pet),
    )


def current_streak(pet: Pet, now: datetime) -> int:
    return effective_streak(pet.streak_days, pet.last_care_date, care_day(now))


def _progress_view(stage: Stage, xp: int, streak: int) -> dict:
    progress = evolution.evolution_progress(stage, xp, streak)
    for key in ("current_stage", "next_stage"):
        if progress[key] is not None:
            progress[key] = progress[key].value
    return progress


def pet_view(pet: Pet, now: datetime | None = None) -> dict:
    """Client snapshot: live-decayed stats, cooldowns, needs, personality."""
    now = stat_clock.ensure_utc(now or datetime.now(timezone.utc))
    state = to_state(pet, now)
    stats = state.stats.as_dict()
    streak = current_streak(pet, now)
    traits = pet.personality or dict(personality.DEFAULT_TRAITS)

    cooldowns = {
        action.value: care_rules.cooldown_remaining(action, state.action_timestamps.get(action.value), now)
        for action in ActionType
    }

    return {
        "id": pet.id,
        "couple_id": pet.couple_id,
        "name": pet.name,
        "species": pet.species,
        "color": pet.color,
        "stage": pet.stage,
        "stats": stats,
        "stat_status": {k: stat_clock.stat_status(v) for k, v in stats.items() if v is not None},
        "needed_actions": stat_clock.needed_actions(state.stats),
        "xp": pet.xp,
        "streak_days": streak,
        "longest_streak": pet.longest_streak,
        "combo_count": pet.combo_count,
        "personality": traits,
        "dominant_trait": personality.dominant(traits).value,
        "cooldowns": cooldowns,
        "evolution": _progress_view(state.stage, pet.xp, streak),
        "last_care_at": state.last_care_at,
        "created_at": pet.created_at,
    }


async def list_care_actions(
    db: AsyncSession,
    pet_id: int,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[CareAction], int]:
    """Audit log page, newest first, with the total count."""
    total_result = await db.execute(
        select(func.count()).select_from(CareAction).where(CareAction.pet_id == pet_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(CareAction)
        .where(CareAction.pet_id == pet_id)
        .order_by(CareAction.created_at.desc(), CareAction.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total
