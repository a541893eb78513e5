"""In-character pet messages, written after the care transaction commits."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from copet.db.models import PetMessage
from copet.simulation.models import PetStats

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("status", "reminder", "celebration", "miss_you")

# Care arriving after this long apart makes the pet say it missed them
MISS_YOU_AFTER = timedelta(hours=24)


def compose_message(message_type: str, stats: PetStats) -> str:
    """Message text for ``message_type`` given the pet's current stats."""
    if message_type == "status":
        if stats.hunger < 30:
            return "I'm getting hungry... could use a snack!"
        if stats.happiness < 30:
            return "Feeling a bit lonely... play with me?"
        if stats.energy < 30:
            return "So sleepy... maybe a nap would help?"
        return "I'm feeling great! Thanks for taking such good care of me!"
    if message_type == "reminder":
        if stats.hunger < 40:
            return "My tummy is rumbling... feed me please!"
        if stats.happiness < 40:
            return "I need some attention and love!"
        return "Come play with me!"
    if message_type == "celebration":
        return "Yay! We did something amazing together!"
    if message_type == "miss_you":
        return "I miss both of you together! When will we all play again?"
    return "I love my co-parents!"


def message_type_after_care(
    stats: PetStats,
    co_op_bonus: bool,
    evolved: bool,
    time_apart: timedelta | None = None,
) -> str:
    """Pick what the pet says after an accepted care action.

    ``time_apart`` is how long the pet went without care before this action.
    """
    if evolved or co_op_bonus:
        return "celebration"
    if time_apart is not None and time_apart >= MISS_YOU_AFTER:
        return "miss_you"
    if stats.hunger < 40 or stats.happiness < 40:
        return "reminder"
    return "status"


async def create_message(
    db: AsyncSession,
    pet_id: int,
    message_type: str,
    stats: PetStats,
    now: datetime | None = None,
) -> PetMessage:
    """Persist one pet message in its own commit."""
    if message_type not in MESSAGE_TYPES:
        raise ValueError(f"Unknown message type '{message_type}'")

    message = PetMessage(
        pet_id=pet_id,
        message=compose_message(message_type, stats),
        message_type=message_type,
        created_at=now or datetime.now(timezone.utc),
    )
    db.add(message)
    await db.commit()
    return message


async def list_messages(db: AsyncSession, pet_id: int, limit: int = 20) -> list[PetMessage]:
    """Most recent messages first."""
    result = await db.execute(
        select(PetMessage)
        .where(PetMessage.pet_id == pet_id)
        .order_by(PetMessage.created_at.desc(), PetMessage.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
