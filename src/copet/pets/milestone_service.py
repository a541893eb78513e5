"""Couple milestones: one-time achievements, inserted idempotently.

Milestones come from three sources:
- the couple's first accepted care action
- streak length alone, checked after every accepted action
- stage unlocks, including the first evolution and reaching the final stage
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from copet.db.models import EvolutionMilestone
from copet.simulation.evolution import EvolutionEvent
from copet.simulation.models import Stage

logger = logging.getLogger(__name__)

FIRST_CARE = "first_care"
FIRST_EVOLUTION = "first_evolution"
MAX_STAGE = "max_stage"

STREAK_MILESTONES: list[tuple[int, str]] = [
    (3, "streak_3"),
    (7, "streak_7"),
    (30, "streak_30"),
]

MILESTONE_TITLES: dict[str, str] = {
    FIRST_CARE: "First Care",
    "streak_3": "3-Day Streak",
    "streak_7": "Week Warrior",
    "streak_30": "Monthly Master",
    FIRST_EVOLUTION: "First Evolution",
    MAX_STAGE: "Fully Grown",
    "three_day_streak": "Hatched",
    "fourteen_day_streak": "Growing Up",
    "thirty_day_streak": "Teenager",
    "sixty_day_streak": "All Grown Up",
    "hundred_day_streak": "Wise Elder",
}


async def has_milestone(db: AsyncSession, couple_id: int, milestone_type: str) -> bool:
    result = await db.execute(
        select(EvolutionMilestone.id).where(
            EvolutionMilestone.couple_id == couple_id,
            EvolutionMilestone.milestone_type == milestone_type,
        )
    )
    return result.scalar_one_or_none() is not None


async def record_milestone(
    db: AsyncSession,
    couple_id: int,
    milestone_type: str,
    achieved_at: datetime,
    *,
    evolution_unlocked: str | None = None,
    celebrated_by: int | None = None,
) -> EvolutionMilestone | None:
    """Add the milestone to the current transaction unless it already exists.

    Returns the new row, or None when the couple already had it. A racing
    insert that slips past the check trips the unique constraint at commit,
    which the caller treats as a concurrency conflict.
    """
    if await has_milestone(db, couple_id, milestone_type):
        return None

    milestone = EvolutionMilestone(
        couple_id=couple_id,
        milestone_type=milestone_type,
        evolution_unlocked=evolution_unlocked,
        celebrated_by=celebrated_by,
        achieved_at=achieved_at,
    )
    db.add(milestone)
    await db.flush()
    logger.info("Couple %s reached milestone %s", couple_id, milestone_type)
    return milestone


async def record_streak_milestones(
    db: AsyncSession,
    couple_id: int,
    streak_days: int,
    achieved_at: datetime,
    celebrated_by: int | None = None,
) -> list[str]:
    """Record every streak milestone ``streak_days`` has reached. Returns the new ones."""
    recorded = []
    for days, milestone_type in STREAK_MILESTONES:
        if streak_days < days:
            break
        if await record_milestone(db, couple_id, milestone_type, achieved_at, celebrated_by=celebrated_by):
            recorded.append(milestone_type)
    return recorded


async def record_stage_milestones(
    db: AsyncSession,
    couple_id: int,
    event: EvolutionEvent,
    achieved_at: datetime,
    celebrated_by: int | None = None,
) -> list[str]:
    """Record the milestones an evolution unlocks. Returns the new ones."""
    unlocked = event.new_stage.value
    candidates = []
    if event.milestone_type:
        candidates.append(event.milestone_type)
    if event.previous_stage == Stage.EGG:
        candidates.append(FIRST_EVOLUTION)
    if event.new_stage == Stage.ELDER:
        candidates.append(MAX_STAGE)

    recorded = []
    for milestone_type in candidates:
        if await record_milestone(
            db, couple_id, milestone_type, achieved_at,
            evolution_unlocked=unlocked, celebrated_by=celebrated_by,
        ):
            recorded.append(milestone_type)
    return recorded


async def list_milestones(db: AsyncSession, couple_id: int) -> list[EvolutionMilestone]:
    """All milestones for a couple, oldest first."""
    result = await db.execute(
        select(EvolutionMilestone)
        .where(EvolutionMilestone.couple_id == couple_id)
        .order_by(EvolutionMilestone.achieved_at, EvolutionMilestone.id)
    )
    return list(result.scalars().all())


def milestone_progress(milestones: list[EvolutionMilestone]) -> dict:
    """Completed vs. available milestones for progress cards."""
    achieved = {m.milestone_type for m in milestones}
    completed = len(achieved & MILESTONE_TITLES.keys())
    total = len(MILESTONE_TITLES)
    return {
        "completed": completed,
        "total": total,
        "percent": round(completed / total * 100, 1),
        "remaining": [t for t in MILESTONE_TITLES if t not in achieved],
    }
