"""Mini-game session lifecycle: start, partner join, complete.

Rules:
- Only the couple that owns the pet can play with it
- A co-op session names the partner up front; the partner joins it
- Completion seals the session; completing again is rejected
- An implausible result deletes the session and awards nothing; the
  action rate is judged against the server-measured elapsed time
- The co-op sync delta comes from the recorded join time when the partner
  joined through the API, otherwise from the client's report
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from copet.db.models import MiniGameSession, Pet
from copet.pets.care_gateway import award_game_xp, conflicts_as_retryable, lock_pet_for_member
from copet.pets.pet_service import get_pet, require_membership
from copet.redis_client import couple_channel, publish_event
from copet.simulation import minigame
from copet.simulation.errors import (
    ImplausibleResultError,
    NotPetOwnerError,
    SessionNotFoundError,
    SessionSealedError,
)
from copet.simulation.stat_clock import ensure_utc

logger = logging.getLogger(__name__)


def list_games() -> list[dict]:
    return [{"game_type": game_type, **config} for game_type, config in minigame.GAME_CONFIGS.items()]


async def get_session_for_player(
    db: AsyncSession,
    user_id: int,
    session_id: int,
    *,
    for_update: bool = False,
) -> MiniGameSession:
    stmt = select(MiniGameSession).where(MiniGameSession.id == session_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    session = result.scalar_one_or_none()
    if session is None:
        raise SessionNotFoundError(f"Game session {session_id} not found")
    if user_id not in (session.user_id, session.partner_user_id):
        logger.warning("User %s attempted to use game session %s they are not part of", user_id, session_id)
        raise NotPetOwnerError("You are not a player in this game session")
    return session


async def start_session(
    db: AsyncSession,
    user_id: int,
    pet_id: int,
    game_type: str,
    is_coop: bool = False,
    now: datetime | None = None,
) -> MiniGameSession:
    """Open a play session for the couple's pet."""
    now = ensure_utc(now or datetime.now(timezone.utc))
    minigame.get_game_config(game_type)

    pet = await get_pet(db, pet_id)
    couple = await require_membership(db, pet, user_id)

    session = MiniGameSession(
        pet_id=pet.id,
        user_id=user_id,
        partner_user_id=couple.partner_of(user_id) if is_coop else None,
        game_type=game_type,
        is_coop=is_coop,
        started_at=now,
    )
    db.add(session)
    await db.commit()

    logger.info("User %s started %s session %s (co-op %s)", user_id, game_type, session.id, is_coop)
    return session


async def join_session(
    db: AsyncSession,
    user_id: int,
    session_id: int,
    now: datetime | None = None,
) -> MiniGameSession:
    """Record the partner joining a co-op session. Joining twice is a no-op."""
    now = ensure_utc(now or datetime.now(timezone.utc))
    session = await get_session_for_player(db, user_id, session_id, for_update=True)

    if session.completed_at is not None:
        await db.rollback()
        raise SessionSealedError("This game session is already complete")
    if not session.is_coop or user_id != session.partner_user_id:
        await db.rollback()
        raise NotPetOwnerError("Only the invited partner can join this session")

    if session.partner_joined_at is None:
        session.partner_joined_at = now
        await db.commit()
    return session


def _sync_delta_ms(session: MiniGameSession, reported_delta_ms: int | None) -> int | None:
    if session.partner_joined_at is not None:
        joined = ensure_utc(session.partner_joined_at) - ensure_utc(session.started_at)
        return int(joined.total_seconds() * 1000)
    return reported_delta_ms


async def complete_session(
    db: AsyncSession,
    redis: object,
    user_id: int,
    session_id: int,
    raw_score: int,
    accuracy: float,
    duration_seconds: float,
    action_count: int,
    partner_sync_delta_ms: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Score, rank, and seal the session, then credit XP to the pet."""
    now = ensure_utc(now or datetime.now(timezone.utc))
    session = await get_session_for_player(db, user_id, session_id, for_update=True)

    if session.completed_at is not None:
        await db.rollback()
        raise SessionSealedError("This game session is already complete")

    # The reported play time can never exceed what the server saw since the start
    elapsed = max((now - ensure_utc(session.started_at)).total_seconds(), 0.0)
    plausible = minigame.validate(session.game_type, duration_seconds, action_count) and minigame.validate(
        session.game_type, min(duration_seconds, elapsed), action_count,
    )
    if not plausible:
        logger.warning(
            "Discarding implausible %s session %s: %ss reported, %.1fs elapsed, %s actions",
            session.game_type, session.id, duration_seconds, elapsed, action_count,
        )
        await db.delete(session)
        await db.commit()
        raise ImplausibleResultError("Game result is not plausible and was discarded")

    delta = _sync_delta_ms(session, partner_sync_delta_ms)
    coop_bonus = minigame.coop_applies(session.is_coop, delta)
    final_score = minigame.score(raw_score, accuracy, session.is_coop, delta)
    rank = minigame.get_rank(final_score)
    xp = minigame.game_xp(final_score, coop_bonus)

    pet, couple_id = await lock_pet_for_member(db, user_id, session.pet_id)

    async with conflicts_as_retryable(db, pet.id):
        session.raw_score = raw_score
        session.accuracy = accuracy
        session.final_score = final_score
        session.rank = rank
        session.coop_bonus = coop_bonus
        session.xp_awarded = xp
        session.completed_at = now
        event = await award_game_xp(db, pet, xp, now, user_id=user_id)
        await db.commit()

    logger.info("Session %s complete: score %s (%s), +%s XP to pet %s", session.id, final_score, rank, xp, pet.id)

    payload = {
        "session_id": session.id,
        "pet_id": pet.id,
        "game_type": session.game_type,
        "final_score": final_score,
        "rank": rank,
        "coop_bonus": coop_bonus,
        "xp_awarded": xp,
        "evolved": event is not None,
        "new_stage": event.new_stage.value if event else None,
    }
    await publish_event(redis, couple_channel(couple_id), "game_completed", payload)
    return {**payload, "raw_score": raw_score, "accuracy": accuracy, "pet_xp": pet.xp}


async def high_scores(db: AsyncSession, game_type: str, limit: int = 10) -> list[dict]:
    """Best completed sessions for a game, highest score first."""
    minigame.get_game_config(game_type)
    result = await db.execute(
        select(MiniGameSession, Pet.name)
        .join(Pet, Pet.id == MiniGameSession.pet_id)
        .where(
            MiniGameSession.game_type == game_type,
            MiniGameSession.completed_at.is_not(None),
        )
        .order_by(MiniGameSession.final_score.desc(), MiniGameSession.completed_at)
        .limit(limit)
    )
    return [
        {
            "session_id": session.id,
            "pet_id": session.pet_id,
            "pet_name": pet_name,
            "final_score": session.final_score,
            "rank": session.rank,
            "is_coop": session.is_coop,
            "completed_at": session.completed_at,
        }
        for session, pet_name in result.all()
    ]
