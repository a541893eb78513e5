"""Pet care API: care actions, evolution, snapshots, couples."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from copet.auth.dependencies import get_current_user_id
from copet.config import get_settings
from copet.database import get_session
from copet.dependencies import get_optional_redis
from copet.pets import care_gateway, message_service, milestone_service, pet_service
from copet.pets.rate_limit import user_rate_limit
from copet.pets.schemas import (
    AdoptPetRequest,
    CareActionEntry,
    CareActionRequest,
    CareActionResponse,
    CareHistoryResponse,
    CoupleResponse,
    CreateCoupleRequest,
    EvolutionCheckResponse,
    EvolutionProgressResponse,
    MilestoneEntry,
    MilestonesResponse,
    PetMessageEntry,
    PetMessagesResponse,
    PetResponse,
)
from copet.simulation.errors import CooldownActiveError, CoupleError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Pets"])


# ---------------------------------------------------------------------------
# Care & evolution
# ---------------------------------------------------------------------------


@router.post("/pets/{pet_id}/care", response_model=CareActionResponse)
async def perform_care(
    pet_id: int,
    body: CareActionRequest,
    user_id: int = Depends(user_rate_limit("care")),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
) -> CareActionResponse:
    """Perform a care action. A cooldown answers 429 with the seconds remaining."""
    result = await care_gateway.perform_care_action(db, redis, user_id, pet_id, body.action_type)
    if not result.accepted:
        raise CooldownActiveError(
            f"'{result.action.value}' is on cooldown for {result.cooldown_remaining_seconds} more seconds",
            remaining_seconds=result.cooldown_remaining_seconds,
        )

    return CareActionResponse(
        accepted=True,
        action_type=result.action.value,
        pet=PetResponse(**result.pet),
        xp_awarded=result.xp_awarded,
        combo=result.combo,
        co_op_bonus=result.co_op_bonus,
        evolved=result.evolved,
        new_stage=result.evolution.new_stage.value if result.evolution else None,
        reason=None,
    )


@router.post("/pets/{pet_id}/evolution/check", response_model=EvolutionCheckResponse)
async def check_evolution(
    pet_id: int,
    user_id: int = Depends(user_rate_limit("evolution")),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
) -> EvolutionCheckResponse:
    """Evolve the pet if it meets the next stage's requirements."""
    result = await care_gateway.check_evolution(db, redis, user_id, pet_id)
    return EvolutionCheckResponse(
        has_evolved=result["has_evolved"],
        previous_stage=result["previous_stage"],
        current_stage=result["current_stage"],
        pet=PetResponse(**result["pet"]),
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/pets/{pet_id}", response_model=PetResponse)
async def get_pet(
    pet_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> PetResponse:
    """Pet snapshot with stats decayed to now."""
    pet = await pet_service.get_pet_for_member(db, user_id, pet_id)
    return PetResponse(**pet_service.pet_view(pet))


@router.get("/pets/{pet_id}/evolution", response_model=EvolutionProgressResponse)
async def get_evolution_progress(
    pet_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> EvolutionProgressResponse:
    pet = await pet_service.get_pet_for_member(db, user_id, pet_id)
    return EvolutionProgressResponse(**pet_service.pet_view(pet)["evolution"])


@router.get("/pets/{pet_id}/actions", response_model=CareHistoryResponse)
async def get_care_history(
    pet_id: int,
    limit: int | None = Query(default=None, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> CareHistoryResponse:
    """Audit log of accepted care actions, newest first."""
    await pet_service.get_pet_for_member(db, user_id, pet_id)
    limit = limit or get_settings().care_history_page_size
    actions, total = await pet_service.list_care_actions(db, pet_id, limit=limit, offset=offset)
    return CareHistoryResponse(
        actions=[
            CareActionEntry(
                id=a.id,
                user_id=a.user_id,
                action_type=a.action_type,
                xp_awarded=a.xp_awarded,
                co_op_bonus=a.co_op_bonus,
                combo=a.combo,
                created_at=a.created_at,
            )
            for a in actions
        ],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/pets/{pet_id}/messages", response_model=PetMessagesResponse)
async def get_messages(
    pet_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> PetMessagesResponse:
    await pet_service.get_pet_for_member(db, user_id, pet_id)
    messages = await message_service.list_messages(db, pet_id, limit=get_settings().pet_messages_page_size)
    return PetMessagesResponse(
        messages=[
            PetMessageEntry(id=m.id, message=m.message, message_type=m.message_type, created_at=m.created_at)
            for m in messages
        ],
    )


# ---------------------------------------------------------------------------
# Couples & adoption
# ---------------------------------------------------------------------------


@router.get("/couples/me/milestones", response_model=MilestonesResponse)
async def get_milestones(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> MilestonesResponse:
    couple = await pet_service.get_active_couple(db, user_id)
    if couple is None:
        raise CoupleError("You are not in a couple")
    milestones = await milestone_service.list_milestones(db, couple.id)
    return MilestonesResponse(
        couple_id=couple.id,
        milestones=[
            MilestoneEntry(
                milestone_type=m.milestone_type,
                title=milestone_service.MILESTONE_TITLES.get(m.milestone_type, m.milestone_type),
                evolution_unlocked=m.evolution_unlocked,
                celebrated_by=m.celebrated_by,
                achieved_at=m.achieved_at,
            )
            for m in milestones
        ],
        **milestone_service.milestone_progress(milestones),
    )


@router.post("/couples", response_model=CoupleResponse, status_code=201)
async def create_couple(
    body: CreateCoupleRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> CoupleResponse:
    """Pair with a partner. Pairing codes are issued elsewhere."""
    couple = await pet_service.create_couple(db, user_id, body.partner_user_id)
    return CoupleResponse(
        id=couple.id,
        user1_id=couple.user1_id,
        user2_id=couple.user2_id,
        is_active=couple.is_active,
        created_at=couple.created_at,
    )


@router.post("/pets", response_model=PetResponse, status_code=201)
async def adopt_pet(
    body: AdoptPetRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> PetResponse:
    pet = await pet_service.adopt_pet(db, user_id, body.name, body.species, body.color)
    return PetResponse(**pet_service.pet_view(pet))
