"""Pydantic schemas for the pet care API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Requests ---


class CareActionRequest(BaseModel):
    action_type: str = Field(..., min_length=1, max_length=32)


class CreateCoupleRequest(BaseModel):
    partner_user_id: int = Field(..., gt=0)


class AdoptPetRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    species: str
    color: str = Field("default", max_length=32)


# --- Pet snapshot ---


class PetStatsResponse(BaseModel):
    hunger: int
    happiness: int
    energy: int
    cleanliness: int | None = None


class EvolutionProgressResponse(BaseModel):
    current_stage: str
    next_stage: str | None
    xp_required: int | None
    days_required: int | None
    xp_progress_percent: float
    streak_progress_percent: float
    days_until_next: int
    can_evolve: bool
    has_reached_max_stage: bool


class PetResponse(BaseModel):
    id: int
    couple_id: int
    name: str
    species: str
    color: str
    stage: str
    stats: PetStatsResponse
    stat_status: dict[str, str]
    needed_actions: list[str]
    xp: int
    streak_days: int
    longest_streak: int
    combo_count: int
    personality: dict[str, int]
    dominant_trait: str
    cooldowns: dict[str, int]
    evolution: EvolutionProgressResponse
    last_care_at: datetime | None
    created_at: datetime | None


# --- Care & evolution ---


class CareActionResponse(BaseModel):
    accepted: bool
    action_type: str
    pet: PetResponse
    xp_awarded: int
    combo: int
    co_op_bonus: bool
    evolved: bool
    new_stage: str | None = None
    reason: str | None = None


class EvolutionCheckResponse(BaseModel):
    has_evolved: bool
    previous_stage: str
    current_stage: str
    pet: PetResponse


# --- History ---


class CareActionEntry(BaseModel):
    id: int
    user_id: int
    action_type: str
    xp_awarded: int
    co_op_bonus: bool
    combo: int
    created_at: datetime


class CareHistoryResponse(BaseModel):
    actions: list[CareActionEntry]
    total: int
    limit: int
    offset: int


class PetMessageEntry(BaseModel):
    id: int
    message: str
    message_type: str
    created_at: datetime


class PetMessagesResponse(BaseModel):
    messages: list[PetMessageEntry]


class MilestoneEntry(BaseModel):
    milestone_type: str
    title: str
    evolution_unlocked: str | None
    celebrated_by: int | None
    achieved_at: datetime


class MilestonesResponse(BaseModel):
    couple_id: int
    milestones: list[MilestoneEntry]
    completed: int
    total: int
    percent: float
    remaining: list[str]


class CoupleResponse(BaseModel):
    id: int
    user1_id: int
    user2_id: int
    is_active: bool
    created_at: datetime
