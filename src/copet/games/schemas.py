"""Pydantic schemas for the mini-game API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class GameInfo(BaseModel):
    game_type: str
    name: str
    duration: int
    difficulty: int
    cooperative: bool


class GameListResponse(BaseModel):
    games: list[GameInfo]


class StartSessionRequest(BaseModel):
    pet_id: int
    game_type: str
    is_coop: bool = False


class GameSessionResponse(BaseModel):
    id: int
    pet_id: int
    user_id: int
    partner_user_id: int | None
    game_type: str
    is_coop: bool
    started_at: datetime
    partner_joined_at: datetime | None = None
    completed_at: datetime | None = None


class CompleteSessionRequest(BaseModel):
    raw_score: int = Field(..., ge=0)
    accuracy: float = Field(..., ge=0, le=100)
    duration_seconds: float = Field(..., ge=0)
    action_count: int = Field(..., ge=0)
    partner_sync_delta_ms: int | None = None


class CompleteSessionResponse(BaseModel):
    session_id: int
    pet_id: int
    game_type: str
    raw_score: int
    accuracy: float
    final_score: int
    rank: str | None
    coop_bonus: bool
    xp_awarded: int
    pet_xp: int
    evolved: bool
    new_stage: str | None = None


class HighScoreEntry(BaseModel):
    session_id: int
    pet_id: int
    pet_name: str
    final_score: int
    rank: str | None
    is_coop: bool
    completed_at: datetime


class HighScoresResponse(BaseModel):
    game_type: str
    scores: list[HighScoreEntry]
