"""Mini-game API: catalogue, sessions, high scores."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from copet.auth.dependencies import get_current_user_id
from copet.config import get_settings
from copet.database import get_session
from copet.db.models import MiniGameSession
from copet.dependencies import get_optional_redis
from copet.games import session_service
from copet.games.schemas import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    GameInfo,
    GameListResponse,
    GameSessionResponse,
    HighScoreEntry,
    HighScoresResponse,
    StartSessionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/games", tags=["Mini-games"])


def _session_response(session: MiniGameSession) -> GameSessionResponse:
    return GameSessionResponse(
        id=session.id,
        pet_id=session.pet_id,
        user_id=session.user_id,
        partner_user_id=session.partner_user_id,
        game_type=session.game_type,
        is_coop=session.is_coop,
        started_at=session.started_at,
        partner_joined_at=session.partner_joined_at,
        completed_at=session.completed_at,
    )


@router.get("", response_model=GameListResponse)
async def list_games() -> GameListResponse:
    """Available mini-games and their configuration."""
    return GameListResponse(games=[GameInfo(**g) for g in session_service.list_games()])


@router.post("/sessions", response_model=GameSessionResponse, status_code=201)
async def start_session(
    body: StartSessionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> GameSessionResponse:
    session = await session_service.start_session(db, user_id, body.pet_id, body.game_type, body.is_coop)
    return _session_response(session)


@router.post("/sessions/{session_id}/join", response_model=GameSessionResponse)
async def join_session(
    session_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> GameSessionResponse:
    """Partner joins a co-op session; the join time drives the co-op bonus."""
    session = await session_service.join_session(db, user_id, session_id)
    return _session_response(session)


@router.post("/sessions/{session_id}/complete", response_model=CompleteSessionResponse)
async def complete_session(
    session_id: int,
    body: CompleteSessionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
) -> CompleteSessionResponse:
    """Submit a result. Implausible results answer 422 and discard the session."""
    result = await session_service.complete_session(
        db,
        redis,
        user_id,
        session_id,
        raw_score=body.raw_score,
        accuracy=body.accuracy,
        duration_seconds=body.duration_seconds,
        action_count=body.action_count,
        partner_sync_delta_ms=body.partner_sync_delta_ms,
    )
    return CompleteSessionResponse(**result)


@router.get("/high-scores", response_model=HighScoresResponse)
async def get_high_scores(
    game_type: str = Query(...),
    limit: int | None = Query(default=None, ge=1, le=100),
    _user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> HighScoresResponse:
    scores = await session_service.high_scores(db, game_type, limit or get_settings().high_scores_limit)
    return HighScoresResponse(game_type=game_type, scores=[HighScoreEntry(**s) for s in scores])
