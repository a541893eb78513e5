"""Cooperative mini-game scoring. Deterministic, no randomness.

final = base
        x 1.5 if co-op and the partner joined within the sync window
        x 1.2 if accuracy >= 90, x 1.1 if accuracy >= 75
rounded to the nearest integer.
"""

from __future__ import annotations

from copet.simulation.errors import InvalidActionError
from copet.simulation.stat_clock import round_half_up

GAME_CONFIGS: dict[str, dict] = {
    "tap-pet": {"name": "Tap to Pet", "duration": 30, "difficulty": 1, "cooperative": True},
    "swipe-groom": {"name": "Swipe to Groom", "duration": 30, "difficulty": 2, "cooperative": True},
    "rhythm-feed": {"name": "Rhythm Feed", "duration": 30, "difficulty": 3, "cooperative": True},
    "fetch-together": {"name": "Fetch Together", "duration": 30, "difficulty": 2, "cooperative": True},
}

COOP_SYNC_WINDOW_MS = 2000
COOP_MULTIPLIER = 1.5

MAX_DURATION_RATIO = 1.2
MAX_ACTIONS_PER_SECOND = 10

RANK_THRESHOLDS: list[tuple[str, int]] = [
    ("platinum", 200),
    ("gold", 150),
    ("silver", 100),
    ("bronze", 50),
]

GAME_BASE_XP = 50
HIGH_SCORE_XP = 25
HIGH_SCORE_THRESHOLD = 100
COOP_GAME_XP = 20


def get_game_config(game_type: str) -> dict:
    try:
        return GAME_CONFIGS[game_type]
    except KeyError:
        raise InvalidActionError(
            f"Invalid game_type '{game_type}'. Must be one of: {', '.join(GAME_CONFIGS)}"
        ) from None


def accuracy_multiplier(accuracy: float) -> float:
    if accuracy >= 90:
        return 1.2
    if accuracy >= 75:
        return 1.1
    return 1.0


def coop_applies(is_coop: bool, partner_sync_delta_ms: int | None) -> bool:
    if not is_coop or partner_sync_delta_ms is None:
        return False
    return abs(partner_sync_delta_ms) <= COOP_SYNC_WINDOW_MS


def score(
    base_score: float,
    accuracy: float,
    is_coop: bool,
    partner_sync_delta_ms: int | None,
) -> int:
    """Final bonus-adjusted score."""
    final = float(base_score)
    if coop_applies(is_coop, partner_sync_delta_ms):
        final *= COOP_MULTIPLIER
    final *= accuracy_multiplier(accuracy)
    return round_half_up(final)


def get_rank(final_score: int) -> str | None:
    """Highest tier reached, or None below bronze."""
    for tier, threshold in RANK_THRESHOLDS:
        if final_score >= threshold:
            return tier
    return None


def validate(game_type: str, duration: float, action_count: int) -> bool:
    """Human-plausibility check. False means the session must be discarded."""
    config = get_game_config(game_type)
    if duration < 0 or action_count < 0:
        return False
    if duration > config["duration"] * MAX_DURATION_RATIO:
        return False
    if action_count > duration * MAX_ACTIONS_PER_SECOND:
        return False
    return True


def game_xp(final_score: int, coop_bonus: bool) -> int:
    """Pet XP granted for a completed game."""
    xp = GAME_BASE_XP
    if final_score > HIGH_SCORE_THRESHOLD:
        xp += HIGH_SCORE_XP
    if coop_bonus:
        xp += COOP_GAME_XP
    return xp
