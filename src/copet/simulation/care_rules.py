"""Care action rules: cooldowns, stat effects, and XP awards.

Each action maps to exactly one ``CareRule``. The module refuses to import
if an ``ActionType`` has no rule, so adding an action without rules fails
loudly instead of silently awarding nothing.

XP = base + urgent-care bonus + combo bonus
  urgent: 50% of base if the targeted stat is below 25, 25% below 50
  combo:  min(combo * 2, 20), only once combo >= 3
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from copet.simulation.errors import InvalidActionError
from copet.simulation.models import ActionType, PetState, PetStats, StatType
from copet.simulation.stat_clock import clamp_stat, ensure_utc, round_half_up

COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"

# Consecutive actions closer together than this build a combo
COMBO_WINDOW_SECONDS = 30 * 60
COMBO_MIN_FOR_BONUS = 3
COMBO_BONUS_PER_STEP = 2
COMBO_BONUS_CAP = 20

# Partner acted this recently -> co-op bonus on positive stat deltas
COOP_SYNC_WINDOW_SECONDS = 10 * 60
COOP_STAT_MULTIPLIER = 1.5

StatDeltas = dict[StatType, int]


def _feed(stats: PetStats) -> StatDeltas:
    return {StatType.HUNGER: 20, StatType.ENERGY: 5, StatType.HAPPINESS: 5}


def _play(stats: PetStats) -> StatDeltas:
    return {StatType.HUNGER: -5, StatType.ENERGY: -10, StatType.HAPPINESS: 25}


def _walk(stats: PetStats) -> StatDeltas:
    return {StatType.HUNGER: -10, StatType.ENERGY: -15, StatType.HAPPINESS: 15}


def _pet(stats: PetStats) -> StatDeltas:
    return {StatType.HAPPINESS: 10}


def _groom(stats: PetStats) -> StatDeltas:
    return {StatType.ENERGY: -5, StatType.HAPPINESS: 15, StatType.CLEANLINESS: 20}


def _train(stats: PetStats) -> StatDeltas:
    return {StatType.HUNGER: -10, StatType.ENERGY: -20, StatType.HAPPINESS: 10}


def _sleep(stats: PetStats) -> StatDeltas:
    # Exhausted pets sleep deeper
    restored = 60 if stats.energy < 25 else 40
    return {StatType.ENERGY: restored, StatType.HUNGER: -5}


def _bath(stats: PetStats) -> StatDeltas:
    return {StatType.CLEANLINESS: 40, StatType.HAPPINESS: 5}


@dataclass(frozen=True)
class CareRule:
    base_xp: int
    cooldown_seconds: int
    target: StatType
    effect: Callable[[PetStats], StatDeltas]


CARE_RULES: dict[ActionType, CareRule] = {
    ActionType.FEED: CareRule(10, 5 * 60, StatType.HUNGER, _feed),
    ActionType.PLAY: CareRule(15, 5 * 60, StatType.HAPPINESS, _play),
    ActionType.WALK: CareRule(12, 10 * 60, StatType.HAPPINESS, _walk),
    ActionType.PET: CareRule(5, 2 * 60, StatType.HAPPINESS, _pet),
    ActionType.GROOM: CareRule(8, 10 * 60, StatType.CLEANLINESS, _groom),
    ActionType.TRAIN: CareRule(20, 15 * 60, StatType.HAPPINESS, _train),
    ActionType.SLEEP: CareRule(5, 30 * 60, StatType.ENERGY, _sleep),
    ActionType.BATH: CareRule(10, 30 * 60, StatType.CLEANLINESS, _bath),
}

_missing_rules = set(ActionType) - set(CARE_RULES)
if _missing_rules:
    raise RuntimeError(f"Care actions without rules: {sorted(a.value for a in _missing_rules)}")


@dataclass(frozen=True)
class CareOutcome:
    accepted: bool
    action: ActionType
    new_stats: PetStats
    xp_awarded: int = 0
    reason: str | None = None
    cooldown_remaining_seconds: int = 0
    co_op_bonus: bool = False
    combo: int = 0


def parse_action(value: str | ActionType) -> ActionType:
    """Coerce a raw action string, raising InvalidActionError if unknown."""
    try:
        return ActionType(value)
    except ValueError:
        valid = ", ".join(a.value for a in ActionType)
        raise InvalidActionError(f"Invalid action_type '{value}'. Must be one of: {valid}") from None


def cooldown_remaining(action: ActionType, last_at: datetime | None, now: datetime) -> int:
    """Seconds until ``action`` may be performed again (0 if available)."""
    if last_at is None:
        return 0
    elapsed = (ensure_utc(now) - ensure_utc(last_at)).total_seconds()
    remaining = CARE_RULES[action].cooldown_seconds - elapsed
    return max(0, math.ceil(remaining))


def urgent_care_bonus(base_xp: int, target_value: int | None) -> int:
    if target_value is None:
        return 0
    if target_value < 25:
        return math.floor(base_xp * 0.5)
    if target_value < 50:
        return math.floor(base_xp * 0.25)
    return 0


def combo_bonus(combo: int) -> int:
    if combo < COMBO_MIN_FOR_BONUS:
        return 0
    return min(combo * COMBO_BONUS_PER_STEP, COMBO_BONUS_CAP)


def care_xp(action: ActionType, target_value: int | None = 50, combo: int = 0) -> int:
    """XP for one accepted action."""
    base = CARE_RULES[action].base_xp
    return base + urgent_care_bonus(base, target_value) + combo_bonus(combo)


def next_combo(previous_combo: int, last_care_at: datetime | None, now: datetime) -> int:
    """Combo count including the action being performed at ``now``."""
    if last_care_at is None:
        return 1
    gap = (ensure_utc(now) - ensure_utc(last_care_at)).total_seconds()
    if 0 <= gap <= COMBO_WINDOW_SECONDS:
        return previous_combo + 1
    return 1


def is_coop(partner_last_action_at: datetime | None, now: datetime) -> bool:
    if partner_last_action_at is None:
        return False
    gap = (ensure_utc(now) - ensure_utc(partner_last_action_at)).total_seconds()
    return 0 <= gap <= COOP_SYNC_WINDOW_SECONDS


def apply_deltas(stats: PetStats, deltas: StatDeltas, coop: bool = False) -> PetStats:
    """Apply deltas, scaling gains for co-op, and clamp every stat to [0, 100]."""
    values = stats.as_dict()
    for stat, delta in deltas.items():
        current = values[stat.value]
        if current is None:
            continue
        if coop and delta > 0:
            delta = round_half_up(delta * COOP_STAT_MULTIPLIER)
        values[stat.value] = clamp_stat(current + delta)
    return PetStats(**values)


def apply_care(
    action: ActionType | str,
    pet: PetState,
    now: datetime,
    partner_last_action_at: datetime | None = None,
) -> CareOutcome:
    """Evaluate one care action against the pet's current (decayed) state.

    A rejected outcome must not be persisted by the caller.
    """
    action = parse_action(action)
    rule = CARE_RULES[action]

    remaining = cooldown_remaining(action, pet.action_timestamps.get(action.value), now)
    if remaining > 0:
        return CareOutcome(
            accepted=False,
            action=action,
            new_stats=pet.stats,
            reason=COOLDOWN_ACTIVE,
            cooldown_remaining_seconds=remaining,
        )

    coop = is_coop(partner_last_action_at, now)
    combo = next_combo(pet.combo_count, pet.last_care_at, now)
    xp = care_xp(action, pet.stats.get(rule.target), combo)
    new_stats = apply_deltas(pet.stats, rule.effect(pet.stats), coop=coop)

    return CareOutcome(
        accepted=True,
        action=action,
        new_stats=new_stats,
        xp_awarded=xp,
        co_op_bonus=coop,
        combo=combo,
    )
