"""Personality traits derived from the care history.

Traits are recomputed from per-action counters, never from the raw log.
"""

from __future__ import annotations

from collections.abc import Mapping

from copet.simulation.models import ActionType, Trait
from copet.simulation.stat_clock import round_half_up

# Tie-break order for the dominant trait
TRAIT_PRIORITY: list[Trait] = [Trait.PLAYFUL, Trait.CALM, Trait.MISCHIEVOUS, Trait.AFFECTIONATE]

TRAIT_WEIGHTS: dict[ActionType, dict[Trait, float]] = {
    ActionType.PLAY: {Trait.PLAYFUL: 2},
    ActionType.PET: {Trait.AFFECTIONATE: 2},
    ActionType.GROOM: {Trait.CALM: 1, Trait.AFFECTIONATE: 1},
    ActionType.FEED: {Trait.AFFECTIONATE: 1},
    ActionType.WALK: {Trait.PLAYFUL: 1, Trait.MISCHIEVOUS: 0.5},
    ActionType.TRAIN: {Trait.MISCHIEVOUS: 1, Trait.CALM: 0.5},
    ActionType.SLEEP: {Trait.CALM: 1},
    ActionType.BATH: {Trait.CALM: 0.5},
}

DEFAULT_TRAITS: dict[str, int] = {t.value: 25 for t in TRAIT_PRIORITY}


def recompute(action_counts: Mapping[str, int]) -> dict[str, int]:
    """Normalize weighted action counts into traits summing to 100 (+/-1)."""
    raw = {t: 0.0 for t in TRAIT_PRIORITY}
    for action, count in action_counts.items():
        try:
            weights = TRAIT_WEIGHTS[ActionType(action)]
        except ValueError:
            continue
        for trait, weight in weights.items():
            raw[trait] += weight * max(0, count)

    total = sum(raw.values())
    if total <= 0:
        return dict(DEFAULT_TRAITS)

    exact = {t: raw[t] / total * 100 for t in TRAIT_PRIORITY}
    traits = {t: round_half_up(exact[t]) for t in TRAIT_PRIORITY}

    # Half-up rounding of four shares can drift to 98..102; settle the drift
    # on the traits whose rounding moved them furthest from their exact share.
    drift = sum(traits.values()) - 100
    while abs(drift) > 1:
        step = 1 if drift > 0 else -1
        candidates = [t for t in TRAIT_PRIORITY if traits[t] - step >= 0]
        worst = max(candidates, key=lambda t: (traits[t] - exact[t]) * step)
        traits[worst] -= step
        drift -= step

    return {t.value: traits[t] for t in TRAIT_PRIORITY}


def dominant(traits: Mapping[str, int]) -> Trait:
    """Highest trait; ties go to the earlier entry in TRAIT_PRIORITY."""
    best = TRAIT_PRIORITY[0]
    for trait in TRAIT_PRIORITY[1:]:
        if traits.get(trait.value, 0) > traits.get(best.value, 0):
            best = trait
    return best
