"""Life-stage state machine.

Stage progression: egg -> baby -> child -> teen -> adult -> elder
A pet advances one stage per evaluation, and only when both its XP and
its consecutive-care streak meet the next stage's thresholds. Elder and
the celebratory ``milestone`` marker are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass

from copet.simulation.models import Stage

STAGE_ORDER: list[Stage] = [
    Stage.EGG,
    Stage.BABY,
    Stage.CHILD,
    Stage.TEEN,
    Stage.ADULT,
    Stage.ELDER,
]

VALID_TRANSITIONS: dict[Stage, list[Stage]] = {
    Stage.EGG: [Stage.BABY],
    Stage.BABY: [Stage.CHILD],
    Stage.CHILD: [Stage.TEEN],
    Stage.TEEN: [Stage.ADULT],
    Stage.ADULT: [Stage.ELDER],
    Stage.ELDER: [],
    Stage.MILESTONE: [],
}

# Requirements to *enter* each stage
STAGE_THRESHOLDS: dict[Stage, dict[str, int]] = {
    Stage.EGG: {"xp": 0, "days": 0},
    Stage.BABY: {"xp": 100, "days": 3},
    Stage.CHILD: {"xp": 500, "days": 14},
    Stage.TEEN: {"xp": 1500, "days": 30},
    Stage.ADULT: {"xp": 3500, "days": 60},
    Stage.ELDER: {"xp": 7000, "days": 100},
}

STAGE_MILESTONES: dict[Stage, str] = {
    Stage.BABY: "three_day_streak",
    Stage.CHILD: "fourteen_day_streak",
    Stage.TEEN: "thirty_day_streak",
    Stage.ADULT: "sixty_day_streak",
    Stage.ELDER: "hundred_day_streak",
}


@dataclass(frozen=True)
class EvolutionEvent:
    previous_stage: Stage
    new_stage: Stage

    @property
    def milestone_type(self) -> str | None:
        return STAGE_MILESTONES.get(self.new_stage)


def validate_transition(current: Stage, target: Stage) -> None:
    """Raise ValueError unless ``current -> target`` is a single forward step."""
    valid = VALID_TRANSITIONS.get(current, [])
    if target not in valid:
        raise ValueError(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Valid transitions: {[s.value for s in valid]}"
        )


def next_stage(stage: Stage) -> Stage | None:
    valid = VALID_TRANSITIONS.get(stage, [])
    return valid[0] if valid else None


def can_evolve(stage: Stage, xp: int, streak_days: int) -> bool:
    target = next_stage(stage)
    if target is None:
        return False
    req = STAGE_THRESHOLDS[target]
    return xp >= req["xp"] and streak_days >= req["days"]


def evaluate(stage: Stage, xp: int, streak_days: int) -> EvolutionEvent | None:
    """Advance at most one stage. Returns None when the pet cannot evolve."""
    if not can_evolve(stage, xp, streak_days):
        return None
    target = next_stage(stage)
    assert target is not None
    validate_transition(stage, target)
    return EvolutionEvent(previous_stage=stage, new_stage=target)


def evolution_progress(stage: Stage, xp: int, streak_days: int) -> dict:
    """Progress toward the next stage, for progress cards."""
    target = next_stage(stage)
    if target is None:
        return {
            "current_stage": stage,
            "next_stage": None,
            "xp_required": None,
            "days_required": None,
            "xp_progress_percent": 100.0,
            "streak_progress_percent": 100.0,
            "days_until_next": 0,
            "can_evolve": False,
            "has_reached_max_stage": True,
        }

    req = STAGE_THRESHOLDS[target]
    xp_pct = min(xp / req["xp"] * 100, 100.0) if req["xp"] else 100.0
    day_pct = min(streak_days / req["days"] * 100, 100.0) if req["days"] else 100.0

    return {
        "current_stage": stage,
        "next_stage": target,
        "xp_required": req["xp"],
        "days_required": req["days"],
        "xp_progress_percent": round(xp_pct, 1),
        "streak_progress_percent": round(day_pct, 1),
        "days_until_next": max(0, req["days"] - streak_days),
        "can_evolve": can_evolve(stage, xp, streak_days),
        "has_reached_max_stage": False,
    }
