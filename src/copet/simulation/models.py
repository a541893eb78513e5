"""Value types shared by the pure simulation modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

STAT_MIN = 0
STAT_MAX = 100


class StatType(str, Enum):
    """Bounded pet stats."""

    HUNGER = "hunger"
    HAPPINESS = "happiness"
    ENERGY = "energy"
    CLEANLINESS = "cleanliness"


class ActionType(str, Enum):
    """Care actions a partner can perform."""

    FEED = "feed"
    PLAY = "play"
    WALK = "walk"
    PET = "pet"
    GROOM = "groom"
    TRAIN = "train"
    SLEEP = "sleep"
    BATH = "bath"


class Species(str, Enum):
    DRAGON = "dragon"
    CAT = "cat"
    FOX = "fox"
    PUPPY = "puppy"


class Stage(str, Enum):
    """Life stages. MILESTONE is a celebratory marker outside the forward chain."""

    EGG = "egg"
    BABY = "baby"
    CHILD = "child"
    TEEN = "teen"
    ADULT = "adult"
    ELDER = "elder"
    MILESTONE = "milestone"


class Trait(str, Enum):
    PLAYFUL = "playful"
    CALM = "calm"
    MISCHIEVOUS = "mischievous"
    AFFECTIONATE = "affectionate"


@dataclass(frozen=True)
class PetStats:
    """Stat snapshot. ``cleanliness`` is optional for pets created without it."""

    hunger: int = 100
    happiness: int = 100
    energy: int = 100
    cleanliness: int | None = None

    def get(self, stat: StatType) -> int | None:
        return getattr(self, stat.value)

    def as_dict(self) -> dict[str, int | None]:
        return {
            "hunger": self.hunger,
            "happiness": self.happiness,
            "energy": self.energy,
            "cleanliness": self.cleanliness,
        }


@dataclass
class PetState:
    """The subset of a pet record the rules operate on."""

    stats: PetStats = field(default_factory=PetStats)
    stage: Stage = Stage.EGG
    xp: int = 0
    streak_days: int = 0
    last_care_date: date | None = None
    combo_count: int = 0
    last_care_at: datetime | None = None
    action_timestamps: dict[str, datetime] = field(default_factory=dict)
