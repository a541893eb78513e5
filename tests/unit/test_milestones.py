"""Milestone progress summary."""

from copet.db.models import EvolutionMilestone
from copet.pets.milestone_service import MILESTONE_TITLES, STREAK_MILESTONES, milestone_progress


def _achieved(*types):
    return [EvolutionMilestone(couple_id=1, milestone_type=t) for t in types]


def test_nothing_achieved():
    progress = milestone_progress([])
    assert progress["completed"] == 0
    assert progress["total"] == len(MILESTONE_TITLES)
    assert progress["percent"] == 0.0
    assert progress["remaining"] == list(MILESTONE_TITLES)


def test_partial_progress():
    progress = milestone_progress(_achieved("first_care", "streak_3", "streak_7", "first_evolution"))
    assert progress["completed"] == 4
    assert progress["percent"] == round(4 / len(MILESTONE_TITLES) * 100, 1)
    assert "streak_30" in progress["remaining"]
    assert "first_care" not in progress["remaining"]


def test_unknown_types_do_not_count():
    progress = milestone_progress(_achieved("first_care", "legacy_badge"))
    assert progress["completed"] == 1


def test_every_streak_milestone_has_a_title():
    assert all(t in MILESTONE_TITLES for _, t in STREAK_MILESTONES)
