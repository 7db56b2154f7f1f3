"""Adaptive difficulty and achievement badges."""

from __future__ import annotations

from typing import Iterable

from adaptive_tutor.models import Difficulty

MIN_ANSWERS_FOR_ADAPTATION = 3
EASY_BELOW_PCT = 40
HARD_ABOVE_PCT = 75

BADGE_THRESHOLDS = (5, 10, 15, 20)
BADGE_NAMES = {
    5: "Getting Started",
    10: "On a Roll",
    15: "Topic Explorer",
    20: "Master Learner",
}


def next_difficulty(correct_count: int, total_count: int) -> Difficulty:
    """Map the running score to a difficulty label."""
    if total_count < MIN_ANSWERS_FOR_ADAPTATION:
        return "medium"
    percentage = correct_count / total_count * 100
    if percentage < EASY_BELOW_PCT:
        return "easy"
    if percentage > HARD_ABOVE_PCT:
        return "hard"
    return "medium"


def earned_badges(correct_count: int, already_earned: Iterable[int]) -> set[int]:
    """Return already_earned plus every threshold correct_count has reached.

    Badges are never taken away, so the result is always a superset of the
    input.
    """
    badges = set(already_earned)
    for threshold in BADGE_THRESHOLDS:
        if correct_count >= threshold and threshold not in badges:
            badges.add(threshold)
    return badges
