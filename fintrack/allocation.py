from dataclasses import replace
from typing import Tuple

from fintrack.domain import Goal


def allocate(savings: float, goals: Tuple[Goal, ...]) -> Tuple[Goal, ...]:
    """Split ``savings`` evenly across goals, capping each at its target.

    This runs every cycle, so goals keep accumulating the current savings
    until they are full.
    """
    if not goals:
        return goals

    per_goal = savings / len(goals)
    return tuple(
        replace(g, saved=min(g.saved + per_goal, g.target))
        for g in goals
    )


def remaining(goal: Goal) -> float:
    return max(goal.target - goal.saved, 0.0)
