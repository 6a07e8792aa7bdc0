"""
Personal Leveling OS - Reward Calculator & Progression Ledger Update
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from leveling_os.errors import InsufficientResourceError, ValidationError
from leveling_os.gameplay import (
    GOAL_XP_BY_DIFFICULTY,
    HABIT_GOLD_BY_DIFFICULTY,
    HABIT_STAT_GAIN_BY_DIFFICULTY,
    HABIT_XP_BY_DIFFICULTY,
    STAT_NAMES,
    stat_for_category,
    xp_for_level,
)
from leveling_os.models import Goal, Habit, ProgressionLedger

logger = logging.getLogger(__name__)


@dataclass
class RewardDelta:
    xp: int = 0
    gold: int = 0
    stats: Dict[str, int] = field(default_factory=dict)


@dataclass
class RewardOutcome:
    ledger: ProgressionLedger
    leveled_up: bool
    old_level: int
    new_level: int

    @property
    def levels_gained(self) -> int:
        return self.new_level - self.old_level


# ============================================
# LEDGER UPDATE
# ============================================

def apply_reward(
    ledger: ProgressionLedger,
    xp_delta: int = 0,
    gold_delta: int = 0,
    stat_deltas: Optional[Dict[str, int]] = None,
    now: Optional[datetime] = None
) -> RewardOutcome:
    """
    Apply XP, gold and stat deltas to a ledger and resolve level-ups.

    Returns a new ledger; the input is never mutated, so a rejected update
    leaves the caller's state exactly as it was.

    Raises:
        ValidationError: negative XP, negative or unknown stat deltas
        InsufficientResourceError: gold_delta would take current_gold below zero
    """
    stat_deltas = stat_deltas or {}

    if xp_delta < 0:
        raise ValidationError(f"XP grant must be non-negative, got {xp_delta}", field="xp")
    for stat, amount in stat_deltas.items():
        if stat not in STAT_NAMES:
            raise ValidationError(f"Unknown stat '{stat}'", field="stats")
        if amount < 0:
            raise ValidationError(f"Stat delta for {stat} must be non-negative", field="stats")

    current_gold = ledger.current_gold + gold_delta
    if current_gold < 0:
        raise InsufficientResourceError(
            "Insufficient gold",
            required=-gold_delta,
            available=ledger.current_gold,
        )
    lifetime_gold = ledger.lifetime_gold + max(gold_delta, 0)

    old_level = ledger.level
    level = ledger.level
    current_xp = ledger.current_xp + xp_delta
    total_xp = ledger.total_xp + xp_delta
    leveled_up = False

    # Large grants can cross several boundaries; each pass uses the new level's threshold
    while current_xp >= xp_for_level(level):
        current_xp -= xp_for_level(level)
        level += 1
        leveled_up = True

    updates = {
        "level": level,
        "current_xp": current_xp,
        "total_xp": total_xp,
        "current_gold": current_gold,
        "lifetime_gold": lifetime_gold,
    }
    for stat, amount in stat_deltas.items():
        updates[stat] = getattr(ledger, stat) + amount
    if leveled_up:
        updates["last_level_up"] = now or datetime.now()
        logger.info(f"Level up: {old_level} -> {level}")

    return RewardOutcome(
        ledger=ledger.model_copy(update=updates),
        leveled_up=leveled_up,
        old_level=old_level,
        new_level=level,
    )


def apply_delta(ledger: ProgressionLedger, delta: RewardDelta, now: Optional[datetime] = None) -> RewardOutcome:
    return apply_reward(ledger, delta.xp, delta.gold, delta.stats, now=now)


# ============================================
# REWARD SOURCES
# ============================================

def habit_completion_reward(habit: Habit) -> RewardDelta:
    """XP, gold and a single stat gain for completing a habit once."""
    difficulty = habit.difficulty or 1
    xp = habit.xp_reward or HABIT_XP_BY_DIFFICULTY.get(difficulty, 100)
    gold = HABIT_GOLD_BY_DIFFICULTY.get(difficulty, 10)
    stat = stat_for_category(habit.category)
    gain = HABIT_STAT_GAIN_BY_DIFFICULTY.get(difficulty, 1)
    return RewardDelta(xp=xp, gold=gold, stats={stat: gain})


def goal_completion_reward(goal: Goal) -> RewardDelta:
    xp = goal.xp_reward or GOAL_XP_BY_DIFFICULTY.get(goal.difficulty, 2000)
    return RewardDelta(xp=xp)


def is_goal_completion_transition(
    before: Goal,
    progress: Optional[int],
    completed: Optional[bool]
) -> bool:
    """
    True only when a goal that was neither at 100% nor completed is now being
    moved to 100% or marked completed. Re-saving a finished goal returns False.
    """
    was_open = before.progress < 100 and not before.completed
    is_now_done = progress == 100 or completed is True
    return was_open and is_now_done
