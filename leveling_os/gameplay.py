"""
Personal Leveling OS - Gameplay Constants & Leveling Math

Pure functions only. Anything that shows a level threshold (ledger updates,
progress bars, analytics) must go through xp_for_level so the numbers agree.
"""

import math
from datetime import date
from typing import Dict, List, NamedTuple, Optional, Sequence


# ============================================
# LEVELING
# ============================================

# Level 1 requires 1000 XP, level 2 requires 1050 XP (1000 * 1.05), etc.
BASE_XP = 1000
COMPOUND_RATE = 0.05


class LevelInfo(NamedTuple):
    level: int
    current_xp: int
    xp_for_next_level: int


def xp_for_level(level: int) -> int:
    """XP needed to clear `level`. Floored on every call, never pre-rounded."""
    if level <= 1:
        return BASE_XP
    return math.floor(BASE_XP * math.pow(1 + COMPOUND_RATE, level - 1))


def total_xp_for_level(target_level: int) -> int:
    """Cumulative XP needed to reach `target_level` from level 1 with 0 XP."""
    return sum(xp_for_level(i) for i in range(1, target_level))


def level_from_total_xp(total_xp: int) -> LevelInfo:
    """Inverse of total_xp_for_level: walk level by level until the remainder fits."""
    if total_xp < 0:
        raise ValueError("total_xp must be non-negative")

    level = 1
    remaining = total_xp
    while remaining >= xp_for_level(level):
        remaining -= xp_for_level(level)
        level += 1

    return LevelInfo(level=level, current_xp=remaining, xp_for_next_level=xp_for_level(level))


# ============================================
# RANK TITLES
# ============================================

RANK_TIERS = [
    {"min_level": 1, "max_level": 10, "title": "Beginner"},
    {"min_level": 11, "max_level": 25, "title": "Novice Hunter"},
    {"min_level": 26, "max_level": 40, "title": "Skilled Hunter"},
    {"min_level": 41, "max_level": 60, "title": "Elite Hunter"},
    {"min_level": 61, "max_level": 80, "title": "Master Hunter"},
    {"min_level": 81, "max_level": 99, "title": "S-Rank Hunter"},
    {"min_level": 100, "max_level": 999, "title": "Shadow Monarch"},
]


def rank_for_level(level: int) -> str:
    for tier in RANK_TIERS:
        if tier["min_level"] <= level <= tier["max_level"]:
            return tier["title"]
    return "Shadow Monarch"


# ============================================
# REWARD TABLES
# ============================================

DEFAULT_DIFFICULTY = 2

HABIT_XP_BY_DIFFICULTY: Dict[int, int] = {1: 100, 2: 200, 3: 300}
HABIT_GOLD_BY_DIFFICULTY: Dict[int, int] = {1: 10, 2: 25, 3: 50}
HABIT_STAT_GAIN_BY_DIFFICULTY: Dict[int, int] = {1: 1, 2: 2, 3: 3}
GOAL_XP_BY_DIFFICULTY: Dict[int, int] = {1: 1000, 2: 2000, 3: 3000}

STAT_NAMES = ("strength", "intelligence", "vitality", "agility", "sense", "willpower")

# Which stat a completed habit trains, keyed by lower-cased category
STAT_CATEGORY_MAP: Dict[str, str] = {
    "fitness": "strength",
    "health": "vitality",
    "learning": "intelligence",
    "mindfulness": "sense",
    "productivity": "agility",
    "personal": "willpower",
    "work": "intelligence",
    "finance": "sense",
    "social": "agility",
    "creative": "intelligence",
}
DEFAULT_STAT = "willpower"


def stat_for_category(category: Optional[str]) -> str:
    return STAT_CATEGORY_MAP.get((category or "").strip().lower(), DEFAULT_STAT)


def clamp_difficulty(value) -> int:
    """Coerce an AI-provided rating into 1..3, falling back to medium."""
    try:
        difficulty = int(value)
    except (TypeError, ValueError):
        return DEFAULT_DIFFICULTY
    return min(3, max(1, difficulty))


# ============================================
# HABIT FREQUENCY (advisory only)
# ============================================

WEEKDAYS = [1, 2, 3, 4, 5]  # Mon-Fri
WEEKENDS = [0, 6]  # Sun, Sat


def js_weekday(day: date) -> int:
    """Day of week with Sunday = 0, as stored in frequency_days."""
    return (day.weekday() + 1) % 7


def is_habit_due(
    frequency: str,
    frequency_days: Sequence[int],
    day: date,
    custom_interval: Optional[int] = None,
    last_completion: Optional[date] = None
) -> bool:
    """Whether a habit is scheduled on `day`. Display metadata; rewards never check it."""
    dow = js_weekday(day)

    if frequency == "weekdays":
        return dow in WEEKDAYS
    if frequency == "weekends":
        return dow in WEEKENDS
    if frequency == "specific":
        return dow in frequency_days
    if frequency == "custom":
        if not custom_interval or not last_completion:
            return True
        return (day - last_completion).days >= custom_interval
    return True


DAY_NAMES: List[str] = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
MONTH_NAMES: List[str] = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]
