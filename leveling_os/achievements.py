"""
Personal Leveling OS - Achievement Definitions & Unlock Evaluator

Unlocking is a flag flip: `unlocked_at` goes from null to a timestamp exactly
once. The reward fields on a definition are informational; unlocking does not
pay them into the ledger.
"""

import logging
from datetime import datetime
from typing import List, Optional

from leveling_os.models import Achievement, AchievementTier, ProgressionLedger, StatBonus, StatType
from leveling_os.storage import Storage

logger = logging.getLogger(__name__)


# ============================================
# ACHIEVEMENT DEFINITIONS
# ============================================

ACHIEVEMENT_DEFINITIONS = {
    # Firsts
    "first_habit": {
        "title": "First Step",
        "description": "Complete your first habit",
        "icon": "Footprints",
        "category": "habits",
        "tier": "bronze",
        "xp_reward": 50,
    },
    "first_goal": {
        "title": "Goal Getter",
        "description": "Complete your first goal",
        "icon": "Target",
        "category": "goals",
        "tier": "silver",
        "xp_reward": 200,
        "gold_reward": 50,
    },
    # Levels
    "level_5": {
        "title": "Awakened",
        "description": "Reach level 5",
        "icon": "Sparkles",
        "category": "levels",
        "tier": "bronze",
        "xp_reward": 100,
    },
    "level_10": {
        "title": "E-Rank Hunter",
        "description": "Reach level 10",
        "icon": "Shield",
        "category": "levels",
        "tier": "silver",
        "xp_reward": 250,
        "gold_reward": 100,
    },
    "level_25": {
        "title": "Rising Hunter",
        "description": "Reach level 25",
        "icon": "Sword",
        "category": "levels",
        "tier": "gold",
        "xp_reward": 500,
        "gold_reward": 250,
        "stat_bonus": {"stat": "strength", "amount": 5},
    },
    "level_50": {
        "title": "National Level Hunter",
        "description": "Reach level 50",
        "icon": "Crown",
        "category": "levels",
        "tier": "platinum",
        "xp_reward": 1000,
        "gold_reward": 500,
        "stat_bonus": {"stat": "willpower", "amount": 10},
        "special_power": "Arise: your presence inspires every habit you keep.",
    },
    # Streaks
    "streak_3": {
        "title": "Warming Up",
        "description": "Keep a 3-day streak",
        "icon": "Flame",
        "category": "streaks",
        "tier": "bronze",
        "xp_reward": 75,
    },
    "streak_7": {
        "title": "Week Warrior",
        "description": "Keep a 7-day streak",
        "icon": "Flame",
        "category": "streaks",
        "tier": "silver",
        "xp_reward": 200,
        "gold_reward": 50,
    },
    "streak_30": {
        "title": "Month Master",
        "description": "Keep a 30-day streak",
        "icon": "CalendarCheck",
        "category": "streaks",
        "tier": "legendary",
        "xp_reward": 1000,
        "gold_reward": 500,
        "stat_bonus": {"stat": "vitality", "amount": 10},
        "special_power": "Unbroken: the system recognises your discipline.",
    },
    # Gold
    "gold_1000": {
        "title": "Treasure Hunter",
        "description": "Earn 1,000 gold in total",
        "icon": "Coins",
        "category": "special",
        "tier": "gold",
        "xp_reward": 300,
    },
}

LEVEL_MILESTONES = [(5, "level_5"), (10, "level_10"), (25, "level_25"), (50, "level_50")]
STREAK_MILESTONES = [(3, "streak_3"), (7, "streak_7"), (30, "streak_30")]
GOLD_MILESTONES = [(1000, "gold_1000")]


def build_achievement(key: str, data: dict) -> Achievement:
    stat_bonus = data.get("stat_bonus")
    return Achievement(
        key=key,
        title=data["title"],
        description=data["description"],
        icon=data.get("icon", "Trophy"),
        category=data.get("category", "general"),
        tier=AchievementTier(data.get("tier", "bronze")),
        xp_reward=data.get("xp_reward", 50),
        gold_reward=data.get("gold_reward", 0),
        stat_bonus=StatBonus(stat=StatType(stat_bonus["stat"]), amount=stat_bonus["amount"]) if stat_bonus else None,
        special_power=data.get("special_power"),
    )


async def seed_achievements(storage: Storage) -> int:
    """Insert any missing definitions. Returns count of inserted."""
    inserted = 0
    async with storage.transaction():
        for key, data in ACHIEVEMENT_DEFINITIONS.items():
            if await storage.insert_achievement(build_achievement(key, data)):
                inserted += 1
    if inserted:
        logger.info(f"Seeded {inserted} achievement definitions")
    return inserted


# ============================================
# UNLOCK EVALUATOR
# ============================================

class AchievementEvaluator:
    """Flips achievements to unlocked. Deciding *when* to try is up to the caller."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def unlock(self, key: str, now: Optional[datetime] = None) -> Optional[Achievement]:
        """
        Unlock by stable key.

        Returns the achievement when this call unlocked it, None when the key
        does not exist or it was already unlocked. Safe to call repeatedly.
        """
        achievement = await self.storage.unlock_achievement(key, now or datetime.now())
        if achievement:
            logger.info(f"Achievement unlocked: {key} ({achievement.title})")
        return achievement

    async def _unlock_thresholds(self, value: int, milestones, now: Optional[datetime]) -> List[Achievement]:
        # Every milestone is tried independently; a higher one says nothing about lower ones
        unlocked = []
        for threshold, key in milestones:
            if value >= threshold:
                achievement = await self.unlock(key, now)
                if achievement:
                    unlocked.append(achievement)
        return unlocked

    async def check_levels(self, ledger: ProgressionLedger, now: Optional[datetime] = None) -> List[Achievement]:
        return await self._unlock_thresholds(ledger.level, LEVEL_MILESTONES, now)

    async def check_streak(self, longest_streak: int, now: Optional[datetime] = None) -> List[Achievement]:
        return await self._unlock_thresholds(longest_streak, STREAK_MILESTONES, now)

    async def check_gold(self, ledger: ProgressionLedger, now: Optional[datetime] = None) -> List[Achievement]:
        return await self._unlock_thresholds(ledger.lifetime_gold, GOLD_MILESTONES, now)

    async def after_habit_completed(
        self,
        ledger: ProgressionLedger,
        longest_streak: int = 0,
        now: Optional[datetime] = None
    ) -> List[Achievement]:
        """first_habit first, then levels, streaks and gold. Returns what this call unlocked."""
        unlocked = []
        first = await self.unlock("first_habit", now)
        if first:
            unlocked.append(first)
        unlocked.extend(await self.check_levels(ledger, now))
        unlocked.extend(await self.check_streak(longest_streak, now))
        unlocked.extend(await self.check_gold(ledger, now))
        return unlocked

    async def after_goal_completed(self, ledger: ProgressionLedger, now: Optional[datetime] = None) -> List[Achievement]:
        unlocked = []
        first = await self.unlock("first_goal", now)
        if first:
            unlocked.append(first)
        unlocked.extend(await self.check_levels(ledger, now))
        return unlocked
